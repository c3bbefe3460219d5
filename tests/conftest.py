"""Shared fixtures: explicit settings and in-memory stand-ins for the keyword API."""

from pathlib import Path

import pytest

from image_renamer.config import Settings


class FakeExtractor:
    """Keyword source returning canned keywords (or raising) per filename."""

    def __init__(
        self,
        keywords: list[str] | None = None,
        *,
        by_name: dict[str, list[str] | Exception] | None = None,
    ) -> None:
        """Store the default keywords and any per-file overrides."""
        self._default = keywords or []
        self._by_name = by_name or {}
        self.calls: list[tuple[str, str]] = []

    async def extract(self, image_b64: str, filename: str) -> list[str]:
        """Record the call and return the configured keywords."""
        self.calls.append((image_b64, filename))
        result = self._by_name.get(filename, self._default)
        if isinstance(result, Exception):
            raise result
        return list(result)


class RecordingSleep:
    """Async sleep replacement that records requested delays without waiting."""

    def __init__(self) -> None:
        """Start with no recorded delays."""
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        """Record the delay."""
        self.delays.append(seconds)


@pytest.fixture
def settings() -> Settings:
    """Settings built explicitly so the host environment cannot leak in."""
    return Settings(
        google_api_key="test-key",
        model_name="gemini-1.5-flash",
        api_base_url="https://generativelanguage.googleapis.com/v1beta",
        max_retries=3,
        initial_backoff_seconds=5.0,
        pacing_delay_seconds=3.0,
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Fresh sleep recorder."""
    return RecordingSleep()


def write_image(folder: Path, name: str, data: bytes = b"\xff\xd8\xff\xe0fake-jpeg") -> Path:
    """Create a small fake image file and return its path."""
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_bytes(data)
    return path
