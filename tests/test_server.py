"""Tests for the HTTP layer using FastAPI's TestClient."""

from http import HTTPStatus
from pathlib import Path

import pytest
from conftest import FakeExtractor, RecordingSleep, write_image
from fastapi.testclient import TestClient

from image_renamer.config import Settings
from image_renamer.models import FileOutcome, ProcessingReport
from image_renamer.processor import BatchProcessor
from image_renamer.server import MISSING_PATHS_ERROR, create_app


class _StubProcessor:
    """Processor stand-in returning a canned report or raising."""

    def __init__(self, result: ProcessingReport | Exception) -> None:
        self._result = result
        self.calls: list[tuple[str, str]] = []

    async def process_directory(self, source_path: str, output_path: str) -> ProcessingReport:
        self.calls.append((source_path, output_path))
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


def _client(settings: Settings, processor: object) -> TestClient:
    return TestClient(create_app(settings, processor))  # type: ignore[arg-type]


def test_process_returns_report_as_camel_case_json(settings: Settings) -> None:
    """A valid request is delegated and the report comes back with CORS headers."""
    report = ProcessingReport(
        processed_count=1,
        progress=[FileOutcome(filename="a.jpg", new_filename="sky.jpg", status="Success")],
    )
    stub = _StubProcessor(report)

    response = _client(settings, stub).post(
        "/api/process",
        json={"sourcePath": " /photos ", "outputPath": "/renamed"},
    )

    assert response.status_code == HTTPStatus.OK
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.json() == {
        "processedCount": 1,
        "skippedCount": 0,
        "errors": [],
        "progress": [{"filename": "a.jpg", "newFilename": "sky.jpg", "status": "Success"}],
    }
    assert stub.calls == [("/photos", "/renamed")]


@pytest.mark.parametrize(
    "payload",
    [
        {"sourcePath": "/photos"},
        {"outputPath": "/renamed"},
        {"sourcePath": "", "outputPath": "/renamed"},
        {"sourcePath": "/photos", "outputPath": "   "},
        {"sourcePath": 5, "outputPath": "/renamed"},
        [],
    ],
)
def test_process_rejects_missing_paths(settings: Settings, payload: object) -> None:
    """Missing or blank paths are a client error and never reach the processor."""
    stub = _StubProcessor(ProcessingReport())

    response = _client(settings, stub).post("/api/process", json=payload)

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json() == {"error": MISSING_PATHS_ERROR}
    assert stub.calls == []


def test_process_rejects_unparseable_body(settings: Settings) -> None:
    """A body that is not JSON is treated like missing paths."""
    response = _client(settings, _StubProcessor(ProcessingReport())).post(
        "/api/process",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_process_maps_unexpected_errors_to_500(settings: Settings) -> None:
    """Exceptions escaping the processor become a JSON server error."""
    stub = _StubProcessor(RuntimeError("kaboom"))

    response = _client(settings, stub).post(
        "/api/process",
        json={"sourcePath": "/photos", "outputPath": "/renamed"},
    )

    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "kaboom"}


def test_preflight_allows_any_origin(settings: Settings) -> None:
    """OPTIONS answers with the CORS headers the browser needs."""
    response = _client(settings, _StubProcessor(ProcessingReport())).options("/api/process")

    assert response.status_code == HTTPStatus.OK
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


@pytest.mark.parametrize(
    ("path", "marker"),
    [
        ("/", "<title>AI Image Renamer</title>"),
        ("/index.html", "<title>AI Image Renamer</title>"),
        ("/style.css", ".summary-item"),
        ("/app.js", "/api/process"),
    ],
)
def test_static_assets_are_served(settings: Settings, path: str, marker: str) -> None:
    """The fixed set of UI files is served from the package."""
    response = _client(settings, _StubProcessor(ProcessingReport())).get(path)

    assert response.status_code == HTTPStatus.OK
    assert marker in response.text


@pytest.mark.parametrize("path", ["/missing", "/static/app.js", "/../pyproject.toml"])
def test_unknown_paths_are_not_found(settings: Settings, path: str) -> None:
    """Anything outside the known routes is a 404."""
    response = _client(settings, _StubProcessor(ProcessingReport())).get(path)

    assert response.status_code == HTTPStatus.NOT_FOUND


def test_process_end_to_end_with_real_processor(settings: Settings, tmp_path: Path) -> None:
    """The API drives a real batch run against the filesystem."""
    source = tmp_path / "src"
    write_image(source, "beach.jpg")
    processor = BatchProcessor(
        FakeExtractor(["sunset", "beach"]),
        pacing_delay_seconds=0,
        sleep=RecordingSleep(),
    )

    response = _client(settings, processor).post(
        "/api/process",
        json={"sourcePath": str(source), "outputPath": str(tmp_path / "out")},
    )

    body = response.json()
    assert response.status_code == HTTPStatus.OK
    assert body["processedCount"] == 1
    assert body["progress"][0]["newFilename"] == "sunset-beach.jpg"
    assert (tmp_path / "out" / "sunset-beach.jpg").exists()
    assert (source / "deleted" / "beach.jpg").exists()


def test_process_reports_inaccessible_directory(settings: Settings, tmp_path: Path) -> None:
    """A bad source path is a 200 with a single report error, not an HTTP error."""
    processor = BatchProcessor(FakeExtractor(["x"]), pacing_delay_seconds=0)

    response = _client(settings, processor).post(
        "/api/process",
        json={"sourcePath": str(tmp_path / "nope"), "outputPath": str(tmp_path / "out")},
    )

    body = response.json()
    assert response.status_code == HTTPStatus.OK
    assert body["progress"] == []
    assert len(body["errors"]) == 1
