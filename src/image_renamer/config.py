"""Runtime configuration loaded from the environment and ``.env.local``."""

from loguru import logger
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


ENV_FILE = ".env.local"
DEFAULT_SERVER_PORTS = [9000, 8080, 8000, 3000, 3001, 5000]


class Settings(BaseSettings):
    """Application configuration; ``.env.local`` values win over the process environment."""

    model_config = SettingsConfigDict(env_file=ENV_FILE, extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Read the local env file before the process environment."""
        return (init_settings, dotenv_settings, env_settings, file_secret_settings)

    google_api_key: str = Field(min_length=1)
    model_name: str = "gemini-1.5-flash"
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout_seconds: float = 60.0

    max_retries: int = Field(default=3, ge=0)
    initial_backoff_seconds: float = Field(default=5.0, ge=0)
    pacing_delay_seconds: float = Field(default=3.0, ge=0)

    server_host: str = "127.0.0.1"
    server_ports: list[int] = Field(default_factory=lambda: list(DEFAULT_SERVER_PORTS))


def load_settings() -> Settings:
    """
    Load settings once at process start.

    Raises:
        SystemExit: If the API key is missing or any value fails validation.

    """
    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        fields = [".".join(str(loc) for loc in err["loc"]) for err in exc.errors()]
        if "google_api_key" in fields:
            logger.error(
                "missing_api_key",
                hint=f"Set GOOGLE_API_KEY in the environment or in {ENV_FILE}",
            )
        else:
            logger.error("invalid_settings", fields=fields, error=str(exc))
        raise SystemExit(1) from exc

    logger.debug(
        "settings_loaded",
        model=settings.model_name,
        api_base_url=settings.api_base_url,
        api_key_present=bool(settings.google_api_key),
        max_retries=settings.max_retries,
        pacing_delay_seconds=settings.pacing_delay_seconds,
    )
    return settings
