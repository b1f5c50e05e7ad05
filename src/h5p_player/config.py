"""Service configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str) -> AliasChoices:
    """Accept both NAME and the NEXT_PUBLIC_NAME spelling used by the web frontend."""
    return AliasChoices(name, f"NEXT_PUBLIC_{name}")


class Settings(BaseSettings):
    """Player service configuration.

    Read once at process start; instances are immutable.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Object store (S3-compatible)
    S3_ENDPOINT: str = Field(default="", validation_alias=_env("S3_ENDPOINT"))
    S3_REGION: str = Field(default="", validation_alias=_env("S3_REGION"))
    S3_ACCESS_KEY: str = Field(default="", validation_alias=_env("S3_ACCESS_KEY"))
    S3_SECRET_KEY: str = Field(default="", validation_alias=_env("S3_SECRET_KEY"))
    S3_BUCKET: str = Field(default="", validation_alias=_env("S3_BUCKET"))
    ENVIRONMENT: str = Field(default="prod", validation_alias=_env("ENVIRONMENT"))

    # Content cache and sync
    CONTENT_CACHE_DIR: Path = Path("h5p/content")
    PRESIGNED_URL_EXPIRY: int = Field(default=3600, ge=1, le=604800)
    FETCH_TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)
    MAX_ARCHIVE_BYTES: int = Field(default=512 * 1024 * 1024, gt=0)

    # Player
    PLAY_URL: str = "/play"
    LANGUAGE_OVERRIDE: str = "auto"  # "auto" or a fixed language code

    # Logging
    LOG_DIR: Optional[Path] = None
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT == "dev"

    @property
    def store_configured(self) -> bool:
        return bool(self.S3_ENDPOINT and self.S3_BUCKET)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded on first use."""
    return Settings()
