"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

import pendulum
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Image index settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/images.db"
    sqlite_wal: bool = True

    # Paths
    images_dir: Path = Path("./images")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=11451, ge=1, le=65535)

    # Scanning
    scan_on_startup: bool = True
    scan_interval_seconds: int = Field(default=60, ge=0)
    recent_window_days: int = Field(default=2, ge=1, le=31)
    scan_timezone: str = "UTC"

    # Paging
    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=500, ge=1)

    @field_validator("scan_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            msg = f"Unknown timezone: {value!r}"
            raise ValueError(msg) from exc
        return value

    @property
    def sqlite_path(self) -> Path | None:
        """Filesystem path of the SQLite database, or None for non-file URLs."""
        url = self.database_url
        if not url.startswith("sqlite") or "///" not in url:
            return None
        db_path = url.split("///", 1)[-1]
        if not db_path or db_path == ":memory:":
            return None
        return Path(db_path)
