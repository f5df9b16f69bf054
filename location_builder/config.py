from __future__ import annotations

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_origins(raw: Any) -> List[str]:
    """
    Normalize CORS allow origins from env.

    Supports:
      - list[str] (already parsed)
      - "*"
      - comma-separated string: "https://a.com, https://b.com"
    """
    if raw is None:
        return ["*"]

    if isinstance(raw, list):
        items = [str(x).strip() for x in raw]
        items = [x for x in items if x]
        return items or ["*"]

    s = str(raw).strip()
    if not s or s == "*":
        return ["*"]

    parts = [p.strip() for p in s.split(",")]
    parts = [p for p in parts if p]
    return parts or ["*"]


class Settings(BaseSettings):
    """
    Central settings for the location builder backend.

    - Env var names are stable; values are normalized on load.
    - A single resolved DB URL is the source of truth for the engine.
    - Search tuning (radius bounds, debounce window) lives here so the UI and
      the API agree on the same numbers.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # App identity
    env: str = Field(default="local", alias="APP_ENV")
    app_name: str = Field(default="location-builder", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server runtime (uvicorn)
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    # Preferred: a real SQLAlchemy URL (SQLite locally, Postgres when hosted)
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_path: str = Field(default="./data/locations.sqlite", alias="DB_PATH")

    # Search tuning
    default_radius_miles: float = Field(default=50.0, alias="DEFAULT_RADIUS_MILES")
    max_radius_miles: float = Field(default=500.0, alias="MAX_RADIUS_MILES")
    radius_debounce_ms: int = Field(default=300, alias="RADIUS_DEBOUNCE_MS")
    max_search_sessions: int = Field(default=500, alias="MAX_SEARCH_SESSIONS")

    # Saved lists
    saved_lists_limit: int = Field(default=10, alias="SAVED_LISTS_LIMIT")

    # -------------------------
    # Validators / normalizers
    # -------------------------

    @field_validator("log_level", mode="before")
    @classmethod
    def _norm_log_level(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip().upper()
        return s or "INFO"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _norm_cors_allow_origins(cls, v: Any) -> list[str]:
        return _split_origins(v)

    @field_validator("host", mode="before")
    @classmethod
    def _norm_host(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip()
        return s or "127.0.0.1"

    @field_validator("database_url", mode="before")
    @classmethod
    def _norm_database_url(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip()

    @field_validator("db_path", mode="before")
    @classmethod
    def _norm_db_path(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip()
        return s or "./data/locations.sqlite"

    @field_validator("radius_debounce_ms", mode="before")
    @classmethod
    def _norm_debounce(cls, v: Any) -> int:
        try:
            ms = int(v)
        except (TypeError, ValueError):
            return 300
        return ms if ms >= 0 else 0

    # -------------------------
    # Derived helpers
    # -------------------------

    @property
    def is_prod(self) -> bool:
        return str(self.env).strip().lower() in ("prod", "production")

    @property
    def radius_debounce_seconds(self) -> float:
        return self.radius_debounce_ms / 1000.0

    @property
    def resolved_database_url(self) -> str:
        """
        Priority:
        1) DATABASE_URL if provided
        2) Build sqlite:/// URL from DB_PATH

        DB_PATH may already be a sqlite URL or a plain filesystem path.
        """
        if self.database_url:
            return self.database_url

        path = (self.db_path or "").strip() or "./data/locations.sqlite"

        if path.startswith("sqlite:"):
            return path

        p = Path(path)
        if not p.is_absolute():
            if str(p).startswith("./"):
                return f"sqlite:///{p.as_posix()}"
            return f"sqlite:///./{p.as_posix()}"

        # Absolute path needs 4 slashes after scheme (sqlite:////abs/path)
        return f"sqlite:////{p.as_posix().lstrip('/')}"


settings = Settings()
