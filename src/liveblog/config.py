"""Application-wide configuration loaded from environment / .env file."""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    AUTO = "auto"        # console on a TTY, JSON otherwise
    CONSOLE = "console"
    JSON = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.AUTO

    # ── Field schema ─────────────────────────────────────
    field_schema_path: str = Field(
        default="./liveblog_post.yaml",
        description="Optional YAML override of the post field table",
    )
    body_default_format: str = Field(
        default="basic_html",
        description="Text format applied to bodies given as plain strings",
    )

    # ── Highlights ───────────────────────────────────────
    highlight_vocabulary_id: str = Field(default="highlights", description="Highlight vocabulary id")
    highlight_vocabulary_path: str = Field(
        default="./highlights.yaml",
        description="Path to the highlight vocabulary YAML file",
    )

    # ── Projection ───────────────────────────────────────
    render_timeout_seconds: float | None = Field(
        default=None,
        description="Timeout for async renderers (None = wait forever)",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so they are re-read on next access."""
    global _settings
    _settings = None
