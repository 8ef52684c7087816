from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from yt_analytics.errors import ConfigurationError
from yt_analytics.models.records import Credential

DEFAULT_OUTPUT_DIR = Path("data") / "analytics"
DEFAULT_LOG_DIR = Path("logs")
CREDENTIAL_ENV_NAMES: dict[str, str] = {
    "client_id": "YT_CLIENT_ID",
    "client_secret": "YT_CLIENT_SECRET",
    "refresh_token": "YT_REFRESH_TOKEN",
}
FETCH_REQUIRED_FIELDS: tuple[str, ...] = ("client_id", "client_secret", "refresh_token")
AUTH_REQUIRED_FIELDS: tuple[str, ...] = ("client_id", "client_secret")
_PATH_FIELDS: tuple[str, ...] = ("output_dir", "log_dir")


class AppSettings(BaseSettings):
    """
    Runtime configuration for the analytics snapshot scripts.

    OAuth client credentials keep their historical unprefixed names
    (`YT_CLIENT_ID`, `YT_CLIENT_SECRET`, `YT_REFRESH_TOKEN`); every other
    option comes from `YT_ANALYTICS_*`.
    """

    model_config = SettingsConfigDict(
        env_prefix="YT_ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # OAuth client.
    client_id: str | None = Field(
        default=None,
        validation_alias="YT_CLIENT_ID",
        description="Google OAuth client ID.",
    )
    client_secret: str | None = Field(
        default=None,
        validation_alias="YT_CLIENT_SECRET",
        description="Google OAuth client secret.",
    )
    refresh_token: str | None = Field(
        default=None,
        validation_alias="YT_REFRESH_TOKEN",
        description="Long-lived refresh token minted by `yt-analytics-auth`.",
    )

    # Report shape.
    platform: str = Field(
        default="youtube",
        description="Platform label written into every record and into the snapshot file name.",
    )
    lookback_days: int = Field(
        default=28,
        ge=1,
        description="Length of the trailing report window ending today.",
    )
    max_results: int = Field(
        default=200,
        ge=1,
        le=200,
        description="Maximum number of videos requested from the analytics report.",
    )
    metadata_batch_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Video IDs per metadata request (capped by the Data API).",
    )

    # OAuth endpoints. API endpoints come from the bundled discovery documents.
    token_url: str = Field(default="https://oauth2.googleapis.com/token")
    authorize_url: str = Field(default="https://accounts.google.com/o/oauth2/v2/auth")
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every outbound HTTP call. Timeouts are fatal.",
    )

    # Output and logging.
    output_dir: Path = Field(
        default=DEFAULT_OUTPUT_DIR,
        description="Directory receiving dated JSON snapshots.",
    )
    log_dir: Path = Field(
        default=DEFAULT_LOG_DIR,
        description="Directory for log files.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stderr).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight pipeline telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` emits structured telemetry locally; `none` disables sink output.",
    )

    @field_validator("client_id", "client_secret", "refresh_token", mode="before")
    @classmethod
    def _blank_credential_is_missing(cls, value: Any) -> str | None:
        # Copy-pasted .env values often carry stray whitespace.
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("platform", "telemetry_sink", mode="before")
    @classmethod
    def _lowercase_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if not value:
                raise ValueError("must not be empty")
        return value

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Any:
        if isinstance(value, str | Path):
            return Path(value).expanduser().resolve()
        return value


def load_settings() -> AppSettings:
    """Read settings from the environment and `.env`, resolving directories against cwd."""
    try:
        settings = AppSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    # Defaults bypass validators, so resolve them here as well.
    return settings.model_copy(
        update={
            field_name: getattr(settings, field_name).expanduser().resolve()
            for field_name in _PATH_FIELDS
        }
    )


def require_credentials(settings: AppSettings, fields: Iterable[str]) -> dict[str, str]:
    """Return the requested credential values, failing on any that are unset."""
    values: dict[str, str] = {}
    missing: list[str] = []
    for field_name in fields:
        value = getattr(settings, field_name)
        if isinstance(value, str):
            values[field_name] = value
        else:
            missing.append(CREDENTIAL_ENV_NAMES[field_name])
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
    return values


def credential_from_settings(settings: AppSettings) -> Credential:
    values = require_credentials(settings, FETCH_REQUIRED_FIELDS)
    return Credential(
        client_id=values["client_id"],
        client_secret=values["client_secret"],
        refresh_token=values["refresh_token"],
    )
