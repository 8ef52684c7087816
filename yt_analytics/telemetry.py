from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any, Protocol

import structlog

from yt_analytics.config import AppSettings

PIPELINE_START = "pipeline.start"
PIPELINE_ANALYTICS_FETCHED = "pipeline.analytics.fetched"
PIPELINE_METADATA_FETCHED = "pipeline.metadata.fetched"
PIPELINE_COMPLETED = "pipeline.completed"
PIPELINE_FAILED = "pipeline.failed"

REDACTED = "[redacted]"

_SENSITIVE_KEY_PARTS: tuple[str, ...] = (
    "auth_code",
    "authorization",
    "body",
    "password",
    "secret",
    "token",
)
# Google access tokens and refresh tokens.
_CREDENTIAL_VALUE_PREFIXES: tuple[str, ...] = ("ya29.", "1//")
_MAX_STRING_LENGTH = 160

AttributeValue = bool | int | float | str | None


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class LogTelemetrySink:
    """Writes each event as one structured record on the telemetry logger."""

    def __init__(self, logger_name: str = "yt_analytics.telemetry") -> None:
        self._logger = structlog.get_logger(logger_name)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink
    run_id: str | None = None

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def for_run(self, run_id: str) -> TelemetryClient:
        """Return a client that stamps every event with `run_id`."""
        return replace(self, run_id=run_id)

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        if self.run_id is not None:
            attributes.setdefault("run_id", self.run_id)
        self.sink.emit(event_name=event_name, attributes=sanitize_attributes(attributes))


def telemetry_from_settings(settings: AppSettings) -> TelemetryClient:
    if not settings.telemetry_enabled or settings.telemetry_sink == "none":
        return TelemetryClient.disabled()
    return TelemetryClient(enabled=True, sink=LogTelemetrySink())


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, AttributeValue]:
    sanitized: dict[str, AttributeValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(part in key for part in _SENSITIVE_KEY_PARTS):
            sanitized[key] = REDACTED
        else:
            sanitized[key] = _attribute_value(raw_value)
    return sanitized


def _attribute_value(value: Any) -> AttributeValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Path):
        return value.name
    if isinstance(value, BaseException):
        return type(value).__name__
    if not isinstance(value, str):
        return type(value).__name__

    compact = " ".join(value.split())
    if compact.startswith(_CREDENTIAL_VALUE_PREFIXES):
        return REDACTED
    if len(compact) > _MAX_STRING_LENGTH:
        return f"{compact[:_MAX_STRING_LENGTH]}..."
    return compact
