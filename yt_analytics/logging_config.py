from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from yt_analytics.config import AppSettings

LOGGER_NAMESPACE = "yt_analytics"
TELEMETRY_LOGGER_NAME = f"{LOGGER_NAMESPACE}.telemetry"
LOG_FILE_NAME = "yt-analytics.log"
TELEMETRY_LOG_FILE_NAME = "yt-analytics-telemetry.log"
MASK = "***"


@dataclass(frozen=True)
class LogPaths:
    application: Path
    telemetry: Path


class CredentialMasker:
    """structlog processor replacing configured credential values in log output."""

    def __init__(self, secrets: Iterable[str]) -> None:
        # Longest first so a secret containing another is masked whole.
        unique = {secret for secret in secrets if secret}
        self._secrets = tuple(sorted(unique, key=len, reverse=True))

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        if not self._secrets:
            return event_dict
        for key, value in event_dict.items():
            if key.startswith("_") or not isinstance(value, str):
                continue
            event_dict[key] = self.mask(value)
        return event_dict

    def mask(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text


def configure_application_logging(
    settings: AppSettings,
    *,
    console_stream: TextIO | None = None,
) -> LogPaths:
    """
    Route `yt_analytics.*` loggers to the console and to JSON files under `log_dir`.

    Console output goes to stderr by default because stdout is reserved for
    the operator-facing result lines. Calling this again replaces the
    handlers installed by the previous call.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    paths = LogPaths(
        application=settings.log_dir / LOG_FILE_NAME,
        telemetry=settings.log_dir / TELEMETRY_LOG_FILE_NAME,
    )
    masker = CredentialMasker(
        value for value in (settings.client_secret, settings.refresh_token) if value
    )
    stream = console_stream if console_stream is not None else sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(stream=stream)
    console_handler.setLevel(_level_from_name(settings.log_level))
    console_handler.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer(colors=_wants_color(stream)), masker)
    )
    file_handler = _json_file_handler(paths.application, logging.DEBUG, masker)
    telemetry_handler = _json_file_handler(paths.telemetry, logging.INFO, masker)

    _install(logging.getLogger(LOGGER_NAMESPACE), logging.DEBUG, console_handler, file_handler)
    _install(logging.getLogger(TELEMETRY_LOGGER_NAME), logging.INFO, telemetry_handler)

    logging.getLogger(LOGGER_NAMESPACE).debug(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        logging.getLevelName(console_handler.level),
        paths.application,
        paths.telemetry,
    )
    return paths


def _install(logger: logging.Logger, level: int, *handlers: logging.Handler) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        logger.addHandler(handler)


def _json_file_handler(path: Path, level: int, masker: CredentialMasker) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        _formatter(
            structlog.processors.JSONRenderer(sort_keys=True),
            masker,
            _add_source_location,
            structlog.processors.format_exc_info,
        )
    )
    return handler


def _formatter(
    renderer: Processor,
    masker: CredentialMasker,
    *extra: Processor,
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        ],
        processors=[
            *extra,
            masker,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _add_source_location(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict


def _level_from_name(raw_level: str) -> int:
    return logging.getLevelNamesMapping().get(raw_level.strip().upper(), logging.INFO)


def _wants_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False
