from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from yt_analytics.config import load_settings
from yt_analytics.telemetry import (
    REDACTED,
    LogTelemetrySink,
    TelemetryClient,
    sanitize_attributes,
    telemetry_from_settings,
)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_keys() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "pipeline.start",
        access_token="abc",
        client_secret="shh",
        auth_code="4/abc",
        response_body="{...}",
        status_code=403,
        records=3,
    )

    event_name, attributes = sink.events[0]
    assert event_name == "pipeline.start"
    assert attributes["records"] == 3
    assert attributes["status_code"] == 403
    assert attributes["access_token"] == REDACTED
    assert attributes["client_secret"] == REDACTED
    assert attributes["auth_code"] == REDACTED
    assert attributes["response_body"] == REDACTED


def test_sanitize_attributes_masks_google_credentials_under_any_key() -> None:
    attributes = sanitize_attributes({"detail": "ya29.a0Af", "note": " 1//0gRefresh "})

    assert attributes == {"detail": REDACTED, "note": REDACTED}


def test_sanitize_attributes_formats_values() -> None:
    attributes = sanitize_attributes(
        {
            "Detail": "x " * 200,
            "error": ValueError("boom"),
            "start_date": date(2024, 2, 10),
            "path": Path("/tmp/out/2024-03-09-youtube-analytics.json"),
            "items": [1, 2],
            " ": "dropped",
        }
    )

    assert attributes["detail"].endswith("...")
    assert len(attributes["detail"]) == 163
    assert attributes["error"] == "ValueError"
    assert attributes["start_date"] == "2024-02-10"
    assert attributes["path"] == "2024-03-09-youtube-analytics.json"
    assert attributes["items"] == "list"
    assert "" not in attributes


def test_for_run_stamps_run_id_and_leaves_base_client_unchanged() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    run_client = client.for_run("run_123")
    run_client.emit("pipeline.completed", records=2)
    client.emit("pipeline.completed", records=1)

    assert sink.events[0][1]["run_id"] == "run_123"
    assert "run_id" not in sink.events[1][1]
    assert client.run_id is None


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.for_run("run_1").emit("pipeline.start")

    assert sink.events == []


@pytest.mark.parametrize(
    ("enabled", "sink", "expected"),
    [("true", "log", True), ("false", "log", False), ("true", "none", False)],
)
def test_telemetry_from_settings(
    monkeypatch: pytest.MonkeyPatch,
    enabled: str,
    sink: str,
    expected: bool,
) -> None:
    monkeypatch.setenv("YT_ANALYTICS_TELEMETRY_ENABLED", enabled)
    monkeypatch.setenv("YT_ANALYTICS_TELEMETRY_SINK", sink)

    client = telemetry_from_settings(load_settings())

    assert client.enabled is expected
    if expected:
        assert isinstance(client.sink, LogTelemetrySink)
