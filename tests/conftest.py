from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from urllib.parse import parse_qs, urlparse

import httplib2
import pytest

from yt_analytics.services import google_api, oauth_service


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("YT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("YT_ANALYTICS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("YT_ANALYTICS_OUTPUT_DIR", str(tmp_path / "data" / "analytics"))
    yield
    for logger_name in ("yt_analytics", "yt_analytics.telemetry"):
        logger = logging.getLogger(logger_name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def credential_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("YT_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("YT_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("YT_REFRESH_TOKEN", "test-refresh-token")


ANALYTICS_HEADERS: list[dict[str, str]] = [
    {"name": "video"},
    {"name": "views"},
    {"name": "estimatedMinutesWatched"},
    {"name": "averageViewDuration"},
    {"name": "likes"},
    {"name": "comments"},
    {"name": "shares"},
]


class FakeGoogle:
    """
    Token endpoint and API transport for one test.

    `responses` maps "token", "reports" and "videos" to `(status, body)`; a
    dict or list body is sent as JSON, a str body as-is. Without an explicit
    "videos" entry the metadata endpoint answers from `videos` for the
    requested IDs.
    """

    def __init__(self) -> None:
        self.rows: list[list[Any]] = []
        self.videos: dict[str, dict[str, Any]] = {}
        self.responses: dict[str, tuple[int, Any]] = {
            "token": (
                200,
                {"access_token": "ya29.test", "expires_in": 3599, "token_type": "Bearer"},
            ),
        }
        self.calls: list[tuple[str, dict[str, list[str]]]] = []
        self.token_forms: list[dict[str, list[str]]] = []
        self.api_credentials: list[Any] = []

    def operations(self) -> list[str]:
        return [name for name, _query in self.calls]

    def query(self, name: str) -> dict[str, list[str]]:
        return next(query for call_name, query in self.calls if call_name == name)

    def token_request(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        headers: Any = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> SimpleNamespace:
        self.calls.append(("token", {}))
        self.token_forms.append(parse_qs(body.decode("utf-8") if body else ""))
        status, payload = self.responses["token"]
        return SimpleNamespace(status=status, data=_encode(payload), headers={})

    def authorized_http(self, credentials: Any, *, timeout_seconds: float) -> SimpleNamespace:
        self.api_credentials.append(credentials)
        return SimpleNamespace(request=self.api_request)

    def api_request(
        self,
        uri: str,
        method: str = "GET",
        body: Any = None,
        headers: Any = None,
        **kwargs: Any,
    ) -> tuple[httplib2.Response, bytes]:
        parsed = urlparse(uri)
        name = parsed.path.rsplit("/", 1)[-1]
        query = parse_qs(parsed.query)
        self.calls.append((name, query))
        if name in self.responses:
            status, payload = self.responses[name]
        elif name == "reports":
            status, payload = 200, {"columnHeaders": ANALYTICS_HEADERS, "rows": self.rows}
        elif name == "videos":
            ids = query["id"][0].split(",")
            items = [
                {"id": video_id, **self.videos[video_id]}
                for video_id in ids
                if video_id in self.videos
            ]
            status, payload = 200, {"items": items}
        else:
            raise AssertionError(f"unexpected request {uri}")
        return httplib2.Response({"status": str(status)}), _encode(payload)


def _encode(payload: Any) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def fake_google(monkeypatch: pytest.MonkeyPatch) -> FakeGoogle:
    fake = FakeGoogle()
    monkeypatch.setattr(oauth_service, "Request", lambda: fake.token_request)
    monkeypatch.setattr(google_api, "authorized_http", fake.authorized_http)
    return fake
