from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

from yt_analytics.errors import AnalyticsSnapshotError
from yt_analytics.services.oauth_service import TokenResponse

LOGGER = logging.getLogger("yt_analytics.oauth.callback")

CALLBACK_PATH = "/oauth2callback"
LOOPBACK_HOST = "127.0.0.1"
EPHEMERAL_PORT_RANGE: tuple[int, int] = (49152, 65535)


@dataclass(frozen=True)
class CallbackOutcome:
    tokens: TokenResponse | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.tokens is not None and self.error is None


def choose_port(rng: random.Random | None = None) -> int:
    generator = rng if rng is not None else random.SystemRandom()
    low, high = EPHEMERAL_PORT_RANGE
    return generator.randrange(low, high)


def loopback_redirect_uri(port: int) -> str:
    return f"http://{LOOPBACK_HOST}:{port}{CALLBACK_PATH}"


class OAuthCallbackServer(HTTPServer):
    """
    Loopback listener that serves until one OAuth callback has been handled.

    Requests to other paths get a 404 and do not count. The callback either
    carries `error`, carries no `code`, or carries a code that is handed to
    `exchange`; each case produces exactly one `CallbackOutcome`.
    """

    def __init__(
        self,
        port: int,
        *,
        exchange: Callable[[str], TokenResponse],
        host: str = LOOPBACK_HOST,
    ) -> None:
        super().__init__((host, port), _CallbackHandler)
        self.exchange = exchange
        self.outcome: CallbackOutcome | None = None

    @property
    def port(self) -> int:
        return int(self.server_address[1])

    def wait_for_callback(self) -> CallbackOutcome:
        while self.outcome is None:
            self.handle_request()
        return self.outcome


class _CallbackHandler(BaseHTTPRequestHandler):
    server: OAuthCallbackServer

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler naming
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self._respond(404, "")
            return

        query = parse_qs(parsed.query)
        error = _first(query.get("error"))
        code = _first(query.get("code"))

        if error:
            self._respond(400, "Authorization failed. You can close this window.")
            self.server.outcome = CallbackOutcome(error=f"Authorization error: {error}")
            return

        if not code:
            self._respond(400, "Missing authorization code. You can close this window.")
            self.server.outcome = CallbackOutcome(error="Missing authorization code.")
            return

        try:
            tokens = self.server.exchange(code)
        except AnalyticsSnapshotError as exc:
            self._respond(500, "Token exchange failed. Check the terminal for details.")
            self.server.outcome = CallbackOutcome(error=str(exc))
            return
        except Exception as exc:
            LOGGER.exception("oauth callback exchange crashed")
            self._respond(500, "Token exchange failed. Check the terminal for details.")
            self.server.outcome = CallbackOutcome(error=f"Unexpected error: {exc}")
            return

        self._respond(200, "Authorization complete. You can close this window.")
        self.server.outcome = CallbackOutcome(tokens=tokens)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        LOGGER.debug("oauth callback request " + format, *args)

    def _respond(self, status: int, message: str) -> None:
        body = message.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)


def _first(values: list[str] | None) -> str | None:
    if not values:
        return None
    return values[0]
