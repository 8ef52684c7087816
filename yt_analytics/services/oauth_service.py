from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import MissingTokenError, OAuth2Error

from yt_analytics.errors import ResponseShapeError, UpstreamHttpError
from yt_analytics.models.records import Credential

LOGGER = logging.getLogger("yt_analytics.oauth")

DEFAULT_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
OUT_OF_BAND_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
DEFAULT_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/yt-analytics.readonly",
    "https://www.googleapis.com/auth/youtube.readonly",
)

MISSING_ACCESS_TOKEN_MESSAGE = "Access token not present in refresh token response."
MISSING_REFRESH_TOKEN_MESSAGE = (
    "No refresh_token returned. Try adding prompt=consent or ensuring access_type=offline."
)


@dataclass(frozen=True)
class TokenResponse:
    access_token: str | None
    refresh_token: str | None
    expires_in: int | None
    scope: str | None
    token_type: str | None


class TokenTransport:
    """google-auth transport that applies a timeout and remembers the last status."""

    def __init__(self, timeout_seconds: float) -> None:
        self._request = Request()
        self._timeout_seconds = timeout_seconds
        self.last_status: int | None = None

    def __call__(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        headers: Any = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Any:
        response = self._request(
            url,
            method=method,
            body=body,
            headers=headers,
            timeout=timeout if timeout is not None else self._timeout_seconds,
            **kwargs,
        )
        self.last_status = int(response.status)
        return response


def exchange_refresh_token(
    credential: Credential,
    *,
    token_url: str = DEFAULT_TOKEN_URL,
    timeout_seconds: float = 30.0,
) -> Credentials:
    """
    Trade the stored refresh token for a fresh access token.

    Returns google-auth credentials carrying the access token, ready to be
    handed to the API clients. A non-2xx token response raises
    `UpstreamHttpError` with the status and Google's error detail; a 2xx
    response without an access token raises `ResponseShapeError`.
    """
    credentials = Credentials(
        None,
        refresh_token=credential.refresh_token,
        client_id=credential.client_id,
        client_secret=credential.client_secret,
        token_uri=token_url,
    )
    transport = TokenTransport(timeout_seconds)
    try:
        credentials.refresh(transport)
    except RefreshError as exc:
        status = transport.last_status
        if status is not None and 200 <= status < 300:
            raise ResponseShapeError(MISSING_ACCESS_TOKEN_MESSAGE) from exc
        detail = str(exc.args[0]) if exc.args else str(exc)
        raise UpstreamHttpError(
            f"Failed to refresh access token ({status}): {detail}",
            status_code=status,
            body=detail,
        ) from exc
    except TransportError as exc:
        raise UpstreamHttpError(f"Failed to refresh access token: {exc}", status_code=None) from exc
    except TypeError as exc:
        # A 2xx body that is not a JSON object fails inside the grant parser.
        raise ResponseShapeError(
            "Failed to refresh access token: response is not a JSON object"
        ) from exc

    if not isinstance(credentials.token, str) or not credentials.token.strip():
        raise ResponseShapeError(MISSING_ACCESS_TOKEN_MESSAGE)

    LOGGER.info("oauth access token refreshed expiry=%s", credentials.expiry)
    return credentials


def create_flow(
    *,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    scopes: Iterable[str] = DEFAULT_SCOPES,
    token_url: str = DEFAULT_TOKEN_URL,
    authorize_url: str = DEFAULT_AUTHORIZE_URL,
) -> Flow:
    client_config = {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": authorize_url,
            "token_uri": token_url,
            "redirect_uris": [redirect_uri],
        }
    }
    flow = Flow.from_client_config(client_config, scopes=list(scopes), redirect_uri=redirect_uri)
    flow.oauth2session.register_compliance_hook("access_token_response", _raise_for_token_status)
    return flow


def build_authorization_url(flow: Flow) -> str:
    url, _state = flow.authorization_url(access_type="offline", prompt="consent")
    return str(url)


def exchange_authorization_code(
    flow: Flow,
    code: str,
    *,
    timeout_seconds: float = 30.0,
) -> TokenResponse:
    """
    Exchange a one-time authorization code through `flow`.

    The same flow must have produced the authorization URL when the code came
    from the loopback listener, so the PKCE verifier matches.
    """
    try:
        token = flow.fetch_token(code=code, timeout=timeout_seconds)
    except MissingTokenError as exc:
        raise ResponseShapeError(
            "Access token not present in authorization code response."
        ) from exc
    except OAuth2Error as exc:
        raise UpstreamHttpError(
            f"Failed to exchange authorization code ({exc.status_code}): {exc.error}",
            status_code=exc.status_code,
            body=str(exc.description or ""),
        ) from exc
    except requests.RequestException as exc:
        raise UpstreamHttpError(
            f"Failed to exchange authorization code: {exc}", status_code=None
        ) from exc
    except Warning as exc:
        raise ResponseShapeError(f"Failed to exchange authorization code: {exc}") from exc

    tokens = _parse_token_response(dict(token))
    if tokens.refresh_token is None:
        raise ResponseShapeError(MISSING_REFRESH_TOKEN_MESSAGE)

    LOGGER.info("oauth authorization code exchanged scope=%s", tokens.scope)
    return tokens


def _raise_for_token_status(response: requests.Response) -> requests.Response:
    if response.status_code >= 300:
        raise UpstreamHttpError(
            f"Failed to exchange authorization code ({response.status_code}): {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    return response


def _parse_token_response(payload: dict[str, Any]) -> TokenResponse:
    scope = payload.get("scope")
    if isinstance(scope, list | tuple):
        scope = " ".join(str(item) for item in scope)
    return TokenResponse(
        access_token=_to_optional_text(payload.get("access_token")),
        refresh_token=_to_optional_text(payload.get("refresh_token")),
        expires_in=_to_optional_int(payload.get("expires_in")),
        scope=_to_optional_text(scope),
        token_type=_to_optional_text(payload.get("token_type")),
    )


def _to_optional_text(value: object) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None


def _to_optional_int(value: object) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
