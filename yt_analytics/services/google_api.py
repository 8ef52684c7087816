from __future__ import annotations

import logging
from typing import Any, cast

import httplib2
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from yt_analytics.errors import ResponseShapeError, UpstreamHttpError

LOGGER = logging.getLogger("yt_analytics.google_api")

ANALYTICS_API = ("youtubeAnalytics", "v2")
DATA_API = ("youtube", "v3")


def authorized_http(credentials: Credentials, *, timeout_seconds: float) -> Any:
    return AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout_seconds))


def build_service(
    api: tuple[str, str],
    credentials: Credentials,
    *,
    timeout_seconds: float,
) -> Any:
    """
    Build a discovery client for `api` from the bundled discovery document.

    Every request made through the client carries `timeout_seconds` and the
    bearer token of `credentials`.
    """
    service_name, version = api
    return build(
        service_name,
        version,
        http=authorized_http(credentials, timeout_seconds=timeout_seconds),
        cache_discovery=False,
        static_discovery=True,
    )


def execute(request: Any, *, operation: str) -> dict[str, Any]:
    """
    Run one API request and return its JSON object body.

    Error statuses and transport failures raise `UpstreamHttpError`. A 2xx
    body that is not a JSON object raises `ResponseShapeError`. Nothing is
    retried.
    """
    try:
        payload = request.execute()
    except HttpError as exc:
        status_code = int(exc.resp.status)
        body = _error_body(exc)
        raise UpstreamHttpError(
            f"Failed to {operation} ({status_code}): {body}",
            status_code=status_code,
            body=body,
        ) from exc
    except ValueError as exc:
        raise ResponseShapeError(f"Failed to {operation}: response is not a JSON object") from exc
    except (httplib2.HttpLib2Error, GoogleAuthError, OSError) as exc:
        raise UpstreamHttpError(f"Failed to {operation}: {exc}", status_code=None) from exc

    if not isinstance(payload, dict):
        raise ResponseShapeError(f"Failed to {operation}: response is not a JSON object")
    LOGGER.debug("google api call completed operation=%s", operation)
    return as_dict(payload)


def _error_body(exc: HttpError) -> str:
    content: object = exc.content
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


def as_dict(value: Any) -> dict[str, Any]:
    """Return `value` as a str-keyed dict, or `{}` for any other JSON shape."""
    if not isinstance(value, dict):
        return {}
    items = cast(dict[object, Any], value).items()
    return {key: item for key, item in items if isinstance(key, str)}


def as_list(value: Any) -> list[Any]:
    return list(cast(list[Any], value)) if isinstance(value, list) else []
