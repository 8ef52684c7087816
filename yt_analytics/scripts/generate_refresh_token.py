from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from google_auth_oauthlib.flow import Flow

from yt_analytics.config import AUTH_REQUIRED_FIELDS, AppSettings, load_settings, require_credentials
from yt_analytics.errors import AnalyticsSnapshotError
from yt_analytics.logging_config import configure_application_logging
from yt_analytics.services.oauth_callback_server import (
    OAuthCallbackServer,
    choose_port,
    loopback_redirect_uri,
)
from yt_analytics.services.oauth_service import (
    OUT_OF_BAND_REDIRECT_URI,
    TokenResponse,
    build_authorization_url,
    create_flow,
    exchange_authorization_code,
)

LOGGER = logging.getLogger("yt_analytics.scripts.auth")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mint a YouTube Analytics refresh token for YT_REFRESH_TOKEN.",
    )
    parser.add_argument(
        "--code",
        type=str,
        default=None,
        help="Authorization code obtained out of band; skips the local listener.",
    )
    parser.add_argument(
        "--redirect-uri",
        "--redirect",
        dest="redirect_uri",
        type=str,
        default=None,
        help=f"Redirect URI the code was issued for. Default: {OUT_OF_BAND_REDIRECT_URI!r}.",
    )
    return parser.parse_args(argv)


def _print_refresh_token(tokens: TokenResponse) -> None:
    print("\nRefresh token retrieved successfully:\n")
    print(tokens.refresh_token)
    print("\nCopy this value into .env as YT_REFRESH_TOKEN.\n")


def _flow_for(settings: AppSettings, client: dict[str, str], redirect_uri: str) -> Flow:
    return create_flow(
        client_id=client["client_id"],
        client_secret=client["client_secret"],
        redirect_uri=redirect_uri,
        token_url=settings.token_url,
        authorize_url=settings.authorize_url,
    )


def _exchange_provided_code(
    settings: AppSettings,
    client: dict[str, str],
    code: str,
    redirect_uri: str,
) -> int:
    print(f"Exchanging provided code using redirect URI: {redirect_uri}")
    flow = _flow_for(settings, client, redirect_uri)
    try:
        tokens = exchange_authorization_code(
            flow,
            code,
            timeout_seconds=settings.http_timeout_seconds,
        )
    except AnalyticsSnapshotError as exc:
        LOGGER.error("authorization code exchange failed error=%s", type(exc).__name__)
        print(str(exc), file=sys.stderr)
        return 1

    _print_refresh_token(tokens)
    return 0


def _run_loopback_flow(settings: AppSettings, client: dict[str, str]) -> int:
    port = choose_port()
    redirect_uri = loopback_redirect_uri(port)
    # One flow for both steps so the PKCE verifier in the URL matches the exchange.
    flow = _flow_for(settings, client, redirect_uri)

    def _exchange(code: str) -> TokenResponse:
        return exchange_authorization_code(
            flow,
            code,
            timeout_seconds=settings.http_timeout_seconds,
        )

    authorize_url = build_authorization_url(flow)

    server = OAuthCallbackServer(port, exchange=_exchange)
    try:
        print("\nAuthorize this application by visiting:\n")
        print(authorize_url)
        print(
            "\nAfter approving access, you will be redirected to a local URL "
            "and this script will capture the code automatically.\n"
        )
        print(f"Listening on {redirect_uri} for the OAuth redirect...")
        outcome = server.wait_for_callback()
    finally:
        server.server_close()

    if outcome.error is not None or outcome.tokens is None:
        print(outcome.error or "Authorization did not return tokens.", file=sys.stderr)
        return 1

    _print_refresh_token(outcome.tokens)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings()
        client = require_credentials(settings, AUTH_REQUIRED_FIELDS)
    except AnalyticsSnapshotError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    configure_application_logging(settings)

    if args.code:
        redirect_uri = args.redirect_uri or OUT_OF_BAND_REDIRECT_URI
        return _exchange_provided_code(settings, client, args.code, redirect_uri)

    try:
        return _run_loopback_flow(settings, client)
    except OSError as exc:
        print(f"Could not start the local OAuth listener: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
