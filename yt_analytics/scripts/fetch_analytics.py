from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from yt_analytics.config import AppSettings, load_settings
from yt_analytics.errors import AnalyticsSnapshotError
from yt_analytics.logging_config import configure_application_logging
from yt_analytics.services.pipeline_service import AnalyticsPipeline
from yt_analytics.telemetry import telemetry_from_settings

LOGGER = logging.getLogger("yt_analytics.scripts.fetch")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Fetch trailing YouTube Analytics metrics for the authorized channel "
            "and write a dated JSON snapshot."
        ),
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Override YT_ANALYTICS_OUTPUT_DIR for this run.",
    )
    return parser.parse_args(argv)


def _apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    if args.output_dir is None:
        return settings
    return settings.model_copy(update={"output_dir": args.output_dir.expanduser().resolve()})


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = _apply_overrides(load_settings(), args)
    except AnalyticsSnapshotError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    configure_application_logging(settings)
    pipeline = AnalyticsPipeline(
        settings=settings,
        telemetry=telemetry_from_settings(settings),
    )

    try:
        result = pipeline.run()
    except AnalyticsSnapshotError as exc:
        LOGGER.error("analytics snapshot failed error=%s", type(exc).__name__)
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        LOGGER.exception("analytics snapshot crashed")
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1

    print(f"Saved {result.record_count} records to {result.path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
