from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from yt_analytics.models.records import MetricsRow, VideoMetrics
from yt_analytics.services import google_api
from yt_analytics.services.google_api import as_dict, as_list

LOGGER = logging.getLogger("yt_analytics.analytics")

REPORT_METRICS: tuple[str, ...] = (
    "views",
    "estimatedMinutesWatched",
    "averageViewDuration",
    "comments",
    "likes",
    "shares",
)
Number = int | float


@dataclass(frozen=True)
class AnalyticsReport:
    column_headers: list[Any]
    rows: list[Any]


def compute_date_window(today: date, lookback_days: int = 28) -> tuple[str, str]:
    start = today - timedelta(days=lookback_days)
    return start.isoformat(), today.isoformat()


def fetch_analytics_report(
    client: Any,
    *,
    start_date: str,
    end_date: str,
    max_results: int = 200,
) -> AnalyticsReport:
    """Run the per-video report query on a `youtubeAnalytics` v2 client."""
    request = client.reports().query(
        ids="channel==MINE",
        startDate=start_date,
        endDate=end_date,
        dimensions="video",
        metrics=",".join(REPORT_METRICS),
        sort="-views",
        maxResults=max_results,
    )
    payload = google_api.execute(request, operation="fetch analytics")
    report = AnalyticsReport(
        column_headers=as_list(payload.get("columnHeaders")),
        rows=as_list(payload.get("rows")),
    )
    LOGGER.info(
        "analytics report fetched start=%s end=%s rows=%s",
        start_date,
        end_date,
        len(report.rows),
    )
    return report


def transform_rows(column_headers: Any, rows: Any) -> list[MetricsRow]:
    if not isinstance(rows, list) or not rows:
        return []

    header_index: dict[str, int] = {}
    for index, header in enumerate(as_list(column_headers)):
        name = as_dict(header).get("name")
        if isinstance(name, str) and name:
            header_index[name] = index

    transformed: list[MetricsRow] = []
    for row in rows:
        if not isinstance(row, list):
            continue
        watch_time_minutes = _get_number(row, header_index, "estimatedMinutesWatched")
        transformed.append(
            MetricsRow(
                video_id=_get_string(row, header_index, "video"),
                metrics=VideoMetrics(
                    views=_get_number(row, header_index, "views"),
                    watch_time_minutes=watch_time_minutes,
                    watch_time_seconds=watch_time_minutes * 60,
                    average_view_duration_sec=_get_number(
                        row, header_index, "averageViewDuration"
                    ),
                    likes=_get_number(row, header_index, "likes"),
                    comments=_get_number(row, header_index, "comments"),
                    shares=_get_number(row, header_index, "shares"),
                ),
            )
        )
    return transformed


def _cell(row: Sequence[Any], header_index: dict[str, int], key: str) -> Any:
    index = header_index.get(key)
    if index is None or index >= len(row):
        return None
    return row[index]


def _get_number(row: Sequence[Any], header_index: dict[str, int], key: str) -> Number:
    return coerce_number(_cell(row, header_index, key))


def _get_string(row: Sequence[Any], header_index: dict[str, int], key: str) -> str:
    value = _cell(row, header_index, key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def coerce_number(value: Any) -> Number:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            parsed = float(stripped)
        except ValueError:
            return 0
        return parsed if math.isfinite(parsed) else 0
    return 0
