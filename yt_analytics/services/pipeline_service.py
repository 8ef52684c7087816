from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from time import perf_counter
from uuid import uuid4

from structlog.contextvars import bind_contextvars, reset_contextvars

from yt_analytics.config import AppSettings, credential_from_settings
from yt_analytics.errors import AnalyticsSnapshotError
from yt_analytics.repositories.snapshot_repository import SnapshotRepository
from yt_analytics.services import analytics_service, google_api, metadata_service, oauth_service
from yt_analytics.services.normalization import build_records
from yt_analytics.telemetry import (
    PIPELINE_ANALYTICS_FETCHED,
    PIPELINE_COMPLETED,
    PIPELINE_FAILED,
    PIPELINE_METADATA_FETCHED,
    PIPELINE_START,
    TelemetryClient,
)

LOGGER = logging.getLogger("yt_analytics.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    path: Path
    record_count: int
    fetched_rows: int
    dropped_non_public: int


class AnalyticsPipeline:
    """
    Token exchange, report fetch, metadata enrichment, filtering and persistence.

    Every step runs to completion before the next one starts. The first
    failure aborts the run and nothing is written.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        repository: SnapshotRepository | None = None,
        telemetry: TelemetryClient | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._settings = settings
        self._repository = (
            repository if repository is not None else SnapshotRepository(settings.output_dir)
        )
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._today = today

    def run(self) -> PipelineResult:
        run_id = uuid4().hex
        context_tokens = bind_contextvars(pipeline_run_id=run_id)
        started_at = perf_counter()
        telemetry = self._telemetry.for_run(run_id)
        telemetry.emit(PIPELINE_START, platform=self._settings.platform)
        try:
            result = self._run(telemetry)
        except AnalyticsSnapshotError as exc:
            telemetry.emit(
                PIPELINE_FAILED,
                error_type=type(exc).__name__,
                duration_ms=_elapsed_ms(started_at),
            )
            raise
        finally:
            reset_contextvars(**context_tokens)

        telemetry.emit(
            PIPELINE_COMPLETED,
            records=result.record_count,
            dropped_non_public=result.dropped_non_public,
            duration_ms=_elapsed_ms(started_at),
        )
        return result

    def _run(self, telemetry: TelemetryClient) -> PipelineResult:
        settings = self._settings
        credential = credential_from_settings(settings)
        self._repository.ensure_dir()

        credentials = oauth_service.exchange_refresh_token(
            credential,
            token_url=settings.token_url,
            timeout_seconds=settings.http_timeout_seconds,
        )

        today = self._today()
        start_date, end_date = analytics_service.compute_date_window(
            today, settings.lookback_days
        )
        analytics_client = google_api.build_service(
            google_api.ANALYTICS_API,
            credentials,
            timeout_seconds=settings.http_timeout_seconds,
        )
        report = analytics_service.fetch_analytics_report(
            analytics_client,
            start_date=start_date,
            end_date=end_date,
            max_results=settings.max_results,
        )
        rows = analytics_service.transform_rows(report.column_headers, report.rows)
        telemetry.emit(
            PIPELINE_ANALYTICS_FETCHED,
            start_date=start_date,
            end_date=end_date,
            rows=len(rows),
        )

        video_ids = metadata_service.distinct_video_ids(rows)
        data_client = google_api.build_service(
            google_api.DATA_API,
            credentials,
            timeout_seconds=settings.http_timeout_seconds,
        )
        metadata_by_id = metadata_service.fetch_video_metadata(
            data_client,
            video_ids,
            batch_size=settings.metadata_batch_size,
        )
        telemetry.emit(
            PIPELINE_METADATA_FETCHED,
            requested=len(video_ids),
            resolved=len(metadata_by_id),
        )

        records = build_records(rows, metadata_by_id, platform=settings.platform)
        dropped = len(rows) - len(records)
        if dropped:
            LOGGER.info("dropped non-public videos count=%s", dropped)

        path = self._repository.save(settings.platform, records, today=today)
        return PipelineResult(
            path=path,
            record_count=len(records),
            fetched_rows=len(rows),
            dropped_non_public=dropped,
        )


def _elapsed_ms(started_at: float) -> float:
    return round((perf_counter() - started_at) * 1000, 2)
