from __future__ import annotations

from collections.abc import Iterable, Mapping

from yt_analytics.models.records import MetricsRow, StandardRecord, VideoMetadata, standardize

PUBLIC_PRIVACY_STATUS = "public"
PERMALINK_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


def is_publicly_visible(metadata: VideoMetadata | None) -> bool:
    # Missing metadata or missing status keeps the video.
    if metadata is None or not metadata.privacy_status:
        return True
    return metadata.privacy_status == PUBLIC_PRIVACY_STATUS


def build_record(
    row: MetricsRow,
    metadata: VideoMetadata | None,
    *,
    platform: str = "youtube",
) -> StandardRecord:
    extra: dict[str, str] = {}
    if metadata is not None and metadata.title:
        extra["title"] = metadata.title

    return standardize(
        platform=platform,
        post_id=row.video_id,
        permalink=PERMALINK_TEMPLATE.format(video_id=row.video_id),
        created_at=metadata.published_at if metadata is not None else None,
        text=metadata.description if metadata is not None else None,
        hashtags=metadata.tags if metadata is not None else (),
        metrics=row.metrics.as_dict(),
        extra=extra,
    )


def build_records(
    rows: Iterable[MetricsRow],
    metadata_by_id: Mapping[str, VideoMetadata],
    *,
    platform: str = "youtube",
) -> list[StandardRecord]:
    records: list[StandardRecord] = []
    for row in rows:
        metadata = metadata_by_id.get(row.video_id)
        if not is_publicly_visible(metadata):
            continue
        records.append(build_record(row, metadata, platform=platform))
    return records
