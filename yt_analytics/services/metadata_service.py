from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, cast

from yt_analytics.models.records import MetricsRow, VideoMetadata
from yt_analytics.services import google_api
from yt_analytics.services.google_api import as_dict, as_list

LOGGER = logging.getLogger("yt_analytics.metadata")

MAX_IDS_PER_REQUEST = 50


def distinct_video_ids(rows: Iterable[MetricsRow]) -> list[str]:
    seen: set[str] = set()
    video_ids: list[str] = []
    for row in rows:
        if not row.video_id or row.video_id in seen:
            continue
        seen.add(row.video_id)
        video_ids.append(row.video_id)
    return video_ids


def chunked(values: Sequence[str], size: int) -> Iterator[list[str]]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for index in range(0, len(values), size):
        yield list(values[index : index + size])


def fetch_video_metadata(
    client: Any,
    video_ids: Sequence[str],
    *,
    batch_size: int = MAX_IDS_PER_REQUEST,
) -> dict[str, VideoMetadata]:
    """
    Look up snippet and status on a `youtube` v3 client, one request per chunk.

    Chunks are fetched sequentially and capped at 50 IDs. A failing chunk
    raises immediately; whatever was accumulated before it is discarded by
    the caller.
    """
    ids = [video_id for video_id in video_ids if video_id]
    if not ids:
        return {}

    effective_batch_size = max(1, min(batch_size, MAX_IDS_PER_REQUEST))
    metadata_by_id: dict[str, VideoMetadata] = {}
    metadata_calls = 0

    for chunk in chunked(ids, effective_batch_size):
        request = client.videos().list(part="snippet,status", id=",".join(chunk))
        payload = google_api.execute(request, operation="fetch video metadata")
        metadata_calls += 1

        for item in as_list(payload.get("items")):
            item_dict = as_dict(item)
            raw_video_id = item_dict.get("id")
            if not isinstance(raw_video_id, str) or not raw_video_id:
                continue
            metadata_by_id[raw_video_id] = _parse_video_metadata(item_dict)

    LOGGER.info(
        "video metadata fetched requested=%s resolved=%s calls=%s",
        len(ids),
        len(metadata_by_id),
        metadata_calls,
    )
    return metadata_by_id


def _parse_video_metadata(item: dict[str, Any]) -> VideoMetadata:
    snippet = as_dict(item.get("snippet"))
    status = as_dict(item.get("status"))
    return VideoMetadata(
        title=_optional_string(snippet.get("title")),
        description=_optional_string(snippet.get("description")),
        tags=_extract_string_list(snippet.get("tags")),
        published_at=_optional_string(snippet.get("publishedAt")),
        privacy_status=_optional_string(status.get("privacyStatus")),
    )


def _optional_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str):
        return raw_value
    return None


def _extract_string_list(raw_value: object) -> tuple[str, ...]:
    if not isinstance(raw_value, list):
        return ()
    values: list[str] = []
    for raw_item in cast(list[Any], raw_value):
        if isinstance(raw_item, str):
            values.append(raw_item)
    return tuple(values)
