from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Credential:
    client_id: str
    client_secret: str
    refresh_token: str

    def __repr__(self) -> str:
        return (
            f"Credential(client_id={self.client_id!r}, "
            "client_secret='***', refresh_token='***')"
        )


@dataclass(frozen=True)
class VideoMetrics:
    views: float = 0
    watch_time_minutes: float = 0
    watch_time_seconds: float = 0
    average_view_duration_sec: float = 0
    likes: float = 0
    comments: float = 0
    shares: float = 0

    def as_dict(self) -> dict[str, float]:
        return {
            "views": self.views,
            "watch_time_minutes": self.watch_time_minutes,
            "watch_time_seconds": self.watch_time_seconds,
            "average_view_duration_sec": self.average_view_duration_sec,
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
        }


@dataclass(frozen=True)
class MetricsRow:
    video_id: str
    metrics: VideoMetrics = field(default_factory=VideoMetrics)


@dataclass(frozen=True)
class VideoMetadata:
    title: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    published_at: str | None = None
    privacy_status: str | None = None


class StandardRecord(BaseModel):
    """Normalized output unit shared by every platform snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    platform: str
    post_id: str
    permalink: str
    created_at: str | None = None
    text: str | None = None
    hashtags: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)


def standardize(
    *,
    platform: str,
    post_id: str,
    permalink: str,
    created_at: str | None = None,
    text: str | None = None,
    hashtags: list[str] | tuple[str, ...] | None = None,
    metrics: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
) -> StandardRecord:
    return StandardRecord(
        platform=platform,
        post_id=post_id,
        permalink=permalink,
        created_at=created_at,
        text=text,
        hashtags=list(hashtags) if hashtags is not None else [],
        metrics=dict(metrics) if metrics is not None else {},
        extra=dict(extra) if extra is not None else {},
    )
