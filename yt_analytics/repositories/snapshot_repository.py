from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from yt_analytics.models.records import StandardRecord

LOGGER = logging.getLogger("yt_analytics.snapshots")


def snapshot_file_name(platform: str, stamp: date) -> str:
    return f"{stamp.strftime('%Y-%m-%d')}-{platform}-analytics.json"


class SnapshotRepository:
    def __init__(self, output_dir: Path) -> None:
        self._output_dir = output_dir

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def ensure_dir(self) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        return self._output_dir

    def path_for(self, platform: str, stamp: date) -> Path:
        return self._output_dir / snapshot_file_name(platform, stamp)

    def save(
        self,
        platform: str,
        records: Sequence[StandardRecord],
        *,
        today: date | None = None,
    ) -> Path:
        """Write records as a dated JSON array, replacing any same-day snapshot."""
        self.ensure_dir()
        stamp = today if today is not None else date.today()
        file_path = self.path_for(platform, stamp)
        payload = [record.model_dump(mode="json") for record in records]
        file_path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        LOGGER.info("snapshot written path=%s records=%s", file_path, len(payload))
        return file_path

