from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from yt_analytics.models.records import standardize
from yt_analytics.repositories.snapshot_repository import SnapshotRepository, snapshot_file_name


def _records() -> list:
    return [
        standardize(
            platform="youtube",
            post_id="abc123",
            permalink="https://www.youtube.com/watch?v=abc123",
            hashtags=["café"],
            metrics={"views": 100},
            extra={"title": "Hello"},
        )
    ]


def test_snapshot_file_name_uses_date_stamp() -> None:
    assert snapshot_file_name("youtube", date(2024, 3, 9)) == "2024-03-09-youtube-analytics.json"


def test_save_creates_directory_and_writes_pretty_json(tmp_path: Path) -> None:
    output_dir = tmp_path / "nested" / "analytics"
    repository = SnapshotRepository(output_dir)

    path = repository.save("youtube", _records(), today=date(2024, 3, 9))

    assert path == output_dir / "2024-03-09-youtube-analytics.json"
    raw = path.read_text(encoding="utf-8")
    assert raw.startswith('[\n  {\n    "platform": "youtube",')
    assert "café" in raw
    payload = json.loads(raw)
    assert payload == [
        {
            "platform": "youtube",
            "post_id": "abc123",
            "permalink": "https://www.youtube.com/watch?v=abc123",
            "created_at": None,
            "text": None,
            "hashtags": ["café"],
            "metrics": {"views": 100},
            "extra": {"title": "Hello"},
        }
    ]


def test_save_empty_snapshot_writes_empty_array(tmp_path: Path) -> None:
    path = SnapshotRepository(tmp_path).save("youtube", [], today=date(2024, 1, 1))
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_save_same_day_overwrites_with_identical_content(tmp_path: Path) -> None:
    repository = SnapshotRepository(tmp_path)
    stamp = date(2024, 3, 9)

    first = repository.save("youtube", _records(), today=stamp)
    first_content = first.read_bytes()
    second = repository.save("youtube", _records(), today=stamp)

    assert first == second
    assert second.read_bytes() == first_content
    assert len(list(tmp_path.iterdir())) == 1


def test_ensure_dir_is_idempotent(tmp_path: Path) -> None:
    repository = SnapshotRepository(tmp_path / "out")
    repository.ensure_dir()
    repository.ensure_dir()
    assert (tmp_path / "out").is_dir()
