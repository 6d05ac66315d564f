"""JsonStore: snapshots as plain JSON files in a local directory.

One file per (repo, stage), named ``<org>__<name>.<stage>.json``. The files
are human-readable and diffable, and a CI job can cache the directory between
runs so a later run resumes instead of re-fetching from GitHub.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from trustaudit_store.base import STAGE_ORDER, BaseStore, stage_rank
from trustaudit_store.models import SnapshotRecord

logger = logging.getLogger(__name__)


class JsonStore(BaseStore):
    """Stores snapshots under ``dir_path`` (created on first save)."""

    def __init__(self, dir_path: str = ".trustaudit"):
        self._dir = Path(dir_path)

    def _path_for(self, repo: str, stage: str) -> Path:
        return self._dir / f"{repo.replace('/', '__')}.{stage}.json"

    def save(self, record: SnapshotRecord) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        target = self._path_for(record.repo, record.stage)
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(self._to_dict(record), indent=2, sort_keys=True) + "\n", encoding="utf-8")
        # Replace in one step so an interrupted save never leaves a truncated snapshot.
        os.replace(tmp, target)
        logger.debug("Saved %s snapshot for %s to %s", record.stage, record.repo, target)

    def list_snapshots(self, repo: str) -> list[SnapshotRecord]:
        records = []
        for stage in STAGE_ORDER:
            path = self._path_for(repo, stage)
            if not path.exists():
                continue
            try:
                records.append(self._from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, json.JSONDecodeError, AttributeError) as e:
                logger.warning("Ignoring unreadable snapshot %s: %s", path, e)
        return sorted(records, key=lambda r: stage_rank(r.stage))

    @staticmethod
    def _to_dict(record: SnapshotRecord) -> dict:
        return {
            "repo": record.repo,
            "stage": record.stage,
            "saved_at": record.saved_at,
            "payload": record.payload,
        }

    @staticmethod
    def _from_dict(d: dict) -> SnapshotRecord:
        return SnapshotRecord(
            repo=d.get("repo", ""),
            stage=d.get("stage", ""),
            saved_at=d.get("saved_at", ""),
            payload=d.get("payload") or {},
        )
