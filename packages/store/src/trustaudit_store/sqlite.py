"""SQLiteStore: local single-file store for snapshots.

Schema:
  snapshots  one row per (repo, stage); the payload is stored as JSON text
             since it is only ever read back whole.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from trustaudit_store.base import BaseStore, stage_rank
from trustaudit_store.models import SnapshotRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    repo          TEXT NOT NULL,
    stage         TEXT NOT NULL,
    saved_at      TEXT,
    payload_json  TEXT DEFAULT '{}',
    PRIMARY KEY (repo, stage)
);
"""


class SQLiteStore(BaseStore):
    """Stores snapshots in a local SQLite database file.

    The database path defaults to `.trustaudit.db` in the current working
    directory. Configure via .trustaudit.yml: `store_path: /path/to/audit.db`.
    """

    def __init__(self, db_path: str = ".trustaudit.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: SnapshotRecord) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO snapshots (repo, stage, saved_at, payload_json)
            VALUES (?, ?, ?, ?)
            """,
            (record.repo, record.stage, record.saved_at, json.dumps(record.payload, sort_keys=True)),
        )
        self._conn.commit()
        logger.debug("Saved %s snapshot for %s", record.stage, record.repo)

    def list_snapshots(self, repo: str) -> list[SnapshotRecord]:
        rows = self._conn.execute("SELECT * FROM snapshots WHERE repo=?", (repo,)).fetchall()
        return sorted((self._row_to_record(r) for r in rows), key=lambda r: stage_rank(r.stage))

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SnapshotRecord:
        return SnapshotRecord(
            repo=row["repo"],
            stage=row["stage"],
            saved_at=row["saved_at"] or "",
            payload=json.loads(row["payload_json"] or "{}"),
        )
