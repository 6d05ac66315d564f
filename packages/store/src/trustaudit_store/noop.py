"""No-op store, the default when no store is configured.

Using a NoOpStore rather than None lets the CLI always call store.save()
without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from trustaudit_store.base import BaseStore

if TYPE_CHECKING:
    from trustaudit_store.models import SnapshotRecord


class NoOpStore(BaseStore):
    """Silently discards all snapshots; resuming is impossible with this store."""

    def save(self, record: SnapshotRecord) -> None:
        pass  # intentional no-op

    def list_snapshots(self, repo: str) -> list[SnapshotRecord]:
        return []
