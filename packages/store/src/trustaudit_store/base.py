"""Abstract store interface.

Any storage backend (JSON directory, SQLite, ...) implements this interface.
The CLI depends on BaseStore, not on a concrete backend, so backends are
swappable without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trustaudit_store.models import SnapshotRecord

# Stage labels in extraction order; used to pick the most advanced snapshot.
STAGE_ORDER = ("starter", "commit-pull-requests", "pull-request-reviewers")


def stage_rank(stage: str) -> int:
    try:
        return STAGE_ORDER.index(stage)
    except ValueError:
        return -1


class BaseStore(ABC):
    """Pluggable persistence layer for extraction stage snapshots.

    Each backend keeps at most one snapshot per (repo, stage): saving a stage
    again replaces the earlier snapshot of that stage.
    """

    @abstractmethod
    def save(self, record: SnapshotRecord) -> None:
        """Persist a snapshot, replacing any earlier one for the same repo and stage."""

    @abstractmethod
    def list_snapshots(self, repo: str) -> list[SnapshotRecord]:
        """Return all snapshots for a repo in extraction order.

        Returns an empty list if none exist.
        """

    def load(self, repo: str, stage: str | None = None) -> SnapshotRecord | None:
        """Return the snapshot at ``stage``, or the most advanced one when stage is None."""
        snapshots = self.list_snapshots(repo)
        if stage is not None:
            snapshots = [s for s in snapshots if s.stage == stage]
        if not snapshots:
            return None
        return max(snapshots, key=lambda s: (stage_rank(s.stage), s.saved_at))

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional: subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
