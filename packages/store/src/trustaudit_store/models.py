"""Stage snapshot data model.

Decoupled from trustaudit_core so the store layer can be used independently
and the core has no knowledge of persistence concerns. The payload is the
plain JSON-compatible dict produced by ExtractionStage.snapshot().
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SnapshotRecord:
    """One persisted extraction stage of an audit run.

    Created by the CLI layer from ExtractionStage.snapshot(); restored with
    ExtractionStage.restore({"stage": record.stage, "payload": record.payload}).
    """

    repo: str  # "org/name"
    stage: str  # "starter" | "commit-pull-requests" | "pull-request-reviewers"
    saved_at: str  # ISO-8601 UTC timestamp
    payload: dict = field(default_factory=dict)

    def to_snapshot(self) -> dict:
        return {"stage": self.stage, "payload": self.payload}
