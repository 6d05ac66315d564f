"""Read-only audit result for one commit range."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from trustaudit_core.models import Commit, PullRequest, PullRequestId, TrustLevel


@dataclass(frozen=True)
class CommitReport:
    commit: Commit
    pull_requests: frozenset[PullRequestId]
    trust_level: TrustLevel


@dataclass(frozen=True)
class Report:
    """Aggregation output bound to the terminal stage it was computed from.

    ``pr_reviews`` is the terminal stage's own mapping, not a copy. Stages are
    immutable and the terminal stage never advances, so the report stays
    consistent with the data it describes.
    """

    overall_trust_level: TrustLevel
    commits: tuple[CommitReport, ...]
    pr_reviews: Mapping[PullRequestId, PullRequest]

    def __post_init__(self):
        if not isinstance(self.pr_reviews, MappingProxyType):
            object.__setattr__(self, "pr_reviews", MappingProxyType(dict(self.pr_reviews)))

    def outstanding(self) -> str:
        """Summarise the verdict and the commits that still need a human audit."""
        lines = [f"OVERALL AUDIT: {self.overall_trust_level}"]
        pending = [c for c in self.commits if c.trust_level < TrustLevel.TRUSTED]
        if not pending:
            lines.append("")
            lines.append("No commits left to audit.")
            return "\n".join(lines)

        lines.append("")
        lines.append(f"Remaining PRs to audit per commit ({len(pending)} of {len(self.commits)}):")
        for c in pending:
            prs = ", ".join(f"#{pr_id}" for pr_id in sorted(c.pull_requests)) or "(no pull requests)"
            lines.append(f"  {c.commit.short_sha}  {c.trust_level}  {prs}")
        return "\n".join(lines)

    def rows(self) -> list[dict]:
        """Flatten the report into one dict per commit for tabular export."""
        return [
            {
                "commit": c.commit.sha,
                "author": c.commit.author or "",
                "summary": c.commit.summary,
                "pull_requests": " ".join(str(pr_id) for pr_id in sorted(c.pull_requests)),
                "trust_level": str(c.trust_level),
            }
            for c in self.commits
        ]

    def counts(self) -> dict[TrustLevel, int]:
        counter = Counter(c.trust_level for c in self.commits)
        return {level: counter.get(level, 0) for level in TrustLevel}

    def reviews_for(self, pr_id: PullRequestId) -> PullRequest:
        return self.pr_reviews[pr_id]
