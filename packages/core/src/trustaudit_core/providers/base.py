"""Abstract data source consumed by the extraction state machine.

The state machine only ever talks to a DataSource, never to a concrete API
client, so the same audit can be driven by:
    GithubDataSource      ← live data from the GitHub REST API
    LocalCacheDataSource  ← replay of a previously persisted snapshot
    any in-memory fake    ← tests

Contract shared by every implementation:
  - fetch_commit_prs returns exactly one entry per requested commit.
  - fetch_pr_reviewers returns exactly one entry per requested pull request.
  - Failures raise FetchError; retries, if any, happen inside the source.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from trustaudit_core.models import Commit, PullRequest, PullRequestId


class DataSource(ABC):
    @abstractmethod
    def fetch_commit_prs(self, commits: Sequence[Commit]) -> list[tuple[Commit, frozenset[PullRequestId]]]:
        """Return the pull requests associated with each commit, in input order.

        Implementations may return enriched Commit objects (e.g. with the
        author login filled in) as long as each one keeps its SHA.
        """

    @abstractmethod
    def fetch_pr_reviewers(self, pr_ids: Sequence[PullRequestId]) -> dict[PullRequestId, PullRequest]:
        """Return the collapsed reviews of every requested pull request.

        ``pr_ids`` may contain duplicates; the result still has one entry per
        distinct id.
        """
