"""Replay data source built from a persisted stage snapshot.

Used by ``analyze resume``: data already fetched in an earlier run is served
from the snapshot, and only what the snapshot lacks is requested from the
fallback source (typically GithubDataSource). Without a fallback, anything
missing is a FetchError, which makes offline resumption strict.
"""

from __future__ import annotations

import logging
from typing import Sequence

from trustaudit_core.analysis import CommitPullRequestsStage, ExtractionStage, PullRequestReviewersStage
from trustaudit_core.errors import FetchError
from trustaudit_core.models import Commit, PullRequest, PullRequestId
from trustaudit_core.providers.base import DataSource

logger = logging.getLogger(__name__)


class LocalCacheDataSource(DataSource):
    def __init__(self, snapshot: dict, fallback: DataSource | None = None):
        stage = ExtractionStage.restore(snapshot).stage
        self._prs_by_commit: dict[str, tuple[Commit, frozenset[PullRequestId]]] = {}
        self._pr_reviews: dict[PullRequestId, PullRequest] = {}
        if isinstance(stage, (CommitPullRequestsStage, PullRequestReviewersStage)):
            self._prs_by_commit = {commit.sha: (commit, prs) for commit, prs in stage.prs_by_commit}
        if isinstance(stage, PullRequestReviewersStage):
            self._pr_reviews = dict(stage.pr_reviews)
        self._fallback = fallback

    def fetch_commit_prs(self, commits: Sequence[Commit]) -> list[tuple[Commit, frozenset[PullRequestId]]]:
        missing = [c for c in commits if c.sha not in self._prs_by_commit]
        if missing:
            fetched = self._from_fallback("pull requests", len(missing), lambda fb: fb.fetch_commit_prs(missing))
            for commit, prs in fetched:
                self._prs_by_commit[commit.sha] = (commit, frozenset(prs))
        logger.info("Served %d of %d commit(s) from the local cache.", len(commits) - len(missing), len(commits))
        return [self._prs_by_commit[c.sha] for c in commits if c.sha in self._prs_by_commit]

    def fetch_pr_reviewers(self, pr_ids: Sequence[PullRequestId]) -> dict[PullRequestId, PullRequest]:
        missing = list(dict.fromkeys(pr_id for pr_id in pr_ids if pr_id not in self._pr_reviews))
        if missing:
            fetched = self._from_fallback("reviews", len(missing), lambda fb: fb.fetch_pr_reviewers(missing))
            self._pr_reviews.update(fetched)
        return {pr_id: self._pr_reviews[pr_id] for pr_id in pr_ids if pr_id in self._pr_reviews}

    def _from_fallback(self, what: str, count: int, fetch):
        if self._fallback is None:
            raise FetchError(f"{what} for {count} item(s) are not in the local cache and no fallback is configured")
        logger.info("Fetching %s for %d item(s) missing from the local cache.", what, count)
        return fetch(self._fallback)
