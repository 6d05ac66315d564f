"""Tests for replaying persisted stage data."""

from unittest.mock import MagicMock

import pytest

from trustaudit_core.analysis import (
    CommitPullRequestsStage,
    ExtractionStage,
    ExtractionStageName,
    PullRequestReviewersStage,
)
from trustaudit_core.errors import FetchError, SnapshotError
from trustaudit_core.models import Commit, PullRequest, Review, ReviewState, TrustLevel
from trustaudit_core.providers.base import DataSource
from trustaudit_core.providers.cache import LocalCacheDataSource

C1 = Commit(sha="1" * 40, author="alice", summary="first")
C2 = Commit(sha="2" * 40, author="mallory", summary="second")
TRUSTED = frozenset({"alice"})
PR_REVIEWS = {
    1: PullRequest(reviews={"alice": Review(id=10, state=ReviewState.APPROVED)}),
    2: PullRequest(reviews={"alice": Review(id=11, state=ReviewState.CHANGES_REQUESTED)}),
}


def _snapshot(stage):
    return ExtractionStage(stage).snapshot()


def _commit_prs_snapshot():
    return _snapshot(
        CommitPullRequestsStage(trusted_reviewers=TRUSTED, prs_by_commit=((C1, frozenset({1})), (C2, frozenset({2}))))
    )


def _reviewers_snapshot():
    return _snapshot(
        PullRequestReviewersStage(
            trusted_reviewers=TRUSTED,
            prs_by_commit=((C1, frozenset({1})), (C2, frozenset({2}))),
            pr_reviews=PR_REVIEWS,
        )
    )


class TestServedFromCache:
    def test_commit_prs_replayed(self):
        source = LocalCacheDataSource(_commit_prs_snapshot())
        result = source.fetch_commit_prs([C2, C1])
        assert result == [(C2, frozenset({2})), (C1, frozenset({1}))]
        assert result[0][0].author == "mallory"

    def test_reviews_replayed(self):
        source = LocalCacheDataSource(_reviewers_snapshot())
        assert source.fetch_pr_reviewers([2, 1]) == {2: PR_REVIEWS[2], 1: PR_REVIEWS[1]}

    def test_full_report_offline(self):
        snapshot = _reviewers_snapshot()
        extraction = ExtractionStage.restore(snapshot)
        report = extraction.compute_report(LocalCacheDataSource(snapshot))
        assert report.overall_trust_level is TrustLevel.UNTRUSTED


class TestMissingData:
    def test_missing_without_fallback_raises(self):
        source = LocalCacheDataSource(_commit_prs_snapshot())
        with pytest.raises(FetchError, match="no fallback"):
            source.fetch_pr_reviewers([1])

    def test_missing_fetched_from_fallback(self):
        fallback = MagicMock(spec=DataSource)
        fallback.fetch_pr_reviewers.return_value = {1: PR_REVIEWS[1], 2: PR_REVIEWS[2]}
        source = LocalCacheDataSource(_commit_prs_snapshot(), fallback=fallback)

        result = source.fetch_pr_reviewers([1, 2, 1])

        fallback.fetch_pr_reviewers.assert_called_once_with([1, 2])
        assert set(result) == {1, 2}

    def test_only_missing_commits_requested(self):
        c3 = Commit(sha="3" * 40)
        fallback = MagicMock(spec=DataSource)
        fallback.fetch_commit_prs.return_value = [(c3, frozenset({7}))]
        source = LocalCacheDataSource(_commit_prs_snapshot(), fallback=fallback)

        result = source.fetch_commit_prs([C1, c3])

        fallback.fetch_commit_prs.assert_called_once_with([c3])
        assert result == [(C1, frozenset({1})), (c3, frozenset({7}))]

    def test_fallback_results_cached(self):
        fallback = MagicMock(spec=DataSource)
        fallback.fetch_pr_reviewers.return_value = {1: PR_REVIEWS[1]}
        source = LocalCacheDataSource(_commit_prs_snapshot(), fallback=fallback)

        source.fetch_pr_reviewers([1])
        source.fetch_pr_reviewers([1])

        assert fallback.fetch_pr_reviewers.call_count == 1

    def test_starter_snapshot_has_nothing_cached(self):
        snapshot = ExtractionStage.start([C1], TRUSTED).snapshot()
        source = LocalCacheDataSource(snapshot)
        with pytest.raises(FetchError):
            source.fetch_commit_prs([C1])


def test_resume_advances_from_restored_stage():
    snapshot = _commit_prs_snapshot()
    fallback = MagicMock(spec=DataSource)
    fallback.fetch_pr_reviewers.return_value = PR_REVIEWS
    extraction = ExtractionStage.restore(snapshot)

    extraction.advance(ExtractionStageName.PULL_REQUEST_REVIEWERS, LocalCacheDataSource(snapshot, fallback))

    assert extraction.name is ExtractionStageName.PULL_REQUEST_REVIEWERS
    fallback.fetch_commit_prs.assert_not_called()


def test_malformed_snapshot_rejected():
    with pytest.raises(SnapshotError):
        LocalCacheDataSource({"stage": "commit-pull-requests", "payload": {}})
