"""Tests for the shared commit/review data model."""

from datetime import datetime, timedelta, timezone

from trustaudit_core.models import Commit, PullRequest, Review, ReviewState, TrustLevel

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestTrustLevel:
    def test_total_order(self):
        assert TrustLevel.UNTRUSTED < TrustLevel.UNKNOWN < TrustLevel.TRUSTED

    def test_str_is_capitalized(self):
        assert str(TrustLevel.UNKNOWN) == "Unknown"


class TestReviewStateParse:
    def test_parses_github_states(self):
        assert ReviewState.parse("APPROVED") is ReviewState.APPROVED
        assert ReviewState.parse("CHANGES_REQUESTED") is ReviewState.CHANGES_REQUESTED
        assert ReviewState.parse("commented") is ReviewState.COMMENTED

    def test_missing_state_is_none(self):
        assert ReviewState.parse(None) is None
        assert ReviewState.parse("") is None

    def test_unrecognized_state_is_none(self):
        assert ReviewState.parse("SUPER_APPROVED") is None


class TestCommit:
    def test_identity_is_sha_only(self):
        a = Commit(sha="a" * 40, author="alice", summary="Fix bug")
        b = Commit(sha="a" * 40)
        assert a == b
        assert hash(a) == hash(b)

    def test_dict_roundtrip_keeps_display_fields(self):
        commit = Commit(sha="b" * 40, author="alice", summary="Add feature")
        restored = Commit.from_dict(commit.to_dict())
        assert restored == commit
        assert restored.author == "alice"
        assert restored.summary == "Add feature"

    def test_short_sha(self):
        assert Commit(sha="0123456789abcdef").short_sha == "0123456789"


class TestPullRequestFromReviews:
    def test_latest_submission_wins(self):
        pr = PullRequest.from_reviews(
            [
                ("alice", Review(id=2, state=ReviewState.APPROVED, submitted_at=T0 + timedelta(hours=1))),
                ("alice", Review(id=1, state=ReviewState.CHANGES_REQUESTED, submitted_at=T0)),
            ]
        )
        assert pr.reviews["alice"].state is ReviewState.APPROVED

    def test_later_rejection_replaces_earlier_approval(self):
        pr = PullRequest.from_reviews(
            [
                ("alice", Review(id=1, state=ReviewState.APPROVED, submitted_at=T0)),
                ("alice", Review(id=2, state=ReviewState.CHANGES_REQUESTED, submitted_at=T0 + timedelta(days=1))),
            ]
        )
        assert pr.reviews["alice"].id == 2

    def test_equal_timestamps_fall_back_to_highest_id(self):
        pr = PullRequest.from_reviews(
            [
                ("alice", Review(id=9, state=ReviewState.COMMENTED, submitted_at=T0)),
                ("alice", Review(id=3, state=ReviewState.APPROVED, submitted_at=T0)),
            ]
        )
        assert pr.reviews["alice"].id == 9

    def test_missing_timestamp_sorts_first(self):
        pr = PullRequest.from_reviews(
            [
                ("alice", Review(id=5, state=ReviewState.PENDING, submitted_at=None)),
                ("alice", Review(id=1, state=ReviewState.APPROVED, submitted_at=T0)),
            ]
        )
        assert pr.reviews["alice"].id == 1

    def test_one_entry_per_reviewer(self):
        pr = PullRequest.from_reviews(
            [
                ("bob", Review(id=1, state=ReviewState.COMMENTED, submitted_at=T0)),
                ("alice", Review(id=2, state=ReviewState.APPROVED, submitted_at=T0)),
                ("bob", Review(id=3, state=ReviewState.APPROVED, submitted_at=T0)),
            ]
        )
        assert list(pr.reviews) == ["alice", "bob"]

    def test_naive_and_aware_timestamps_compare(self):
        pr = PullRequest.from_reviews(
            [
                ("alice", Review(id=1, state=ReviewState.APPROVED, submitted_at=T0)),
                ("alice", Review(id=2, state=ReviewState.DISMISSED, submitted_at=datetime(2024, 5, 2))),
            ]
        )
        assert pr.reviews["alice"].id == 2

    def test_dict_roundtrip(self):
        pr = PullRequest.from_reviews([("alice", Review(id=1, state=ReviewState.APPROVED, submitted_at=T0))])
        assert PullRequest.from_dict(pr.to_dict()) == pr
