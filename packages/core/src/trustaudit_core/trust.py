"""Trust aggregation over fully extracted commit and review data.

Pure and synchronous: no I/O, no clock, no logging of results. Everything is
a minimum over TrustLevel values, so the outcome does not depend on the order
commits, pull requests or reviews are visited in, nor on how commits are
grouped before their levels are combined.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import AbstractSet, Iterable, Mapping, Sequence

from trustaudit_core.errors import AggregationError
from trustaudit_core.models import Commit, PullRequest, PullRequestId, ReviewState, TrustLevel, Username


def _build_review_policy() -> dict[tuple[TrustLevel, ReviewState], TrustLevel | None]:
    """Spell out the contribution of every (reviewer level, review state) pair.

    None means the review is ignored. Untrusted reviewers are never produced
    by classify_user today; their row exists so the table stays total.
    """
    policy: dict[tuple[TrustLevel, ReviewState], TrustLevel | None] = {}
    for level, state in itertools.product(TrustLevel, ReviewState):
        policy[(level, state)] = None
    policy[(TrustLevel.TRUSTED, ReviewState.APPROVED)] = TrustLevel.TRUSTED
    # A trusted reviewer asked for changes and the commit landed anyway.
    policy[(TrustLevel.TRUSTED, ReviewState.CHANGES_REQUESTED)] = TrustLevel.UNTRUSTED
    return policy


REVIEW_POLICY: Mapping[tuple[TrustLevel, ReviewState], TrustLevel | None] = _build_review_policy()


def classify_user(user: Username | None, trusted_reviewers: AbstractSet[Username]) -> TrustLevel:
    if user is not None and user in trusted_reviewers:
        return TrustLevel.TRUSTED
    return TrustLevel.UNKNOWN


def review_contribution(reviewer_level: TrustLevel, state: ReviewState) -> TrustLevel | None:
    return REVIEW_POLICY[(reviewer_level, state)]


def least_trusted(levels: Iterable[TrustLevel]) -> TrustLevel:
    """Return the minimum level, or TRUSTED when there is nothing to distrust."""
    return min(levels, default=TrustLevel.TRUSTED)


def commit_trust_level(
    commit: Commit,
    pr_ids: AbstractSet[PullRequestId],
    trusted_reviewers: AbstractSet[Username],
    pr_reviews: Mapping[PullRequestId, PullRequest],
) -> TrustLevel:
    """Combine the author baseline with every review on the commit's pull requests.

    The author baseline decides the level when no trusted reviewer gave a
    verdict: a commit nobody vouched for is exactly as trusted as its author.
    Otherwise the least trusted verdict wins. For a trusted author this is the
    plain minimum over the baseline and every verdict, TRUSTED being the top
    level.
    """
    baseline = classify_user(commit.author, trusted_reviewers)
    contributions: list[TrustLevel] = []
    for pr_id in sorted(pr_ids):
        try:
            pull_request = pr_reviews[pr_id]
        except KeyError:
            raise AggregationError(
                f"commit {commit.sha} references pull request #{pr_id}, which has no review data"
            ) from None
        for user, review in pull_request.reviews.items():
            contribution = review_contribution(classify_user(user, trusted_reviewers), review.state)
            if contribution is not None:
                contributions.append(contribution)
    return min(contributions, default=baseline)


@dataclass(frozen=True)
class Aggregate:
    overall: TrustLevel
    commit_levels: tuple[TrustLevel, ...]


def aggregate(
    trusted_reviewers: AbstractSet[Username],
    prs_by_commit: Sequence[tuple[Commit, AbstractSet[PullRequestId]]],
    pr_reviews: Mapping[PullRequestId, PullRequest],
) -> Aggregate:
    """Return the trust level of every commit (in input order) and of the whole range."""
    commit_levels = tuple(
        commit_trust_level(commit, pr_ids, trusted_reviewers, pr_reviews) for commit, pr_ids in prs_by_commit
    )
    return Aggregate(overall=least_trusted(commit_levels), commit_levels=commit_levels)
