"""Commit, pull-request and review data shared by every stage of an audit.

Decoupled from any hosting API so the state machine and the aggregator can be
exercised with plain in-memory data. Data sources translate their own objects
into these types before handing them to the core.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, NewType

PullRequestId = NewType("PullRequestId", int)
Username = NewType("Username", str)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TrustLevel(enum.IntEnum):
    """Three-valued trust classification, ordered least to most trusted."""

    UNTRUSTED = 0
    UNKNOWN = 1
    TRUSTED = 2

    def __str__(self) -> str:
        return self.name.capitalize()


class ReviewState(enum.Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    PENDING = "PENDING"
    DISMISSED = "DISMISSED"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw: str | None) -> ReviewState | None:
        """Return the state named by ``raw`` (case-insensitive), or None if unrecognized."""
        if not raw:
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Commit:
    """A commit in the audited range.

    Identity is the SHA alone: ``author`` and ``summary`` are display data that
    a data source may fill in later without changing which commit this is.
    """

    sha: str
    author: Username | None = field(default=None, compare=False)
    summary: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.sha

    @property
    def short_sha(self) -> str:
        return self.sha[:10]

    def to_dict(self) -> dict:
        return {"sha": self.sha, "author": self.author, "summary": self.summary}

    @staticmethod
    def from_dict(d: dict) -> Commit:
        return Commit(sha=d["sha"], author=d.get("author"), summary=d.get("summary", ""))


@dataclass(frozen=True)
class Review:
    id: int
    state: ReviewState
    submitted_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state": self.state.value,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }

    @staticmethod
    def from_dict(d: dict) -> Review:
        submitted_at = d.get("submitted_at")
        return Review(
            id=d["id"],
            state=ReviewState(d["state"]),
            submitted_at=datetime.fromisoformat(submitted_at) if submitted_at else None,
        )


def _review_order(review: Review) -> tuple:
    submitted_at = review.submitted_at
    if submitted_at is None:
        submitted_at = _EPOCH
    elif submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=timezone.utc)
    return (submitted_at, review.id)


@dataclass(frozen=True)
class PullRequest:
    """Reviews on one pull request, at most one per reviewer."""

    reviews: Mapping[Username, Review] = field(default_factory=dict)

    @classmethod
    def from_reviews(cls, reviews: Iterable[tuple[Username, Review]]) -> PullRequest:
        """Collapse a reviewer's multiple reviews into the one that counts.

        The latest ``submitted_at`` wins; reviews without a timestamp sort
        first, and equal timestamps fall back to the highest review id. This
        makes the result independent of the order the API pages reviews in.
        """
        latest: dict[Username, Review] = {}
        for user, review in reviews:
            current = latest.get(user)
            if current is None or _review_order(review) > _review_order(current):
                latest[user] = review
        return cls(reviews=dict(sorted(latest.items())))

    def to_dict(self) -> dict:
        return {user: review.to_dict() for user, review in self.reviews.items()}

    @staticmethod
    def from_dict(d: dict) -> PullRequest:
        return PullRequest(reviews={Username(user): Review.from_dict(r) for user, r in d.items()})
