"""Progressive extraction of the data an audit needs.

An audit run moves through three stages, each bundling everything fetched so
far:

    Starter                 ← commits from the local checkout + trusted reviewers
    CommitPullRequests      ← + pull requests associated with each commit
    PullRequestReviewers    ← + collapsed reviews for each of those pull requests

ExtractionStage owns the current stage and only ever moves forward. Each
transition is a function (stage, data source) → next stage; the current stage
is replaced only after the fetch succeeded and its result passed the contract
check, so any failure leaves the run exactly where it was and a later call can
pick up from there without re-fetching.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, ClassVar, Iterable, Mapping, Union

from trustaudit_core.errors import SnapshotError, TransitionError
from trustaudit_core.models import Commit, PullRequest, PullRequestId, Username
from trustaudit_core.report import CommitReport, Report
from trustaudit_core.trust import aggregate

if TYPE_CHECKING:
    from trustaudit_core.providers.base import DataSource

logger = logging.getLogger(__name__)


class ExtractionStageName(enum.IntEnum):
    """Stage names, ordered by how much data the stage carries."""

    STARTER = 0
    COMMIT_PULL_REQUESTS = 1
    PULL_REQUEST_REVIEWERS = 2

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, raw: str) -> ExtractionStageName:
        """Accept ``commit-pull-requests``, ``commit_pull_requests`` or ``COMMIT_PULL_REQUESTS``."""
        try:
            return cls[raw.strip().upper().replace("-", "_")]
        except KeyError:
            choices = ", ".join(name.label for name in cls)
            raise ValueError(f"unknown stage {raw!r}; expected one of: {choices}") from None


TERMINAL_STAGE = max(ExtractionStageName)


@dataclass(frozen=True)
class StarterStage:
    name: ClassVar[ExtractionStageName] = ExtractionStageName.STARTER

    trusted_reviewers: frozenset[Username]
    commits: tuple[Commit, ...]


@dataclass(frozen=True)
class CommitPullRequestsStage:
    name: ClassVar[ExtractionStageName] = ExtractionStageName.COMMIT_PULL_REQUESTS

    trusted_reviewers: frozenset[Username]
    prs_by_commit: tuple[tuple[Commit, frozenset[PullRequestId]], ...]

    def referenced_pull_requests(self, dedupe: bool = False) -> list[PullRequestId]:
        """Every PR id across all commits, in commit order; first occurrences only if ``dedupe``."""
        pr_ids = [pr_id for _commit, prs in self.prs_by_commit for pr_id in sorted(prs)]
        if dedupe:
            return list(dict.fromkeys(pr_ids))
        return pr_ids


@dataclass(frozen=True)
class PullRequestReviewersStage:
    name: ClassVar[ExtractionStageName] = ExtractionStageName.PULL_REQUEST_REVIEWERS

    trusted_reviewers: frozenset[Username]
    prs_by_commit: tuple[tuple[Commit, frozenset[PullRequestId]], ...]
    pr_reviews: Mapping[PullRequestId, PullRequest]

    def __post_init__(self):
        if not isinstance(self.pr_reviews, MappingProxyType):
            object.__setattr__(self, "pr_reviews", MappingProxyType(dict(self.pr_reviews)))


Stage = Union[StarterStage, CommitPullRequestsStage, PullRequestReviewersStage]


# ---------------------------------------------------------------------- #
# Transitions                                                            #
# ---------------------------------------------------------------------- #


def fetch_commit_pull_requests(stage: StarterStage, data_source: DataSource) -> CommitPullRequestsStage:
    transition = "fetching pull requests associated with commits"
    try:
        result = data_source.fetch_commit_prs(list(stage.commits))
    except Exception as e:
        raise TransitionError(transition, "data source failed") from e

    try:
        entries = [(commit, commit.sha, frozenset(PullRequestId(int(p)) for p in prs)) for commit, prs in result]
    except (TypeError, ValueError, AttributeError) as e:
        raise TransitionError(transition, "data source returned a malformed result") from e

    by_sha: dict[str, tuple[Commit, frozenset[PullRequestId]]] = {}
    for commit, sha, prs in entries:
        if sha in by_sha:
            raise TransitionError(transition, f"data source returned commit {sha} more than once")
        by_sha[sha] = (commit, prs)

    requested = {c.sha for c in stage.commits}
    missing = [c.sha for c in stage.commits if c.sha not in by_sha]
    unexpected = sorted(set(by_sha) - requested)
    if missing or unexpected:
        raise TransitionError(
            transition,
            f"data source must return one entry per commit (missing: {missing}, unexpected: {unexpected})",
        )

    prs_by_commit = tuple(by_sha[c.sha] for c in stage.commits)
    logger.info(
        "Fetched pull requests for %d commit(s): %d association(s).",
        len(prs_by_commit),
        sum(len(prs) for _commit, prs in prs_by_commit),
    )
    return CommitPullRequestsStage(trusted_reviewers=stage.trusted_reviewers, prs_by_commit=prs_by_commit)


def fetch_pull_request_reviewers(
    stage: CommitPullRequestsStage,
    data_source: DataSource,
    dedupe: bool = False,
) -> PullRequestReviewersStage:
    transition = "fetching reviewers of pull requests"
    pr_ids = stage.referenced_pull_requests(dedupe=dedupe)
    try:
        result = data_source.fetch_pr_reviewers(pr_ids)
    except Exception as e:
        raise TransitionError(transition, "data source failed") from e

    try:
        pr_reviews = dict(sorted(result.items()))
        if not all(isinstance(pr, PullRequest) for pr in pr_reviews.values()):
            raise TypeError("every value must be a PullRequest")
    except (TypeError, ValueError, AttributeError) as e:
        raise TransitionError(transition, "data source returned a malformed result") from e

    requested = set(pr_ids)
    missing = sorted(requested - set(pr_reviews))
    unexpected = sorted(set(pr_reviews) - requested)
    if missing or unexpected:
        raise TransitionError(
            transition,
            f"data source must return one entry per pull request (missing: {missing}, unexpected: {unexpected})",
        )

    logger.info("Fetched reviews for %d pull request(s).", len(pr_reviews))
    return PullRequestReviewersStage(
        trusted_reviewers=stage.trusted_reviewers,
        prs_by_commit=stage.prs_by_commit,
        pr_reviews=pr_reviews,
    )


class ExtractionStage:
    """The mutable handle of an audit run, holding exactly one immutable stage."""

    def __init__(self, stage: Stage):
        self._stage = stage

    @classmethod
    def start(cls, commits: Iterable[Commit], trusted_reviewers: Iterable[Username]) -> ExtractionStage:
        return cls(StarterStage(trusted_reviewers=frozenset(trusted_reviewers), commits=tuple(commits)))

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def name(self) -> ExtractionStageName:
        return self._stage.name

    def advance(
        self,
        target: ExtractionStageName,
        data_source: DataSource,
        dedupe_pull_requests: bool = False,
    ) -> None:
        """Fetch whatever is missing to reach ``target``.

        A target at or below the current stage performs no fetches. On failure
        the stage reached by the last successful transition is kept and
        TransitionError is raised.
        """
        if self.name >= target:
            logger.debug("Already at stage %s; nothing to fetch for %s.", self.name.label, target.label)
            return

        while self.name < target:
            stage = self._stage
            if isinstance(stage, StarterStage):
                self._stage = fetch_commit_pull_requests(stage, data_source)
            elif isinstance(stage, CommitPullRequestsStage):
                self._stage = fetch_pull_request_reviewers(stage, data_source, dedupe=dedupe_pull_requests)
            else:
                break

    def compute_report(self, data_source: DataSource, dedupe_pull_requests: bool = False) -> Report:
        """Advance to the terminal stage and aggregate its data into a Report."""
        self.advance(TERMINAL_STAGE, data_source, dedupe_pull_requests=dedupe_pull_requests)
        stage = self._stage
        if not isinstance(stage, PullRequestReviewersStage):
            raise TransitionError("computing the report", f"extraction stopped at stage {self.name.label}")

        result = aggregate(stage.trusted_reviewers, stage.prs_by_commit, stage.pr_reviews)
        return Report(
            overall_trust_level=result.overall,
            commits=tuple(
                CommitReport(commit=commit, pull_requests=prs, trust_level=level)
                for (commit, prs), level in zip(stage.prs_by_commit, result.commit_levels)
            ),
            pr_reviews=stage.pr_reviews,
        )

    # ------------------------------------------------------------------ #
    # Persistence boundary                                               #
    # ------------------------------------------------------------------ #

    def snapshot(self) -> dict:
        """Return the stage name and full payload as JSON-compatible data."""
        stage = self._stage
        payload: dict = {"trusted_reviewers": sorted(stage.trusted_reviewers)}
        if isinstance(stage, StarterStage):
            payload["commits"] = [c.to_dict() for c in stage.commits]
        else:
            payload["prs_by_commit"] = [
                {"commit": commit.to_dict(), "pull_requests": sorted(prs)} for commit, prs in stage.prs_by_commit
            ]
        if isinstance(stage, PullRequestReviewersStage):
            payload["pr_reviews"] = {str(pr_id): pr.to_dict() for pr_id, pr in stage.pr_reviews.items()}
        return {"stage": stage.name.label, "payload": payload}

    @classmethod
    def restore(cls, snapshot: dict) -> ExtractionStage:
        """Rebuild a run from the output of snapshot()."""
        try:
            name = ExtractionStageName.parse(snapshot["stage"])
            payload = snapshot["payload"]
            reviewers = payload["trusted_reviewers"]
            if not isinstance(reviewers, list):
                raise SnapshotError(
                    f"malformed stage snapshot (trusted_reviewers must be a list, not {type(reviewers).__name__})"
                )
            trusted = frozenset(Username(u) for u in reviewers)
            if name == ExtractionStageName.STARTER:
                commits = tuple(Commit.from_dict(c) for c in payload["commits"])
                return cls(StarterStage(trusted_reviewers=trusted, commits=commits))

            prs_by_commit = tuple(
                (Commit.from_dict(entry["commit"]), frozenset(PullRequestId(int(p)) for p in entry["pull_requests"]))
                for entry in payload["prs_by_commit"]
            )
            if name == ExtractionStageName.COMMIT_PULL_REQUESTS:
                return cls(CommitPullRequestsStage(trusted_reviewers=trusted, prs_by_commit=prs_by_commit))

            pr_reviews = {
                PullRequestId(int(pr_id)): PullRequest.from_dict(reviews)
                for pr_id, reviews in payload["pr_reviews"].items()
            }
            return cls(
                PullRequestReviewersStage(trusted_reviewers=trusted, prs_by_commit=prs_by_commit, pr_reviews=pr_reviews)
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SnapshotError(f"malformed stage snapshot ({type(e).__name__}: {e})") from e
