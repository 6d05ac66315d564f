"""Live data source backed by the GitHub REST API (PyGithub)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence, TypeVar

from github import Github, GithubException, RateLimitExceededException
from github.Auth import Token

from trustaudit_core.errors import FetchError
from trustaudit_core.models import Commit, PullRequest, PullRequestId, Review, ReviewState, Username
from trustaudit_core.providers.base import DataSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_RETRIES = 3
_RETRY_BACKOFF_BASE = 2


def _is_transient(e: GithubException) -> bool:
    if isinstance(e, RateLimitExceededException):
        return True
    return e.status is not None and e.status >= 500


class GithubDataSource(DataSource):
    """Fetch commit → pull request and pull request → review data for one repository.

    The PyGithub client is built on the first fetch, so constructing the
    source is free and an audit that never needs GitHub (e.g. a resumed run
    already at the terminal stage) makes no network calls at all.
    """

    MAX_RETRIES: int = _MAX_RETRIES
    RETRY_BACKOFF_BASE: int = _RETRY_BACKOFF_BASE

    def __init__(self, org: str, repo: str, token: str | None = None, base_url: str | None = None):
        self.org = org
        self.repo = repo
        self._token = token
        self._base_url = base_url
        self._repo_obj = None

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.repo}"

    def _get_repo(self):
        if self._repo_obj is None:
            kwargs: dict = {}
            if self._token:
                kwargs["auth"] = Token(self._token)
            else:
                logger.info("No GitHub token configured; using unauthenticated requests.")
            if self._base_url:
                kwargs["base_url"] = self._base_url.rstrip("/")
            client = Github(**kwargs)
            self._repo_obj = self._call_with_retry(
                f"looking up repository {self.full_name}", lambda: client.get_repo(self.full_name)
            )
        return self._repo_obj

    # ------------------------------------------------------------------ #
    # DataSource                                                         #
    # ------------------------------------------------------------------ #

    def fetch_commit_prs(self, commits: Sequence[Commit]) -> list[tuple[Commit, frozenset[PullRequestId]]]:
        repo = self._get_repo()
        results = []
        for i, commit in enumerate(commits, 1):
            logger.debug("[%d/%d] Fetching pull requests for %s", i, len(commits), commit.sha)
            enriched, pr_ids = self._call_with_retry(
                f"fetching pull requests for commit {commit.sha}",
                lambda: self._commit_pull_requests(repo, commit),
            )
            results.append((enriched, pr_ids))
        return results

    def fetch_pr_reviewers(self, pr_ids: Sequence[PullRequestId]) -> dict[PullRequestId, PullRequest]:
        repo = self._get_repo()
        pr_reviews: dict[PullRequestId, PullRequest] = {}
        for pr_id in pr_ids:
            if pr_id in pr_reviews:
                continue
            raw_reviews = self._call_with_retry(
                f"fetching reviews for pull request #{pr_id}",
                lambda: list(repo.get_pull(pr_id).get_reviews()),
            )
            pr_reviews[pr_id] = PullRequest.from_reviews(self._convert_reviews(pr_id, raw_reviews))
        return pr_reviews

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _commit_pull_requests(self, repo, commit: Commit) -> tuple[Commit, frozenset[PullRequestId]]:
        gh_commit = repo.get_commit(commit.sha)
        pulls = gh_commit.get_pulls()
        items = list(pulls)
        if pulls.totalCount != len(items):
            logger.warning(
                "GitHub reported %d pull request(s) for commit %s but %d were read; continuing with partial data.",
                pulls.totalCount,
                commit.sha,
                len(items),
            )

        author = gh_commit.author.login if gh_commit.author is not None else None
        message = gh_commit.commit.message or ""
        summary = commit.summary or (message.splitlines()[0] if message else "")
        enriched = Commit(sha=commit.sha, author=Username(author) if author else commit.author, summary=summary)
        return enriched, frozenset(PullRequestId(pr.number) for pr in items)

    @staticmethod
    def _convert_reviews(pr_id: PullRequestId, raw_reviews: list) -> list[tuple[Username, Review]]:
        converted = []
        for raw in raw_reviews:
            state = ReviewState.parse(raw.state)
            if state is None:
                logger.warning("Dropping review %s on pull request #%s: unrecognized state %r", raw.id, pr_id, raw.state)
                continue
            if raw.user is None:
                logger.warning("Dropping review %s on pull request #%s: reviewer account no longer exists", raw.id, pr_id)
                continue
            converted.append(
                (Username(raw.user.login), Review(id=raw.id, state=state, submitted_at=raw.submitted_at))
            )
        return converted

    def _call_with_retry(self, what: str, call: Callable[[], T]) -> T:
        """Run ``call``, retrying transient GitHub failures with exponential backoff.

        Non-transient errors (404, 401, validation) are raised immediately:
        retrying them would only delay the inevitable FetchError.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return call()
            except GithubException as e:
                if not _is_transient(e) or attempt == self.MAX_RETRIES - 1:
                    raise FetchError(f"{what} failed: {e}") from e
                delay = self.RETRY_BACKOFF_BASE**attempt
                logger.warning(
                    "GitHub error while %s (attempt %d/%d): %s. Retrying in %ds...",
                    what,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise FetchError(f"{what} failed: retries exhausted")
