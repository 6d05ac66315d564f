"""Exception hierarchy for trustaudit.

Every failure the core can raise derives from TrustAuditError so the CLI can
catch one type and render the full ``__cause__`` chain for the user.
"""

from __future__ import annotations


class TrustAuditError(Exception):
    """Base class for all trustaudit failures."""


class FetchError(TrustAuditError):
    """A data source could not supply the requested data."""


class TransitionError(TrustAuditError):
    """An extraction stage transition failed; the stage was left unchanged."""

    def __init__(self, transition: str, message: str):
        super().__init__(f"{transition}: {message}")
        self.transition = transition


class RepositoryError(TrustAuditError):
    """A local checkout could not be opened, resolved or walked."""


class ConfigError(TrustAuditError):
    """The configuration file is unreadable or missing required settings."""


class AggregationError(TrustAuditError):
    """Trust aggregation was given data that violates its preconditions."""


class SnapshotError(TrustAuditError):
    """A persisted stage snapshot could not be restored."""
