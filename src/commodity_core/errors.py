"""Error taxonomy for the signal pipeline, execution queue and ledger."""

from __future__ import annotations


class CoreError(Exception):
    """Base class for all commodity_core errors."""


class InsufficientDataError(CoreError):
    """Not enough price history for an indicator or scorer.

    Always recovered locally: indicators degrade to missing fields and
    scorers to a HOLD/0-confidence result.
    """


class AggregationError(CoreError):
    """The combiner received a malformed set of tool results."""


class ActivationConflictError(CoreError):
    """The active-signal swap lost a race with a concurrent writer."""


class ClaimConflictError(CoreError):
    """Another worker already claimed the queue item."""


class ExecutionFailure(CoreError):
    """A paper or broker execution attempt failed.

    The message is stored verbatim on the queue item.
    """


class LedgerInvariantViolation(CoreError):
    """A position operation would break a ledger invariant."""


class FeedOrderError(CoreError):
    """A price tick arrived out of timestamp order."""


class InvalidTransitionError(CoreError):
    """A queue status change outside PENDING -> PROCESSING -> terminal."""
