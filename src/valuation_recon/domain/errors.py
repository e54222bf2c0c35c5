"""Failures surfaced by the reconciliation engine.

Every error is typed so callers can tell an operator *why* an operation was
refused: re-run validation (conflict), start over (expired), or retry.
"""

from __future__ import annotations


class ReconciliationError(RuntimeError):
    """Base class for reconciliation failures."""


class NotFoundError(ReconciliationError):
    """A valuation, line item, validation run, session or snapshot is absent."""


class ConflictError(ReconciliationError):
    """The requested transition is not allowed from the current state."""


class ExpiredError(ReconciliationError):
    """The session's lifetime elapsed before the call."""


class InvalidInputError(ReconciliationError, ValueError):
    """Malformed override or verdict payload."""


class InvariantViolationError(ReconciliationError):
    """Persistent state contradicts a domain invariant."""


class RevaluationError(ReconciliationError):
    """Neither the provider nor local data could produce new values."""


class ProviderUnavailableError(ReconciliationError):
    """The valuation provider failed and there is no local data to fall back to."""


class ImmutableRecordError(ReconciliationError):
    """A write-once record (snapshot, ledger entry) was modified after creation."""
