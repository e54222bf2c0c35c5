"""Valuation reconciliation: snapshots, ledger, closure, revaluation and sessions."""

from __future__ import annotations

from .audit import AuditService, Comparison, LineItemDifference
from .booking import BookingService, build_valuation
from .ledger import ChangeLedger, ChangeSummary, summarize_changes
from .manual_selection import SelectionEditor, SelectionUpdate, requested_codes
from .revaluation import (
    RevaluationOrchestrator,
    RevaluationResult,
    price_locally,
    price_quote,
)
from .selection import SelectionResult, resolve
from .session import (
    ApplyResult,
    OverrideView,
    SessionManager,
    SessionSummary,
    SessionView,
    candidate_selection,
)
from .snapshots import SnapshotStore
from .validation import ValidationRunRecorder

__all__ = [
    "ApplyResult",
    "AuditService",
    "BookingService",
    "ChangeLedger",
    "ChangeSummary",
    "Comparison",
    "LineItemDifference",
    "OverrideView",
    "RevaluationOrchestrator",
    "RevaluationResult",
    "SelectionEditor",
    "SelectionResult",
    "SelectionUpdate",
    "SessionManager",
    "SessionSummary",
    "SessionView",
    "SnapshotStore",
    "ValidationRunRecorder",
    "build_valuation",
    "candidate_selection",
    "price_locally",
    "price_quote",
    "requested_codes",
    "resolve",
    "summarize_changes",
]
