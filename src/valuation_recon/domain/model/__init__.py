"""Public domain model surface."""

from __future__ import annotations

from .entity import Entity, new_id
from .enums import (
    ChangeType,
    EntityKind,
    Recommendation,
    RevaluationSource,
    SessionStatus,
    SnapshotReason,
    Verdict,
)
from .ledger import ChangeLedgerEntry
from .session import Override, ReconciliationSession
from .snapshot import LineItemState, Snapshot, SnapshotData, SnapshotMetadata, ValuationState
from .validation import LineItemVerdict, ValidationRun, clamp_confidence
from .valuation import (
    VALUE_FIELDS,
    LineItem,
    Valuation,
    ValuationValues,
    ValueTotals,
    VehicleIdentity,
    parse_code_list,
)

__all__ = [
    "VALUE_FIELDS",
    "ChangeLedgerEntry",
    "ChangeType",
    "Entity",
    "EntityKind",
    "LineItem",
    "LineItemState",
    "LineItemVerdict",
    "Override",
    "Recommendation",
    "ReconciliationSession",
    "RevaluationSource",
    "SessionStatus",
    "Snapshot",
    "SnapshotData",
    "SnapshotMetadata",
    "SnapshotReason",
    "ValidationRun",
    "Valuation",
    "ValuationState",
    "ValuationValues",
    "ValueTotals",
    "Verdict",
    "VehicleIdentity",
    "clamp_confidence",
    "new_id",
    "parse_code_list",
]
