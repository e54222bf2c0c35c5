"""Append-only change ledger records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from .entity import Entity
from .enums import ChangeType, EntityKind


@dataclass(eq=False, kw_only=True)
class ChangeLedgerEntry(Entity):
    """One recorded mutation, ordered by ``sequence`` within its validation run."""

    validation_run_id: UUID
    valuation_id: UUID
    sequence: int
    change_type: ChangeType
    entity_kind: EntityKind
    field_name: str
    reason: str
    entity_id: UUID | None = None
    entity_code: str | None = None
    before_value: str | None = None
    after_value: str | None = None
    value_delta: int | None = None
    confidence: float | None = None
    verdict: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
