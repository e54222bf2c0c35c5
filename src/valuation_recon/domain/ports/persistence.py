"""Ports for persisting reconciliation aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from valuation_recon.domain.model import (
    ChangeLedgerEntry,
    ReconciliationSession,
    Snapshot,
    ValidationRun,
    Valuation,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: UUID) -> TEntity | None: ...


@runtime_checkable
class ValuationRepository(Repository[Valuation], Protocol):
    """Valuations with their line items loaded."""

    def latest_for(self, vehicle_id: str, provider: str) -> Valuation | None: ...


@runtime_checkable
class ValidationRunRepository(Repository[ValidationRun], Protocol):
    """Persistence contract for AI comparison runs."""


@runtime_checkable
class SnapshotRepository(Repository[Snapshot], Protocol):
    """Write-once snapshots; there is deliberately no update or delete."""

    def get_for_run(self, validation_run_id: UUID) -> Snapshot | None: ...


@runtime_checkable
class ChangeLedgerRepository(Protocol):
    """Append-only ledger storage."""

    def append(self, entries: Sequence[ChangeLedgerEntry]) -> None: ...

    def max_sequence(self, validation_run_id: UUID) -> int: ...

    def list_for_run(self, validation_run_id: UUID) -> list[ChangeLedgerEntry]: ...


@runtime_checkable
class SessionRepository(Repository[ReconciliationSession], Protocol):
    """Sessions and their overrides."""

    def get_for_run(self, validation_run_id: UUID) -> ReconciliationSession | None: ...

    def find_open(self, valuation_id: UUID, now: datetime) -> ReconciliationSession | None: ...

    def claim_for_apply(self, session_id: UUID) -> bool:
        """Atomically move a session from pending to applying; False if it was not pending."""
        ...
