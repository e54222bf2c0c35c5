"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import func, select, update

from valuation_recon.adapters.sqlalchemy.mappings import (
    change_ledger_table,
    session_table,
    snapshot_table,
    valuation_table,
)
from valuation_recon.domain.model import (
    ChangeLedgerEntry,
    ReconciliationSession,
    SessionStatus,
    Snapshot,
    ValidationRun,
    Valuation,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy import CursorResult
    from sqlalchemy.orm import Session


class SqlAlchemyValuationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Valuation) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> Valuation | None:
        return self.session.get(Valuation, entity_id)

    def latest_for(self, vehicle_id: str, provider: str) -> Valuation | None:
        stmt = (
            select(Valuation)
            .where(valuation_table.c.vehicle_id == vehicle_id)
            .where(valuation_table.c.provider == provider)
            .order_by(valuation_table.c.created_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


class SqlAlchemyValidationRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ValidationRun) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> ValidationRun | None:
        return self.session.get(ValidationRun, entity_id)


class SqlAlchemySnapshotRepository:
    """Inserts and reads only; updates are rejected by the mapper listener."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Snapshot) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> Snapshot | None:
        return self.session.get(Snapshot, entity_id)

    def get_for_run(self, validation_run_id: uuid.UUID) -> Snapshot | None:
        stmt = select(Snapshot).where(snapshot_table.c.validation_run_id == validation_run_id)
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyChangeLedgerRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, entries: Sequence[ChangeLedgerEntry]) -> None:
        self.session.add_all(entries)

    def max_sequence(self, validation_run_id: uuid.UUID) -> int:
        stmt = select(func.max(change_ledger_table.c.sequence)).where(
            change_ledger_table.c.validation_run_id == validation_run_id
        )
        return self.session.execute(stmt).scalar_one_or_none() or 0

    def list_for_run(self, validation_run_id: uuid.UUID) -> list[ChangeLedgerEntry]:
        stmt = (
            select(ChangeLedgerEntry)
            .where(change_ledger_table.c.validation_run_id == validation_run_id)
            .order_by(change_ledger_table.c.sequence)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemySessionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReconciliationSession) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> ReconciliationSession | None:
        return self.session.get(ReconciliationSession, entity_id)

    def get_for_run(self, validation_run_id: uuid.UUID) -> ReconciliationSession | None:
        stmt = select(ReconciliationSession).where(
            session_table.c.validation_run_id == validation_run_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_open(self, valuation_id: uuid.UUID, now: datetime) -> ReconciliationSession | None:
        stmt = (
            select(ReconciliationSession)
            .where(session_table.c.valuation_id == valuation_id)
            .where(session_table.c.status.in_([SessionStatus.PENDING, SessionStatus.APPLYING]))
            .where(session_table.c.expires_at > now)
            .order_by(session_table.c.created_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def claim_for_apply(self, session_id: uuid.UUID) -> bool:
        # conditional UPDATE: only one concurrent caller can see rowcount == 1
        stmt = (
            update(session_table)
            .where(session_table.c.id == session_id)
            .where(session_table.c.status == SessionStatus.PENDING)
            .values(status=SessionStatus.APPLYING)
        )
        result = cast("CursorResult[object]", self.session.execute(stmt))
        return result.rowcount == 1
