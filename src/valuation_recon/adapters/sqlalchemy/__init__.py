"""SQLAlchemy adapter package for valuation reconciliation."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyChangeLedgerRepository,
    SqlAlchemySessionRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyValidationRunRepository,
    SqlAlchemyValuationRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyChangeLedgerRepository",
    "SqlAlchemySessionRepository",
    "SqlAlchemySnapshotRepository",
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyValidationRunRepository",
    "SqlAlchemyValuationRepository",
    "StartupError",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
]
