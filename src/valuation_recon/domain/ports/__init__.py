"""Domain ports for persistence and the valuation provider."""

from __future__ import annotations

from .persistence import (
    ChangeLedgerRepository,
    Repository,
    SessionRepository,
    SnapshotRepository,
    ValidationRunRepository,
    ValuationRepository,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)
from .valuation_provider import (
    AccessoryQuote,
    BaseQuote,
    ProviderFailure,
    ProviderFailureKind,
    ProviderQuote,
    QuoteResult,
    ValuationProvider,
)

__all__ = [
    "AccessoryQuote",
    "BaseQuote",
    "ChangeLedgerRepository",
    "ProviderFailure",
    "ProviderFailureKind",
    "ProviderQuote",
    "QuoteResult",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "SessionRepository",
    "SnapshotRepository",
    "UnitOfWork",
    "ValidationRunRepository",
    "ValuationProvider",
    "ValuationRepository",
]
