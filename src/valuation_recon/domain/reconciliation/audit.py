"""Read-only before/after reconstruction and rollback for a validation run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import NotFoundError
from valuation_recon.domain.model import ChangeType, ValuationState

from .ledger import ChangeLedger, ChangeSummary, summarize_changes
from .snapshots import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import (
        ChangeLedgerEntry,
        Snapshot,
        SnapshotData,
        ValidationRun,
        ValueTotals,
    )
    from valuation_recon.domain.ports import ReconciliationRepositories, ReconciliationUnitOfWork

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LineItemDifference:
    code: str
    name: str
    was_selected: bool
    is_selected: bool
    was_available: bool
    is_available: bool


@dataclass(frozen=True, slots=True)
class Comparison:
    validation_run_id: UUID
    original: SnapshotData
    current: ValuationState
    # current minus snapshot
    differences: ValueTotals
    line_item_changes: tuple[LineItemDifference, ...]
    change_timeline: tuple[ChangeLedgerEntry, ...]
    changes_by_type: dict[ChangeType, int]
    summary: ChangeSummary


def _line_item_changes(
    original: ValuationState,
    current: ValuationState,
) -> tuple[LineItemDifference, ...]:
    before = {item.code: item for item in original.line_items}
    changes: list[LineItemDifference] = []
    for item in current.line_items:
        previous = before.get(item.code)
        if previous is None:
            continue
        if (previous.is_selected, previous.is_available) == (item.is_selected, item.is_available):
            continue
        changes.append(
            LineItemDifference(
                code=item.code,
                name=item.name,
                was_selected=previous.is_selected,
                is_selected=item.is_selected,
                was_available=previous.is_available,
                is_available=item.is_available,
            )
        )
    return tuple(changes)


@dataclass(slots=True)
class AuditService:
    uow_factory: Callable[[], ReconciliationUnitOfWork]
    clock: Clock = utcnow

    def get_comparison(self, validation_run_id: UUID) -> Comparison:
        with self.uow_factory() as uow:
            repos = uow.repositories
            run, snapshot = self._run_and_snapshot(repos, validation_run_id)
            valuation = repos.valuations.get(snapshot.valuation_id)
            if valuation is None:
                raise NotFoundError(f"Valuation {snapshot.valuation_id} not found")

            current = ValuationState.capture(valuation)
            timeline = sorted(repos.ledger.list_for_run(run.id), key=lambda entry: entry.sequence)
            by_type = Counter(entry.change_type for entry in timeline)
            return Comparison(
                validation_run_id=run.id,
                original=snapshot.data,
                current=current,
                differences=current.totals.minus(snapshot.data.metadata.totals),
                line_item_changes=_line_item_changes(snapshot.data.valuation, current),
                change_timeline=tuple(timeline),
                changes_by_type=dict(by_type),
                summary=summarize_changes(timeline),
            )

    def restore_from_snapshot(self, validation_run_id: UUID) -> ValuationState:
        """Roll the valuation back to its pre-reconciliation state and record it."""

        with self.uow_factory() as uow:
            repos = uow.repositories
            run, snapshot = self._run_and_snapshot(repos, validation_run_id)
            valuation = SnapshotStore(repos, clock=self.clock).restore(snapshot.id)

            ledger = ChangeLedger(run.id, valuation.id, repos.ledger, clock=self.clock)
            ledger.log_restoration(
                f"Restored from snapshot {snapshot.id} ({snapshot.reason.value})"
            )
            ledger.commit()
            uow.commit()
            log.info("Run %s rolled back to snapshot %s", run.id, snapshot.id)
            return ValuationState.capture(valuation)

    @staticmethod
    def _run_and_snapshot(
        repos: ReconciliationRepositories,
        validation_run_id: UUID,
    ) -> tuple[ValidationRun, Snapshot]:
        run = repos.validation_runs.get(validation_run_id)
        if run is None:
            raise NotFoundError(f"Validation run {validation_run_id} not found")
        snapshot = repos.snapshots.get_for_run(run.id)
        if snapshot is None:
            raise NotFoundError(f"Validation run {run.id} has no snapshot yet")
        return run, snapshot
