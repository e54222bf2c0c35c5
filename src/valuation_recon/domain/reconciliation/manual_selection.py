"""Operator-driven selection updates outside of a reconciliation session.

The operator sends the complete set of codes that should be selected. The
closure is resolved, the line items are rewritten, the valuation is re-priced
and, when a validation run is named, every change lands in that run's ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import InvalidInputError, NotFoundError, RevaluationError
from valuation_recon.domain.model import SnapshotReason, ValuationState

from .ledger import ChangeLedger, ChangeSummary
from .revaluation import RevaluationOrchestrator
from .selection import SelectionResult, resolve
from .snapshots import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import LineItem, RevaluationSource, Valuation
    from valuation_recon.domain.ports import ReconciliationUnitOfWork

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SelectionUpdate:
    valuation: ValuationState
    revaluation_source: RevaluationSource
    final_codes: frozenset[str]
    excluded_codes: frozenset[str]
    ignored_codes: frozenset[str] = frozenset()
    # only present when the update was tracked against a validation run
    change_summary: ChangeSummary | None = None
    provider_failure: str | None = None


def requested_codes(codes: Iterable[str]) -> frozenset[str]:
    if isinstance(codes, str):
        raise InvalidInputError("Selected codes must be a collection of codes, not a string")
    cleaned: set[str] = set()
    for code in codes:
        if not isinstance(code, str):
            raise InvalidInputError(f"Line item codes must be strings, got {code!r}")
        if code.strip():
            cleaned.add(code.strip())
    return frozenset(cleaned)


def _change_reason(
    item: LineItem,
    *,
    selected: bool,
    requested: frozenset[str],
    result: SelectionResult,
    line_items: list[LineItem],
) -> str:
    if item.code in result.excluded_codes:
        sources = ", ".join(result.excluded_by(item.code, line_items))
        return f"Excluded by selected line item {sources}"
    if selected and item.code not in requested:
        sources = ", ".join(result.included_by(item.code, line_items))
        return f"Included by selected line item {sources}"
    return "Operator selection" if selected else "Operator deselection"


@dataclass(slots=True)
class SelectionEditor:
    uow_factory: Callable[[], ReconciliationUnitOfWork]
    revaluation: RevaluationOrchestrator = field(default_factory=RevaluationOrchestrator)
    clock: Clock = utcnow

    def update_selection(
        self,
        valuation_id: UUID,
        codes: Iterable[str],
        *,
        validation_run_id: UUID | None = None,
    ) -> SelectionUpdate:
        """Replace the valuation's selection with ``codes`` and re-price it.

        Unknown codes are ignored. A failed re-pricing raises
        :class:`RevaluationError` and nothing is written.
        """

        requested = requested_codes(codes)
        with self.uow_factory() as uow:
            repos = uow.repositories
            valuation = repos.valuations.get(valuation_id)
            if valuation is None:
                raise NotFoundError(f"Valuation {valuation_id} not found")

            ledger: ChangeLedger | None = None
            if validation_run_id is not None:
                run = repos.validation_runs.get(validation_run_id)
                if run is None:
                    raise NotFoundError(f"Validation run {validation_run_id} not found")
                if run.valuation_id != valuation.id:
                    raise InvalidInputError(
                        f"Validation run {run.id} belongs to valuation {run.valuation_id}"
                    )
                if repos.snapshots.get_for_run(run.id) is None:
                    SnapshotStore(repos, clock=self.clock).create_snapshot(
                        run.id,
                        valuation.id,
                        SnapshotReason.PRE_VALIDATION,
                        description="Before manual selection update",
                    )
                ledger = ChangeLedger(run.id, valuation.id, repos.ledger, clock=self.clock)

            known = {item.code for item in valuation.line_items}
            result = resolve(requested, valuation.line_items)
            before = valuation.totals()
            self._apply(valuation, requested, result, ledger)

            revalued = self.revaluation.revaluate(valuation, result.final_codes)
            if not revalued.success or revalued.values is None:
                raise RevaluationError(
                    f"Could not revalue {valuation.id}: {revalued.error or 'no values produced'}"
                )
            valuation.write_values(revalued.values)
            if revalued.request_id:
                valuation.request_id = revalued.request_id

            summary = None
            if ledger is not None:
                ledger.log_revaluation(
                    before,
                    valuation.totals(),
                    f"Revaluation after manual selection update ({revalued.source.value})",
                )
                ledger.commit()
                summary = ledger.summarize()
            uow.commit()

        log.info(
            "Updated selection of %s to %d line item(s), source=%s, tracked=%s",
            valuation.id,
            len(result.final_codes),
            revalued.source.value,
            validation_run_id is not None,
        )
        return SelectionUpdate(
            valuation=ValuationState.capture(valuation),
            revaluation_source=revalued.source,
            final_codes=result.final_codes,
            excluded_codes=result.excluded_codes,
            ignored_codes=requested - known,
            change_summary=summary,
            provider_failure=str(revalued.provider_failure) if revalued.provider_failure else None,
        )

    @staticmethod
    def _apply(
        valuation: Valuation,
        requested: frozenset[str],
        result: SelectionResult,
        ledger: ChangeLedger | None,
    ) -> None:
        items = sorted(valuation.line_items, key=lambda item: item.code)
        for item in items:
            selected = result.is_selected(item.code)
            if ledger is not None and item.is_selected != selected:
                ledger.log_selection_change(
                    item.id,
                    item.code,
                    selected,
                    _change_reason(
                        item,
                        selected=selected,
                        requested=requested,
                        result=result,
                        line_items=items,
                    ),
                )
            item.is_selected = selected
            item.is_available = result.is_available(item.code)
