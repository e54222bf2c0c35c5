"""Buffered, append-only change ledger for one validation run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.model import ChangeLedgerEntry, ChangeType, EntityKind

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import ValueTotals
    from valuation_recon.domain.ports import ChangeLedgerRepository

log = getLogger(__name__)

TRADE_IN_FIELD = "clean_trade_in"
RETAIL_FIELD = "clean_retail"
LOAN_FIELD = "loan_value"
TOTALS_FIELD = "totals"
SELECTION_FIELD = "is_selected"


@dataclass(frozen=True, slots=True)
class ChangeSummary:
    total_changes: int = 0
    selected: int = 0
    deselected: int = 0
    # trade-in only; retail and loan stay separate
    value_impact: int = 0
    retail_impact: int = 0
    loan_impact: int = 0
    revaluations: int = 0

    @property
    def has_significant_changes(self) -> bool:
        return self.selected + self.deselected > 0 or self.value_impact != 0


def summarize_changes(entries: Iterable[ChangeLedgerEntry]) -> ChangeSummary:
    total = selected = deselected = revaluations = 0
    trade = retail = loan = 0
    for entry in entries:
        total += 1
        match entry.change_type:
            case ChangeType.LINE_ITEM_SELECTED:
                selected += 1
            case ChangeType.LINE_ITEM_DESELECTED:
                deselected += 1
            case ChangeType.REVALUATION:
                revaluations += 1
            case ChangeType.VALUE_UPDATED:
                delta = entry.value_delta or 0
                if entry.field_name == TRADE_IN_FIELD:
                    trade += delta
                elif entry.field_name == RETAIL_FIELD:
                    retail += delta
                elif entry.field_name == LOAN_FIELD:
                    loan += delta
            case _:
                pass
    return ChangeSummary(
        total_changes=total,
        selected=selected,
        deselected=deselected,
        value_impact=trade,
        retail_impact=retail,
        loan_impact=loan,
        revaluations=revaluations,
    )


def _stringify(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(slots=True)
class ChangeLedger:
    """Collects mutations for one run and writes them in a single batch.

    Sequence numbers are not held in memory between runs: ``commit`` assigns
    ``max persisted sequence + 1 ..`` for the run at write time.
    """

    validation_run_id: UUID
    valuation_id: UUID
    repository: ChangeLedgerRepository
    clock: Clock = utcnow
    _pending: list[ChangeLedgerEntry] = field(default_factory=list, init=False)
    _committed: list[ChangeLedgerEntry] = field(default_factory=list, init=False)

    @property
    def pending(self) -> tuple[ChangeLedgerEntry, ...]:
        return tuple(self._pending)

    @property
    def committed(self) -> tuple[ChangeLedgerEntry, ...]:
        return tuple(self._committed)

    def _buffer(
        self,
        *,
        change_type: ChangeType,
        entity_kind: EntityKind,
        field_name: str,
        reason: str,
        entity_id: UUID | None = None,
        entity_code: str | None = None,
        before: object = None,
        after: object = None,
        delta: int | None = None,
        confidence: float | None = None,
        verdict: str | None = None,
    ) -> ChangeLedgerEntry:
        entry = ChangeLedgerEntry(
            validation_run_id=self.validation_run_id,
            valuation_id=self.valuation_id,
            # provisional position inside this batch; replaced at commit
            sequence=len(self._pending) + 1,
            change_type=change_type,
            entity_kind=entity_kind,
            entity_id=entity_id,
            entity_code=entity_code,
            field_name=field_name,
            before_value=_stringify(before),
            after_value=_stringify(after),
            value_delta=delta,
            reason=reason,
            confidence=confidence,
            verdict=verdict,
            created_at=self.clock(),
        )
        self._pending.append(entry)
        return entry

    def log_selection_change(
        self,
        line_item_id: UUID | None,
        code: str,
        new_selected: bool,
        reason: str,
        *,
        confidence: float | None = None,
        verdict: str | None = None,
    ) -> ChangeLedgerEntry:
        return self._buffer(
            change_type=(
                ChangeType.LINE_ITEM_SELECTED if new_selected else ChangeType.LINE_ITEM_DESELECTED
            ),
            entity_kind=EntityKind.LINE_ITEM,
            entity_id=line_item_id,
            entity_code=code,
            field_name=SELECTION_FIELD,
            before=not new_selected,
            after=new_selected,
            reason=reason,
            confidence=confidence,
            verdict=verdict,
        )

    def log_value_change(
        self,
        field_name: str,
        before: int | None,
        after: int | None,
        reason: str,
    ) -> ChangeLedgerEntry:
        delta = (after or 0) - (before or 0)
        return self._buffer(
            change_type=ChangeType.VALUE_UPDATED,
            entity_kind=EntityKind.VALUATION,
            entity_id=self.valuation_id,
            field_name=field_name,
            before=before,
            after=after,
            delta=delta,
            reason=reason,
        )

    def log_revaluation(
        self,
        before: ValueTotals,
        after: ValueTotals,
        reason: str,
    ) -> list[ChangeLedgerEntry]:
        """One value entry per headline figure, then the revaluation itself."""

        entries = [
            self.log_value_change(
                TRADE_IN_FIELD, before.clean_trade_in, after.clean_trade_in, reason
            ),
            self.log_value_change(RETAIL_FIELD, before.clean_retail, after.clean_retail, reason),
            self.log_value_change(LOAN_FIELD, before.loan_value, after.loan_value, reason),
        ]
        entries.append(
            self._buffer(
                change_type=ChangeType.REVALUATION,
                entity_kind=EntityKind.VALUATION,
                entity_id=self.valuation_id,
                field_name=TOTALS_FIELD,
                before=json.dumps(before.as_dict(), sort_keys=True),
                after=json.dumps(after.as_dict(), sort_keys=True),
                delta=after.clean_trade_in - before.clean_trade_in,
                reason=reason,
            )
        )
        return entries

    def log_restoration(
        self,
        reason: str,
        *,
        restored_at: datetime | None = None,
    ) -> ChangeLedgerEntry:
        return self._buffer(
            change_type=ChangeType.RESTORATION,
            entity_kind=EntityKind.VALUATION,
            entity_id=self.valuation_id,
            field_name="all",
            after=(restored_at or self.clock()).isoformat(),
            reason=reason,
        )

    def commit(self) -> list[ChangeLedgerEntry]:
        if not self._pending:
            return []
        base = self.repository.max_sequence(self.validation_run_id)
        for offset, entry in enumerate(self._pending, start=1):
            entry.sequence = base + offset
        batch = list(self._pending)
        self.repository.append(batch)
        self._committed.extend(batch)
        self._pending.clear()
        log.info(
            "Committed %d ledger entries for run %s (sequence %d..%d)",
            len(batch),
            self.validation_run_id,
            batch[0].sequence,
            batch[-1].sequence,
        )
        return batch

    def summarize(self) -> ChangeSummary:
        return summarize_changes([*self._committed, *self._pending])
