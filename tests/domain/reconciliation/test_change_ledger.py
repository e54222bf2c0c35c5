from __future__ import annotations

import json
from uuid import UUID, uuid4

from tests.helpers.reconciliation import FakeChangeLedgerRepository, FakeClock, InMemoryStore
from valuation_recon.domain.model import ChangeType, EntityKind, ValueTotals
from valuation_recon.domain.reconciliation import ChangeLedger, summarize_changes


def _ledger(store: InMemoryStore, run_id: UUID | None = None) -> ChangeLedger:
    return ChangeLedger(
        validation_run_id=run_id or uuid4(),
        valuation_id=uuid4(),
        repository=FakeChangeLedgerRepository(store),
        clock=FakeClock(),
    )


def test_commit_assigns_contiguous_sequences_across_batches() -> None:
    store = InMemoryStore()
    run_id = uuid4()

    first = _ledger(store, run_id)
    first.log_selection_change(uuid4(), "A", True, "Followed AI recommendation")
    first.log_selection_change(uuid4(), "B", False, "Followed AI recommendation")
    first.commit()

    second = _ledger(store, run_id)
    second.log_restoration("Restored from snapshot")
    batch = second.commit()

    assert [entry.sequence for entry in batch] == [3]
    assert sorted(entry.sequence for entry in store.ledger) == [1, 2, 3]


def test_sequences_are_per_run() -> None:
    store = InMemoryStore()
    for _ in range(2):
        ledger = _ledger(store)
        ledger.log_value_change("clean_trade_in", 100, 200, "manual")
        ledger.commit()

    assert [entry.sequence for entry in store.ledger] == [1, 1]


def test_empty_commit_is_a_no_op() -> None:
    store = InMemoryStore()
    ledger = _ledger(store)

    assert ledger.commit() == []
    assert store.ledger == []


def test_selection_change_records_before_and_after() -> None:
    ledger = _ledger(InMemoryStore())

    entry = ledger.log_selection_change(
        uuid4(), "NAV", False, "Excluded", confidence=72.5, verdict="NOT_FOUND"
    )

    assert entry.change_type is ChangeType.LINE_ITEM_DESELECTED
    assert entry.entity_kind is EntityKind.LINE_ITEM
    assert entry.entity_code == "NAV"
    assert (entry.before_value, entry.after_value) == ("true", "false")
    assert entry.confidence == 72.5
    assert entry.verdict == "NOT_FOUND"


def test_revaluation_logs_each_total_then_a_revaluation_entry() -> None:
    ledger = _ledger(InMemoryStore())
    before = ValueTotals(clean_trade_in=9_700, clean_retail=12_300, loan_value=9_650)
    after = ValueTotals(clean_trade_in=9_800, clean_retail=12_400, loan_value=9_750)

    entries = ledger.log_revaluation(before, after, "Revaluation after applying session")

    assert [entry.field_name for entry in entries] == [
        "clean_trade_in",
        "clean_retail",
        "loan_value",
        "totals",
    ]
    assert [entry.value_delta for entry in entries] == [100, 100, 100, 100]
    revaluation = entries[-1]
    assert revaluation.change_type is ChangeType.REVALUATION
    assert json.loads(revaluation.after_value or "{}") == after.as_dict()


def test_value_impact_counts_trade_in_only() -> None:
    ledger = _ledger(InMemoryStore())
    ledger.log_value_change("clean_trade_in", 1_000, 1_250, "r")
    ledger.log_value_change("clean_retail", 2_000, 3_000, "r")
    ledger.log_value_change("loan_value", 500, 400, "r")
    ledger.log_selection_change(None, "A", True, "r")
    ledger.log_selection_change(None, "B", False, "r")

    summary = ledger.summarize()

    assert summary.total_changes == 5
    assert summary.selected == 1
    assert summary.deselected == 1
    assert summary.value_impact == 250
    assert summary.retail_impact == 1_000
    assert summary.loan_impact == -100
    assert summary.has_significant_changes


def test_summarize_changes_on_empty_ledger() -> None:
    summary = summarize_changes([])

    assert summary.total_changes == 0
    assert not summary.has_significant_changes
