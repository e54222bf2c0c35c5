from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from tests.helpers.reconciliation import (
    FakeClock,
    FakeUnitOfWorkFactory,
    FakeValuationProvider,
    make_line_item,
    make_run,
    make_valuation,
)
from valuation_recon.domain.errors import (
    ConflictError,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    RevaluationError,
)
from valuation_recon.domain.model import (
    ChangeType,
    Recommendation,
    RevaluationSource,
    SessionStatus,
    ValidationRun,
    Valuation,
    Verdict,
)
from valuation_recon.domain.ports import ProviderFailure, ProviderFailureKind
from valuation_recon.domain.reconciliation import (
    RevaluationOrchestrator,
    SessionManager,
    candidate_selection,
)


def _seed(
    uow: FakeUnitOfWorkFactory,
    valuation: Valuation,
    verdicts: dict[str, Verdict],
) -> ValidationRun:
    run = make_run(valuation, verdicts)
    uow.store.valuations[valuation.id] = valuation
    uow.store.validation_runs[run.id] = run
    return run


def _conflicting_pair() -> Valuation:
    return make_valuation(
        make_line_item("A", excludes=["B"], trade=300, retail=400, loan=250),
        make_line_item("B", selected=True, trade=200, retail=300, loan=150),
    )


def _manager(
    uow: FakeUnitOfWorkFactory,
    clock: FakeClock,
    provider: FakeValuationProvider | None = None,
) -> SessionManager:
    return SessionManager(
        uow_factory=uow,
        revaluation=RevaluationOrchestrator(provider=provider),
        clock=clock,
        session_ttl=timedelta(hours=24),
    )


# --- open ---------------------------------------------------------------------


def test_open_session_creates_override_per_verdict(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"A": Verdict.CONFIRMED, "B": Verdict.NOT_FOUND})

    view = _manager(fake_uow, clock).open_session(run.id)

    assert view.status is SessionStatus.PENDING
    assert view.expires_at == clock.now + timedelta(hours=24)
    assert [o.line_item_code for o in view.overrides] == ["A", "B"]
    assert [o.recommendation for o in view.overrides] == [
        Recommendation.SELECT,
        Recommendation.DESELECT,
    ]
    assert view.summary.recommended_adds == 1
    assert view.summary.recommended_removes == 1
    assert view.summary.following_recommendation == 2
    assert fake_uow.created[-1].committed


def test_open_session_backfills_line_items_without_verdicts(
    fake_uow: FakeUnitOfWorkFactory,
    clock: FakeClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    valuation = make_valuation(make_line_item("A"), make_line_item("B"), make_line_item("C"))
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED, "ZZZ": Verdict.NOT_FOUND})

    with caplog.at_level("WARNING"):
        view = _manager(fake_uow, clock).open_session(run.id)

    by_code = {o.line_item_code: o for o in view.overrides}
    assert set(by_code) == {"A", "B", "C"}
    assert by_code["B"].recommendation is Recommendation.NO_CHANGE
    assert by_code["B"].verdict is None
    assert "back-filling" in caplog.text


def test_open_session_for_unknown_run(fake_uow: FakeUnitOfWorkFactory, clock: FakeClock) -> None:
    with pytest.raises(NotFoundError):
        _manager(fake_uow, clock).open_session(uuid4())


def test_open_session_twice_for_one_run_conflicts(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    manager.open_session(run.id)

    with pytest.raises(ConflictError):
        manager.open_session(run.id)


def test_only_one_open_session_per_valuation(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    first = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED})
    second = _seed(fake_uow, valuation, {"B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    manager.open_session(first.id)

    with pytest.raises(ConflictError):
        manager.open_session(second.id)

    # an expired session no longer blocks a new one
    clock.advance(timedelta(hours=25))
    assert manager.open_session(second.id).status is SessionStatus.PENDING


# --- toggle -------------------------------------------------------------------


def test_toggle_flips_keep_original(fake_uow: FakeUnitOfWorkFactory, clock: FakeClock) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)

    assert manager.toggle_override(session.id, "B").keep_original is True
    assert manager.toggle_override(session.id, " B ").keep_original is False


def test_toggle_validations_in_order(fake_uow: FakeUnitOfWorkFactory, clock: FakeClock) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)

    with pytest.raises(InvalidInputError):
        manager.toggle_override(session.id, "  ")
    with pytest.raises(NotFoundError):
        manager.toggle_override(uuid4(), "B")
    with pytest.raises(NotFoundError):
        manager.toggle_override(session.id, "NOPE")


def test_toggle_after_expiry_fails_even_while_pending(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    clock.advance(timedelta(hours=24, seconds=1))

    with pytest.raises(ExpiredError):
        manager.toggle_override(session.id, "B")

    view = manager.get_session(session.id)
    assert view.status is SessionStatus.PENDING
    assert view.is_expired


def test_session_is_still_open_exactly_at_expiry(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    clock.advance(timedelta(hours=24))

    assert manager.toggle_override(session.id, "B").keep_original is True


# --- apply --------------------------------------------------------------------


def test_apply_follows_recommendations_and_exclusions(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED, "B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)

    result = manager.apply(session.id)

    assert result.final_codes == {"A"}
    assert result.excluded_codes == {"B"}
    assert result.revaluation_source is RevaluationSource.FALLBACK
    items = {item.code: item for item in result.valuation.line_items}
    assert items["A"].is_selected and items["A"].is_available
    assert not items["B"].is_selected and not items["B"].is_available
    assert result.valuation.totals.clean_trade_in == 10_000 - 500 + 300

    summary = result.change_summary
    assert (summary.selected, summary.deselected) == (1, 1)
    assert summary.value_impact == 100
    assert summary.retail_impact == 100
    assert summary.revaluations == 1

    entries = fake_uow.store.ledger
    assert [entry.sequence for entry in entries] == list(range(1, len(entries) + 1))
    assert entries[0].change_type is ChangeType.LINE_ITEM_SELECTED
    assert entries[1].reason.startswith("Excluded by selected line item A")
    assert fake_uow.store.sessions[session.id].status is SessionStatus.APPLIED


def test_apply_respects_kept_original_selection(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED, "B": Verdict.NOT_FOUND})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    manager.toggle_override(session.id, "B")

    result = manager.apply(session.id)

    assert result.final_codes == {"B"}
    items = {item.code: item for item in result.valuation.line_items}
    assert not items["A"].is_selected
    assert items["A"].is_available
    assert result.change_summary.selected == 0
    assert result.change_summary.deselected == 0


def test_apply_falls_back_when_provider_times_out(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED, "B": Verdict.NOT_FOUND})
    provider = FakeValuationProvider(
        ProviderFailure(ProviderFailureKind.TIMEOUT, "read timed out")
    )
    manager = _manager(fake_uow, clock, provider)
    session = manager.open_session(run.id)

    result = manager.apply(session.id)

    assert result.revaluation_source is RevaluationSource.FALLBACK
    assert result.provider_failure == "timeout: read timed out"
    assert len(provider.calls) == 1
    assert fake_uow.store.sessions[session.id].status is SessionStatus.APPLIED


def test_apply_twice_conflicts(fake_uow: FakeUnitOfWorkFactory, clock: FakeClock) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    manager.apply(session.id)

    with pytest.raises(ConflictError):
        manager.apply(session.id)
    with pytest.raises(ConflictError):
        manager.toggle_override(session.id, "A")


def test_apply_conflicts_when_session_is_already_claimed(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    fake_uow.store.claimed.add(session.id)

    with pytest.raises(ConflictError, match="already being applied"):
        manager.apply(session.id)
    assert fake_uow.created[-1].rollback_called


def test_apply_after_expiry(fake_uow: FakeUnitOfWorkFactory, clock: FakeClock) -> None:
    run = _seed(fake_uow, _conflicting_pair(), {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    clock.advance(timedelta(days=2))

    with pytest.raises(ExpiredError):
        manager.apply(session.id)


def test_apply_refuses_a_superseded_valuation(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)
    newer = make_valuation(
        make_line_item("A"), created_at=valuation.created_at + timedelta(minutes=5)
    )
    fake_uow.store.valuations[newer.id] = newer

    with pytest.raises(ConflictError, match="target has changed"):
        manager.apply(session.id)


def test_apply_without_line_items_raises_revaluation_error(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    run = _seed(fake_uow, make_valuation(), {})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)

    with pytest.raises(RevaluationError):
        manager.apply(session.id)
    assert fake_uow.created[-1].rollback_called
    assert not fake_uow.created[-1].committed


def test_apply_takes_a_snapshot_when_the_run_has_none(
    fake_uow: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    valuation = _conflicting_pair()
    run = _seed(fake_uow, valuation, {"A": Verdict.CONFIRMED})
    manager = _manager(fake_uow, clock)
    session = manager.open_session(run.id)

    manager.apply(session.id)

    [snapshot] = fake_uow.store.snapshots.values()
    assert snapshot.validation_run_id == run.id
    assert snapshot.data.valuation.selected_codes == {"B"}


def test_candidate_selection_reports_kept_selections() -> None:
    valuation = _conflicting_pair()
    run = make_run(valuation, {"A": Verdict.CONFIRMED, "B": Verdict.NOT_FOUND})
    store = FakeUnitOfWorkFactory()
    store.store.valuations[valuation.id] = valuation
    store.store.validation_runs[run.id] = run
    manager = _manager(store, FakeClock())
    view = manager.open_session(run.id)
    manager.toggle_override(view.id, "B")
    session = store.store.sessions[view.id]

    candidates, kept = candidate_selection(valuation.selected_codes(), session.overrides)

    assert candidates == {"A", "B"}
    assert kept == {"B"}
