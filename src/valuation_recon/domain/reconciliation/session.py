"""Session manager: open, inspect, toggle and apply reconciliation sessions.

``pending -> applied`` is the only stored transition. Expiry is derived from
the clock on every call, and ``apply`` claims the session with an atomic
``pending -> applying`` update so two callers cannot apply the same session.
Everything an apply touches (snapshot, line items, ledger, session status)
is committed through one unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import (
    ConflictError,
    InvalidInputError,
    InvariantViolationError,
    NotFoundError,
    RevaluationError,
)
from valuation_recon.domain.model import (
    Override,
    Recommendation,
    ReconciliationSession,
    RevaluationSource,
    SessionStatus,
    SnapshotReason,
    ValuationState,
    Verdict,
)

from .ledger import ChangeLedger, ChangeSummary
from .revaluation import RevaluationOrchestrator
from .selection import SelectionResult, resolve
from .snapshots import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import LineItem, LineItemVerdict, Valuation
    from valuation_recon.domain.ports import ReconciliationRepositories, ReconciliationUnitOfWork

log = getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class OverrideView:
    line_item_code: str
    line_item_name: str | None
    recommendation: Recommendation
    original_selected: bool
    keep_original: bool
    verdict: Verdict | None = None
    confidence: float | None = None

    @classmethod
    def of(cls, override: Override) -> OverrideView:
        return cls(
            line_item_code=override.line_item_code,
            line_item_name=override.line_item_name,
            recommendation=override.recommendation,
            original_selected=override.original_selected,
            keep_original=override.keep_original,
            verdict=override.verdict,
            confidence=override.confidence,
        )


@dataclass(frozen=True, slots=True)
class SessionSummary:
    total_changes: int
    keeping_original: int
    following_recommendation: int
    recommended_adds: int
    recommended_removes: int

    @classmethod
    def of(cls, overrides: Iterable[Override]) -> SessionSummary:
        items = list(overrides)
        return cls(
            total_changes=len(items),
            keeping_original=sum(1 for item in items if item.keep_original),
            following_recommendation=sum(1 for item in items if not item.keep_original),
            recommended_adds=sum(
                1 for item in items if item.recommendation is Recommendation.SELECT
            ),
            recommended_removes=sum(
                1 for item in items if item.recommendation is Recommendation.DESELECT
            ),
        )


@dataclass(frozen=True, slots=True)
class SessionView:
    id: UUID
    validation_run_id: UUID
    valuation_id: UUID
    status: SessionStatus
    created_at: datetime
    expires_at: datetime
    applied_at: datetime | None
    is_expired: bool
    overrides: tuple[OverrideView, ...]
    summary: SessionSummary

    @classmethod
    def of(cls, session: ReconciliationSession, now: datetime) -> SessionView:
        overrides = sorted(session.overrides, key=lambda item: item.line_item_code)
        return cls(
            id=session.id,
            validation_run_id=session.validation_run_id,
            valuation_id=session.valuation_id,
            status=session.status,
            created_at=session.created_at,
            expires_at=session.expires_at,
            applied_at=session.applied_at,
            is_expired=session.is_expired(now),
            overrides=tuple(OverrideView.of(item) for item in overrides),
            summary=SessionSummary.of(overrides),
        )


@dataclass(frozen=True, slots=True)
class ApplyResult:
    session_id: UUID
    valuation: ValuationState
    change_summary: ChangeSummary
    revaluation_source: RevaluationSource
    final_codes: frozenset[str]
    excluded_codes: frozenset[str]
    provider_failure: str | None = None


def candidate_selection(
    current_codes: Iterable[str],
    overrides: Iterable[Override],
) -> tuple[frozenset[str], frozenset[str]]:
    """Apply each override to the current selection.

    Returns the candidate set and the codes the operator explicitly kept selected.
    """

    selected = set(current_codes)
    kept: set[str] = set()
    for override in overrides:
        code = override.line_item_code
        if override.desired_membership(code in selected):
            selected.add(code)
        else:
            selected.discard(code)
        if override.keep_original and override.original_selected:
            kept.add(code)
    return frozenset(selected), frozenset(kept)


def _override_for(item: LineItem, verdict: LineItemVerdict | None) -> Override:
    return Override(
        line_item_code=item.code,
        line_item_name=item.name,
        recommendation=(
            verdict.status.recommendation if verdict is not None else Recommendation.NO_CHANGE
        ),
        original_selected=item.is_selected,
        verdict=verdict.status if verdict is not None else None,
        confidence=verdict.confidence if verdict is not None else None,
    )


def _selection_reason(
    item: LineItem,
    *,
    selected: bool,
    override: Override | None,
    candidates: frozenset[str],
    result: SelectionResult,
    line_items: list[LineItem],
) -> str:
    if item.code in result.excluded_codes:
        sources = ", ".join(result.excluded_by(item.code, line_items))
        return f"Excluded by selected line item {sources}"
    if item.code in result.rejected_codes:
        return "Deselected: conflicts with a selection the operator kept"
    if selected and item.code not in candidates:
        sources = ", ".join(result.included_by(item.code, line_items))
        return f"Included by selected line item {sources}"
    if override is not None and override.keep_original:
        return "Operator override: kept original selection"
    if override is not None and override.recommendation is not Recommendation.NO_CHANGE:
        verdict = override.verdict.value if override.verdict is not None else "AI"
        return f"Followed AI recommendation ({verdict})"
    return "Selection closure"


@dataclass(slots=True)
class SessionManager:
    uow_factory: Callable[[], ReconciliationUnitOfWork]
    revaluation: RevaluationOrchestrator = field(default_factory=RevaluationOrchestrator)
    clock: Clock = utcnow
    session_ttl: timedelta = DEFAULT_SESSION_TTL

    # --- open ---------------------------------------------------------------

    def open_session(self, validation_run_id: UUID) -> SessionView:
        with self.uow_factory() as uow:
            repos = uow.repositories
            run = repos.validation_runs.get(validation_run_id)
            if run is None:
                raise NotFoundError(f"Validation run {validation_run_id} not found")
            if repos.sessions.get_for_run(run.id) is not None:
                raise ConflictError(f"Validation run {run.id} already has a session")
            valuation = repos.valuations.get(run.valuation_id)
            if valuation is None:
                raise NotFoundError(f"Valuation {run.valuation_id} not found")

            now = self.clock()
            active = repos.sessions.find_open(valuation.id, now)
            if active is not None:
                raise ConflictError(
                    f"Valuation {valuation.id} already has an open session {active.id}"
                )

            session = ReconciliationSession(
                validation_run_id=run.id,
                valuation_id=valuation.id,
                created_at=now,
                expires_at=now + self.session_ttl,
            )
            items = {item.code: item for item in valuation.line_items}
            verdicts = run.verdicts_by_code()
            for code in sorted(items.keys() & verdicts.keys()):
                session.add_override(_override_for(items[code], verdicts[code]))

            unknown = sorted(verdicts.keys() - items.keys())
            if unknown:
                log.info(
                    "Ignoring verdicts for codes not on valuation %s: %s", valuation.id, unknown
                )

            self._ensure_coverage(session, items)
            repos.sessions.add(session)
            uow.commit()
            log.info(
                "Opened session %s for run %s with %d overrides (expires %s)",
                session.id,
                run.id,
                len(session.overrides),
                session.expires_at.isoformat(),
            )
            return SessionView.of(session, now)

    def _ensure_coverage(
        self,
        session: ReconciliationSession,
        items: Mapping[str, LineItem],
    ) -> None:
        missing = sorted(items.keys() - session.covered_codes())
        if missing:
            log.warning(
                "Session %s: validation run omitted %d line item(s) %s; back-filling NO_CHANGE",
                session.id,
                len(missing),
                missing,
            )
            for code in missing:
                session.add_override(_override_for(items[code], None))

        covered = session.covered_codes()
        if covered != items.keys() or len(session.overrides) != len(items):
            log.error(
                "Session %s override coverage mismatch: overrides=%s line_items=%s",
                session.id,
                sorted(covered),
                sorted(items),
            )
            raise InvariantViolationError(
                f"Session {session.id} overrides do not match the valuation's line items"
            )

    # --- read ---------------------------------------------------------------

    def get_session(self, session_id: UUID) -> SessionView:
        with self.uow_factory() as uow:
            session = self._load(uow.repositories, session_id)
            return SessionView.of(session, self.clock())

    # --- toggle -------------------------------------------------------------

    def toggle_override(self, session_id: UUID, line_item_code: str) -> OverrideView:
        code = line_item_code.strip() if line_item_code else ""
        if not code:
            raise InvalidInputError("A line item code is required to toggle an override")

        with self.uow_factory() as uow:
            session = self._load(uow.repositories, session_id)
            session.ensure_mutable(self.clock())
            override = session.override_for(code)
            if override is None:
                raise NotFoundError(f"Session {session.id} has no override for {code!r}")
            override.toggle()
            uow.commit()
            log.info(
                "Session %s: %s now %s",
                session.id,
                code,
                "keeps original selection" if override.keep_original else "follows recommendation",
            )
            return OverrideView.of(override)

    # --- apply --------------------------------------------------------------

    def apply(self, session_id: UUID) -> ApplyResult:
        with self.uow_factory() as uow:
            repos = uow.repositories
            now = self.clock()
            session = self._load(repos, session_id)
            session.ensure_mutable(now)
            if not repos.sessions.claim_for_apply(session.id):
                raise ConflictError(f"Session {session.id} is already being applied")

            valuation = self._current_target(repos, session)
            run = repos.validation_runs.get(session.validation_run_id)
            if run is None:
                raise NotFoundError(f"Validation run {session.validation_run_id} not found")

            candidates, kept = candidate_selection(valuation.selected_codes(), session.overrides)
            result = resolve(candidates, valuation.line_items, pinned=kept)

            if repos.snapshots.get_for_run(run.id) is None:
                SnapshotStore(repos, clock=self.clock).create_snapshot(
                    run.id,
                    valuation.id,
                    SnapshotReason.PRE_VALIDATION,
                    description=f"Before applying session {session.id}",
                )

            ledger = ChangeLedger(run.id, valuation.id, repos.ledger, clock=self.clock)
            before = valuation.totals()
            self._apply_selection(valuation, session, candidates, result, ledger)

            revalued = self.revaluation.revaluate(valuation, result.final_codes)
            if not revalued.success or revalued.values is None:
                raise RevaluationError(
                    f"Could not revalue {valuation.id}: {revalued.error or 'no values produced'}"
                )
            valuation.write_values(revalued.values)
            if revalued.request_id:
                valuation.request_id = revalued.request_id
            ledger.log_revaluation(
                before,
                valuation.totals(),
                f"Revaluation after applying session ({revalued.source.value})",
            )

            ledger.commit()
            session.mark_applied(now)
            uow.commit()

            summary = ledger.summarize()
            log.info(
                "Applied session %s: %d changes, trade-in impact %+d, source=%s",
                session.id,
                summary.total_changes,
                summary.value_impact,
                revalued.source.value,
            )
            return ApplyResult(
                session_id=session.id,
                valuation=ValuationState.capture(valuation),
                change_summary=summary,
                revaluation_source=revalued.source,
                final_codes=result.final_codes,
                excluded_codes=result.excluded_codes,
                provider_failure=(
                    str(revalued.provider_failure) if revalued.provider_failure else None
                ),
            )

    def _current_target(
        self,
        repos: ReconciliationRepositories,
        session: ReconciliationSession,
    ) -> Valuation:
        valuation = repos.valuations.get(session.valuation_id)
        if valuation is None:
            raise NotFoundError(f"Valuation {session.valuation_id} not found")
        latest = repos.valuations.latest_for(valuation.vehicle_id, valuation.provider)
        if latest is not None and latest.id != valuation.id:
            raise ConflictError("Reconciliation target has changed; re-run validation")
        return valuation

    def _apply_selection(
        self,
        valuation: Valuation,
        session: ReconciliationSession,
        candidates: frozenset[str],
        result: SelectionResult,
        ledger: ChangeLedger,
    ) -> None:
        items = sorted(valuation.line_items, key=lambda item: item.code)
        for item in items:
            selected = result.is_selected(item.code)
            if item.is_selected != selected:
                override = session.override_for(item.code)
                ledger.log_selection_change(
                    item.id,
                    item.code,
                    selected,
                    _selection_reason(
                        item,
                        selected=selected,
                        override=override,
                        candidates=candidates,
                        result=result,
                        line_items=items,
                    ),
                    confidence=override.confidence if override else None,
                    verdict=override.verdict.value if override and override.verdict else None,
                )
            item.is_selected = selected
            item.is_available = result.is_available(item.code)

    @staticmethod
    def _load(repos: ReconciliationRepositories, session_id: UUID) -> ReconciliationSession:
        session = repos.sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session
