"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.adapters.recommendations import (
    parse_comparison_payload,
    parse_comparison_text,
)
from valuation_recon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    is_started,
    startup,
)
from valuation_recon.adapters.valuation_provider import HttpValuationProvider
from valuation_recon.config import (
    MissingConfigurationError,
    get_reconciliation_config,
    get_valuation_provider_config,
)
from valuation_recon.domain.reconciliation import (
    AuditService,
    BookingService,
    RevaluationOrchestrator,
    SelectionEditor,
    SessionManager,
    ValidationRunRecorder,
)

if TYPE_CHECKING:
    from uuid import UUID

    from valuation_recon.domain.model import ValuationState
    from valuation_recon.domain.ports import ReconciliationUnitOfWork, ValuationProvider
    from valuation_recon.domain.reconciliation import (
        ApplyResult,
        Comparison,
        OverrideView,
        SelectionUpdate,
        SessionView,
    )

UnitOfWorkFactory = Callable[[], "ReconciliationUnitOfWork"]


log = getLogger(__name__)


def _resolve_uow(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def build_http_valuation_provider() -> HttpValuationProvider:
    return HttpValuationProvider(config=get_valuation_provider_config())


def _optional_provider() -> ValuationProvider | None:
    try:
        return build_http_valuation_provider()
    except MissingConfigurationError as exc:
        # apply still works from stored line-item data
        log.warning(f"Valuation provider not configured, revaluation will use fallback: {exc}")
        return None


def _session_manager(
    unit_of_work_factory: UnitOfWorkFactory | None,
    provider: ValuationProvider | None = None,
) -> SessionManager:
    config = get_reconciliation_config()
    return SessionManager(
        uow_factory=_resolve_uow(unit_of_work_factory),
        revaluation=RevaluationOrchestrator(provider=provider),
        session_ttl=config.session_ttl,
    )


def book_valuation(
    vehicle_id: str,
    *,
    mileage: int | None = None,
    region: int | None = None,
    provider: ValuationProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ValuationState:
    """Fetch and store a fresh valuation for a vehicle."""

    service = BookingService(
        uow_factory=_resolve_uow(unit_of_work_factory),
        provider=provider or build_http_valuation_provider(),
    )
    effective_region = region if region is not None else get_reconciliation_config().default_region
    log.info(f"Booking valuation for {vehicle_id} (mileage={mileage}, region={effective_region})")
    return service.book(vehicle_id, mileage=mileage, region=effective_region)


def import_validation_run(
    valuation_id: UUID,
    payload: str | Mapping[str, object],
    *,
    source: str = "gemini",
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> UUID:
    """Record AI comparison output (raw text or parsed JSON) as a validation run."""

    if isinstance(payload, str):
        batch = parse_comparison_text(payload, source=source)
    else:
        batch = parse_comparison_payload(payload, source=source)
    recorder = ValidationRunRecorder(uow_factory=_resolve_uow(unit_of_work_factory))
    return recorder.record(
        valuation_id,
        batch.verdicts,
        source=batch.source,
        raw_payload=batch.raw_payload,
    )


def open_session(
    validation_run_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SessionView:
    return _session_manager(unit_of_work_factory).open_session(validation_run_id)


def get_session(
    session_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SessionView:
    return _session_manager(unit_of_work_factory).get_session(session_id)


def toggle_override(
    session_id: UUID,
    line_item_code: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> OverrideView:
    return _session_manager(unit_of_work_factory).toggle_override(session_id, line_item_code)


def apply_session(
    session_id: UUID,
    *,
    provider: ValuationProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ApplyResult:
    """Apply a session's overrides; re-pricing falls back to stored data if the provider fails."""

    effective_provider = provider or _optional_provider()
    result = _session_manager(unit_of_work_factory, effective_provider).apply(session_id)
    log.info(
        f"Applied session {session_id}: source={result.revaluation_source.value}, "
        f"changes={result.change_summary.total_changes}"
    )
    return result


def get_comparison(
    validation_run_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Comparison:
    return AuditService(uow_factory=_resolve_uow(unit_of_work_factory)).get_comparison(
        validation_run_id
    )


def restore_from_snapshot(
    validation_run_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ValuationState:
    return AuditService(uow_factory=_resolve_uow(unit_of_work_factory)).restore_from_snapshot(
        validation_run_id
    )


def update_selection(
    valuation_id: UUID,
    codes: Iterable[str],
    *,
    validation_run_id: UUID | None = None,
    provider: ValuationProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SelectionUpdate:
    """Set a valuation's selected line items directly and re-price it.

    Passing ``validation_run_id`` records the changes in that run's ledger.
    """

    editor = SelectionEditor(
        uow_factory=_resolve_uow(unit_of_work_factory),
        revaluation=RevaluationOrchestrator(provider=provider or _optional_provider()),
    )
    result = editor.update_selection(valuation_id, codes, validation_run_id=validation_run_id)
    log.info(
        f"Updated selection of {valuation_id}: {len(result.final_codes)} selected, "
        f"source={result.revaluation_source.value}"
    )
    return result
