"""Recording AI comparison runs against a valuation."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import NotFoundError
from valuation_recon.domain.model import SnapshotReason, ValidationRun

from .snapshots import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import LineItemVerdict
    from valuation_recon.domain.ports import ReconciliationUnitOfWork

log = getLogger(__name__)


@dataclass(slots=True)
class ValidationRunRecorder:
    uow_factory: Callable[[], ReconciliationUnitOfWork]
    clock: Clock = utcnow

    def record(
        self,
        valuation_id: UUID,
        verdicts: Sequence[LineItemVerdict],
        *,
        source: str = "ai",
        raw_payload: dict[str, Any] | None = None,
    ) -> UUID:
        with self.uow_factory() as uow:
            repos = uow.repositories
            valuation = repos.valuations.get(valuation_id)
            if valuation is None:
                raise NotFoundError(f"Valuation {valuation_id} not found")

            codes = {item.code for item in valuation.line_items}
            uncovered = codes - {verdict.code for verdict in verdicts}
            if uncovered:
                # sessions back-fill these with NO_CHANGE
                log.warning(
                    "No verdict for %d of %d line items on valuation %s: %s",
                    len(uncovered),
                    len(codes),
                    valuation.id,
                    sorted(uncovered),
                )

            run = ValidationRun(
                valuation_id=valuation.id,
                source=source,
                verdicts=tuple(verdicts),
                raw_payload=raw_payload,
                created_at=self.clock(),
            )
            repos.validation_runs.add(run)
            # the pre-validation state is what audit comparisons and restores go back to
            SnapshotStore(repos, clock=self.clock).create_snapshot(
                run.id,
                valuation.id,
                SnapshotReason.PRE_VALIDATION,
                description=f"Before validation run {run.id}",
            )
            uow.commit()

        log.info("Recorded validation run %s (%d verdicts)", run.id, len(verdicts))
        return run.id
