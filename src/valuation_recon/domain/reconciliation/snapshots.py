"""Snapshot store: write-once copies of a valuation and restore from them."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import ConflictError, NotFoundError
from valuation_recon.domain.model import Snapshot, SnapshotData, SnapshotReason

if TYPE_CHECKING:
    from uuid import UUID

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.model import Valuation
    from valuation_recon.domain.ports import ReconciliationRepositories

log = getLogger(__name__)


@dataclass(slots=True)
class SnapshotStore:
    """Works inside the caller's unit of work; never commits on its own."""

    repositories: ReconciliationRepositories
    clock: Clock = utcnow

    def create_snapshot(
        self,
        validation_run_id: UUID,
        valuation_id: UUID,
        reason: SnapshotReason = SnapshotReason.PRE_VALIDATION,
        description: str | None = None,
    ) -> UUID:
        valuation = self.repositories.valuations.get(valuation_id)
        if valuation is None:
            raise NotFoundError(f"Valuation {valuation_id} not found")
        if self.repositories.snapshots.get_for_run(validation_run_id) is not None:
            raise ConflictError(f"Validation run {validation_run_id} already has a snapshot")

        now = self.clock()
        snapshot = Snapshot(
            validation_run_id=validation_run_id,
            valuation_id=valuation.id,
            reason=reason,
            description=description,
            data=SnapshotData.capture(valuation, timestamp=now),
            created_at=now,
        )
        self.repositories.snapshots.add(snapshot)
        log.info(
            "Snapshot %s taken of valuation %s (%d line items, %d selected)",
            snapshot.id,
            valuation.id,
            snapshot.data.metadata.total_line_items,
            snapshot.data.metadata.selected_line_items,
        )
        return snapshot.id

    def restore(self, snapshot_id: UUID) -> Valuation:
        """Overwrite the live valuation with the snapshot's values and selection flags.

        Every referenced line item is checked before anything is written, so a
        missing item leaves the valuation untouched.
        """

        snapshot = self.repositories.snapshots.get(snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Snapshot {snapshot_id} not found")
        valuation = self.repositories.valuations.get(snapshot.valuation_id)
        if valuation is None:
            raise NotFoundError(f"Valuation {snapshot.valuation_id} no longer exists")

        state = snapshot.data.valuation
        live_items = {item.id: item for item in valuation.line_items}
        missing = sorted(item.code for item in state.line_items if item.id not in live_items)
        if missing:
            raise NotFoundError(
                f"Line items {', '.join(missing)} from snapshot {snapshot_id} no longer exist"
            )

        valuation.write_values(state.values)
        for item_state in state.line_items:
            item = live_items[item_state.id]
            item.is_selected = item_state.is_selected
            item.is_available = item_state.is_available

        log.info("Restored valuation %s from snapshot %s", valuation.id, snapshot.id)
        return valuation
