"""Immutable point-in-time copies of a valuation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from .entity import Entity
from .enums import SnapshotReason
from .valuation import ValuationValues, ValueTotals

if TYPE_CHECKING:
    from .valuation import LineItem, Valuation


@dataclass(frozen=True, slots=True, kw_only=True)
class LineItemState:
    id: UUID
    code: str
    name: str
    category: str | None = None
    clean_trade_adj: int | None = None
    average_trade_adj: int | None = None
    rough_trade_adj: int | None = None
    clean_retail_adj: int | None = None
    loan_adj: int | None = None
    factory_installed: bool = False
    is_selected: bool = False
    is_available: bool = True
    includes_codes: tuple[str, ...] = ()
    excludes_codes: tuple[str, ...] = ()

    @classmethod
    def capture(cls, item: LineItem) -> LineItemState:
        return cls(
            id=item.id,
            code=item.code,
            name=item.name,
            category=item.category,
            clean_trade_adj=item.clean_trade_adj,
            average_trade_adj=item.average_trade_adj,
            rough_trade_adj=item.rough_trade_adj,
            clean_retail_adj=item.clean_retail_adj,
            loan_adj=item.loan_adj,
            factory_installed=item.factory_installed,
            is_selected=item.is_selected,
            is_available=item.is_available,
            includes_codes=tuple(item.includes_codes),
            excludes_codes=tuple(item.excludes_codes),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ValuationState:
    """Fully denormalised view of a valuation and its line items."""

    id: UUID
    vehicle_id: str
    provider: str
    provider_vehicle_id: str | None
    region: int
    mileage: int | None
    values: ValuationValues
    line_items: tuple[LineItemState, ...] = ()

    @classmethod
    def capture(cls, valuation: Valuation) -> ValuationState:
        items = sorted(valuation.line_items, key=lambda item: item.code)
        return cls(
            id=valuation.id,
            vehicle_id=valuation.vehicle_id,
            provider=valuation.provider,
            provider_vehicle_id=valuation.provider_vehicle_id,
            region=valuation.region,
            mileage=valuation.mileage,
            values=valuation.values(),
            line_items=tuple(LineItemState.capture(item) for item in items),
        )

    @property
    def totals(self) -> ValueTotals:
        return self.values.totals()

    @property
    def selected_codes(self) -> frozenset[str]:
        return frozenset(item.code for item in self.line_items if item.is_selected)


@dataclass(frozen=True, slots=True, kw_only=True)
class SnapshotMetadata:
    timestamp: datetime
    total_line_items: int
    selected_line_items: int
    totals: ValueTotals


@dataclass(frozen=True, slots=True, kw_only=True)
class SnapshotData:
    valuation: ValuationState
    metadata: SnapshotMetadata

    @classmethod
    def capture(cls, valuation: Valuation, *, timestamp: datetime) -> SnapshotData:
        state = ValuationState.capture(valuation)
        return cls(
            valuation=state,
            metadata=SnapshotMetadata(
                timestamp=timestamp,
                total_line_items=len(state.line_items),
                selected_line_items=len(state.selected_codes),
                totals=state.totals,
            ),
        )


@dataclass(eq=False, kw_only=True)
class Snapshot(Entity):
    """Write-once copy of a valuation taken before a validation run mutates it."""

    validation_run_id: UUID
    valuation_id: UUID
    reason: SnapshotReason
    data: SnapshotData
    description: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
