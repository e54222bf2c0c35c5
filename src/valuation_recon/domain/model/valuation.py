"""Valuations ("bookouts") and their priced line items."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from .entity import Entity

if TYPE_CHECKING:
    from collections.abc import Iterable


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_int(value: int | None) -> int:
    return value if value is not None else 0


@dataclass(frozen=True, slots=True)
class VehicleIdentity:
    """What the valuation provider needs to locate a vehicle."""

    vin: str | None
    provider_vehicle_id: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.vin and self.vin.strip())


@dataclass(frozen=True, slots=True)
class ValueTotals:
    """Headline figures used for ledger and comparison reporting."""

    clean_trade_in: int = 0
    clean_retail: int = 0
    loan_value: int = 0

    def minus(self, other: ValueTotals) -> ValueTotals:
        return ValueTotals(
            clean_trade_in=self.clean_trade_in - other.clean_trade_in,
            clean_retail=self.clean_retail - other.clean_retail,
            loan_value=self.loan_value - other.loan_value,
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "clean_trade_in": self.clean_trade_in,
            "clean_retail": self.clean_retail,
            "loan_value": self.loan_value,
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class ValuationValues:
    """All price figures carried by a valuation.

    Base values are the provider's "average" vehicle; adjusted values include
    mileage and selected line items.
    """

    base_clean_trade_in: int | None = None
    base_average_trade_in: int | None = None
    base_rough_trade_in: int | None = None
    base_clean_retail: int | None = None
    base_loan_value: int | None = None
    clean_trade_in: int | None = None
    average_trade_in: int | None = None
    rough_trade_in: int | None = None
    clean_retail: int | None = None
    loan_value: int | None = None
    mileage_adjustment: int | None = None
    options_trade_in: int | None = None
    options_retail: int | None = None
    options_loan: int | None = None

    def totals(self) -> ValueTotals:
        return ValueTotals(
            clean_trade_in=_as_int(self.clean_trade_in),
            clean_retail=_as_int(self.clean_retail),
            loan_value=_as_int(self.loan_value),
        )


VALUE_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(ValuationValues))


def parse_code_list(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """Normalise a comma separated code list (``"A,B , C"``) into a tuple."""

    if value is None:
        return ()
    parts = value.split(",") if isinstance(value, str) else value
    codes: list[str] = []
    for part in parts:
        code = part.strip()
        if code and code.upper() != "N/A" and code not in codes:
            codes.append(code)
    return tuple(codes)


@dataclass(eq=False, kw_only=True)
class LineItem(Entity):
    """One priced optional feature on a valuation."""

    code: str
    name: str
    category: str | None = None
    item_type: str | None = None
    msrp: int | None = None
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
    valuation_id: UUID | None = None

    def __post_init__(self) -> None:
        self.includes_codes = parse_code_list(self.includes_codes)
        self.excludes_codes = parse_code_list(self.excludes_codes)

    @property
    def counts_toward_fallback(self) -> bool:
        """Selected items that are not already part of the base price."""
        return self.is_selected and not self.factory_installed


@dataclass(eq=False, kw_only=True)
class Valuation(Entity):
    """A priced vehicle record from one external provider."""

    vehicle_id: str
    provider: str = "jdpower"
    provider_vehicle_id: str | None = None
    region: int = 1
    mileage: int | None = None
    base_clean_trade_in: int | None = None
    base_average_trade_in: int | None = None
    base_rough_trade_in: int | None = None
    base_clean_retail: int | None = None
    base_loan_value: int | None = None
    clean_trade_in: int | None = None
    average_trade_in: int | None = None
    rough_trade_in: int | None = None
    clean_retail: int | None = None
    loan_value: int | None = None
    mileage_adjustment: int | None = None
    options_trade_in: int | None = None
    options_retail: int | None = None
    options_loan: int | None = None
    request_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    line_items: list[LineItem] = field(default_factory=list)

    @property
    def identity(self) -> VehicleIdentity:
        return VehicleIdentity(vin=self.vehicle_id, provider_vehicle_id=self.provider_vehicle_id)

    def values(self) -> ValuationValues:
        return ValuationValues(**{name: getattr(self, name) for name in VALUE_FIELDS})

    def write_values(self, values: ValuationValues) -> None:
        """Overwrite every price figure; this is a full replace, not a merge."""
        for name in VALUE_FIELDS:
            setattr(self, name, getattr(values, name))

    def totals(self) -> ValueTotals:
        return self.values().totals()

    def line_item(self, code: str) -> LineItem | None:
        for item in self.line_items:
            if item.code == code:
                return item
        return None

    def add_line_item(self, item: LineItem) -> LineItem:
        if self.line_item(item.code) is not None:
            raise ValueError(f"Line item code {item.code!r} already present on valuation")
        item.valuation_id = self.id
        self.line_items.append(item)
        return item

    def selected_codes(self) -> frozenset[str]:
        return frozenset(item.code for item in self.line_items if item.is_selected)
