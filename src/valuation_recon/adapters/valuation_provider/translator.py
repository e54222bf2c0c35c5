"""Translate provider payloads into port-level quote objects."""

from __future__ import annotations

from typing import TYPE_CHECKING

from valuation_recon.domain.model import parse_code_list
from valuation_recon.domain.ports import AccessoryQuote, BaseQuote

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import AccessoryPayload, VehicleValuesPayload


def to_base_quote(vehicle: VehicleValuesPayload, *, request_id: str | None) -> BaseQuote:
    return BaseQuote(
        provider_vehicle_id=vehicle.ucgvehicleid,
        base_clean_trade_in=vehicle.basecleantrade,
        base_average_trade_in=vehicle.baseaveragetrade,
        base_rough_trade_in=vehicle.baseroughtrade,
        base_clean_retail=vehicle.basecleanretail,
        base_loan_value=vehicle.baseloan,
        clean_trade_in=vehicle.adjustedcleantrade,
        average_trade_in=vehicle.adjustedaveragetrade,
        rough_trade_in=vehicle.adjustedroughtrade,
        clean_retail=vehicle.adjustedcleanretail,
        loan_value=vehicle.adjustedloan,
        mileage_adjustment=vehicle.mileageadjustment,
        options_trade_in=vehicle.vinoptionstrade,
        options_retail=vehicle.vinoptionsretail,
        options_loan=vehicle.vinoptionsloan,
        request_id=request_id,
        description=vehicle.description,
    )


def to_accessory_quote(payload: AccessoryPayload, *, index: int) -> AccessoryQuote:
    return AccessoryQuote(
        code=payload.acccode or f"UNK{index}",
        name=payload.accdesc or "Unknown accessory",
        category=payload.accessorycategory,
        item_type=payload.accessorytype,
        msrp=payload.msrp,
        trade_in=payload.tradein,
        retail=payload.retail,
        loan=payload.loan,
        included_in_base=payload.isincluded,
        factory_added=payload.isadded,
        includes_codes=parse_code_list(payload.includes),
        excludes_codes=parse_code_list(payload.excludes),
    )


def to_accessory_quotes(payloads: Iterable[AccessoryPayload]) -> tuple[AccessoryQuote, ...]:
    return tuple(
        to_accessory_quote(payload, index=index) for index, payload in enumerate(payloads)
    )
