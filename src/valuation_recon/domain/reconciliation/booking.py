"""Create valuations from provider quotes."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.clock import utcnow
from valuation_recon.domain.errors import InvalidInputError, ProviderUnavailableError
from valuation_recon.domain.model import LineItem, Valuation, ValuationState, VehicleIdentity
from valuation_recon.domain.ports import ProviderFailure, ProviderQuote

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from valuation_recon.domain.clock import Clock
    from valuation_recon.domain.ports import (
        AccessoryQuote,
        ReconciliationUnitOfWork,
        ValuationProvider,
    )

log = getLogger(__name__)


def _line_item_from(accessory: AccessoryQuote) -> LineItem:
    # included-in-base items are already priced into the base values
    def adjustment(amount: int | None) -> int | None:
        return 0 if accessory.included_in_base else amount

    installed = accessory.factory_added or accessory.included_in_base
    return LineItem(
        code=accessory.code,
        name=accessory.name,
        category=accessory.category,
        item_type=accessory.item_type,
        msrp=accessory.msrp,
        clean_trade_adj=adjustment(accessory.trade_in),
        average_trade_adj=adjustment(accessory.trade_in),
        rough_trade_adj=adjustment(accessory.trade_in),
        clean_retail_adj=adjustment(accessory.retail),
        loan_adj=adjustment(accessory.loan),
        factory_installed=installed,
        is_selected=installed,
        is_available=True,
        includes_codes=accessory.includes_codes,
        excludes_codes=accessory.excludes_codes,
    )


def build_valuation(
    quote: ProviderQuote,
    *,
    vehicle_id: str,
    provider: str,
    region: int,
    mileage: int | None,
    created_at: datetime,
) -> Valuation:
    base = quote.base
    valuation = Valuation(
        vehicle_id=vehicle_id,
        provider=provider,
        provider_vehicle_id=base.provider_vehicle_id,
        region=region,
        mileage=mileage,
        base_clean_trade_in=base.base_clean_trade_in,
        base_average_trade_in=base.base_average_trade_in,
        base_rough_trade_in=base.base_rough_trade_in,
        base_clean_retail=base.base_clean_retail,
        base_loan_value=base.base_loan_value,
        clean_trade_in=base.clean_trade_in,
        average_trade_in=base.average_trade_in,
        rough_trade_in=base.rough_trade_in,
        clean_retail=base.clean_retail,
        loan_value=base.loan_value,
        mileage_adjustment=base.mileage_adjustment,
        options_trade_in=base.options_trade_in,
        options_retail=base.options_retail,
        options_loan=base.options_loan,
        request_id=base.request_id,
        created_at=created_at,
    )
    for accessory in quote.accessories:
        if valuation.line_item(accessory.code) is not None:
            log.warning("Skipping duplicate accessory code %s for %s", accessory.code, vehicle_id)
            continue
        valuation.add_line_item(_line_item_from(accessory))
    return valuation


@dataclass(slots=True)
class BookingService:
    uow_factory: Callable[[], ReconciliationUnitOfWork]
    provider: ValuationProvider
    clock: Clock = utcnow

    def book(
        self,
        vehicle_id: str,
        *,
        mileage: int | None = None,
        region: int = 1,
        provider_vehicle_id: str | None = None,
    ) -> ValuationState:
        """Fetch a fresh valuation; it supersedes earlier ones for the same vehicle."""

        identity = VehicleIdentity(vin=vehicle_id, provider_vehicle_id=provider_vehicle_id)
        if not identity.is_complete:
            raise InvalidInputError("A vehicle identifier is required to book a valuation")
        if mileage is not None and mileage < 0:
            raise InvalidInputError(f"Mileage must be non-negative, got {mileage}")

        outcome = self.provider.quote(identity, mileage=mileage, region=region)
        if isinstance(outcome, ProviderFailure):
            # nothing stored locally to fall back on
            raise ProviderUnavailableError(f"Valuation provider failed: {outcome}")

        valuation = build_valuation(
            outcome,
            vehicle_id=vehicle_id.strip(),
            provider=self.provider.name,
            region=region,
            mileage=mileage,
            created_at=self.clock(),
        )
        with self.uow_factory() as uow:
            uow.repositories.valuations.add(valuation)
            uow.commit()
        log.info(
            "Booked valuation %s for %s with %d line items",
            valuation.id,
            valuation.vehicle_id,
            len(valuation.line_items),
        )
        return ValuationState.capture(valuation)
