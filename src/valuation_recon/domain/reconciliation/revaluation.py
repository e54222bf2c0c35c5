"""Re-pricing a valuation for a final line-item selection.

The provider path and the local fallback produce the same ``RevaluationResult``
shape; ``source`` records which one ran so operators know when figures were
computed from stale local data.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from valuation_recon.domain.errors import RevaluationError
from valuation_recon.domain.model import RevaluationSource, ValuationValues
from valuation_recon.domain.ports import (
    ProviderFailure,
    ProviderFailureKind,
    ProviderQuote,
)

if TYPE_CHECKING:
    from collections.abc import Collection

    from valuation_recon.domain.model import LineItem, Valuation
    from valuation_recon.domain.ports import QuoteResult, ValuationProvider

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class RevaluationResult:
    success: bool
    source: RevaluationSource
    values: ValuationValues | None = None
    error: str | None = None
    provider_failure: ProviderFailure | None = None
    request_id: str | None = None


def _plus(*amounts: int | None) -> int:
    return sum(amount or 0 for amount in amounts)


def price_quote(quote: ProviderQuote, selected_codes: Collection[str]) -> ValuationValues:
    """Combine fresh provider figures with the selected accessories.

    Accessories the provider reports as already included in the base price add
    nothing, which keeps them from being counted twice.
    """

    accessories = quote.accessories_by_code()
    trade = retail = loan = 0
    unpriced: list[str] = []
    for code in sorted(selected_codes):
        accessory = accessories.get(code)
        if accessory is None:
            unpriced.append(code)
            continue
        if accessory.included_in_base:
            continue
        trade += accessory.trade_in or 0
        retail += accessory.retail or 0
        loan += accessory.loan or 0
    if unpriced:
        log.warning("Provider returned no pricing for selected codes: %s", ", ".join(unpriced))

    base = quote.base
    return ValuationValues(
        base_clean_trade_in=base.base_clean_trade_in,
        base_average_trade_in=base.base_average_trade_in,
        base_rough_trade_in=base.base_rough_trade_in,
        base_clean_retail=base.base_clean_retail,
        base_loan_value=base.base_loan_value,
        clean_trade_in=_plus(base.base_clean_trade_in, base.mileage_adjustment, trade),
        average_trade_in=_plus(base.base_average_trade_in, base.mileage_adjustment, trade),
        rough_trade_in=_plus(base.base_rough_trade_in, base.mileage_adjustment, trade),
        clean_retail=_plus(base.base_clean_retail, retail),
        loan_value=_plus(base.base_loan_value, loan),
        mileage_adjustment=base.mileage_adjustment,
        options_trade_in=trade,
        options_retail=retail,
        options_loan=loan,
    )


def _trade_adjustment(item: LineItem, metric: str) -> int:
    value = getattr(item, metric)
    return value if value is not None else (item.clean_trade_adj or 0)


def price_locally(valuation: Valuation, selected_codes: Collection[str]) -> ValuationValues:
    """Approximate new values from stored line-item adjustments; never touches the network."""

    if not valuation.line_items:
        raise RevaluationError(f"Valuation {valuation.id} has no line items to price locally")

    chosen = [
        item
        for item in valuation.line_items
        if item.code in selected_codes and not item.factory_installed
    ]
    clean_trade = sum(item.clean_trade_adj or 0 for item in chosen)
    average_trade = sum(_trade_adjustment(item, "average_trade_adj") for item in chosen)
    rough_trade = sum(_trade_adjustment(item, "rough_trade_adj") for item in chosen)
    retail = sum(item.clean_retail_adj or 0 for item in chosen)
    loan = sum(item.loan_adj or 0 for item in chosen)

    mileage = valuation.mileage_adjustment
    return ValuationValues(
        base_clean_trade_in=valuation.base_clean_trade_in,
        base_average_trade_in=valuation.base_average_trade_in,
        base_rough_trade_in=valuation.base_rough_trade_in,
        base_clean_retail=valuation.base_clean_retail,
        base_loan_value=valuation.base_loan_value,
        clean_trade_in=_plus(valuation.base_clean_trade_in, mileage, clean_trade),
        average_trade_in=_plus(valuation.base_average_trade_in, mileage, average_trade),
        rough_trade_in=_plus(valuation.base_rough_trade_in, mileage, rough_trade),
        clean_retail=_plus(valuation.base_clean_retail, retail),
        loan_value=_plus(valuation.base_loan_value, loan),
        mileage_adjustment=mileage,
        options_trade_in=clean_trade,
        options_retail=retail,
        options_loan=loan,
    )


@dataclass(slots=True)
class RevaluationOrchestrator:
    provider: ValuationProvider | None = None

    def revaluate(self, valuation: Valuation, selected_codes: Collection[str]) -> RevaluationResult:
        outcome = self.request_quote(valuation)
        match outcome:
            case ProviderQuote():
                log.info("Revalued %s with provider data", valuation.id)
                return RevaluationResult(
                    success=True,
                    source=RevaluationSource.PROVIDER,
                    values=price_quote(outcome, selected_codes),
                    request_id=outcome.base.request_id,
                )
            case ProviderFailure():
                log.warning(
                    "Provider revaluation of %s failed (%s); using stored line-item data",
                    valuation.id,
                    outcome,
                )
                return self.fallback(valuation, selected_codes, failure=outcome)

    def request_quote(self, valuation: Valuation) -> QuoteResult:
        if self.provider is None:
            return ProviderFailure(ProviderFailureKind.NOT_CONFIGURED, "no valuation provider")
        identity = valuation.identity
        if not identity.is_complete:
            return ProviderFailure(
                ProviderFailureKind.MISSING_IDENTITY,
                f"valuation {valuation.id} has no vehicle identifier",
            )
        return self.provider.quote(identity, mileage=valuation.mileage, region=valuation.region)

    def fallback(
        self,
        valuation: Valuation,
        selected_codes: Collection[str],
        *,
        failure: ProviderFailure | None = None,
    ) -> RevaluationResult:
        if not valuation.line_items:
            return RevaluationResult(
                success=False,
                source=RevaluationSource.FALLBACK,
                error=f"valuation {valuation.id} has no line items to price locally",
                provider_failure=failure,
            )
        return RevaluationResult(
            success=True,
            source=RevaluationSource.FALLBACK,
            values=price_locally(valuation, selected_codes),
            provider_failure=failure,
        )
