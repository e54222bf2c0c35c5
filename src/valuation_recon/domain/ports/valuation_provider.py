"""Port for the external valuation provider.

Provider calls return an explicit ``ProviderQuote | ProviderFailure`` value
instead of raising, so callers branch on the outcome rather than catching.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from valuation_recon.domain.model import VehicleIdentity


@dataclass(frozen=True, slots=True, kw_only=True)
class BaseQuote:
    provider_vehicle_id: str | None = None
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
    description: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AccessoryQuote:
    code: str
    name: str
    category: str | None = None
    item_type: str | None = None
    msrp: int | None = None
    trade_in: int | None = None
    retail: int | None = None
    loan: int | None = None
    included_in_base: bool = False
    factory_added: bool = False
    includes_codes: tuple[str, ...] = ()
    excludes_codes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ProviderQuote:
    base: BaseQuote
    accessories: tuple[AccessoryQuote, ...] = ()

    def accessories_by_code(self) -> dict[str, AccessoryQuote]:
        by_code: dict[str, AccessoryQuote] = {}
        for accessory in self.accessories:
            by_code.setdefault(accessory.code, accessory)
        return by_code


class ProviderFailureKind(StrEnum):
    NOT_CONFIGURED = "not_configured"
    MISSING_IDENTITY = "missing_identity"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED_PAYLOAD = "malformed_payload"


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    kind: ProviderFailureKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


type QuoteResult = ProviderQuote | ProviderFailure


@runtime_checkable
class ValuationProvider(Protocol):
    """Two read endpoints keyed by vehicle identity, folded into one quote."""

    @property
    def name(self) -> str: ...

    def quote(
        self,
        identity: VehicleIdentity,
        *,
        mileage: int | None,
        region: int,
    ) -> QuoteResult: ...
