"""Public interface for the valuation provider adapter."""

from __future__ import annotations

from .client import HttpValuationProvider, ValuationProviderError
from .schema import AccessoryPayload, AccessoryResponse, ValuationResponse, VehicleValuesPayload
from .translator import to_accessory_quote, to_accessory_quotes, to_base_quote

__all__ = [
    "AccessoryPayload",
    "AccessoryResponse",
    "HttpValuationProvider",
    "ValuationProviderError",
    "ValuationResponse",
    "VehicleValuesPayload",
    "to_accessory_quote",
    "to_accessory_quotes",
    "to_base_quote",
]
