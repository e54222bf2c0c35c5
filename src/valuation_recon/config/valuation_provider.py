"""Valuation provider configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import optional_float, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

VALUATION_PROVIDER_BASE_URL = "https://cloud.jdpower.ai/data-api/UAT/valuationservices"
VALUATION_PROVIDER_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ValuationProviderConfig:
    """Holds valuation provider API configuration values."""

    api_key: str
    resilience: ResilienceConfig
    provider_name: str = "jdpower"
    vehicle_type: str = "UsedCar"
    period: str = "0"


def get_valuation_provider_config(
    *,
    resilience: ResilienceConfig | None = None,
) -> ValuationProviderConfig:
    values = require_env_vars(("VALUATION_PROVIDER_API_KEY",))
    base_url = os.getenv("VALUATION_PROVIDER_BASE_URL") or VALUATION_PROVIDER_BASE_URL
    timeout = optional_float(
        "VALUATION_PROVIDER_TIMEOUT_SECONDS", VALUATION_PROVIDER_TIMEOUT_SECONDS
    )
    return ValuationProviderConfig(
        api_key=values["VALUATION_PROVIDER_API_KEY"],
        resilience=resilience
        or ResilienceConfig(
            name="valuation_provider",
            base_url=base_url.rstrip("/"),
            timeout_seconds=timeout,
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers={"Accept": "application/json"},
        ),
    )
