"""HTTP client for the valuation provider (JD Power valuation services)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from valuation_recon.adapters.http_resilience import ResilienceConfig, ResilientClient
from valuation_recon.config.valuation_provider import (
    ValuationProviderConfig,
    get_valuation_provider_config,
)
from valuation_recon.domain.ports import (
    ProviderFailure,
    ProviderFailureKind,
    ProviderQuote,
    ValuationProvider,
)

from .schema import AccessoryPayload, AccessoryResponse, ValuationResponse
from .translator import to_accessory_quotes, to_base_quote

if TYPE_CHECKING:
    from collections.abc import Callable

    from valuation_recon.domain.model import VehicleIdentity
    from valuation_recon.domain.ports import QuoteResult

log = getLogger(__name__)

VALUES_PATH = "/valuation/defaultVehicleAndValuesByVin"
ACCESSORIES_PATH = "/valuation/accessoryDataByVinAndVehicleId"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class ValuationProviderError(RuntimeError):
    """Raised internally when a provider payload cannot be used."""


@dataclass(slots=True)
class HttpValuationProvider:
    config: ValuationProviderConfig = field(default_factory=get_valuation_provider_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    @property
    def name(self) -> str:
        return self.config.provider_name

    def quote(
        self,
        identity: VehicleIdentity,
        *,
        mileage: int | None,
        region: int,
    ) -> QuoteResult:
        if not identity.is_complete or identity.vin is None:
            return ProviderFailure(ProviderFailureKind.MISSING_IDENTITY, "no VIN supplied")
        return asyncio.run(
            self._quote_async(
                vin=identity.vin.strip(),
                provider_vehicle_id=identity.provider_vehicle_id,
                mileage=mileage,
                region=region,
            )
        )

    async def _quote_async(
        self,
        *,
        vin: str,
        provider_vehicle_id: str | None,
        mileage: int | None,
        region: int,
    ) -> QuoteResult:
        try:
            async with self.client_factory(self.config.resilience) as client:
                valuation = await self._request_values(
                    client=client, vin=vin, mileage=mileage, region=region
                )
                vehicle = valuation.result[0]
                vehicle_id = provider_vehicle_id or vehicle.ucgvehicleid
                if vehicle_id is None:
                    raise ValuationProviderError("provider returned no vehicle id")
                accessories = await self._request_accessories(
                    client=client, vin=vin, vehicle_id=vehicle_id, region=region
                )
        except httpx.TimeoutException as exc:
            log.warning(f"Valuation provider timed out for {vin}: {exc!r}")
            return ProviderFailure(ProviderFailureKind.TIMEOUT, str(exc) or "request timed out")
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            log.warning(f"Valuation provider returned HTTP {status} for {vin}")
            return ProviderFailure(ProviderFailureKind.HTTP_ERROR, f"HTTP {status}")
        except httpx.HTTPError as exc:
            log.warning(f"Valuation provider transport error for {vin}: {exc!r}")
            reason = str(exc) or type(exc).__name__
            return ProviderFailure(ProviderFailureKind.TRANSPORT_ERROR, reason)
        except (ValidationError, ValuationProviderError, ValueError) as exc:
            log.warning(f"Valuation provider payload unusable for {vin}: {exc}")
            return ProviderFailure(ProviderFailureKind.MALFORMED_PAYLOAD, str(exc))

        return ProviderQuote(
            base=to_base_quote(vehicle, request_id=valuation.request_id),
            accessories=to_accessory_quotes(accessories),
        )

    async def _request_values(
        self,
        *,
        client: ResilientClient,
        vin: str,
        mileage: int | None,
        region: int,
    ) -> ValuationResponse:
        params: dict[str, str | int] = {
            "vin": vin,
            "period": self.config.period,
            "region": region,
            "vehicletype": self.config.vehicle_type,
        }
        if mileage is not None:
            params["mileage"] = mileage
        payload = await self._perform_request(
            client=client, path=VALUES_PATH, params=httpx.QueryParams(params)
        )
        response = ValuationResponse.model_validate(payload)
        if not response.result:
            raise ValuationProviderError(f"no valuation result for VIN {vin}")
        return response

    async def _request_accessories(
        self,
        *,
        client: ResilientClient,
        vin: str,
        vehicle_id: str,
        region: int,
    ) -> list[AccessoryPayload]:
        params = httpx.QueryParams(
            {
                "vin": vin,
                "ucgvehicleid": vehicle_id,
                "period": self.config.period,
                "region": region,
                "vehicletype": self.config.vehicle_type,
            }
        )
        payload = await self._perform_request(client=client, path=ACCESSORIES_PATH, params=params)
        return AccessoryResponse.model_validate(payload).result

    async def _perform_request(
        self,
        *,
        client: ResilientClient,
        path: str,
        params: httpx.QueryParams,
    ) -> dict[str, object]:
        base_url = self.config.resilience.base_url or ""
        response = await client.get(
            f"{base_url}{path}",
            params=params,
            headers={"api-key": self.config.api_key},
        )
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict):
            raise ValuationProviderError(f"unexpected payload type from {path}")
        return payload


if TYPE_CHECKING:
    _provider_check: ValuationProvider = HttpValuationProvider()
