"""Pydantic models describing the valuation provider payloads.

The provider sends numbers as numbers, numeric strings, blanks or ``"N/A"``;
every numeric field is parsed defensively and unusable values become ``None``.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MISSING = {"", "N/A", "NA", "NULL", "NONE"}
_TRUTHY = {"1", "TRUE", "Y", "YES"}


def _blank_to_none(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return None if stripped.upper() in _MISSING else stripped
    return str(value)


def _safe_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip().replace(",", "").replace("$", "")
    if text.upper() in _MISSING:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def _flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().upper() in _TRUTHY
    return False


class ProviderBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class VehicleValuesPayload(ProviderBaseModel):
    ucgvehicleid: str | None = None
    modelyear: int | None = None
    make: str | None = None
    model: str | None = None
    trim: str | None = None
    basecleantrade: int | None = None
    baseaveragetrade: int | None = None
    baseroughtrade: int | None = None
    basecleanretail: int | None = None
    baseloan: int | None = None
    adjustedcleantrade: int | None = None
    adjustedaveragetrade: int | None = None
    adjustedroughtrade: int | None = None
    adjustedcleanretail: int | None = None
    adjustedloan: int | None = None
    mileageadjustment: int | None = None
    vinoptionstrade: int | None = None
    vinoptionsretail: int | None = None
    vinoptionsloan: int | None = None

    _parse_numbers = field_validator(
        "modelyear",
        "basecleantrade",
        "baseaveragetrade",
        "baseroughtrade",
        "basecleanretail",
        "baseloan",
        "adjustedcleantrade",
        "adjustedaveragetrade",
        "adjustedroughtrade",
        "adjustedcleanretail",
        "adjustedloan",
        "mileageadjustment",
        "vinoptionstrade",
        "vinoptionsretail",
        "vinoptionsloan",
        mode="before",
    )(_safe_int)

    _normalize_text = field_validator(
        "ucgvehicleid", "make", "model", "trim", mode="before"
    )(_blank_to_none)

    @property
    def description(self) -> str | None:
        parts = [str(self.modelyear) if self.modelyear else None, self.make, self.model, self.trim]
        text = " ".join(part for part in parts if part)
        return text or None


class ValuationResponse(ProviderBaseModel):
    request_id: str | None = Field(default=None, alias="requestId")
    result: list[VehicleValuesPayload] = Field(default_factory=list)

    _normalize_request_id = field_validator("request_id", mode="before")(_blank_to_none)


class AccessoryPayload(ProviderBaseModel):
    acccode: str | None = None
    accdesc: str | None = None
    accessorycategory: str | None = None
    accessorytype: str | None = None
    msrp: int | None = None
    tradein: int | None = None
    retail: int | None = None
    loan: int | None = None
    isincluded: bool = False
    isadded: bool = False
    includes: str | None = None
    excludes: str | None = None

    _parse_numbers = field_validator(
        "msrp", "tradein", "retail", "loan", mode="before"
    )(_safe_int)

    _parse_flags = field_validator("isincluded", "isadded", mode="before")(_flag)

    _normalize_text = field_validator(
        "acccode",
        "accdesc",
        "accessorycategory",
        "accessorytype",
        "includes",
        "excludes",
        mode="before",
    )(_blank_to_none)


class AccessoryResponse(ProviderBaseModel):
    result: list[AccessoryPayload] = Field(default_factory=list)
