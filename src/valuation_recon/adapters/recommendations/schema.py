"""Pydantic models for AI comparison payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from valuation_recon.domain.model import Verdict, clamp_confidence


def _parse_status(value: object) -> Verdict:
    if isinstance(value, Verdict):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace(" ", "_").replace("-", "_")
        if key in Verdict.__members__:
            return Verdict[key]
    # unknown or missing statuses are never acted on automatically
    return Verdict.REQUIRES_REVIEW


def _strip_text(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class RecommendationBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AccessoryReference(RecommendationBaseModel):
    code: str = Field(min_length=1)
    name: str | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _coerce_code(cls, value: object) -> object:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    _normalize_name = field_validator("name", mode="before")(_strip_text)


class ComparisonPayload(RecommendationBaseModel):
    accessory: AccessoryReference = Field(alias="jd_power_accessory")
    status: Verdict = Field(default=Verdict.REQUIRES_REVIEW, alias="validation_status")
    confidence: float | None = Field(default=None, alias="confidence_score")
    notes: str | None = None

    _parse_status = field_validator("status", mode="before")(_parse_status)
    _clamp_confidence = field_validator("confidence", mode="before")(clamp_confidence)
    _normalize_notes = field_validator("notes", mode="before")(_strip_text)


class ComparisonResponse(RecommendationBaseModel):
    comparisons: list[ComparisonPayload] = Field(default_factory=list)
