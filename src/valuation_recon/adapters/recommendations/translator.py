"""Turn AI comparison output into line-item verdicts."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

from pydantic import ValidationError

from valuation_recon.domain.errors import InvalidInputError
from valuation_recon.domain.model import LineItemVerdict

from .schema import ComparisonResponse

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class RecommendationBatch:
    verdicts: tuple[LineItemVerdict, ...]
    raw_payload: dict[str, Any]
    source: str


def parse_comparison_payload(payload: object, *, source: str = "gemini") -> RecommendationBatch:
    if not isinstance(payload, Mapping):
        raise InvalidInputError("Comparison payload must be a JSON object")
    raw = dict(cast(Mapping[str, Any], payload))
    try:
        response = ComparisonResponse.model_validate(raw)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Malformed comparison payload ({exc.error_count()} invalid field(s))"
        ) from exc

    verdicts = tuple(
        LineItemVerdict(
            code=comparison.accessory.code,
            name=comparison.accessory.name,
            status=comparison.status,
            confidence=comparison.confidence,
            notes=comparison.notes,
        )
        for comparison in response.comparisons
    )
    return RecommendationBatch(verdicts=verdicts, raw_payload=raw, source=source)


def parse_comparison_text(text: str, *, source: str = "gemini") -> RecommendationBatch:
    """Parse model output that may be wrapped in a markdown code fence."""

    cleaned = _FENCE.sub("", text.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Comparison output is not valid JSON: {exc.msg}") from exc
    return parse_comparison_payload(payload, source=source)
