"""AI comparison runs and their per-line-item verdicts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from .entity import Entity
from .enums import Verdict

CONFIDENCE_MIN = 0.0
CONFIDENCE_MAX = 100.0


def clamp_confidence(value: object) -> float | None:
    """Coerce a reported confidence into ``0..100``; unusable values become ``None``."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return min(max(number, CONFIDENCE_MIN), CONFIDENCE_MAX)


@dataclass(frozen=True, slots=True, kw_only=True)
class LineItemVerdict:
    code: str
    status: Verdict
    confidence: float | None = None
    notes: str | None = None
    name: str | None = None


@dataclass(eq=False, kw_only=True)
class ValidationRun(Entity):
    """One execution of the AI comparison against a valuation."""

    valuation_id: UUID
    source: str = "ai"
    verdicts: tuple[LineItemVerdict, ...] = ()
    raw_payload: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def verdict_for(self, code: str) -> LineItemVerdict | None:
        for verdict in self.verdicts:
            if verdict.code == code:
                return verdict
        return None

    def verdicts_by_code(self) -> dict[str, LineItemVerdict]:
        # first verdict wins when the generator repeats a code
        by_code: dict[str, LineItemVerdict] = {}
        for verdict in self.verdicts:
            by_code.setdefault(verdict.code, verdict)
        return by_code
