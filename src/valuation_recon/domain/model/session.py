"""Reconciliation sessions and per-line-item operator overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from valuation_recon.domain.errors import ConflictError, ExpiredError

from .entity import Entity
from .enums import Recommendation, SessionStatus, Verdict

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class Override(Entity):
    """Operator decision for one line item: follow the AI or keep the original state."""

    line_item_code: str
    recommendation: Recommendation
    original_selected: bool
    keep_original: bool = False
    line_item_name: str | None = None
    verdict: Verdict | None = None
    confidence: float | None = None
    session_id: UUID | None = None

    def toggle(self) -> bool:
        self.keep_original = not self.keep_original
        return self.keep_original

    def desired_membership(self, currently_selected: bool) -> bool:
        if self.keep_original:
            return self.original_selected
        if self.recommendation is Recommendation.SELECT:
            return True
        if self.recommendation is Recommendation.DESELECT:
            return False
        return currently_selected


@dataclass(eq=False, kw_only=True)
class ReconciliationSession(Entity):
    """Bounded-lifetime workflow tied 1:1 to a validation run.

    Expiry is never stored: ``is_expired`` is evaluated against the caller's clock.
    """

    validation_run_id: UUID
    valuation_id: UUID
    created_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.PENDING
    applied_at: datetime | None = None
    overrides: list[Override] = field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_open(self, now: datetime) -> bool:
        return self.status is SessionStatus.PENDING and not self.is_expired(now)

    def ensure_mutable(self, now: datetime) -> None:
        if self.status is not SessionStatus.PENDING:
            raise ConflictError(
                f"Session {self.id} is {self.status.value}; it can no longer change"
            )
        if self.is_expired(now):
            raise ExpiredError(
                f"Session {self.id} expired at {self.expires_at.isoformat()}; re-run validation"
            )

    def override_for(self, code: str) -> Override | None:
        for override in self.overrides:
            if override.line_item_code == code:
                return override
        return None

    def add_override(self, override: Override) -> None:
        if self.override_for(override.line_item_code) is not None:
            raise ConflictError(
                f"Session {self.id} already has an override for {override.line_item_code!r}"
            )
        override.session_id = self.id
        self.overrides.append(override)

    def covered_codes(self) -> frozenset[str]:
        return frozenset(override.line_item_code for override in self.overrides)

    def mark_applied(self, now: datetime) -> None:
        self.status = SessionStatus.APPLIED
        self.applied_at = now
