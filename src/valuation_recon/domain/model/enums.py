"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Recommendation(StrEnum):
    SELECT = "select"
    DESELECT = "deselect"
    NO_CHANGE = "no_change"


class Verdict(StrEnum):
    """Per-line-item outcome of an AI comparison against the build sheet."""

    CONFIRMED = "CONFIRMED"
    PARTIAL_MATCH = "PARTIAL_MATCH"
    NOT_FOUND = "NOT_FOUND"
    REQUIRES_REVIEW = "REQUIRES_REVIEW"
    PACKAGE_ITEM = "PACKAGE_ITEM"

    @property
    def recommendation(self) -> Recommendation:
        if self in (Verdict.CONFIRMED, Verdict.PARTIAL_MATCH):
            return Recommendation.SELECT
        if self is Verdict.NOT_FOUND:
            return Recommendation.DESELECT
        return Recommendation.NO_CHANGE


class SessionStatus(StrEnum):
    PENDING = "pending"
    # only ever visible inside an apply transaction
    APPLYING = "applying"
    APPLIED = "applied"


class ChangeType(StrEnum):
    LINE_ITEM_SELECTED = "line_item_selected"
    LINE_ITEM_DESELECTED = "line_item_deselected"
    VALUE_UPDATED = "value_updated"
    REVALUATION = "revaluation"
    RESTORATION = "restoration"


class EntityKind(StrEnum):
    VALUATION = "valuation"
    LINE_ITEM = "line_item"


class SnapshotReason(StrEnum):
    PRE_VALIDATION = "pre_validation"
    MANUAL = "manual"


class RevaluationSource(StrEnum):
    PROVIDER = "provider"
    FALLBACK = "fallback"
