"""Adapter for AI comparison output (the recommendation source)."""

from __future__ import annotations

from .schema import AccessoryReference, ComparisonPayload, ComparisonResponse
from .translator import RecommendationBatch, parse_comparison_payload, parse_comparison_text

__all__ = [
    "AccessoryReference",
    "ComparisonPayload",
    "ComparisonResponse",
    "RecommendationBatch",
    "parse_comparison_payload",
    "parse_comparison_text",
]
