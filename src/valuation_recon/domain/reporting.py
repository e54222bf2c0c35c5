"""Operator-facing line-item breakdowns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from valuation_recon.domain.model import LineItemState

UNCATEGORISED = "Other"


@dataclass(frozen=True, slots=True)
class CategoryBreakdown:
    category: str
    total: int
    selected: int
    unavailable: int
    trade_in: int
    retail: int
    loan: int
    codes: tuple[str, ...]


def breakdown_by_category(items: Iterable[LineItemState]) -> list[CategoryBreakdown]:
    """Group line items by category; adjustment sums cover selected items only."""

    groups: dict[str, list[LineItemState]] = {}
    for item in items:
        groups.setdefault(item.category or UNCATEGORISED, []).append(item)

    breakdowns: list[CategoryBreakdown] = []
    for category in sorted(groups):
        members = sorted(groups[category], key=lambda item: item.code)
        chosen = [item for item in members if item.is_selected]
        breakdowns.append(
            CategoryBreakdown(
                category=category,
                total=len(members),
                selected=len(chosen),
                unavailable=sum(1 for item in members if not item.is_available),
                trade_in=sum(item.clean_trade_adj or 0 for item in chosen),
                retail=sum(item.clean_retail_adj or 0 for item in chosen),
                loan=sum(item.loan_adj or 0 for item in chosen),
                codes=tuple(item.code for item in members),
            )
        )
    return breakdowns
