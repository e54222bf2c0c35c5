"""Selection closure under include/exclude relationships between line items.

This is the only place closure rules are evaluated. It is pure: it reads line
item relationships and returns sets, leaving mutation to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from valuation_recon.domain.model import LineItem, LineItemState

    type Relations = LineItem | LineItemState

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SelectionResult:
    final_codes: frozenset[str]
    excluded_codes: frozenset[str]
    # dropped because they exclude an operator-kept selection; still available
    rejected_codes: frozenset[str] = frozenset()
    converged: bool = True

    def is_selected(self, code: str) -> bool:
        return code in self.final_codes

    def is_available(self, code: str) -> bool:
        return code not in self.excluded_codes

    def excluded_by(self, code: str, line_items: Iterable[Relations]) -> tuple[str, ...]:
        """Selected codes whose exclusions removed ``code``."""
        return tuple(
            sorted(
                item.code
                for item in line_items
                if item.code in self.final_codes and code in item.excludes_codes
            )
        )

    def included_by(self, code: str, line_items: Iterable[Relations]) -> tuple[str, ...]:
        return tuple(
            sorted(
                item.code
                for item in line_items
                if item.code in self.final_codes
                and item.code != code
                and code in item.includes_codes
            )
        )


def _union(
    codes: Iterable[str],
    by_code: Mapping[str, Relations],
    attribute: str,
) -> set[str]:
    related: set[str] = set()
    for code in codes:
        for target in getattr(by_code[code], attribute):
            if target in by_code:
                related.add(target)
    return related


def resolve(
    candidate_codes: Collection[str],
    line_items: Iterable[Relations],
    *,
    pinned: Collection[str] = (),
) -> SelectionResult:
    """Compute the closure of ``candidate_codes``.

    Each round rebuilds the selection from every code reached so far (the
    candidates plus anything a selected item includes) minus whatever the
    current selection excludes. Exclusion wins when a code is both included
    and excluded. A code only leaves the selection through an exclusion or a
    rejection, so every dropped candidate is accounted for in the result.

    ``pinned`` codes are selections the operator chose to keep. A non-pinned
    item whose exclusions would remove a pinned selection is rejected instead.

    Mutually exclusive selections can oscillate; after ``2 * len(line_items) + 2``
    rounds the closure falls back to applying every exclusion of the reached
    codes at once.
    """

    by_code: dict[str, Relations] = {}
    for item in line_items:
        by_code.setdefault(item.code, item)

    unknown = set(candidate_codes) - by_code.keys()
    if unknown:
        log.debug("Ignoring candidate codes absent from the valuation: %s", sorted(unknown))

    reached = {code for code in candidate_codes if code in by_code}
    kept = {code for code in pinned if code in by_code}
    selected = set(reached)
    rejected: set[str] = set()
    converged = False
    max_rounds = 2 * len(by_code) + 2

    for _ in range(max_rounds):
        protected = selected & kept
        for code in sorted(selected - kept):
            if protected & set(by_code[code].excludes_codes):
                rejected.add(code)
        current = selected - rejected

        reached |= _union(current, by_code, "includes_codes")
        excluded = _union(current, by_code, "excludes_codes")
        rebuilt = reached - excluded - rejected
        if rebuilt == selected:
            converged = True
            break
        selected = rebuilt

    if converged:
        excluded = _union(selected, by_code, "excludes_codes")
    else:
        log.warning(
            "Selection closure did not converge after %d rounds; candidates=%s",
            max_rounds,
            sorted(candidate_codes),
        )
        selected = reached - rejected
        excluded = _union(selected, by_code, "excludes_codes")

    final = frozenset(selected - excluded)
    return SelectionResult(
        final_codes=final,
        excluded_codes=frozenset(excluded),
        rejected_codes=frozenset(rejected - final - excluded),
        converged=converged,
    )
