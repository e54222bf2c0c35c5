from __future__ import annotations

import pytest

from tests.helpers.reconciliation import make_line_item
from valuation_recon.domain.reconciliation import resolve


def test_includes_are_pulled_in_transitively() -> None:
    items = [
        make_line_item("PKG", includes=["NAV"]),
        make_line_item("NAV", includes=["USB"]),
        make_line_item("USB"),
        make_line_item("ROOF"),
    ]

    result = resolve({"PKG"}, items)

    assert result.final_codes == {"PKG", "NAV", "USB"}
    assert result.excluded_codes == frozenset()
    assert result.converged


def test_exclusion_wins_over_inclusion() -> None:
    items = [
        make_line_item("A", includes=["C"]),
        make_line_item("B", excludes=["C"]),
        make_line_item("C"),
    ]

    result = resolve({"A", "B"}, items)

    assert result.final_codes == {"A", "B"}
    assert result.excluded_codes == {"C"}
    assert not result.is_available("C")
    assert result.is_available("A")


def test_excluded_items_are_unselected_and_unavailable() -> None:
    items = [make_line_item("A", excludes=["B"]), make_line_item("B")]

    result = resolve({"A", "B"}, items)

    assert result.final_codes == {"A"}
    assert result.excluded_codes == {"B"}
    assert result.excluded_by("B", items) == ("A",)


def test_cycles_terminate() -> None:
    items = [
        make_line_item("A", includes=["B"]),
        make_line_item("B", includes=["C"]),
        make_line_item("C", includes=["A"]),
    ]

    result = resolve({"B"}, items)

    assert result.final_codes == {"A", "B", "C"}
    assert result.converged


def test_include_exclude_cycle_settles_on_exclusion() -> None:
    items = [make_line_item("A", includes=["B"]), make_line_item("B", excludes=["A"])]

    result = resolve({"A"}, items)

    assert result.final_codes == {"B"}
    assert result.excluded_codes == {"A"}


def test_resolution_is_idempotent() -> None:
    items = [
        make_line_item("A", includes=["B"], excludes=["D"]),
        make_line_item("B", includes=["C"]),
        make_line_item("C"),
        make_line_item("D", includes=["A"]),
    ]

    first = resolve({"A", "D"}, items)
    second = resolve(first.final_codes, items)

    assert second.final_codes == first.final_codes
    assert second.excluded_codes == first.excluded_codes


def test_unknown_codes_are_ignored() -> None:
    items = [make_line_item("A", includes=["GHOST"])]

    result = resolve({"A", "MISSING"}, items)

    assert result.final_codes == {"A"}


def test_pinned_selection_rejects_items_that_exclude_it() -> None:
    items = [make_line_item("A", excludes=["B"]), make_line_item("B", selected=True)]

    result = resolve({"A", "B"}, items, pinned={"B"})

    assert result.final_codes == {"B"}
    assert result.rejected_codes == {"A"}
    # rejected items stay available for a later selection
    assert result.is_available("A")


def test_two_pinned_codes_fall_back_to_exclusion_precedence() -> None:
    items = [make_line_item("A", excludes=["B"]), make_line_item("B")]

    result = resolve({"A", "B"}, items, pinned={"A", "B"})

    assert result.final_codes == {"A"}
    assert result.excluded_codes == {"B"}


def test_empty_candidates_resolve_to_nothing() -> None:
    result = resolve(set(), [make_line_item("A", includes=["B"]), make_line_item("B")])

    assert result.final_codes == frozenset()
    assert result.excluded_codes == frozenset()


def test_chained_exclusion_keeps_codes_whose_excluder_is_removed() -> None:
    items = [
        make_line_item("X", excludes=["Y"]),
        make_line_item("Y", excludes=["Z"]),
        make_line_item("Z"),
    ]

    result = resolve({"X", "Y", "Z"}, items)

    assert result.final_codes == {"X", "Z"}
    assert result.excluded_codes == {"Y"}
    assert result.is_available("Z")
    assert result.converged
    assert resolve(result.final_codes, items).final_codes == result.final_codes


def test_mutual_exclusion_falls_back_to_excluding_both() -> None:
    items = [make_line_item("A", excludes=["B"]), make_line_item("B", excludes=["A"])]

    result = resolve({"A", "B"}, items)

    assert not result.converged
    assert result.final_codes == frozenset()
    assert result.excluded_codes == {"A", "B"}


@pytest.mark.parametrize(
    ("candidates", "pinned"),
    [
        ({"X", "Y", "Z"}, set()),
        ({"X", "Y", "Z", "W"}, {"Z"}),
        ({"W", "Y"}, set()),
        ({"V", "X", "Z"}, {"X"}),
    ],
)
def test_every_dropped_candidate_has_a_cause(candidates: set[str], pinned: set[str]) -> None:
    items = [
        make_line_item("V", includes=["W"], excludes=["X"]),
        make_line_item("W", excludes=["Z"]),
        make_line_item("X", excludes=["Y"]),
        make_line_item("Y", excludes=["Z"]),
        make_line_item("Z"),
    ]

    result = resolve(candidates, items, pinned=pinned)

    dropped = candidates - result.final_codes
    assert dropped <= result.excluded_codes | result.rejected_codes
    assert not result.final_codes & result.excluded_codes
