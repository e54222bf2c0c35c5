from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003
from uuid import UUID, uuid4

import pytest

from tests.helpers.reconciliation import make_line_item, make_valuation
from valuation_recon.config import MissingConfigurationError
from valuation_recon.domain.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    RevaluationError,
)
from valuation_recon.domain.model import Recommendation, RevaluationSource, ValuationState
from valuation_recon.domain.reconciliation import OverrideView, SelectionUpdate
from valuation_recon.ui import cli


def test_book_prints_category_breakdown(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}
    state = ValuationState.capture(
        make_valuation(make_line_item("SR", selected=True, trade=300, category="Roof"))
    )

    def fake_book(vin: str, **kwargs: object) -> ValuationState:
        captured.update(kwargs, vin=vin)
        return state

    monkeypatch.setattr(cli, "book_valuation", fake_book)

    cli.main(["book", "VIN123", "--mileage", "42000"])

    assert captured == {"vin": "VIN123", "mileage": 42_000, "region": None}
    out = capsys.readouterr().out
    assert f"Valuation {state.id}" in out
    assert "Roof: 1/1 selected, 0 unavailable, trade-in +300" in out


def test_import_run_reads_payload_file(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    captured: dict[str, object] = {}
    run_id = uuid4()
    valuation_id = uuid4()
    payload = tmp_path / "comparison.json"
    payload.write_text('{"comparisons": []}', encoding="utf-8")

    def fake_import(valuation: UUID, text: str, *, source: str) -> UUID:
        captured.update(valuation=valuation, text=text, source=source)
        return run_id

    monkeypatch.setattr(cli, "import_validation_run", fake_import)

    cli.main(["import-run", str(valuation_id), str(payload), "--source", "manual"])

    assert captured == {
        "valuation": valuation_id,
        "text": '{"comparisons": []}',
        "source": "manual",
    }
    assert capsys.readouterr().out.strip() == str(run_id)


def test_toggle_prints_override_state(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fake_toggle(session_id: UUID, code: str) -> OverrideView:
        return OverrideView(
            line_item_code=code,
            line_item_name=None,
            recommendation=Recommendation.SELECT,
            original_selected=False,
            keep_original=True,
        )

    monkeypatch.setattr(cli, "toggle_override", fake_toggle)

    cli.main(["toggle", str(uuid4()), "SR"])

    assert json.loads(capsys.readouterr().out) == {"code": "SR", "keep_original": True}


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (NotFoundError("missing"), cli.EXIT_NOT_FOUND),
        (ConflictError("busy"), cli.EXIT_CONFLICT),
        (ExpiredError("late"), cli.EXIT_EXPIRED),
        (RevaluationError("no values"), cli.EXIT_REVALUATION),
        (MissingConfigurationError(["VALUATION_API_KEY"]), cli.EXIT_CONFIGURATION),
    ],
)
def test_domain_errors_map_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    error: Exception,
    expected: int,
) -> None:
    def fake_apply(session_id: UUID) -> None:
        raise error

    monkeypatch.setattr(cli, "apply_session", fake_apply)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["apply", str(uuid4())])

    assert excinfo.value.code == expected
    assert str(error) in capsys.readouterr().err


def test_invalid_uuid_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["show", "not-a-uuid"])

    assert excinfo.value.code == cli.EXIT_USAGE


def test_unexpected_errors_exit_with_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_compare(validation_run_id: UUID) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(cli, "get_comparison", fake_compare)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["compare", str(uuid4())])

    assert excinfo.value.code == 1


def test_select_passes_codes_and_run(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}
    valuation_id, run_id = uuid4(), uuid4()
    state = ValuationState.capture(
        make_valuation(make_line_item("SR", selected=True, trade=300, category="Roof"))
    )

    def fake_update(valuation: UUID, codes: list[str], **kwargs: object) -> SelectionUpdate:
        captured.update(kwargs, valuation=valuation, codes=codes)
        return SelectionUpdate(
            valuation=state,
            revaluation_source=RevaluationSource.FALLBACK,
            final_codes=frozenset({"SR"}),
            excluded_codes=frozenset({"MR"}),
            ignored_codes=frozenset({"GHOST"}),
        )

    monkeypatch.setattr(cli, "update_selection", fake_update)

    cli.main(["select", str(valuation_id), "SR", "GHOST", "--run", str(run_id)])

    assert captured == {
        "valuation": valuation_id,
        "codes": ["SR", "GHOST"],
        "validation_run_id": run_id,
    }
    out = capsys.readouterr().out
    assert "Re-priced via fallback" in out
    assert "ignored unknown codes: GHOST" in out
    assert "excluded: MR" in out


def test_select_without_codes_clears_the_selection(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_update(valuation: UUID, codes: list[str], **kwargs: object) -> None:
        captured.update(kwargs, codes=codes)
        raise RevaluationError("nothing to price")

    monkeypatch.setattr(cli, "update_selection", fake_update)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["select", str(uuid4())])

    assert excinfo.value.code == cli.EXIT_REVALUATION
    assert captured == {"codes": [], "validation_run_id": None}
