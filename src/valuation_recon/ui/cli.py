# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from valuation_recon.app import (
    apply_session,
    book_valuation,
    get_comparison,
    get_session,
    import_validation_run,
    open_session,
    restore_from_snapshot,
    toggle_override,
    update_selection,
)
from valuation_recon.config import ConfigurationError, configure_logging
from valuation_recon.domain.errors import (
    ConflictError,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    ProviderUnavailableError,
    ReconciliationError,
    RevaluationError,
)
from valuation_recon.domain.reporting import breakdown_by_category

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from valuation_recon.domain.model import ValuationState
    from valuation_recon.domain.reconciliation import (
        ApplyResult,
        Comparison,
        SelectionUpdate,
        SessionView,
    )

log = logging.getLogger(__name__)

EXIT_USAGE = 2
EXIT_NOT_FOUND = 3
EXIT_CONFLICT = 4
EXIT_EXPIRED = 5
EXIT_REVALUATION = 6
EXIT_CONFIGURATION = 7

# most specific first
_EXIT_CODES: tuple[tuple[type[Exception], int, str], ...] = (
    (InvalidInputError, EXIT_USAGE, "Invalid input"),
    (NotFoundError, EXIT_NOT_FOUND, "Not found"),
    (ExpiredError, EXIT_EXPIRED, "Session expired"),
    (ConflictError, EXIT_CONFLICT, "Conflict"),
    (RevaluationError, EXIT_REVALUATION, "Revaluation failed"),
    (ProviderUnavailableError, EXIT_REVALUATION, "Valuation provider unavailable"),
    (ConfigurationError, EXIT_CONFIGURATION, "Configuration error"),
)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile vehicle valuations against AI checks")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    book = subparsers.add_parser("book", help="Fetch a fresh valuation from the provider")
    book.add_argument("vin", type=str, help="Vehicle identification number")
    book.add_argument("--mileage", type=int, help="Odometer reading")
    book.add_argument("--region", type=int, help="Provider region code (defaults to config)")

    import_run = subparsers.add_parser(
        "import-run",
        help="Record AI comparison output as a validation run",
    )
    import_run.add_argument("valuation_id", type=str, help="Valuation to validate")
    import_run.add_argument("payload", type=Path, help="File with the comparison JSON")
    import_run.add_argument(
        "--source",
        type=str,
        default="gemini",
        help="Name of the recommendation source (default: %(default)s)",
    )

    open_cmd = subparsers.add_parser("open", help="Open a reconciliation session for a run")
    open_cmd.add_argument("validation_run_id", type=str)

    show = subparsers.add_parser("show", help="Show a session and its overrides")
    show.add_argument("session_id", type=str)

    toggle = subparsers.add_parser("toggle", help="Flip one override between AI and original")
    toggle.add_argument("session_id", type=str)
    toggle.add_argument("code", type=str, help="Line item code")

    apply = subparsers.add_parser("apply", help="Apply a session to its valuation")
    apply.add_argument("session_id", type=str)

    select = subparsers.add_parser(
        "select",
        help="Set the selected line items of a valuation and re-price it",
    )
    select.add_argument("valuation_id", type=str)
    select.add_argument("codes", nargs="*", type=str, help="Line item codes to select")
    select.add_argument(
        "--run",
        dest="validation_run_id",
        type=str,
        help="Record the changes in this validation run's ledger",
    )

    compare = subparsers.add_parser("compare", help="Compare a run's snapshot with the live data")
    compare.add_argument("validation_run_id", type=str)

    restore = subparsers.add_parser("restore", help="Roll a valuation back to its snapshot")
    restore.add_argument("validation_run_id", type=str)

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _print_valuation(state: ValuationState) -> None:
    totals = state.totals
    print(f"Valuation {state.id} ({state.vehicle_id}, {state.provider})")
    print(
        f"  clean trade-in {totals.clean_trade_in}  clean retail {totals.clean_retail}"
        f"  loan {totals.loan_value}"
    )
    for group in breakdown_by_category(state.line_items):
        print(
            f"  {group.category}: {group.selected}/{group.total} selected,"
            f" {group.unavailable} unavailable, trade-in {group.trade_in:+d}"
        )


def _print_session(view: SessionView) -> None:
    state = "expired" if view.is_expired else view.status.value
    print(f"Session {view.id} [{state}] expires {view.expires_at.isoformat()}")
    for override in view.overrides:
        decision = "keep original" if override.keep_original else override.recommendation.value
        verdict = override.verdict.value if override.verdict else "-"
        print(f"  {override.line_item_code:<12} {verdict:<16} {decision}")
    summary = view.summary
    print(
        f"  {summary.total_changes} overrides, {summary.keeping_original} kept original,"
        f" {summary.recommended_adds} adds, {summary.recommended_removes} removes"
    )


def _print_apply(result: ApplyResult) -> None:
    summary = result.change_summary
    print(f"Applied session {result.session_id} via {result.revaluation_source.value}")
    if result.provider_failure:
        print(f"  provider failure: {result.provider_failure}")
    print(
        f"  {summary.selected} selected, {summary.deselected} deselected,"
        f" trade-in impact {summary.value_impact:+d}"
    )
    _print_valuation(result.valuation)


def _print_selection_update(result: SelectionUpdate) -> None:
    print(f"Re-priced via {result.revaluation_source.value}")
    if result.provider_failure:
        print(f"  provider failure: {result.provider_failure}")
    if result.ignored_codes:
        print(f"  ignored unknown codes: {', '.join(sorted(result.ignored_codes))}")
    if result.excluded_codes:
        print(f"  excluded: {', '.join(sorted(result.excluded_codes))}")
    if result.change_summary is not None:
        summary = result.change_summary
        print(
            f"  {summary.selected} selected, {summary.deselected} deselected,"
            f" trade-in impact {summary.value_impact:+d}"
        )
    _print_valuation(result.valuation)


def _print_comparison(comparison: Comparison) -> None:
    diff = comparison.differences
    print(f"Validation run {comparison.validation_run_id}")
    print(
        f"  trade-in {diff.clean_trade_in:+d}  retail {diff.clean_retail:+d}"
        f"  loan {diff.loan_value:+d}"
    )
    for change in comparison.line_item_changes:
        print(f"  {change.code}: selected {change.was_selected} -> {change.is_selected}")
    for entry in comparison.change_timeline:
        code = entry.entity_code or "-"
        print(f"  #{entry.sequence} {entry.change_type.value} {code} {entry.reason}")


def _run(args: argparse.Namespace) -> None:
    match args.command:
        case "book":
            _print_valuation(book_valuation(args.vin, mileage=args.mileage, region=args.region))
        case "import-run":
            text = args.payload.read_text(encoding="utf-8")
            run_id = import_validation_run(_parse_uuid(args.valuation_id), text, source=args.source)
            print(run_id)
        case "open":
            _print_session(open_session(_parse_uuid(args.validation_run_id)))
        case "show":
            _print_session(get_session(_parse_uuid(args.session_id)))
        case "toggle":
            override = toggle_override(_parse_uuid(args.session_id), args.code)
            payload = {"code": override.line_item_code, "keep_original": override.keep_original}
            print(json.dumps(payload))
        case "apply":
            _print_apply(apply_session(_parse_uuid(args.session_id)))
        case "select":
            run_id = args.validation_run_id
            result = update_selection(
                _parse_uuid(args.valuation_id),
                args.codes,
                validation_run_id=_parse_uuid(run_id) if run_id else None,
            )
            _print_selection_update(result)
        case "compare":
            _print_comparison(get_comparison(_parse_uuid(args.validation_run_id)))
        case "restore":
            _print_valuation(restore_from_snapshot(_parse_uuid(args.validation_run_id)))
        case _:
            raise ValueError(f"Unsupported command: {args.command}")


def _exit_code_for(exc: Exception) -> tuple[int, str]:
    for error_type, code, label in _EXIT_CODES:
        if isinstance(exc, error_type):
            return code, label
    return 1, "Error"


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _run(parsed_args)
    except (ReconciliationError, ConfigurationError) as exc:
        code, label = _exit_code_for(exc)
        print(f"{label}: {exc}", file=sys.stderr)
        sys.exit(code)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
