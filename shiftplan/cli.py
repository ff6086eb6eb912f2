"""Command-line interface for the shift-scheduling engine."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from shiftplan.assistant.apply import STATUS_FAILED, ScheduleState, StrictnessMode, apply_suggestion
from shiftplan.assistant.decisions import accept_suggestion_for_unit
from shiftplan.assistant.response import build_assistant_response
from shiftplan.assistant.session import normalize_or_reset_session
from shiftplan.domain.db import DEFAULT_DB_URL, get_session, init_database
from shiftplan.domain.repositories import ScenarioRepository
from shiftplan.domain.types import Suggestion
from shiftplan.engine.orchestrator import run_engine
from shiftplan.exceptions import CLI_EXIT_CODES, ShiftplanError, SuggestionApplyError, exit_code_for
from shiftplan.io.config import EngineConfig, load_config
from shiftplan.io.export_csv import (
    export_capacity_csv,
    export_violations_csv,
    summarize_result,
    write_shifts_csv,
)
from shiftplan.io.import_csv import read_shifts_csv
from shiftplan.io.snapshot import (
    load_engine_input,
    read_document,
    response_to_dict,
    result_to_dict,
    scenario_from_dict,
    scenario_to_dict,
    session_from_dict,
)
from shiftplan.logger import configure_logging


def _load(args: argparse.Namespace):
    """Read config, snapshot, optional shifts CSV and optional stored scenarios."""
    cfg = load_config(args.config) if args.config else EngineConfig()
    configure_logging("DEBUG" if args.verbose else cfg.log_level, cfg.log_file)

    engine_input = load_engine_input(args.input)
    if args.shifts:
        engine_input = replace(
            engine_input, shifts=read_shifts_csv(args.shifts, unit_id=engine_input.unit_id or None)
        )
    if args.stored_scenarios:
        session = get_session(args.db or cfg.db_url, create_tables=True)
        try:
            stored = ScenarioRepository.list_for_week(session, engine_input.unit_id, engine_input.week_start)
        finally:
            session.close()
        engine_input = replace(engine_input, scenarios=[*engine_input.scenarios, *stored])
    return cfg, engine_input


def _write_json(data, out: str | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if out:
        Path(out).write_text(text + "\n", encoding="utf-8")
        print(f"[OK] Written to {out}")
    else:
        print(text)


def _cmd_evaluate(args: argparse.Namespace) -> None:
    """Evaluate a snapshot and print a summary (or the full result as JSON)."""
    cfg, engine_input = _load(args)
    result = run_engine(engine_input, cfg)

    if args.capacity_out:
        export_capacity_csv(args.capacity_out, result.capacity_map)
    if args.violations_out:
        export_violations_csv(args.violations_out, result.violations)

    if args.json:
        _write_json(result_to_dict(result), args.out)
    else:
        print(summarize_result(result))


def _cmd_explain(args: argparse.Namespace) -> None:
    """Print the assistant response (suggestions with ids, explanations) as JSON."""
    cfg, engine_input = _load(args)
    result = run_engine(engine_input, cfg)

    session = None
    if args.session:
        session = normalize_or_reset_session(session_from_dict(read_document(args.session)), engine_input)
        if session is None:
            print("[WARN] Session does not match this snapshot; decisions ignored", file=sys.stderr)

    _write_json(response_to_dict(build_assistant_response(engine_input, result, session)), args.out)


def _cmd_apply(args: argparse.Namespace) -> None:
    """Apply the N-th assistant suggestion to the snapshot's shifts and write them as CSV."""
    cfg, engine_input = _load(args)
    result = run_engine(engine_input, cfg)
    response = build_assistant_response(engine_input, result)

    if not 0 <= args.suggestion < len(response.suggestions):
        raise SystemExit(f"No suggestion #{args.suggestion} ({len(response.suggestions)} available)")
    chosen = response.suggestions[args.suggestion]
    suggestion = Suggestion(
        type=chosen.type,
        expected_impact=chosen.expected_impact,
        explanation=chosen.explanation,
        actions=list(chosen.actions),
    )
    state = ScheduleState(shifts=list(engine_input.shifts), unit_id=engine_input.unit_id or None)
    mode = StrictnessMode.TOLERANT if args.tolerant else StrictnessMode.STRICT

    if args.record:
        session = get_session(args.db or cfg.db_url, create_tables=True)
        try:
            outcome = accept_suggestion_for_unit(
                session,
                engine_input.unit_id,
                engine_input.week_start,
                chosen.id,
                suggestion,
                state,
                session_id=args.session_id,
                reason=args.reason,
                mode=mode,
            )
        finally:
            session.close()
        status, next_state, effects, errors = outcome.status, outcome.schedule_state, outcome.effects, outcome.errors
    else:
        applied = apply_suggestion(chosen.id, suggestion, state, args.applied_id or (), mode=mode)
        status, next_state, effects, errors = (
            applied.status,
            applied.next_schedule_state,
            applied.effects,
            applied.errors,
        )

    if status == STATUS_FAILED:
        for error in errors:
            print(f"[ERROR] {error.code}: {error.message}")
        raise SystemExit(CLI_EXIT_CODES[SuggestionApplyError])

    write_shifts_csv(args.out, next_state.shifts)
    print(f"[OK] {chosen.id}: {status}, {len(effects)} effect(s)")
    for effect in effects:
        print(f"  {effect.type} {effect.shift_id} {effect.date_key} {effect.start_time}-{effect.end_time}")


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    db_url = args.db or DEFAULT_DB_URL
    init_database(db_url)
    print(f"[OK] Database initialized: {db_url}")


def _cmd_scenarios(args: argparse.Namespace) -> None:
    """List, add or delete stored scenarios of one unit/week."""
    session = get_session(args.db or DEFAULT_DB_URL, create_tables=True)
    try:
        if args.add:
            scenario = scenario_from_dict(read_document(args.add))
            ScenarioRepository.upsert(session, scenario)
            print(f"[OK] Stored scenario {scenario.id}")
        if args.delete:
            if ScenarioRepository.delete(session, args.delete):
                print(f"[OK] Deleted scenario {args.delete}")
            else:
                print(f"[WARN] Scenario {args.delete} not found")
        scenarios = ScenarioRepository.list_for_week(session, args.unit, args.week)
    finally:
        session.close()
    _write_json([scenario_to_dict(s) for s in scenarios], None)


def _add_input_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--input", required=True, help="Snapshot JSON/YAML (weekDays, shifts, settings, ruleset)")
    p.add_argument("--shifts", help="Optional shifts CSV replacing the snapshot's shifts")
    p.add_argument("--config", help="Optional engine config YAML/JSON")
    p.add_argument("--stored-scenarios", action="store_true", help="Add scenarios stored in the database")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shiftplan",
        description="Shift-scheduling constraint and suggestion engine",
    )

    # Global options
    parser.add_argument("--db", help=f"Database URL (default: {DEFAULT_DB_URL})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    ev = sub.add_parser("evaluate", help="Evaluate a week snapshot")
    _add_input_args(ev)
    ev.add_argument("--json", action="store_true", help="Print the full result as JSON")
    ev.add_argument("--out", help="Write JSON output to a file")
    ev.add_argument("--capacity-out", help="Export the capacity map to CSV")
    ev.add_argument("--violations-out", help="Export violations to CSV")
    ev.set_defaults(func=_cmd_evaluate)

    ex = sub.add_parser("explain", help="Build the assistant response for a snapshot")
    _add_input_args(ex)
    ex.add_argument("--session", help="Assistant session JSON/YAML with decisions")
    ex.add_argument("--out", help="Write JSON output to a file")
    ex.set_defaults(func=_cmd_explain)

    ap = sub.add_parser("apply", help="Apply one suggestion and write the resulting shifts")
    _add_input_args(ap)
    ap.add_argument("--suggestion", type=int, required=True, help="Index in the explain output")
    ap.add_argument("--out", required=True, help="Shifts CSV to write")
    ap.add_argument("--applied-id", action="append", help="Suggestion id already applied (repeatable)")
    ap.add_argument("--tolerant", action="store_true", help="Raise on the first problem instead of reporting it")
    ap.add_argument("--record", action="store_true", help="Use the database ledger and log the decision")
    ap.add_argument("--session-id", default="cli", help="Session id for the recorded decision")
    ap.add_argument("--reason", help="Reason stored with the recorded decision")
    ap.set_defaults(func=_cmd_apply)

    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    sc = sub.add_parser("scenarios", help="Manage stored scenarios for one unit/week")
    sc.add_argument("--unit", required=True)
    sc.add_argument("--week", required=True, help="Week start date key (YYYY-MM-DD)")
    sc.add_argument("--add", help="Scenario JSON/YAML to store (replaces same id)")
    sc.add_argument("--delete", help="Scenario id to delete")
    sc.set_defaults(func=_cmd_scenarios)

    args = parser.parse_args(argv)
    if args.verbose:
        configure_logging("DEBUG")
    try:
        args.func(args)
    except (ShiftplanError, FileNotFoundError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        raise SystemExit(exit_code_for(e)) from e


if __name__ == "__main__":
    main()
