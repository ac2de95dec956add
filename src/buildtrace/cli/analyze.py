"""
Analysis CLI commands for BuildTrace.

Commands: segment, analyze, csv, report, blocks
"""

import json
import sys
from pathlib import Path

from ..analysis import GameAnalysis, analyze_sessions
from ..attribution import DurationAttributor, LabelMapping
from ..errors import BuildTraceError
from ..events import parse_timestamp
from ..report import batch_csv, game_markdown, write_experiment_reports
from .utils import (
    format_ms,
    get_registry,
    load_config_or_exit,
    load_session_or_exit,
    load_sessions_or_exit,
)


def cmd_segment(args):
    """Show when each HLO of a game was completed and how long it took"""
    config = load_config_or_exit(args)
    registry = get_registry(config)
    session = load_session_or_exit(args.session)
    analysis = GameAnalysis(session, config)

    try:
        plan = registry.load_plan(session.scenario)
        attributor = DurationAttributor(
            plan, LabelMapping.of(session.scenario, registry.labels(session.scenario))
        )
        outcome = analysis.segment(registry)
        report = attributor.attribute(outcome) if outcome.succeeded else None
    except BuildTraceError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if getattr(args, "json", False):
        print(json.dumps({
            "game_id": session.game_id,
            "segmentation": outcome.to_dict(),
            "hlo": report.to_dict() if report else None,
        }, indent=2))
        if not outcome.succeeded:
            sys.exit(1)
        return

    if not outcome.succeeded:
        print(f"Error: segmentation of game {session.game_id} failed: {outcome.failure}")
        sys.exit(1)

    print(f"Game {session.game_id} ({session.scenario})")
    print(f"  First instruction: {outcome.first_instruction_time.isoformat()}")
    if outcome.reconciled:
        print("  Note: destroy events were ignored to resolve all HLOs")
    for warning in outcome.diagnostics:
        print(f"  Warning: {warning}")

    for index, (result, entry) in enumerate(zip(outcome.results, report.durations)):
        print(
            f"  HLO{index} {entry.label:8} done {result.timestamp.isoformat()}  "
            f"{format_ms(entry.duration_ms):>10}  mistakes: {entry.mistakes}"
        )
    print(f"  Total: {format_ms(report.total_duration_ms)}, {report.total_mistakes} mistakes")


def cmd_analyze(args):
    """Write the markdown analysis of one game"""
    config = load_config_or_exit(args)
    registry = get_registry(config)
    session = load_session_or_exit(args.session)
    analysis = GameAnalysis(session, config)

    hlo, error = None, None
    try:
        hlo = analysis.hlo_information(registry)
    except BuildTraceError as e:
        error = e

    text = game_markdown(analysis, hlo, error)
    output = getattr(args, "output", None)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Wrote analysis of game {session.game_id} to {output}")
    else:
        print(text, end="")


def cmd_csv(args):
    """Write one CSV row per game"""
    config = load_config_or_exit(args)
    sessions, unreadable = load_sessions_or_exit(args.directory)
    batch = analyze_sessions(sessions, get_registry(config), config, unreadable)

    text = batch_csv(batch, config)
    output = getattr(args, "output", None)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Wrote {len(batch.results)} games to {output}")
    else:
        print(text, end="")
    for failure in batch.load_failures:
        print(f"Skipped {failure}", file=sys.stderr)


def cmd_report(args):
    """Write all per-game, per-scenario and per-architect reports"""
    config = load_config_or_exit(args)
    sessions, unreadable = load_sessions_or_exit(args.directory)
    batch = analyze_sessions(sessions, get_registry(config), config, unreadable)

    output_dir = Path(getattr(args, "output_dir", None) or config.output_dir)
    written = write_experiment_reports(batch, output_dir, config)

    print(f"Analyzed {len(batch.results)} games, wrote {len(written)} files to {output_dir}")
    for failure in batch.failures:
        print(f"  Game {failure.analysis.game_id}: {failure.error}")
    for failure in batch.load_failures:
        print(f"  Skipped {failure}")


def cmd_blocks(args):
    """List blocks placed, destroyed and present before a point in time"""
    session = load_session_or_exit(args.session)
    try:
        until = parse_timestamp(args.until)
    except BuildTraceError as e:
        print(f"Error: {e}")
        sys.exit(1)

    history = GameAnalysis(session).blocks_until(until)
    for title, blocks in (
        ("Placed Blocks", history.placed),
        ("Destroyed Blocks", history.destroyed),
        ("Present Blocks", history.present),
    ):
        print(title)
        for block in blocks:
            print(f" - {block}")


def register_analyze_commands(subparsers):
    """Register analysis commands with the argument parser."""
    segment_parser = subparsers.add_parser("segment", help="Show HLO timings of one game")
    segment_parser.add_argument("session", help="Session JSON file")
    segment_parser.add_argument("--json", action="store_true", help="Print JSON")
    segment_parser.set_defaults(func=cmd_segment)

    analyze_parser = subparsers.add_parser("analyze", help="Markdown analysis of one game")
    analyze_parser.add_argument("session", help="Session JSON file")
    analyze_parser.add_argument("--output", "-o", help="Output file")
    analyze_parser.set_defaults(func=cmd_analyze)

    csv_parser = subparsers.add_parser("csv", help="CSV table of all games")
    csv_parser.add_argument("directory", help="Directory of session JSON files")
    csv_parser.add_argument("--output", "-o", help="Output file")
    csv_parser.set_defaults(func=cmd_csv)

    report_parser = subparsers.add_parser("report", help="Write all experiment reports")
    report_parser.add_argument("directory", help="Directory of session JSON files")
    report_parser.add_argument("--output-dir", "-o", help="Output directory")
    report_parser.set_defaults(func=cmd_report)

    blocks_parser = subparsers.add_parser("blocks", help="Blocks of a game up to a timestamp")
    blocks_parser.add_argument("session", help="Session JSON file")
    blocks_parser.add_argument("--until", required=True, help="ISO timestamp")
    blocks_parser.set_defaults(func=cmd_blocks)
