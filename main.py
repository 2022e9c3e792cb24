"""
main.py - CLI orchestration for statement XP reconciliation.

This module is orchestration-only:
1. extract (PDF or text file -> statement text)
2. analyze (pipeline.analyze_statement)
3. explain (text or JSON rendering)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from config import load_settings
from explain import format_report, format_report_json
from extract import extract_statement_text
from logging_config import get_logger, setup_logging
from models import CycleStartSource, FlightPrecedence, StatementReport
from pipeline import analyze_statement

logger = get_logger("statement-recon")


def _configure_output_symbols() -> tuple[str, str]:
    """Configure stdout encoding and return safe line/fail symbols."""
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, ValueError, OSError):
        pass

    try:
        "═✗".encode(sys.stdout.encoding or "utf-8")
        return "═", "✗"
    except (UnicodeEncodeError, LookupError):
        return "=", "X"


BOX_CHAR, FAIL_CHAR = _configure_output_symbols()


def read_statement(path: str, as_text: bool = False) -> str:
    """Load statement text from a PDF, or from a text file when `as_text` is set."""
    return extract_statement_text(path, as_text=as_text).text


def run_pipeline(path: str, as_text: bool = False, settings=None) -> StatementReport:
    """Run extraction and analysis for one statement, timing each stage."""
    pipeline_start = time.time()
    logger.info("%s", "─" * 50)
    logger.info("cli_statement_start | file=%s", Path(path).name)

    stage_start = time.time()
    text = read_statement(path, as_text=as_text)
    extract_time = time.time() - stage_start

    stage_start = time.time()
    report = analyze_statement(text, settings)
    analyze_time = time.time() - stage_start

    logger.info(
        "cli_statement_complete | file=%s | status=%s | total_duration_s=%.2f | extract_s=%.2f | analyze_s=%.2f",
        Path(path).name,
        report.status.value,
        time.time() - pipeline_start,
        extract_time,
        analyze_time,
    )
    return report


def _print_summary_table(results: list[tuple[str, str, Optional[int]]]) -> None:
    """Print a formatted summary table for multi-statement runs."""
    print(f"\n{BOX_CHAR * 60}")
    print(f"  SUMMARY - {len(results)} statement(s) processed")
    print(f"{BOX_CHAR * 60}")
    print()
    print(f"  {'Statement':<35} {'Status':<18} {'Diff':>5}")
    print(f"  {'─' * 35} {'─' * 18} {'─' * 5}")

    for filename, status, difference in results:
        short_name = filename[:33] + ".." if len(filename) > 35 else filename
        shown = "n/a" if difference is None else f"{difference:+d}"
        print(f"  {short_name:<35} {status:<18} {shown:>5}")

    print()
    print(f"{BOX_CHAR * 60}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statement-recon",
        description=(
            "Statement XP Reconciliation\n"
            "Rebuilds the XP ledger from a Flying Blue activity statement and "
            "explains any difference with the official XP balance."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s statement.pdf\n"
            "  %(prog)s statement.pdf --json\n"
            "  %(prog)s pasted.txt --text --cycle-start explicit\n"
            "  %(prog)s jan.pdf feb.pdf mar.pdf\n"
        ),
    )
    parser.add_argument(
        "paths",
        nargs="+",
        metavar="PATH",
        help="Path to a statement PDF (or text file with --text)",
    )
    parser.add_argument(
        "--text",
        action="store_true",
        help="Treat PATH as already-extracted statement text instead of a PDF",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON instead of formatted text",
    )
    parser.add_argument(
        "--cycle-start",
        choices=[source.value for source in CycleStartSource],
        default=None,
        help="Which cycle start to reconcile against (default: derived, or STATEMENT_CYCLE_START_SOURCE)",
    )
    parser.add_argument(
        "--flight-precedence",
        choices=[precedence.value for precedence in FlightPrecedence],
        default=None,
        help="Keep segments or trip summaries when both describe the same flights",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    settings = load_settings(
        {
            "cycle_start_source": args.cycle_start,
            "flight_precedence": args.flight_precedence,
        }
    )
    logger.info(
        "cli_mode | statements=%s | text=%s | json=%s",
        len(args.paths),
        args.text,
        args.json,
    )

    if len(args.paths) == 1:
        try:
            report = run_pipeline(args.paths[0], as_text=args.text, settings=settings)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
            print(f"\nError: {exc}")
            raise SystemExit(1) from exc
        except KeyboardInterrupt:
            print("\nInterrupted.")
            raise SystemExit(130)

        if args.json:
            print(json.dumps(format_report_json(report), indent=2, ensure_ascii=False))
        else:
            print(format_report(report))
        return

    results: list[tuple[str, str, Optional[int]]] = []
    payloads: list[dict] = []
    for index, path in enumerate(args.paths, start=1):
        filename = Path(path).name
        if not args.json:
            print(f"\n{BOX_CHAR * 60}")
            print(f"  Statement {index}/{len(args.paths)}: {filename}")
            print(f"{BOX_CHAR * 60}")
        try:
            report = run_pipeline(path, as_text=args.text, settings=settings)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("batch_statement_error | file=%s | type=%s | error=%s", filename, type(exc).__name__, exc)
            if args.json:
                payloads.append({"file": filename, "status": "error", "error": str(exc)})
            else:
                print(f"\n  {FAIL_CHAR} Error processing {filename}: {exc}\n")
            results.append((filename, "ERROR", None))
            continue

        if args.json:
            payloads.append({"file": filename, **format_report_json(report)})
        else:
            print(format_report(report))
        difference = report.reconciliation.difference if report.reconciliation else None
        results.append((filename, report.status.value, difference))

    if args.json:
        print(json.dumps(payloads, indent=2, ensure_ascii=False))
    else:
        _print_summary_table(results)

    failed = sum(1 for _, status, _ in results if status == "ERROR")
    logger.info("batch_complete | success=%s | failed=%s", len(results) - failed, failed)
    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
