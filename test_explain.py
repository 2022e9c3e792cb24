"""
test_explain.py - Report rendering tests.

Validates:
- Text rendering: every section present, arithmetic line, warnings block
- Partial reports (no level-up, no official balance) still render
- JSON payload shape and serializability
- None input produces an error block / payload instead of raising

Usage: python test_explain.py
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from explain import CAUSE_NAMES, format_report, format_report_json
from models import (
    AnalysisStatus,
    DiscrepancyCause,
    FlightSegment,
    HeaderSnapshot,
    StatementReport,
    TripSummary,
)
from pipeline import analyze_statement

BASE_DIR = Path(__file__).resolve().parent

SECTIONS = (
    "HEADER (official balances)",
    "REQUALIFICATION EVENTS",
    "CURRENT CYCLE",
    "BONUS XP EVENTS",
    "FLIGHTS",
    "XP CALCULATION",
)


def _configure_output_symbols() -> tuple[str, str, str]:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, ValueError, OSError):
        pass

    try:
        "✓✗═".encode(sys.stdout.encoding or "utf-8")
        return "✓", "✗", "═"
    except (UnicodeEncodeError, LookupError):
        return "[OK]", "[FAIL]", "="


PASS, FAIL, LINE = _configure_output_symbols()


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            print(f"    {PASS} {name}")
            passed += 1
        else:
            print(f"    {FAIL} {name}")
            failed += 1

    print(LINE * 50)
    print("  Report Rendering Tests")
    print(LINE * 50)

    statement = (BASE_DIR / "test_data" / "statement_nl.txt").read_text(encoding="utf-8")
    report = analyze_statement(statement.replace("278,499 Miles 130 XP", "278,499 Miles 150 XP"))

    # Category 1: text rendering
    print("\n  format_report:")
    text = format_report(report)
    for section in SECTIONS:
        check(f"Section {section!r}", section in text)
    check("Language line", "Language: nl" in text)
    check("Official XP is the target", "150  <- reconciliation target" in text)
    check("Level-up line", "2025-06-15: -300 XP -> Gold reached" in text)
    check("Rollover line", "45 XP carried forward" in text)
    check("Arithmetic line", "CALCULATED XP: 45 + 60 + 25 = 130" in text)
    check("Signed difference", "DIFFERENCE:    +20 XP" in text)
    check("Cause name", CAUSE_NAMES[DiscrepancyCause.MISSING_XP] in text)
    check("Hypotheses listed", "Possible causes:" in text and "SAF XP not included" in text)
    check("Bonus category grouped", "AMEX_WELCOME: 1 event(s) = 25 XP" in text)
    check("Monthly digest", "2025-08: 2 flight(s), 60 XP, 5 UXP" in text)
    check("No warnings block on a clean statement", "WARNINGS" not in text)

    # Category 2: partial reports
    print("\n  Partial reports:")
    bare = StatementReport(
        header=HeaderSnapshot(),
        warnings=["No level-up (XP deduction) found: current-cycle analysis unavailable"],
        unattributable_flights=[
            TripSummary(destination="Rome", xp=20),
            FlightSegment(route="AMS-CDG", flight_number="KL1223", xp=10),
        ],
    )
    bare_text = format_report(bare)
    check("All sections still printed", all(section in bare_text for section in SECTIONS))
    check("Missing balances say 'not found'", "XP:      not found" in bare_text)
    check("Cycle unavailable explained", "current-cycle analysis unavailable" in bare_text)
    check("Calculation unavailable explained", "Not available (requires a level-up event)" in bare_text)
    check("Empty event lists say so", "(none found)" in bare_text)
    check("Warnings block", "WARNINGS" in bare_text and "! No level-up" in bare_text)
    check("Undated trip labelled by destination", "- Rome: 20 XP" in bare_text)
    check("Undated segment labelled by route", "- AMS-CDG KL1223: 10 XP" in bare_text)

    # Category 3: JSON payload
    print("\n  format_report_json:")
    payload = format_report_json(report)
    check("Serializable", bool(json.dumps(payload)))
    check("Status", payload["status"] == "complete")
    check("Has cycle analysis", payload["has_cycle_analysis"] is True)
    check(
        "Summary numbers",
        payload["summary"]
        == {
            "calculated_xp": 130,
            "official_xp": 150,
            "difference": 20,
            "cause": "missing_xp",
            "cause_name": "Missing XP from calculation",
            "is_reconciled": False,
        },
    )
    check("Full report included", payload["report"]["header"]["xp_balance"] == 150)
    check(
        "Event kinds serialized",
        [event["kind"] for event in payload["report"]["requalification_events"]] == ["XP_DEDUCT", "SURPLUS_XP"],
    )
    restored = StatementReport.model_validate(payload["report"])
    check("Report validates back", restored.model_dump(mode="json") == payload["report"])

    bare_payload = format_report_json(bare)
    check("No-level-up status", bare_payload["status"] == AnalysisStatus.NO_LEVEL_UP.value)
    check("No summary without reconciliation", bare_payload["summary"] is None)
    check("has_cycle_analysis False", bare_payload["has_cycle_analysis"] is False)

    # Category 4: None input
    print("\n  None input:")
    check("Text error block", "ERROR: No report data available" in format_report(None))
    none_payload = format_report_json(None)
    check("JSON error status", none_payload["status"] == "error" and none_payload["report"] is None)
    check("JSON error warning", none_payload["warnings"] == ["Report object was None"])

    print(f"\n{LINE * 50}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Report Rendering: COMPLETE {PASS}")
    else:
        print(f"  Report Rendering: {failed} FAILED")
    print(f"{LINE * 50}")
    return failed


def test_explain() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
