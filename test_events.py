"""
test_events.py - Requalification event extraction tests.

Validates:
- XP deductions: date window, magnitude, status reached, multi-language markers
- Surplus XP: rollover amounts
- Cycle boundaries: DD/MM/YYYY pairs and the pairing window
- Tagged-union output in text order

Usage: python test_events.py
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import ParserSettings
from events import extract_requalification_events
from models import (
    UNKNOWN_STATUS,
    CycleBoundaryEvent,
    StatusLevel,
    SurplusXpEvent,
    XpDeductEvent,
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


def _of(events, kind):
    return [event for event in events if isinstance(event, kind)]


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
    print("  Requalification Event Tests")
    print(LINE * 50)

    # Category 1: deductions
    print("\n  XP deductions:")
    events = extract_requalification_events("15 jun 2025 Aftrek XP-teller -300 XP Gold bereikt")
    deductions = _of(events, XpDeductEvent)
    check("One deduction", len(deductions) == 1)
    check("Date from preceding window", deductions and deductions[0].date == "2025-06-15")
    check("Negative amount stored as magnitude", deductions and deductions[0].xp_deducted == 300)
    check("Status reached", deductions and deductions[0].status_reached is StatusLevel.GOLD)
    check("Raw excerpt kept", deductions and deductions[0].raw.startswith("15 jun 2025 Aftrek"))

    split = extract_requalification_events("15 jun\n2025 Aftrek XP-\nteller\n-300 XP\nGold bereikt")
    check("Marker and date split across lines", len(_of(split, XpDeductEvent)) == 1)

    for text, status in [
        ("12 jun 2025 XP counter deduction -180 XP Platinum reached", StatusLevel.PLATINUM),
        ("12 juin 2025 Déduction du compteur XP -180 XP Silver atteint", StatusLevel.SILVER),
        ("12 jun 2025 Reset XP-teller -100 XP Ultimate erreicht", StatusLevel.ULTIMATE),
    ]:
        found = _of(extract_requalification_events(text), XpDeductEvent)
        check(f"{text[12:36]!r} -> {status.value}", len(found) == 1 and found[0].status_reached is status)

    unknown = _of(extract_requalification_events("12 jun 2025 Aftrek XP-teller -300 XP"), XpDeductEvent)
    check("No status phrase -> Unknown", unknown and unknown[0].status_reached == UNKNOWN_STATUS)

    nearest = _of(
        extract_requalification_events("01 jan 2025 x 12 jun 2025 Aftrek XP-teller -300 XP"),
        XpDeductEvent,
    )
    check("Nearest preceding date wins", nearest and nearest[0].date == "2025-06-12")

    far = "12 jun 2025 " + "x" * 90 + " Aftrek XP-teller -300 XP"
    check("No date inside window -> skipped", _of(extract_requalification_events(far), XpDeductEvent) == [])
    wide = ParserSettings(event_date_window=150)
    check(
        "Wider window finds the date",
        len(_of(extract_requalification_events(far, wide), XpDeductEvent)) == 1,
    )
    no_xp = "12 jun 2025 Aftrek XP-teller" + " " * 250 + "-300 XP"
    check("No XP inside window -> skipped", _of(extract_requalification_events(no_xp), XpDeductEvent) == [])

    impossible = _of(
        extract_requalification_events("31 feb 2025 Aftrek XP-teller -300 XP"),
        XpDeductEvent,
    )
    check("Impossible date -> kept with no date", impossible and impossible[0].date is None)

    # Category 2: surpluses
    print("\n  Surplus XP:")
    surplus = _of(extract_requalification_events("15 jun 2025 Surplus XP beschikbaar 45 XP"), SurplusXpEvent)
    check("Rollover 45", surplus and surplus[0].rollover_xp == 45)
    check("Surplus date", surplus and surplus[0].date == "2025-06-15")
    english = _of(extract_requalification_events("02 Mar 2025 Surplus XP available 30 XP"), SurplusXpEvent)
    check("English marker", english and english[0].rollover_xp == 30)
    french = _of(extract_requalification_events("02 mars 2025 XP excédentaires 12 XP"), SurplusXpEvent)
    check("French marker", french and french[0].rollover_xp == 12)

    bare_surplus = extract_requalification_events(
        "15 jun 2025 Surplus XP beschikbaar\n16 jun 2025 Mijn reis naar Berlijn 1000 Miles 60 XP"
    )
    check(
        "Surplus without amount does not take the next line's XP",
        _of(bare_surplus, SurplusXpEvent) == [],
    )
    bare_deduct = extract_requalification_events(
        "15 jun 2025 Aftrek XP-teller Gold bereikt\n16 jun 2025 Air adjustment -8 XP"
    )
    check(
        "Deduction without amount does not take the next line's XP",
        _of(bare_deduct, XpDeductEvent) == [],
    )

    # Category 3: cycle boundaries
    print("\n  Cycle boundaries:")
    boundary_text = (
        "Kwalificatieperiode eindigend op 30/06/2025 is afgesloten. "
        "Nieuwe periode beginnend op 01/07/2025."
    )
    boundaries = _of(extract_requalification_events(boundary_text), CycleBoundaryEvent)
    check("One boundary", len(boundaries) == 1)
    check("End date", boundaries and boundaries[0].cycle_end == "2025-06-30")
    check("Start date", boundaries and boundaries[0].cycle_start == "2025-07-01")

    french_boundary = "période se terminant le 31/03/2025, nouvelle période commençant le 01/04/2025"
    check(
        "French boundary",
        len(_of(extract_requalification_events(french_boundary), CycleBoundaryEvent)) == 1,
    )
    distant = "ending on 30/06/2025" + " " * 300 + "beginning on 01/07/2025"
    check("Start beyond window -> no boundary", _of(extract_requalification_events(distant), CycleBoundaryEvent) == [])
    invalid = "ending on 31/02/2025 beginning on 01/03/2025"
    check("Invalid date -> no boundary", _of(extract_requalification_events(invalid), CycleBoundaryEvent) == [])

    # Category 4: merged output
    print("\n  Merged output:")
    statement = (
        "ending on 31/03/2025, starting on 01/04/2025\n"
        "02 Mar 2025 XP counter deduction -180 XP Platinum reached\n"
        "02 Mar 2025 Surplus XP available 30 XP\n"
        "10 Jan 2024 XP counter deduction -100 XP Silver reached\n"
    )
    merged = extract_requalification_events(statement)
    check("Four events", len(merged) == 4)
    check("Text order", [event.position for event in merged] == sorted(event.position for event in merged))
    check(
        "Kinds in order",
        [event.kind for event in merged] == ["CYCLE_BOUNDARY", "XP_DEDUCT", "SURPLUS_XP", "XP_DEDUCT"],
    )
    check("Empty text -> no events", extract_requalification_events("") == [])

    print(f"\n{LINE * 50}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Requalification Events: COMPLETE {PASS}")
    else:
        print(f"  Requalification Events: {failed} FAILED")
    print(f"{LINE * 50}")
    return failed


def test_events() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
