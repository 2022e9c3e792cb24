"""
test_bonus.py - Bonus XP rule table tests.

Validates:
- Every BonusCategory has a rule and is detected
- Qualifier rules (AMEX annual, Discount Pass)
- Non-positive XP dropped, identical credits all kept
- Quantity never taken from the next dated transaction

Usage: python test_bonus.py
"""

from __future__ import annotations

import os
import re
import sys
from typing import Optional

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from bonus import BONUS_RULES, BonusRule, extract_bonus_events
from models import BonusCategory


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

CATEGORY_LINES: list[tuple[str, BonusCategory, int, Optional[str]]] = [
    ("02 sep 2025 American Express Platinum Welcome bonus 25 XP", BonusCategory.AMEX_WELCOME, 25, "2025-09-02"),
    ("14 nov 2025 Miles donation 0 Miles 10 XP", BonusCategory.DONATION_XP, 10, "2025-11-14"),
    ("Miles+Points first flight bonus 5 XP", BonusCategory.FIRST_FLIGHT, 5, None),
    ("03 jan 2025 Air adjustment 8 XP", BonusCategory.AIR_ADJUSTMENT, 8, "2025-01-03"),
    ("20 feb 2025 Hotel - Novotel Amsterdam 500 Miles 4 XP", BonusCategory.HOTEL_XP, 4, "2025-02-20"),
    ("21 feb 2025 Accor Live Limitless stay 6 XP", BonusCategory.HOTEL_XP, 6, "2025-02-21"),
    ("12 apr 2025 Flying Blue Discount Pass purchase 15 XP", BonusCategory.DISCOUNT_PASS, 15, "2025-04-12"),
]


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
    print("  Bonus XP Tests")
    print(LINE * 50)

    # Category 1: rule table
    print("\n  Rule table:")
    check(
        "Every category has a rule",
        {rule.category for rule in BONUS_RULES} == set(BonusCategory),
    )
    check(
        "Only the first-flight rule is undated",
        [rule.category for rule in BONUS_RULES if not rule.dated] == [BonusCategory.FIRST_FLIGHT],
    )

    # Category 2: each category in isolation
    print("\n  Single lines:")
    for line, category, xp, date in CATEGORY_LINES:
        events = extract_bonus_events(line)
        check(
            f"{category.value}: {xp} XP, date {date}",
            len(events) == 1
            and events[0].category is category
            and events[0].xp == xp
            and events[0].date == date,
        )

    # Category 3: AMEX variants
    print("\n  American Express:")
    annual = extract_bonus_events("05 mar 2025 American Express Platinum Card Annual bonus 1000 Miles 30 XP")
    check(
        "Annual bonus through card boilerplate",
        [(e.category, e.xp) for e in annual] == [(BonusCategory.AMEX_ANNUAL, 30)],
    )
    both = extract_bonus_events(
        "02 sep 2025 American Express Welcome 25 XP\n"
        "05 mar 2026 American Express Annual bonus 30 XP"
    )
    check(
        "Welcome and annual lines counted once each",
        sorted((e.category.value, e.xp) for e in both)
        == [("AMEX_ANNUAL", 30), ("AMEX_WELCOME", 25)],
    )
    neighbours = extract_bonus_events(
        "10 jan 2025 American Express Platinum Welcome bonus 10 XP\n"
        "11 jan 2025 Accor Live Limitless Annual bonus stay 20 XP"
    )
    check(
        "Annual bonus on a later transaction stays with that transaction",
        [(e.category, e.xp, e.date) for e in neighbours]
        == [
            (BonusCategory.AMEX_WELCOME, 10, "2025-01-10"),
            (BonusCategory.HOTEL_XP, 20, "2025-01-11"),
        ],
    )
    plain = extract_bonus_events("05 mar 2025 American Express Card spending 1000 Miles")
    check("Card spending without qualifier ignored", plain == [])

    # Category 4: filters
    print("\n  Filters:")
    check("Zero XP dropped", extract_bonus_events("03 jan 2025 Air adjustment 0 XP") == [])
    check("Negative XP dropped", extract_bonus_events("03 jan 2025 Air adjustment -8 XP") == [])
    duplicated = extract_bonus_events(
        "14 nov 2025 Miles donation 10 XP\n14 nov 2025 Miles donation 10 XP"
    )
    check("Identical donations both kept", len(duplicated) == 2)
    check("Events in text order", duplicated[0].position < duplicated[1].position if len(duplicated) == 2 else False)

    no_xp = extract_bonus_events("20 feb 2025 Hotel - Novotel 500 Miles\n21 feb 2025 Air adjustment 8 XP")
    check(
        "Hotel line without XP does not take the next line's XP",
        [e.category for e in no_xp] == [BonusCategory.AIR_ADJUSTMENT],
    )
    check("Plain text -> no events", extract_bonus_events("Mijn reis naar Berlijn 1000 Miles 60 XP") == [])

    # Category 5: custom rules
    print("\n  Custom rules:")
    rules = (BonusRule(BonusCategory.AIR_ADJUSTMENT, re.compile(r"Goodwill", re.IGNORECASE)),)
    custom = extract_bonus_events("01 may 2025 Goodwill gesture 12 XP", rules=rules)
    check("Custom rule table applied", [(e.category, e.xp) for e in custom] == [(BonusCategory.AIR_ADJUSTMENT, 12)])

    print(f"\n{LINE * 50}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Bonus XP: COMPLETE {PASS}")
    else:
        print(f"  Bonus XP: {failed} FAILED")
    print(f"{LINE * 50}")
    return failed


def test_bonus() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
