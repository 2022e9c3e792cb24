"""
test_config.py - Parser settings and environment override tests.

Usage: python test_config.py
"""

from __future__ import annotations

import os
import sys

from pydantic import ValidationError

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import DEFAULT_SETTINGS, ENV_PREFIX, ParserSettings, load_settings
from models import CycleStartSource, FlightPrecedence


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


def _clear_statement_env() -> dict[str, str]:
    saved = {key: value for key, value in os.environ.items() if key.startswith(ENV_PREFIX)}
    for key in saved:
        del os.environ[key]
    return saved


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
    print("  Settings Tests")
    print(LINE * 50)

    saved = _clear_statement_env()
    try:
        print("\n  Defaults:")
        check("Status window 300", DEFAULT_SETTINGS.status_window == 300)
        check("Trip date window 50", DEFAULT_SETTINGS.trip_date_window == 50)
        check(
            "Segment windows 100/300",
            (DEFAULT_SETTINGS.segment_date_back_window, DEFAULT_SETTINGS.segment_date_forward_window)
            == (100, 300),
        )
        check("Event date window 80", DEFAULT_SETTINGS.event_date_window == 80)
        check(
            "Quantity/bonus/boundary windows 200/250/250",
            (DEFAULT_SETTINGS.quantity_window, DEFAULT_SETTINGS.bonus_window, DEFAULT_SETTINGS.boundary_window)
            == (200, 250, 250),
        )
        check("Derived cycle start", DEFAULT_SETTINGS.cycle_start_source is CycleStartSource.DERIVED)
        check("Segments precedence", DEFAULT_SETTINGS.flight_precedence is FlightPrecedence.SEGMENTS)
        check("No environment -> defaults", load_settings() == DEFAULT_SETTINGS)
        check("Direct construction", ParserSettings(status_window=120).status_window == 120)

        try:
            DEFAULT_SETTINGS.status_window = 10  # type: ignore[misc]
            check("Settings are frozen", False)
        except ValidationError:
            check("Settings are frozen", True)

        print("\n  Environment:")
        os.environ[f"{ENV_PREFIX}STATUS_WINDOW"] = "120"
        os.environ[f"{ENV_PREFIX}CYCLE_START_SOURCE"] = "EXPLICIT"
        os.environ[f"{ENV_PREFIX}FLIGHT_PRECEDENCE"] = " trips "
        settings = load_settings()
        check("Integer override", settings.status_window == 120)
        check("Enum override is case-insensitive", settings.cycle_start_source is CycleStartSource.EXPLICIT)
        check("Whitespace trimmed", settings.flight_precedence is FlightPrecedence.TRIPS)

        os.environ[f"{ENV_PREFIX}TRIP_DATE_WINDOW"] = "abc"
        os.environ[f"{ENV_PREFIX}BONUS_WINDOW"] = "0"
        settings = load_settings()
        check("Non-numeric value ignored", settings.trip_date_window == 50)
        check("Out-of-range value ignored", settings.bonus_window == 250)
        check("Valid values still applied", settings.status_window == 120)

        print("\n  Overrides:")
        settings = load_settings({"flight_precedence": "segments", "cycle_start_source": None})
        check("Explicit override beats environment", settings.flight_precedence is FlightPrecedence.SEGMENTS)
        check("None override keeps environment", settings.cycle_start_source is CycleStartSource.EXPLICIT)
        try:
            load_settings({"flight_precedence": "sideways"})
            check("Invalid override raises", False)
        except ValueError:
            check("Invalid override raises", True)
    finally:
        _clear_statement_env()
        os.environ.update(saved)

    print(f"\n{LINE * 50}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Settings: COMPLETE {PASS}")
    else:
        print(f"  Settings: {failed} FAILED")
    print(f"{LINE * 50}")
    return failed


def test_config() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
