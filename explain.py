"""
explain.py - Human-readable and JSON-ready report formatting.

This module converts a structured `StatementReport` into:
- terminal-friendly diagnostic text for CLI usage
- a JSON-compatible dictionary for the API and --json output

Every section is printed; a section with nothing to show says so instead
of being left out.
"""

from __future__ import annotations

from typing import Any, Optional

from logging_config import get_logger
from models import AnalysisStatus, BonusCategory, DiscrepancyCause, StatementReport, StatusLevel, TripSummary

logger = get_logger(__name__)

CAUSE_NAMES: dict[DiscrepancyCause, str] = {
    DiscrepancyCause.RECONCILED: "Reconciled",
    DiscrepancyCause.MISSING_XP: "Missing XP from calculation",
    DiscrepancyCause.OVERCOUNTED_XP: "Overcounting XP in calculation",
    DiscrepancyCause.UNVERIFIABLE: "Cannot verify (no official XP)",
}

OUTPUT_WIDTH = 64
SEPARATOR = "=" * OUTPUT_WIDTH
RULE = "-" * 50
MAX_TRIPS_DISPLAY = 10


def _section(lines: list[str], title: str) -> None:
    lines.append("")
    lines.append(f"  {title}")
    lines.append(f"  {RULE}")


def _status_name(status: Any) -> str:
    return status.value if isinstance(status, StatusLevel) else str(status)


def _value(value: Optional[Any]) -> str:
    if value is None:
        return "not found"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


def _format_header(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "HEADER (official balances)")
    header = report.header
    lines.append(f"    Member:  {header.member_name or 'not found'} ({header.member_number or 'number not found'})")
    lines.append(f"    Status:  {header.status.value if header.status else 'not found'}")
    lines.append(f"    Miles:   {_value(header.miles_balance)}")
    lines.append(f"    XP:      {_value(header.xp_balance)}  <- reconciliation target")
    lines.append(f"    UXP:     {_value(header.uxp_balance)}")


def _format_events(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "REQUALIFICATION EVENTS")

    lines.append("    Level-ups (XP deductions):")
    deductions = sorted(report.xp_deductions, key=lambda event: event.date or "")
    if not deductions:
        lines.append("      (none found)")
    for event in deductions:
        lines.append(
            f"      {event.date or 'date unknown'}: -{event.xp_deducted} XP -> {_status_name(event.status_reached)} reached"
        )

    lines.append("    Rollover XP (surplus):")
    if not report.surpluses:
        lines.append("      (none found)")
    for event in report.surpluses:
        lines.append(f"      {event.date or 'date unknown'}: {event.rollover_xp} XP carried forward")

    lines.append("    Cycle boundaries:")
    if not report.cycle_boundaries:
        lines.append("      (none found)")
    for event in report.cycle_boundaries:
        lines.append(f"      ended {event.cycle_end} -> started {event.cycle_start}")


def _format_cycle(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "CURRENT CYCLE")
    cycle = report.cycle
    if cycle is None:
        lines.append("    No level-up found: current-cycle analysis unavailable")
        return

    lines.append(f"    Latest level-up:     {cycle.level_up_date}")
    lines.append(f"    Status reached:      {_status_name(cycle.status_reached)}")
    lines.append(f"    Rollover XP:         {cycle.rollover_xp}")
    lines.append(f"    Cycle start (rule):  {cycle.derived_start_date}")
    lines.append(f"    Cycle start (stmt):  {cycle.explicit_start_date or 'not stated'}")
    lines.append(f"    Using:               {cycle.start_date} ({cycle.start_source.value})")


def _format_bonuses(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "BONUS XP EVENTS")
    if not report.bonus_events:
        lines.append("    (none found)")
        return

    for category in BonusCategory:
        events = [event for event in report.bonus_events if event.category is category]
        if not events:
            continue
        lines.append(f"    {category.value}: {len(events)} event(s) = {sum(e.xp for e in events)} XP")
        for event in events:
            lines.append(f"      - {event.date or 'date unknown'}: {event.xp} XP")
    lines.append(f"    Total bonus XP detected: {report.total_bonus_xp}")


def _format_flights(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "FLIGHTS")
    lines.append(
        f"    Extracted: {len(report.trips)} trip(s), {len(report.segments)} segment(s); "
        f"{len(report.flights)} after deduplication"
    )
    if report.trips:
        lines.append("    Trips:")
        for trip in report.trips[:MAX_TRIPS_DISPLAY]:
            lines.append(
                f"      {trip.date or '?'}: {trip.destination} - {trip.xp} XP, {trip.uxp} UXP"
            )
        if len(report.trips) > MAX_TRIPS_DISPLAY:
            lines.append(f"      ... and {len(report.trips) - MAX_TRIPS_DISPLAY} more trip(s)")

    if report.monthly_flights:
        lines.append("    By month (latest first):")
        for month in report.monthly_flights:
            lines.append(
                f"      {month.month}: {month.flights} flight(s), {month.xp} XP, {month.uxp} UXP"
            )

    if report.unattributable_flights:
        lines.append(f"    Undated (not attributed): {len(report.unattributable_flights)}")
        for flight in report.unattributable_flights:
            label = flight.destination if isinstance(flight, TripSummary) else f"{flight.route} {flight.flight_number}"
            lines.append(f"      - {label}: {flight.xp} XP")


def _format_reconciliation(report: StatementReport, lines: list[str]) -> None:
    _section(lines, "XP CALCULATION")
    result = report.reconciliation
    if result is None:
        lines.append("    Not available (requires a level-up event)")
        return

    lines.append(f"    Rollover:            {result.rollover_xp}")
    lines.append(f"    Flight XP in cycle:  {result.flight_xp_in_cycle}")
    lines.append(f"    Flight UXP in cycle: {result.flight_uxp_in_cycle}")
    lines.append(f"    Bonus XP in cycle:   {result.bonus_xp_in_cycle}")
    lines.append("    " + "=" * 40)
    lines.append(
        f"    CALCULATED XP: {result.rollover_xp} + {result.flight_xp_in_cycle} + "
        f"{result.bonus_xp_in_cycle} = {result.calculated_xp}"
    )
    lines.append(f"    OFFICIAL XP:   {_value(result.official_xp)}")
    difference = "n/a" if result.difference is None else f"{result.difference:+d} XP"
    lines.append(f"    DIFFERENCE:    {difference}")
    lines.append("    " + "=" * 40)
    lines.append(f"    Result: {CAUSE_NAMES[result.cause]}")

    if result.hypotheses:
        lines.append("    Possible causes:")
        for hypothesis in result.hypotheses:
            lines.append(f"      - {hypothesis}")


def format_report(report: Optional[StatementReport]) -> str:
    """Format a StatementReport as a diagnostic text block."""
    if report is None:
        logger.error("explain_input_error | report_none=True | fallback=error_block")
        return "\n" + SEPARATOR + "\n  ERROR: No report data available\n" + SEPARATOR + "\n"

    lines: list[str] = ["", SEPARATOR, "  STATEMENT XP RECONCILIATION", SEPARATOR]
    if report.language:
        lines.append(f"  Language: {report.language}")

    _format_header(report, lines)
    _format_events(report, lines)
    _format_cycle(report, lines)
    _format_bonuses(report, lines)
    _format_flights(report, lines)
    _format_reconciliation(report, lines)

    if report.warnings:
        _section(lines, "WARNINGS")
        for warning in report.warnings:
            lines.append(f"    ! {warning}")

    lines.append("")
    lines.append(SEPARATOR)
    lines.append("")
    return "\n".join(lines)


def format_report_json(report: Optional[StatementReport]) -> dict:
    """Format a StatementReport as a JSON-compatible dictionary.

    The full typed report is included under "report"; "summary" repeats the
    headline numbers for consumers that only need the verdict.
    """
    if report is None:
        logger.error("explain_json_input_error | report_none=True | fallback=error_payload")
        return {
            "status": "error",
            "summary": None,
            "report": None,
            "warnings": ["Report object was None"],
        }

    result = report.reconciliation
    summary: Optional[dict[str, Any]] = None
    if result is not None:
        summary = {
            "calculated_xp": result.calculated_xp,
            "official_xp": result.official_xp,
            "difference": result.difference,
            "cause": result.cause.value,
            "cause_name": CAUSE_NAMES[result.cause],
            "is_reconciled": result.is_reconciled,
        }

    return {
        "status": report.status.value,
        "has_cycle_analysis": report.status is not AnalysisStatus.NO_LEVEL_UP,
        "summary": summary,
        "report": report.model_dump(mode="json"),
        "warnings": list(report.warnings),
    }
