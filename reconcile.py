"""
reconcile.py - Qualification cycle derivation and XP reconciliation.

Consumes the outputs of the four extractors:

    events   -> latest level-up, rollover, explicit cycle boundary
    flights  -> deduplicated flight XP/UXP
    bonus    -> non-flight XP
    header   -> official XP balance (the target)

and produces:

    expected = rollover + in-cycle flight XP + in-cycle bonus XP
    difference = official - expected

A nonzero difference is a result, not an error. It is classified with
the causes most often behind it.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Sequence, Union

import pandas as pd

from config import DEFAULT_SETTINGS, ParserSettings
from logging_config import get_logger
from models import (
    AnalysisStatus,
    BonusXPEvent,
    CycleBoundaryEvent,
    CycleStartSource,
    DiscrepancyCause,
    FlightSegment,
    HeaderSnapshot,
    MonthlyFlightSummary,
    QualificationCycle,
    ReconciliationResult,
    SurplusXpEvent,
    TripSummary,
    XpDeductEvent,
)
from normalize import first_of_next_month

logger = get_logger(__name__)

Flight = Union[TripSummary, FlightSegment]
Event = Union[XpDeductEvent, SurplusXpEvent, CycleBoundaryEvent]

# -- Hypotheses --
# Listed most likely first. Official > calculated means the ledger is missing
# credits; official < calculated means it counts credits the program does not.

MISSING_XP_CAUSES = (
    "Bonus XP not detected (AMEX, hotel, etc.)",
    "SAF XP not included in trip totals",
    "Flight date parsing issues",
)

OVERCOUNTED_XP_CAUSES = (
    "Flights from previous cycle included",
    "Cycle start date calculated incorrectly",
)

UNVERIFIABLE_CAUSE = "Official XP balance not found in statement header"

MONTHLY_SUMMARY_MONTHS = 6
# Months shown in the monthly flight digest, most recent first.


class CycleAnalysis(NamedTuple):
    """Everything reconcile_statement derives for the report."""

    status: AnalysisStatus
    cycle: Optional[QualificationCycle]
    reconciliation: Optional[ReconciliationResult]
    unattributable_flights: list[Flight]
    unattributable_bonuses: list[BonusXPEvent]
    warnings: list[str]


def split_events(
    events: Sequence[Event],
) -> tuple[list[XpDeductEvent], list[SurplusXpEvent], list[CycleBoundaryEvent]]:
    """Split the tagged union by kind. Every kind must be handled here."""
    deductions: list[XpDeductEvent] = []
    surpluses: list[SurplusXpEvent] = []
    boundaries: list[CycleBoundaryEvent] = []
    for event in events:
        if isinstance(event, XpDeductEvent):
            deductions.append(event)
        elif isinstance(event, SurplusXpEvent):
            surpluses.append(event)
        elif isinstance(event, CycleBoundaryEvent):
            boundaries.append(event)
        else:
            raise TypeError(f"Unhandled requalification event kind: {type(event).__name__}")
    return deductions, surpluses, boundaries


def latest_level_up(deductions: Sequence[XpDeductEvent]) -> Optional[XpDeductEvent]:
    """Most recent dated XP deduction. Undated deductions cannot anchor a cycle."""
    dated = [event for event in deductions if event.date is not None]
    if not dated:
        return None
    dated.sort(key=lambda event: event.date, reverse=True)
    return dated[0]


def determine_cycle(
    events: Sequence[Event],
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> Optional[QualificationCycle]:
    """Derive the current qualification cycle, or None without a level-up.

    The derived start (1st of the month after the level-up) is the program
    rule. An explicit "beginning on" boundary is reported alongside it and
    only used when settings.cycle_start_source is EXPLICIT.
    """
    deductions, surpluses, boundaries = split_events(events)
    latest = latest_level_up(deductions)
    if latest is None:
        logger.info("cycle_unavailable | reason=no_level_up | deductions=%s", len(deductions))
        return None

    derived_start = first_of_next_month(latest.date)
    explicit_start: Optional[str] = None
    if boundaries:
        explicit_start = max(boundary.cycle_start for boundary in boundaries)

    # Rollover belongs to the level-up only on the exact same date.
    rollover = next(
        (surplus.rollover_xp for surplus in surpluses if surplus.date == latest.date),
        0,
    )

    source = CycleStartSource.DERIVED
    start_date = derived_start
    if settings.cycle_start_source is CycleStartSource.EXPLICIT and explicit_start:
        source = CycleStartSource.EXPLICIT
        start_date = explicit_start

    cycle = QualificationCycle(
        start_date=start_date,
        rollover_xp=rollover,
        status_reached=latest.status_reached,
        level_up_date=latest.date,
        derived_start_date=derived_start,
        explicit_start_date=explicit_start,
        start_source=source,
    )
    if cycle.has_start_conflict:
        logger.warning(
            "cycle_start_conflict | derived=%s | explicit=%s | using=%s",
            derived_start,
            explicit_start,
            source.value,
        )
    logger.info(
        "cycle_determined | level_up=%s | start=%s | source=%s | rollover=%s",
        cycle.level_up_date,
        cycle.start_date,
        source.value,
        rollover,
    )
    return cycle


def classify_difference(
    difference: Optional[int],
    unattributable_flights: int = 0,
    unattributable_bonuses: int = 0,
    start_conflict: bool = False,
) -> tuple[DiscrepancyCause, list[str]]:
    """Map a signed difference to a cause and ordered hypotheses."""
    if difference is None:
        return DiscrepancyCause.UNVERIFIABLE, [UNVERIFIABLE_CAUSE]
    if difference == 0:
        return DiscrepancyCause.RECONCILED, []

    if difference > 0:
        hypotheses = list(MISSING_XP_CAUSES)
        if unattributable_flights:
            hypotheses.append(f"{unattributable_flights} flight(s) without a date were excluded")
        if unattributable_bonuses:
            hypotheses.append(f"{unattributable_bonuses} bonus event(s) without a date were excluded")
        return DiscrepancyCause.MISSING_XP, hypotheses

    hypotheses = list(OVERCOUNTED_XP_CAUSES)
    if start_conflict:
        hypotheses.append("Explicit cycle boundary disagrees with the derived cycle start")
    return DiscrepancyCause.OVERCOUNTED_XP, hypotheses


def reconcile(
    cycle: QualificationCycle,
    official_xp: Optional[int],
    flights: Sequence[Flight],
    bonuses: Sequence[BonusXPEvent],
) -> tuple[ReconciliationResult, list[Flight], list[BonusXPEvent]]:
    """Sum in-cycle XP and compare with the official balance.

    In-cycle means dated strictly after the cycle start. Zero-padded ISO
    strings compare chronologically, so no date parsing is needed here.
    Undated records are returned separately instead of being guessed in.
    """
    start = cycle.start_date

    unattributable_flights = [flight for flight in flights if flight.date is None]
    in_cycle_flights = [flight for flight in flights if flight.date is not None and flight.date > start]
    unattributable_bonuses = [bonus for bonus in bonuses if bonus.date is None]
    in_cycle_bonuses = [bonus for bonus in bonuses if bonus.date is not None and bonus.date > start]

    flight_xp = sum(flight.xp for flight in in_cycle_flights)
    flight_uxp = sum(flight.uxp for flight in in_cycle_flights)
    bonus_xp = sum(bonus.xp for bonus in in_cycle_bonuses)
    calculated = cycle.rollover_xp + flight_xp + bonus_xp
    difference = official_xp - calculated if official_xp is not None else None

    cause, hypotheses = classify_difference(
        difference,
        unattributable_flights=len(unattributable_flights),
        unattributable_bonuses=len(unattributable_bonuses),
        start_conflict=cycle.has_start_conflict,
    )

    result = ReconciliationResult(
        rollover_xp=cycle.rollover_xp,
        flight_xp_in_cycle=flight_xp,
        flight_uxp_in_cycle=flight_uxp,
        bonus_xp_in_cycle=bonus_xp,
        calculated_xp=calculated,
        official_xp=official_xp,
        difference=difference,
        cause=cause,
        hypotheses=hypotheses,
    )
    logger.info(
        "reconcile_complete | start=%s | rollover=%s | flights=%s | bonus=%s | "
        "calculated=%s | official=%s | difference=%s | cause=%s",
        start,
        cycle.rollover_xp,
        flight_xp,
        bonus_xp,
        calculated,
        official_xp,
        difference,
        cause.value,
    )
    if unattributable_flights or unattributable_bonuses:
        logger.warning(
            "reconcile_unattributable | flights=%s | bonuses=%s",
            len(unattributable_flights),
            len(unattributable_bonuses),
        )
    return result, unattributable_flights, unattributable_bonuses


def reconcile_statement(
    header: HeaderSnapshot,
    events: Sequence[Event],
    flights: Sequence[Flight],
    bonuses: Sequence[BonusXPEvent],
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> CycleAnalysis:
    """Run cycle derivation and reconciliation, degrading to partial results."""
    warnings: list[str] = []
    cycle = determine_cycle(events, settings)

    if cycle is None:
        warnings.append("No level-up (XP deduction) found: current-cycle analysis unavailable")
        return CycleAnalysis(
            status=AnalysisStatus.NO_LEVEL_UP,
            cycle=None,
            reconciliation=None,
            unattributable_flights=[flight for flight in flights if flight.date is None],
            unattributable_bonuses=[bonus for bonus in bonuses if bonus.date is None],
            warnings=warnings,
        )

    if cycle.has_start_conflict:
        warnings.append(
            f"Cycle start conflict: derived {cycle.derived_start_date}, "
            f"explicit {cycle.explicit_start_date} (using {cycle.start_source.value})"
        )

    result, undated_flights, undated_bonuses = reconcile(
        cycle,
        header.xp_balance,
        flights,
        bonuses,
    )

    status = AnalysisStatus.COMPLETE
    if header.xp_balance is None:
        status = AnalysisStatus.NO_OFFICIAL_BALANCE
        warnings.append("Official XP balance missing from header: difference not computed")
    if undated_flights:
        warnings.append(f"{len(undated_flights)} flight(s) have no date and were not attributed to a cycle")
    if undated_bonuses:
        warnings.append(f"{len(undated_bonuses)} bonus event(s) have no date and were not attributed to a cycle")

    return CycleAnalysis(
        status=status,
        cycle=cycle,
        reconciliation=result,
        unattributable_flights=undated_flights,
        unattributable_bonuses=undated_bonuses,
        warnings=warnings,
    )


def summarize_flights_by_month(
    flights: Sequence[Flight],
    limit: int = MONTHLY_SUMMARY_MONTHS,
) -> list[MonthlyFlightSummary]:
    """Per-month flight count and XP/UXP totals, most recent month first."""
    rows = [
        {"month": flight.date[:7], "xp": flight.xp, "uxp": flight.uxp}
        for flight in flights
        if flight.date is not None
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    grouped = (
        df.groupby("month", sort=True)
        .agg(flights=("xp", "size"), xp=("xp", "sum"), uxp=("uxp", "sum"))
        .sort_index(ascending=False)
        .head(limit)
    )
    return [
        MonthlyFlightSummary(
            month=str(month),
            flights=int(row["flights"]),
            xp=int(row["xp"]),
            uxp=int(row["uxp"]),
        )
        for month, row in grouped.iterrows()
    ]
