"""
events.py - Requalification event extraction.

Three independent marker-anchored scans over newline-collapsed text:

    XP_DEDUCT       "12 jun 2025 Aftrek XP-teller ... -300 XP ... Gold reached"
    SURPLUS_XP      "12 jun 2025 Surplus XP beschikbaar ... 45 XP"
    CYCLE_BOUNDARY  "eindigend op 30/06/2025 ... beginnend op 01/07/2025"

For each marker the date is the nearest "DD <month> YYYY" in a backward
window and the quantity the first "<n> XP" in a forward window. These
windows are heuristics (see config.ParserSettings); two transactions
printed close together can still borrow each other's date.

Results keep text order. Chronological sorting is the caller's job.
"""

from __future__ import annotations

import re
from typing import Optional

from config import DEFAULT_SETTINGS, ParserSettings
from logging_config import get_logger
from models import (
    UNKNOWN_STATUS,
    CycleBoundaryEvent,
    RequalificationEvent,
    StatusLevel,
    SurplusXpEvent,
    XpDeductEvent,
)
from normalize import DateIndex, collapse_lines, excerpt, parse_date

logger = get_logger(__name__)

DEDUCT_MARKER = re.compile(
    r"Aftrek\s+XP-?\s*teller"
    r"|Reset\s+XP-?\s*teller"
    r"|XP\s+counter\s+(?:deduction|reset)"
    r"|Déduction\s+du\s+compteur\s+XP",
    re.IGNORECASE,
)

SURPLUS_MARKER = re.compile(
    r"Surplus\s+XP\s+(?:beschikbaar|available)|XP\s+excédentaires",
    re.IGNORECASE,
)

BOUNDARY_END = re.compile(
    r"(?:eindigend\s+op|ending(?:\s+on)?|se\s+terminant\s+le)\s+(\d{1,2}/\d{1,2}/\d{4})",
    re.IGNORECASE,
)
BOUNDARY_START = re.compile(
    r"(?:beginnend\s+op|starting(?:\s+on)?|beginning\s+on|commençant\s+le)\s+(\d{1,2}/\d{1,2}/\d{4})",
    re.IGNORECASE,
)

SIGNED_XP = re.compile(r"(?<![\d-])(-?\d+)\s*XP\b")
UNSIGNED_XP = re.compile(r"(?<!\d)(\d+)\s*XP\b")

STATUS_REACHED = re.compile(
    r"\b(Explorer|Silver|Gold|Platinum|Ultimate)\s+(?:reached|bereikt|atteint|erreicht)",
    re.IGNORECASE,
)


def _status_after(text: str, position: int, window: int) -> StatusLevel | str:
    match = STATUS_REACHED.search(text, position, position + window)
    if not match:
        return UNKNOWN_STATUS
    return StatusLevel(match.group(1).title())


def _quantity_limit(marker: re.Match, dates: DateIndex, settings: ParserSettings) -> int:
    # The amount must precede the next dated transaction line.
    limit = marker.end() + settings.quantity_window
    next_date = dates.next_start(marker.end() - 1)
    if next_date is not None:
        limit = min(limit, next_date)
    return limit


def extract_deductions(
    text: str,
    dates: DateIndex,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[XpDeductEvent]:
    """Find XP counter deductions (level-ups). `text` must be newline-collapsed."""
    events: list[XpDeductEvent] = []
    for marker in DEDUCT_MARKER.finditer(text):
        anchor = dates.before(marker.start(), settings.event_date_window)
        if anchor is None:
            logger.debug("deduct_skipped | reason=no_date | position=%s", marker.start())
            continue
        quantity = SIGNED_XP.search(text, marker.end(), _quantity_limit(marker, dates, settings))
        if quantity is None:
            logger.debug("deduct_skipped | reason=no_xp | position=%s", marker.start())
            continue
        events.append(
            XpDeductEvent(
                date=anchor.iso,
                xp_deducted=abs(int(quantity.group(1))),
                status_reached=_status_after(text, marker.start(), settings.status_window),
                position=anchor.start,
                raw=excerpt(text, anchor.start, quantity.end()),
            )
        )
    return events


def extract_surpluses(
    text: str,
    dates: DateIndex,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[SurplusXpEvent]:
    """Find rollover XP carried into a new cycle. `text` must be newline-collapsed."""
    events: list[SurplusXpEvent] = []
    for marker in SURPLUS_MARKER.finditer(text):
        anchor = dates.before(marker.start(), settings.event_date_window)
        if anchor is None:
            logger.debug("surplus_skipped | reason=no_date | position=%s", marker.start())
            continue
        quantity = UNSIGNED_XP.search(text, marker.end(), _quantity_limit(marker, dates, settings))
        if quantity is None:
            logger.debug("surplus_skipped | reason=no_xp | position=%s", marker.start())
            continue
        events.append(
            SurplusXpEvent(
                date=anchor.iso,
                rollover_xp=int(quantity.group(1)),
                position=anchor.start,
                raw=excerpt(text, anchor.start, quantity.end()),
            )
        )
    return events


def extract_cycle_boundaries(
    text: str,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[CycleBoundaryEvent]:
    """Find explicit "ending on DD/MM/YYYY ... beginning on DD/MM/YYYY" pairs."""
    events: list[CycleBoundaryEvent] = []
    for end_match in BOUNDARY_END.finditer(text):
        start_match = BOUNDARY_START.search(
            text, end_match.end(), end_match.end() + settings.boundary_window
        )
        if start_match is None:
            continue
        cycle_end: Optional[str] = parse_date(end_match.group(1))
        cycle_start: Optional[str] = parse_date(start_match.group(1))
        if cycle_end is None or cycle_start is None:
            logger.warning(
                "boundary_skipped | reason=invalid_date | end=%r | start=%r | position=%s",
                end_match.group(1),
                start_match.group(1),
                end_match.start(),
            )
            continue
        events.append(
            CycleBoundaryEvent(
                cycle_end=cycle_end,
                cycle_start=cycle_start,
                position=end_match.start(),
                raw=excerpt(text, end_match.start(), start_match.end()),
            )
        )
    return events


def extract_requalification_events(
    text: str,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[RequalificationEvent]:
    """Run all three scans and merge the results in text order."""
    flat = collapse_lines(text)
    dates = DateIndex(flat)

    deductions = extract_deductions(flat, dates, settings)
    surpluses = extract_surpluses(flat, dates, settings)
    boundaries = extract_cycle_boundaries(flat, settings)

    events: list[RequalificationEvent] = [*deductions, *surpluses, *boundaries]
    events.sort(key=lambda event: event.position)

    logger.info(
        "events_complete | deductions=%s | surpluses=%s | boundaries=%s",
        len(deductions),
        len(surpluses),
        len(boundaries),
    )
    return events
