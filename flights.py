"""
flights.py - Trip and segment extraction plus cross-pass deduplication.

Two independent passes over newline-collapsed text:

    trips     "12 jun 2025 Mijn reis naar Berlijn 1000 Miles 60 XP 0 UXP"
    segments  "AMS - BER KL1775 ... op 12 jun 2025 ... 500 Miles 30 XP"

Both passes over-generate: a trip summary and the segments printed under it
describe the same flights. `deduplicate_flights` resolves that once, after
both passes, according to FlightPrecedence.

Date association uses fixed character windows around each match. It is a
heuristic: a segment printed without its own date can pick up the date of
a neighbouring transaction.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from config import DEFAULT_SETTINGS, ParserSettings
from logging_config import get_logger
from models import FlightPrecedence, FlightSegment, TripSummary
from normalize import DateIndex, collapse_lines, excerpt

logger = get_logger(__name__)

Flight = Union[TripSummary, FlightSegment]

TRIP_PATTERN = re.compile(
    r"(?:Mijn\s+reis\s+naar|My\s+trip\s+to|Mon\s+voyage\s+(?:à|a|vers)|Meine\s+Reise\s+nach)"
    r"\s+([^\W\d_]+)\s+(\d+)\s*Miles\s+(\d+)\s*XP(?:\s+(\d+)\s*UXP)?",
    re.IGNORECASE,
)

# IATA airport codes are upper case in every statement language, so this
# pattern is case-sensitive to keep ordinary words out.
SEGMENT_PATTERN = re.compile(r"\b([A-Z]{3})\s*[-–—]\s*([A-Z]{3})\s+([A-Z]{2}\d{3,4})\b")

SEGMENT_QUANTITY = re.compile(
    r"(?<![\d-])(\d+)\s*Miles\s+(\d+)\s*XP(?:\s+(\d+)\s*UXP)?",
    re.IGNORECASE,
)


def extract_trips(
    text: str,
    dates: DateIndex,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[TripSummary]:
    trips: list[TripSummary] = []
    for match in TRIP_PATTERN.finditer(text):
        anchor = dates.before(match.start(), settings.trip_date_window)
        trips.append(
            TripSummary(
                destination=match.group(1),
                miles=int(match.group(2)),
                xp=int(match.group(3)),
                uxp=int(match.group(4)) if match.group(4) else 0,
                date=anchor.iso if anchor else None,
                position=match.start(),
                raw=excerpt(text, match.start(), match.end()),
            )
        )
    return trips


def _segment_date(
    position: int,
    next_segment: Optional[int],
    dates: DateIndex,
    settings: ParserSettings,
) -> Optional[str]:
    forward_window = settings.segment_date_forward_window
    if next_segment is not None:
        # A date after the next segment code belongs to that segment.
        forward_window = min(forward_window, next_segment - position)
    anchor = dates.after(position, forward_window, connector_only=True)
    if anchor is None:
        anchor = dates.before(position, settings.segment_date_back_window, connector_only=True)
    return anchor.iso if anchor else None


def extract_segments(
    text: str,
    dates: DateIndex,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> list[FlightSegment]:
    matches = list(SEGMENT_PATTERN.finditer(text))
    segments: list[FlightSegment] = []

    for index, match in enumerate(matches):
        next_segment = matches[index + 1].start() if index + 1 < len(matches) else None
        limit = match.end() + settings.segment_quantity_window
        if next_segment is not None:
            limit = min(limit, next_segment)

        quantity = SEGMENT_QUANTITY.search(text, match.end(), limit)
        if quantity is None:
            logger.debug(
                "segment_skipped | route=%s-%s | flight=%s | reason=no_quantity",
                match.group(1),
                match.group(2),
                match.group(3),
            )
            continue

        segments.append(
            FlightSegment(
                route=f"{match.group(1)}-{match.group(2)}",
                flight_number=match.group(3),
                miles=int(quantity.group(1)),
                xp=int(quantity.group(2)),
                uxp=int(quantity.group(3)) if quantity.group(3) else 0,
                date=_segment_date(match.start(), next_segment, dates, settings),
                position=match.start(),
                raw=excerpt(text, match.start(), quantity.end()),
            )
        )
    return segments


def extract_flights(
    text: str,
    settings: ParserSettings = DEFAULT_SETTINGS,
) -> tuple[list[TripSummary], list[FlightSegment]]:
    """Run both passes. Output is raw: the same flight may appear twice."""
    flat = collapse_lines(text)
    dates = DateIndex(flat)

    trips = extract_trips(flat, dates, settings)
    segments = extract_segments(flat, dates, settings)

    logger.info(
        "flights_complete | trips=%s | segments=%s | undated=%s",
        len(trips),
        len(segments),
        sum(1 for flight in [*trips, *segments] if flight.date is None),
    )
    return trips, segments


def _drop_exact_duplicates(records: list[Flight]) -> list[Flight]:
    seen: set[tuple[Optional[str], str, Optional[str]]] = set()
    kept: list[Flight] = []
    for record in records:
        # Undated records cannot be proven identical, so they are never merged.
        if record.date is not None:
            if record.dedup_key in seen:
                logger.debug("flight_duplicate_dropped | key=%s", record.dedup_key)
                continue
            seen.add(record.dedup_key)
        kept.append(record)
    return kept


def _segments_by_trip(
    trips: list[TripSummary],
    segments: list[FlightSegment],
) -> dict[int, list[FlightSegment]]:
    """Group segments under the trip summary printed before them.

    A segment belongs to a trip when it appears after that trip's marker and
    before the next trip's marker. Segments before the first trip belong to
    no trip.
    """
    grouped: dict[int, list[FlightSegment]] = {trip.position: [] for trip in trips}
    boundaries = [trip.position for trip in trips]
    for segment in segments:
        owner: Optional[int] = None
        for position in boundaries:
            if position < segment.position:
                owner = position
            else:
                break
        if owner is not None:
            grouped[owner].append(segment)
    return grouped


def _dated_from_trip(trip: TripSummary, members: list[FlightSegment]) -> list[FlightSegment]:
    if trip.date is None:
        return members
    dated: list[FlightSegment] = []
    for segment in members:
        if segment.date is None:
            logger.debug(
                "segment_date_from_trip | flight=%s | date=%s",
                segment.flight_number,
                trip.date,
            )
            segment = segment.model_copy(update={"date": trip.date})
        dated.append(segment)
    return dated


def deduplicate_flights(
    trips: list[TripSummary],
    segments: list[FlightSegment],
    precedence: FlightPrecedence = FlightPrecedence.SEGMENTS,
) -> list[Flight]:
    """Collapse the two extraction passes into one flight list.

    1. Exact duplicates (same dedup_key) keep their first occurrence.
    2. A trip with segments printed under it is counted once: under SEGMENTS
       precedence the segments replace the trip; under TRIPS precedence the
       trip is kept and its segments are dropped.
    3. A replacing segment with no date of its own takes the trip's date.
    """
    unique_trips = sorted(_drop_exact_duplicates(list(trips)), key=lambda item: item.position)
    unique_segments = sorted(
        _drop_exact_duplicates(list(segments)), key=lambda item: item.position
    )
    grouped = _segments_by_trip(unique_trips, unique_segments)
    covered = {segment.position for members in grouped.values() for segment in members}

    flights: list[Flight] = []
    if precedence is FlightPrecedence.SEGMENTS:
        for trip in unique_trips:
            if grouped[trip.position]:
                flights.extend(_dated_from_trip(trip, grouped[trip.position]))
            else:
                flights.append(trip)
    else:
        flights.extend(unique_trips)
    flights.extend(segment for segment in unique_segments if segment.position not in covered)

    flights.sort(key=lambda item: item.position)
    logger.info(
        "flights_deduplicated | precedence=%s | raw=%s | kept=%s",
        precedence.value,
        len(trips) + len(segments),
        len(flights),
    )
    return flights
