"""
pipeline.py - Library entry point: statement text in, StatementReport out.

    report = analyze_statement(text)

Order of operations:
    1. validate_statement_text   warnings only, never blocks
    2. header / events / bonus / flights extractors (independent)
    3. deduplicate_flights
    4. reconcile_statement + monthly digest

The function is pure: the same text and settings always produce the same
report, byte for byte, when serialized with model_dump_json().
"""

from __future__ import annotations

from typing import Optional

from bonus import extract_bonus_events
from config import DEFAULT_SETTINGS, ParserSettings
from events import extract_requalification_events
from extract import extract_statement_text, validate_statement_text
from flights import deduplicate_flights, extract_flights
from header import extract_header
from logging_config import get_logger
from models import StatementReport
from reconcile import reconcile_statement, summarize_flights_by_month

logger = get_logger(__name__)


def analyze_statement(
    text: str,
    settings: Optional[ParserSettings] = None,
) -> StatementReport:
    """Parse statement text and reconcile it against the official XP balance."""
    settings = settings or DEFAULT_SETTINGS
    logger.info(
        "pipeline_start | chars=%s | cycle_start_source=%s | flight_precedence=%s",
        len(text),
        settings.cycle_start_source.value,
        settings.flight_precedence.value,
    )

    validation = validate_statement_text(text)
    warnings = [*validation.errors, *validation.warnings]

    header = extract_header(text)
    events = extract_requalification_events(text, settings)
    bonuses = extract_bonus_events(text, settings)
    trips, segments = extract_flights(text, settings)
    flights = deduplicate_flights(trips, segments, settings.flight_precedence)

    analysis = reconcile_statement(header, events, flights, bonuses, settings)
    warnings.extend(analysis.warnings)

    report = StatementReport(
        header=header,
        requalification_events=events,
        bonus_events=bonuses,
        trips=trips,
        segments=segments,
        flights=flights,
        cycle=analysis.cycle,
        reconciliation=analysis.reconciliation,
        status=analysis.status,
        unattributable_flights=analysis.unattributable_flights,
        unattributable_bonuses=analysis.unattributable_bonuses,
        monthly_flights=summarize_flights_by_month(flights),
        language=validation.language,
        warnings=warnings,
    )
    logger.info(
        "pipeline_complete | status=%s | difference=%s | warnings=%s",
        report.status.value,
        report.reconciliation.difference if report.reconciliation else None,
        len(warnings),
    )
    return report


def analyze_statement_file(
    file_path: str,
    settings: Optional[ParserSettings] = None,
) -> StatementReport:
    """Read a statement file and analyze it.

    Raises FileNotFoundError / StatementReadError from extract.py before any
    parsing happens.
    """
    statement = extract_statement_text(file_path)
    return analyze_statement(statement.text, settings)
