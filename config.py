"""
config.py - Tunable parsing windows and precedence switches.

Date and quantity association works by searching a fixed number of
characters around a marker phrase. Those windows are heuristics, so they
live here as settings instead of being hard-coded in the extractors.

Overrides come from the environment (or a local .env file):

    STATEMENT_STATUS_WINDOW=300
    STATEMENT_CYCLE_START_SOURCE=explicit
    STATEMENT_FLIGHT_PRECEDENCE=trips
"""

from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from logging_config import get_logger
from models import CycleStartSource, FlightPrecedence

logger = get_logger(__name__)

ENV_PREFIX = "STATEMENT_"


class ParserSettings(BaseModel):
    """Window sizes (in characters) and precedence policy for one parse run."""

    model_config = ConfigDict(frozen=True)

    # Forward search for "<Status> reached" after a deduction marker.
    status_window: int = Field(default=300, ge=1)
    # Backward search for the trip date before "My trip to ...".
    trip_date_window: int = Field(default=50, ge=1)
    segment_date_back_window: int = Field(default=100, ge=1)
    segment_date_forward_window: int = Field(default=300, ge=1)
    # Backward search for the transaction date before an event marker.
    event_date_window: int = Field(default=80, ge=1)
    # Forward search for the "<n> XP" quantity after an event marker.
    quantity_window: int = Field(default=200, ge=1)
    bonus_window: int = Field(default=250, ge=1)
    # Distance between "ending on <date>" and "beginning on <date>".
    boundary_window: int = Field(default=250, ge=1)
    # Forward search for "Miles ... XP" after a segment code.
    segment_quantity_window: int = Field(default=300, ge=1)

    cycle_start_source: CycleStartSource = CycleStartSource.DERIVED
    flight_precedence: FlightPrecedence = FlightPrecedence.SEGMENTS


DEFAULT_SETTINGS = ParserSettings()


def _load_env_file() -> None:
    try:
        load_dotenv()
    except UnicodeDecodeError:
        # Fallback for legacy Windows-encoded .env files.
        load_dotenv(encoding="cp1252")


def load_settings(overrides: Optional[dict[str, Any]] = None) -> ParserSettings:
    """Build settings from defaults, STATEMENT_* variables and explicit overrides.

    Explicit overrides (e.g. from CLI flags) win over the environment.
    Invalid environment values are logged and ignored rather than aborting
    the run, so a typo in .env never blocks analysis.
    """
    _load_env_file()

    values: dict[str, Any] = {}
    for name in ParserSettings.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is None or not raw.strip():
            continue
        candidate = {name: raw.strip().lower()}
        try:
            ParserSettings(**candidate)
        except ValidationError:
            logger.warning(
                "settings_env_ignored | var=%s%s | value=%r",
                ENV_PREFIX,
                name.upper(),
                raw,
            )
            continue
        values.update(candidate)

    if overrides:
        values.update({key: value for key, value in overrides.items() if value is not None})

    settings = ParserSettings(**values)
    logger.debug(
        "settings_loaded | cycle_start_source=%s | flight_precedence=%s | env_keys=%s",
        settings.cycle_start_source.value,
        settings.flight_precedence.value,
        sorted(values),
    )
    return settings
