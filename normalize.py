"""
normalize.py - Month, date and number normalization for statement text.

Core normalizers:
    find_month(token)          -> 1..12 or None
    parse_date(text)           -> ISO YYYY-MM-DD or None
    parse_int(text)            -> int or None
    collapse_lines(text)       -> single-line text
    first_of_next_month(iso)   -> ISO date of the following month's 1st

Scanning helpers shared by the extractors:
    DATE_PATTERN / find_dates(text) / DateIndex

Design principles:
    - Statements come in seven languages; month tokens are resolved through
      one static table rather than per-language parsers
    - Pure transformations, never raise on content
    - Unparseable input degrades to None ("date unknown")
"""

from __future__ import annotations

import bisect
import re
from datetime import date
from types import MappingProxyType
from typing import NamedTuple, Optional

from dateutil.relativedelta import relativedelta

from logging_config import get_logger

logger = get_logger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100

# Shortest token the resolver accepts; "ma" or "ju" are too ambiguous.
MIN_MONTH_TOKEN = 3

# Letters kept when cleaning a month token.
MONTH_TOKEN_STRIP = re.compile(r"[^a-zéûôàèùäöüßçñâîë]")

# Abbreviations and full names in EN, NL, FR, DE, ES, PT, IT. Overlaps across
# languages ("mei"/"mai", "set") map to the same month. Order matters for the
# prefix tier: earlier keys win.
MONTH_TABLE = MappingProxyType(
    {
        # English
        "jan": 1, "january": 1,
        "feb": 2, "february": 2,
        "mar": 3, "march": 3,
        "apr": 4, "april": 4,
        "may": 5,
        "jun": 6, "june": 6,
        "jul": 7, "july": 7,
        "aug": 8, "august": 8,
        "sep": 9, "sept": 9, "september": 9,
        "oct": 10, "october": 10,
        "nov": 11, "november": 11,
        "dec": 12, "december": 12,
        # Dutch
        "januari": 1,
        "februari": 2,
        "mrt": 3, "maart": 3,
        "mei": 5,
        "juni": 6,
        "juli": 7,
        "augustus": 8,
        "okt": 10, "oktober": 10,
        # French
        "janv": 1, "janvier": 1,
        "fév": 2, "févr": 2, "fevr": 2, "fevrier": 2, "février": 2,
        "mars": 3,
        "avr": 4, "avril": 4,
        "mai": 5,
        "jui": 6, "juin": 6,
        "juil": 7, "juillet": 7,
        "aoû": 8, "aout": 8, "août": 8,
        "septembre": 9,
        "octobre": 10,
        "novembre": 11,
        "déc": 12, "decembre": 12, "décembre": 12,
        # German
        "januar": 1,
        "februar": 2,
        "mär": 3, "mrz": 3, "maerz": 3, "märz": 3,
        "dez": 12, "dezember": 12,
        # Spanish
        "ene": 1, "enero": 1,
        "febrero": 2,
        "marzo": 3,
        "abr": 4, "abril": 4,
        "mayo": 5,
        "junio": 6,
        "julio": 7,
        "ago": 8, "agosto": 8,
        "set": 9, "septiembre": 9,
        "octubre": 10,
        "noviembre": 11,
        "dic": 12, "diciembre": 12,
        # Portuguese
        "janeiro": 1,
        "fevereiro": 2,
        "março": 3,
        "maio": 5,
        "junho": 6,
        "julho": 7,
        "setembro": 9,
        "out": 10, "outubro": 10,
        "novembro": 11,
        "dezembro": 12,
        # Italian
        "gen": 1, "gennaio": 1,
        "febbraio": 2,
        "mag": 5, "maggio": 5,
        "giu": 6, "giugno": 6,
        "lug": 7, "luglio": 7,
        "ott": 10, "ottobre": 10,
        "dicembre": 12,
    }
)

# Connector words meaning "on" that precede transaction dates
# ("op 12 jun 2025", "le 12 juin 2025", "am 12 Juni 2025").
DATE_CONNECTORS = ("op", "on", "le", "am", "el", "em", "il")

# "DD <month> YYYY", optionally preceded by a connector. The month token is
# any run of letters; only tokens that resolve through MONTH_TABLE count.
DATE_PATTERN = re.compile(
    r"(?:\b(?P<connector>" + "|".join(DATE_CONNECTORS) + r")\s+)?"
    r"(?<!\d)(?P<day>\d{1,2})\s+(?P<month>[^\W\d_]{3,})\.?\s+(?P<year>\d{4})(?!\d)",
    re.IGNORECASE,
)

_DAY_MONTH_YEAR = re.compile(
    r"(?:(?:" + "|".join(DATE_CONNECTORS) + r")\s+)?"
    r"(\d{1,2})\s+([^\W\d_]{3,})\.?\s+(\d{4})",
    re.IGNORECASE,
)
_MONTH_DAY_YEAR = re.compile(r"([^\W\d_]{3,})\.?\s+(\d{1,2}),?\s+(\d{4})")
_NUMERIC_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")

_INT_SEPARATORS = re.compile(r"[,.\s]")


def find_month(token: Optional[str]) -> Optional[int]:
    """Resolve a localized month token to 1..12.

    Tiers: exact key, first three letters, then a bidirectional prefix
    match in table order. The last tier is forgiving and can misfire on
    truncated tokens.
    """
    if not token:
        return None

    cleaned = MONTH_TOKEN_STRIP.sub("", token.lower())
    if len(cleaned) < MIN_MONTH_TOKEN:
        return None

    month = MONTH_TABLE.get(cleaned)
    if month is not None:
        return month

    month = MONTH_TABLE.get(cleaned[:3])
    if month is not None:
        return month

    for key, value in MONTH_TABLE.items():
        if cleaned.startswith(key) or key.startswith(cleaned):
            return value

    logger.debug("find_month | unresolved | token=%r", token)
    return None


def to_iso_date(year: int, month: int, day: int) -> Optional[str]:
    """Build a zero-padded ISO date, or None if it is not a real calendar day."""
    if not MIN_YEAR <= year <= MAX_YEAR or not 1 <= day <= 31:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        logger.debug(
            "to_iso_date | invalid_calendar_date | year=%s | month=%s | day=%s",
            year,
            month,
            day,
        )
        return None


def parse_date(text: Optional[str]) -> Optional[str]:
    """Parse a statement date into ISO YYYY-MM-DD.

    Accepted shapes:
        "17 dec 2025", "op 17 dec 2025", "le 3 févr. 2024"
        "Dec 17, 2025"
        "17/12/2025"
    Anything else, including "31 feb 2025", yields None.
    """
    if not text:
        return None
    candidate = text.strip()

    match = _DAY_MONTH_YEAR.fullmatch(candidate)
    if match:
        month = find_month(match.group(2))
        if month is None:
            return None
        return to_iso_date(int(match.group(3)), month, int(match.group(1)))

    match = _MONTH_DAY_YEAR.fullmatch(candidate)
    if match:
        month = find_month(match.group(1))
        if month is None:
            return None
        return to_iso_date(int(match.group(3)), month, int(match.group(2)))

    match = _NUMERIC_DATE.fullmatch(candidate)
    if match:
        month = int(match.group(2))
        if not 1 <= month <= 12:
            return None
        return to_iso_date(int(match.group(3)), month, int(match.group(1)))

    return None


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse an integer, tolerating grouping separators ("278,499", "1.250")."""
    if text is None:
        return None
    cleaned = _INT_SEPARATORS.sub("", str(text))
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        logger.debug("parse_int | parse_failed | raw=%r", text)
        return None


def collapse_lines(text: str) -> str:
    """Replace every line break with a space so events spanning lines match.

    Length is preserved, so positions in the collapsed text are positions in
    the original text.
    """
    return text.replace("\r\n", " \n").replace("\r", " ").replace("\n", " ")


def excerpt(text: str, start: int, end: int, limit: int = 160) -> str:
    """Whitespace-collapsed slice of `text` used as the `raw` trace of a record."""
    snippet = " ".join(text[max(0, start) : end].split())
    if len(snippet) > limit:
        return snippet[: limit - 3].rstrip() + "..."
    return snippet


def first_of_next_month(iso_date: str) -> str:
    """Return the 1st of the month after `iso_date` ("2025-06-15" -> "2025-07-01")."""
    current = date.fromisoformat(iso_date)
    return (current.replace(day=1) + relativedelta(months=1)).isoformat()


class DateMatch(NamedTuple):
    """A "DD <month> YYYY" fragment found in statement text."""

    start: int
    end: int
    iso: Optional[str]
    has_connector: bool
    raw: str


def find_dates(text: str) -> list[DateMatch]:
    """Find every date-shaped fragment whose month token resolves.

    A fragment whose month resolves but whose day is impossible
    ("31 feb 2025") is kept with iso=None so callers can record
    "date unknown" instead of borrowing a more distant date.
    """
    matches: list[DateMatch] = []
    for match in DATE_PATTERN.finditer(text):
        month = find_month(match.group("month"))
        if month is None:
            continue
        iso = to_iso_date(int(match.group("year")), month, int(match.group("day")))
        # The connector is part of the match but not of the date itself.
        start = match.start("day")
        matches.append(
            DateMatch(
                start=start,
                end=match.end(),
                iso=iso,
                has_connector=match.group("connector") is not None,
                raw=text[start : match.end()],
            )
        )
    return matches


class DateIndex:
    """Positional index of the dates in one text, for window lookups.

    Built once per extractor run so each marker lookup is a bisect instead
    of a fresh regex scan.
    """

    def __init__(self, text: str):
        self.dates = find_dates(text)
        self._starts = [item.start for item in self.dates]

    def __len__(self) -> int:
        return len(self.dates)

    def before(
        self,
        position: int,
        window: int,
        connector_only: bool = False,
    ) -> Optional[DateMatch]:
        """Nearest date ending at or before `position`, fully inside the window."""
        lower = position - window
        index = bisect.bisect_right(self._starts, position) - 1
        while index >= 0:
            candidate = self.dates[index]
            if candidate.start < lower:
                return None
            if candidate.end <= position and (candidate.has_connector or not connector_only):
                return candidate
            index -= 1
        return None

    def after(
        self,
        position: int,
        window: int,
        connector_only: bool = False,
    ) -> Optional[DateMatch]:
        """Nearest date starting at or after `position`, fully inside the window."""
        upper = position + window
        index = bisect.bisect_left(self._starts, position)
        while index < len(self.dates):
            candidate = self.dates[index]
            if candidate.end > upper:
                return None
            if candidate.has_connector or not connector_only:
                return candidate
            index += 1
        return None

    def next_start(self, position: int) -> Optional[int]:
        """Start offset of the first date after `position`, if any."""
        index = bisect.bisect_right(self._starts, position)
        if index < len(self._starts):
            return self._starts[index]
        return None
