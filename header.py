"""
header.py - Official account balances from the statement summary.

The summary block holds the numbers the program itself considers
authoritative:

    JANE DOE
    GOLD
    Flying Blue-nummer: 1234567890
    Activiteitenoverzicht 278,499 Miles 183 XP 40 UXP

Every field is extracted independently. A statement with no recognisable
summary still yields a HeaderSnapshot, just with None fields.
"""

from __future__ import annotations

import re
from typing import Optional

from logging_config import get_logger
from models import HeaderSnapshot, StatusLevel
from normalize import parse_int

logger = get_logger(__name__)

# "<grouped miles> Miles <xp> XP [<uxp> UXP]". One separator style per number,
# so a page counter on the previous line cannot merge into the balance.
BALANCE_PATTERN = re.compile(
    r"(?<![\d,.])"
    r"(\d{1,3}(?:,\d{3})+|\d{1,3}(?:\.\d{3})+|\d{1,3}(?:[ \u00a0]\d{3})+|\d+)"
    r"\s*Miles\s+(\d+)\s*XP(?:\s+(\d+)\s*UXP)?",
    re.IGNORECASE,
)

STATUS_UPPER_PATTERN = re.compile(r"\b(EXPLORER|SILVER|GOLD|PLATINUM|ULTIMATE)\b")
STATUS_ANY_PATTERN = re.compile(r"\b(explorer|silver|gold|platinum|ultimate)\b", re.IGNORECASE)

MEMBER_NUMBER_PATTERN = re.compile(
    r"Flying\s*Blue[-\s](?:nummer|number|numéro)\s*:?\s*(\d+)",
    re.IGNORECASE,
)

# The member name is printed near the top of page one.
NAME_SEARCH_CHARS = 500
NAME_LINE_PATTERN = re.compile(r"[A-ZÀ-ÖØ-Þ][A-ZÀ-ÖØ-Þ'-]*(?:\s+[A-ZÀ-ÖØ-Þ][A-ZÀ-ÖØ-Þ'-]*)+")
NAME_EXCLUDED_WORDS = frozenset(
    {
        "EXPLORER", "SILVER", "GOLD", "PLATINUM", "ULTIMATE",
        "FLYING", "BLUE", "MILES", "XP", "UXP", "ACTIVITY", "PAGE", "PAGINA",
    }
)


def _extract_balances(text: str) -> tuple[Optional[int], Optional[int], Optional[int]]:
    match = BALANCE_PATTERN.search(text)
    if not match:
        logger.info("header_balances_missing | chars=%s", len(text))
        return None, None, None
    miles = parse_int(match.group(1))
    xp = parse_int(match.group(2))
    uxp = parse_int(match.group(3)) if match.group(3) else None
    return miles, xp, uxp


def _extract_status(text: str) -> Optional[StatusLevel]:
    # Statement headers print the tier in capitals; mixed-case hits are more
    # likely to come from activity lines ("Gold reached").
    match = STATUS_UPPER_PATTERN.search(text) or STATUS_ANY_PATTERN.search(text)
    if not match:
        return None
    return StatusLevel(match.group(1).title())


def _extract_member_name(text: str) -> Optional[str]:
    for line in text[:NAME_SEARCH_CHARS].splitlines():
        candidate = " ".join(line.split())
        if not 3 <= len(candidate) <= 50:
            continue
        if not NAME_LINE_PATTERN.fullmatch(candidate):
            continue
        if any(word in NAME_EXCLUDED_WORDS for word in candidate.split()):
            continue
        return candidate
    return None


def extract_header(text: str) -> HeaderSnapshot:
    """Extract the header snapshot; missing fields stay None."""
    miles, xp, uxp = _extract_balances(text)
    member_match = MEMBER_NUMBER_PATTERN.search(text)

    header = HeaderSnapshot(
        miles_balance=miles,
        xp_balance=xp,
        uxp_balance=uxp,
        status=_extract_status(text),
        member_number=member_match.group(1) if member_match else None,
        member_name=_extract_member_name(text),
    )
    logger.info(
        "header_complete | miles=%s | xp=%s | uxp=%s | status=%s | member=%s",
        header.miles_balance,
        header.xp_balance,
        header.uxp_balance,
        header.status.value if header.status else None,
        "found" if header.member_number else "missing",
    )
    return header
