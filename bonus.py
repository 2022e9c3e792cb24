"""
bonus.py - Non-flight XP extraction driven by a rule table.

Each BonusRule names a category and the phrases that identify it:

    marker     phrase that opens the transaction ("Miles donation")
    qualifier  optional second phrase that must follow the marker before the
               marker's next occurrence ("American Express" ... "Annual bonus")
    dated      False for categories the statement prints without a date

The scanner is the same for every rule, so a new category is one more
entry in BONUS_RULES.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from config import DEFAULT_SETTINGS, ParserSettings
from logging_config import get_logger
from models import BonusCategory, BonusXPEvent
from normalize import DATE_PATTERN, DateIndex, collapse_lines, excerpt

logger = get_logger(__name__)

SIGNED_XP = re.compile(r"(?<![\d-])(-?\d+)\s*XP\b")


class BonusRule(NamedTuple):
    category: BonusCategory
    marker: re.Pattern
    qualifier: Optional[re.Pattern] = None
    dated: bool = True


BONUS_RULES: tuple[BonusRule, ...] = (
    BonusRule(
        BonusCategory.AMEX_WELCOME,
        re.compile(r"American\s+Express(?:\s+Platinum)?\s+Welcome", re.IGNORECASE),
    ),
    BonusRule(
        BonusCategory.AMEX_ANNUAL,
        re.compile(r"American\s+Express", re.IGNORECASE),
        qualifier=re.compile(r"Annual\s+bonus", re.IGNORECASE),
    ),
    BonusRule(
        BonusCategory.DONATION_XP,
        re.compile(r"Miles\s+donation", re.IGNORECASE),
    ),
    BonusRule(
        BonusCategory.FIRST_FLIGHT,
        re.compile(r"(?:Miles\+Points\s+)?first\s*flight\s*bonus", re.IGNORECASE),
        dated=False,
    ),
    BonusRule(
        BonusCategory.AIR_ADJUSTMENT,
        re.compile(r"Air\s+adjustment", re.IGNORECASE),
    ),
    BonusRule(
        BonusCategory.HOTEL_XP,
        re.compile(r"Hotel\s*[-–]|Accor\s+Live\s+Limitless", re.IGNORECASE),
    ),
    # Discount passes have no fixed opening phrase: any dated transaction
    # line that mentions "Discount Pass" before the next date qualifies.
    BonusRule(
        BonusCategory.DISCOUNT_PASS,
        DATE_PATTERN,
        qualifier=re.compile(r"Discount\s+Pass", re.IGNORECASE),
    ),
)


def _scan_rule(
    text: str,
    rule: BonusRule,
    dates: DateIndex,
    settings: ParserSettings,
) -> list[BonusXPEvent]:
    events: list[BonusXPEvent] = []
    markers = list(rule.marker.finditer(text))

    for index, marker in enumerate(markers):
        search_from = marker.end()

        if rule.qualifier is not None:
            # The qualifier must sit on the same transaction as the marker.
            limit = marker.end() + settings.bonus_window
            if index + 1 < len(markers):
                limit = min(limit, markers[index + 1].start())
            next_date = dates.next_start(marker.end() - 1)
            if next_date is not None:
                limit = min(limit, next_date)
            qualifier = rule.qualifier.search(text, marker.end(), limit)
            if qualifier is None:
                continue
            search_from = qualifier.end()

        # The quantity belongs to this transaction only if it precedes the
        # next dated line.
        limit = search_from + settings.bonus_window
        next_date = dates.next_start(search_from - 1)
        if next_date is not None:
            limit = min(limit, next_date)
        quantity = SIGNED_XP.search(text, search_from, limit)
        if quantity is None:
            logger.debug(
                "bonus_skipped | category=%s | reason=no_xp | position=%s",
                rule.category.value,
                marker.start(),
            )
            continue

        xp = int(quantity.group(1))
        if xp <= 0:
            logger.debug(
                "bonus_skipped | category=%s | reason=non_positive | xp=%s | position=%s",
                rule.category.value,
                xp,
                marker.start(),
            )
            continue

        date: Optional[str] = None
        if rule.dated:
            # Measured from the marker end so a date-shaped marker finds itself.
            anchor = dates.before(
                marker.end(),
                settings.event_date_window + (marker.end() - marker.start()),
            )
            date = anchor.iso if anchor else None

        events.append(
            BonusXPEvent(
                category=rule.category,
                xp=xp,
                date=date,
                position=marker.start(),
                raw=excerpt(text, marker.start(), quantity.end()),
            )
        )
    return events


def extract_bonus_events(
    text: str,
    settings: ParserSettings = DEFAULT_SETTINGS,
    rules: tuple[BonusRule, ...] = BONUS_RULES,
) -> list[BonusXPEvent]:
    """Apply every bonus rule and return the events in text order.

    Identical events (same category, date and XP) are separate credits on
    the statement and are all kept.
    """
    flat = collapse_lines(text)
    dates = DateIndex(flat)

    events: list[BonusXPEvent] = []
    for rule in rules:
        events.extend(_scan_rule(flat, rule, dates, settings))
    events.sort(key=lambda event: event.position)

    logger.info(
        "bonus_complete | events=%s | total_xp=%s",
        len(events),
        sum(event.xp for event in events),
    )
    return events
