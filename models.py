"""
models.py - Data models for the statement reconciliation pipeline.

Every module communicates exclusively through these models:

    extract.py   ->  StatementText, TextValidation
    header.py    ->  HeaderSnapshot
    events.py    ->  list[RequalificationEvent]
    bonus.py     ->  list[BonusXPEvent]
    flights.py   ->  list[TripSummary], list[FlightSegment]
    reconcile.py ->  QualificationCycle, ReconciliationResult
    pipeline.py  ->  StatementReport
    explain.py   ->  str / dict (uses StatementReport as input)

Design principles:
1. All models are frozen values, created fresh per parse run
2. Event kinds are tagged unions discriminated on `kind`, never loose dicts
3. Extracted records carry `position` and `raw` so every number in the
   final report can be traced back to the statement text
4. Dates are zero-padded ISO strings ("YYYY-MM-DD"), so plain string
   comparison orders them chronologically
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

IsoDate = Annotated[str, Field(pattern=ISO_DATE_PATTERN)]


class StatusLevel(str, Enum):
    """Tier levels of the loyalty program, lowest first."""

    EXPLORER = "Explorer"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    ULTIMATE = "Ultimate"


UNKNOWN_STATUS = "Unknown"

StatusReached = Union[StatusLevel, Literal["Unknown"]]


class BonusCategory(str, Enum):
    """Non-flight XP sources recognised by the bonus extractor.

    New categories are added here and as a rule in bonus.BONUS_RULES;
    the scanning algorithm does not change.
    """

    AMEX_WELCOME = "AMEX_WELCOME"
    AMEX_ANNUAL = "AMEX_ANNUAL"
    DONATION_XP = "DONATION_XP"
    FIRST_FLIGHT = "FIRST_FLIGHT"
    AIR_ADJUSTMENT = "AIR_ADJUSTMENT"
    HOTEL_XP = "HOTEL_XP"
    DISCOUNT_PASS = "DISCOUNT_PASS"


class CycleStartSource(str, Enum):
    """Which cycle-start candidate the reconciliation engine trusts."""

    # 1st of the month after the latest level-up (program rule).
    DERIVED = "derived"
    # Explicit "ending on ... beginning on ..." statement, when present.
    EXPLICIT = "explicit"


class FlightPrecedence(str, Enum):
    """Which extraction pass wins when a trip summary contains segments."""

    SEGMENTS = "segments"
    TRIPS = "trips"


class DiscrepancyCause(str, Enum):
    """Classification of the official-vs-calculated XP difference."""

    RECONCILED = "reconciled"
    # Official XP is higher than what the ledger explains.
    MISSING_XP = "missing_xp"
    # The ledger explains more XP than the official balance shows.
    OVERCOUNTED_XP = "overcounted_xp"
    # Header XP balance was not found, so no comparison is possible.
    UNVERIFIABLE = "unverifiable"


class AnalysisStatus(str, Enum):
    COMPLETE = "complete"
    NO_LEVEL_UP = "no_level_up"
    NO_OFFICIAL_BALANCE = "no_official_balance"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class StatementText(_Frozen):
    """Plain text of one statement, as produced by the PDF boundary."""

    text: str = Field(..., description="Full extracted text, pages joined by newlines.")
    page_count: int = Field(default=0, ge=0)
    source: Optional[str] = Field(
        default=None,
        description="File name the text came from, when known.",
    )


class TextValidation(_Frozen):
    """Pre-flight checks on raw statement text.

    Validation never blocks analysis; errors and warnings are copied into
    the report so the presentation layer can tell the user what looked off.
    """

    is_valid: bool
    is_statement_content: bool
    language: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class HeaderSnapshot(_Frozen):
    """Authoritative account state printed in the statement summary.

    Every field is independently optional: a statement whose summary line
    could not be matched still yields a snapshot, just with None values.
    """

    miles_balance: Optional[int] = Field(default=None, ge=0)
    xp_balance: Optional[int] = Field(
        default=None,
        ge=0,
        description="Official XP counter. This is the reconciliation target.",
    )
    uxp_balance: Optional[int] = Field(default=None, ge=0)
    status: Optional[StatusLevel] = None
    member_number: Optional[str] = None
    member_name: Optional[str] = None

    @property
    def has_balances(self) -> bool:
        return self.xp_balance is not None


class XpDeductEvent(_Frozen):
    """XP counter deduction that happens when a new status is reached."""

    kind: Literal["XP_DEDUCT"] = "XP_DEDUCT"
    date: Optional[IsoDate] = None
    xp_deducted: int = Field(
        ...,
        ge=0,
        description="Magnitude of the deduction. The statement prints it negative.",
    )
    status_reached: StatusReached = UNKNOWN_STATUS
    position: int = Field(default=0, ge=0)
    raw: str = ""


class SurplusXpEvent(_Frozen):
    """XP carried over into the next qualification cycle."""

    kind: Literal["SURPLUS_XP"] = "SURPLUS_XP"
    date: Optional[IsoDate] = None
    rollover_xp: int = Field(..., ge=0)
    position: int = Field(default=0, ge=0)
    raw: str = ""


class CycleBoundaryEvent(_Frozen):
    """Explicit "period ending on X, new period beginning on Y" statement."""

    kind: Literal["CYCLE_BOUNDARY"] = "CYCLE_BOUNDARY"
    cycle_end: IsoDate
    cycle_start: IsoDate
    position: int = Field(default=0, ge=0)
    raw: str = ""


RequalificationEvent = Annotated[
    Union[XpDeductEvent, SurplusXpEvent, CycleBoundaryEvent],
    Field(discriminator="kind"),
]


class BonusXPEvent(_Frozen):
    """Non-flight XP credit (credit card bonus, donation, hotel stay, ...)."""

    category: BonusCategory
    xp: int = Field(..., gt=0)
    date: Optional[IsoDate] = Field(
        default=None,
        description=(
            "None when the category has no date in the statement (first-flight "
            "bonus) or when no date could be associated."
        ),
    )
    position: int = Field(default=0, ge=0)
    raw: str = ""


class TripSummary(_Frozen):
    """Trip-level record ("My trip to <destination> ... Miles ... XP")."""

    kind: Literal["TRIP"] = "TRIP"
    destination: str
    miles: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    uxp: int = Field(default=0, ge=0)
    date: Optional[IsoDate] = None
    position: int = Field(default=0, ge=0)
    raw: str = ""

    @property
    def dedup_key(self) -> tuple[Optional[str], str, Optional[str]]:
        return (self.date, self.destination, None)


class FlightSegment(_Frozen):
    """One flown leg ("AMS - BER KL1775 ... Miles ... XP")."""

    kind: Literal["SEGMENT"] = "SEGMENT"
    route: str = Field(..., pattern=r"^[A-Z]{3}-[A-Z]{3}$")
    flight_number: str
    miles: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    uxp: int = Field(default=0, ge=0)
    date: Optional[IsoDate] = None
    position: int = Field(default=0, ge=0)
    raw: str = ""

    @property
    def dedup_key(self) -> tuple[Optional[str], str, Optional[str]]:
        return (self.date, self.route, self.flight_number)


FlightRecord = Annotated[Union[TripSummary, FlightSegment], Field(discriminator="kind")]


class QualificationCycle(_Frozen):
    """The member's current qualification cycle, derived from level-up events."""

    start_date: IsoDate = Field(
        ...,
        description="Cycle start actually used for reconciliation.",
    )
    rollover_xp: int = Field(default=0, ge=0)
    status_reached: StatusReached = UNKNOWN_STATUS
    level_up_date: IsoDate
    derived_start_date: IsoDate = Field(
        ...,
        description="First day of the month after the latest level-up.",
    )
    explicit_start_date: Optional[IsoDate] = Field(
        default=None,
        description="Start date printed in the latest cycle-boundary statement, if any.",
    )
    start_source: CycleStartSource = CycleStartSource.DERIVED

    @property
    def has_start_conflict(self) -> bool:
        """Whether the explicit and derived start dates disagree."""
        return (
            self.explicit_start_date is not None
            and self.explicit_start_date != self.derived_start_date
        )


class ReconciliationResult(_Frozen):
    """Expected-vs-official XP comparison for the current cycle."""

    rollover_xp: int = Field(default=0, ge=0)
    flight_xp_in_cycle: int = Field(default=0, ge=0)
    flight_uxp_in_cycle: int = Field(default=0, ge=0)
    bonus_xp_in_cycle: int = Field(default=0, ge=0)
    calculated_xp: int = Field(default=0, ge=0)
    official_xp: Optional[int] = Field(default=None, ge=0)
    difference: Optional[int] = Field(
        default=None,
        description="official_xp - calculated_xp. Zero means full reconciliation.",
    )
    cause: DiscrepancyCause = DiscrepancyCause.UNVERIFIABLE
    hypotheses: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_arithmetic(self) -> "ReconciliationResult":
        expected = self.rollover_xp + self.flight_xp_in_cycle + self.bonus_xp_in_cycle
        if self.calculated_xp != expected:
            raise ValueError(
                f"calculated_xp={self.calculated_xp} does not equal "
                f"rollover + flights + bonus = {expected}"
            )
        if self.official_xp is None:
            if self.difference is not None:
                raise ValueError("difference requires official_xp")
        elif self.difference != self.official_xp - self.calculated_xp:
            raise ValueError(
                f"difference={self.difference} does not equal "
                f"official_xp - calculated_xp = {self.official_xp - self.calculated_xp}"
            )
        return self

    @property
    def is_reconciled(self) -> bool:
        return self.difference == 0


class MonthlyFlightSummary(_Frozen):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    flights: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    uxp: int = Field(default=0, ge=0)


class StatementReport(_Frozen):
    """Final output of the pipeline for one statement.

    The canonical contract is this typed object. explain.py renders it as
    text or a JSON-ready dict; neither adds information.
    """

    header: HeaderSnapshot = Field(default_factory=HeaderSnapshot)
    requalification_events: list[RequalificationEvent] = Field(default_factory=list)
    bonus_events: list[BonusXPEvent] = Field(default_factory=list)
    trips: list[TripSummary] = Field(default_factory=list)
    segments: list[FlightSegment] = Field(default_factory=list)
    flights: list[FlightRecord] = Field(
        default_factory=list,
        description="Deduplicated flights used for reconciliation.",
    )
    cycle: Optional[QualificationCycle] = None
    reconciliation: Optional[ReconciliationResult] = None
    status: AnalysisStatus = AnalysisStatus.NO_LEVEL_UP
    unattributable_flights: list[FlightRecord] = Field(default_factory=list)
    unattributable_bonuses: list[BonusXPEvent] = Field(default_factory=list)
    monthly_flights: list[MonthlyFlightSummary] = Field(default_factory=list)
    language: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def xp_deductions(self) -> list[XpDeductEvent]:
        return [event for event in self.requalification_events if isinstance(event, XpDeductEvent)]

    @property
    def surpluses(self) -> list[SurplusXpEvent]:
        return [event for event in self.requalification_events if isinstance(event, SurplusXpEvent)]

    @property
    def cycle_boundaries(self) -> list[CycleBoundaryEvent]:
        return [
            event for event in self.requalification_events if isinstance(event, CycleBoundaryEvent)
        ]

    @property
    def total_bonus_xp(self) -> int:
        return sum(event.xp for event in self.bonus_events)

    @property
    def has_cycle_analysis(self) -> bool:
        return self.cycle is not None
