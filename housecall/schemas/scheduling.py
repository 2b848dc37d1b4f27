# housecall/schemas/scheduling.py
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Urgency(str, Enum):
    """How soon the household needs to be seen, ordered from most to least urgent."""

    SAME_DAY = "Emergent – today, my pet needs help now"
    WITHIN_48_HOURS = "Urgent – within 24–48 hours"
    THIS_WEEK = "Soon – sometime this week"
    THREE_TO_FOUR_WEEKS = "In 3–4 weeks"
    WITHIN_MONTH = "Flexible – within the next month"
    THREE_MONTHS = "In about 3 months"
    SIX_MONTHS = "In about 6 months"
    TWELVE_MONTHS = "In about 12 months"


class SearchWindow(BaseModel):
    skip_search: bool
    start_days_from_today: Optional[int] = None
    end_days_from_today: Optional[int] = None

    @property
    def num_days(self) -> int:
        if self.skip_search:
            return 0
        return self.end_days_from_today - self.start_days_from_today + 1

    def date_range(self, today: date) -> Optional[tuple[date, date]]:
        if self.skip_search:
            return None
        return (
            today + timedelta(days=self.start_days_from_today),
            today + timedelta(days=self.end_days_from_today),
        )


class SkipReason(str, Enum):
    END_OF_LIFE = "end_of_life"
    URGENT = "urgent"


class SearchDecision(BaseModel):
    search: bool
    window: SearchWindow
    skip_reason: Optional[SkipReason] = None

    @property
    def manual_scheduling(self) -> bool:
        return not self.search


class ZoneStatus(str, Enum):
    SERVICED = "serviced"
    NOT_SERVICED = "not_serviced"
    INCONCLUSIVE = "inconclusive"


class ZoneCheckResult(BaseModel):
    status: ZoneStatus
    zone_id: Optional[int | str] = None
    zone_name: Optional[str] = None
    message: Optional[str] = None

    @property
    def blocks_search(self) -> bool:
        # fail open: only an explicit "not serviced" stops provider/slot lookups
        return self.status == ZoneStatus.NOT_SERVICED


class SlotCandidate(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD in the practice time zone")
    time: str = Field(..., description="HH:MM, 24h, practice time zone")
    iso: str
    display: str
    provider_id: Optional[int | str] = None
    provider_name: Optional[str] = None


class OfferReason(str, Enum):
    NONE_FOUND = "none_found"
    SEARCH_SKIPPED = "search_skipped"


class SlotOffer(BaseModel):
    winner: Optional[SlotCandidate] = None
    alternates: List[SlotCandidate] = Field(default_factory=list, max_length=2)
    reason: Optional[OfferReason] = None

    @classmethod
    def none(cls, reason: OfferReason) -> "SlotOffer":
        return cls(winner=None, alternates=[], reason=reason)

    @property
    def has_offer(self) -> bool:
        return self.winner is not None

    def slots(self) -> List[SlotCandidate]:
        if self.winner is None:
            return []
        return [self.winner, *self.alternates]

    def find(self, iso: str) -> Optional[SlotCandidate]:
        return next((s for s in self.slots() if s.iso == iso), None)


class SlotPreference(BaseModel):
    preference: int = Field(..., ge=1, le=3)
    date_time: str
    display: str

    @field_validator("date_time")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("date_time cannot be empty")
        return v
