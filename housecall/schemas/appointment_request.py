# housecall/schemas/appointment_request.py
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from housecall.schemas.household import (
    ExistingSelection,
    ExistingWithNewAnimals,
    FreeTextHousehold,
    Household,
    NewClientHousehold,
)
from housecall.schemas.requester import Requester
from housecall.schemas.scheduling import SearchDecision, SkipReason, SlotOffer, SlotPreference, Urgency


class FormFlow(BaseModel):
    """Which branch the requester started in; analytics only."""

    started_as_logged_in: bool
    started_as_existing_client: bool


class RequestAnswers(BaseModel):
    """Free-form answers that ride along on the request when given."""

    preferred_doctor: Optional[str] = None
    preferred_date_time: Optional[str] = None
    previous_veterinary_practices: Optional[str] = None
    okay_to_contact_previous_vets: Optional[str] = None
    pet_behavior_at_previous_visits: Optional[str] = None
    other_persons_on_account: Optional[str] = None
    condo_apartment_info: Optional[str] = None
    how_did_you_hear_about_us: Optional[str] = None
    anything_else: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data):
        if isinstance(data, dict):
            return {k: (v.strip() or None) if isinstance(v, str) else v for k, v in data.items()}
        return data


class AppointmentRequest(BaseModel):
    """
    The canonical, write-once record sent to the practice.

    Branch consistency is checked here: the household shape must match the
    requester, and nothing scheduling-related survives when the search was
    skipped.
    """

    model_config = ConfigDict(frozen=True)

    requester: Requester
    household: Household
    urgency: Urgency
    decision: SearchDecision
    offer: SlotOffer
    preferences: Optional[List[SlotPreference]] = Field(None, max_length=3)
    none_work: bool = False
    service_minutes: int = Field(..., gt=0)
    answers: RequestAnswers = Field(default_factory=RequestAnswers)
    form_flow: FormFlow
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_branch(self) -> "AppointmentRequest":
        r, h = self.requester, self.household

        if isinstance(h, (ExistingSelection, ExistingWithNewAnimals)):
            if not (r.is_existing and r.authenticated):
                raise ValueError(f"'{h.kind}' households need a signed-in existing client")
        elif isinstance(h, FreeTextHousehold):
            if not r.is_existing or r.authenticated:
                raise ValueError("free-text households are for returning clients who are not signed in")
        elif isinstance(h, NewClientHousehold):
            if r.is_existing:
                raise ValueError("new-client households are for new clients only")

        if not self.decision.search:
            if self.offer.has_offer or self.preferences is not None or self.none_work:
                raise ValueError("no slot information may be attached when the search was skipped")

        if self.preferences is not None:
            if not self.preferences:
                raise ValueError("preferences must be None or non-empty")
            if self.none_work:
                raise ValueError("cannot rank slots and say none of them work")
            ranks = [p.preference for p in self.preferences]
            if len(set(ranks)) != len(ranks):
                raise ValueError("each slot preference needs its own rank")
            if self.answers.preferred_date_time is not None:
                raise ValueError("a free-text preferred time is only taken when no offered slot was chosen")

        return self

    @property
    def is_end_of_life(self) -> bool:
        return self.decision.skip_reason == SkipReason.END_OF_LIFE
