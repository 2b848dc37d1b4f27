# housecall/api/routes/intake.py
from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Query
from pydantic import BaseModel, ConfigDict, Field

from housecall.core.business import today_local
from housecall.core.logging import get_logger
from housecall.schemas.appointment_request import RequestAnswers
from housecall.schemas.household import Household
from housecall.schemas.requester import Requester
from housecall.services.availability import match, offer_to_wire
from housecall.services.payload import build_request, serialize
from housecall.services.urgency import parse_urgency, window_for

router = APIRouter(prefix="/intake", tags=["intake"])
logger = get_logger(__name__)


class PreviewBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    requester: Requester
    household: Household
    how_soon: str = Field(..., alias="howSoon")
    # raw availability payload as the backend returned it
    availability: Optional[Any] = None
    chosen_slots: List[str] = Field(default_factory=list, alias="chosenSlots", max_length=3)
    none_work: bool = Field(False, alias="noneOfWorkForMe")
    answers: RequestAnswers = Field(default_factory=RequestAnswers)


@router.get("/search-window")
async def search_window(how_soon: str = Query(..., alias="howSoon")):
    urgency = parse_urgency(how_soon)
    window = window_for(urgency)
    data = {
        "howSoon": urgency.value,
        "skipSearch": window.skip_search,
        "startDaysFromToday": window.start_days_from_today,
        "endDaysFromToday": window.end_days_from_today,
    }
    span = window.date_range(today_local())
    if span is not None:
        data["startDate"] = span[0].isoformat()
        data["endDate"] = span[1].isoformat()
        data["numDays"] = window.num_days
    return data


@router.post("/offers/normalize")
async def normalize_offer(raw: Any = Body(None)):
    return offer_to_wire(match(raw))


@router.post("/requests/preview")
async def preview_request(body: PreviewBody):
    """Build and serialize the record for the given answers without sending it."""
    offer = match(body.availability) if body.availability is not None else None
    request = build_request(
        body.requester,
        body.household,
        parse_urgency(body.how_soon),
        offer=offer,
        chosen_slots=body.chosen_slots,
        none_work=body.none_work,
        answers=body.answers,
    )
    logger.info("request_previewed", kind=request.household.kind, manual_scheduling=request.decision.manual_scheduling)
    return serialize(request)
