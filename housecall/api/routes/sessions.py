# housecall/api/routes/sessions.py
"""
Stateful intake: one session per form, kept in the in-memory store.

Answers are posted as they change; zone and slot lookups run behind them and
are read back with the status and slots routes. A signed-in client passes the
practice token as `Authorization: Bearer ...` on the first call; the session
keeps the client it was created with.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, ConfigDict, Field

from housecall.core.logging import get_logger
from housecall.schemas.appointment_request import RequestAnswers
from housecall.schemas.household import Household
from housecall.schemas.requester import Requester
from housecall.services.availability import offer_to_wire
from housecall.services.backend_client import BackendClient
from housecall.services.intake_session import IntakeSession, get_session, reset_session
from housecall.services.zone_gate import requires_zone_check

router = APIRouter(prefix="/intake/sessions", tags=["intake"])
logger = get_logger(__name__)


class AnswersBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    requester: Optional[Requester] = None
    household: Optional[Household] = None
    how_soon: Optional[str] = Field(None, alias="howSoon")
    preferred_doctor: Optional[str] = Field(None, alias="preferredDoctor")


class SubmitBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chosen_slots: List[str] = Field(default_factory=list, alias="chosenSlots", max_length=3)
    none_work: bool = Field(False, alias="noneOfWorkForMe")
    answers: RequestAnswers = Field(default_factory=RequestAnswers)


# ---------- dependencies ----------

def backend_client_factory() -> Callable[..., BackendClient]:
    return BackendClient


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_session(
    session_id: str,
    authorization: Optional[str] = Header(None),
    factory: Callable[..., BackendClient] = Depends(backend_client_factory),
) -> IntakeSession:
    token = _bearer(authorization)
    return get_session(session_id, lambda: factory(token=token))


def _state(session: IntakeSession) -> dict:
    decision = session.search_decision()
    return {
        "sessionId": session.session_id,
        "searchDecision": None if decision is None else {
            "search": decision.search,
            "skipReason": decision.skip_reason.value if decision.skip_reason else None,
            "manualScheduling": decision.manual_scheduling,
        },
        "zoneCheckRequired": session.requester is not None and requires_zone_check(session.requester),
        "zonePending": session.zone_gate.pending,
        "zoneError": session.zone_error,
    }


# ---------- routes ----------

@router.post("/{session_id}/answers")
async def set_answers(body: AnswersBody, session: IntakeSession = Depends(current_session)):
    if body.requester is not None:
        session.set_requester(body.requester)
    if body.household is not None:
        session.set_household(body.household)
    if body.how_soon is not None:
        session.set_urgency(body.how_soon)
    if body.preferred_doctor is not None:
        session.set_preferred_doctor(body.preferred_doctor)
    return _state(session)


@router.get("/{session_id}/zone")
async def zone_status(session: IntakeSession = Depends(current_session)):
    result = await session.zone_gate.settled()
    if result is None:
        return {"status": None, "zoneId": None, "zoneName": None, "message": None}
    return {
        "status": result.status.value,
        "zoneId": result.zone_id,
        "zoneName": result.zone_name,
        "message": result.message,
    }


@router.post("/{session_id}/slots")
async def find_slots(session: IntakeSession = Depends(current_session)):
    return offer_to_wire(await session.find_slots())


@router.post("/{session_id}/submit")
async def submit(body: Optional[SubmitBody] = None, session: IntakeSession = Depends(current_session)):
    body = body or SubmitBody()
    sent = await session.submit(chosen_slots=body.chosen_slots, none_work=body.none_work, answers=body.answers)
    return {"submitted": sent, "response": session.submission_response}


@router.get("/{session_id}/prefill")
async def prefill(session: IntakeSession = Depends(current_session)):
    found = await session.prefill_requester()
    return {"prefill": found.model_dump() if found else None}


# ---------- catalogs ----------

@router.get("/{session_id}/species")
async def species(session: IntakeSession = Depends(current_session)):
    return [s.model_dump() for s in await session.catalog.species()]


@router.get("/{session_id}/breeds")
async def breeds(
    species_id: Optional[str] = Query(None, alias="speciesId"),
    session: IntakeSession = Depends(current_session),
):
    return [b.model_dump() for b in await session.catalog.breeds(species_id)]


@router.get("/{session_id}/appointment-types")
async def appointment_types(
    new_patient: bool = Query(False, alias="newPatient"),
    session: IntakeSession = Depends(current_session),
):
    return [c.model_dump() for c in await session.catalog.appointment_categories(new_patient)]


@router.get("/{session_id}/providers")
async def providers(session: IntakeSession = Depends(current_session)):
    return [p.model_dump() for p in await session.load_providers()]


@router.delete("/{session_id}")
async def close_session(session_id: str):
    session = reset_session(session_id)
    if session is not None:
        await session.client.aclose()
    logger.info("intake_session_closed", intake_session=session_id, existed=session is not None)
    return {"ok": True}
