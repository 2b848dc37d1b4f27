# housecall/services/intake_session.py
"""
One appointment-request session: collects answers, sequences the remote
lookups and sends the finished record exactly once.

    gate (end-of-life veto, urgency window)
      -> zone check (when the address needs one)
      -> provider listing
      -> slot search
      -> submit

Zone check and slot search are debounced, latest-only lookups. Provider and
slot lookups never run while the address is known to be outside the service
area. Sessions live in a small in-memory store with a TTL.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from housecall.core.business import NO_PREFERENCE, today_local
from housecall.core.config import settings
from housecall.core.errors import AlreadySubmittedError, BackendError, IntakeValidationError
from housecall.core.logging import get_logger
from housecall.schemas.appointment_request import AppointmentRequest, RequestAnswers
from housecall.schemas.catalog import EmailCheckResult, Provider
from housecall.schemas.household import Household
from housecall.schemas.requester import Requester, RequesterPrefill
from housecall.schemas.scheduling import OfferReason, SearchDecision, SlotOffer, Urgency
from housecall.services.availability import match
from housecall.services.backend_client import BackendClient
from housecall.services.catalog import CatalogService, providers_for_zone, resolve_doctor
from housecall.services.household import HouseholdModel
from housecall.services.payload import build_request, serialize
from housecall.services.prefill import client_from_appointments, requester_prefill
from housecall.services.search_gate import decide_search
from housecall.services.urgency import parse_urgency
from housecall.services.zone_gate import ZoneGate, requires_zone_check
from housecall.utils.debounce import LatestOnlyDebouncer

logger = get_logger(__name__)


class IntakeSession:
    def __init__(
        self,
        client: BackendClient,
        *,
        session_id: Optional[str] = None,
        zone_debounce_seconds: Optional[float] = None,
        slot_debounce_seconds: Optional[float] = None,
        today: Callable[[], Any] = today_local,
    ):
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.client = client
        self.catalog = CatalogService(client)
        self.zone_gate = ZoneGate(client, debounce_seconds=zone_debounce_seconds)
        slot_delay = settings.SLOT_SEARCH_DEBOUNCE_SECONDS if slot_debounce_seconds is None else slot_debounce_seconds
        self._slot_debouncer = LatestOnlyDebouncer(slot_delay, name="slot_search")
        self._today = today
        self.log = logger.bind(intake_session=self.session_id)

        self.requester: Optional[Requester] = None
        self.household: Optional[Household] = None
        self.urgency: Optional[Urgency] = None
        self.preferred_doctor: Optional[str] = None

        # cached lookups
        self.providers: Optional[List[Provider]] = None
        self.offer: Optional[SlotOffer] = None
        # bumped on every answer that changes what a slot search would ask for
        self._answers_version = 0

        self.submitted: Optional[AppointmentRequest] = None
        self.submission_response: Optional[Dict[str, Any]] = None
        self._submitting = False
        self.updated_at = datetime.utcnow()

    # ---------- answers ----------

    def set_requester(self, requester: Requester) -> None:
        previous = self.requester
        self.requester = requester
        if previous is None or not requester.physical_address or not requester.physical_address.same_place(
            previous.physical_address
        ):
            self.providers = None
            self._invalidate_offer()

        if requires_zone_check(requester):
            self.zone_gate.on_address_change(requester.physical_address)
        else:
            self.zone_gate.reset()

    def set_household(self, household: Household) -> None:
        self.household = household
        self._invalidate_offer()

    def set_urgency(self, urgency: Urgency | str) -> None:
        self.urgency = parse_urgency(urgency)
        self._invalidate_offer()

    def set_preferred_doctor(self, name: Optional[str]) -> None:
        self.preferred_doctor = name
        self._invalidate_offer()

    def _invalidate_offer(self) -> None:
        """Drop the cached offer and any search still running for the previous answers."""
        self._answers_version += 1
        self.offer = None
        self._slot_debouncer.cancel()

    # ---------- derived state ----------

    def search_decision(self) -> Optional[SearchDecision]:
        if self.household is None or self.urgency is None:
            return None
        return decide_search(HouseholdModel(self.household).needs(), self.urgency)

    @property
    def zone_error(self) -> Optional[str]:
        """Terminal "we do not service your area" message for the current address."""
        if self.zone_gate.not_serviced:
            return self.zone_gate.result.message
        return None

    def _address_line(self) -> Optional[str]:
        if self.requester and self.requester.physical_address and self.requester.physical_address.is_complete():
            return self.requester.physical_address.one_line()
        return None

    async def _zone_allows_search(self) -> bool:
        if self.requester is None or not requires_zone_check(self.requester):
            return True
        await self.zone_gate.settled()
        return not self.zone_gate.not_serviced

    # ---------- lookups ----------

    async def check_email(self, email: str) -> EmailCheckResult:
        result = await self.client.check_email(email)
        self.log.info("email_checked", exists=result.exists, has_account=result.has_account)
        return result

    async def prefill_requester(self) -> Optional[RequesterPrefill]:
        """Name, phone and address from the signed-in client's records; None when unavailable."""
        if not self.client.authenticated:
            return None
        try:
            appointments = await self.client.fetch_client_appointments()
        except BackendError as e:
            self.log.warning("client_prefill_failed", error=str(e), status_code=e.status_code)
            return None
        client = client_from_appointments(appointments)
        if client is None:
            return None
        return requester_prefill(client)

    async def load_providers(self) -> List[Provider]:
        if not await self._zone_allows_search():
            self.log.info("provider_lookup_blocked", reason="zone_not_serviced")
            return []
        if self.providers is not None:
            return self.providers

        providers = await self.catalog.providers(self._address_line())
        zone = self.zone_gate.result
        zone_id = zone.zone_id if zone is not None else None
        new_patient = self.requester is not None and not self.requester.is_existing
        self.providers = providers_for_zone(providers, zone_id, new_patient)
        self.log.info("providers_loaded", total=len(providers), kept=len(self.providers), zone_id=zone_id)
        return self.providers

    async def _search(self) -> Optional[SlotOffer]:
        """One pass through gate, zone, providers and search. None means unresolved."""
        decision = self.search_decision()
        if decision is None:
            raise IntakeValidationError("Household and urgency are needed before searching for times")
        if not decision.search:
            return SlotOffer.none(OfferReason.SEARCH_SKIPPED)

        if not await self._zone_allows_search():
            self.log.info("slot_search_blocked", reason="zone_not_serviced")
            return None

        address = self._address_line()
        if address is None:
            raise IntakeValidationError("A complete physical address is needed before searching for times")

        doctor: Optional[Provider] = None
        if self.preferred_doctor and self.preferred_doctor != NO_PREFERENCE:
            try:
                doctor = resolve_doctor(await self.load_providers(), self.preferred_doctor)
            except BackendError as e:
                self.log.warning("provider_lookup_failed", error=str(e))

        start_date, _ = decision.window.date_range(self._today())
        body: Dict[str, Any] = {
            "startDate": start_date.isoformat(),
            "numDays": decision.window.num_days,
            "serviceMinutes": HouseholdModel(self.household).service_minutes(),
            "address": address,
            "allowOtherDoctors": doctor is None,
        }
        if doctor is not None:
            body["doctorId"] = doctor.id

        try:
            raw = await self.client.search_availability(body)
        except BackendError as e:
            self.log.warning("slot_search_failed", error=str(e), status_code=e.status_code)
            return None
        return match(raw)

    async def find_slots(self) -> SlotOffer:
        """
        Gate, then (when allowed) provider listing and slot search. Successful
        results are cached. A search whose answers changed while it ran is
        discarded and repeated for the current answers.
        """
        while True:
            if self.offer is not None:
                return self.offer
            version = self._answers_version
            offer = await self._search()
            if version != self._answers_version:
                self.log.info("slot_search_stale", version=version, current=self._answers_version)
                continue
            if offer is None:
                # left unresolved so the next edit retries
                return SlotOffer.none(OfferReason.NONE_FOUND)
            self.offer = offer
            return offer

    def request_slots(self) -> int:
        """Debounced search; only the latest request may store its offer."""
        self.offer = None
        return self._slot_debouncer.schedule(self._search, on_result=self._apply_offer, on_error=self._slot_error)

    async def slots_settled(self) -> Optional[SlotOffer]:
        await self._slot_debouncer.wait_idle()
        return self.offer

    def _apply_offer(self, offer: Optional[SlotOffer]) -> None:
        if offer is not None:
            self.offer = offer

    def _slot_error(self, error: Exception) -> None:
        self.log.error("slot_search_error", error=str(error), error_type=type(error).__name__)

    # ---------- submission ----------

    def build(
        self,
        chosen_slots: Sequence[str] = (),
        none_work: bool = False,
        answers: Optional[RequestAnswers] = None,
    ) -> AppointmentRequest:
        if self.requester is None or self.household is None or self.urgency is None:
            raise IntakeValidationError("Requester, household and urgency must all be answered")
        answers = answers or RequestAnswers()
        if self.preferred_doctor and answers.preferred_doctor is None:
            answers = answers.model_copy(update={"preferred_doctor": self.preferred_doctor})
        return build_request(
            self.requester,
            self.household,
            self.urgency,
            offer=self.offer,
            chosen_slots=chosen_slots,
            none_work=none_work,
            answers=answers,
        )

    async def submit(
        self,
        chosen_slots: Sequence[str] = (),
        none_work: bool = False,
        answers: Optional[RequestAnswers] = None,
    ) -> Dict[str, Any]:
        """Send the record once. Returns the body that was sent."""
        if self.submitted is not None or self._submitting:
            raise AlreadySubmittedError(f"Session {self.session_id} was already submitted")

        request = self.build(chosen_slots=chosen_slots, none_work=none_work, answers=answers)
        body = serialize(request)

        self._submitting = True
        try:
            self.submission_response = await self.client.submit_request(body)
        finally:
            self._submitting = False
        self.submitted = request

        self.zone_gate.reset()
        self._slot_debouncer.cancel()
        self.log.info(
            "appointment_request_submitted",
            kind=request.household.kind,
            manual_scheduling=request.decision.manual_scheduling,
            preferences=len(request.preferences or []),
        )
        return body


# ---------- in-memory session store ----------

TTL_MINUTES = settings.SESSION_TTL_MINUTES

_sessions: Dict[str, IntakeSession] = {}


def get_session(session_id: str, client_factory: Callable[[], BackendClient]) -> IntakeSession:
    """Get or create a session, and purge expired ones."""
    now = datetime.utcnow()
    expired = [k for k, s in _sessions.items() if now - s.updated_at > timedelta(minutes=TTL_MINUTES)]
    for k in expired:
        _sessions.pop(k, None)
    sess = _sessions.get(session_id)
    if not sess:
        sess = IntakeSession(client_factory(), session_id=session_id)
        _sessions[session_id] = sess
    sess.updated_at = now
    return sess


def reset_session(session_id: str) -> Optional[IntakeSession]:
    return _sessions.pop(session_id, None)
