# housecall/services/payload.py
"""
Build the canonical AppointmentRequest and serialize it for the practice.

Serialization is total and per-shape: each household kind has its own
function and its own allowed key set, so a key that does not belong to the
realized branch can never leak into the wire body. Fields that do not apply
are left out entirely; `selectedDateTimePreferences` is the one key that is
always sent (null when no slot was chosen or the search was skipped).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from pydantic import ValidationError

from housecall.core.errors import IntakeValidationError
from housecall.core.logging import get_logger
from housecall.schemas.appointment_request import AppointmentRequest, FormFlow, RequestAnswers
from housecall.schemas.household import (
    DeclaredAnimal,
    Household,
    KnownAnimal,
    Need,
)
from housecall.schemas.requester import Address, Requester
from housecall.schemas.scheduling import OfferReason, SlotOffer, SlotPreference, Urgency
from housecall.services.household import HouseholdModel
from housecall.services.search_gate import decide_search

logger = get_logger(__name__)

COMMON_KEYS: FrozenSet[str] = frozenset({
    "clientType", "isLoggedIn", "email", "fullName", "phoneNumber", "canWeText",
    "physicalAddress", "mailingAddress",
    "howSoon", "appointmentType", "preferredDoctor",
    "selectedDateTimePreferences", "noneOfWorkForMe", "serviceMinutes", "preferredDateTime",
    "liaisonFollowUp",
    "previousVeterinaryPractices", "okayToContactPreviousVets", "petBehaviorAtPreviousVisits",
    "otherPersonsOnAccount", "condoApartmentInfo", "howDidYouHearAboutUs", "anythingElse",
    "submittedAt", "formFlow",
})

# household-level need, flattened onto the top level
NEED_KEYS: FrozenSet[str] = frozenset({
    "needsToday", "needsTodayDetails",
    "euthanasiaReason", "beenToVetLastThreeMonths", "interestedInOtherOptions", "aftercarePreference",
})

_VARIANT_KEYS: Dict[str, FrozenSet[str]] = {
    "existing_selected": frozenset({"pets", "allPets", "petSpecificData"}),
    "existing_with_new": frozenset({"pets", "allPets", "petSpecificData", "existingClientNewPets"}),
    "free_text": frozenset({"petInfoText"}) | NEED_KEYS,
    "new_client": frozenset({"newClientPets"}) | NEED_KEYS,
}

_ANSWER_KEYS = {
    "preferred_doctor": "preferredDoctor",
    "previous_veterinary_practices": "previousVeterinaryPractices",
    "okay_to_contact_previous_vets": "okayToContactPreviousVets",
    "pet_behavior_at_previous_visits": "petBehaviorAtPreviousVisits",
    "other_persons_on_account": "otherPersonsOnAccount",
    "condo_apartment_info": "condoApartmentInfo",
    "how_did_you_hear_about_us": "howDidYouHearAboutUs",
    "anything_else": "anythingElse",
}


def allowed_keys(kind: str) -> FrozenSet[str]:
    if kind not in _VARIANT_KEYS:
        raise IntakeValidationError(f"Unknown household kind: {kind!r}")
    return COMMON_KEYS | _VARIANT_KEYS[kind]


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ---------- Building ----------

def rank_preferences(offer: SlotOffer, chosen: Sequence[str]) -> Optional[List[SlotPreference]]:
    """
    Requester's picks, best first, as ranked preferences. A pick that is no
    longer in the offer keeps its iso timestamp as the display text.
    """
    if not chosen:
        return None
    ranked = []
    for rank, iso in enumerate(chosen[:3], start=1):
        slot = offer.find(iso)
        ranked.append(SlotPreference(preference=rank, date_time=iso, display=slot.display if slot else iso))
    return ranked


def build_request(
    requester: Requester,
    household: Household,
    urgency: Urgency,
    *,
    offer: Optional[SlotOffer] = None,
    chosen_slots: Sequence[str] = (),
    none_work: bool = False,
    answers: Optional[RequestAnswers] = None,
    form_flow: Optional[FormFlow] = None,
    submitted_at: Optional[datetime] = None,
) -> AppointmentRequest:
    """Assemble the record for whichever branch the answers realize."""
    model = HouseholdModel(household)
    decision = decide_search(model.needs(), urgency)

    if decision.search:
        offer = offer or SlotOffer.none(OfferReason.NONE_FOUND)
        preferences = None if none_work else rank_preferences(offer, chosen_slots)
    else:
        if chosen_slots or none_work or (offer is not None and offer.has_offer):
            logger.info("slot_answers_dropped", reason=decision.skip_reason.value)
        offer = SlotOffer.none(OfferReason.SEARCH_SKIPPED)
        preferences = None
        none_work = False

    if form_flow is None:
        form_flow = FormFlow(
            started_as_logged_in=requester.authenticated,
            started_as_existing_client=requester.is_existing,
        )

    try:
        return AppointmentRequest(
            requester=requester,
            household=household,
            urgency=urgency,
            decision=decision,
            offer=offer,
            preferences=preferences,
            none_work=none_work,
            service_minutes=model.service_minutes(),
            answers=answers or RequestAnswers(),
            form_flow=form_flow,
            submitted_at=submitted_at or datetime.now(timezone.utc),
        )
    except ValidationError as e:
        raise IntakeValidationError(str(e)) from e


# ---------- Wire pieces ----------

def _address(a: Optional[Address]) -> Optional[Dict[str, Any]]:
    if a is None:
        return None
    return _compact({
        "line1": a.line1,
        "line2": a.line2,
        "city": a.city,
        "state": a.state,
        "zip": a.zip,
        "country": a.country,
    })


def _known_animal(a: KnownAnimal) -> Dict[str, Any]:
    return _compact({
        "id": a.id,
        "dbId": a.db_id,
        "clientId": a.client_id,
        "name": a.name,
        "species": a.species,
        "breed": a.breed,
        "dob": a.dob,
        "primaryProviderName": a.primary_provider_name,
        "alerts": a.alerts,
    })


def _declared_animal(a: DeclaredAnimal) -> Dict[str, Any]:
    return _compact({
        "id": a.id,
        "name": a.name,
        "species": a.species.name if a.species else None,
        "speciesId": a.species.id if a.species else None,
        "breed": a.breed.name if a.breed else None,
        "breedId": a.breed.id if a.breed else None,
        "age": a.age,
        "dob": a.dob,
        "sex": a.sex,
        "spayedNeutered": a.spayed_neutered,
        "color": a.color,
        "weight": a.weight,
        "behaviorAtPreviousVisits": a.behavior_notes,
        "needsCalmingMedications": a.needs_calming_medications,
        "hasCalmingMedications": a.has_calming_medications,
        "needsMuzzleOrSpecialHandling": a.needs_muzzle_or_special_handling,
    })


def _need(n: Need) -> Dict[str, Any]:
    data: Dict[str, Any] = {"needsToday": n.category.value}
    if n.details:
        data["needsTodayDetails"] = n.details
    if n.end_of_life is not None:
        data["euthanasiaReason"] = n.end_of_life.reason
        data["beenToVetLastThreeMonths"] = n.end_of_life.recent_vet_visit
        data["interestedInOtherOptions"] = n.end_of_life.open_to_alternatives
        data["aftercarePreference"] = n.end_of_life.aftercare_preference
    return data


def _common(req: AppointmentRequest) -> Dict[str, Any]:
    r = req.requester
    data: Dict[str, Any] = {
        "clientType": r.account_status.value,
        "isLoggedIn": r.authenticated,
        "email": r.contact.email,
        "fullName": _compact({
            "first": r.name.first,
            "last": r.name.last,
            "middle": r.name.middle,
            "prefix": r.name.prefix,
            "suffix": r.name.suffix,
        }),
        "phoneNumber": r.contact.phone,
        "canWeText": r.contact.can_text,
        "physicalAddress": _address(r.physical_address),
        "mailingAddress": _address(r.mailing_address),
        "howSoon": req.urgency.value,
        "appointmentType": "euthanasia" if req.is_end_of_life else "regular_visit",
        "liaisonFollowUp": req.decision.manual_scheduling,
    }
    for field, key in _ANSWER_KEYS.items():
        data[key] = getattr(req.answers, field)
    data = _compact(data)

    if req.preferences:
        data["selectedDateTimePreferences"] = [
            {"preference": p.preference, "dateTime": p.date_time, "display": p.display}
            for p in req.preferences
        ]
        data["serviceMinutes"] = req.service_minutes
    else:
        data["selectedDateTimePreferences"] = None
    if req.decision.search:
        data["noneOfWorkForMe"] = req.none_work
    if req.answers.preferred_date_time:
        data["preferredDateTime"] = req.answers.preferred_date_time

    data["submittedAt"] = req.submitted_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    data["formFlow"] = {
        "startedAsLoggedIn": req.form_flow.started_as_logged_in,
        "startedAsExistingClient": req.form_flow.started_as_existing_client,
    }
    return data


# ---------- One serializer per household shape ----------

def _records_view(req: AppointmentRequest) -> Dict[str, Any]:
    model = HouseholdModel(req.household)
    known = model.known_animals()
    data: Dict[str, Any] = {}

    selected_known = [_known_animal(a) for a in known if a.selected]
    if selected_known:
        data["pets"] = selected_known
    if known:
        data["allPets"] = [{**_known_animal(a), "isSelected": a.selected} for a in known]

    specific = {}
    for animal in model.selected_animals():
        need = model.need_for(animal.id)
        if need is not None:
            specific[animal.id] = _need(need)
    if specific:
        data["petSpecificData"] = specific
    return data


def _serialize_existing_selected(req: AppointmentRequest) -> Dict[str, Any]:
    return _records_view(req)


def _serialize_existing_with_new(req: AppointmentRequest) -> Dict[str, Any]:
    data = _records_view(req)
    declared = [_declared_animal(a) for a in HouseholdModel(req.household).declared_animals() if a.selected]
    if declared:
        data["existingClientNewPets"] = declared
    return data


def _serialize_free_text(req: AppointmentRequest) -> Dict[str, Any]:
    return {"petInfoText": req.household.description, **_need(req.household.need)}


def _serialize_new_client(req: AppointmentRequest) -> Dict[str, Any]:
    declared = [_declared_animal(a) for a in req.household.new_animals if a.selected]
    data: Dict[str, Any] = {**_need(req.household.need)}
    if declared:
        data["newClientPets"] = declared
    return data


_SERIALIZERS: Dict[str, Callable[[AppointmentRequest], Dict[str, Any]]] = {
    "existing_selected": _serialize_existing_selected,
    "existing_with_new": _serialize_existing_with_new,
    "free_text": _serialize_free_text,
    "new_client": _serialize_new_client,
}


def serialize(req: AppointmentRequest) -> Dict[str, Any]:
    kind = req.household.kind
    body = {**_common(req), **_SERIALIZERS[kind](req)}

    extra = set(body) - allowed_keys(kind)
    if extra:
        raise IntakeValidationError(f"'{kind}' request carries keys outside its shape: {sorted(extra)}")
    return body
