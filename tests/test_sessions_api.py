#!/usr/bin/env python3
"""
HTTP tests for the stateful intake routes: answers, zone status, slots,
submission, prefill and catalogs, with the practice backend mocked.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient

from housecall.api.routes.sessions import backend_client_factory
from housecall.core.config import settings
from housecall.services import intake_session

NEW_REQUESTER = {
    "account_status": "new",
    "name": {"first": "John", "last": "Doe"},
    "contact": {"email": "john@example.com", "phone": "207-555-1234", "can_text": "No"},
    "physical_address": {"line1": "24 Orchard Ln", "city": "Durham", "state": "ME", "zip": "04111"},
}

NEW_HOUSEHOLD = {
    "kind": "new_client",
    "new_animals": [{"id": "new-1767225600000-a1b2c3", "name": "Fluffy"}],
    "need": {"category": "Wellness exam / check-up"},
}


@pytest.fixture
def tokens():
    """Tokens each backend client was created with."""
    return []


@pytest.fixture
def api(backend, tokens, monkeypatch):
    monkeypatch.setattr(settings, "ZONE_CHECK_DEBOUNCE_SECONDS", 0)
    monkeypatch.setattr(settings, "SLOT_SEARCH_DEBOUNCE_SECONDS", 0)
    monkeypatch.setattr(settings, "INTAKE_API_KEY", None)

    def make_client(**kwargs):
        tokens.append(kwargs.get("token"))
        return backend

    from housecall.main import app
    app.dependency_overrides[backend_client_factory] = lambda: make_client
    # one event loop for the whole test so background lookups survive between requests
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    intake_session._sessions.clear()


def _answer(api, session_id, **body):
    response = api.post(f"/intake/sessions/{session_id}/answers", json=body)
    assert response.status_code == 200
    return response.json()


@pytest.mark.integration
class TestAnswersAndZone:
    """POST answers, GET zone"""

    def test_new_client_answers(self, api, backend):
        data = _answer(api, "s-answers", requester=NEW_REQUESTER, household=NEW_HOUSEHOLD, howSoon="this_week")
        assert data["sessionId"] == "s-answers"
        assert data["searchDecision"] == {"search": True, "skipReason": None, "manualScheduling": False}
        assert data["zoneCheckRequired"] is True

        zone = api.get("/intake/sessions/s-answers/zone").json()
        assert zone == {"status": "serviced", "zoneId": 7, "zoneName": "Portland", "message": None}
        backend.find_zone_by_address.assert_awaited_once()

    def test_not_serviced(self, api, backend):
        backend.find_zone_by_address.return_value = None
        _answer(api, "s-far", requester=NEW_REQUESTER, household=NEW_HOUSEHOLD, howSoon="this_week")

        zone = api.get("/intake/sessions/s-far/zone").json()
        assert zone["status"] == "not_serviced"

        offer = api.post("/intake/sessions/s-far/slots").json()
        assert offer["winner"] is None
        assert _answer(api, "s-far")["zoneError"] == zone["message"]
        backend.search_availability.assert_not_called()

    def test_urgent_skips_search(self, api, backend):
        data = _answer(api, "s-urgent", requester=NEW_REQUESTER, household=NEW_HOUSEHOLD, howSoon="same_day")
        assert data["searchDecision"]["skipReason"] == "urgent"
        assert data["searchDecision"]["manualScheduling"] is True

        offer = api.post("/intake/sessions/s-urgent/slots").json()
        assert offer["reason"] == "search_skipped"
        backend.search_availability.assert_not_called()

    def test_unknown_urgency_is_422(self, api):
        response = api.post("/intake/sessions/s-bad/answers", json={"howSoon": "whenever"})
        assert response.status_code == 422


@pytest.mark.integration
class TestSlotsAndSubmit:
    """POST slots, POST submit"""

    def test_offer_then_submit_once(self, api, backend):
        _answer(api, "s-flow", requester=NEW_REQUESTER, household=NEW_HOUSEHOLD, howSoon="this_week")

        offer = api.post("/intake/sessions/s-flow/slots").json()
        assert offer["winner"]["iso"] == "2026-03-03T14:02:00-05:00"
        assert offer["winner"]["time"] == "14:00"
        assert len(offer["alternates"]) == 2

        response = api.post("/intake/sessions/s-flow/submit", json={"chosenSlots": [offer["winner"]["iso"]]})
        assert response.status_code == 200
        data = response.json()
        assert data["response"] == {"id": 501, "status": "received"}
        assert data["submitted"]["selectedDateTimePreferences"][0]["dateTime"] == "2026-03-03T14:02:00-05:00"

        again = api.post("/intake/sessions/s-flow/submit", json={"chosenSlots": [offer["winner"]["iso"]]})
        assert again.status_code == 409
        assert backend.submit_request.await_count == 1

    def test_cached_offer(self, api, backend):
        _answer(api, "s-cache", requester=NEW_REQUESTER, household=NEW_HOUSEHOLD, howSoon="this_week")
        api.post("/intake/sessions/s-cache/slots")
        api.post("/intake/sessions/s-cache/slots")
        assert backend.search_availability.await_count == 1

        _answer(api, "s-cache", howSoon="three_months")
        api.post("/intake/sessions/s-cache/slots")
        assert backend.search_availability.await_count == 2

    def test_incomplete_submit_is_422(self, api, backend):
        _answer(api, "s-partial", requester=NEW_REQUESTER)
        assert api.post("/intake/sessions/s-partial/submit").status_code == 422
        backend.submit_request.assert_not_called()


@pytest.mark.integration
class TestPrefillAndCatalogs:
    """Signed-in prefill, catalog lookups, closing a session"""

    def test_bearer_token_reaches_backend_client(self, api, backend, tokens):
        backend.authenticated = True
        backend.fetch_client_appointments.return_value = [
            {"client": {"firstName": "Mary", "lastName": "Smith", "phone1": "+12075551234"}},
        ]
        response = api.get("/intake/sessions/s-signed-in/prefill", headers={"Authorization": "Bearer tok"})

        assert tokens == ["tok"]
        assert response.json()["prefill"] == {
            "first": "Mary", "last": "Smith", "phone": "207-555-1234", "physical_address": None,
        }

    def test_guest_prefill(self, api, backend, tokens):
        backend.authenticated = False
        assert api.get("/intake/sessions/s-guest/prefill").json() == {"prefill": None}
        assert tokens == [None]

    def test_species_and_breeds(self, api, backend):
        backend.fetch_species.return_value = [{"id": 2, "name": "Feline"}]
        backend.fetch_breeds.return_value = [{"id": 40, "name": "Maine Coon", "species": 2}]

        assert api.get("/intake/sessions/s-cat/species").json() == [{"id": 2, "name": "Feline"}]
        breeds = api.get("/intake/sessions/s-cat/breeds", params={"speciesId": "2"}).json()
        assert breeds == [{"id": 40, "name": "Maine Coon", "species_id": 2}]
        assert api.get("/intake/sessions/s-cat/breeds").status_code == 422

    def test_providers(self, api, backend):
        names = [p["name"] for p in api.get("/intake/sessions/s-docs/providers").json()]
        assert names == ["Dr. Abigail Messina DVM", "Dr. Ben Hart"]

    def test_close_session(self, api, backend):
        _answer(api, "s-done", requester=NEW_REQUESTER)
        assert "s-done" in intake_session._sessions

        assert api.delete("/intake/sessions/s-done").json() == {"ok": True}
        assert "s-done" not in intake_session._sessions
        backend.aclose.assert_awaited_once()
