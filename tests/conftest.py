#!/usr/bin/env python3
"""
Shared fixtures for the intake engine tests: environment, sample requesters,
households and a mocked practice backend.
"""

import pytest
import os
import sys
import time
from datetime import date
from unittest.mock import patch, AsyncMock

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from housecall.schemas.household import (
    BreedRef,
    DeclaredAnimal,
    EndOfLifeDetails,
    ExistingSelection,
    ExistingWithNewAnimals,
    FreeTextHousehold,
    KnownAnimal,
    Need,
    NeedCategory,
    NewClientHousehold,
    SpeciesRef,
)
from housecall.schemas.requester import (
    AccountStatus,
    Address,
    AddressSource,
    ContactInfo,
    FullName,
    Requester,
)
from housecall.services.backend_client import BackendClient

# Monday
TODAY = date(2026, 3, 2)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment variables"""
    test_env = {
        'APP_ENV': 'testing',
        'API_BASE_URL': 'http://backend.test',
        'PRACTICE_ID': '1',
        'PRACTICE_TIMEZONE': 'America/New_York',
        'ZONE_CHECK_DEBOUNCE_SECONDS': '0',
        'SLOT_SEARCH_DEBOUNCE_SECONDS': '0',
    }

    with patch.dict(os.environ, test_env):
        yield


@pytest.fixture
def backend():
    """Practice backend double; every remote operation is an AsyncMock."""
    client = AsyncMock(spec=BackendClient)
    client.find_zone_by_address.return_value = {"id": 7, "name": "Portland"}
    client.fetch_veterinarians.return_value = [
        {"id": 11, "title": "Dr.", "firstName": "Abigail", "lastName": "Messina", "designation": "DVM"},
        {"id": 12, "title": "Dr.", "firstName": "Ben", "lastName": "Hart"},
    ]
    client.search_availability.return_value = {
        "candidates": [
            {"suggestedStartIso": "2026-03-03T14:02:00-05:00", "doctorId": 11, "doctorName": "Dr. Abigail Messina"},
            {"suggestedStartIso": "2026-03-04T09:30:00-05:00", "doctorId": 11, "doctorName": "Dr. Abigail Messina"},
            {"suggestedStartIso": "2026-03-05T11:15:00-05:00", "doctorId": 12, "doctorName": "Dr. Ben Hart"},
            {"suggestedStartIso": "2026-03-06T16:45:00-05:00", "doctorId": 12, "doctorName": "Dr. Ben Hart"},
        ],
        "status": "OK",
    }
    client.submit_request.return_value = {"id": 501, "status": "received"}
    return client


@pytest.fixture
def home_address():
    return Address(line1="24 Orchard Ln", city="Durham", state="ME", zip="04111")


@pytest.fixture
def contact():
    return ContactInfo(email="NewClient@Example.com", phone="207-555-1234", can_text="Yes")


@pytest.fixture
def new_requester(home_address, contact):
    return Requester(
        account_status=AccountStatus.NEW,
        name=FullName(first="John", last="Doe"),
        contact=contact,
        physical_address=home_address,
    )


@pytest.fixture
def existing_requester(home_address, contact):
    """Signed-in client keeping the address on file."""
    return Requester(
        account_status=AccountStatus.EXISTING,
        authenticated=True,
        name=FullName(first="Mary", last="Smith"),
        contact=contact,
        physical_address=home_address,
        address_source=AddressSource.ON_FILE,
    )


@pytest.fixture
def returning_requester(home_address, contact):
    """Returning client who did not sign in."""
    return Requester(
        account_status=AccountStatus.EXISTING,
        authenticated=False,
        name=FullName(first="Pat", last="Jones"),
        contact=contact,
        physical_address=home_address,
        address_source=AddressSource.ENTERED,
    )


@pytest.fixture
def wellness():
    return Need(category=NeedCategory.WELLNESS, details="Annual check-up and vaccinations")


@pytest.fixture
def end_of_life():
    return Need(
        category=NeedCategory.END_OF_LIFE,
        end_of_life=EndOfLifeDetails(
            reason="Terminal cancer, in significant pain",
            recent_vet_visit="Yes, saw vet last month",
            open_to_alternatives="No. While this is very difficult, we are ready.",
            aftercare_preference="Private Cremation (Cremation WITH return of ashes)",
        ),
    )


@pytest.fixture
def known_animals():
    return [
        KnownAnimal(id="p1", db_id="101", client_id="c9", name="Bella", species="Canine", breed="Labrador", selected=True),
        KnownAnimal(id="p2", db_id="102", client_id="c9", name="Max", species="Feline", selected=False),
    ]


@pytest.fixture
def fluffy():
    return DeclaredAnimal(
        id="new-1767225600000-a1b2c3",
        name="Fluffy",
        species=SpeciesRef(id=2, name="Feline"),
        breed=BreedRef(id=40, name="Maine Coon"),
        age="5 years",
        spayed_neutered="Yes",
        color="Orange",
        weight=12,
        behavior_notes="Very friendly and calm",
        needs_calming_medications="No",
    )


@pytest.fixture
def existing_selected(known_animals, wellness):
    return ExistingSelection(known_animals=known_animals, needs={"p1": wellness})


@pytest.fixture
def existing_with_new(known_animals, fluffy, wellness):
    return ExistingWithNewAnimals(
        known_animals=known_animals,
        new_animals=[fluffy],
        needs={"p1": wellness, fluffy.id: Need(category=NeedCategory.NEW_ILLNESS, details="Limping")},
    )


@pytest.fixture
def free_text(wellness):
    return FreeTextHousehold(description="Two dogs, Rex and Bo", need=wellness)


@pytest.fixture
def new_client(fluffy, wellness):
    return NewClientHousehold(new_animals=[fluffy], need=wellness)


@pytest.fixture(autouse=True)
def monitor_test_performance(request):
    """Warn about slow tests"""
    start_time = time.time()
    yield
    duration = time.time() - start_time
    node = request.node
    if not node.get_closest_marker("slow") and duration > 5.0:
        print(f"Test {node.name} took {duration:.2f}s (consider marking as @pytest.mark.slow)")


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that wire several components together")
    config.addinivalue_line("markers", "slow: Long-running tests")
