#!/usr/bin/env python3
"""
Tests for the debounced, fail-open service-area gate.
"""

import pytest
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from housecall.core.errors import BackendError
from housecall.schemas.requester import AccountStatus, Address, AddressSource, Requester
from housecall.schemas.scheduling import ZoneStatus
from housecall.services.zone_gate import NOT_SERVICED_MESSAGE, ZoneGate, requires_zone_check

DEBOUNCE = 0.01


def _address(line1="24 Orchard Ln", **overrides):
    fields = {"line1": line1, "city": "Durham", "state": "ME", "zip": "04111", **overrides}
    return Address(**fields)


@pytest.mark.unit
class TestRequiresZoneCheck:
    """Which requesters need their address checked"""

    def test_new_requester(self, new_requester):
        assert requires_zone_check(new_requester) is True

    def test_on_file_address_is_trusted(self, existing_requester):
        assert requires_zone_check(existing_requester) is False

    def test_existing_client_with_new_address(self, existing_requester):
        moved = existing_requester.model_copy(update={"address_source": AddressSource.NEW_FOR_VISIT})
        assert requires_zone_check(moved) is True

    def test_returning_client_typing_address(self, returning_requester):
        assert requires_zone_check(returning_requester) is True


@pytest.mark.unit
class TestSingleCheck:
    """One remote lookup, classified"""

    @pytest.mark.asyncio
    async def test_serviced(self, backend):
        result = await ZoneGate(backend, debounce_seconds=0).check(_address())
        assert result.status == ZoneStatus.SERVICED
        assert result.zone_id == 7
        assert result.zone_name == "Portland"
        backend.find_zone_by_address.assert_awaited_once_with("24 Orchard Ln, Durham, ME, 04111")

    @pytest.mark.asyncio
    async def test_nested_zone_payload(self, backend):
        backend.find_zone_by_address.return_value = {"zone": {"id": 3, "name": "Coastal"}, "address": "..."}
        result = await ZoneGate(backend, debounce_seconds=0).check(_address())
        assert (result.zone_id, result.zone_name) == (3, "Coastal")

    @pytest.mark.asyncio
    async def test_not_found_means_not_serviced(self, backend):
        backend.find_zone_by_address.return_value = None
        result = await ZoneGate(backend, debounce_seconds=0).check(_address())
        assert result.status == ZoneStatus.NOT_SERVICED
        assert result.blocks_search is True
        assert result.message == NOT_SERVICED_MESSAGE

    @pytest.mark.asyncio
    async def test_backend_failure_is_inconclusive(self, backend):
        backend.find_zone_by_address.side_effect = BackendError("timeout", endpoint="/public/zones/by-address")
        result = await ZoneGate(backend, debounce_seconds=0).check(_address())
        assert result.status == ZoneStatus.INCONCLUSIVE
        assert result.blocks_search is False


@pytest.mark.unit
class TestDebouncedChecks:
    """Address edits → remote calls"""

    @pytest.mark.asyncio
    async def test_incomplete_address_never_calls(self, backend):
        gate = ZoneGate(backend, debounce_seconds=DEBOUNCE)
        assert gate.on_address_change(_address(zip="")) is False
        assert gate.on_address_change(None) is False
        await gate.settled()
        backend.find_zone_by_address.assert_not_called()
        assert gate.result is None

    @pytest.mark.asyncio
    async def test_repeated_address_checked_once(self, backend):
        gate = ZoneGate(backend, debounce_seconds=DEBOUNCE)
        assert gate.on_address_change(_address()) is True
        assert gate.on_address_change(_address()) is False
        await gate.settled()
        assert gate.on_address_change(_address(line1=" 24 ORCHARD LN ")) is False
        await gate.settled()
        assert backend.find_zone_by_address.await_count == 1
        assert gate.result.status == ZoneStatus.SERVICED

    @pytest.mark.asyncio
    async def test_rapid_edits_only_check_the_last(self, backend):
        gate = ZoneGate(backend, debounce_seconds=DEBOUNCE)
        gate.on_address_change(_address(line1="1 Main St"))
        gate.on_address_change(_address(line1="12 Main St"))
        gate.on_address_change(_address(line1="123 Main St"))
        await gate.settled()
        backend.find_zone_by_address.assert_awaited_once_with("123 Main St, Durham, ME, 04111")

    @pytest.mark.asyncio
    async def test_stale_result_dropped(self, backend):
        release = asyncio.Event()

        async def slow_then_fast(line):
            if line.startswith("1 Main"):
                await release.wait()
                return None
            return {"id": 9, "name": "Inland"}

        backend.find_zone_by_address.side_effect = slow_then_fast
        gate = ZoneGate(backend, debounce_seconds=0)
        gate.on_address_change(_address(line1="1 Main St"))
        await asyncio.sleep(0.01)
        gate.on_address_change(_address(line1="2 Main St"))
        release.set()
        await gate.settled()
        assert gate.result.status == ZoneStatus.SERVICED
        assert gate.result.zone_id == 9

    @pytest.mark.asyncio
    async def test_clearing_the_address_clears_the_result(self, backend):
        backend.find_zone_by_address.return_value = None
        gate = ZoneGate(backend, debounce_seconds=DEBOUNCE)
        gate.on_address_change(_address())
        await gate.settled()
        assert gate.not_serviced is True

        gate.on_address_change(_address(city=""))
        assert gate.result is None
        assert gate.not_serviced is False

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_open(self, backend):
        backend.find_zone_by_address.side_effect = RuntimeError("boom")
        gate = ZoneGate(backend, debounce_seconds=DEBOUNCE)
        gate.on_address_change(_address())
        await gate.settled()
        assert gate.result.status == ZoneStatus.INCONCLUSIVE
        assert gate.not_serviced is False

    @pytest.mark.asyncio
    async def test_reset(self, backend):
        gate = ZoneGate(backend, debounce_seconds=1.0)
        gate.on_address_change(_address())
        assert gate.pending is True
        gate.reset()
        await gate.settled()
        assert gate.result is None
        backend.find_zone_by_address.assert_not_called()
