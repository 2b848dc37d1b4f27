# housecall/services/zone_gate.py
"""
Service-area gate in front of provider and slot lookups.

Fails open: only an explicit "not serviced" answer blocks the search. A
backend hiccup leaves the result inconclusive and the flow carries on.
"""
from __future__ import annotations

from typing import Optional

from housecall.core.config import settings
from housecall.core.errors import BackendError
from housecall.core.logging import get_logger
from housecall.schemas.requester import Address, AddressSource, Requester
from housecall.schemas.scheduling import ZoneCheckResult, ZoneStatus
from housecall.services.backend_client import BackendClient
from housecall.utils.debounce import LatestOnlyDebouncer

logger = get_logger(__name__)

NOT_SERVICED_MESSAGE = "We're sorry, but we do not currently service your area."


def requires_zone_check(requester: Requester) -> bool:
    """On-file addresses were validated at onboarding; anything typed in for this request is checked."""
    if not requester.is_existing:
        return True
    return requester.address_source != AddressSource.ON_FILE


def _zone_key(address: Address) -> str:
    return address.one_line().lower()


class ZoneGate:
    def __init__(self, client: BackendClient, debounce_seconds: Optional[float] = None):
        self.client = client
        self.result: Optional[ZoneCheckResult] = None
        self._key: Optional[str] = None
        delay = settings.ZONE_CHECK_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self._debouncer = LatestOnlyDebouncer(delay, name="zone_check")

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def not_serviced(self) -> bool:
        return self.result is not None and self.result.blocks_search

    async def check(self, address: Address) -> ZoneCheckResult:
        """Single remote lookup, no debouncing. 404 means not serviced; any failure is inconclusive."""
        line = address.one_line()
        try:
            data = await self.client.find_zone_by_address(line)
        except BackendError as e:
            logger.warning("zone_check_inconclusive", address=line, error=str(e), status_code=e.status_code)
            return ZoneCheckResult(status=ZoneStatus.INCONCLUSIVE, message=str(e))

        if data is None:
            logger.info("zone_check_complete", address=line, status=ZoneStatus.NOT_SERVICED.value)
            return ZoneCheckResult(status=ZoneStatus.NOT_SERVICED, message=NOT_SERVICED_MESSAGE)

        zone = data.get("zone") if isinstance(data.get("zone"), dict) else data
        result = ZoneCheckResult(
            status=ZoneStatus.SERVICED,
            zone_id=zone.get("id", data.get("zoneId")),
            zone_name=zone.get("name", data.get("zoneName")),
        )
        logger.info("zone_check_complete", address=line, status=result.status.value, zone_id=result.zone_id)
        return result

    def on_address_change(self, address: Optional[Address]) -> bool:
        """
        Feed every edit of the address here. Returns True when a new check was
        scheduled. Incomplete addresses clear the result without a remote call;
        repeating the last checked (or in-flight) address is a no-op.
        """
        if address is None or not address.is_complete():
            self._debouncer.cancel()
            self._key = None
            self.result = None
            return False

        key = _zone_key(address)
        if key == self._key:
            return False

        self._key = key
        self.result = None
        self._debouncer.schedule(
            lambda: self.check(address),
            on_result=self._apply,
            on_error=self._fail_open,
        )
        return True

    def reset(self) -> None:
        self._debouncer.cancel()
        self._key = None
        self.result = None

    async def settled(self) -> Optional[ZoneCheckResult]:
        """Wait for the pending check (if any) and return the applied result."""
        await self._debouncer.wait_idle()
        return self.result

    def _apply(self, result: ZoneCheckResult) -> None:
        self.result = result

    def _fail_open(self, error: Exception) -> None:
        logger.error("zone_check_failed", error=str(error), error_type=type(error).__name__)
        self.result = ZoneCheckResult(status=ZoneStatus.INCONCLUSIVE, message=str(error))
