# housecall/services/backend_client.py
"""
Async HTTP client for the practice backend.

Every remote operation the intake engine consumes lives here. Transport
failures and unexpected statuses surface as BackendError; callers decide
whether that is fatal (submission) or fails open (zone check, slot search).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from housecall.core.config import settings
from housecall.core.errors import BackendError
from housecall.core.logging import get_logger
from housecall.schemas.catalog import EmailCheckResult

logger = get_logger(__name__)


def _rows(data: Any, *keys: str) -> List[Dict[str, Any]]:
    """Backend lists come back bare or wrapped under `items` / a named key."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("items", *keys):
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        practice_id: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.practice_id = practice_id or settings.PRACTICE_ID
        self.token = token
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            headers=headers,
            transport=transport,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        allow_404: bool = False,
    ) -> Optional[httpx.Response]:
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.warning("backend_transport_error", endpoint=path, error=str(e))
            raise BackendError(f"{method} {path} failed: {e}", endpoint=path) from e

        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code >= 400:
            logger.warning("backend_error_status", endpoint=path, status_code=resp.status_code)
            raise BackendError(
                f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
                endpoint=path,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(
                f"{resp.request.url.path} returned a non-JSON body",
                status_code=resp.status_code,
                endpoint=resp.request.url.path,
            ) from e

    # ---------- catalogs ----------

    async def fetch_species(self) -> List[Dict[str, Any]]:
        resp = await self._request("GET", "/public/species-breeds", params={"practiceId": self.practice_id})
        return _rows(self._json(resp), "species")

    async def fetch_breeds(self, species_id: int | str) -> List[Dict[str, Any]]:
        resp = await self._request(
            "GET",
            "/public/species-breeds",
            params={"practiceId": self.practice_id, "speciesId": species_id},
        )
        return _rows(self._json(resp), "breeds")

    async def fetch_appointment_types(self) -> List[Dict[str, Any]]:
        path = "/appointment-types" if self.authenticated else "/public/appointment-types"
        resp = await self._request("GET", path, params={"practiceId": self.practice_id})
        return _rows(self._json(resp), "appointmentTypes")

    # ---------- zone / providers / slots ----------

    async def find_zone_by_address(self, address: str) -> Optional[Dict[str, Any]]:
        """Zone payload for a serviced address, None when the backend says 404 (not serviced)."""
        resp = await self._request(
            "GET",
            "/public/appointments/find-zone-by-address",
            params={"address": address, "practiceId": self.practice_id},
            allow_404=True,
        )
        if resp is None:
            return None
        return self._json(resp) or {}

    async def find_zone_by_coordinates(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        resp = await self._request(
            "GET",
            "/public/appointments/find-zone-by-coordinates",
            params={"lat": lat, "lon": lon, "practiceId": self.practice_id},
            allow_404=True,
        )
        if resp is None:
            return None
        return self._json(resp) or {}

    async def fetch_veterinarians(self, address: Optional[str] = None) -> List[Dict[str, Any]]:
        if self.authenticated:
            path = "/employees/veterinarians"
            params: Dict[str, Any] = {}
        else:
            path = "/public/appointments/veterinarians"
            params = {"practiceId": self.practice_id}
        if address:
            params["address"] = address
        resp = await self._request("GET", path, params=params)
        return _rows(self._json(resp), "veterinarians", "providers")

    async def search_availability(self, body: Dict[str, Any]) -> Any:
        body = {"practiceId": self.practice_id, **body}
        logger.info(
            "slot_search_request",
            start_date=body.get("startDate"),
            num_days=body.get("numDays"),
            service_minutes=body.get("serviceMinutes"),
            doctor_id=body.get("doctorId"),
        )
        resp = await self._request("POST", "/public/appointments/availability", json=body)
        return self._json(resp)

    # ---------- requester / submission ----------

    async def fetch_client_appointments(self) -> List[Dict[str, Any]]:
        """Signed-in client's appointments; each row carries the client record."""
        resp = await self._request("GET", "/appointments/client")
        return _rows(self._json(resp), "appointments")

    async def check_email(self, email: str) -> EmailCheckResult:
        resp = await self._request(
            "GET",
            "/public/appointments/check-email",
            params={"email": email.strip().lower(), "practiceId": self.practice_id},
        )
        data = self._json(resp) or {}
        return EmailCheckResult(
            exists=bool(data.get("exists")),
            has_account=bool(data.get("hasAccount")),
            practice_id=data.get("practiceId"),
        )

    async def submit_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._request("POST", "/public/appointments/form", json=payload)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}
