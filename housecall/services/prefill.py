# housecall/services/prefill.py
"""
Prefill for signed-in clients, read from the client record attached to their
appointments. Practice systems disagree on field names, so each value is taken
from the first alias that is present.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from housecall.schemas.requester import Address, RequesterPrefill
from housecall.utils.phone import prefill_phone

PHONE_FIELDS = (
    "phone1", "phone", "secondPhone", "phoneNumber", "phone_number",
    "primaryPhone", "primary_phone", "mobilePhone", "mobile_phone",
)


def _first(row: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def client_from_appointments(appointments: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not appointments:
        return None
    first = appointments[0]
    if not isinstance(first, dict):
        return None
    client = first.get("client") or first.get("Client")
    return client if isinstance(client, dict) else None


def requester_prefill(client: Dict[str, Any]) -> RequesterPrefill:
    address = Address(
        line1=_first(client, ("address1", "address_1")),
        line2=_first(client, ("address2", "address_2")),
        city=_first(client, ("city",)),
        state=_first(client, ("state",)),
        zip=_first(client, ("zip",)),
    )
    return RequesterPrefill(
        first=_first(client, ("firstName", "first_name")),
        last=_first(client, ("lastName", "last_name")),
        phone=prefill_phone(_first(client, PHONE_FIELDS)),
        physical_address=address if address.line1 or address.city or address.zip else None,
    )
