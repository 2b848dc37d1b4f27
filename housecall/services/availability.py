# housecall/services/availability.py
"""
Turn whatever the availability search returned into a bounded SlotOffer.

The backend has answered in three shapes over time:

    {"candidates": [{"suggestedStartIso", "date", "doctorId", "doctorName"}, ...]}
    {"slots": [{"date", "time", "iso", "display", "doctorId", "doctorName"}, ...]}
    {"winner": {...}, "alternates": [{...}, ...]}

Candidates are already ordered by desirability; we only reshape and truncate.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from housecall.core.business import LOCAL_TZ, round_to_nearest_slot
from housecall.core.logging import get_logger
from housecall.schemas.scheduling import OfferReason, SlotCandidate, SlotOffer

logger = get_logger(__name__)

MAX_ALTERNATES = 2

# backend entries that carry only a date are proposed at noon
DEFAULT_SLOT_TIME = "12:00"


def _parse_ts(value: str) -> Optional[datetime]:
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def format_display(local: datetime) -> str:
    """'Mon, Jan 5 at 2:05 PM'"""
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%a}, {local:%b} {local.day} at {hour}:{local.minute:02d} {meridiem}"


def _raw_entries(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, dict):
        return []
    for key in ("candidates", "slots"):
        if isinstance(raw.get(key), list):
            return raw[key]
    entries: List[Any] = []
    if raw.get("winner"):
        entries.append(raw["winner"])
    if isinstance(raw.get("alternates"), list):
        entries.extend(raw["alternates"])
    return entries


def _text(entry: Dict[str, Any], key: str) -> Optional[str]:
    value = entry.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_slot(entry: Any, tz: ZoneInfo = LOCAL_TZ) -> Optional[SlotCandidate]:
    """
    One raw entry → SlotCandidate, or None when it carries no usable start time.

    `iso` is the start the backend proposed, unrounded; only the derived
    `time` and `display` are rounded to the slot grid. Date, time and display
    strings the backend already supplies win over derived ones.
    """
    if not isinstance(entry, dict):
        return None

    start: Optional[datetime] = None
    iso: Optional[str] = None
    ts = entry.get("suggestedStartIso") or entry.get("iso") or entry.get("start")
    if isinstance(ts, str):
        start = _parse_ts(ts)
        if start is not None and start.tzinfo is not None:
            iso = ts.strip()
    if start is None and _text(entry, "date"):
        start = _parse_ts(f"{_text(entry, 'date')}T{_text(entry, 'time') or DEFAULT_SLOT_TIME}")
    if start is None:
        return None

    # naive timestamps are wall-clock time at the practice
    if start.tzinfo is None:
        start = start.replace(tzinfo=tz)
    if iso is None:
        iso = start.isoformat()
    local = round_to_nearest_slot(start.astimezone(tz))

    provider_id = entry.get("doctorId", entry.get("providerId"))
    provider_name = entry.get("doctorName") or entry.get("providerName")

    return SlotCandidate(
        date=_text(entry, "date") or local.date().isoformat(),
        time=_text(entry, "time") or f"{local:%H:%M}",
        iso=iso,
        display=_text(entry, "display") or format_display(local),
        provider_id=provider_id,
        provider_name=provider_name,
    )


def match(raw: Any, tz: ZoneInfo = LOCAL_TZ) -> SlotOffer:
    slots: List[SlotCandidate] = []
    skipped = 0
    for entry in _raw_entries(raw):
        slot = normalize_slot(entry, tz)
        if slot is None:
            skipped += 1
            continue
        slots.append(slot)
        if len(slots) > MAX_ALTERNATES:
            break

    if skipped:
        logger.warning("availability_entries_skipped", skipped=skipped)

    if not slots:
        logger.info("availability_matched", offered=0)
        return SlotOffer.none(OfferReason.NONE_FOUND)

    offer = SlotOffer(winner=slots[0], alternates=slots[1:1 + MAX_ALTERNATES])
    logger.info("availability_matched", offered=len(offer.slots()))
    return offer


def offer_to_wire(offer: SlotOffer) -> Dict[str, Any]:
    """Shape used by the HTTP surface; mirrors the backend's winner/alternates form."""
    def one(slot: SlotCandidate) -> Dict[str, Any]:
        data = {"date": slot.date, "time": slot.time, "iso": slot.iso, "display": slot.display}
        if slot.provider_id is not None:
            data["doctorId"] = slot.provider_id
        if slot.provider_name:
            data["doctorName"] = slot.provider_name
        return data

    data: Dict[str, Any] = {
        "winner": one(offer.winner) if offer.winner else None,
        "alternates": [one(s) for s in offer.alternates],
    }
    if offer.reason is not None:
        data["reason"] = offer.reason.value
    return data
