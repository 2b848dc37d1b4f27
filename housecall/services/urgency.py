# housecall/services/urgency.py
"""
Urgency → slot-search window.

Day offsets are relative to today in the practice time zone (today = day 0)
and both bounds are inclusive.
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

from housecall.core.errors import InvalidUrgencyError
from housecall.schemas.scheduling import SearchWindow, Urgency

# None = no search; the request goes to a human for scheduling
_WINDOWS: Dict[Urgency, Optional[Tuple[int, int]]] = {
    Urgency.SAME_DAY: None,
    Urgency.WITHIN_48_HOURS: None,
    Urgency.THIS_WEEK: (1, 7),
    Urgency.THREE_TO_FOUR_WEEKS: (21, 35),
    Urgency.WITHIN_MONTH: (4, 42),
    Urgency.THREE_MONTHS: (75, 105),
    Urgency.SIX_MONTHS: (135, 165),
    Urgency.TWELVE_MONTHS: (345, 365),
}


def parse_urgency(value: object) -> Urgency:
    """Accept an Urgency, its wire label, or its enum name."""
    if isinstance(value, Urgency):
        return value
    if isinstance(value, str):
        label = value.strip()
        try:
            return Urgency(label)
        except ValueError:
            pass
        member = Urgency.__members__.get(label.upper())
        if member is not None:
            return member
    raise InvalidUrgencyError(value)


def window_for(urgency: Urgency) -> SearchWindow:
    if not isinstance(urgency, Urgency) or urgency not in _WINDOWS:
        raise InvalidUrgencyError(urgency)
    bounds = _WINDOWS[urgency]
    if bounds is None:
        return SearchWindow(skip_search=True)
    start, end = bounds
    return SearchWindow(skip_search=False, start_days_from_today=start, end_days_from_today=end)
