# housecall/services/search_gate.py
"""
Two-stage gate in front of the slot search.

Stage one is the end-of-life veto, stage two is the urgency table. They are
kept separate so each rule can be exercised on its own.
"""
from __future__ import annotations

from typing import Iterable

from housecall.core.logging import get_logger
from housecall.schemas.household import Need
from housecall.schemas.scheduling import SearchDecision, SkipReason, Urgency
from housecall.services.urgency import window_for

logger = get_logger(__name__)


def force_no_search(needs: Iterable[Need]) -> bool:
    """True when any animal is booked for end-of-life care, whatever the urgency."""
    return any(n.is_end_of_life for n in needs)


def decide_search(needs: Iterable[Need], urgency: Urgency) -> SearchDecision:
    window = window_for(urgency)

    if force_no_search(needs):
        logger.info("slot_search_skipped", reason=SkipReason.END_OF_LIFE.value, urgency=urgency.name)
        return SearchDecision(search=False, window=window, skip_reason=SkipReason.END_OF_LIFE)

    if window.skip_search:
        logger.info("slot_search_skipped", reason=SkipReason.URGENT.value, urgency=urgency.name)
        return SearchDecision(search=False, window=window, skip_reason=SkipReason.URGENT)

    return SearchDecision(search=True, window=window)
