#!/usr/bin/env python3
"""
Tests for the urgency table and the two-stage search gate.
"""

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from housecall.core.errors import InvalidUrgencyError, IntakeValidationError
from housecall.schemas.household import Need, NeedCategory
from housecall.schemas.scheduling import SkipReason, Urgency
from housecall.services.search_gate import decide_search, force_no_search
from housecall.services.urgency import parse_urgency, window_for


EXPECTED_WINDOWS = {
    Urgency.SAME_DAY: None,
    Urgency.WITHIN_48_HOURS: None,
    Urgency.THIS_WEEK: (1, 7),
    Urgency.THREE_TO_FOUR_WEEKS: (21, 35),
    Urgency.WITHIN_MONTH: (4, 42),
    Urgency.THREE_MONTHS: (75, 105),
    Urgency.SIX_MONTHS: (135, 165),
    Urgency.TWELVE_MONTHS: (345, 365),
}


@pytest.mark.unit
class TestWindowTable:
    """Urgency → search window"""

    @pytest.mark.parametrize("urgency,bounds", list(EXPECTED_WINDOWS.items()))
    def test_table(self, urgency, bounds):
        window = window_for(urgency)
        if bounds is None:
            assert window.skip_search is True
            assert window.start_days_from_today is None
            assert window.end_days_from_today is None
            assert window.num_days == 0
            assert window.date_range(date(2026, 3, 2)) is None
        else:
            assert window.skip_search is False
            assert (window.start_days_from_today, window.end_days_from_today) == bounds

    def test_table_is_total(self):
        assert set(EXPECTED_WINDOWS) == set(Urgency)

    def test_this_week_scenario(self):
        """Today = day N → [N+1, N+7], seven days inclusive"""
        window = window_for(Urgency.THIS_WEEK)
        assert window.date_range(date(2026, 3, 2)) == (date(2026, 3, 3), date(2026, 3, 9))
        assert window.num_days == 7

    def test_deterministic(self):
        assert window_for(Urgency.SIX_MONTHS) == window_for(Urgency.SIX_MONTHS)

    @pytest.mark.parametrize("bad", ["Soon – sometime this week", "whenever", None, 3])
    def test_non_enum_values_rejected(self, bad):
        with pytest.raises(InvalidUrgencyError):
            window_for(bad)


@pytest.mark.unit
class TestParseUrgency:
    """Wire labels and enum names"""

    def test_wire_label(self):
        assert parse_urgency("Flexible – within the next month") is Urgency.WITHIN_MONTH

    def test_label_with_whitespace(self):
        assert parse_urgency("  Urgent – within 24–48 hours ") is Urgency.WITHIN_48_HOURS

    def test_enum_name(self):
        assert parse_urgency("this_week") is Urgency.THIS_WEEK

    def test_passthrough(self):
        assert parse_urgency(Urgency.SIX_MONTHS) is Urgency.SIX_MONTHS

    @pytest.mark.parametrize("bad", ["", "tomorrow-ish", None, 7])
    def test_unknown_is_validation_error(self, bad):
        with pytest.raises(IntakeValidationError) as exc:
            parse_urgency(bad)
        assert isinstance(exc.value, InvalidUrgencyError)


@pytest.mark.unit
class TestSearchGate:
    """End-of-life veto composed with the urgency table"""

    def test_force_no_search_on_any_end_of_life(self, wellness, end_of_life):
        assert force_no_search([wellness, end_of_life]) is True
        assert force_no_search([wellness]) is False
        assert force_no_search([]) is False

    @pytest.mark.parametrize("urgency", list(Urgency))
    def test_end_of_life_skips_for_every_urgency(self, urgency, end_of_life):
        decision = decide_search([end_of_life], urgency)
        assert decision.search is False
        assert decision.skip_reason == SkipReason.END_OF_LIFE
        assert decision.manual_scheduling is True

    @pytest.mark.parametrize("urgency", [Urgency.SAME_DAY, Urgency.WITHIN_48_HOURS])
    def test_urgent_skips(self, urgency, wellness):
        decision = decide_search([wellness], urgency)
        assert decision.search is False
        assert decision.skip_reason == SkipReason.URGENT
        assert decision.manual_scheduling is True

    def test_routine_searches(self, wellness):
        decision = decide_search([wellness, Need(category=NeedCategory.TECHNICIAN)], Urgency.THIS_WEEK)
        assert decision.search is True
        assert decision.skip_reason is None
        assert decision.manual_scheduling is False
        assert decision.window.num_days == 7

    def test_invalid_urgency_still_rejected_under_veto(self, end_of_life):
        with pytest.raises(InvalidUrgencyError):
            decide_search([end_of_life], "This week")
