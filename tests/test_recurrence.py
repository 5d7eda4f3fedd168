"""
Tests for the recurrence engine (habit_ledger/schedule/recurrence.py).
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from habit_ledger.core.exceptions import ValidationError
from habit_ledger.core.models import FrequencyDescriptor, Habit, LedgerConfig
from habit_ledger.schedule.recurrence import (
    RecurrencePolicy,
    describe_frequency,
    get_expected_completions_in_period,
    get_next_scheduled_date,
    is_due,
    is_habit_due,
    validate_frequency,
)
from habit_ledger.utils.date import iter_days, js_weekday


def _habit(frequency, created=date(2024, 1, 1)):
    created_at = datetime(created.year, created.month, created.day, 9, 0, tzinfo=timezone.utc)
    return Habit(name="Test", frequency=FrequencyDescriptor.from_dict(frequency),
                 created_at=created_at, updated_at=created_at)


class TestIsDue:

    def test_daily_always_due(self):
        freq = FrequencyDescriptor.from_dict({"type": "daily"})
        for day in iter_days(date(2024, 1, 1), date(2024, 3, 1)):
            assert is_due(freq, day)

    def test_weekdays_only(self):
        freq = FrequencyDescriptor.from_dict({"type": "daily", "customPattern": "weekdays-only"})
        assert is_due(freq, date(2024, 1, 15))      # Monday
        assert is_due(freq, date(2024, 1, 19))      # Friday
        assert not is_due(freq, date(2024, 1, 20))  # Saturday
        assert not is_due(freq, date(2024, 1, 21))  # Sunday

    def test_weekly_mon_wed_fri_over_two_years(self):
        freq = FrequencyDescriptor.from_dict({"type": "weekly", "daysOfWeek": [1, 3, 5]})
        for day in iter_days(date(2023, 1, 1), date(2024, 12, 31)):
            assert is_due(freq, day) == (js_weekday(day) in (1, 3, 5))

    def test_monthly_days(self):
        freq = FrequencyDescriptor.from_dict({"type": "monthly", "daysOfMonth": [1, 15, 31]})
        assert is_due(freq, "2024-02-01")
        assert is_due(freq, "2024-02-15")
        assert not is_due(freq, "2024-02-16")
        assert is_due(freq, "2024-03-31")

    def test_custom_two_in_five(self):
        """Target 2 per 5-day period: due on offsets 0, 1, 5, 6, ..."""
        anchor = date(2024, 1, 1)
        freq = FrequencyDescriptor.from_dict({"type": "custom", "target": 2, "period": 5})

        due_offsets = [n for n in range(12) if is_due(freq, anchor + timedelta(days=n), anchor=anchor)]

        assert due_offsets == [0, 1, 5, 6, 10, 11]

    def test_custom_before_anchor_not_due(self):
        anchor = date(2024, 1, 10)
        freq = FrequencyDescriptor.from_dict({"type": "custom", "target": 1, "period": 3})
        assert not is_due(freq, date(2024, 1, 7), anchor=anchor)

    def test_custom_requires_anchor(self):
        freq = FrequencyDescriptor.from_dict({"type": "custom", "target": 1, "period": 3})
        with pytest.raises(ValidationError):
            is_due(freq, date(2024, 1, 7))

    def test_every_other_day_anchor_policy(self):
        anchor = date(2024, 1, 31)
        freq = FrequencyDescriptor.from_dict({"type": "daily", "customPattern": "every-other-day"})

        assert is_due(freq, date(2024, 1, 31), anchor=anchor)
        assert not is_due(freq, date(2024, 2, 1), anchor=anchor)
        # Alternation continues across the month boundary
        assert is_due(freq, date(2024, 2, 2), anchor=anchor)
        assert not is_due(freq, date(2024, 1, 29), anchor=anchor)

    def test_every_other_day_parity_policy(self):
        policy = RecurrencePolicy(every_other_day="parity")
        freq = FrequencyDescriptor.from_dict({"type": "daily", "customPattern": "every-other-day"})

        assert is_due(freq, date(2024, 1, 31), anchor=date(2024, 1, 1), policy=policy)
        assert is_due(freq, date(2024, 2, 1), anchor=date(2024, 1, 1), policy=policy)
        assert not is_due(freq, date(2024, 2, 2), anchor=date(2024, 1, 1), policy=policy)

    def test_unscheduled_weekly_follows_policy(self):
        freq = FrequencyDescriptor.from_dict({"type": "weekly", "target": 3})
        assert is_due(freq, date(2024, 1, 20))
        assert not is_due(freq, date(2024, 1, 20), policy=RecurrencePolicy(unscheduled_default=False))

    def test_policy_from_config(self):
        config = LedgerConfig(db_path=":memory:", every_other_day_policy="parity",
                              unscheduled_default=False)
        policy = RecurrencePolicy.from_config(config)
        assert policy == RecurrencePolicy(every_other_day="parity", unscheduled_default=False)


class TestHabitScheduling:

    def test_habit_anchored_on_creation_day(self):
        habit = _habit({"type": "custom", "target": 1, "period": 2}, created=date(2024, 1, 10))
        assert is_habit_due(habit, date(2024, 1, 10))
        assert not is_habit_due(habit, date(2024, 1, 11))
        assert is_habit_due(habit, date(2024, 1, 12))
        assert not is_habit_due(habit, date(2024, 1, 9))

    def test_next_scheduled_date_strictly_after(self):
        habit = _habit({"type": "weekly", "daysOfWeek": [1]})
        monday = date(2024, 1, 15)
        assert get_next_scheduled_date(habit, monday) == date(2024, 1, 22)
        assert get_next_scheduled_date(habit, "2024-01-17") == date(2024, 1, 22)

    def test_next_scheduled_date_within_horizon(self):
        habit = _habit({"type": "monthly", "daysOfMonth": [31]})
        assert get_next_scheduled_date(habit, date(2024, 4, 1), horizon=20) is None
        assert get_next_scheduled_date(habit, date(2024, 4, 1), horizon=70) == date(2024, 5, 31)

    def test_expected_completions_in_period(self):
        habit = _habit({"type": "weekly", "daysOfWeek": [1, 3, 5]})
        # 2024-01-01 (Mon) to 2024-01-14 (Sun): two full weeks
        assert get_expected_completions_in_period(habit, "2024-01-01", "2024-01-14") == 6


class TestDescribeAndValidate:

    @pytest.mark.parametrize("frequency,expected", [
        ({"type": "daily"}, "Daily"),
        ({"type": "daily", "customPattern": "weekdays-only"}, "Weekdays only"),
        ({"type": "daily", "customPattern": "every-other-day"}, "Every other day"),
        ({"type": "weekly", "daysOfWeek": [1, 3, 5]}, "Mon, Wed, Fri each week"),
        ({"type": "weekly", "target": 3}, "3 times per week"),
        ({"type": "monthly", "daysOfMonth": [1, 15]}, "Days 1, 15 each month"),
        ({"type": "custom", "target": 2, "period": 5}, "2 times every 5 days"),
    ])
    def test_describe(self, frequency, expected):
        assert describe_frequency(FrequencyDescriptor.from_dict(frequency)) == expected

    @pytest.mark.parametrize("frequency", [
        {"type": "daily", "target": 0},
        {"type": "custom", "target": 1, "period": 0},
        {"type": "custom", "target": 6, "period": 5},
        {"type": "weekly", "daysOfWeek": []},
        {"type": "weekly", "daysOfWeek": [7]},
        {"type": "monthly", "daysOfMonth": [0]},
        {"type": "monthly", "daysOfMonth": [32]},
    ])
    def test_invalid(self, frequency):
        with pytest.raises(ValidationError):
            validate_frequency(FrequencyDescriptor.from_dict(frequency))

    def test_valid(self):
        validate_frequency(FrequencyDescriptor.from_dict({"type": "weekly", "daysOfWeek": [0, 6]}))
        validate_frequency(FrequencyDescriptor.from_dict({"type": "custom", "target": 5, "period": 5}))
