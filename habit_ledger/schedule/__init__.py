"""Recurrence rules deciding which habits are due on a date."""

from .recurrence import (
    RecurrencePolicy,
    DEFAULT_POLICY,
    is_due,
    is_habit_due,
    get_next_scheduled_date,
    get_expected_completions_in_period,
    describe_frequency,
    validate_frequency,
)

__all__ = [
    'RecurrencePolicy',
    'DEFAULT_POLICY',
    'is_due',
    'is_habit_due',
    'get_next_scheduled_date',
    'get_expected_completions_in_period',
    'describe_frequency',
    'validate_frequency',
]
