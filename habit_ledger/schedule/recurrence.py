"""
Recurrence engine: decides whether a habit is due on a calendar date.

Everything here is pure. Interval-based recurrences (custom frequencies and
the every-other-day pattern) are measured from an explicit anchor date, which
for a stored habit is the calendar day it was created.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..core.exceptions import ValidationError
from ..core.models import CustomPattern, FrequencyDescriptor, FrequencyType, Habit
from ..utils.date import DateLike, days_between, iter_days, js_weekday, to_date

DEFAULT_HORIZON_DAYS = 60

DAY_NAMES = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']


@dataclass(frozen=True)
class RecurrencePolicy:
    """
    Explicit fallbacks for recurrences that carry no day-specific schedule.

    Attributes:
        every_other_day: ``"anchor"`` makes every-other-day habits due on even
            day offsets from the anchor date; ``"parity"`` keeps the legacy
            rule of odd days of the month.
        unscheduled_default: Whether weekly/monthly habits without explicit
            days are due every day (target-count habits).
    """

    every_other_day: str = "anchor"
    unscheduled_default: bool = True

    @classmethod
    def from_config(cls, config) -> "RecurrencePolicy":
        return cls(
            every_other_day=config.every_other_day_policy,
            unscheduled_default=config.unscheduled_default,
        )


DEFAULT_POLICY = RecurrencePolicy()


def _is_daily_due(descriptor: FrequencyDescriptor, target: date,
                  anchor: Optional[date], policy: RecurrencePolicy) -> bool:
    pattern = descriptor.custom_pattern

    if pattern == CustomPattern.WEEKDAYS_ONLY:
        return 1 <= target.isoweekday() <= 5

    if pattern == CustomPattern.EVERY_OTHER_DAY:
        if policy.every_other_day == "parity" or anchor is None:
            return target.day % 2 == 1
        offset = days_between(anchor, target)
        return offset >= 0 and offset % 2 == 0

    return True


def _is_weekly_due(descriptor: FrequencyDescriptor, target: date, policy: RecurrencePolicy) -> bool:
    if descriptor.days_of_week:
        return js_weekday(target) in descriptor.days_of_week
    return policy.unscheduled_default


def _is_monthly_due(descriptor: FrequencyDescriptor, target: date, policy: RecurrencePolicy) -> bool:
    if descriptor.days_of_month:
        return target.day in descriptor.days_of_month
    return policy.unscheduled_default


def _is_custom_due(descriptor: FrequencyDescriptor, target: date, anchor: Optional[date]) -> bool:
    if anchor is None:
        raise ValidationError("Custom frequencies need an anchor date")
    offset = days_between(anchor, target)
    if offset < 0:
        return False
    return offset % descriptor.period < descriptor.target


def is_due(descriptor: FrequencyDescriptor, target: DateLike,
           anchor: Optional[DateLike] = None,
           policy: RecurrencePolicy = DEFAULT_POLICY) -> bool:
    """
    Check whether a frequency descriptor makes a habit due on ``target``.

    Args:
        descriptor: Frequency configuration
        target: Calendar date to test
        anchor: Start date for interval recurrences (habit creation day)
        policy: Fallback policy for unanchored/unscheduled recurrences

    Returns:
        True if the habit is due on the date
    """
    target_day = to_date(target)
    anchor_day = to_date(anchor) if anchor is not None else None

    if descriptor.type == FrequencyType.DAILY:
        return _is_daily_due(descriptor, target_day, anchor_day, policy)
    if descriptor.type == FrequencyType.WEEKLY:
        return _is_weekly_due(descriptor, target_day, policy)
    if descriptor.type == FrequencyType.MONTHLY:
        return _is_monthly_due(descriptor, target_day, policy)
    if descriptor.type == FrequencyType.CUSTOM:
        return _is_custom_due(descriptor, target_day, anchor_day)
    return False


def is_habit_due(habit: Habit, target: DateLike, policy: RecurrencePolicy = DEFAULT_POLICY,
                 anchor: Optional[DateLike] = None) -> bool:
    """
    Check whether a stored habit is due on ``target``.

    ``anchor`` defaults to the creation day of the habit; callers working in a
    local timezone pass the creation day as seen there.
    """
    if anchor is None:
        anchor = habit.created_date
    return is_due(habit.frequency, target, anchor=anchor, policy=policy)


def get_next_scheduled_date(habit: Habit, from_date: DateLike,
                            horizon: int = DEFAULT_HORIZON_DAYS,
                            policy: RecurrencePolicy = DEFAULT_POLICY,
                            anchor: Optional[DateLike] = None) -> Optional[date]:
    """
    Find the first due date strictly after ``from_date``.

    Scans forward one day at a time, bounded at ``horizon`` days.

    Returns:
        The next due date, or None if nothing is due within the horizon
    """
    check_date = to_date(from_date)
    for _ in range(horizon):
        check_date += timedelta(days=1)
        if is_habit_due(habit, check_date, policy, anchor):
            return check_date
    return None


def get_expected_completions_in_period(habit: Habit, start: DateLike, end: DateLike,
                                       policy: RecurrencePolicy = DEFAULT_POLICY,
                                       anchor: Optional[DateLike] = None) -> int:
    """Count the due days in the inclusive range ``[start, end]``."""
    return sum(
        1 for day in iter_days(to_date(start), to_date(end))
        if is_habit_due(habit, day, policy, anchor)
    )


def describe_frequency(descriptor: FrequencyDescriptor) -> str:
    """Human-readable description of a frequency."""
    if descriptor.type == FrequencyType.DAILY:
        if descriptor.custom_pattern == CustomPattern.WEEKDAYS_ONLY:
            return 'Weekdays only'
        if descriptor.custom_pattern == CustomPattern.EVERY_OTHER_DAY:
            return 'Every other day'
        return 'Daily'

    if descriptor.type == FrequencyType.WEEKLY:
        if descriptor.days_of_week:
            selected = ', '.join(DAY_NAMES[d] for d in descriptor.days_of_week)
            return f'{selected} each week'
        return f'{descriptor.target} times per week'

    if descriptor.type == FrequencyType.MONTHLY:
        if descriptor.days_of_month:
            days = ', '.join(str(d) for d in descriptor.days_of_month)
            return f'Days {days} each month'
        return f'{descriptor.target} times per month'

    return f'{descriptor.target} times every {descriptor.period} days'


def validate_frequency(descriptor: FrequencyDescriptor) -> None:
    """
    Validate a frequency configuration.

    Raises:
        ValidationError: If the descriptor is malformed
    """
    if not isinstance(descriptor.type, FrequencyType):
        raise ValidationError(f"Unknown frequency type: {descriptor.type!r}")

    if descriptor.target < 1:
        raise ValidationError('Target must be greater than 0')

    if descriptor.period < 1:
        raise ValidationError('Period must be greater than 0')

    if descriptor.type == FrequencyType.CUSTOM and descriptor.target > descriptor.period:
        raise ValidationError('Target cannot exceed the period for custom frequencies')

    if descriptor.type == FrequencyType.WEEKLY and descriptor.days_of_week is not None:
        if len(descriptor.days_of_week) == 0:
            raise ValidationError('At least one day must be selected for weekly habits')
        if any(d < 0 or d > 6 for d in descriptor.days_of_week):
            raise ValidationError('Invalid day of week')

    if descriptor.type == FrequencyType.MONTHLY and descriptor.days_of_month is not None:
        if len(descriptor.days_of_month) == 0:
            raise ValidationError('At least one day must be selected for monthly habits')
        if any(d < 1 or d > 31 for d in descriptor.days_of_month):
            raise ValidationError('Invalid day of month')
