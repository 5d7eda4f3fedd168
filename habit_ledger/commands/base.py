"""Shared plumbing for CLI commands."""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..core.models import Habit, LedgerConfig
from ..schedule.recurrence import describe_frequency
from ..tracker import HabitTracker

WEEKDAY_ALIASES = {
    'sun': 0, 'mon': 1, 'tue': 2, 'wed': 3, 'thu': 4, 'fri': 5, 'sat': 6,
}


def parse_day_list(value: Optional[str], names: bool = False) -> Optional[List[int]]:
    """Parse ``"1,3,5"`` (or ``"mon,wed,fri"`` when ``names``) into ints."""
    if value is None:
        return None
    days = []
    for part in value.split(','):
        token = part.strip().lower()
        if not token:
            continue
        if names and token[:3] in WEEKDAY_ALIASES:
            days.append(WEEKDAY_ALIASES[token[:3]])
            continue
        try:
            days.append(int(token))
        except ValueError:
            raise ValidationError(f"Invalid day: {part!r}")
    return days


def build_frequency(frequency: Optional[str] = None, target: Optional[int] = None,
                    period: Optional[int] = None, days: Optional[str] = None,
                    month_days: Optional[str] = None,
                    pattern: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Build a frequency dict from CLI options; None when nothing was given.

    ``type`` is only set when ``frequency`` is given, so edits can merge the
    options into the stored frequency. New habits default to daily.
    """
    if all(v is None for v in (frequency, target, period, days, month_days, pattern)):
        return None

    data: Dict[str, Any] = {}
    if frequency is not None:
        data["type"] = frequency
    if target is not None:
        data["target"] = target
    if period is not None:
        data["period"] = period
    if days is not None:
        data["daysOfWeek"] = parse_day_list(days, names=True)
    if month_days is not None:
        data["daysOfMonth"] = parse_day_list(month_days)
    if pattern is not None:
        data["customPattern"] = pattern
    return data


def format_habit_line(habit: Habit) -> str:
    status = " (archived)" if habit.archived else ""
    return f"  {habit.uuid[:8]}  {habit.name}  [{describe_frequency(habit.frequency)}]{status}"


class BaseCommand:
    """Common constructor and tracker lifecycle for commands."""

    def __init__(self, config: LedgerConfig, verbose: bool = False,
                 tracker_factory: Optional[Callable[[LedgerConfig], HabitTracker]] = None):
        self.config = config
        self.verbose = verbose
        self.tracker_factory = tracker_factory or HabitTracker.from_config
        self.logger = logging.getLogger(self.__class__.__module__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def open_tracker(self) -> HabitTracker:
        return self.tracker_factory(self.config)

    def resolve_habit(self, tracker: HabitTracker, ref: str) -> Habit:
        """
        Find a habit by uuid, unique uuid prefix or exact name.

        Raises:
            NotFoundError: If nothing (or more than one habit) matches
        """
        habit = tracker.get_habit(ref)
        if habit is not None:
            return habit

        habits = tracker.load_habits()
        matches = [h for h in habits if h.uuid.startswith(ref)]
        if not matches:
            matches = [h for h in habits if h.name.lower() == ref.lower()]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            self.logger.debug("Reference %r matches %d habits", ref, len(matches))
        raise NotFoundError(ref)

    def report_failure(self, action: str, exc: Exception) -> bool:
        self.logger.error("%s failed: %s", action, exc)
        print(f"❌ {exc}")
        if self.verbose:
            import traceback
            traceback.print_exc()
        return False
