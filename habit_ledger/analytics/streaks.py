"""
Progress engine: streaks, completion rates and consistency for a habit.

Every function is pure. The reference day is always passed in as ``today``;
nothing here reads the wall clock.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from ..core.models import Habit
from ..utils.date import format_date, start_of_week, to_date


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def completed_dates(completions: Iterable[Any]) -> Set[date]:
    """
    Collect the distinct calendar days marked completed.

    Accepts ``Completion`` objects, dicts with ``date``/``completed`` keys,
    or bare dates and date strings (which count as completed).
    """
    days = set()
    for item in completions:
        if isinstance(item, dict):
            if item.get("completed", True):
                days.add(to_date(item["date"]))
        elif hasattr(item, "completed"):
            if item.completed:
                days.add(to_date(item.date))
        else:
            days.add(to_date(item))
    return days


def _window(completions: Iterable[Any], days: int, today: date) -> Set[date]:
    start = today - timedelta(days=days - 1)
    return {d for d in completed_dates(completions) if start <= d <= today}


def calculate_streak(completions: Iterable[Any], today) -> int:
    """
    Current run of consecutive completed days ending today or yesterday.

    An incomplete today does not break a streak that reached yesterday.
    """
    done = completed_dates(completions)
    if not done:
        return 0

    today = to_date(today)
    yesterday = today - timedelta(days=1)
    if today in done:
        check = today
    elif yesterday in done:
        check = yesterday
    else:
        return 0

    streak = 0
    while check in done:
        streak += 1
        check -= timedelta(days=1)
    return streak


def calculate_longest_streak(completions: Iterable[Any]) -> int:
    """Longest run of consecutive completed days anywhere in the history."""
    days = sorted(completed_dates(completions))
    if not days:
        return 0

    longest = 1
    current = 1
    for previous, day in zip(days, days[1:]):
        if (day - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def completion_rate(completions: Iterable[Any], days: int, today) -> int:
    """Percentage of the last ``days`` days (today included) that were completed."""
    if days <= 0:
        return 0
    done = _window(completions, days, to_date(today))
    return round_half_up(len(done) / days * 100)


def consistency_score(completions: Iterable[Any], window_days: Optional[int] = None,
                      today=None) -> int:
    """
    Score from 0 to 100 that penalizes gaps between completions.

    A single completion scores 10. Otherwise each gap longer than one day
    contributes its missed days; the score is ``100 - average_missed * 10``.

    Args:
        completions: Completion history
        window_days: Only consider the last N days when given (needs ``today``)
        today: Reference day for the window
    """
    if window_days is not None and today is not None:
        days = sorted(_window(completions, window_days, to_date(today)))
    else:
        days = sorted(completed_dates(completions))

    if not days:
        return 0
    if len(days) == 1:
        return 10

    total_gap = 0
    gap_count = 0
    for previous, day in zip(days, days[1:]):
        gap = (day - previous).days
        if gap > 1:
            total_gap += gap - 1
            gap_count += 1

    average_gap = total_gap / gap_count if gap_count else 0
    return round_half_up(max(0.0, 100 - average_gap * 10))


def weekly_average(completions: Iterable[Any]) -> float:
    """Average completions per week, over weeks (Monday start) with any activity."""
    weeks: Dict[date, int] = {}
    for day in completed_dates(completions):
        key = start_of_week(day, week_starts_on=1)
        weeks[key] = weeks.get(key, 0) + 1
    if not weeks:
        return 0.0
    return round(sum(weeks.values()) / len(weeks), 2)


def monthly_average(completions: Iterable[Any]) -> float:
    """Average completions per calendar month with any activity."""
    months: Dict[tuple, int] = {}
    for day in completed_dates(completions):
        key = (day.year, day.month)
        months[key] = months.get(key, 0) + 1
    if not months:
        return 0.0
    return round(sum(months.values()) / len(months), 2)


@dataclass
class HabitStats:
    """Derived metrics for one habit (never persisted)."""

    habit_uuid: str
    habit_name: str
    total_completions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    completion_rate: int = 0
    weekly_average: float = 0.0
    monthly_average: float = 0.0
    consistency_score: int = 0
    last_completed: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habitUuid": self.habit_uuid,
            "habitName": self.habit_name,
            "totalCompletions": self.total_completions,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "completionRate": self.completion_rate,
            "weeklyAverage": self.weekly_average,
            "monthlyAverage": self.monthly_average,
            "consistencyScore": self.consistency_score,
            "lastCompleted": format_date(self.last_completed),
        }


def _for_habit(habit: Habit, completions: Iterable[Any]) -> List[Any]:
    result = []
    for item in completions:
        owner = item.get("habitUuid") if isinstance(item, dict) else getattr(item, "habit_uuid", None)
        if owner is None or owner == habit.uuid:
            result.append(item)
    return result


def calculate_habit_stats(habit: Habit, completions: Iterable[Any], today,
                          days: int = 90) -> HabitStats:
    """
    Compute every progress metric for one habit.

    Window metrics (totals, rate, averages, consistency) cover the last
    ``days`` days. Streaks use the whole history so the longest streak can
    never be shorter than the current one.

    Completions belonging to other habits are ignored.
    """
    today = to_date(today)
    own = _for_habit(habit, completions)
    window = sorted(_window(own, days, today)) if days > 0 else []

    current = calculate_streak(own, today)
    longest = max(calculate_longest_streak(own), current)

    return HabitStats(
        habit_uuid=habit.uuid,
        habit_name=habit.name,
        total_completions=len(window),
        current_streak=current,
        longest_streak=longest,
        completion_rate=completion_rate(own, days, today),
        weekly_average=weekly_average(window),
        monthly_average=monthly_average(window),
        consistency_score=consistency_score(window),
        last_completed=window[-1] if window else None,
    )


class StreakTracker:
    """
    Streak calculations bound to a fixed reference day.

    Streaks are calculated on demand from completion histories handed in by
    the caller; the tracker itself keeps no ledger state.
    """

    def __init__(self, today):
        """
        Initialize streak tracker.

        Args:
            today: Reference day for current streaks and rate windows
        """
        self.today = to_date(today)

    def get_streak(self, completions: Iterable[Any]) -> Dict[str, int]:
        """
        Calculate current and best streak for one completion history.

        Returns:
            Dict with "current" and "best" streak counts in days
        """
        history = list(completions)
        current = calculate_streak(history, self.today)
        return {
            "current": current,
            "best": max(calculate_longest_streak(history), current),
        }

    def get_all_streaks(self, histories: Dict[str, Iterable[Any]],
                        min_current: int = 1) -> Dict[str, Dict[str, int]]:
        """
        Get all active streaks.

        Args:
            histories: Mapping of habit uuid to its completions
            min_current: Minimum current streak to include

        Returns:
            Dict mapping habit uuid to streak info
        """
        streaks = {}
        for habit_uuid, completions in histories.items():
            info = self.get_streak(completions)
            if info["current"] >= min_current:
                streaks[habit_uuid] = info
        return streaks

    def completion_rate(self, completions: Iterable[Any], days: int = 30) -> int:
        return completion_rate(completions, days, self.today)

    def stats(self, habit: Habit, completions: Iterable[Any], days: int = 90) -> HabitStats:
        return calculate_habit_stats(habit, completions, self.today, days)
