"""
Aggregate insights across all habits: leaders, totals, trends and streak breaks.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..core.models import Habit
from ..utils.date import format_date, iter_days, to_date
from .streaks import (
    HabitStats,
    calculate_habit_stats,
    calculate_longest_streak,
    calculate_streak,
    completed_dates,
    round_half_up,
)

MIN_BROKEN_STREAK = 3


@dataclass
class StreakLeader:
    habit_uuid: str
    habit_name: str
    current_streak: int
    longest_streak: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habitUuid": self.habit_uuid,
            "habitName": self.habit_name,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
        }


@dataclass
class OverallStats:
    total_habits: int = 0
    active_habits: int = 0
    total_completions: int = 0
    average_completion_rate: int = 0
    best_streak: int = 0
    active_days: int = 0
    consistency_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalHabits": self.total_habits,
            "activeHabits": self.active_habits,
            "totalCompletions": self.total_completions,
            "averageCompletionRate": self.average_completion_rate,
            "bestStreak": self.best_streak,
            "activeDays": self.active_days,
            "consistencyScore": self.consistency_score,
        }


@dataclass
class TrendPoint:
    day: date
    completions: int
    habits: int

    def to_dict(self) -> Dict[str, Any]:
        return {"date": format_date(self.day), "completions": self.completions, "habits": self.habits}


@dataclass
class StreakBreak:
    """A streak of at least three days that has since been interrupted."""

    habit_uuid: str
    previous_streak: int
    break_date: date
    days_broken: int
    recovery_streak: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habitUuid": self.habit_uuid,
            "previousStreak": self.previous_streak,
            "breakDate": format_date(self.break_date),
            "daysBroken": self.days_broken,
            "recoveryStreak": self.recovery_streak,
        }


def _owner(item: Any) -> Optional[str]:
    return item.get("habitUuid") if isinstance(item, dict) else getattr(item, "habit_uuid", None)


def _is_completed(item: Any) -> bool:
    return bool(item.get("completed", True)) if isinstance(item, dict) else bool(item.completed)


def _histories(habits: List[Habit], completions: Iterable[Any]) -> Dict[str, List[Any]]:
    grouped: Dict[str, List[Any]] = {habit.uuid: [] for habit in habits}
    for item in completions:
        owner = _owner(item)
        if owner in grouped:
            grouped[owner].append(item)
    return grouped


def get_streak_leaders(habits: List[Habit], completions: Iterable[Any], today,
                       limit: int = 5) -> List[StreakLeader]:
    """Habits with a running streak, longest current streak first."""
    today = to_date(today)
    histories = _histories(habits, completions)
    leaders = []
    for habit in habits:
        history = histories[habit.uuid]
        current = calculate_streak(history, today)
        if current == 0:
            continue
        leaders.append(StreakLeader(
            habit_uuid=habit.uuid,
            habit_name=habit.name,
            current_streak=current,
            longest_streak=max(calculate_longest_streak(history), current),
        ))
    leaders.sort(key=lambda leader: (-leader.current_streak, -leader.longest_streak, leader.habit_name))
    return leaders[:limit]


def get_completion_counts(habits: List[Habit], completions: Iterable[Any]) -> Dict[str, int]:
    """Completed-record count per habit uuid (zero for habits never completed)."""
    counts = {habit.uuid: 0 for habit in habits}
    for item in completions:
        owner = _owner(item)
        if owner in counts and _is_completed(item):
            counts[owner] += 1
    return counts


def calculate_overall_stats(habits: List[Habit], completions: Iterable[Any], today,
                            days: int = 30) -> OverallStats:
    """
    Summarize performance across every active habit over the last ``days`` days.

    Archived habits count towards ``total_habits`` only.
    """
    today = to_date(today)
    completions = list(completions)
    active = [habit for habit in habits if not habit.archived]
    histories = _histories(active, completions)
    start = today - timedelta(days=days - 1)

    stats = [calculate_habit_stats(habit, histories[habit.uuid], today, days) for habit in active]

    recent = [
        item for history in histories.values() for item in history
        if _is_completed(item) and start <= to_date(item["date"] if isinstance(item, dict) else item.date) <= today
    ]
    active_days = {
        to_date(item["date"] if isinstance(item, dict) else item.date) for item in recent
    }

    if stats:
        average_rate = round_half_up(sum(s.completion_rate for s in stats) / len(stats))
        consistency = round_half_up(sum(s.consistency_score for s in stats) / len(stats))
        best = max(s.longest_streak for s in stats)
    else:
        average_rate = consistency = best = 0

    return OverallStats(
        total_habits=len(habits),
        active_habits=len(active),
        total_completions=len(recent),
        average_completion_rate=average_rate,
        best_streak=best,
        active_days=len(active_days),
        consistency_score=consistency,
    )


def get_top_performing_habits(habits: List[Habit], completions: Iterable[Any], today,
                              limit: int = 5, days: int = 90) -> List[HabitStats]:
    """Active habits ranked by consistency score."""
    today = to_date(today)
    active = [habit for habit in habits if not habit.archived]
    histories = _histories(active, completions)
    stats = [calculate_habit_stats(habit, histories[habit.uuid], today, days) for habit in active]
    stats.sort(key=lambda s: s.consistency_score, reverse=True)
    return stats[:limit]


def generate_trend_data(habits: List[Habit], completions: Iterable[Any], today,
                        days: int = 30) -> List[TrendPoint]:
    """Daily completed counts over the last ``days`` days, oldest first."""
    today = to_date(today)
    start = today - timedelta(days=days - 1)
    per_day: Dict[date, int] = {}
    for item in completions:
        if not _is_completed(item):
            continue
        day = to_date(item["date"] if isinstance(item, dict) else item.date)
        per_day[day] = per_day.get(day, 0) + 1

    active_count = sum(1 for habit in habits if not habit.archived)
    return [
        TrendPoint(day=day, completions=per_day.get(day, 0), habits=active_count)
        for day in iter_days(start, today)
    ]


def detect_streak_break(habit: Habit, completions: Iterable[Any], today) -> Optional[StreakBreak]:
    """
    Find the most recent interrupted streak of a habit.

    Looks at the last completed run before the current one (or before today
    when no streak is running). Runs shorter than three days are not
    reported.

    Returns:
        StreakBreak describing the interruption, or None
    """
    today = to_date(today)
    history = [item for item in completions if _owner(item) in (None, habit.uuid)]
    done = {d for d in completed_dates(history) if d <= today}
    if not done:
        return None

    recovery = calculate_streak(done, today)
    if recovery:
        anchor = today if today in done else today - timedelta(days=1)
        search_from = anchor - timedelta(days=recovery)
    else:
        search_from = today - timedelta(days=1)

    earlier = [d for d in done if d <= search_from]
    if not earlier:
        return None
    last_done = max(earlier)

    previous = 0
    check = last_done
    while check in done:
        previous += 1
        check -= timedelta(days=1)

    if previous < MIN_BROKEN_STREAK:
        return None

    days_broken = (search_from - last_done).days

    return StreakBreak(
        habit_uuid=habit.uuid,
        previous_streak=previous,
        break_date=last_done + timedelta(days=1),
        days_broken=max(1, days_broken),
        recovery_streak=recovery,
    )
