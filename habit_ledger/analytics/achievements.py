"""
Achievement catalog and evaluation.

Achievements are derived on demand from habits and completions; nothing is
stored and the ledger is never modified.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..core.models import Habit
from ..utils.date import format_date, to_date
from .streaks import completed_dates, completion_rate, round_half_up

PERFECT_RATE_THRESHOLD = 95


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: str  # streak, completion, consistency, variety, milestone
    requirement: int


ACHIEVEMENT_DEFINITIONS = (
    AchievementDefinition('streak_week', 'Week Warrior',
                          'Complete a habit for 7 days in a row', 'fire', 'streak', 7),
    AchievementDefinition('streak_month', 'Monthly Master',
                          'Complete a habit for 30 days in a row', 'muscle', 'streak', 30),
    AchievementDefinition('streak_hundred', 'Century Champion',
                          'Complete a habit for 100 days in a row', 'trophy', 'streak', 100),
    AchievementDefinition('total_50', 'Half Century',
                          'Complete any habit 50 times', 'target', 'completion', 50),
    AchievementDefinition('total_365', 'Year Round',
                          'Complete any habit 365 times', 'star', 'completion', 365),
    AchievementDefinition('perfect_week', 'Perfect Week',
                          'Complete all habits for 7 days in a row', 'sparkles', 'consistency', 7),
    AchievementDefinition('perfect_month', 'Perfect Month',
                          'Complete all habits for 30 days in a row', 'trophy', 'consistency', 30),
    AchievementDefinition('habit_collector', 'Habit Collector',
                          'Create 10 different habits', 'book', 'variety', 10),
    AchievementDefinition('category_master', 'Category Master',
                          'Have habits in 5 different categories', 'art', 'variety', 5),
    AchievementDefinition('first_habit', 'First Steps',
                          'Create your first habit', 'growth', 'milestone', 1),
    AchievementDefinition('first_completion', 'Getting Started',
                          'Complete your first habit', 'check', 'milestone', 1),
)

_ICON_GROUPS = {
    'fitness': (
        'dumbbell', 'bike', 'running', 'yoga', 'muscle', 'trophy', 'fire', 'sneaker',
        'walking', 'road', 'legs', 'drops', 'meditation', 'peace', 'lotus', 'soccer',
        'basketball', 'tennis', 'swimming',
    ),
    'health': (
        'water', 'utensils', 'heart', 'water_tap', 'drink', 'apple', 'avocado',
        'broccoli', 'no_burger', 'no_pizza', 'scale', 'chart_down',
    ),
    'productivity': (
        'target', 'book', 'code', 'check', 'rocket', 'chart_up', 'bookmark', 'notebook',
        'pen', 'bulb', 'growth', 'snail', 'clock', 'search', 'timer', 'quiet', 'keyboard',
        'meditation_man',
    ),
    'wellness': (
        'moon', 'brain', 'sun', 'candle', 'sparkles', 'pray', 'speaking', 'hug', 'wind',
        'leaf', 'no_phone', 'tree', 'chat', 'star', 'sunrise', 'rooster', 'bed',
        'calendar', 'memo', 'pencil',
    ),
    'finance': ('money', 'dollar', 'card', 'cleaning', 'sponge', 'shirt', 'bottle'),
    'social': ('phone', 'family', 'group', 'couple'),
    'creative': ('music', 'camera', 'writing', 'theater', 'art', 'piano', 'guitar', 'brush'),
    'avoidance': (
        'no_smoking', 'no_cigarette', 'no_alcohol', 'no_beer', 'no_mobile', 'stop_hand',
        'no_donut', 'no_soda',
    ),
}

# Icon token -> category used for the diversity achievement.
ICON_CATEGORIES: Dict[str, str] = {
    icon: category for category, icons in _ICON_GROUPS.items() for icon in icons
}


def icon_category(icon: Optional[str]) -> str:
    return ICON_CATEGORIES.get(icon or '', 'other')


@dataclass
class Achievement:
    """An evaluated catalog entry."""

    definition: AchievementDefinition
    progress: int = 0
    earned: bool = False
    earned_at: Optional[date] = None

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def max_progress(self) -> int:
        return self.definition.requirement

    @property
    def ratio(self) -> float:
        return self.progress / self.max_progress if self.max_progress else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.definition.id,
            "name": self.definition.name,
            "description": self.definition.description,
            "icon": self.definition.icon,
            "category": self.definition.category,
            "requirement": self.definition.requirement,
            "earned": self.earned,
            "earnedAt": format_date(self.earned_at),
            "progress": self.progress,
            "maxProgress": self.max_progress,
        }


def _group_by_habit(completions: Iterable[Any]) -> Dict[str, List[Any]]:
    grouped: Dict[str, List[Any]] = {}
    for item in completions:
        owner = item["habitUuid"] if isinstance(item, dict) else item.habit_uuid
        grouped.setdefault(owner, []).append(item)
    return grouped


def _runs(days: List[date]):
    """Yield ``(run_length, day)`` for each day of an ascending date list."""
    run = 0
    previous = None
    for day in days:
        run = run + 1 if previous is not None and (day - previous).days == 1 else 1
        previous = day
        yield run, day


def _streak_progress(histories: Dict[str, List[Any]], requirement: int):
    best = 0
    earned_at = None
    for history in histories.values():
        for run, day in _runs(sorted(completed_dates(history))):
            best = max(best, run)
            if run == requirement and (earned_at is None or day < earned_at):
                earned_at = day
    return best, earned_at


def calculate_achievements(habits: List[Habit], completions: Iterable[Any], today) -> List[Achievement]:
    """
    Evaluate the full achievement catalog.

    Streak achievements use the longest run ever reached by any habit, so an
    earned badge stays earned after the streak ends.

    Args:
        habits: Habits to evaluate (usually the active ones)
        completions: Completion records of those habits
        today: Reference day for the consistency windows

    Returns:
        One Achievement per catalog entry, in catalog order
    """
    today = to_date(today)
    completions = list(completions)
    histories = _group_by_habit(completions)
    done_records = sorted(
        (to_date(c["date"] if isinstance(c, dict) else c.date)
         for c in completions
         if (c.get("completed", True) if isinstance(c, dict) else c.completed)),
    )
    habits_by_age = sorted(habits, key=lambda h: h.created_at)

    results = []
    for definition in ACHIEVEMENT_DEFINITIONS:
        requirement = definition.requirement
        achievement = Achievement(definition=definition)

        if definition.category == 'streak':
            best, earned_at = _streak_progress(histories, requirement)
            achievement.progress = min(best, requirement)
            achievement.earned = best >= requirement
            achievement.earned_at = earned_at if achievement.earned else None

        elif definition.category == 'completion':
            total = len(done_records)
            achievement.progress = min(total, requirement)
            achievement.earned = total >= requirement
            if achievement.earned:
                achievement.earned_at = done_records[requirement - 1]

        elif definition.category == 'consistency':
            if habits:
                rates = [completion_rate(histories.get(h.uuid, []), requirement, today)
                         for h in habits]
                average = sum(rates) / len(rates)
                achievement.progress = min(int(average / 100 * requirement), requirement)
                achievement.earned = average >= PERFECT_RATE_THRESHOLD
                achievement.earned_at = today if achievement.earned else None

        elif definition.id == 'habit_collector':
            achievement.progress = min(len(habits), requirement)
            achievement.earned = len(habits) >= requirement
            if achievement.earned:
                achievement.earned_at = habits_by_age[requirement - 1].created_date

        elif definition.id == 'category_master':
            seen = set()
            for habit in habits_by_age:
                seen.add(icon_category(habit.icon))
                if len(seen) == requirement and achievement.earned_at is None:
                    achievement.earned_at = habit.created_date
            achievement.progress = min(len(seen), requirement)
            achievement.earned = len(seen) >= requirement

        elif definition.id == 'first_habit':
            achievement.progress = min(len(habits), 1)
            achievement.earned = bool(habits)
            if habits:
                achievement.earned_at = habits_by_age[0].created_date

        elif definition.id == 'first_completion':
            achievement.progress = 1 if done_records else 0
            achievement.earned = bool(done_records)
            if done_records:
                achievement.earned_at = done_records[0]

        results.append(achievement)
    return results


def get_next_achievement(achievements: List[Achievement]) -> Optional[Achievement]:
    """The unearned achievement closest to completion, or None."""
    unearned = [a for a in achievements if not a.earned]
    if not unearned:
        return None
    return max(unearned, key=lambda a: a.ratio)


def get_recent_achievements(achievements: List[Achievement], today, days: int = 7) -> List[Achievement]:
    """Achievements earned within the last ``days`` days."""
    cutoff = to_date(today) - timedelta(days=days)
    return [a for a in achievements if a.earned and a.earned_at is not None and a.earned_at >= cutoff]


def get_overall_progress(achievements: List[Achievement]) -> int:
    """Percentage of the catalog earned."""
    if not achievements:
        return 0
    earned = sum(1 for a in achievements if a.earned)
    return round_half_up(earned / len(achievements) * 100)
