"""
Coaching insights and recommendations derived from completion histories.

Everything here is a read-only fold over habits and completions with an
explicit reference day. Completion rates are percentages over the last
thirty days, today included.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..core.models import Habit
from ..utils.date import js_weekday, parse_timestamp, to_date
from .dependencies import suggest_habit_chains
from .streaks import (
    calculate_longest_streak,
    calculate_streak,
    completed_dates,
    completion_rate,
    round_half_up,
)

INSIGHT_WINDOW_DAYS = 30
HIGH_PERFORMANCE_RATE = 80
LOW_PERFORMANCE_RATE = 50
STACKING_RATE = 70
HABIT_OVERLOAD = 7
TREND_MARGIN = 0.1

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']

IMPROVEMENT_SUGGESTIONS = (
    'Try reducing the habit to a smaller, more manageable version.',
    'Set a specific time and location for this habit.',
    'Consider pairing it with an existing routine.',
    'Break it down into smaller steps.',
    'Set up environmental cues to remind yourself.',
)

COMPLEMENTARY_HABITS = {
    'exercise': 'Daily stretching routine',
    'health': 'Drink more water',
    'productivity': 'Weekly planning session',
    'learning': 'Read for 15 minutes',
    'mindfulness': 'Practice gratitude',
}


class InsightType(Enum):
    STRENGTH = "strength"
    OPPORTUNITY = "opportunity"
    WARNING = "warning"
    RECOMMENDATION = "recommendation"


class RecommendationType(Enum):
    NEW_HABIT = "new_habit"
    SCHEDULE_OPTIMIZATION = "schedule_optimization"
    HABIT_COMBINATION = "habit_combination"
    DIFFICULTY_ADJUSTMENT = "difficulty_adjustment"


@dataclass
class HabitInsight:
    type: InsightType
    title: str
    description: str
    confidence: float
    actionable: bool
    icon: str
    habit_uuid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "habitUuid": self.habit_uuid,
            "confidence": self.confidence,
            "actionable": self.actionable,
            "icon": self.icon,
        }


@dataclass
class Recommendation:
    id: str
    type: RecommendationType
    title: str
    description: str
    reasoning: str
    confidence: float
    estimated_impact: str
    habit_template: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "estimatedImpact": self.estimated_impact,
        }
        if self.habit_template is not None:
            data["habitTemplate"] = self.habit_template
        return data


@dataclass
class PatternAnalysis:
    """Cross-habit performance patterns."""

    best_performing_days: List[int] = field(default_factory=list)
    best_performing_times: List[str] = field(default_factory=list)
    consistency_score: int = 0
    trend_direction: str = "stable"
    average_streak: float = 0.0
    longest_streak: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bestPerformingDays": list(self.best_performing_days),
            "bestPerformingTimes": list(self.best_performing_times),
            "consistencyScore": self.consistency_score,
            "trendDirection": self.trend_direction,
            "averageStreak": self.average_streak,
            "longestStreak": self.longest_streak,
        }


def _owner(item: Any) -> Optional[str]:
    return item.get("habitUuid") if isinstance(item, dict) else getattr(item, "habit_uuid", None)


def _group(habits: List[Habit], completions: Iterable[Any]) -> Dict[str, List[Any]]:
    grouped: Dict[str, List[Any]] = {habit.uuid: [] for habit in habits}
    for item in completions:
        owner = _owner(item)
        if owner in grouped:
            grouped[owner].append(item)
    return grouped


def _recent_days(history: List[Any], today: date, days: int = INSIGHT_WINDOW_DAYS) -> List[date]:
    start = today - timedelta(days=days - 1)
    return sorted(d for d in completed_dates(history) if start <= d <= today)


def time_slot(hour: int) -> str:
    if hour < 6:
        return 'Early Morning (12-6 AM)'
    if hour < 12:
        return 'Morning (6 AM-12 PM)'
    if hour < 18:
        return 'Afternoon (12-6 PM)'
    return 'Evening (6 PM-12 AM)'


def _completed_at(item: Any, tz: Optional[tzinfo]):
    if isinstance(item, dict):
        if not item.get("completed", True):
            return None
        stamp = parse_timestamp(item.get("createdAt") or item.get("created_at"))
    else:
        if not getattr(item, "completed", True):
            return None
        stamp = getattr(item, "created_at", None)
    if stamp is not None and tz is not None and stamp.tzinfo is not None:
        stamp = stamp.astimezone(tz)
    return stamp


def analyze_habit_performance(habit: Habit, history: List[Any], today) -> List[HabitInsight]:
    """Insights for one habit over the last thirty days."""
    today = to_date(today)
    recent = _recent_days(history, today)

    if not recent:
        return [HabitInsight(
            type=InsightType.WARNING,
            title='Habit Needs Attention',
            description=f"{habit.name} hasn't been completed recently. Consider adjusting your approach.",
            habit_uuid=habit.uuid,
            confidence=0.9,
            actionable=True,
            icon='⚠️',
        )]

    insights = []
    rate = completion_rate(history, INSIGHT_WINDOW_DAYS, today)
    if rate >= HIGH_PERFORMANCE_RATE:
        insights.append(HabitInsight(
            type=InsightType.STRENGTH,
            title='Excellent Consistency',
            description=f"{habit.name} has {rate}% completion rate! Keep up the great work.",
            habit_uuid=habit.uuid,
            confidence=0.95,
            actionable=False,
            icon='🌟',
        ))
    elif rate < LOW_PERFORMANCE_RATE:
        suggestion = IMPROVEMENT_SUGGESTIONS[len(recent) % len(IMPROVEMENT_SUGGESTIONS)]
        insights.append(HabitInsight(
            type=InsightType.OPPORTUNITY,
            title='Room for Improvement',
            description=f"{habit.name} completion rate is {rate}%. {suggestion}",
            habit_uuid=habit.uuid,
            confidence=0.8,
            actionable=True,
            icon='💡',
        ))

    per_weekday = [0] * 7
    for day in recent:
        per_weekday[js_weekday(day)] += 1
    best_day = per_weekday.index(max(per_weekday))
    insights.append(HabitInsight(
        type=InsightType.RECOMMENDATION,
        title='Optimal Day Identified',
        description=(f"You're most consistent with {habit.name} on {DAY_NAMES[best_day]}s. "
                     "Consider focusing your efforts on this day."),
        habit_uuid=habit.uuid,
        confidence=0.7,
        actionable=True,
        icon='📅',
    ))
    return insights


def generate_insights(habits: List[Habit], completions: Iterable[Any], today) -> List[HabitInsight]:
    """
    Per-habit and overall insights for the active habits, most confident first.

    Overall insights warn about carrying more than seven active habits and
    suggest habit stacking once two habits hold a 70% rate.
    """
    today = to_date(today)
    active = [habit for habit in habits if not habit.archived]
    histories = _group(active, completions)

    insights: List[HabitInsight] = []
    for habit in active:
        insights.extend(analyze_habit_performance(habit, histories[habit.uuid], today))

    if len(active) > HABIT_OVERLOAD:
        insights.append(HabitInsight(
            type=InsightType.WARNING,
            title='Habit Overload',
            description=(f"You have {len(active)} active habits. Consider focusing on 3-5 core "
                         "habits for better success."),
            confidence=0.85,
            actionable=True,
            icon='🎯',
        ))

    strong = [h for h in active
              if completion_rate(histories[h.uuid], INSIGHT_WINDOW_DAYS, today) >= STACKING_RATE]
    if len(strong) >= 2:
        insights.append(HabitInsight(
            type=InsightType.RECOMMENDATION,
            title='Habit Stacking Opportunity',
            description='You could stack new habits with your consistent ones for better adoption.',
            confidence=0.75,
            actionable=True,
            icon='🔗',
        ))

    insights.sort(key=lambda insight: insight.confidence, reverse=True)
    return insights


def _trend(completions: List[Any], today: date) -> str:
    this_week = previous_week = 0
    for item in completions:
        for day in completed_dates([item]):
            age = (today - day).days
            if 0 <= age < 7:
                this_week += 1
            elif 7 <= age < 14:
                previous_week += 1

    recent_rate = this_week / 7
    previous_rate = previous_week / 7
    if recent_rate > previous_rate + TREND_MARGIN:
        return "improving"
    if recent_rate < previous_rate - TREND_MARGIN:
        return "declining"
    return "stable"


def analyze_patterns(habits: List[Habit], completions: Iterable[Any], today,
                     tz: Optional[tzinfo] = None) -> PatternAnalysis:
    """
    Weekday and time-of-day patterns across every active habit.

    Times come from when each completion was recorded, seen from ``tz``.
    """
    today = to_date(today)
    active = [habit for habit in habits if not habit.archived]
    histories = _group(active, completions)
    owned = [item for history in histories.values() for item in history]

    per_weekday = [0] * 7
    for day_set in (completed_dates(history) for history in histories.values()):
        for day in day_set:
            per_weekday[js_weekday(day)] += 1
    best_days = sorted((d for d in range(7) if per_weekday[d]), key=lambda d: (-per_weekday[d], d))

    per_slot: Dict[str, int] = {}
    for item in owned:
        stamp = _completed_at(item, tz)
        if stamp is not None:
            slot = time_slot(stamp.hour)
            per_slot[slot] = per_slot.get(slot, 0) + 1
    best_times = sorted(per_slot, key=lambda slot: -per_slot[slot])

    rates = [completion_rate(histories[h.uuid], INSIGHT_WINDOW_DAYS, today) for h in active]
    streaks = [calculate_streak(histories[h.uuid], today) for h in active]

    return PatternAnalysis(
        best_performing_days=best_days[:3],
        best_performing_times=best_times[:2],
        consistency_score=round_half_up(sum(rates) / len(rates)) if rates else 0,
        trend_direction=_trend(owned, today),
        average_streak=round(sum(streaks) / len(streaks), 1) if streaks else 0.0,
        longest_streak=max((calculate_longest_streak(histories[h.uuid]) for h in active), default=0),
    )


def successful_categories(habits: List[Habit], completions: Iterable[Any], today) -> List[str]:
    """Keyword categories whose matching habits average at least a 70% rate."""
    today = to_date(today)
    histories = _group(habits, completions)
    found = []
    for category in COMPLEMENTARY_HABITS:
        matching = [
            habit for habit in habits
            if category in habit.name.lower() or category in (habit.description or "").lower()
        ]
        if not matching:
            continue
        average = sum(
            completion_rate(histories[h.uuid], INSIGHT_WINDOW_DAYS, today) for h in matching
        ) / len(matching)
        if average >= STACKING_RATE:
            found.append(category)
    return found


def generate_recommendations(habits: List[Habit], completions: Iterable[Any], today,
                             tz: Optional[tzinfo] = None) -> List[Recommendation]:
    """Personalized recommendations, most confident first."""
    today = to_date(today)
    completions = list(completions)
    active = [habit for habit in habits if not habit.archived]
    analysis = analyze_patterns(active, completions, today, tz)
    recommendations = []

    if analysis.best_performing_times:
        recommendations.append(Recommendation(
            id='schedule-optimization',
            type=RecommendationType.SCHEDULE_OPTIMIZATION,
            title='Optimize Your Schedule',
            description=('Schedule habits during your peak performance times: '
                         + ', '.join(analysis.best_performing_times)),
            reasoning='Based on your completion patterns, you perform better at specific times.',
            confidence=0.8,
            estimated_impact='medium',
        ))

    categories = successful_categories(active, completions, today)
    if categories:
        recommendations.append(Recommendation(
            id='similar-habit',
            type=RecommendationType.NEW_HABIT,
            title='Add a Complementary Habit',
            description='Based on your success with certain types of habits, consider adding similar ones.',
            reasoning=f"You excel at {categories[0]} habits.",
            confidence=0.7,
            estimated_impact='high',
            habit_template={
                "name": COMPLEMENTARY_HABITS[categories[0]],
                "frequency": {"type": "daily", "target": 1, "period": 1},
            },
        ))

    chains = suggest_habit_chains(active, completions, limit=1)
    if chains:
        chain = chains[0]
        recommendations.append(Recommendation(
            id='habit-chain',
            type=RecommendationType.HABIT_COMBINATION,
            title='Chain Your Habits',
            description=chain.reason,
            reasoning=f"Completed on the same day {chain.occurrences} times.",
            confidence=round(0.6 * chain.confidence, 2),
            estimated_impact='medium',
        ))

    recommendations.sort(key=lambda rec: rec.confidence, reverse=True)
    return recommendations
