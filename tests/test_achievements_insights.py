"""
Tests for achievement evaluation (habit_ledger/analytics/achievements.py) and
aggregate insights (habit_ledger/analytics/insights.py).
"""

from datetime import datetime, timezone

import pytest

from habit_ledger.analytics.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    calculate_achievements,
    get_next_achievement,
    get_overall_progress,
    get_recent_achievements,
    icon_category,
)
from habit_ledger.analytics.insights import (
    calculate_overall_stats,
    detect_streak_break,
    generate_trend_data,
    get_completion_counts,
    get_streak_leaders,
    get_top_performing_habits,
)
from habit_ledger.core.models import Completion, Habit

from .conftest import TODAY, days_ago


def _habit(name, uuid, icon="target", created_days_ago=200, archived=False):
    created = datetime.combine(days_ago(created_days_ago), datetime.min.time()).replace(tzinfo=timezone.utc)
    return Habit(name=name, uuid=uuid, icon=icon, created_at=created, updated_at=created,
                 archived=archived)


def _done(uuid, *offsets, completed=True):
    return [Completion(habit_uuid=uuid, date=days_ago(n).isoformat(), completed=completed)
            for n in offsets]


def _by_id(achievements):
    return {a.id: a for a in achievements}


class TestAchievements:

    def test_catalog_shape(self):
        ids = [d.id for d in ACHIEVEMENT_DEFINITIONS]
        assert len(ids) == len(set(ids))
        assert {"streak_week", "total_50", "perfect_week", "habit_collector",
                "category_master", "first_habit", "first_completion"} <= set(ids)

    def test_empty_ledger_earns_nothing(self):
        achievements = calculate_achievements([], [], TODAY)

        assert len(achievements) == len(ACHIEVEMENT_DEFINITIONS)
        assert not any(a.earned for a in achievements)
        assert all(a.progress == 0 for a in achievements)
        assert get_overall_progress(achievements) == 0

    def test_streak_week_uses_longest_run(self):
        habit = _habit("Read", "h1")
        # A 7-day run that ended two weeks ago still counts
        completions = _done("h1", *range(14, 21))

        result = _by_id(calculate_achievements([habit], completions, TODAY))

        week = result["streak_week"]
        assert week.earned is True
        assert week.progress == 7
        assert week.earned_at == days_ago(14)
        assert result["streak_month"].progress == 7
        assert result["streak_month"].earned is False

    def test_completion_totals(self):
        habits = [_habit("A", "a"), _habit("B", "b")]
        completions = _done("a", *range(30)) + _done("b", *range(25)) + _done("b", 40, completed=False)

        result = _by_id(calculate_achievements(habits, completions, TODAY))

        assert result["total_50"].earned is True
        assert result["total_50"].progress == 50
        assert result["total_365"].progress == 55
        assert result["first_completion"].earned_at == days_ago(29)

    def test_perfect_week_needs_every_habit(self):
        habits = [_habit("A", "a"), _habit("B", "b")]
        full = _done("a", *range(7)) + _done("b", *range(7))
        half = _done("a", *range(7)) + _done("b", 0, 1, 2)

        assert _by_id(calculate_achievements(habits, full, TODAY))["perfect_week"].earned is True
        partial = _by_id(calculate_achievements(habits, half, TODAY))["perfect_week"]
        assert partial.earned is False
        assert 0 < partial.progress < 7

    def test_variety_achievements(self):
        icons = ["running", "water", "book", "moon", "money", "music", "phone",
                 "no_smoking", "target", "bike"]
        habits = [_habit(f"H{i}", f"h{i}", icon=icon, created_days_ago=30 - i)
                  for i, icon in enumerate(icons)]

        result = _by_id(calculate_achievements(habits, [], TODAY))

        assert result["first_habit"].earned_at == days_ago(30)
        assert result["habit_collector"].earned is True
        assert result["habit_collector"].earned_at == days_ago(21)
        assert result["category_master"].earned is True
        # fitness, health, productivity, wellness, finance
        assert result["category_master"].earned_at == days_ago(26)

    def test_unknown_icons_share_one_category(self):
        habits = [_habit(f"H{i}", f"h{i}", icon=f"custom{i}") for i in range(6)]
        result = _by_id(calculate_achievements(habits, [], TODAY))
        assert result["category_master"].progress == 1
        assert icon_category("custom0") == "other"
        assert icon_category(None) == "other"

    def test_next_and_recent(self):
        habit = _habit("Read", "h1", created_days_ago=3)
        completions = _done("h1", 0, 1, 2, 3, 4)

        achievements = calculate_achievements([habit], completions, TODAY)

        upcoming = get_next_achievement(achievements)
        assert upcoming.id == "streak_week"
        recent = {a.id for a in get_recent_achievements(achievements, TODAY)}
        assert recent == {"first_habit", "first_completion"}
        assert get_overall_progress(achievements) == 18

    def test_to_dict(self):
        achievement = calculate_achievements([_habit("A", "a")], [], TODAY)[0]
        data = achievement.to_dict()
        assert data["maxProgress"] == achievement.definition.requirement
        assert data["earnedAt"] is None


class TestInsights:

    def test_streak_leaders(self):
        habits = [_habit("Read", "r"), _habit("Run", "u"), _habit("Idle", "i")]
        completions = _done("r", 0, 1, 2) + _done("u", 1, 2, 3, 4, 5) + _done("i", 10)

        leaders = get_streak_leaders(habits, completions, TODAY)

        assert [leader.habit_uuid for leader in leaders] == ["u", "r"]
        assert leaders[0].current_streak == 5
        assert get_streak_leaders(habits, completions, TODAY, limit=1)[0].habit_name == "Run"

    def test_completion_counts(self):
        habits = [_habit("Read", "r"), _habit("Idle", "i")]
        completions = _done("r", 0, 1) + _done("r", 2, completed=False) + _done("ghost", 0)

        assert get_completion_counts(habits, completions) == {"r": 2, "i": 0}

    def test_overall_stats(self):
        habits = [_habit("Read", "r"), _habit("Run", "u"), _habit("Old", "o", archived=True)]
        completions = _done("r", *range(10)) + _done("u", 0, 5) + _done("o", 0, 1)

        stats = calculate_overall_stats(habits, completions, TODAY, days=10)

        assert stats.total_habits == 3
        assert stats.active_habits == 2
        assert stats.total_completions == 12
        assert stats.average_completion_rate == 60
        assert stats.best_streak == 10
        assert stats.active_days == 10

    def test_overall_stats_empty(self):
        stats = calculate_overall_stats([], [], TODAY)
        assert stats.to_dict() == {
            "totalHabits": 0, "activeHabits": 0, "totalCompletions": 0,
            "averageCompletionRate": 0, "bestStreak": 0, "activeDays": 0,
            "consistencyScore": 0,
        }

    def test_top_performing(self):
        habits = [_habit("Steady", "s"), _habit("Patchy", "p"), _habit("Gone", "g", archived=True)]
        completions = _done("s", *range(10)) + _done("p", 0, 4, 8) + _done("g", *range(20))

        top = get_top_performing_habits(habits, completions, TODAY)

        assert [s.habit_uuid for s in top] == ["s", "p"]

    def test_trend_data(self):
        habits = [_habit("Read", "r"), _habit("Old", "o", archived=True)]
        completions = _done("r", 0, 2) + _done("r", 1, completed=False)

        trend = generate_trend_data(habits, completions, TODAY, days=3)

        assert [p.day for p in trend] == [days_ago(2), days_ago(1), TODAY]
        assert [p.completions for p in trend] == [1, 0, 1]
        assert trend[0].habits == 1
        assert trend[-1].to_dict()["date"] == TODAY.isoformat()


class TestStreakBreak:

    def test_break_detected_with_recovery(self):
        habit = _habit("Read", "r")
        # Five-day run ending 5 days ago, missed 3 and 4 days ago, back for 3 days
        completions = _done("r", 0, 1, 2, 5, 6, 7, 8, 9)

        found = detect_streak_break(habit, completions, TODAY)

        assert found.previous_streak == 5
        assert found.break_date == days_ago(4)
        assert found.days_broken == 2
        assert found.recovery_streak == 3

    def test_break_without_recovery(self):
        habit = _habit("Read", "r")
        completions = _done("r", 4, 5, 6, 7)

        found = detect_streak_break(habit, completions, TODAY)

        assert found.previous_streak == 4
        assert found.break_date == days_ago(3)
        assert found.recovery_streak == 0
        assert found.to_dict()["breakDate"] == days_ago(3).isoformat()

    @pytest.mark.parametrize("offsets", [
        (),
        (0, 1, 2, 3),        # unbroken
        (0, 4, 5),           # previous run too short
    ])
    def test_no_break(self, offsets):
        assert detect_streak_break(_habit("Read", "r"), _done("r", *offsets), TODAY) is None
