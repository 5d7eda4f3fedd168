"""Progress reporting commands: stats and achievements."""

import json
from typing import Optional

from ..analytics.achievements import get_next_achievement, get_overall_progress, get_recent_achievements
from ..analytics.insights import get_streak_leaders, get_top_performing_habits
from ..core.exceptions import HabitLedgerError
from .base import BaseCommand


class StatsCommand(BaseCommand):
    """Show statistics for one habit or an overview of all habits."""

    def run(self, ref: Optional[str] = None, days: Optional[int] = None,
            as_json: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            if ref:
                return self._habit_stats(tracker, ref, days, as_json)
            return self._overview(tracker, days, as_json)
        except HabitLedgerError as exc:
            return self.report_failure("Stats", exc)
        finally:
            if tracker is not None:
                tracker.close()

    def _habit_stats(self, tracker, ref: str, days: Optional[int], as_json: bool) -> bool:
        habit = self.resolve_habit(tracker, ref)
        stats = tracker.get_habit_stats(habit.uuid, days)
        streak_break = tracker.detect_streak_break(habit.uuid)

        if as_json:
            payload = stats.to_dict()
            payload["streakBreak"] = streak_break.to_dict() if streak_break else None
            print(json.dumps(payload, indent=2))
            return True

        window = days or tracker.config.stats_window_days
        print(f"\n📊 {habit.name} (last {window} days)")
        print("=" * 60)
        print(f"  Current streak:     {stats.current_streak}")
        print(f"  Longest streak:     {stats.longest_streak}")
        print(f"  Completions:        {stats.total_completions}")
        print(f"  Completion rate:    {stats.completion_rate}%")
        print(f"  Consistency score:  {stats.consistency_score}")
        print(f"  Weekly average:     {stats.weekly_average}")
        print(f"  Monthly average:    {stats.monthly_average}")
        last = stats.last_completed.isoformat() if stats.last_completed else "never"
        print(f"  Last completed:     {last}")
        if streak_break is not None:
            print(f"\n💡 Your {streak_break.previous_streak}-day streak broke on "
                  f"{streak_break.break_date.isoformat()}; "
                  f"{streak_break.recovery_streak} day(s) back on track.")
        return True

    def _overview(self, tracker, days: Optional[int], as_json: bool) -> bool:
        overall = tracker.get_overall_stats(days)
        today = tracker.today()
        habits = tracker.load_habits()
        completions = tracker.load_completions()
        leaders = get_streak_leaders([h for h in habits if not h.archived], completions, today)
        top = get_top_performing_habits(habits, completions, today,
                                        days=tracker.config.stats_window_days)

        if as_json:
            print(json.dumps({
                "overall": overall.to_dict(),
                "streakLeaders": [leader.to_dict() for leader in leaders],
                "topPerforming": [stats.to_dict() for stats in top],
            }, indent=2))
            return True

        print("\n📊 Overview")
        print("=" * 60)
        print(f"  Habits:             {overall.active_habits} active / {overall.total_habits} total")
        print(f"  Completions:        {overall.total_completions}")
        print(f"  Avg completion:     {overall.average_completion_rate}%")
        print(f"  Best streak:        {overall.best_streak}")
        print(f"  Active days:        {overall.active_days}")
        print(f"  Consistency score:  {overall.consistency_score}")

        if leaders:
            print("\n🔥 Streak leaders:")
            for leader in leaders:
                print(f"  {leader.habit_name}: {leader.current_streak} day(s)")
        if top:
            print("\n🏅 Most consistent:")
            for stats in top:
                print(f"  {stats.habit_name}: {stats.consistency_score}")
        return True


class AchievementsCommand(BaseCommand):
    """Show the achievement catalog and progress."""

    def run(self, as_json: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            achievements = tracker.get_achievements()

            if as_json:
                print(json.dumps([a.to_dict() for a in achievements], indent=2))
                return True

            print(f"\n🏆 Achievements ({get_overall_progress(achievements)}% complete)")
            print("=" * 60)
            for achievement in achievements:
                mark = "✓" if achievement.earned else " "
                print(f"[{mark}] {achievement.name:<18} {achievement.progress}/{achievement.max_progress}"
                      f"  {achievement.definition.description}")

            recent = get_recent_achievements(achievements, tracker.today())
            if recent:
                print("\n🎉 Recently earned: " + ", ".join(a.name for a in recent))

            upcoming = get_next_achievement(achievements)
            if upcoming is not None:
                print(f"\n🎯 Next up: {upcoming.name} ({upcoming.progress}/{upcoming.max_progress})")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Achievements", exc)
        finally:
            if tracker is not None:
                tracker.close()
