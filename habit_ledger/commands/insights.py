"""Coaching commands: insights, habit dependencies and the journal."""

import json
from typing import List, Optional

from ..core.exceptions import HabitLedgerError, ValidationError
from ..utils.date import to_date
from .base import BaseCommand


class InsightsCommand(BaseCommand):
    """Show insights, recommendations and suggested habit chains."""

    def run(self, as_json: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            insights = tracker.get_insights()
            recommendations = tracker.get_recommendations()
            chains = tracker.suggest_habit_chains()

            if as_json:
                print(json.dumps({
                    "insights": [insight.to_dict() for insight in insights],
                    "recommendations": [rec.to_dict() for rec in recommendations],
                    "chains": [chain.to_dict() for chain in chains],
                }, indent=2, ensure_ascii=False))
                return True

            if not insights and not recommendations:
                print("No insights yet. Track a few habits first.")
                return True

            print("\n💡 Insights")
            print("=" * 60)
            for insight in insights:
                print(f"  {insight.icon} {insight.title}: {insight.description}")

            if recommendations:
                print("\n🧭 Recommendations")
                for rec in recommendations:
                    print(f"  • {rec.title} ({rec.estimated_impact} impact): {rec.description}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Insights", exc)
        finally:
            if tracker is not None:
                tracker.close()


class DependCommand(BaseCommand):
    """Manage and check prerequisites between habits."""

    def run(self, action: str, habit: Optional[str] = None, parent: Optional[str] = None,
            condition: str = "requires_completion", value: Optional[int] = None,
            dependency_id: Optional[str] = None, date_str: Optional[str] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()

            if action == "add":
                if not habit or not parent:
                    raise ValidationError("Both a habit and --on PARENT are required")
                dependent = self.resolve_habit(tracker, habit)
                prerequisite = self.resolve_habit(tracker, parent)
                edge = tracker.add_dependency(dependent.uuid, prerequisite.uuid, condition, value)
                print(f"✅ {dependent.name} now depends on {prerequisite.name} "
                      f"({edge.label.lower()}) [{edge.id[:8]}]")
                return True

            if action == "remove":
                if not dependency_id:
                    raise ValidationError("A dependency id is required")
                matches = [d for d in tracker.get_dependencies() if d.id.startswith(dependency_id)]
                if len(matches) != 1 or not tracker.remove_dependency(matches[0].id):
                    print(f"❌ Dependency not found: {dependency_id}")
                    return False
                print("🗑️  Dependency removed")
                return True

            if action == "check":
                if not habit:
                    raise ValidationError("A habit is required")
                target = self.resolve_habit(tracker, habit)
                day = to_date(date_str) if date_str else None
                result = tracker.check_prerequisites(target.uuid, day)
                if result.is_valid:
                    print(f"✅ {target.name} can be completed")
                    return True
                names = {h.uuid: h.name for h in tracker.load_habits()}
                blocked = ", ".join(names.get(uuid, uuid) for uuid in result.blocked_by)
                print(f"⛔ {target.name} is blocked by: {blocked}")
                for warning in result.warnings:
                    print(f"   {warning}")
                return True

            return self._list(tracker, habit)
        except HabitLedgerError as exc:
            return self.report_failure("Dependencies", exc)
        finally:
            if tracker is not None:
                tracker.close()

    def _list(self, tracker, habit: Optional[str]) -> bool:
        uuid = self.resolve_habit(tracker, habit).uuid if habit else None
        edges = tracker.get_dependencies(uuid)
        if not edges:
            print("No dependencies defined.")
            return True

        names = {h.uuid: h.name for h in tracker.load_habits()}
        print(f"\n🔗 Dependencies ({len(edges)})")
        print("=" * 60)
        for edge in edges:
            state = "" if edge.is_active else " (inactive)"
            print(f"  {edge.id[:8]}  {names.get(edge.parent_habit_uuid, '?')} → "
                  f"{names.get(edge.dependent_habit_uuid, '?')}  [{edge.label}]{state}")
        return True


class JournalCommand(BaseCommand):
    """Write journal entries and review mood."""

    def run(self, action: str = "list", content: Optional[str] = None,
            habit: Optional[str] = None, entry_type: str = "note", mood: Optional[int] = None,
            tags: Optional[List[str]] = None, date_str: Optional[str] = None,
            days: int = 30) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit_uuid = self.resolve_habit(tracker, habit).uuid if habit else None

            if action == "add":
                fields = {"content": content or "", "type": entry_type, "mood": mood,
                          "tags": tags or [], "habitUuid": habit_uuid}
                if date_str:
                    fields["date"] = date_str
                entry = tracker.add_journal_entry(fields)
                print(f"📝 Journal entry saved for {entry.date}")
                return True

            if action == "mood":
                analytics = tracker.get_mood_analytics(days)
                if not analytics.total_entries:
                    print(f"No mood ratings in the last {days} days.")
                    return True
                print(f"😊 Average mood {analytics.average_mood}/5 over "
                      f"{analytics.total_entries} entries ({analytics.mood_trend})")
                return True

            day = to_date(date_str) if date_str else None
            entries = tracker.get_journal_entries(day, habit_uuid)
            if not entries:
                print("No journal entries.")
                return True
            for entry in entries:
                mood_text = f" mood {entry.mood}/5" if entry.mood is not None else ""
                print(f"  {entry.date}  [{entry.type.value}]{mood_text}  {entry.content}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Journal", exc)
        finally:
            if tracker is not None:
                tracker.close()
