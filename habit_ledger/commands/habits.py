"""Habit management commands: add, list, edit, archive, restore, delete, toggle, due."""

from typing import Optional

from ..core.exceptions import HabitLedgerError
from ..schedule.recurrence import describe_frequency
from ..utils.date import format_date, to_date
from ..utils.prompts import confirm_action
from .base import BaseCommand, build_frequency, format_habit_line


class AddCommand(BaseCommand):
    """Create a new habit."""

    def run(self, name: str, description: str = "", icon: Optional[str] = None,
            color: Optional[str] = None, reminder_time: Optional[str] = None,
            frequency: Optional[dict] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit = tracker.add_habit({
                "name": name,
                "description": description,
                "icon": icon,
                "color": color,
                "reminderTime": reminder_time,
                "frequency": frequency,
            })
            print(f"✅ Created habit '{habit.name}' ({habit.uuid})")
            print(f"   Schedule: {describe_frequency(habit.frequency)}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Add habit", exc)
        finally:
            if tracker is not None:
                tracker.close()


class ListCommand(BaseCommand):
    """List habits with their current streaks."""

    def run(self, include_archived: bool = False, archived_only: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            if archived_only:
                habits = tracker.get_archived_habits()
            elif include_archived:
                habits = tracker.load_habits()
            else:
                habits = tracker.get_active_habits()

            if not habits:
                print("No habits found. Create one with 'habit-ledger add NAME'.")
                return True

            today = tracker.today()
            print(f"\n📋 Habits ({len(habits)})")
            print("=" * 60)
            for habit in habits:
                streak = tracker.get_streak_for_habit(habit.uuid)
                done = tracker.store.get_completion(habit.uuid, today)
                mark = "✓" if done is not None and done.completed else " "
                print(f"[{mark}]{format_habit_line(habit)}  🔥 {streak}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("List habits", exc)
        finally:
            if tracker is not None:
                tracker.close()


class EditCommand(BaseCommand):
    """Update fields of an existing habit."""

    def run(self, ref: str, name: Optional[str] = None, description: Optional[str] = None,
            icon: Optional[str] = None, color: Optional[str] = None,
            reminder_time: Optional[str] = None, frequency: Optional[dict] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit = self.resolve_habit(tracker, ref)

            partial = {}
            for key, value in (("name", name), ("description", description), ("icon", icon),
                               ("color", color), ("reminderTime", reminder_time)):
                if value is not None:
                    partial[key] = value
            if frequency is not None:
                merged = habit.frequency.to_dict()
                if frequency.get("type", merged["type"]) != merged["type"]:
                    merged = {}
                merged.update(frequency)
                partial["frequency"] = merged

            if not partial:
                print("Nothing to update.")
                return True

            updated = tracker.update_habit(habit.uuid, partial)
            print(f"✅ Updated '{updated.name}'")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Edit habit", exc)
        finally:
            if tracker is not None:
                tracker.close()


class ArchiveCommand(BaseCommand):
    """Archive or restore a habit."""

    def run(self, ref: str, restore: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit = self.resolve_habit(tracker, ref)
            if restore:
                tracker.restore_habit(habit.uuid)
                print(f"♻️  Restored '{habit.name}'")
            else:
                tracker.archive_habit(habit.uuid)
                print(f"📦 Archived '{habit.name}'")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Restore habit" if restore else "Archive habit", exc)
        finally:
            if tracker is not None:
                tracker.close()


class DeleteCommand(BaseCommand):
    """Permanently delete a habit and its completion history."""

    def run(self, ref: str, assume_yes: bool = False) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit = self.resolve_habit(tracker, ref)
            count = len(tracker.get_completions_for_habit(habit.uuid))

            question = f"Delete '{habit.name}' and {count} completion record(s)?"
            if not confirm_action(question, assume_yes=assume_yes):
                print("Deletion cancelled.")
                return False

            tracker.delete_habit(habit.uuid)
            print(f"🗑️  Deleted '{habit.name}'")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Delete habit", exc)
        finally:
            if tracker is not None:
                tracker.close()


class ToggleCommand(BaseCommand):
    """Toggle a habit's completion for a day."""

    def run(self, ref: str, date_str: Optional[str] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            habit = self.resolve_habit(tracker, ref)
            day = to_date(date_str) if date_str else None
            completion = tracker.toggle_completion(habit.uuid, day)
            state = "completed" if completion.completed else "not completed"
            print(f"✅ '{habit.name}' marked {state} on {completion.date}")
            print(f"   Current streak: {tracker.get_streak_for_habit(habit.uuid)}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Toggle completion", exc)
        finally:
            if tracker is not None:
                tracker.close()


class DueCommand(BaseCommand):
    """Show habits due on a day and when each is next scheduled."""

    def run(self, date_str: Optional[str] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            day = to_date(date_str) if date_str else tracker.today()
            due = tracker.get_due_habits(day)

            print(f"\n📅 Due on {format_date(day)}: {len(due)}")
            for habit in due:
                completion = tracker.store.get_completion(habit.uuid, day)
                mark = "✓" if completion is not None and completion.completed else " "
                print(f"[{mark}]{format_habit_line(habit)}")

            due_ids = {habit.uuid for habit in due}
            upcoming = [h for h in tracker.get_active_habits() if h.uuid not in due_ids]
            if upcoming:
                print("\nUpcoming:")
                for habit in upcoming:
                    next_day = tracker.get_next_scheduled_date(habit.uuid, day)
                    when = format_date(next_day) if next_day else "not within horizon"
                    print(f"  {habit.name}: {when}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Due habits", exc)
        finally:
            if tracker is not None:
                tracker.close()


def frequency_from_args(args) -> Optional[dict]:
    return build_frequency(
        frequency=getattr(args, 'frequency', None),
        target=getattr(args, 'target', None),
        period=getattr(args, 'period', None),
        days=getattr(args, 'days', None),
        month_days=getattr(args, 'month_days', None),
        pattern=getattr(args, 'pattern', None),
    )
