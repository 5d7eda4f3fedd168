"""Sync queue command - inspect, drain, clear and toggle connectivity."""

from ..core.exceptions import HabitLedgerError
from ..utils.prompts import confirm_action
from .base import BaseCommand


class SyncCommand(BaseCommand):
    """Operate the pending-mutation queue."""

    def run(self, action: str = "status", assume_yes: bool = False) -> bool:
        """
        Run a sync action.

        Args:
            action: One of ``status``, ``run``, ``online``, ``offline``, ``clear``
            assume_yes: Skip confirmation for ``clear``

        Returns:
            True if successful, False otherwise
        """
        tracker = None
        try:
            if action in ("online", "offline"):
                # Connectivity is persisted so later invocations start in this state
                self.config.start_online = action == "online"

            tracker = self.open_tracker()

            if action == "status":
                self._print_status(tracker, show_pending=True)
                return True

            if action == "run":
                result = tracker.force_sync()
                print(f"🔄 Processed {result.processed}: {result.synced} synced, "
                      f"{result.failed} failed")
                self._print_status(tracker)
                return result.failed == 0

            if action == "online":
                result = tracker.set_online(True)
                if result is None:
                    result = tracker.force_sync()
                print(f"🌐 Online - {result.synced} synced, {result.failed} failed")
                return True

            if action == "offline":
                tracker.set_online(False)
                print("📱 Offline - changes will be queued")
                return True

            if action == "clear":
                pending = tracker.sync_status().queue_length
                if not confirm_action(f"Discard {pending} pending mutation(s)?", assume_yes=assume_yes):
                    print("Clear cancelled.")
                    return False
                removed = tracker.queue.clear()
                print(f"🗑️  Cleared {removed} pending mutation(s)")
                return True

            print(f"Unknown sync action '{action}'.")
            return False
        except HabitLedgerError as exc:
            return self.report_failure("Sync", exc)
        finally:
            if tracker is not None:
                tracker.close()

    def _print_status(self, tracker, show_pending: bool = False) -> None:
        status = tracker.sync_status()
        state = "online" if status.is_online else "offline"
        print(f"\nSync status: {state}, {status.queue_length} pending, "
              f"{status.failed_count} failed")
        if status.last_error:
            print(f"  Last error: {status.last_error}")
        if show_pending:
            for mutation in tracker.queue.pending():
                suffix = f" (attempts: {mutation.attempts})" if mutation.attempts else ""
                print(f"  - {mutation.describe()} {mutation.enqueued_at}{suffix}")
