"""
Collaborator-facing facade over the ledger store, sync queue and engines.

``HabitTracker.from_config`` builds every service once (store, queue, remote
and clock) and wires them together; callers then use the tracker methods
only. The reference day for every metric is derived from the injected clock
in the timezone stored in the app settings.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .analytics.achievements import Achievement, calculate_achievements
from .analytics.dependencies import (
    ChainSuggestion,
    DependencyGraph,
    DependencyService,
    DependencyValidation,
    suggest_habit_chains,
)
from .analytics.insights import (
    OverallStats,
    StreakBreak,
    calculate_overall_stats,
    detect_streak_break,
)
from .analytics.recommendations import (
    HabitInsight,
    PatternAnalysis,
    Recommendation,
    analyze_patterns,
    generate_insights,
    generate_recommendations,
)
from .analytics.streaks import (
    HabitStats,
    calculate_habit_stats,
    calculate_longest_streak,
    calculate_streak,
    completion_rate,
)
from .core.config import load_config
from .core.exceptions import NotFoundError
from .core.models import (
    AppSettings,
    Completion,
    ConditionType,
    Habit,
    HabitDependency,
    JournalEntry,
    LedgerConfig,
)
from .schedule.recurrence import RecurrencePolicy, get_next_scheduled_date, is_habit_due
from .store.journal import JournalStore, MoodAnalytics, WeeklyReflection
from .store.ledger import LedgerStore
from .sync.queue import DrainResult, SyncQueue, SyncStatus
from .sync.remote import RemoteReplay, SimulatedRemote
from .utils.date import DateLike, start_of_week, to_date, utc_now


class HabitTracker:
    """Single entry point for habit management, progress and sync."""

    def __init__(self, store: LedgerStore, queue: Optional[SyncQueue] = None,
                 config: Optional[LedgerConfig] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 logger: Optional[logging.Logger] = None,
                 dependencies: Optional[DependencyService] = None,
                 journal: Optional[JournalStore] = None):
        self.store = store
        self.queue = queue
        self.config = config or LedgerConfig(db_path=store.db_path)
        self.clock = clock or store.clock or utc_now
        self.logger = logger or logging.getLogger(__name__)
        self.policy = RecurrencePolicy.from_config(self.config)
        self.dependencies = dependencies or DependencyService(clock=self.clock, logger=self.logger)
        self.journal = journal or JournalStore(clock=self.clock, logger=self.logger)

    @classmethod
    def from_config(cls, config: Optional[LedgerConfig] = None,
                    remote: Optional[RemoteReplay] = None,
                    clock: Optional[Callable[[], datetime]] = None,
                    logger: Optional[logging.Logger] = None) -> "HabitTracker":
        """
        Build a tracker and all of its services from configuration.

        Args:
            config: Configuration; loaded from the default location when None
            remote: Replay target; defaults to a SimulatedRemote
            clock: Callable returning the current aware datetime
            logger: Optional logger shared by every component
        """
        config = config or load_config()
        logger = logger or logging.getLogger(__name__)
        clock = clock or utc_now

        queue = SyncQueue(
            queue_path=config.queue_path,
            remote=remote or SimulatedRemote(delay=config.remote_delay, logger=logger),
            online=config.start_online,
            auto_drain=config.auto_drain,
            replay_timeout=config.replay_timeout,
            logger=logger,
        )
        store = LedgerStore(config.db_path, sync_queue=queue, clock=clock, logger=logger)
        dependencies = DependencyService(config.dependencies_path, clock=clock, logger=logger)
        journal = JournalStore(config.journal_path, clock=clock, logger=logger)
        return cls(store, queue=queue, config=config, clock=clock, logger=logger,
                   dependencies=dependencies, journal=journal)

    def close(self) -> None:
        """Close the store, giving a running background sync one replay timeout to finish."""
        if self.queue is not None and not self.queue.wait_idle(self.queue.replay_timeout):
            self.logger.info("Background sync still running; pending changes stay queued")
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Time

    def timezone(self) -> Optional[ZoneInfo]:
        """Zone named in the settings, or None (UTC) when it cannot be resolved."""
        tz_name = self.store.peek_settings().timezone
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            self.logger.warning("Unknown timezone %r; using UTC", tz_name)
            return None

    def today(self) -> date:
        """Current calendar day in the configured settings timezone."""
        now = self.clock()
        zone = self.timezone() if now.tzinfo is not None else None
        return now.astimezone(zone).date() if zone is not None else now.date()

    def local_start_date(self, habit: Habit) -> date:
        """Creation day of ``habit`` in the settings timezone."""
        return habit.created_on(self.timezone())

    def _require(self, uuid: str) -> Habit:
        habit = self.store.get_habit(uuid)
        if habit is None:
            raise NotFoundError(uuid)
        return habit

    # Habits and completions

    def load_habits(self) -> List[Habit]:
        return self.store.get_all_habits()

    def load_completions(self) -> List[Completion]:
        return self.store.get_all_completions()

    def add_habit(self, data: Union[Habit, Dict[str, Any]]) -> Habit:
        uuid = self.store.create_habit(data)
        return self._require(uuid)

    def update_habit(self, uuid: str, partial: Dict[str, Any]) -> Habit:
        return self.store.update_habit(uuid, partial)

    def delete_habit(self, uuid: str) -> None:
        """Delete a habit and its history, dropping its dependency edges and journal links."""
        self.store.delete_habit(uuid)
        self.dependencies.forget_habit(uuid)
        self.journal.detach_habit(uuid)

    def archive_habit(self, uuid: str) -> Habit:
        return self.store.archive_habit(uuid)

    def restore_habit(self, uuid: str) -> Habit:
        return self.store.restore_habit(uuid)

    def reorder_habits(self, uuids: List[str]) -> None:
        self.store.reorder_habits(uuids)

    def toggle_completion(self, uuid: str, day: Optional[DateLike] = None) -> Completion:
        """Toggle a habit on ``day`` (today when omitted)."""
        return self.store.toggle_completion(uuid, day if day is not None else self.today())

    def get_habit(self, uuid: str) -> Optional[Habit]:
        return self.store.get_habit(uuid)

    def get_active_habits(self) -> List[Habit]:
        return self.store.get_active_habits()

    def get_archived_habits(self) -> List[Habit]:
        return self.store.get_archived_habits()

    def get_completions_for_habit(self, uuid: str, start: Optional[DateLike] = None,
                                  end: Optional[DateLike] = None) -> List[Completion]:
        return self.store.get_completions_for_habit(uuid, start, end)

    # Progress

    def get_streak_for_habit(self, uuid: str) -> int:
        return calculate_streak(self.store.get_completions_for_habit(uuid), self.today())

    def get_longest_streak_for_habit(self, uuid: str) -> int:
        return calculate_longest_streak(self.store.get_completions_for_habit(uuid))

    def get_completion_rate(self, uuid: str, days: Optional[int] = None) -> int:
        days = days if days is not None else self.config.completion_rate_days
        return completion_rate(self.store.get_completions_for_habit(uuid), days, self.today())

    def get_habit_stats(self, uuid: str, days: Optional[int] = None) -> HabitStats:
        habit = self._require(uuid)
        days = days if days is not None else self.config.stats_window_days
        return calculate_habit_stats(
            habit, self.store.get_completions_for_habit(uuid), self.today(), days
        )

    def detect_streak_break(self, uuid: str) -> Optional[StreakBreak]:
        habit = self._require(uuid)
        return detect_streak_break(habit, self.store.get_completions_for_habit(uuid), self.today())

    # Scheduling

    def get_due_habits(self, day: Optional[DateLike] = None) -> List[Habit]:
        """Active habits due on ``day`` (today when omitted)."""
        target = to_date(day) if day is not None else self.today()
        zone = self.timezone()
        return [habit for habit in self.store.get_active_habits()
                if is_habit_due(habit, target, self.policy, habit.created_on(zone))]

    def get_next_scheduled_date(self, uuid: str, from_date: Optional[DateLike] = None) -> Optional[date]:
        habit = self._require(uuid)
        start = to_date(from_date) if from_date is not None else self.today()
        return get_next_scheduled_date(
            habit, start, horizon=self.config.schedule_horizon_days, policy=self.policy,
            anchor=self.local_start_date(habit),
        )

    # Evaluators

    def get_achievements(self) -> List[Achievement]:
        habits = self.store.get_active_habits()
        uuids = {habit.uuid for habit in habits}
        completions = [c for c in self.store.get_all_completions() if c.habit_uuid in uuids]
        return calculate_achievements(habits, completions, self.today())

    def get_overall_stats(self, days: Optional[int] = None) -> OverallStats:
        days = days if days is not None else self.config.completion_rate_days
        return calculate_overall_stats(
            self.store.get_all_habits(), self.store.get_all_completions(), self.today(), days
        )

    def get_insights(self) -> List[HabitInsight]:
        return generate_insights(
            self.store.get_all_habits(), self.store.get_all_completions(), self.today()
        )

    def get_recommendations(self) -> List[Recommendation]:
        return generate_recommendations(
            self.store.get_all_habits(), self.store.get_all_completions(), self.today(),
            tz=self.timezone(),
        )

    def get_pattern_analysis(self) -> PatternAnalysis:
        return analyze_patterns(
            self.store.get_all_habits(), self.store.get_all_completions(), self.today(),
            tz=self.timezone(),
        )

    # Dependencies

    def add_dependency(self, dependent_uuid: str, parent_uuid: str,
                       condition_type: Any = ConditionType.REQUIRES_COMPLETION,
                       condition_value: Optional[int] = None) -> HabitDependency:
        """
        Make one habit depend on another.

        Raises:
            NotFoundError: If either habit is missing
            ValidationError: If the edge would close a cycle
        """
        self._require(dependent_uuid)
        self._require(parent_uuid)
        return self.dependencies.add_dependency(
            dependent_uuid, parent_uuid, condition_type, condition_value
        )

    def remove_dependency(self, dependency_id: str) -> bool:
        return self.dependencies.remove_dependency(dependency_id)

    def get_dependencies(self, uuid: Optional[str] = None) -> List[HabitDependency]:
        return self.dependencies.list_dependencies(uuid)

    def check_prerequisites(self, uuid: str, day: Optional[DateLike] = None) -> DependencyValidation:
        """Whether ``uuid`` may be completed on ``day`` (today when omitted)."""
        self._require(uuid)
        target = to_date(day) if day is not None else self.today()
        return self.dependencies.validate_completion(uuid, self.store.get_all_completions(), target)

    def get_triggered_habits(self, uuid: str) -> List[Habit]:
        triggered = []
        for dependent in self.dependencies.get_triggered_habits(uuid):
            habit = self.store.get_habit(dependent)
            if habit is not None and not habit.archived:
                triggered.append(habit)
        return triggered

    def get_dependency_graph(self) -> DependencyGraph:
        return self.dependencies.get_dependency_graph(self.store.get_active_habits())

    def suggest_habit_chains(self) -> List[ChainSuggestion]:
        return suggest_habit_chains(self.store.get_active_habits(), self.store.get_all_completions())

    # Journal

    def add_journal_entry(self, fields: Dict[str, Any]) -> JournalEntry:
        """Add a journal entry dated today unless ``date`` is given."""
        fields = dict(fields)
        habit_uuid = fields.get("habitUuid") or fields.get("habit_uuid")
        if habit_uuid:
            self._require(habit_uuid)
        fields.setdefault("date", self.today())
        return self.journal.add_entry(fields)

    def get_journal_entries(self, day: Optional[DateLike] = None,
                            habit_uuid: Optional[str] = None) -> List[JournalEntry]:
        if day is not None:
            entries = self.journal.get_entries_for_date(day)
        else:
            entries = self.journal.all_entries()
        if habit_uuid is not None:
            entries = [entry for entry in entries if entry.habit_uuid == habit_uuid]
        return entries

    def get_mood_analytics(self, days: int = 30) -> MoodAnalytics:
        return self.journal.mood_analytics(self.today(), days)

    def get_weekly_reflection(self, week_start: Optional[DateLike] = None) -> WeeklyReflection:
        """Summary of the week starting ``week_start`` (the current week when omitted)."""
        if week_start is None:
            week_start = start_of_week(self.today(), self.store.peek_settings().start_of_week)
        return self.journal.weekly_summary(week_start)

    # Settings and snapshots

    def get_settings(self) -> AppSettings:
        return self.store.get_settings()

    def update_settings(self, partial: Dict[str, Any]) -> AppSettings:
        return self.store.update_settings(partial)

    def export_data(self) -> str:
        """Export the whole ledger as a JSON document."""
        return json.dumps(self.store.export_all(), indent=2, ensure_ascii=False)

    def import_data(self, document: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        return self.store.import_all(document)

    # Sync

    def _require_queue(self) -> SyncQueue:
        if self.queue is None:
            raise RuntimeError("Sync queue is not configured")
        return self.queue

    def sync_status(self) -> SyncStatus:
        return self._require_queue().status()

    def subscribe_sync_status(self, listener: Callable[[SyncStatus], None]) -> Callable[[], None]:
        return self._require_queue().subscribe(listener)

    def set_online(self, online: bool) -> Optional[DrainResult]:
        return self._require_queue().set_online(online)

    def force_sync(self) -> DrainResult:
        return self._require_queue().force_sync()
