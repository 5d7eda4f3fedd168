"""
Persistent ledger of habits, completions and settings backed by SQLite.

The store is the only writer of ledger records. Every successful mutation is
committed first and then handed to the attached sync queue, if any.
"""

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from ..core.exceptions import ImportFormatError, NotFoundError, StorageError, ValidationError
from ..core.models import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    AppSettings,
    Completion,
    EntityType,
    FrequencyDescriptor,
    Habit,
    MutationAction,
)
from ..schedule.recurrence import validate_frequency
from ..utils.date import DateLike, parse_timestamp, to_date_key, utc_now
from .schema import SCHEMA_SQL
from .snapshot import build_snapshot, parse_snapshot

# Partial-update keys accepted by update_habit, in either spelling.
_HABIT_FIELD_ALIASES = {
    "name": "name",
    "description": "description",
    "icon": "icon",
    "color": "color",
    "frequency": "frequency",
    "archived": "archived",
    "archivedAt": "archived_at",
    "archived_at": "archived_at",
    "reminderTime": "reminder_time",
    "reminder_time": "reminder_time",
}

_IMMUTABLE_HABIT_FIELDS = {"uuid", "createdAt", "created_at", "updatedAt", "updated_at",
                           "order", "display_order"}

_SETTINGS_FIELD_ALIASES = {
    "theme": "theme",
    "gridSize": "grid_size",
    "grid_size": "grid_size",
    "startOfWeek": "start_of_week",
    "start_of_week": "start_of_week",
    "timezone": "timezone",
    "notifications": "notifications",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class LedgerStore:
    """
    SQLite-backed store for habits, completions and app settings.

    A single connection is shared between threads and serialized by a
    re-entrant lock. ``toggle_completion`` is one conditional upsert on the
    unique ``(habit_uuid, date)`` index, so concurrent toggles never create
    duplicate records.
    """

    def __init__(self, db_path: str = ":memory:", sync_queue=None,
                 clock: Optional[Callable[[], datetime]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Open (and create if needed) the ledger database.

        Args:
            db_path: SQLite file path, or ``":memory:"``
            sync_queue: Optional queue receiving a mutation after each commit
            clock: Callable returning the current aware datetime
            logger: Optional logger instance
        """
        self.db_path = db_path
        self.sync_queue = sync_queue
        self.clock = clock or utc_now
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.db_path != ":memory:":
                os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"Cannot open ledger database {self.db_path}: {exc}") from exc
        self.logger.debug("Opened ledger database at %s", self.db_path)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise StorageError(f"Ledger write failed: {exc}") from exc

    def _query(self, sql: str, params=()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Ledger read failed: {exc}") from exc

    def _now(self) -> datetime:
        return self.clock()

    def _enqueue(self, entity_type: EntityType, action: MutationAction,
                 payload: Dict[str, Any]) -> None:
        if self.sync_queue is None:
            return
        self.sync_queue.enqueue(entity_type, action, payload)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Habits

    @staticmethod
    def _row_to_habit(row: sqlite3.Row) -> Habit:
        data = dict(row)
        data["frequency"] = json.loads(data["frequency"])
        return Habit.from_dict(data)

    @staticmethod
    def _habit_params(habit: Habit) -> tuple:
        return (
            habit.uuid,
            habit.name,
            habit.description,
            habit.icon,
            habit.color,
            json.dumps(habit.frequency.to_dict()),
            _iso(habit.created_at),
            _iso(habit.updated_at),
            1 if habit.archived else 0,
            _iso(habit.archived_at),
            habit.order,
            habit.reminder_time,
        )

    @staticmethod
    def _validate_habit(habit: Habit) -> None:
        if not isinstance(habit.name, str) or not habit.name.strip():
            raise ValidationError("Habit name must not be empty")
        validate_frequency(habit.frequency)

    def _insert_habit(self, conn: sqlite3.Connection, habit: Habit) -> None:
        conn.execute(
            "INSERT INTO habits (uuid, name, description, icon, color, frequency, "
            "created_at, updated_at, archived, archived_at, display_order, reminder_time) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._habit_params(habit),
        )

    def create_habit(self, data: Union[Habit, Dict[str, Any]]) -> str:
        """
        Create a habit and return its uuid.

        The uuid, timestamps and display order are assigned here; whatever the
        caller supplied for them is ignored.

        Raises:
            ValidationError: If the name is empty or the frequency is invalid
            StorageError: If the database cannot be written
        """
        fields = data.to_dict() if isinstance(data, Habit) else dict(data)
        name = fields.get("name")
        if name is not None and not isinstance(name, str):
            raise ValidationError(f"Habit name must be text, got {type(name).__name__}")
        now = self._now()

        habit = Habit(
            name=(name or "").strip(),
            frequency=FrequencyDescriptor.from_dict(fields.get("frequency")),
            description=fields.get("description") or "",
            icon=fields.get("icon") or DEFAULT_ICON,
            color=fields.get("color") or DEFAULT_COLOR,
            created_at=now,
            updated_at=now,
            reminder_time=fields.get("reminderTime", fields.get("reminder_time")),
        )
        self._validate_habit(habit)

        with self._transaction() as conn:
            habit.order = conn.execute("SELECT COUNT(*) FROM habits").fetchone()[0]
            self._insert_habit(conn, habit)

        self.logger.debug("Created habit %s (%s)", habit.uuid, habit.name)
        self._enqueue(EntityType.HABIT, MutationAction.CREATE, habit.to_dict())
        return habit.uuid

    def get_habit(self, uuid: str) -> Optional[Habit]:
        rows = self._query("SELECT * FROM habits WHERE uuid = ?", (uuid,))
        return self._row_to_habit(rows[0]) if rows else None

    def _require_habit(self, uuid: str) -> Habit:
        habit = self.get_habit(uuid)
        if habit is None:
            raise NotFoundError(uuid)
        return habit

    def get_all_habits(self) -> List[Habit]:
        rows = self._query("SELECT * FROM habits ORDER BY display_order, created_at")
        return [self._row_to_habit(row) for row in rows]

    def get_active_habits(self) -> List[Habit]:
        rows = self._query(
            "SELECT * FROM habits WHERE archived = 0 ORDER BY display_order, created_at"
        )
        return [self._row_to_habit(row) for row in rows]

    def get_archived_habits(self) -> List[Habit]:
        rows = self._query(
            "SELECT * FROM habits WHERE archived = 1 ORDER BY display_order, created_at"
        )
        return [self._row_to_habit(row) for row in rows]

    def update_habit(self, uuid: str, partial: Dict[str, Any]) -> Habit:
        """
        Merge ``partial`` into an existing habit and bump ``updated_at``.

        Immutable fields (uuid, creation time, display order) are ignored.

        Raises:
            NotFoundError: If no habit has this uuid
            ValidationError: If the merged habit is invalid
        """
        with self._lock:
            habit = self._require_habit(uuid)

            for key, value in partial.items():
                if key in _IMMUTABLE_HABIT_FIELDS:
                    self.logger.debug("Ignoring immutable field %s on habit %s", key, uuid)
                    continue
                attr = _HABIT_FIELD_ALIASES.get(key)
                if attr is None:
                    self.logger.debug("Ignoring unknown field %s on habit %s", key, uuid)
                    continue
                if attr == "frequency":
                    value = FrequencyDescriptor.from_dict(value)
                elif attr == "archived_at" and isinstance(value, str):
                    value = parse_timestamp(value)
                elif attr == "archived":
                    value = bool(value)
                elif attr == "name" and isinstance(value, str):
                    value = value.strip()
                setattr(habit, attr, value)

            self._validate_habit(habit)
            habit.updated_at = self._now()

            with self._transaction() as conn:
                conn.execute(
                    "UPDATE habits SET name = ?, description = ?, icon = ?, color = ?, "
                    "frequency = ?, updated_at = ?, archived = ?, archived_at = ?, "
                    "reminder_time = ? WHERE uuid = ?",
                    (
                        habit.name,
                        habit.description,
                        habit.icon,
                        habit.color,
                        json.dumps(habit.frequency.to_dict()),
                        _iso(habit.updated_at),
                        1 if habit.archived else 0,
                        _iso(habit.archived_at),
                        habit.reminder_time,
                        uuid,
                    ),
                )

        self.logger.debug("Updated habit %s", uuid)
        self._enqueue(EntityType.HABIT, MutationAction.UPDATE, habit.to_dict())
        return habit

    def archive_habit(self, uuid: str) -> Habit:
        return self.update_habit(uuid, {"archived": True, "archived_at": self._now()})

    def restore_habit(self, uuid: str) -> Habit:
        return self.update_habit(uuid, {"archived": False, "archived_at": None})

    def delete_habit(self, uuid: str) -> None:
        """
        Delete a habit and all of its completions in one transaction.

        Raises:
            NotFoundError: If no habit has this uuid
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM habits WHERE uuid = ?", (uuid,))
            if cursor.rowcount == 0:
                raise NotFoundError(uuid)
            removed = conn.execute(
                "DELETE FROM completions WHERE habit_uuid = ?", (uuid,)
            ).rowcount

        self.logger.debug("Deleted habit %s with %d completion(s)", uuid, removed)
        self._enqueue(EntityType.HABIT, MutationAction.DELETE, {"uuid": uuid})

    def reorder_habits(self, uuids: List[str]) -> None:
        """Assign display order following the given uuid sequence."""
        with self._transaction() as conn:
            for position, uuid in enumerate(uuids):
                cursor = conn.execute(
                    "UPDATE habits SET display_order = ? WHERE uuid = ?", (position, uuid)
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(uuid)

        for position, uuid in enumerate(uuids):
            self._enqueue(EntityType.HABIT, MutationAction.UPDATE,
                          {"uuid": uuid, "order": position})

    # Completions

    @staticmethod
    def _row_to_completion(row: sqlite3.Row) -> Completion:
        return Completion.from_dict(dict(row))

    def toggle_completion(self, habit_uuid: str, day: DateLike) -> Completion:
        """
        Flip the completion state of a habit on a date.

        Inserts a completed record when none exists; otherwise inverts the
        existing record's ``completed`` flag.

        Raises:
            NotFoundError: If the habit does not exist
            ValidationError: If the date cannot be parsed
        """
        key = to_date_key(day)
        now = _iso(self._now())

        with self._transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM habits WHERE uuid = ?", (habit_uuid,)
            ).fetchone()
            if exists is None:
                raise NotFoundError(habit_uuid)
            conn.execute(
                "INSERT INTO completions (habit_uuid, date, completed, created_at, updated_at) "
                "VALUES (?, ?, 1, ?, ?) "
                "ON CONFLICT(habit_uuid, date) DO UPDATE SET "
                "completed = NOT completed, updated_at = excluded.updated_at",
                (habit_uuid, key, now, now),
            )
            row = conn.execute(
                "SELECT * FROM completions WHERE habit_uuid = ? AND date = ?",
                (habit_uuid, key),
            ).fetchone()

        completion = self._row_to_completion(row)
        self.logger.debug("Toggled %s on %s -> %s", habit_uuid, key, completion.completed)
        self._enqueue(EntityType.COMPLETION, MutationAction.UPDATE, completion.to_dict())
        return completion

    def get_completion(self, habit_uuid: str, day: DateLike) -> Optional[Completion]:
        rows = self._query(
            "SELECT * FROM completions WHERE habit_uuid = ? AND date = ?",
            (habit_uuid, to_date_key(day)),
        )
        return self._row_to_completion(rows[0]) if rows else None

    def get_completions_for_habit(self, habit_uuid: str, start: Optional[DateLike] = None,
                                  end: Optional[DateLike] = None) -> List[Completion]:
        """Completion records of a habit, optionally limited to ``[start, end]``."""
        sql = "SELECT * FROM completions WHERE habit_uuid = ?"
        params: List[Any] = [habit_uuid]
        if start is not None:
            sql += " AND date >= ?"
            params.append(to_date_key(start))
        if end is not None:
            sql += " AND date <= ?"
            params.append(to_date_key(end))
        sql += " ORDER BY date"
        return [self._row_to_completion(row) for row in self._query(sql, params)]

    def get_all_completions(self) -> List[Completion]:
        rows = self._query("SELECT * FROM completions ORDER BY habit_uuid, date")
        return [self._row_to_completion(row) for row in rows]

    # Settings

    def _write_settings(self, conn: sqlite3.Connection, settings: AppSettings) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO settings (id, theme, grid_size, start_of_week, "
            "timezone, notifications, created_at, updated_at) VALUES (1, ?, ?, ?, ?, ?, ?, ?)",
            (
                settings.theme,
                settings.grid_size,
                settings.start_of_week,
                settings.timezone,
                1 if settings.notifications else 0,
                _iso(settings.created_at),
                _iso(settings.updated_at),
            ),
        )

    def _read_settings(self) -> Optional[AppSettings]:
        rows = self._query("SELECT * FROM settings WHERE id = 1")
        return AppSettings.from_dict(dict(rows[0])) if rows else None

    def peek_settings(self) -> AppSettings:
        """Stored settings, or unsaved defaults when no row exists yet."""
        return self._read_settings() or AppSettings()

    def get_settings(self) -> AppSettings:
        """Return the settings row, creating it with defaults on first access."""
        with self._lock:
            settings = self._read_settings()
            if settings is None:
                now = self._now()
                settings = AppSettings(created_at=now, updated_at=now)
                with self._transaction() as conn:
                    self._write_settings(conn, settings)
            return settings

    def update_settings(self, partial: Dict[str, Any]) -> AppSettings:
        """
        Merge ``partial`` into the settings row.

        Raises:
            ValidationError: For unknown keys or invalid values
        """
        with self._lock:
            settings = self.get_settings()
            for key, value in partial.items():
                attr = _SETTINGS_FIELD_ALIASES.get(key)
                if attr is None:
                    raise ValidationError(f"Unknown setting: {key}")
                if attr == "start_of_week":
                    try:
                        value = int(value)
                    except (TypeError, ValueError):
                        raise ValidationError(f"Invalid start of week: {value!r}")
                elif attr == "notifications":
                    value = bool(value)
                setattr(settings, attr, value)
            settings.validate()
            settings.updated_at = self._now()

            with self._transaction() as conn:
                self._write_settings(conn, settings)

        self.logger.debug("Updated settings: %s", ", ".join(partial))
        self._enqueue(EntityType.SETTINGS, MutationAction.UPDATE, settings.to_dict())
        return settings

    # Snapshots

    def export_all(self) -> Dict[str, Any]:
        """Snapshot every habit, completion and the settings row."""
        with self._lock:
            return build_snapshot(
                self.get_all_habits(),
                self.get_all_completions(),
                self._read_settings(),
                _iso(self._now()),
            )

    def import_all(self, source: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        """
        Replace the whole ledger with the contents of an export document.

        The document is validated before anything is touched; the three
        tables are then cleared and reloaded in a single transaction. Imports
        are local restores and are not queued for sync.

        Returns:
            Number of habits, completions and settings rows loaded

        Raises:
            ImportFormatError: If the document is malformed
        """
        habits, completions, settings = parse_snapshot(source)

        known = {habit.uuid for habit in habits}
        orphans = sum(1 for c in completions if c.habit_uuid not in known)
        if orphans:
            self.logger.warning("Importing %d completion(s) for unknown habits", orphans)

        try:
            with self._transaction() as conn:
                conn.execute("DELETE FROM completions")
                conn.execute("DELETE FROM habits")
                conn.execute("DELETE FROM settings")
                for habit in habits:
                    self._insert_habit(conn, habit)
                for completion in completions:
                    conn.execute(
                        "INSERT INTO completions (id, habit_uuid, date, completed, "
                        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                        (
                            completion.id,
                            completion.habit_uuid,
                            completion.date,
                            1 if completion.completed else 0,
                            _iso(completion.created_at),
                            _iso(completion.updated_at),
                        ),
                    )
                if settings is not None:
                    self._write_settings(conn, settings)
        except StorageError as exc:
            if isinstance(exc.__cause__, sqlite3.IntegrityError):
                raise ImportFormatError(f"Export document violates ledger constraints: "
                                        f"{exc.__cause__}") from exc
            raise

        counts = {
            "habits": len(habits),
            "completions": len(completions),
            "settings": 1 if settings is not None else 0,
        }
        self.logger.info(
            "Imported %d habit(s), %d completion(s)", counts["habits"], counts["completions"]
        )
        return counts
