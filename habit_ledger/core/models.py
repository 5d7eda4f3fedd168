"""
Domain models for habit-ledger.

This module contains the core data structures shared by the ledger store,
the recurrence and progress engines, and the sync queue. Export documents use
camelCase keys; ``from_dict`` accepts either camelCase or snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4
import json
import os

from .exceptions import ConfigurationError, ValidationError
from .paths import get_path_manager
from ..utils.date import parse_date, parse_timestamp, utc_now


DEFAULT_ICON = "target"
DEFAULT_COLOR = "#10B981"


def _normalize_path(path: str) -> str:
    """Expand user and convert to absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def _dt_to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in ``data`` (camelCase or snake_case)."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _coerce_enum(enum_cls, value, label: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} {value!r} (expected one of: {allowed})")


class FrequencyType(Enum):
    """Recurrence families a habit can follow."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class CustomPattern(Enum):
    """Refinements of the daily recurrence."""

    EVERY_OTHER_DAY = "every-other-day"
    WEEKDAYS_ONLY = "weekdays-only"
    CUSTOM_INTERVAL = "custom-interval"


class EntityType(Enum):
    """Kinds of records carried by sync mutations."""

    HABIT = "habit"
    COMPLETION = "completion"
    SETTINGS = "settings"


class MutationAction(Enum):
    """Write operations replayed against the remote."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class FrequencyDescriptor:
    """Configuration determining which calendar dates a habit is due."""

    type: FrequencyType = FrequencyType.DAILY
    target: int = 1
    period: int = 1
    days_of_week: Optional[List[int]] = None
    days_of_month: Optional[List[int]] = None
    custom_pattern: Optional[CustomPattern] = None

    def __post_init__(self) -> None:
        self.type = _coerce_enum(FrequencyType, self.type, "frequency type")
        self.custom_pattern = _coerce_enum(CustomPattern, self.custom_pattern, "custom pattern")
        try:
            if self.days_of_week is not None:
                self.days_of_week = sorted(set(int(d) for d in self.days_of_week))
            if self.days_of_month is not None:
                self.days_of_month = sorted(set(int(d) for d in self.days_of_month))
        except (TypeError, ValueError):
            raise ValidationError("Days of week/month must be lists of integers")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "target": self.target,
            "period": self.period,
        }
        if self.days_of_week is not None:
            data["daysOfWeek"] = list(self.days_of_week)
        if self.days_of_month is not None:
            data["daysOfMonth"] = list(self.days_of_month)
        if self.custom_pattern is not None:
            data["customPattern"] = self.custom_pattern.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> FrequencyDescriptor:
        if data is None:
            return cls()
        if isinstance(data, FrequencyDescriptor):
            return data
        if not isinstance(data, dict):
            raise ValidationError(f"Frequency must be an object, got {type(data).__name__}")
        try:
            target = int(data.get("target", 1))
            period = int(data.get("period", 1))
        except (TypeError, ValueError):
            raise ValidationError("Frequency target and period must be integers")
        return cls(
            type=data.get("type", FrequencyType.DAILY.value),
            target=target,
            period=period,
            days_of_week=_pick(data, "daysOfWeek", "days_of_week"),
            days_of_month=_pick(data, "daysOfMonth", "days_of_month"),
            custom_pattern=_pick(data, "customPattern", "custom_pattern"),
        )


@dataclass
class Habit:
    """A user-defined recurring activity to track."""

    name: str
    frequency: FrequencyDescriptor = field(default_factory=FrequencyDescriptor)
    description: str = ""
    icon: str = DEFAULT_ICON
    color: str = DEFAULT_COLOR
    uuid: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    archived: bool = False
    archived_at: Optional[datetime] = None
    order: int = 0
    reminder_time: Optional[str] = None

    @property
    def created_date(self) -> date:
        """Calendar day of creation as stored (UTC for ledger records)."""
        return self.created_at.date()

    def created_on(self, tz: Optional[tzinfo] = None) -> date:
        """Calendar day of creation seen from ``tz``; anchors interval recurrences."""
        if tz is None or self.created_at.tzinfo is None:
            return self.created_at.date()
        return self.created_at.astimezone(tz).date()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "frequency": self.frequency.to_dict(),
            "createdAt": _dt_to_iso(self.created_at),
            "updatedAt": _dt_to_iso(self.updated_at),
            "archived": self.archived,
            "archivedAt": _dt_to_iso(self.archived_at),
            "order": self.order,
            "reminderTime": self.reminder_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Habit:
        created_at = parse_timestamp(_pick(data, "createdAt", "created_at"), strict=True) or utc_now()
        return cls(
            uuid=data.get("uuid") or str(uuid4()),
            name=data.get("name", ""),
            description=data.get("description") or "",
            icon=data.get("icon") or DEFAULT_ICON,
            color=data.get("color") or DEFAULT_COLOR,
            frequency=FrequencyDescriptor.from_dict(data.get("frequency")),
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at"), strict=True) or created_at,
            archived=bool(data.get("archived", False)),
            archived_at=parse_timestamp(_pick(data, "archivedAt", "archived_at"), strict=True),
            order=int(_pick(data, "order", "display_order", default=0) or 0),
            reminder_time=_pick(data, "reminderTime", "reminder_time"),
        )


@dataclass
class Completion:
    """Whether a habit was performed on a specific calendar date."""

    habit_uuid: str
    date: str
    completed: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    id: Optional[int] = None

    @property
    def day(self) -> date:
        parsed = parse_date(self.date)
        if parsed is None:
            raise ValidationError(f"Invalid completion date: {self.date!r}")
        return parsed

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "habitUuid": self.habit_uuid,
            "date": self.date,
            "completed": self.completed,
            "createdAt": _dt_to_iso(self.created_at),
            "updatedAt": _dt_to_iso(self.updated_at),
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Completion:
        created_at = parse_timestamp(_pick(data, "createdAt", "created_at"), strict=True) or utc_now()
        return cls(
            id=data.get("id"),
            habit_uuid=_pick(data, "habitUuid", "habit_uuid"),
            date=data["date"],
            completed=bool(data.get("completed", True)),
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at"), strict=True) or created_at,
        )


THEMES = ("light", "dark", "system")
GRID_SIZES = ("small", "medium", "large")


@dataclass
class AppSettings:
    """Single-row application settings."""

    theme: str = "system"
    grid_size: str = "medium"
    start_of_week: int = 1
    timezone: str = "UTC"
    notifications: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self) -> None:
        if self.theme not in THEMES:
            raise ValidationError(f"Invalid theme {self.theme!r}")
        if self.grid_size not in GRID_SIZES:
            raise ValidationError(f"Invalid grid size {self.grid_size!r}")
        if self.start_of_week not in (0, 1):
            raise ValidationError("start_of_week must be 0 (Sunday) or 1 (Monday)")
        if not self.timezone:
            raise ValidationError("timezone must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "gridSize": self.grid_size,
            "startOfWeek": self.start_of_week,
            "timezone": self.timezone,
            "notifications": self.notifications,
            "createdAt": _dt_to_iso(self.created_at),
            "updatedAt": _dt_to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppSettings:
        return cls(
            theme=data.get("theme", "system"),
            grid_size=_pick(data, "gridSize", "grid_size", default="medium"),
            start_of_week=int(_pick(data, "startOfWeek", "start_of_week", default=1)),
            timezone=data.get("timezone") or "UTC",
            notifications=bool(data.get("notifications", True)),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at"), strict=True),
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at"), strict=True),
        )


@dataclass
class SyncMutation:
    """A pending write waiting to be replayed against the remote service."""

    entity_type: EntityType
    action: MutationAction
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    enqueued_at: str = field(default_factory=lambda: utc_now().isoformat())
    attempts: int = 0
    last_error: Optional[str] = None

    def __post_init__(self) -> None:
        self.entity_type = _coerce_enum(EntityType, self.entity_type, "entity type")
        self.action = _coerce_enum(MutationAction, self.action, "mutation action")

    def describe(self) -> str:
        return f"{self.entity_type.value} {self.action.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "action": self.action.value,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at,
            "attempts": self.attempts,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SyncMutation:
        return cls(
            id=data["id"],
            entity_type=data["entity_type"],
            action=data["action"],
            payload=data.get("payload") or {},
            enqueued_at=data.get("enqueued_at") or utc_now().isoformat(),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error"),
        )


class ConditionType(Enum):
    """How a dependent habit relates to its parent."""

    REQUIRES_COMPLETION = "requires_completion"
    REQUIRES_STREAK = "requires_streak"
    BLOCKS_IF_INCOMPLETE = "blocks_if_incomplete"
    TRIGGERS_ON_COMPLETION = "triggers_on_completion"


@dataclass
class HabitDependency:
    """Edge from a parent habit to a habit that depends on it."""

    dependent_habit_uuid: str
    parent_habit_uuid: str
    condition_type: ConditionType = ConditionType.REQUIRES_COMPLETION
    condition_value: Optional[int] = None
    is_active: bool = True
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.condition_type = _coerce_enum(ConditionType, self.condition_type, "condition type")
        if not self.dependent_habit_uuid or not self.parent_habit_uuid:
            raise ValidationError("Dependencies need both a dependent and a parent habit")
        if self.dependent_habit_uuid == self.parent_habit_uuid:
            raise ValidationError("A habit cannot depend on itself")
        if self.condition_value is not None:
            self.condition_value = int(self.condition_value)
            if self.condition_value < 1:
                raise ValidationError("Condition value must be greater than 0")

    @property
    def label(self) -> str:
        if self.condition_type == ConditionType.REQUIRES_STREAK:
            return f"Requires {self.condition_value or 1}-day streak"
        return {
            ConditionType.REQUIRES_COMPLETION: "Requires",
            ConditionType.BLOCKS_IF_INCOMPLETE: "Blocks if incomplete",
            ConditionType.TRIGGERS_ON_COMPLETION: "Triggers",
        }[self.condition_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dependentHabitUuid": self.dependent_habit_uuid,
            "parentHabitUuid": self.parent_habit_uuid,
            "conditionType": self.condition_type.value,
            "conditionValue": self.condition_value,
            "isActive": self.is_active,
            "createdAt": _dt_to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HabitDependency:
        return cls(
            id=data.get("id") or str(uuid4()),
            dependent_habit_uuid=_pick(data, "dependentHabitUuid", "dependent_habit_uuid"),
            parent_habit_uuid=_pick(data, "parentHabitUuid", "parent_habit_uuid"),
            condition_type=_pick(data, "conditionType", "condition_type",
                                 default=ConditionType.REQUIRES_COMPLETION.value),
            condition_value=_pick(data, "conditionValue", "condition_value"),
            is_active=bool(_pick(data, "isActive", "is_active", default=True)),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at"), strict=True) or utc_now(),
        )


class JournalEntryType(Enum):
    """Kinds of journal entries."""

    REFLECTION = "reflection"
    NOTE = "note"
    MOOD = "mood"
    CHALLENGE = "challenge"
    SUCCESS = "success"


@dataclass
class JournalEntry:
    """A dated note, optionally tied to a habit and carrying a 1-5 mood."""

    date: str
    content: str
    type: JournalEntryType = JournalEntryType.NOTE
    habit_uuid: Optional[str] = None
    title: Optional[str] = None
    mood: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    is_private: bool = False
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.type = _coerce_enum(JournalEntryType, self.type, "journal entry type")
        day = parse_date(self.date) if isinstance(self.date, str) else self.date
        if not isinstance(day, date):
            raise ValidationError(f"Invalid journal date: {self.date!r}")
        self.date = day.isoformat()
        if not isinstance(self.content, str):
            raise ValidationError("Journal content must be text")
        if self.mood is not None:
            if isinstance(self.mood, bool) or not isinstance(self.mood, int) or not 1 <= self.mood <= 5:
                raise ValidationError(f"Mood must be an integer from 1 to 5, got {self.mood!r}")
        self.tags = [str(tag).strip() for tag in self.tags if str(tag).strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "habitUuid": self.habit_uuid,
            "date": self.date,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "mood": self.mood,
            "tags": list(self.tags),
            "isPrivate": self.is_private,
            "createdAt": _dt_to_iso(self.created_at),
            "updatedAt": _dt_to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> JournalEntry:
        created_at = parse_timestamp(_pick(data, "createdAt", "created_at"), strict=True) or utc_now()
        return cls(
            id=data.get("id") or str(uuid4()),
            habit_uuid=_pick(data, "habitUuid", "habit_uuid"),
            date=data["date"],
            type=data.get("type", JournalEntryType.NOTE.value),
            title=data.get("title"),
            content=data.get("content", ""),
            mood=data.get("mood"),
            tags=list(data.get("tags") or []),
            is_private=bool(_pick(data, "isPrivate", "is_private", default=False)),
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at"), strict=True) or created_at,
        )


EVERY_OTHER_DAY_POLICIES = ("anchor", "parity")


@dataclass
class LedgerConfig:
    """Configuration for the ledger, sync queue and analytics."""

    db_path: Optional[str] = None
    queue_path: Optional[str] = None
    dependencies_path: Optional[str] = None
    journal_path: Optional[str] = None
    # Sync settings
    start_online: bool = True
    auto_drain: bool = True
    replay_timeout: float = 10.0  # seconds per remote replay call
    remote_delay: float = 0.1  # simulated remote latency
    # Recurrence settings
    every_other_day_policy: str = "anchor"
    unscheduled_default: bool = True
    schedule_horizon_days: int = 60
    # Analytics settings
    stats_window_days: int = 90
    completion_rate_days: int = 30

    def __post_init__(self) -> None:
        manager = get_path_manager()

        if self.db_path is None:
            self.db_path = str(manager.database_path)
        elif self.db_path != ":memory:":
            self.db_path = _normalize_path(self.db_path)

        if self.queue_path is None:
            self.queue_path = str(manager.sync_queue_path)
        else:
            self.queue_path = _normalize_path(self.queue_path)

        if self.dependencies_path is None:
            self.dependencies_path = str(manager.dependencies_path)
        else:
            self.dependencies_path = _normalize_path(self.dependencies_path)

        if self.journal_path is None:
            self.journal_path = str(manager.journal_path)
        else:
            self.journal_path = _normalize_path(self.journal_path)

        self.validate()

    def validate(self) -> None:
        if self.every_other_day_policy not in EVERY_OTHER_DAY_POLICIES:
            raise ConfigurationError(
                f"every_other_day_policy must be one of {EVERY_OTHER_DAY_POLICIES}, "
                f"got {self.every_other_day_policy!r}"
            )
        if self.replay_timeout <= 0:
            raise ConfigurationError("replay_timeout must be positive")
        if self.remote_delay < 0:
            raise ConfigurationError("remote_delay must not be negative")
        for name in ("schedule_horizon_days", "stats_window_days", "completion_rate_days"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")

    @classmethod
    def load_from_file(cls, config_path: str) -> LedgerConfig:
        config_path = _normalize_path(config_path)
        if not os.path.exists(config_path):
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError:
            return cls()

        storage = data.get("storage", {})
        sync = data.get("sync", {})
        schedule = data.get("schedule", {})
        analytics = data.get("analytics", {})

        defaults = cls.__dataclass_fields__
        try:
            return cls._from_sections(storage, sync, schedule, analytics, defaults)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid value in {config_path}: {exc}") from exc

    @classmethod
    def _from_sections(cls, storage, sync, schedule, analytics, defaults) -> LedgerConfig:
        return cls(
            db_path=storage.get("db_path"),
            queue_path=storage.get("queue_path"),
            dependencies_path=storage.get("dependencies_path"),
            journal_path=storage.get("journal_path"),
            start_online=sync.get("start_online", defaults["start_online"].default),
            auto_drain=sync.get("auto_drain", defaults["auto_drain"].default),
            replay_timeout=float(sync.get("replay_timeout", defaults["replay_timeout"].default)),
            remote_delay=float(sync.get("remote_delay", defaults["remote_delay"].default)),
            every_other_day_policy=schedule.get(
                "every_other_day_policy", defaults["every_other_day_policy"].default
            ),
            unscheduled_default=schedule.get(
                "unscheduled_default", defaults["unscheduled_default"].default
            ),
            schedule_horizon_days=int(schedule.get(
                "horizon_days", defaults["schedule_horizon_days"].default
            )),
            stats_window_days=int(analytics.get(
                "stats_window_days", defaults["stats_window_days"].default
            )),
            completion_rate_days=int(analytics.get(
                "completion_rate_days", defaults["completion_rate_days"].default
            )),
        )

    def save_to_file(self, config_path: str) -> None:
        config_path = _normalize_path(config_path)
        os.makedirs(os.path.dirname(config_path), exist_ok=True)

        data = {
            "storage": {
                "db_path": self.db_path,
                "queue_path": self.queue_path,
                "dependencies_path": self.dependencies_path,
                "journal_path": self.journal_path,
            },
            "sync": {
                "start_online": self.start_online,
                "auto_drain": self.auto_drain,
                "replay_timeout": self.replay_timeout,
                "remote_delay": self.remote_delay,
            },
            "schedule": {
                "every_other_day_policy": self.every_other_day_policy,
                "unscheduled_default": self.unscheduled_default,
                "horizon_days": self.schedule_horizon_days,
            },
            "analytics": {
                "stats_window_days": self.stats_window_days,
                "completion_rate_days": self.completion_rate_days,
            },
        }

        with open(config_path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
