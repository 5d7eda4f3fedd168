"""
Journal of dated reflections and mood ratings, optionally tied to a habit.

Entries live in a JSON file beside the ledger and are rewritten atomically
after every change. Listings are newest first.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.exceptions import NotFoundError, StorageError, ValidationError
from ..core.models import JournalEntry, JournalEntryType
from ..utils.date import DateLike, to_date, utc_now
from ..utils.io import safe_read_json, safe_write_json

JOURNAL_FILE_VERSION = 1
MOOD_TREND_MARGIN = 0.3

_EDITABLE_FIELDS = {
    "habitUuid": "habitUuid", "habit_uuid": "habitUuid",
    "date": "date", "type": "type", "title": "title", "content": "content",
    "mood": "mood", "tags": "tags",
    "isPrivate": "isPrivate", "is_private": "isPrivate",
}

REFLECTION_PROMPTS = [
    {"id": "1", "prompt": "What went well with your habits today?",
     "category": "daily", "difficulty": "easy"},
    {"id": "2", "prompt": "What challenged you the most today and how did you overcome it?",
     "category": "challenge", "difficulty": "medium"},
    {"id": "3", "prompt": "How did completing this habit make you feel?",
     "category": "habit-specific", "difficulty": "easy"},
    {"id": "4", "prompt": "What are you most grateful for in your habit journey?",
     "category": "gratitude", "difficulty": "easy"},
    {"id": "5", "prompt": "Reflect on your progress this week. What patterns do you notice?",
     "category": "weekly", "difficulty": "deep"},
]

WEEKLY_PROMPTS = [
    "What habit pattern served you best this week?",
    "How can you build on this week's successes?",
    "What would you do differently next week?",
]


@dataclass
class MoodAnalytics:
    average_mood: float = 0.0
    mood_trend: str = "stable"
    mood_by_day: Dict[str, int] = field(default_factory=dict)
    total_entries: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "averageMood": self.average_mood,
            "moodTrend": self.mood_trend,
            "moodByDay": dict(self.mood_by_day),
            "totalEntries": self.total_entries,
        }


@dataclass
class WeeklyReflection:
    total_entries: int = 0
    average_mood: float = 0.0
    top_challenges: List[str] = field(default_factory=list)
    key_successes: List[str] = field(default_factory=list)
    reflection_prompts: List[str] = field(default_factory=lambda: list(WEEKLY_PROMPTS))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEntries": self.total_entries,
            "averageMood": self.average_mood,
            "topChallenges": list(self.top_challenges),
            "keySuccesses": list(self.key_successes),
            "reflectionPrompts": list(self.reflection_prompts),
        }


def _average_mood(entries: List[JournalEntry]) -> float:
    moods = [entry.mood for entry in entries if entry.mood is not None]
    return sum(moods) / len(moods) if moods else 0.0


class JournalStore:
    """File-backed collection of journal entries."""

    def __init__(self, path: Optional[str] = None,
                 clock: Optional[Callable[[], Any]] = None,
                 logger: Optional[logging.Logger] = None):
        self.path = path
        self.clock = clock or utc_now
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._entries: List[JournalEntry] = self._load()

    def _load(self) -> List[JournalEntry]:
        if not self.path:
            return []

        data = safe_read_json(self.path, default={"entries": []})
        entries = []
        for raw in data.get("entries", []):
            try:
                entries.append(JournalEntry.from_dict(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                self.logger.warning("Dropping unreadable journal entry: %s", exc)
        return entries

    def _save(self) -> None:
        if not self.path:
            return
        payload = {
            "version": JOURNAL_FILE_VERSION,
            "entries": [entry.to_dict() for entry in self._entries],
        }
        if not safe_write_json(self.path, payload):
            raise StorageError(f"Failed to persist journal to {self.path}")

    def _commit(self, previous: List[JournalEntry]) -> None:
        try:
            self._save()
        except StorageError:
            self._entries = previous
            raise

    @staticmethod
    def _newest_first(entries: List[JournalEntry]) -> List[JournalEntry]:
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)

    # Entries

    def add_entry(self, fields: Dict[str, Any]) -> JournalEntry:
        """
        Store a new entry; ``id`` and timestamps are assigned here.

        Raises:
            ValidationError: If the date, type, content or mood is invalid
            StorageError: If the journal file cannot be written
        """
        now = self.clock()
        data = {_EDITABLE_FIELDS[k]: v for k, v in fields.items() if k in _EDITABLE_FIELDS}
        if "date" not in data:
            raise ValidationError("Journal entries need a date")
        entry = JournalEntry.from_dict(data)
        entry.created_at = entry.updated_at = now

        with self._lock:
            previous = list(self._entries)
            self._entries.append(entry)
            self._commit(previous)

        self.logger.debug("Journal entry added for %s (%s)", entry.date, entry.type.value)
        return entry

    def get_entry(self, entry_id: str) -> Optional[JournalEntry]:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def update_entry(self, entry_id: str, partial: Dict[str, Any]) -> JournalEntry:
        """
        Merge editable fields into an entry and bump ``updated_at``.

        Raises:
            NotFoundError: If no entry has this id
        """
        with self._lock:
            current = self.get_entry(entry_id)
            if current is None:
                raise NotFoundError(entry_id, entity="journal entry")

            merged = current.to_dict()
            for key, value in partial.items():
                if key in _EDITABLE_FIELDS:
                    merged[_EDITABLE_FIELDS[key]] = value
            updated = JournalEntry.from_dict(merged)
            updated.updated_at = self.clock()

            previous = list(self._entries)
            self._entries = [updated if e.id == entry_id else e for e in self._entries]
            self._commit(previous)
        return updated

    def delete_entry(self, entry_id: str) -> bool:
        with self._lock:
            previous = list(self._entries)
            self._entries = [e for e in self._entries if e.id != entry_id]
            if len(self._entries) == len(previous):
                return False
            self._commit(previous)
        return True

    def detach_habit(self, habit_uuid: str) -> int:
        """Unlink entries from a deleted habit, keeping their text."""
        with self._lock:
            linked = [e for e in self._entries if e.habit_uuid == habit_uuid]
            if linked:
                previous = [JournalEntry.from_dict(e.to_dict()) for e in self._entries]
                for entry in linked:
                    entry.habit_uuid = None
                self._commit(previous)
        return len(linked)

    def all_entries(self) -> List[JournalEntry]:
        with self._lock:
            return self._newest_first(self._entries)

    def get_entries_for_date(self, day: DateLike) -> List[JournalEntry]:
        key = to_date(day).isoformat()
        return [entry for entry in self.all_entries() if entry.date == key]

    def get_entries_for_habit(self, habit_uuid: str) -> List[JournalEntry]:
        return [entry for entry in self.all_entries() if entry.habit_uuid == habit_uuid]

    def search_entries(self, query: str = "", entry_type: Any = None,
                       habit_uuid: Optional[str] = None, tags: Optional[List[str]] = None,
                       start: Optional[DateLike] = None,
                       end: Optional[DateLike] = None) -> List[JournalEntry]:
        """
        Case-insensitive text search over content, title and tags.

        Filters combine with AND; ``tags`` matches entries carrying any of
        the given tags.
        """
        results = self.all_entries()

        term = query.strip().lower()
        if term:
            results = [
                e for e in results
                if term in e.content.lower()
                or term in (e.title or "").lower()
                or any(term in tag.lower() for tag in e.tags)
            ]
        if entry_type is not None:
            try:
                wanted = JournalEntryType(entry_type)
            except ValueError:
                raise ValidationError(f"Unknown journal entry type: {entry_type!r}")
            results = [e for e in results if e.type == wanted]
        if habit_uuid is not None:
            results = [e for e in results if e.habit_uuid == habit_uuid]
        if tags:
            results = [e for e in results if any(tag in e.tags for tag in tags)]
        if start is not None:
            results = [e for e in results if e.date >= to_date(start).isoformat()]
        if end is not None:
            results = [e for e in results if e.date <= to_date(end).isoformat()]
        return results

    def popular_tags(self, limit: int = 20) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for entry in self.all_entries():
            for tag in entry.tags:
                counts[tag] = counts.get(tag, 0) + 1
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"tag": tag, "count": count} for tag, count in ranked[:limit]]

    # Reflection

    def mood_analytics(self, today: DateLike, days: int = 30) -> MoodAnalytics:
        """
        Average mood and its direction over the last ``days`` days.

        The trend compares the older half of the rated entries with the newer
        half; a shift of more than 0.3 counts as a change.
        """
        today = to_date(today)
        cutoff = (today - timedelta(days=days)).isoformat()
        rated = sorted(
            (e for e in self.all_entries()
             if e.mood is not None and cutoff <= e.date <= today.isoformat()),
            key=lambda e: (e.date, e.created_at),
        )
        if not rated:
            return MoodAnalytics()

        trend = "stable"
        midpoint = len(rated) // 2
        if midpoint:
            older = _average_mood(rated[:midpoint])
            newer = _average_mood(rated[midpoint:])
            if newer > older + MOOD_TREND_MARGIN:
                trend = "improving"
            elif newer < older - MOOD_TREND_MARGIN:
                trend = "declining"

        return MoodAnalytics(
            average_mood=round(_average_mood(rated), 1),
            mood_trend=trend,
            mood_by_day={entry.date: entry.mood for entry in rated},
            total_entries=len(rated),
        )

    def weekly_summary(self, week_start: DateLike) -> WeeklyReflection:
        start = to_date(week_start)
        end = start + timedelta(days=6)
        week = sorted(
            (e for e in self.all_entries() if start.isoformat() <= e.date <= end.isoformat()),
            key=lambda e: (e.date, e.created_at),
        )
        return WeeklyReflection(
            total_entries=len(week),
            average_mood=round(_average_mood(week), 1),
            top_challenges=[e.content for e in week if e.type == JournalEntryType.CHALLENGE][:3],
            key_successes=[e.content for e in week if e.type == JournalEntryType.SUCCESS][:3],
        )

    @staticmethod
    def reflection_prompts(category: Optional[str] = None) -> List[Dict[str, str]]:
        return [dict(p) for p in REFLECTION_PROMPTS if category is None or p["category"] == category]

    def export_entries(self, fmt: str = "json") -> Union[List[Dict[str, Any]], str]:
        """Entries as dicts (``json``) or as a plain-text log, oldest first (``text``)."""
        entries = sorted(self.all_entries(), key=lambda entry: entry.created_at)
        if fmt == "json":
            return [entry.to_dict() for entry in entries]
        if fmt != "text":
            raise ValidationError(f"Unknown journal export format: {fmt!r}")

        blocks = []
        for entry in entries:
            lines = [f"Date: {entry.date}", f"Type: {entry.type.value}"]
            if entry.title:
                lines.append(f"Title: {entry.title}")
            if entry.mood is not None:
                lines.append(f"Mood: {entry.mood}/5")
            if entry.tags:
                lines.append(f"Tags: {', '.join(entry.tags)}")
            lines.append(f"Content: {entry.content}")
            lines.append("---")
            blocks.append("\n".join(lines) + "\n\n")
        return "".join(blocks)
