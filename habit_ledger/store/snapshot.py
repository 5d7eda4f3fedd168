"""
Export snapshots: building, parsing and shape validation.

A snapshot is the JSON document produced by ``LedgerStore.export_all`` and
consumed by ``LedgerStore.import_all``::

    {"habits": [...], "completions": [...], "settings": [...],
     "exportedAt": "2024-01-15T10:00:00+00:00"}
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from jsonschema import Draft7Validator

from ..core.exceptions import ImportFormatError, ValidationError
from ..core.models import AppSettings, Completion, Habit
from ..schedule.recurrence import validate_frequency
from ..utils.date import to_date_key

logger = logging.getLogger(__name__)

MAX_REPORTED_PROBLEMS = 20

_FREQUENCY_SCHEMA = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "type": {"enum": ["daily", "weekly", "monthly", "custom"]},
        "target": {"type": "integer", "minimum": 1},
        "period": {"type": "integer", "minimum": 1},
        "daysOfWeek": {
            "type": "array",
            "items": {"type": "integer", "minimum": 0, "maximum": 6},
        },
        "daysOfMonth": {
            "type": "array",
            "items": {"type": "integer", "minimum": 1, "maximum": 31},
        },
        "customPattern": {
            "enum": ["every-other-day", "weekdays-only", "custom-interval", None],
        },
    },
}

SNAPSHOT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["habits", "completions", "settings", "exportedAt"],
    "properties": {
        "exportedAt": {"type": "string"},
        "habits": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["uuid", "name", "frequency", "createdAt"],
                "properties": {
                    "uuid": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                    "description": {"type": ["string", "null"]},
                    "icon": {"type": ["string", "null"]},
                    "color": {"type": ["string", "null"]},
                    "frequency": _FREQUENCY_SCHEMA,
                    "createdAt": {"type": "string"},
                    "updatedAt": {"type": ["string", "null"]},
                    "archived": {"type": "boolean"},
                    "archivedAt": {"type": ["string", "null"]},
                    "order": {"type": "integer"},
                    "reminderTime": {"type": ["string", "null"]},
                },
            },
        },
        "completions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["habitUuid", "date", "completed"],
                "properties": {
                    "id": {"type": ["integer", "null"]},
                    "habitUuid": {"type": "string", "minLength": 1},
                    "date": {"type": "string", "pattern": r"^\d{4}-\d{1,2}-\d{1,2}"},
                    "completed": {"type": "boolean"},
                    "createdAt": {"type": ["string", "null"]},
                    "updatedAt": {"type": ["string", "null"]},
                },
            },
        },
        "settings": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "theme": {"enum": ["light", "dark", "system"]},
                    "gridSize": {"enum": ["small", "medium", "large"]},
                    "startOfWeek": {"enum": [0, 1]},
                    "timezone": {"type": "string"},
                    "notifications": {"type": "boolean"},
                },
            },
        },
    },
}

_validator = Draft7Validator(SNAPSHOT_SCHEMA)


def _format_error(error) -> str:
    path = "/" + "/".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
    return f"{path}: {error.message}"


def validate_snapshot(data: Any) -> None:
    """
    Validate the shape of an export document.

    Raises:
        ImportFormatError: With one entry per schema violation in ``problems``
    """
    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if not errors:
        return

    problems = [_format_error(error) for error in errors[:MAX_REPORTED_PROBLEMS]]
    logger.debug("Snapshot rejected with %d problem(s)", len(errors))
    raise ImportFormatError(
        f"Invalid export document ({len(errors)} problem(s)): {problems[0]}",
        problems=problems,
    )


def build_snapshot(habits: List[Habit], completions: List[Completion],
                   settings: Optional[AppSettings], exported_at: str) -> Dict[str, Any]:
    """Assemble an export document from ledger records."""
    return {
        "habits": [habit.to_dict() for habit in habits],
        "completions": [completion.to_dict() for completion in completions],
        "settings": [settings.to_dict()] if settings is not None else [],
        "exportedAt": exported_at,
    }


def load_snapshot(source: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a JSON export document if it is still text."""
    if isinstance(source, (str, bytes)):
        try:
            return json.loads(source)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"Export document is not valid JSON: {exc}") from exc
    return source


def parse_snapshot(
    source: Union[str, bytes, Dict[str, Any]]
) -> Tuple[List[Habit], List[Completion], Optional[AppSettings]]:
    """
    Validate and decode an export document into ledger records.

    Habit frequencies must pass the same checks as on creation.
    Completion dates are canonicalized to ``YYYY-MM-DD`` and duplicate
    ``(habitUuid, date)`` pairs are rejected. Only the first settings row is
    kept.

    Raises:
        ImportFormatError: If the document is malformed
    """
    data = load_snapshot(source)
    validate_snapshot(data)

    try:
        habits = [Habit.from_dict(item) for item in data["habits"]]
        for habit in habits:
            try:
                validate_frequency(habit.frequency)
            except ValidationError as exc:
                raise ValidationError(f"habit {habit.uuid} ({habit.name}): {exc}") from exc
        completions = []
        for item in data["completions"]:
            completion = Completion.from_dict(item)
            completion.date = to_date_key(completion.date)
            completions.append(completion)
        settings_rows = data["settings"]
        settings = AppSettings.from_dict(settings_rows[0]) if settings_rows else None
        if settings is not None:
            settings.validate()
    except ValidationError as exc:
        raise ImportFormatError(f"Invalid record in export document: {exc}") from exc

    if len(settings_rows) > 1:
        logger.warning("Export contains %d settings rows; using the first", len(settings_rows))

    seen_habits = set()
    for habit in habits:
        if habit.uuid in seen_habits:
            raise ImportFormatError(f"Duplicate habit uuid in export: {habit.uuid}")
        seen_habits.add(habit.uuid)

    seen_keys = set()
    for completion in completions:
        key = (completion.habit_uuid, completion.date)
        if key in seen_keys:
            raise ImportFormatError(
                f"Duplicate completion for habit {key[0]} on {key[1]}"
            )
        seen_keys.add(key)

    return habits, completions, settings
