"""
Tests for domain models, path management and configuration loading.
"""

import json
import os
from datetime import datetime, timezone

import pytest

from habit_ledger.core.config import get_backup_dir, get_data_dir, load_config, save_config
from habit_ledger.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from habit_ledger.core.models import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    AppSettings,
    Completion,
    CustomPattern,
    EntityType,
    FrequencyDescriptor,
    FrequencyType,
    Habit,
    LedgerConfig,
    MutationAction,
    SyncMutation,
)


class TestFrequencyDescriptor:

    def test_defaults_are_daily(self):
        freq = FrequencyDescriptor()
        assert freq.type == FrequencyType.DAILY
        assert freq.target == 1
        assert freq.period == 1
        assert freq.to_dict() == {"type": "daily", "target": 1, "period": 1}

    def test_from_dict_accepts_both_spellings(self):
        camel = FrequencyDescriptor.from_dict({"type": "weekly", "daysOfWeek": [5, 1, 3, 1]})
        snake = FrequencyDescriptor.from_dict({"type": "weekly", "days_of_week": [1, 3, 5]})

        assert camel.days_of_week == [1, 3, 5]
        assert camel == snake

    def test_custom_pattern_coerced(self):
        freq = FrequencyDescriptor.from_dict({"type": "daily", "customPattern": "weekdays-only"})
        assert freq.custom_pattern == CustomPattern.WEEKDAYS_ONLY
        assert freq.to_dict()["customPattern"] == "weekdays-only"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            FrequencyDescriptor.from_dict({"type": "hourly"})

    def test_non_integer_days_rejected(self):
        with pytest.raises(ValidationError):
            FrequencyDescriptor.from_dict({"type": "weekly", "daysOfWeek": ["monday"]})


class TestHabitAndCompletion:

    def test_habit_defaults(self):
        habit = Habit(name="Read")
        assert habit.icon == DEFAULT_ICON
        assert habit.color == DEFAULT_COLOR
        assert habit.archived is False
        assert habit.uuid

    def test_habit_dict_round_trip_keeps_created_day(self):
        created = datetime(2024, 1, 10, 8, 30, tzinfo=timezone.utc)
        habit = Habit(name="Run", created_at=created, updated_at=created, order=3)

        restored = Habit.from_dict(habit.to_dict())

        assert restored.uuid == habit.uuid
        assert restored.created_at == created
        assert restored.created_date.isoformat() == "2024-01-10"
        assert restored.order == 3

    def test_habit_from_row_with_display_order(self):
        habit = Habit.from_dict({
            "uuid": "abc", "name": "Row", "frequency": {"type": "daily"},
            "created_at": "2024-01-01T00:00:00+00:00", "display_order": 4, "archived": 1,
        })
        assert habit.order == 4
        assert habit.archived is True

    def test_invalid_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            Habit.from_dict({"name": "x", "createdAt": "not-a-time"})

    def test_completion_day(self):
        completion = Completion(habit_uuid="h1", date="2024-01-15")
        assert completion.day.isoformat() == "2024-01-15"
        assert completion.to_dict()["habitUuid"] == "h1"

    def test_completion_bad_day(self):
        with pytest.raises(ValidationError):
            Completion(habit_uuid="h1", date="soon").day


class TestSettingsAndMutations:

    def test_settings_defaults_validate(self):
        settings = AppSettings()
        settings.validate()
        assert settings.to_dict()["startOfWeek"] == 1

    @pytest.mark.parametrize("field,value", [
        ("theme", "neon"),
        ("grid_size", "huge"),
        ("start_of_week", 3),
        ("timezone", ""),
    ])
    def test_settings_invalid_values(self, field, value):
        settings = AppSettings()
        setattr(settings, field, value)
        with pytest.raises(ValidationError):
            settings.validate()

    def test_mutation_dict_round_trip(self):
        mutation = SyncMutation(entity_type="habit", action="create", payload={"uuid": "h1"})
        restored = SyncMutation.from_dict(mutation.to_dict())

        assert restored.entity_type == EntityType.HABIT
        assert restored.action == MutationAction.CREATE
        assert restored.id == mutation.id
        assert restored.describe() == "habit create"

    def test_not_found_error_message(self):
        error = NotFoundError("h1")
        assert "Habit not found: h1" == str(error)
        assert error.uuid == "h1"


class TestLedgerConfig:

    def test_defaults_live_under_home(self, isolated_home):
        config = LedgerConfig()
        assert config.db_path.startswith(os.path.realpath(isolated_home))
        assert config.db_path.endswith(os.path.join("data", "ledger.db"))
        assert config.queue_path.endswith("sync_queue.json")
        assert config.dependencies_path.endswith(os.path.join("data", "dependencies.json"))
        assert config.journal_path.endswith(os.path.join("data", "journal.json"))

    def test_memory_database_kept(self):
        assert LedgerConfig(db_path=":memory:").db_path == ":memory:"

    def test_invalid_policy_rejected(self):
        with pytest.raises(ConfigurationError):
            LedgerConfig(every_other_day_policy="sometimes")

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ConfigurationError):
            LedgerConfig(replay_timeout=0)

    def test_save_and_load_round_trip(self, temp_dir):
        path = os.path.join(temp_dir, "conf", "config.json")
        config = LedgerConfig(
            db_path=os.path.join(temp_dir, "db.sqlite"),
            journal_path=os.path.join(temp_dir, "notes.json"),
            start_online=False,
            every_other_day_policy="parity",
            schedule_horizon_days=30,
            completion_rate_days=7,
        )

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.db_path == config.db_path
        assert loaded.journal_path == config.journal_path
        assert loaded.start_online is False
        assert loaded.every_other_day_policy == "parity"
        assert loaded.schedule_horizon_days == 30
        assert loaded.completion_rate_days == 7

        with open(path) as handle:
            data = json.load(handle)
        assert set(data) == {"storage", "sync", "schedule", "analytics"}

    def test_missing_or_corrupt_file_gives_defaults(self, temp_dir):
        assert load_config(os.path.join(temp_dir, "missing.json")).start_online is True

        broken = os.path.join(temp_dir, "broken.json")
        with open(broken, "w") as handle:
            handle.write("{not json")
        assert load_config(broken).stats_window_days == 90

    def test_default_path_used_when_none(self, isolated_home):
        config = LedgerConfig(auto_drain=False)
        save_config(config)

        assert os.path.exists(os.path.join(isolated_home, "config.json"))
        assert load_config().auto_drain is False

    def test_data_and_backup_dirs_created(self, isolated_home):
        data_dir = get_data_dir()
        backup_dir = get_backup_dir()

        assert data_dir.is_dir()
        assert backup_dir.is_dir()
        assert data_dir.name == "data"
        assert backup_dir.parent == data_dir.parent

    def test_bad_value_in_file_rejected(self, temp_dir):
        path = os.path.join(temp_dir, "config.json")
        with open(path, "w") as handle:
            json.dump({"sync": {"replay_timeout": "soon"}}, handle)

        with pytest.raises(ConfigurationError):
            load_config(path)
