"""
Tests for utility modules (habit_ledger/utils/{io,date,prompts}.py).

Validates atomic writes, date canonicalization and confirmation prompts.
"""

import json
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from habit_ledger.core.exceptions import ValidationError
from habit_ledger.utils.date import (
    add_days,
    days_between,
    format_date,
    iter_days,
    js_weekday,
    parse_date,
    parse_timestamp,
    start_of_week,
    to_date,
    to_date_key,
)
from habit_ledger.utils.io import FileLock, atomic_write, safe_read_json, safe_write_json
from habit_ledger.utils.prompts import confirm_action


class TestIOUtils:
    """Test suite for habit_ledger/utils/io.py."""

    def test_safe_read_json_existing_file(self):
        """Test reading existing JSON file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "test.json"
            test_data = {"key": "value", "number": 42}
            test_file.write_text(json.dumps(test_data))

            assert safe_read_json(str(test_file)) == test_data

    def test_safe_read_json_nonexistent_file(self):
        """Test reading non-existent file returns default."""
        result = safe_read_json("/nonexistent/file.json", default={"empty": True})

        assert result == {"empty": True}

    def test_safe_read_json_invalid_json(self):
        """Test reading invalid JSON returns default."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "invalid.json"
            test_file.write_text("not valid json {{{")

            assert safe_read_json(str(test_file), default={"items": []}) == {"items": []}

    def test_safe_write_json_creates_parent_dirs(self):
        """Test that parent directories are created if needed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "nested" / "dir" / "file.json"

            result = safe_write_json(str(test_file), {"test": True})

            assert result is True
            assert json.loads(test_file.read_text()) == {"test": True}

    def test_safe_write_json_unserializable_returns_false(self):
        """Test that a failed dump leaves no file behind."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "bad.json"

            result = safe_write_json(str(test_file), {"value": object()})

            assert result is False
            assert not test_file.exists()
            assert not list(Path(tmpdir).glob(".tmp_*"))

    def test_atomic_write_replaces_content(self):
        """Test atomic write overwrites existing content."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "export.json"
            test_file.write_text("old")

            assert atomic_write(str(test_file), "new content") is True
            assert test_file.read_text() == "new content"

    def test_exclusive_lock_blocks_second_holder(self):
        """A held exclusive lock makes a competing holder time out."""
        pytest.importorskip("fcntl")
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "queue.json"

            with FileLock(target) as held:
                assert held.held
                assert held.lock_path.name == "queue.json.lock"
                with pytest.raises(TimeoutError):
                    FileLock(target, timeout=0.1).acquire()

            assert not held.held
            with FileLock(target, timeout=0.1) as again:
                assert again.held

    def test_shared_locks_overlap(self):
        pytest.importorskip("fcntl")
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "queue.json"
            with FileLock(target, exclusive=False), FileLock(target, exclusive=False, timeout=0.1) as second:
                assert second.held


class TestDateUtils:
    """Test suite for habit_ledger/utils/date.py."""

    def test_parse_date_formats(self):
        assert parse_date("2024-01-15") == date(2024, 1, 15)
        assert parse_date("2024-01-15T23:30:00Z") == date(2024, 1, 15)
        assert parse_date("2024-1-5") == date(2024, 1, 5)
        assert parse_date("") is None
        assert parse_date("not a date") is None

    def test_to_date_key_canonicalizes(self):
        """Test that every date-like input maps to the YYYY-MM-DD key."""
        assert to_date_key("2024-1-5") == "2024-01-05"
        assert to_date_key(date(2024, 1, 5)) == "2024-01-05"
        assert to_date_key(datetime(2024, 1, 5, 18, 0, tzinfo=timezone.utc)) == "2024-01-05"

    def test_to_date_rejects_garbage(self):
        with pytest.raises(ValidationError):
            to_date("yesterday")
        with pytest.raises(ValidationError):
            to_date(None)

    def test_calendar_arithmetic(self):
        start = date(2024, 2, 27)
        assert add_days(start, 3) == date(2024, 3, 1)
        assert days_between(start, date(2024, 3, 1)) == 3
        assert days_between(date(2024, 3, 1), start) == -3
        assert list(iter_days(start, date(2024, 2, 29))) == [
            date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29)
        ]

    def test_js_weekday_numbering(self):
        """Sunday is 0 and Saturday is 6."""
        assert js_weekday(date(2024, 1, 14)) == 0
        assert js_weekday(date(2024, 1, 15)) == 1
        assert js_weekday(date(2024, 1, 20)) == 6

    def test_start_of_week(self):
        wednesday = date(2024, 1, 17)
        assert start_of_week(wednesday, week_starts_on=1) == date(2024, 1, 15)
        assert start_of_week(wednesday, week_starts_on=0) == date(2024, 1, 14)
        assert start_of_week(date(2024, 1, 14), week_starts_on=1) == date(2024, 1, 8)

    def test_parse_timestamp(self):
        parsed = parse_timestamp("2024-01-15T10:00:00Z")
        assert parsed == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(None) is None
        with pytest.raises(ValidationError):
            parse_timestamp("garbage", strict=True)

    def test_format_date(self):
        assert format_date(date(2024, 3, 9)) == "2024-03-09"
        assert format_date(None) is None


class TestPrompts:
    """Test suite for habit_ledger/utils/prompts.py."""

    def test_assume_yes_skips_prompt(self):
        with patch("builtins.input") as mock_input:
            assert confirm_action("Delete?", assume_yes=True) is True
            mock_input.assert_not_called()

    def test_refuses_without_tty(self, capsys):
        with patch("habit_ledger.utils.prompts.is_interactive", return_value=False):
            assert confirm_action("Delete?") is False
        assert "--yes" in capsys.readouterr().out

    @pytest.mark.parametrize("answer,expected", [("y", True), ("YES", True), ("n", False), ("", False)])
    def test_interactive_answers(self, answer, expected):
        with patch("habit_ledger.utils.prompts.is_interactive", return_value=True), \
                patch("builtins.input", return_value=answer):
            assert confirm_action("Delete?") is expected
