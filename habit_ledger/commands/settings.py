"""Settings command - show or change app settings."""

import json
from typing import List, Optional

from ..core.exceptions import HabitLedgerError, ValidationError
from .base import BaseCommand

BOOLEAN_WORDS = {"true": True, "yes": True, "on": True, "1": True,
                 "false": False, "no": False, "off": False, "0": False}


def parse_assignments(pairs: List[str]) -> dict:
    """Turn ``["theme=dark", "notifications=off"]`` into a settings dict."""
    partial = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValidationError(f"Expected KEY=VALUE, got {pair!r}")
        key, value = pair.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key == "notifications":
            if value.lower() not in BOOLEAN_WORDS:
                raise ValidationError(f"Invalid boolean for notifications: {value!r}")
            partial[key] = BOOLEAN_WORDS[value.lower()]
        else:
            partial[key] = value
    return partial


class SettingsCommand(BaseCommand):
    """Show settings, or update them from KEY=VALUE pairs."""

    def run(self, assignments: Optional[List[str]] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            if assignments:
                settings = tracker.update_settings(parse_assignments(assignments))
                print("✅ Settings updated")
            else:
                settings = tracker.get_settings()
            print(json.dumps(settings.to_dict(), indent=2))
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Settings", exc)
        finally:
            if tracker is not None:
                tracker.close()
