"""
Utility functions for habit-ledger.
"""

from .io import safe_read_json, safe_write_json, atomic_write
from .date import (
    parse_date, format_date, to_date, to_date_key,
    add_days, days_between, iter_days, js_weekday, start_of_week,
    utc_now, parse_timestamp
)
from .prompts import confirm_action

__all__ = [
    # I/O utilities
    'safe_read_json',
    'safe_write_json',
    'atomic_write',
    # Date utilities
    'parse_date',
    'format_date',
    'to_date',
    'to_date_key',
    'add_days',
    'days_between',
    'iter_days',
    'js_weekday',
    'start_of_week',
    'utc_now',
    'parse_timestamp',
    # Prompt utilities
    'confirm_action',
]
