"""
habit-ledger - local-first habit tracking engine.

Persists habits and daily completions, computes streaks and progress
metrics, resolves which habits are due under flexible recurrence rules, and
queues mutations for replay against a remote service.
"""

__version__ = "1.0.0"

from .core.exceptions import (
    HabitLedgerError,
    ValidationError,
    NotFoundError,
    StorageError,
    OfflineError,
    ImportFormatError,
)
from .tracker import HabitTracker

__all__ = [
    '__version__',
    'HabitTracker',
    'HabitLedgerError',
    'ValidationError',
    'NotFoundError',
    'StorageError',
    'OfflineError',
    'ImportFormatError',
]
