"""
Core module for habit-ledger - contains domain models, configuration, and exceptions.
"""

from .models import (
    Habit,
    Completion,
    AppSettings,
    FrequencyDescriptor,
    FrequencyType,
    CustomPattern,
    SyncMutation,
    EntityType,
    MutationAction,
    ConditionType,
    HabitDependency,
    JournalEntryType,
    JournalEntry,
    LedgerConfig
)

from .exceptions import (
    HabitLedgerError,
    ConfigurationError,
    ValidationError,
    NotFoundError,
    StorageError,
    OfflineError,
    ImportFormatError
)

__all__ = [
    # Models
    'Habit',
    'Completion',
    'AppSettings',
    'FrequencyDescriptor',
    'FrequencyType',
    'CustomPattern',
    'SyncMutation',
    'EntityType',
    'MutationAction',
    'ConditionType',
    'HabitDependency',
    'JournalEntryType',
    'JournalEntry',
    'LedgerConfig',
    # Exceptions
    'HabitLedgerError',
    'ConfigurationError',
    'ValidationError',
    'NotFoundError',
    'StorageError',
    'OfflineError',
    'ImportFormatError'
]
