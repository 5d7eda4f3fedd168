"""
Command implementations for habit-ledger.
"""

from .habits import (
    AddCommand,
    ListCommand,
    EditCommand,
    ArchiveCommand,
    DeleteCommand,
    ToggleCommand,
    DueCommand,
)
from .stats import StatsCommand, AchievementsCommand
from .data import ExportCommand, ImportCommand
from .sync import SyncCommand
from .settings import SettingsCommand
from .insights import InsightsCommand, DependCommand, JournalCommand

__all__ = [
    'AddCommand',
    'ListCommand',
    'EditCommand',
    'ArchiveCommand',
    'DeleteCommand',
    'ToggleCommand',
    'DueCommand',
    'StatsCommand',
    'AchievementsCommand',
    'ExportCommand',
    'ImportCommand',
    'SyncCommand',
    'SettingsCommand',
    'InsightsCommand',
    'DependCommand',
    'JournalCommand',
]
