"""
Exception classes for habit-ledger.
"""


class HabitLedgerError(Exception):
    """Base exception for all habit-ledger errors."""
    pass


class ConfigurationError(HabitLedgerError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(HabitLedgerError):
    """Raised when a habit, frequency descriptor or date is malformed."""
    pass


class NotFoundError(HabitLedgerError):
    """Raised when a habit uuid is absent from the ledger."""

    def __init__(self, uuid: str, entity: str = "habit"):
        super().__init__(f"{entity.capitalize()} not found: {uuid}")
        self.uuid = uuid
        self.entity = entity


class StorageError(HabitLedgerError):
    """Raised when persistence is unavailable or full."""
    pass


class OfflineError(HabitLedgerError):
    """Raised when a sync is forced while offline."""
    pass


class ImportFormatError(HabitLedgerError):
    """Raised when an export document fails shape validation."""

    def __init__(self, message: str, problems=None):
        super().__init__(message)
        self.problems = list(problems or [])
