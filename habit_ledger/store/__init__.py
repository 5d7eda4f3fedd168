"""Persistent ledger storage, export snapshots and the journal."""

from .journal import JournalStore
from .ledger import LedgerStore
from .snapshot import SNAPSHOT_SCHEMA, build_snapshot, parse_snapshot, validate_snapshot

__all__ = [
    'JournalStore',
    'LedgerStore',
    'SNAPSHOT_SCHEMA',
    'build_snapshot',
    'parse_snapshot',
    'validate_snapshot',
]
