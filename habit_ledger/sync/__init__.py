"""Mutation sync queue and remote replay targets."""

from .queue import DrainResult, SyncQueue, SyncStatus
from .remote import CallableRemote, RemoteReplay, SimulatedRemote

__all__ = [
    'SyncQueue',
    'SyncStatus',
    'DrainResult',
    'RemoteReplay',
    'SimulatedRemote',
    'CallableRemote',
]
