"""
Remote replay targets for the sync queue.

The queue only needs a single capability from the remote side: replay one
mutation and report whether it was accepted.
"""

import logging
import time
from typing import Callable, Optional

from ..core.models import SyncMutation


class RemoteReplay:
    """Interface for anything that can replay a queued mutation remotely."""

    def replay(self, mutation: SyncMutation) -> bool:
        """
        Replay a single mutation.

        Returns:
            True if the remote accepted the mutation. Returning False or
            raising keeps the mutation queued for a later retry.
        """
        raise NotImplementedError


class SimulatedRemote(RemoteReplay):
    """Stand-in backend that accepts everything after a short delay."""

    def __init__(self, delay: float = 0.1, logger: Optional[logging.Logger] = None):
        self.delay = delay
        self.logger = logger or logging.getLogger(__name__)
        self.replayed = 0

    def replay(self, mutation: SyncMutation) -> bool:
        if self.delay:
            time.sleep(self.delay)
        self.replayed += 1
        self.logger.debug("Syncing %s: %s", mutation.describe(), mutation.id)
        return True


class CallableRemote(RemoteReplay):
    """Adapt a plain function ``fn(mutation)`` to the replay interface.

    A ``None`` return counts as success.
    """

    def __init__(self, fn: Callable[[SyncMutation], Optional[bool]]):
        self.fn = fn

    def replay(self, mutation: SyncMutation) -> bool:
        result = self.fn(mutation)
        return True if result is None else bool(result)
