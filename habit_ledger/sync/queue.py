"""
Durable mutation queue replayed against a remote when connectivity allows.

Mutations are persisted to a JSON file after every change. Draining is
single-flight: while one drain runs, further drain requests return at once
with ``coalesced=True`` instead of starting a second pass. A drain works on
the snapshot of the queue taken when it starts; mutations enqueued meanwhile
wait for the next drain.

Automatic drains after ``enqueue`` run on a daemon thread so writers never
wait on the remote. Each replay also runs on its own daemon thread; one that
outlives ``replay_timeout`` is abandoned and cannot keep the process alive.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import OfflineError, StorageError, ValidationError
from ..core.models import SyncMutation
from ..utils.io import safe_read_json, safe_write_json
from .remote import RemoteReplay, SimulatedRemote

QUEUE_FILE_VERSION = 1


@dataclass
class SyncStatus:
    """Snapshot of the queue published to status listeners."""

    is_online: bool
    queue_length: int
    sync_in_progress: bool
    failed_count: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnline": self.is_online,
            "queueLength": self.queue_length,
            "syncInProgress": self.sync_in_progress,
            "failedCount": self.failed_count,
            "lastError": self.last_error,
        }


@dataclass
class DrainResult:
    processed: int = 0
    synced: int = 0
    failed: int = 0
    coalesced: bool = False


StatusListener = Callable[[SyncStatus], None]


class SyncQueue:
    """FIFO of pending mutations with retry-on-failure semantics."""

    def __init__(self, queue_path: Optional[str] = None, remote: Optional[RemoteReplay] = None,
                 online: bool = True, auto_drain: bool = True, replay_timeout: float = 10.0,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the queue, loading any mutations left from a previous run.

        Args:
            queue_path: JSON file backing the queue; None keeps it in memory
            remote: Replay target; defaults to a SimulatedRemote
            online: Initial connectivity state
            auto_drain: Drain right after enqueue while online
            replay_timeout: Seconds allowed for each remote replay call
            logger: Optional logger instance
        """
        self.queue_path = queue_path
        self.logger = logger or logging.getLogger(__name__)
        self.remote = remote or SimulatedRemote(logger=self.logger)
        self.is_online = online
        self.auto_drain = auto_drain
        self.replay_timeout = replay_timeout

        self._items_lock = threading.RLock()
        self._drain_lock = threading.Lock()
        self._sync_in_progress = False
        self._last_error: Optional[str] = None
        self._listeners: List[StatusListener] = []
        self._drain_threads: List[threading.Thread] = []
        self._items: List[SyncMutation] = self._load()

    def _load(self) -> List[SyncMutation]:
        if not self.queue_path:
            return []

        data = safe_read_json(self.queue_path, default={"items": []})
        items = []
        for raw in data.get("items", []):
            try:
                items.append(SyncMutation.from_dict(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                self.logger.warning("Dropping unreadable queued mutation: %s", exc)
        if items:
            self.logger.info("Loaded %d pending mutation(s) from %s", len(items), self.queue_path)
        return items

    def _save(self) -> None:
        if not self.queue_path:
            return
        payload = {
            "version": QUEUE_FILE_VERSION,
            "items": [item.to_dict() for item in self._items],
        }
        if not safe_write_json(self.queue_path, payload):
            raise StorageError(f"Failed to persist sync queue to {self.queue_path}")

    # Status signal

    def status(self) -> SyncStatus:
        with self._items_lock:
            return SyncStatus(
                is_online=self.is_online,
                queue_length=len(self._items),
                sync_in_progress=self._sync_in_progress,
                failed_count=sum(1 for item in self._items if item.attempts > 0),
                last_error=self._last_error,
            )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a status listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        status = self.status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                self.logger.exception("Sync status listener failed")

    # Queue operations

    def pending(self) -> List[SyncMutation]:
        with self._items_lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._items_lock:
            return len(self._items)

    def enqueue(self, entity_type, action, payload: Optional[Dict[str, Any]] = None) -> SyncMutation:
        """
        Append a mutation and persist the queue.

        Starts a background drain when online, ``auto_drain`` is on and no
        drain is already running; the call itself never waits on the remote.

        Raises:
            StorageError: If the queue file cannot be written
        """
        mutation = SyncMutation(
            entity_type=entity_type,
            action=action,
            payload=dict(payload or {}),
        )

        with self._items_lock:
            self._items.append(mutation)
            try:
                self._save()
            except StorageError:
                self._items.remove(mutation)
                raise

        self.logger.debug("Added to sync queue: %s (%s)", mutation.describe(), mutation.id)
        self._emit()

        if self.is_online and self.auto_drain and not self._drain_lock.locked():
            self._start_background_drain()
        return mutation

    def clear(self) -> int:
        """Drop every pending mutation; returns how many were removed."""
        with self._items_lock:
            removed = len(self._items)
            self._items = []
            self._last_error = None
            self._save()
        self.logger.info("Sync queue cleared (%d item(s))", removed)
        self._emit()
        return removed

    # Draining

    def _start_background_drain(self) -> None:
        worker = threading.Thread(target=self._background_drain, name="sync-drain", daemon=True)
        with self._items_lock:
            self._drain_threads = [t for t in self._drain_threads if t.is_alive()]
            self._drain_threads.append(worker)
        worker.start()

    def _background_drain(self) -> None:
        try:
            self.drain()
        except StorageError as exc:
            self.logger.error("Background sync failed: %s", exc)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for background drains started by ``enqueue``.

        Returns:
            True when no background drain is still running
        """
        with self._items_lock:
            workers = list(self._drain_threads)
        for worker in workers:
            worker.join(timeout)
        return not any(worker.is_alive() for worker in workers)

    def _replay_one(self, mutation: SyncMutation) -> Optional[str]:
        """Replay one mutation; returns an error description on failure."""
        outcome: Dict[str, Any] = {}

        def run() -> None:
            try:
                outcome["accepted"] = self.remote.replay(mutation)
            except Exception as exc:
                outcome["error"] = exc

        worker = threading.Thread(target=run, name=f"sync-replay-{mutation.id[:8]}", daemon=True)
        worker.start()
        worker.join(self.replay_timeout)

        if worker.is_alive():
            return f"Replay timed out after {self.replay_timeout:g}s"
        if "error" in outcome:
            exc = outcome["error"]
            return f"{type(exc).__name__}: {exc}"
        if not outcome.get("accepted"):
            return "Remote rejected mutation"
        return None

    def drain(self) -> DrainResult:
        """
        Replay every mutation queued at the moment the drain starts.

        Successful mutations are removed. Failed ones (exception, ``False``
        result or timeout) stay queued with ``attempts`` incremented and
        ``last_error`` recorded.

        Returns:
            DrainResult; ``coalesced`` is True when another drain was running
        """
        if not self._drain_lock.acquire(blocking=False):
            self.logger.debug("Drain already in progress; coalescing request")
            return DrainResult(coalesced=True)

        try:
            if not self.is_online:
                self.logger.debug("Skipping drain while offline")
                return DrainResult()

            with self._items_lock:
                snapshot = list(self._items)
                self._sync_in_progress = True
            if not snapshot:
                return DrainResult()

            self._emit()
            self.logger.info("Processing sync queue (%d item(s))", len(snapshot))

            synced = set()
            failures: Dict[str, str] = {}
            for mutation in snapshot:
                error = self._replay_one(mutation)
                if error is None:
                    synced.add(mutation.id)
                    self.logger.debug("Synced: %s", mutation.describe())
                else:
                    failures[mutation.id] = error
                    self.logger.warning("Failed to sync %s: %s", mutation.describe(), error)

            with self._items_lock:
                remaining = []
                for item in self._items:
                    if item.id in synced:
                        continue
                    if item.id in failures:
                        item.attempts += 1
                        item.last_error = failures[item.id]
                        self._last_error = failures[item.id]
                    remaining.append(item)
                self._items = remaining
                if not failures:
                    self._last_error = None
                self._save()

            result = DrainResult(processed=len(snapshot), synced=len(synced), failed=len(failures))
            self.logger.info(
                "Sync finished: %d synced, %d failed, %d pending",
                result.synced, result.failed, len(remaining),
            )
            return result
        finally:
            with self._items_lock:
                self._sync_in_progress = False
            self._drain_lock.release()
            self._emit()

    # Connectivity

    def set_online(self, online: bool) -> Optional[DrainResult]:
        """
        Update connectivity; going from offline to online starts a drain.

        Returns:
            The drain result when a drain was triggered, else None
        """
        was_online = self.is_online
        self.is_online = bool(online)

        if self.is_online and not was_online:
            self.logger.info("Back online - starting sync")
            self._emit()
            return self.drain()
        if was_online and not self.is_online:
            self.logger.info("Gone offline - queueing changes")
        self._emit()
        return None

    def force_sync(self) -> DrainResult:
        """
        Drain immediately.

        Raises:
            OfflineError: If the queue is offline
        """
        if not self.is_online:
            raise OfflineError("Cannot sync while offline")
        return self.drain()
