"""
Tests for the mutation sync queue (habit_ledger/sync/queue.py) and remote
replay targets (habit_ledger/sync/remote.py).
"""

import json
import os
import threading
import time
from unittest.mock import patch

import pytest

from habit_ledger.core.exceptions import OfflineError, StorageError
from habit_ledger.core.models import EntityType, MutationAction
from habit_ledger.store.ledger import LedgerStore
from habit_ledger.sync.queue import SyncQueue
from habit_ledger.sync.remote import CallableRemote, SimulatedRemote

from .conftest import FakeRemote


def _enqueue_three(queue):
    return [
        queue.enqueue(EntityType.HABIT, MutationAction.CREATE, {"uuid": "h1"}),
        queue.enqueue(EntityType.COMPLETION, MutationAction.UPDATE, {"habitUuid": "h1"}),
        queue.enqueue(EntityType.SETTINGS, MutationAction.UPDATE, {"theme": "dark"}),
    ]


class TestEnqueueAndPersistence:

    def test_enqueue_persists_to_disk(self, queue):
        mutation = queue.enqueue("habit", "create", {"uuid": "h1"})

        with open(queue.queue_path) as handle:
            data = json.load(handle)

        assert data["version"] == 1
        assert [item["id"] for item in data["items"]] == [mutation.id]
        assert data["items"][0]["entity_type"] == "habit"

    def test_reload_restores_pending(self, queue, remote):
        items = _enqueue_three(queue)

        reloaded = SyncQueue(queue_path=queue.queue_path, remote=remote, auto_drain=False)

        assert [m.id for m in reloaded.pending()] == [m.id for m in items]

    def test_unreadable_items_dropped_on_load(self, temp_dir, remote):
        path = os.path.join(temp_dir, "queue.json")
        with open(path, "w") as handle:
            json.dump({"version": 1, "items": [
                {"id": "ok", "entity_type": "habit", "action": "create"},
                {"id": "bad", "entity_type": "planet", "action": "create"},
                {"entity_type": "habit"},
            ]}, handle)

        loaded = SyncQueue(queue_path=path, remote=remote, auto_drain=False)

        assert [m.id for m in loaded.pending()] == ["ok"]

    def test_failed_save_rolls_back(self, queue):
        with patch("habit_ledger.sync.queue.safe_write_json", return_value=False):
            with pytest.raises(StorageError):
                queue.enqueue("habit", "create", {"uuid": "h1"})
        assert len(queue) == 0

    def test_in_memory_queue(self, remote):
        memory = SyncQueue(remote=remote, auto_drain=False)
        memory.enqueue("habit", "create", {})
        assert len(memory) == 1

    def test_clear(self, queue):
        _enqueue_three(queue)
        assert queue.clear() == 3
        assert queue.pending() == []


class TestDrain:

    def test_drain_removes_synced(self, queue, remote):
        _enqueue_three(queue)

        result = queue.drain()

        assert (result.processed, result.synced, result.failed) == (3, 3, 0)
        assert len(queue) == 0
        assert len(remote.replayed) == 3

    def test_one_failure_stays_queued(self, queue, remote):
        """Three pending, one fails replay: only the failed item remains."""
        items = _enqueue_three(queue)
        remote.fail_ids = {items[1].id}

        result = queue.drain()

        assert result.failed == 1
        pending = queue.pending()
        assert [m.id for m in pending] == [items[1].id]
        assert pending[0].attempts == 1
        assert "ConnectionError" in pending[0].last_error

        status = queue.status()
        assert status.queue_length == 1
        assert status.failed_count == 1
        assert status.last_error == pending[0].last_error

    def test_false_result_counts_as_failure(self, temp_dir):
        rejecting = CallableRemote(lambda mutation: False)
        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"), remote=rejecting,
                          auto_drain=False)
        queue.enqueue("habit", "create", {})

        result = queue.drain()

        assert result.failed == 1
        assert queue.pending()[0].last_error == "Remote rejected mutation"

    def test_retry_succeeds_later(self, queue, remote):
        items = _enqueue_three(queue)
        remote.fail_ids = {items[0].id}
        queue.drain()

        remote.fail_ids = set()
        result = queue.drain()

        assert result.synced == 1
        assert len(queue) == 0
        assert queue.status().last_error is None

    @pytest.mark.slow
    def test_replay_timeout(self, temp_dir):
        slow = FakeRemote(delay=0.5)
        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"), remote=slow,
                          auto_drain=False, replay_timeout=0.05)
        queue.enqueue("habit", "create", {})

        started = time.monotonic()
        result = queue.drain()

        assert time.monotonic() - started < 0.5
        assert result.failed == 1
        assert "timed out" in queue.pending()[0].last_error

    def test_replays_run_on_daemon_threads(self, temp_dir):
        seen = []

        def replay(mutation):
            seen.append(threading.current_thread().daemon)
            return True

        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"),
                          remote=CallableRemote(replay), auto_drain=False)
        queue.enqueue("habit", "create", {})
        queue.enqueue("habit", "update", {})

        assert queue.drain().synced == 2
        assert seen == [True, True]

    @pytest.mark.slow
    def test_hung_replay_is_abandoned(self, temp_dir):
        release = threading.Event()
        workers = []

        def hang(mutation):
            workers.append(threading.current_thread())
            release.wait(timeout=5)
            return True

        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"),
                          remote=CallableRemote(hang), auto_drain=False, replay_timeout=0.1)
        queue.enqueue("habit", "create", {})

        result = queue.drain()

        assert result.failed == 1
        assert workers[0].is_alive()
        assert workers[0].daemon is True
        release.set()

    @pytest.mark.slow
    def test_concurrent_drains_coalesce(self, temp_dir):
        gate = threading.Event()
        entered = threading.Event()

        def blocking(mutation):
            entered.set()
            gate.wait(timeout=5)
            return True

        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"),
                          remote=CallableRemote(blocking), auto_drain=False)
        queue.enqueue("habit", "create", {})

        results = []
        worker = threading.Thread(target=lambda: results.append(queue.drain()))
        worker.start()
        assert entered.wait(timeout=5)

        second = queue.drain()
        assert second.coalesced is True
        assert queue.status().sync_in_progress is True

        gate.set()
        worker.join(timeout=5)
        assert results[0].synced == 1
        assert queue.status().sync_in_progress is False

    def test_items_enqueued_during_drain_wait(self, temp_dir):
        holder = {}

        def replay(mutation):
            if "late" not in holder:
                holder["late"] = holder["queue"].enqueue("habit", "update", {"late": True})
            return True

        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"),
                          remote=CallableRemote(replay), auto_drain=True)
        holder["queue"] = queue
        queue.is_online = False
        queue.enqueue("habit", "create", {})
        queue.is_online = True

        result = queue.drain()

        assert result.processed == 1
        assert [m.id for m in queue.pending()] == [holder["late"].id]


class TestConnectivity:

    def test_offline_drain_is_noop(self, queue, remote):
        queue.set_online(False)
        _enqueue_three(queue)

        result = queue.drain()

        assert result.processed == 0
        assert len(queue) == 3
        assert remote.replayed == []

    def test_force_sync_offline_raises(self, queue):
        queue.set_online(False)
        with pytest.raises(OfflineError):
            queue.force_sync()

    def test_reconnect_drains(self, queue, remote):
        queue.set_online(False)
        _enqueue_three(queue)

        result = queue.set_online(True)

        assert result is not None and result.synced == 3
        assert len(queue) == 0
        assert queue.set_online(True) is None

    def test_auto_drain_when_online(self, temp_dir, remote):
        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"), remote=remote,
                          auto_drain=True)
        queue.enqueue("habit", "create", {})
        assert queue.wait_idle(timeout=5)
        assert len(queue) == 0
        assert len(remote.replayed) == 1

    @pytest.mark.slow
    def test_auto_drain_does_not_block_enqueue(self, temp_dir):
        slow = FakeRemote(delay=0.5)
        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"), remote=slow,
                          auto_drain=True)

        started = time.monotonic()
        queue.enqueue("habit", "create", {})
        assert time.monotonic() - started < 0.3

        assert queue.wait_idle(timeout=5)
        assert len(slow.replayed) == 1
        assert len(queue) == 0

    @pytest.mark.slow
    def test_store_write_returns_before_remote(self, temp_dir, clock):
        slow = FakeRemote(delay=0.5)
        queue = SyncQueue(queue_path=os.path.join(temp_dir, "q.json"), remote=slow,
                          auto_drain=True)
        store = LedgerStore(":memory:", sync_queue=queue, clock=clock)
        try:
            started = time.monotonic()
            habit = store.create_habit({"name": "Read"})
            store.toggle_completion(habit.uuid, "2024-01-17")
            assert time.monotonic() - started < 0.3
        finally:
            store.close()

        assert queue.wait_idle(timeout=5)
        assert len(queue) == 0

    def test_status_listeners(self, queue):
        seen = []
        unsubscribe = queue.subscribe(seen.append)

        queue.enqueue("habit", "create", {})
        queue.set_online(False)
        unsubscribe()
        queue.set_online(True)

        assert seen[0].queue_length == 1
        assert seen[-1].is_online is False
        assert seen[-1].to_dict()["queueLength"] == 1

    def test_failing_listener_does_not_break_queue(self, queue, caplog):
        def broken(status):
            raise RuntimeError("listener bug")

        queue.subscribe(broken)
        queue.enqueue("habit", "create", {})

        assert len(queue) == 1
        assert "listener failed" in caplog.text


class TestRemotes:

    def test_simulated_remote_counts(self):
        simulated = SimulatedRemote(delay=0)
        queue = SyncQueue(remote=simulated, auto_drain=False)
        queue.enqueue("habit", "create", {})
        queue.enqueue("habit", "delete", {"uuid": "x"})

        queue.drain()

        assert simulated.replayed == 2

    def test_callable_remote_none_is_success(self):
        remote = CallableRemote(lambda mutation: None)
        queue = SyncQueue(remote=remote, auto_drain=False)
        queue.enqueue("settings", "update", {})
        assert queue.drain().synced == 1
