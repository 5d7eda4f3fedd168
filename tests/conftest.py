#!/usr/bin/env python3
"""
Global pytest configuration and fixtures.

This module provides:
- An isolated HABIT_LEDGER_HOME for every test
- A fixed clock so streaks and windows are deterministic
- In-memory store, queue and tracker fixtures
- Fake remotes for exercising sync failure paths
"""

import os
import shutil
import sys
import tempfile
import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Generator, List

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from habit_ledger.core.models import LedgerConfig
from habit_ledger.core.paths import reset_path_manager
from habit_ledger.store.ledger import LedgerStore
from habit_ledger.sync.queue import SyncQueue
from habit_ledger.sync.remote import RemoteReplay
from habit_ledger.tracker import HabitTracker

# Wednesday; every relative date in the suite is computed from it.
FIXED_NOW = datetime(2024, 1, 17, 12, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()


def pytest_configure(config):
    """Configure pytest environment."""
    config.addinivalue_line("markers", "slow: tests that sleep or exercise timeouts")


def days_ago(n: int, today: date = TODAY) -> date:
    return today - timedelta(days=n)


class FixedClock:
    """Callable clock that can be moved forward by tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


class FakeRemote(RemoteReplay):
    """Remote that records replays and fails on demand."""

    def __init__(self, fail_ids=None, fail_when=None, delay: float = 0.0):
        self.fail_ids = set(fail_ids or [])
        self.fail_when = fail_when
        self.delay = delay
        self.replayed: List = []
        self._lock = threading.Lock()

    def replay(self, mutation) -> bool:
        if self.delay:
            time.sleep(self.delay)
        if mutation.id in self.fail_ids:
            raise ConnectionError("remote unavailable")
        if self.fail_when is not None and self.fail_when(mutation):
            return False
        with self._lock:
            self.replayed.append(mutation)
        return True


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch) -> Generator[str, None, None]:
    """Point HABIT_LEDGER_HOME at a throwaway directory for each test."""
    home = tempfile.mkdtemp(prefix="habit_ledger_home_")
    monkeypatch.setenv("HABIT_LEDGER_HOME", home)
    reset_path_manager()
    try:
        yield home
    finally:
        reset_path_manager()
        shutil.rmtree(home, ignore_errors=True)


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = tempfile.mkdtemp(prefix="habit_ledger_test_")
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(clock) -> Generator[LedgerStore, None, None]:
    """In-memory ledger without a sync queue."""
    ledger = LedgerStore(":memory:", clock=clock)
    try:
        yield ledger
    finally:
        ledger.close()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def queue(temp_dir, remote) -> SyncQueue:
    """File-backed queue that does not drain on its own."""
    return SyncQueue(
        queue_path=os.path.join(temp_dir, "sync_queue.json"),
        remote=remote,
        online=True,
        auto_drain=False,
    )


@pytest.fixture
def config(temp_dir) -> LedgerConfig:
    return LedgerConfig(
        db_path=os.path.join(temp_dir, "ledger.db"),
        queue_path=os.path.join(temp_dir, "sync_queue.json"),
        dependencies_path=os.path.join(temp_dir, "dependencies.json"),
        journal_path=os.path.join(temp_dir, "journal.json"),
        auto_drain=False,
        remote_delay=0.0,
    )


@pytest.fixture
def tracker(config, remote, clock) -> Generator[HabitTracker, None, None]:
    """Fully wired tracker over a temporary database."""
    instance = HabitTracker.from_config(config, remote=remote, clock=clock)
    try:
        yield instance
    finally:
        instance.close()
