"""
Shared pytest fixtures for rwbench tests.

Fake stores stand in for Redis/HTTP so the worker loop can be exercised
without a server.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

import pytest

from rwbench.config import BenchmarkConfig
from rwbench.counters import CounterStore


class FakeStore:
    """In-memory store that records every call."""

    def __init__(self, data: Optional[Dict[str, str]] = None,
                 fail_get: bool = False, fail_set: bool = False):
        self.data = dict(data or {})
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.gets: List[str] = []
        self.sets: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            self.gets.append(key)
        if self.fail_get:
            raise ConnectionError("connection reset")
        return self.data.get(key)

    def set(self, key, value):
        with self._lock:
            self.sets.append((key, value))
        if self.fail_set:
            raise TimeoutError("timed out")
        self.data[key] = value


class StoppingStore(FakeStore):
    """Sets a stop event after a fixed number of calls."""

    def __init__(self, stop_event: threading.Event, calls: int, **kwargs):
        super().__init__(**kwargs)
        self.stop_event = stop_event
        self.remaining = calls

    def _tick(self):
        self.remaining -= 1
        if self.remaining <= 0:
            self.stop_event.set()

    def get(self, key):
        self._tick()
        return super().get(key)

    def set(self, key, value):
        self._tick()
        return super().set(key, value)


class FakePool:
    def __init__(self, client=None, error: Optional[Exception] = None):
        self.client = client
        self.error = error
        self.acquired = 0
        self.released = 0

    def acquire(self):
        self.acquired += 1
        if self.error is not None:
            raise self.error
        return self.client

    def release(self, client):
        self.released += 1

    def close(self):
        pass


@pytest.fixture(autouse=True)
def reset_rwbench_logger():
    """Drop handlers installed by main() so later tests log through caplog."""
    yield
    logger = logging.getLogger("rwbench")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def pool(store):
    return FakePool(store)


@pytest.fixture
def counters():
    return CounterStore()


@pytest.fixture
def latency_counters():
    return CounterStore(latency=True)


@pytest.fixture
def config():
    return BenchmarkConfig(read_pct=0.5, key_start=1000, key_count=100, threads=1)
