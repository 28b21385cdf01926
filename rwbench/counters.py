"""Shared transaction counters, updated concurrently by every worker."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Optional


def now_millis() -> int:
    return int(time.time() * 1000)


class AtomicCounter:
    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def get_and_reset(self) -> int:
        with self._lock:
            value, self._value = self._value, 0
            return value


class LatencyRecorder:
    """Append-only latency samples in milliseconds."""

    def __init__(self) -> None:
        self._samples: list[float] = []
        self._lock = threading.Lock()

    def add(self, elapsed_ms: float) -> None:
        with self._lock:
            self._samples.append(elapsed_ms)

    def drain(self) -> list[float]:
        """Return the samples recorded since the last drain and clear them."""
        with self._lock:
            samples, self._samples = self._samples, []
            return samples

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)


@dataclass
class CounterGroup:
    count: AtomicCounter = field(default_factory=AtomicCounter)
    errors: AtomicCounter = field(default_factory=AtomicCounter)
    latency: Optional[LatencyRecorder] = None


class CounterStore:
    """Read/write counters plus the start of the current throttle window.

    Latency sampling is enabled per store; when disabled, ``read.latency`` and
    ``write.latency`` are None and the record methods do nothing.
    """

    def __init__(self, latency: bool = False) -> None:
        self.read = CounterGroup(latency=LatencyRecorder() if latency else None)
        self.write = CounterGroup(latency=LatencyRecorder() if latency else None)
        self.read_not_found = AtomicCounter()
        self.period_begin = AtomicCounter(now_millis())

    @property
    def latency_enabled(self) -> bool:
        return self.read.latency is not None

    def increment_read_count(self) -> None:
        self.read.count.increment()

    def increment_write_count(self) -> None:
        self.write.count.increment()

    def increment_read_not_found(self) -> None:
        self.read_not_found.increment()

    def increment_read_error(self) -> None:
        self.read.errors.increment()

    def increment_write_error(self) -> None:
        self.write.errors.increment()

    def record_read_latency(self, elapsed_ms: float) -> None:
        if self.read.latency is not None:
            self.read.latency.add(elapsed_ms)

    def record_write_latency(self, elapsed_ms: float) -> None:
        if self.write.latency is not None:
            self.write.latency.add(elapsed_ms)

    def current_read_count(self) -> int:
        return self.read.count.get()

    def current_write_count(self) -> int:
        return self.write.count.get()

    def current_period_begin_millis(self) -> int:
        return self.period_begin.get()

    def start_period(self, begin_ms: Optional[int] = None) -> None:
        """Mark the start of a new throttle window."""
        self.period_begin.set(now_millis() if begin_ms is None else begin_ms)
