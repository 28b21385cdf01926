"""Per-interval throughput report. Also rolls the throttle window."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rwbench.counters import CounterStore, now_millis


# ANSI color codes
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    CYAN = '\033[96m'
    RESET = '\033[0m'


def summarize_latencies(samples: list[float]) -> Optional[dict[str, float]]:
    """Min/avg/max and percentiles of latency samples in ms, or None if empty."""
    if not samples:
        return None
    ordered = sorted(samples)
    n = len(ordered)
    return {
        "min": ordered[0],
        "avg": sum(ordered) / n,
        "max": ordered[-1],
        "p50": ordered[int(n * 0.50)],
        "p95": ordered[min(int(n * 0.95), n - 1)],
        "p99": ordered[min(int(n * 0.99), n - 1)],
    }


@dataclass
class Snapshot:
    reads: int = 0
    writes: int = 0
    not_found: int = 0
    read_errors: int = 0
    write_errors: int = 0
    read_latency: list[float] = field(default_factory=list)
    write_latency: list[float] = field(default_factory=list)

    @property
    def transactions(self) -> int:
        return self.reads + self.writes

    def add(self, other: Snapshot) -> None:
        self.reads += other.reads
        self.writes += other.writes
        self.not_found += other.not_found
        self.read_errors += other.read_errors
        self.write_errors += other.write_errors
        self.read_latency.extend(other.read_latency)
        self.write_latency.extend(other.write_latency)


class Reporter:
    def __init__(self, counters: CounterStore, interval: float = 1.0) -> None:
        self.counters = counters
        self.interval = interval
        self.totals = Snapshot()

    def take(self, begin_ms: Optional[int] = None) -> Snapshot:
        """Collect (and reset) the counts of the last window, then start a new one.

        The window moves only after the counts are cleared, so a worker never
        weighs last window's total against the new window's start.
        """
        c = self.counters
        begin = now_millis() if begin_ms is None else begin_ms
        snap = Snapshot(
            reads=c.read.count.get_and_reset(),
            writes=c.write.count.get_and_reset(),
            not_found=c.read_not_found.get_and_reset(),
            read_errors=c.read.errors.get_and_reset(),
            write_errors=c.write.errors.get_and_reset(),
        )
        c.start_period(begin)
        if c.read.latency is not None:
            snap.read_latency = c.read.latency.drain()
        if c.write.latency is not None:
            snap.write_latency = c.write.latency.drain()
        self.totals.add(snap)
        return snap

    def report_once(self) -> Snapshot:
        snap = self.take()
        print(format_line(snap, self.interval))
        if self.counters.latency_enabled:
            for label, samples in (("write", snap.write_latency), ("read", snap.read_latency)):
                stats = summarize_latencies(samples)
                if stats:
                    print(f"  {label} latency (ms): " + format_stats(stats))
        return snap

    def run(self, stop_event: threading.Event) -> None:
        """Report every interval until stop_event is set."""
        self.counters.start_period()
        while not stop_event.wait(self.interval):
            self.report_once()

    def print_summary(self, elapsed: float) -> None:
        t = self.totals
        rate = t.transactions / elapsed if elapsed > 0 else 0.0

        print(f"\n{'='*60}")
        print("Results - READ/UPDATE")
        print(f"{'='*60}")
        print(f"Total time:    {elapsed:.2f}s")
        print(f"Reads:         {t.reads}")
        print(f"Not found:     {t.not_found}")
        print(f"Writes:        {t.writes}")
        errors = t.read_errors + t.write_errors
        color = Colors.RED if errors else Colors.GREEN
        print(f"Errors:        {color}{errors}{Colors.RESET} (read={t.read_errors}, write={t.write_errors})")
        print(f"Achieved rate: {Colors.GREEN}{rate:.1f} tps{Colors.RESET}")
        for label, samples in (("Read", t.read_latency), ("Write", t.write_latency)):
            stats = summarize_latencies(samples)
            if stats:
                print(f"\n{label} latency (ms):")
                for name, value in stats.items():
                    print(f"  {name.upper() + ':':5s} {value:.1f}")
        print(f"{'='*60}\n")


def format_stats(stats: dict[str, float]) -> str:
    return " ".join(f"{name}={value:.1f}" for name, value in stats.items())


def format_line(snap: Snapshot, interval: float = 1.0) -> str:
    def tps(n: int) -> int:
        return int(n / interval) if interval > 0 else n

    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    write_err = f"{Colors.RED}{snap.write_errors}{Colors.RESET}" if snap.write_errors else "0"
    read_err = f"{Colors.RED}{snap.read_errors}{Colors.RESET}" if snap.read_errors else "0"
    return (
        f"{stamp} "
        f"{Colors.YELLOW}write{Colors.RESET}(tps={tps(snap.writes)} errors={write_err}) "
        f"{Colors.CYAN}read{Colors.RESET}(tps={tps(snap.reads)} notfound={snap.not_found} errors={read_err}) "
        f"total(tps={tps(snap.transactions)})"
    )
