"""
Tests for the per-interval reporter in rwbench.reporter.
"""

import threading
from unittest.mock import MagicMock, patch

from rwbench.config import BenchmarkConfig
from rwbench.counters import CounterStore
from rwbench.reporter import Reporter, Snapshot, format_line, summarize_latencies
from rwbench.worker import RWTask


class TestSummarizeLatencies:
    def test_empty(self):
        assert summarize_latencies([]) is None

    def test_percentiles(self):
        stats = summarize_latencies([float(i) for i in range(1, 101)])
        assert stats["min"] == 1.0
        assert stats["max"] == 100.0
        assert stats["avg"] == 50.5
        assert stats["p50"] == 51.0
        assert stats["p95"] == 96.0
        assert stats["p99"] == 100.0

    def test_single_sample(self):
        stats = summarize_latencies([4.0])
        assert stats["p99"] == 4.0


class TestReporter:
    def test_take_resets_counts_and_rolls_window(self):
        counters = CounterStore(latency=True)
        for _ in range(3):
            counters.increment_read_count()
        counters.increment_write_count()
        counters.increment_read_not_found()
        counters.increment_write_error()
        counters.record_read_latency(2.0)
        reporter = Reporter(counters)

        snap = reporter.take(begin_ms=5000)

        assert (snap.reads, snap.writes, snap.not_found, snap.write_errors) == (3, 1, 1, 1)
        assert snap.read_latency == [2.0]
        assert counters.current_period_begin_millis() == 5000
        assert counters.current_read_count() == 0
        assert counters.current_write_count() == 0
        assert counters.write.errors.get() == 0

    def test_totals_accumulate(self):
        counters = CounterStore()
        reporter = Reporter(counters)
        counters.increment_read_count()
        reporter.take()
        counters.increment_read_count()
        counters.increment_write_count()
        reporter.take()

        assert reporter.totals.reads == 2
        assert reporter.totals.writes == 1
        assert reporter.totals.transactions == 3

    def test_report_once_prints_line(self, capsys):
        counters = CounterStore(latency=True)
        counters.increment_write_count()
        counters.record_write_latency(1.0)

        Reporter(counters).report_once()

        out = capsys.readouterr().out
        assert "tps=1" in out
        assert "write latency (ms)" in out

    def test_run_stops_on_event(self):
        counters = CounterStore()
        stop = threading.Event()
        stop.set()

        Reporter(counters, interval=0.01).run(stop)

    def test_print_summary(self, capsys):
        reporter = Reporter(CounterStore())
        reporter.totals = Snapshot(reads=10, writes=10, read_errors=1, read_latency=[1.0, 2.0])

        reporter.print_summary(2.0)

        out = capsys.readouterr().out
        assert "Reads:         10" in out
        assert "10.0 tps" in out
        assert "Read latency (ms):" in out


def test_format_line_scales_by_interval():
    line = format_line(Snapshot(reads=20, writes=10), interval=2.0)
    assert "tps=10" in line
    assert "total(tps=15)" in line


class TestWindowRollover:
    """Tests for how take() and a worker's throttle interleave."""

    def test_throttle_during_take_does_not_sleep_new_window(self):
        counters = CounterStore()
        config = BenchmarkConfig(throughput=100, key_count=10)
        task = RWTask(MagicMock(), config, counters, 0, 10, seed=1)
        task.stop_event = MagicMock()
        counters.start_period(8_000)
        for _ in range(150):
            counters.increment_read_count()

        slept = []
        reset_reads = counters.read.count.get_and_reset

        def throttle_then_reset():
            slept.append(task.throttle())
            return reset_reads()

        counters.read.count.get_and_reset = throttle_then_reset
        with patch("rwbench.worker.now_millis", return_value=10_000):
            snap = Reporter(counters).take(begin_ms=10_000)
            slept.append(task.throttle())

        assert snap.reads == 150
        assert slept == [0, 0]
        task.stop_event.wait.assert_not_called()
        assert counters.current_period_begin_millis() == 10_000
