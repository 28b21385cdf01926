"""Read/write worker loop.

Each worker owns one key partition ``[key_start, key_start + key_count)`` and a
private random source, and issues transactions against a pooled store client
until its stop event is set. With no stop event the loop never ends.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable, Optional

from rwbench.config import BenchmarkConfig, Workload
from rwbench.counters import CounterStore, now_millis
from rwbench.stores import StoreClient, StorePool

logger = logging.getLogger(__name__)

NOT_IMPLEMENTED = "%s(): not implemented"


def make_seed(index: int) -> int:
    """Seed from the high-resolution clock mixed with the worker index.

    Workers started in the same instant would otherwise share a seed and
    hammer the same keys.
    """
    return time.perf_counter_ns() ^ (index * 0x9E3779B97F4A7C15)


class RWTask:
    def __init__(
        self,
        pool: StorePool,
        config: BenchmarkConfig,
        counters: CounterStore,
        key_start: int,
        key_count: int,
        seed: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
        index: int = 0,
    ) -> None:
        self.pool = pool
        self.config = config
        self.counters = counters
        self.key_start = key_start
        self.key_count = key_count
        self.index = index
        self.random = random.Random(make_seed(index) if seed is None else seed)
        self.stop_event = stop_event or threading.Event()

        self.read_pct = config.read_pct
        self.read_multi_bin_pct = config.read_multi_bin_pct
        self.write_multi_bin_pct = config.write_multi_bin_pct

        self._in_flight: Optional[str] = None
        self._dispatch: dict[Workload, Callable[[StoreClient], None]] = {
            Workload.READ_UPDATE: self.read_update,
            Workload.READ_MODIFY_UPDATE: self.read_modify_update,
            Workload.READ_MODIFY_INCREMENT: self.read_modify_increment,
            Workload.READ_MODIFY_DECREMENT: self.read_modify_decrement,
            Workload.READ_FROM_FILE: self.read_from_file,
        }

    def run(self) -> None:
        if self.config.validate:
            self.setup_validation()

        try:
            client = self.pool.acquire()
        except Exception as e:
            logger.error("Worker %d: failed to get a client from the pool: %s", self.index, e)
            return
        if client is None:
            logger.error("Worker %d: no client available from the pool", self.index)
            return

        logger.debug("Worker %d started on keys [%d, %d)",
                     self.index, self.key_start, self.key_start + self.key_count)
        try:
            while not self.stop_event.is_set():
                self.run_once(client)
        finally:
            self.pool.release(client)

    def run_once(self, client: StoreClient) -> None:
        """Execute one transaction, then throttle."""
        self._in_flight = None
        try:
            self._dispatch[self.config.workload](client)
        except Exception as e:
            if self._in_flight == "write":
                self.record_write_failure(e)
            elif self._in_flight == "read":
                self.record_read_failure(e)
            else:
                self._log_failure("Transaction", e)

        self.throttle()

    def throttle(self) -> int:
        """Sleep out the rest of the window once the cap is exceeded.

        Returns the milliseconds slept. The window itself is rolled by the
        reporter; workers only read ``period_begin``.
        """
        if self.config.throughput <= 0:
            return 0

        transactions = self.counters.current_write_count() + self.counters.current_read_count()
        if transactions > self.config.throughput:
            millis = self.counters.current_period_begin_millis() + 1000 - now_millis()
            if millis > 0:
                self.stop_event.wait(millis / 1000.0)
                return millis
        return 0

    # --- Workloads ---

    def read_update(self, client: StoreClient) -> None:
        rng = self.random
        if rng.random() < self.read_pct:
            self._in_flight = "read"
            is_multi_bin = rng.random() < self.read_multi_bin_pct

            if self.config.batch_size <= 1:
                self.do_read(client, rng.randrange(self.key_count))
            else:
                self.do_read_batch(client, is_multi_bin)
        else:
            self._in_flight = "write"
            is_multi_bin = rng.random() < self.write_multi_bin_pct

            if self.config.batch_size <= 1:
                self.do_write(client, rng.randrange(self.key_count), is_multi_bin)
            else:
                # No batch write in the store: issue batch_size single writes.
                for _ in range(self.config.batch_size):
                    self.do_write(client, rng.randrange(self.key_count), is_multi_bin)

    def read_modify_update(self, client: StoreClient) -> None:
        logger.warning(NOT_IMPLEMENTED, "read_modify_update")

    def read_modify_increment(self, client: StoreClient) -> None:
        logger.warning(NOT_IMPLEMENTED, "read_modify_increment")

    def read_modify_decrement(self, client: StoreClient) -> None:
        logger.warning(NOT_IMPLEMENTED, "read_modify_decrement")

    def read_from_file(self, client: StoreClient) -> None:
        logger.warning(NOT_IMPLEMENTED, "read_from_file")

    def setup_validation(self) -> None:
        logger.warning(NOT_IMPLEMENTED, "setup_validation")

    # --- Single operations ---

    def key_for(self, key_idx: int) -> str:
        return str(self.key_start + key_idx)

    def do_write(self, client: StoreClient, key_idx: int, multi_bin: bool) -> None:
        key = self.key_for(key_idx)
        bins = self.config.bin_generator.generate(self.random, multi_bin)
        # The store holds one scalar per key; only the first bin is written.
        value = str(bins[0][1])

        try:
            if self.counters.write.latency is not None:
                begin = time.perf_counter()
                client.set(key, value)
                elapsed = (time.perf_counter() - begin) * 1000
                self.counters.increment_write_count()
                self.counters.record_write_latency(elapsed)
            else:
                client.set(key, value)
                self.counters.increment_write_count()
        except Exception as e:
            self.record_write_failure(e)

    def do_read(self, client: StoreClient, key_idx: int) -> None:
        key = self.key_for(key_idx)
        try:
            if self.counters.read.latency is not None:
                begin = time.perf_counter()
                value = client.get(key)
                elapsed = (time.perf_counter() - begin) * 1000
                self.counters.record_read_latency(elapsed)
            else:
                value = client.get(key)

            if value is None and self.config.report_not_found:
                self.counters.increment_read_not_found()
            else:
                self.counters.increment_read_count()
        except Exception as e:
            self.record_read_failure(e)

    def do_read_batch(self, client: StoreClient, multi_bin: bool) -> None:
        logger.warning(NOT_IMPLEMENTED, "do_read_batch")

    # --- Failures ---

    def record_write_failure(self, e: BaseException) -> None:
        self.counters.increment_write_error()
        self._log_failure("Write", e)

    def record_read_failure(self, e: BaseException) -> None:
        self.counters.increment_read_error()
        self._log_failure("Read", e)

    def _log_failure(self, what: str, e: BaseException) -> None:
        if self.config.debug:
            logger.error("%s failure on worker %d", what, self.index, exc_info=e)
        else:
            logger.warning("%s failure - %s: %s", what, type(e).__name__, e)
