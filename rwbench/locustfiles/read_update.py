"""Read/update workload driven by Locust users.

Each user leases one store client, takes its own key partition and runs one
worker transaction per task. Store calls are reported as Locust requests.
"""
from __future__ import annotations

import logging
import os
import threading
from itertools import count

from locust import User, constant, events, task
from locust.exception import StopUser

from rwbench.counters import CounterStore
from rwbench.instrumented import InstrumentedClient
from rwbench.reporter import Reporter
from rwbench.run_benchmark import (
    args_from_env,
    config_from_args,
    partition_for_user,
    partition_keys,
)
from rwbench.stores import create_pool
from rwbench.worker import RWTask

logger = logging.getLogger("rwbench.locustfiles.read_update")

_counter = count()
_args = args_from_env(os.environ)
_config = config_from_args(_args)
_partitions = partition_keys(_config.key_start, _config.key_count, _args.users)
_counters = CounterStore(latency=_config.latency)
_pool = create_pool(_args.store, _args.host, _args.port, _args.url, _args.users)
_stop = threading.Event()


def _roll_windows() -> None:
    # Locust prints its own stats; the reporter only resets the window here.
    reporter = Reporter(_counters)
    while not _stop.wait(reporter.interval):
        reporter.take()


@events.test_start.add_listener
def on_test_start(environment, **kwargs) -> None:
    _counters.start_period()
    threading.Thread(target=_roll_windows, daemon=True).start()


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs) -> None:
    _stop.set()


class ReadUpdateUser(User):
    wait_time = constant(0)

    def on_start(self) -> None:
        self.client = None
        self._user_id: int = next(_counter)
        partition = partition_for_user(_partitions, self._user_id)
        if partition is None:
            logger.error("User %d: all %d key partitions are taken", self._user_id, len(_partitions))
            raise StopUser()

        key_start, key_count = partition
        self.worker = RWTask(_pool, _config, _counters, key_start, key_count,
                             stop_event=_stop, index=self._user_id)
        if _config.validate:
            self.worker.setup_validation()

        self.client = _pool.acquire()
        if self.client is None:
            logger.error("User %d: no client available from the pool", self._user_id)
            raise StopUser()
        self.instrumented = InstrumentedClient(self.client, self.environment.events)

    def on_stop(self) -> None:
        if self.client is not None:
            _pool.release(self.client)

    @task
    def transaction(self) -> None:
        self.worker.run_once(self.instrumented)
