"""Store client wrapper that reports every call as a locust request event."""
from __future__ import annotations

import time
from typing import Any, Optional

from rwbench.stores import StoreClient


class InstrumentedClient:
    """Fires ``events.request`` for each get/set, then returns or re-raises.

    Failures are re-raised so the worker still counts them itself.
    """

    def __init__(self, client: StoreClient, events: Any, name_prefix: str = "kv") -> None:
        self.client = client
        self.events = events
        self.name_prefix = name_prefix

    def _fire(self, request_type: str, start: float, length: int, exception: Optional[BaseException]) -> None:
        self.events.request.fire(
            request_type=request_type,
            name=f"{self.name_prefix} {request_type}",
            response_time=(time.perf_counter() - start) * 1000,
            response_length=length,
            exception=exception,
            context={},
        )

    def get(self, key: str) -> Optional[str]:
        start = time.perf_counter()
        try:
            value = self.client.get(key)
        except Exception as e:
            self._fire("GET", start, 0, e)
            raise
        self._fire("GET", start, len(value) if value is not None else 0, None)
        return value

    def set(self, key: str, value: str) -> None:
        start = time.perf_counter()
        try:
            self.client.set(key, value)
        except Exception as e:
            self._fire("SET", start, 0, e)
            raise
        self._fire("SET", start, len(value), None)
