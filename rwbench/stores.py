"""Pooled store clients exposing get/set by string key."""
from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

import redis
import requests as req
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class StoreError(RuntimeError):
    """The store rejected a request."""


class StoreClient(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class StorePool(Protocol):
    def acquire(self) -> Optional[StoreClient]: ...

    def release(self, client: StoreClient) -> None: ...

    def close(self) -> None: ...


class _LeaseCounter:
    """Caps the number of clients handed out by a pool."""

    def __init__(self, max_clients: int) -> None:
        self.max_clients = max_clients
        self._leased = 0
        self._lock = threading.Lock()

    def take(self) -> bool:
        with self._lock:
            if self._leased >= self.max_clients:
                return False
            self._leased += 1
            return True

    def give_back(self) -> None:
        with self._lock:
            if self._leased > 0:
                self._leased -= 1

    @property
    def leased(self) -> int:
        with self._lock:
            return self._leased


# --- Redis ---


class RedisStorePool:
    """Hands out redis clients that share one connection pool."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        max_clients: int = 16,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._pool = redis.ConnectionPool(
            host=host,
            port=port,
            max_connections=max_clients,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        self._leases = _LeaseCounter(max_clients)

    def acquire(self) -> Optional[redis.Redis]:
        """Return a client, or None when every client is already leased."""
        if not self._leases.take():
            logger.warning("Redis pool exhausted (%d clients leased)", self._leases.max_clients)
            return None
        return redis.Redis(connection_pool=self._pool)

    def release(self, client: redis.Redis) -> None:
        self._leases.give_back()

    def close(self) -> None:
        self._pool.disconnect()


# --- HTTP ---


class HttpStoreClient:
    """Client for a REST key-value store serving GET/PUT on /kv/<key>."""

    def __init__(self, session: req.Session, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, key: str) -> str:
        return f"{self.base_url}/kv/{key}"

    def get(self, key: str) -> Optional[str]:
        response = self.session.get(self._url(key), timeout=self.timeout)
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StoreError(f"GET {key}: HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict):
            value = data.get("value")
            return None if value is None else str(value)
        return str(data)

    def set(self, key: str, value: str) -> None:
        response = self.session.put(self._url(key), json={"value": value}, timeout=self.timeout)
        if response.status_code not in (200, 201, 204):
            raise StoreError(f"PUT {key}: HTTP {response.status_code}")


class HttpStorePool:
    """Hands out HTTP clients that share one pooled requests session."""

    def __init__(
        self,
        base_url: str,
        max_clients: int = 16,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = req.Session()
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=max_clients)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        if headers:
            self.session.headers.update(headers)
        self._leases = _LeaseCounter(max_clients)

    def acquire(self) -> Optional[HttpStoreClient]:
        if not self._leases.take():
            logger.warning("HTTP pool exhausted (%d clients leased)", self._leases.max_clients)
            return None
        return HttpStoreClient(self.session, self.base_url, self.timeout)

    def release(self, client: HttpStoreClient) -> None:
        self._leases.give_back()

    def close(self) -> None:
        self.session.close()


def create_pool(store: str, host: str, port: int, url: Optional[str], max_clients: int) -> StorePool:
    """Build the pool for the --store option."""
    if store == "redis":
        return RedisStorePool(host=host, port=port, max_clients=max_clients)
    if store == "http":
        return HttpStorePool(url or f"http://{host}:{port}", max_clients=max_clients)
    raise ValueError(f"Unknown store '{store}'")
