"""Cache combining a bounded in-process store with an optional remote cache."""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Optional, Union

from redis.exceptions import RedisError

from .redis_cache import init_redis_cache

logger = logging.getLogger(__name__)

Expiration = Union[int, float, timedelta, None]

_MIN_CAPACITY = 512 * 1024
_ENTRY_HEADER = 24


class CacheMiss(KeyError):
    """The key is not in the cache."""


def _seconds(expiration: Expiration) -> float:
    if isinstance(expiration, timedelta):
        return expiration.total_seconds()
    return float(expiration or 0)


class _LocalCache:
    """Byte-bounded store; the oldest entries are dropped when it is full."""

    def __init__(self, size_bytes: int) -> None:
        self._capacity = max(size_bytes, _MIN_CAPACITY)
        self._max_entry = self._capacity // 1024 - _ENTRY_HEADER
        self._entries: OrderedDict[str, tuple[bytes, int]] = OrderedDict()
        self._used = 0

    @staticmethod
    def _size(key: str, value: bytes) -> int:
        return len(key.encode()) + len(value) + _ENTRY_HEADER

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._used -= self._size(key, entry[0])

    def set(self, key: str, value: bytes, expire_seconds: int) -> bool:
        if len(key.encode()) + len(value) > self._max_entry:
            return False
        self._remove(key)
        expires_at = int(time.time()) + expire_seconds if expire_seconds > 0 else 0
        self._entries[key] = (value, expires_at)
        self._used += self._size(key, value)
        while self._used > self._capacity:
            oldest_key, (oldest_value, _) = self._entries.popitem(last=False)
            self._used -= self._size(oldest_key, oldest_value)
        return True

    def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at and expires_at <= int(time.time()):
            self._remove(key)
            return None
        return value


def _decode(raw: Union[bytes, str]) -> dict:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("cached entry is not a JSON object")
    return data


class TieredCache:
    """Local cache in front of a remote one.

    The remote cache, if given, needs ``set_bytes(key, value, expiration)``
    and ``get(key)`` returning the decoded JSON entry.
    """

    def __init__(self, cache_size: int, remote_cache: Any = None) -> None:
        self._local = _LocalCache(cache_size * 1024 * 1024)
        self._remote = remote_cache

    def set(self, key: str, value: Any, expiration: Expiration = 0) -> None:
        seconds = _seconds(expiration)
        timeout = int(time.time() + seconds) if seconds > 0 else 0
        payload = json.dumps({"i": 1, "t": timeout, "v": value}, separators=(",", ":")).encode()
        self._local.set(key, payload, int(seconds))
        if self._remote is not None:
            self._remote.set_bytes(key, payload, expiration)

    def get(self, key: str) -> Any:
        raw = self._local.get(key)
        if raw is not None:
            try:
                return _decode(raw).get("v")
            except ValueError as exc:
                logger.error("error unmarshalling data for key %s: %s", key, exc)
                raise

        if self._remote is None:
            raise CacheMiss(key)

        data = self._remote.get(key)
        if not isinstance(data, dict):
            raise ValueError(f"cached entry for {key!r} is not a JSON object")

        timeout = int(data.get("t") or 0)
        now = int(time.time())
        if timeout == 0 or timeout > now + 2:
            payload = json.dumps(data, separators=(",", ":")).encode()
            self._local.set(key, payload, 0 if timeout == 0 else timeout - now)
        return data.get("v")


def new_tiered_cache(cache_size: int, redis_address: str = "", redis_prefix: str = "") -> TieredCache:
    """Build a tiered cache of ``cache_size`` MB, backed by Redis if an address is given."""
    remote = None
    if redis_address:
        try:
            remote = init_redis_cache(redis_address, redis_prefix)
        except (RedisError, OSError, ValueError):
            logger.exception("error initializing remote redis cache. address: %s", redis_address)
            raise
    return TieredCache(cache_size, remote)