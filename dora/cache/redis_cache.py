"""Remote cache stored in a Redis server."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any, Union

import redis

logger = logging.getLogger(__name__)

Expiration = Union[int, float, timedelta, None]

_UINT64_MAX = 2**64 - 1
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _expiration_ms(expiration: Expiration) -> int | None:
    if isinstance(expiration, timedelta):
        seconds = expiration.total_seconds()
    else:
        seconds = float(expiration or 0)
    if seconds <= 0:
        return None
    return max(1, int(seconds * 1000))


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean value: {text!r}")


def _parse_uint64(text: str) -> int:
    if not text or not text.isascii() or not text.isdigit():
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


class RedisCache:
    """Typed get/set access to a Redis client, with every key prefixed."""

    def __init__(self, client: Any, key_prefix: str = "") -> None:
        self._client = client
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _store(self, key: str, value: Union[str, bytes], expiration: Expiration) -> None:
        self._client.set(self._key(key), value, px=_expiration_ms(expiration))

    def _load(self, key: str) -> bytes:
        raw = self._client.get(self._key(key))
        if raw is None:
            raise KeyError(key)
        if isinstance(raw, str):
            return raw.encode()
        return bytes(raw)

    def set_string(self, key: str, value: str, expiration: Expiration = 0) -> None:
        self._store(key, value, expiration)

    def get_string(self, key: str) -> str:
        return self._load(key).decode()

    def set_uint64(self, key: str, value: int, expiration: Expiration = 0) -> None:
        if not 0 <= value <= _UINT64_MAX:
            raise ValueError(f"value out of range for uint64: {value}")
        self._store(key, str(int(value)), expiration)

    def get_uint64(self, key: str) -> int:
        return _parse_uint64(self.get_string(key))

    def set_bool(self, key: str, value: bool, expiration: Expiration = 0) -> None:
        self._store(key, "true" if value else "false", expiration)

    def get_bool(self, key: str) -> bool:
        return _parse_bool(self.get_string(key))

    def set_bytes(self, key: str, value: bytes, expiration: Expiration = 0) -> None:
        self._store(key, bytes(value), expiration)

    def get_bytes(self, key: str) -> bytes:
        return self._load(key)

    def set(self, key: str, value: Any, expiration: Expiration = 0) -> None:
        """Store ``value`` encoded as JSON."""
        self._store(key, json.dumps(value, separators=(",", ":")), expiration)

    def get(self, key: str) -> Any:
        """Return the JSON value under ``key``; an undecodable entry is deleted."""
        raw = self._load(key)
        try:
            return json.loads(raw)
        except ValueError as exc:
            self._client.delete(self._key(key))
            logger.error("error unmarshalling data for key %s: %s", key, exc)
            raise


def init_redis_cache(address: str, key_prefix: str = "") -> RedisCache:
    """Connect to the Redis server at ``host:port`` and check it answers."""
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = address, "6379"
    client = redis.Redis(
        host=host or "localhost",
        port=int(port),
        socket_timeout=20,
        socket_connect_timeout=5,
    )
    client.ping()
    return RedisCache(client, key_prefix)