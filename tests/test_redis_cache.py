from datetime import timedelta

import pytest
import redis

from dora.cache.redis_cache import RedisCache, init_redis_cache


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.px = {}

    def set(self, name, value, px=None):
        if isinstance(value, str):
            value = value.encode()
        self.data[name] = bytes(value)
        self.px[name] = px
        return True

    def get(self, name):
        return self.data.get(name)

    def delete(self, *names):
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def client():
    return FakeRedis()


@pytest.fixture
def cache(client):
    return RedisCache(client, "pfx:")


def test_string_round_trip_uses_prefix(cache, client):
    cache.set_string("name", "value")
    assert cache.get_string("name") == "value"
    assert client.data["pfx:name"] == b"value"


def test_missing_key_raises_key_error(cache):
    with pytest.raises(KeyError):
        cache.get_string("absent")


def test_uint64_round_trip(cache, client):
    cache.set_uint64("n", 42)
    assert client.data["pfx:n"] == b"42"
    assert cache.get_uint64("n") == 42


def test_uint64_rejects_negative(cache):
    with pytest.raises(ValueError):
        cache.set_uint64("n", -1)


@pytest.mark.parametrize("stored", ["abc", "-5", "18446744073709551616", ""])
def test_get_uint64_rejects_bad_text(cache, stored):
    cache.set_string("n", stored)
    with pytest.raises(ValueError):
        cache.get_uint64("n")


@pytest.mark.parametrize("flag", [True, False])
def test_bool_round_trip(cache, flag):
    cache.set_bool("flag", flag)
    assert cache.get_bool("flag") is flag


def test_bool_is_stored_as_word(cache, client):
    cache.set_bool("flag", True)
    assert cache.get_string("flag") == "true"
    assert client.data["pfx:flag"] == b"true"


@pytest.mark.parametrize("stored,expected", [("T", True), ("1", True), ("0", False), ("FALSE", False)])
def test_get_bool_accepts_spellings(cache, stored, expected):
    cache.set_string("flag", stored)
    assert cache.get_bool("flag") is expected


def test_get_bool_rejects_other_words(cache):
    cache.set_string("flag", "yes")
    with pytest.raises(ValueError):
        cache.get_bool("flag")


def test_bytes_round_trip(cache):
    cache.set_bytes("raw", b"\x00\xffdata")
    assert cache.get_bytes("raw") == b"\x00\xffdata"


def test_json_round_trip(cache):
    value = {"a": [1, 2, 3], "b": None, "c": "text"}
    cache.set("obj", value)
    assert cache.get("obj") == value


def test_invalid_json_is_deleted(cache, client):
    cache.set_string("obj", "{broken")
    with pytest.raises(ValueError):
        cache.get("obj")
    assert "pfx:obj" not in client.data


def test_expiration_is_passed_in_milliseconds(cache, client):
    cache.set_string("a", "x", timedelta(milliseconds=1500))
    cache.set_string("b", "y", 0)
    assert cache.get_string("a") == "x"
    assert cache.get_string("b") == "y"
    assert client.px["pfx:a"] == 1500
    assert client.px["pfx:b"] is None


def test_init_redis_cache_fails_when_unreachable():
    with pytest.raises(redis.exceptions.ConnectionError):
        init_redis_cache("127.0.0.1:1", "pfx:")