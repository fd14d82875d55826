"""
Tests for the TTL result cache.
"""

from cepfinder.cache import ResultCache
from cepfinder.models import Failure


def test_get_missing_returns_none(clock):
    cache = ResultCache(ttl_s=300, clock=clock)
    assert cache.get("01001000") is None


def test_entry_lives_until_ttl(clock):
    cache = ResultCache(ttl_s=300, clock=clock)
    cache.put("01001000", {"A": Failure("A", "HTTP 500")})

    clock.advance(300)

    assert cache.get("01001000") == {"A": Failure("A", "HTTP 500")}


def test_stale_entry_is_dropped_on_read(clock):
    cache = ResultCache(ttl_s=300, clock=clock)
    cache.put("01001000", {"A": Failure("A", "HTTP 500")})

    clock.advance(300.5)

    assert "01001000" in cache
    assert cache.get("01001000") is None
    assert "01001000" not in cache
    assert len(cache) == 0


def test_put_replaces_and_restarts_ttl(clock):
    cache = ResultCache(ttl_s=10, clock=clock)
    cache.put("01001000", {"A": Failure("A", "old")})
    clock.advance(8)
    cache.put("01001000", {"A": Failure("A", "new")})
    clock.advance(8)

    assert cache.get("01001000")["A"].reason == "new"


def test_values_are_copied(clock):
    cache = ResultCache(ttl_s=300, clock=clock)
    mapping = {"A": Failure("A", "x")}
    cache.put("01001000", mapping)

    mapping["B"] = Failure("B", "y")
    cache.get("01001000")["C"] = Failure("C", "z")

    assert list(cache.get("01001000")) == ["A"]


def test_clear(clock):
    cache = ResultCache(ttl_s=300, clock=clock)
    cache.put("01001000", {})
    cache.put("20040002", {})

    cache.clear()

    assert len(cache) == 0
