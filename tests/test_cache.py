"""Tests for the content cache."""

import pytest

from cert_verifier.cache import ContentCache

URI = "ipfs://bafy1"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestContentCache:
    """Tests for ContentCache."""

    def test_put_and_get(self, clock):
        cache = ContentCache(ttl=10, clock=clock)
        cache.put(1, URI, {"name": "A"}, "0xabc")

        cached = cache.get(1, URI)

        assert cached.content == {"name": "A"}
        assert cached.computed_hash == "0xabc"

    def test_keyed_by_locator(self, clock):
        cache = ContentCache(ttl=10, clock=clock)
        cache.put(1, URI, {"name": "A"}, "0xabc")
        assert cache.get(1, "ipfs://bafy2") is None
        assert cache.get(2, URI) is None

    def test_expires_after_ttl(self, clock):
        cache = ContentCache(ttl=10, clock=clock)
        cache.put(1, URI, {}, "0xabc")
        clock.now = 9.9
        assert cache.get(1, URI) is not None
        clock.now = 10.0
        assert cache.get(1, URI) is None
        assert len(cache) == 0

    def test_invalidate_drops_every_locator(self, clock):
        cache = ContentCache(ttl=10, clock=clock)
        cache.put(1, URI, {}, "0x1")
        cache.put(1, "ipfs://bafy2", {}, "0x2")
        cache.put(2, URI, {}, "0x3")

        cache.invalidate(1)

        assert len(cache) == 1
        assert cache.get(2, URI) is not None
        cache.clear()
        assert len(cache) == 0

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            ContentCache(ttl=0)
