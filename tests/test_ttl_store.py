import pytest

from lms.common.cache import CacheService
from lms.common.rate_limit import RateLimiter
from lms.common.ttl_store import InMemoryTTLStore
from lms.errors import TooManyRequestsError


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryTTLStore(clock=clock)


def test_value_expires_after_ttl(store, clock):
    store.set("k", "v", 10)
    assert store.get("k") == "v"
    clock.advance(9.9)
    assert store.get("k") == "v"
    clock.advance(0.1)
    assert store.get("k") is None


def test_delete_prefix_only_touches_matching_keys(store):
    store.set("courses:public:list", [1], 60)
    store.set("courses:public:slug:a", {"id": 1}, 60)
    store.set("otp:attempts:a@example.com", 1, 60)

    assert store.delete_prefix("courses:") == 2
    assert store.get("courses:public:list") is None
    assert store.get("otp:attempts:a@example.com") == 1


async def test_cache_wrap_loads_once_until_invalidated(store):
    cache = CacheService(store)
    calls = []

    async def loader():
        calls.append(1)
        return {"n": len(calls)}

    assert await cache.wrap("courses:x", loader, 60) == {"n": 1}
    assert await cache.wrap("courses:x", loader, 60) == {"n": 1}
    assert len(calls) == 1

    cache.delete_prefix("courses:")
    assert await cache.wrap("courses:x", loader, 60) == {"n": 2}


async def test_cache_does_not_store_loader_errors(store):
    cache = CacheService(store)

    async def failing():
        raise LookupError("boom")

    with pytest.raises(LookupError):
        await cache.wrap("courses:y", failing, 60)
    assert store.get("courses:y") is None


def test_rate_limiter_blocks_after_max_calls(store, clock):
    limiter = RateLimiter(max_calls=3, window_seconds=60, store=store)
    for _ in range(3):
        limiter.hit("7:/payments/1/upload-slip")

    with pytest.raises(TooManyRequestsError):
        limiter.hit("7:/payments/1/upload-slip")

    # other users are counted separately
    limiter.hit("8:/payments/1/upload-slip")

    clock.advance(61)
    limiter.hit("7:/payments/1/upload-slip")


def test_rate_limiter_window_is_not_extended_by_later_calls(store, clock):
    limiter = RateLimiter(max_calls=10, window_seconds=60, store=store, clock=clock)

    # one call every 50s never puts 10 calls inside a single minute
    for _ in range(11):
        limiter.hit("7:/payments/1/upload-slip")
        clock.advance(50)


def test_rate_limiter_window_counts_from_first_call(store, clock):
    limiter = RateLimiter(max_calls=3, window_seconds=60, store=store, clock=clock)
    limiter.hit("7:/payments/1/upload-slip")
    clock.advance(30)
    limiter.hit("7:/payments/1/upload-slip")
    limiter.hit("7:/payments/1/upload-slip")
    with pytest.raises(TooManyRequestsError):
        limiter.hit("7:/payments/1/upload-slip")

    clock.advance(30)
    limiter.hit("7:/payments/1/upload-slip")
