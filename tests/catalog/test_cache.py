import anyio
import pytest

from haute_garonne_mcp.catalog.cache import TTLCache

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    def __init__(self, delay: float = 0) -> None:
        self.calls = 0
        self.delay = delay
        self.fail = False

    async def __call__(self) -> str:
        self.calls += 1
        if self.delay:
            await anyio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("upstream down")
        return f"value-{self.calls}"


async def test_first_call_fetches_and_stores_timestamp():
    clock = FakeClock()
    fetcher = CountingFetcher()
    cache = TTLCache(fetcher, ttl=300, clock=clock)

    assert cache.value is None
    assert await cache.get_or_refresh() == "value-1"
    assert cache.value == "value-1"
    assert cache.fetched_at == 1000.0


async def test_value_is_reused_until_ttl_elapses():
    clock = FakeClock()
    fetcher = CountingFetcher()
    cache = TTLCache(fetcher, ttl=300, clock=clock)

    await cache.get_or_refresh()
    clock.now += 299.9
    assert await cache.get_or_refresh() == "value-1"
    assert fetcher.calls == 1

    clock.now += 0.1
    assert await cache.get_or_refresh() == "value-2"
    assert fetcher.calls == 2
    assert cache.fetched_at == clock.now


async def test_failed_refresh_propagates_and_keeps_previous_value():
    clock = FakeClock()
    fetcher = CountingFetcher()
    cache = TTLCache(fetcher, ttl=10, clock=clock)
    await cache.get_or_refresh()

    clock.now += 10
    fetcher.fail = True
    with pytest.raises(RuntimeError, match="upstream down"):
        await cache.get_or_refresh()
    assert cache.value == "value-1"
    assert cache.fetched_at == 1000.0

    fetcher.fail = False
    assert await cache.get_or_refresh() == "value-3"


async def test_concurrent_refreshes_share_one_fetch():
    fetcher = CountingFetcher(delay=0.05)
    cache = TTLCache(fetcher, ttl=300)
    results: list[str] = []

    async def get() -> None:
        results.append(await cache.get_or_refresh())

    async with anyio.create_task_group() as tg:
        for _ in range(10):
            tg.start_soon(get)

    assert fetcher.calls == 1
    assert results == ["value-1"] * 10


async def test_invalidate_forces_refetch():
    fetcher = CountingFetcher()
    cache = TTLCache(fetcher, ttl=300, clock=FakeClock())
    await cache.get_or_refresh()
    cache.invalidate()
    assert not cache.is_fresh()
    assert await cache.get_or_refresh() == "value-2"
