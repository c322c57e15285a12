import asyncio
from datetime import datetime, timezone
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from conftest import UnreachableStore
from services.store import InMemoryStore
from utils.rate_limiter import QuotaRateLimiter


class FlakyStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.down = False

    async def get(self, key):
        if self.down:
            raise RedisConnectionError("Connection refused")
        return await super().get(key)

    async def put(self, key, value):
        if self.down:
            raise RedisConnectionError("Connection refused")
        await super().put(key, value)


@pytest.mark.asyncio
class TestQuotaRateLimiter:
    """Tests for the per-source hard call quota."""

    async def test_denies_call_after_limit(self, clock):
        limiter = QuotaRateLimiter("state", 3, period_seconds=3600, clock=clock)

        results = [await limiter.try_acquire() for _ in range(3)]
        assert [r.allowed for r in results] == [True, True, True]
        assert [r.remaining for r in results] == [2, 1, 0]

        denied = await limiter.try_acquire()
        assert denied.allowed is False
        assert denied.remaining == 0
        assert limiter.state.calls_used == 3

    async def test_rollover_resets_counter(self, clock):
        limiter = QuotaRateLimiter("state", 2, period_seconds=100, clock=clock)
        await limiter.try_acquire()
        await limiter.try_acquire()
        assert (await limiter.try_acquire()).allowed is False

        clock.advance(100)
        result = await limiter.try_acquire()

        assert result.allowed is True
        assert limiter.state.calls_used == 1

    async def test_rollover_advances_period_start_by_whole_periods(self, clock):
        start = clock()
        limiter = QuotaRateLimiter("federal", 5, period_seconds=100, clock=clock)
        await limiter.try_acquire()

        clock.advance(350)
        await limiter.try_acquire()

        assert limiter.state.period_start == start + 300

    async def test_concurrent_callers_never_exceed_limit(self, clock):
        limiter = QuotaRateLimiter("state", 10, period_seconds=3600, clock=clock)

        results = await asyncio.gather(*(limiter.try_acquire() for _ in range(50)))

        assert sum(1 for r in results if r.allowed) == 10
        assert limiter.state.calls_used == 10

    async def test_zero_limit_always_denies(self, clock):
        limiter = QuotaRateLimiter("state", 0, clock=clock)
        assert (await limiter.try_acquire()).allowed is False

    async def test_calendar_month_period(self):
        moment = datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc).timestamp()
        now = {"t": moment}
        limiter = QuotaRateLimiter("state", 1, clock=lambda: now["t"])

        assert (await limiter.try_acquire()).allowed is True
        assert (await limiter.try_acquire()).allowed is False
        assert limiter.period_end() == datetime(2025, 2, 1, tzinfo=timezone.utc).timestamp()

        now["t"] = datetime(2025, 2, 1, 0, 1, tzinfo=timezone.utc).timestamp()
        assert (await limiter.try_acquire()).allowed is True
        assert limiter.state.period_start == datetime(2025, 2, 1, tzinfo=timezone.utc).timestamp()

    async def test_december_rolls_into_next_year(self):
        moment = datetime(2025, 12, 15, tzinfo=timezone.utc).timestamp()
        limiter = QuotaRateLimiter("state", 1, clock=lambda: moment)
        assert limiter.period_end() == datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp()

    async def test_state_persists_across_instances(self, clock):
        store = InMemoryStore()
        first = QuotaRateLimiter("state", 2, period_seconds=3600, clock=clock, store=store)
        await first.try_acquire()
        await first.try_acquire()

        second = QuotaRateLimiter("state", 2, period_seconds=3600, clock=clock, store=store)
        result = await second.try_acquire()

        assert result.allowed is False
        assert second.state.calls_used == 2

    async def test_unreachable_store_keeps_counting_locally(self, clock):
        store = UnreachableStore()
        limiter = QuotaRateLimiter("state", 2, period_seconds=3600, clock=clock, store=store)

        results = [await limiter.try_acquire() for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert limiter.state.calls_used == 2

    async def test_store_recovery_keeps_higher_count(self, clock):
        store = FlakyStore()
        await store.put("quota:state", {"source": "state", "hard_limit": 5, "calls_used": 1, "period_start": clock()})
        store.down = True
        limiter = QuotaRateLimiter("state", 5, period_seconds=3600, clock=clock, store=store)

        await limiter.try_acquire()
        await limiter.try_acquire()
        store.down = False
        await limiter.try_acquire()

        # The higher of the stored and local counts survives the reload.
        assert limiter.state.calls_used == 3
        assert (await store.get("quota:state"))["calls_used"] == 3

    async def test_usage_reports_alert_level(self, clock):
        limiter = QuotaRateLimiter("state", 20, period_seconds=3600, clock=clock)
        for _ in range(17):
            await limiter.try_acquire()

        usage = limiter.usage()

        assert usage["calls_used"] == 17
        assert usage["remaining"] == 3
        assert usage["quota_percentage"] == 85.0
        assert usage["alert_status"] == "high"
        assert usage["resets_at"] == usage["period_start"] + 3600


class TestQuotaConfiguration:
    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            QuotaRateLimiter("state", -1)
        with pytest.raises(ValueError):
            QuotaRateLimiter("state", 10, period_seconds=0)
