import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Dict, Any
from config import logger, QUOTA_ALERTS
from exceptions import STORE_ERRORS
from models.health import QuotaState, AcquireResult

def _month_start(ts: float) -> float:
    moment = datetime.fromtimestamp(ts, tz=timezone.utc)
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0).timestamp()

def _next_month_start(period_start: float) -> float:
    moment = datetime.fromtimestamp(period_start, tz=timezone.utc)
    if moment.month == 12:
        nxt = moment.replace(year=moment.year + 1, month=1)
    else:
        nxt = moment.replace(month=moment.month + 1)
    return nxt.timestamp()

class QuotaRateLimiter:
    """Hard per-period call budget for one upstream source.

    ``try_acquire`` never waits for capacity: it answers allow/deny
    immediately. Every allowed acquisition is counted, whatever the outcome
    of the remote call, because the provider bills attempts rather than
    successes. ``period_seconds=None`` selects calendar-month periods (UTC).

    An optional ``store`` (async ``get``/``put``) persists the QuotaState so
    the count survives restarts.
    """

    def __init__(
        self,
        source: str,
        hard_limit: int,
        period_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        store=None,
    ):
        if hard_limit < 0:
            raise ValueError("hard_limit must be non-negative")
        if period_seconds is not None and period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.source = source
        self.hard_limit = hard_limit
        self.period_seconds = period_seconds
        self._clock = clock
        self._store = store
        self._state = QuotaState(source=source, hard_limit=hard_limit, period_start=self._period_start_for(clock()))
        self._loaded = store is None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> QuotaState:
        return self._state

    @property
    def store_key(self) -> str:
        return f"quota:{self.source}"

    def _period_start_for(self, now: float) -> float:
        if self.period_seconds is None:
            return _month_start(now)
        return now

    def period_end(self) -> float:
        if self.period_seconds is None:
            return _next_month_start(self._state.period_start)
        return self._state.period_start + self.period_seconds

    def _roll_over_if_due(self, now: float) -> None:
        if now < self.period_end():
            return
        if self.period_seconds is None:
            new_start = _month_start(now)
        else:
            elapsed_periods = int((now - self._state.period_start) // self.period_seconds)
            new_start = self._state.period_start + elapsed_periods * self.period_seconds
        logger.info(
            f"Quota period rolled over for {self.source}",
            extra={"source": self.source, "calls_used": self._state.calls_used}
        )
        self._state.calls_used = 0
        self._state.period_start = new_start

    async def _load(self) -> None:
        try:
            raw = await self._store.get(self.store_key)
        except STORE_ERRORS as e:
            # Retried on the next acquisition; the local count stays authoritative meanwhile.
            logger.error(f"Could not load quota state for {self.source}: {e}")
            return
        if raw:
            restored = QuotaState.from_dict(raw)
            if restored.period_start == self._state.period_start:
                # Calls counted while the store was unreachable still count.
                restored.calls_used = max(restored.calls_used, self._state.calls_used)
            restored.hard_limit = self.hard_limit
            self._state = restored
        self._loaded = True

    async def _persist(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.put(self.store_key, self._state.to_dict())
        except STORE_ERRORS as e:
            logger.error(f"Could not persist quota state for {self.source}: {e}")

    async def try_acquire(self) -> AcquireResult:
        async with self._lock:
            if not self._loaded:
                await self._load()
            self._roll_over_if_due(self._clock())

            if self._state.calls_used >= self.hard_limit:
                logger.warning(
                    f"Quota exhausted for {self.source}, refusing call",
                    extra={"source": self.source, "hard_limit": self.hard_limit}
                )
                return AcquireResult(allowed=False, remaining=0)

            self._state.calls_used += 1
            await self._persist()
            return AcquireResult(allowed=True, remaining=self._state.remaining)

    def usage(self) -> Dict[str, Any]:
        self._roll_over_if_due(self._clock())
        limit = self.hard_limit
        used = self._state.calls_used
        percentage = round(used / limit * 100, 2) if limit else 100.0
        return {
            "source": self.source,
            "calls_used": used,
            "hard_limit": limit,
            "remaining": self._state.remaining,
            "quota_percentage": percentage,
            "period_start": self._state.period_start,
            "resets_at": self.period_end(),
            "alert_status": QUOTA_ALERTS.level_for(percentage),
        }
