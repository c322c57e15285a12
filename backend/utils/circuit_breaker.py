import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar
from config import logger, BREAKER_CONFIG
from exceptions import CircuitBreakerOpenException, QuotaExceededException, UpstreamException
from models.health import CircuitState, SourceHealth

T = TypeVar("T")

def is_breaker_failure(exc: BaseException) -> bool:
    """Network errors, timeouts, 5xx and schema-invalid 200s count; 4xx does not."""
    if isinstance(exc, UpstreamException):
        return exc.counts_as_failure
    if isinstance(exc, (QuotaExceededException, CircuitBreakerOpenException)):
        return False
    return isinstance(exc, Exception)

class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int = BREAKER_CONFIG.FAILURE_THRESHOLD,
        recovery_timeout: float = BREAKER_CONFIG.COOLDOWN,
        failure_window: Optional[float] = BREAKER_CONFIG.FAILURE_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_window = failure_window
        self._clock = clock

        self._health = SourceHealth(source=name)
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._health.state

    @property
    def failure_count(self) -> int:
        return self._health.consecutive_failures

    @property
    def health(self) -> SourceHealth:
        return self._health

    def current_state(self) -> CircuitState:
        """State as a caller would observe it now, including an elapsed cooldown."""
        if self._health.state == CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN
        return self._health.state

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        is_trial = await self._admit()
        try:
            result = await func()
        except QuotaExceededException:
            # No remote call was made; the breaker learns nothing.
            await self._release_trial(is_trial)
            raise
        except Exception as e:
            if is_breaker_failure(e):
                await self._on_failure(is_trial)
            else:
                await self._on_success(is_trial)
            raise
        except BaseException:
            await self._release_trial(is_trial)
            raise
        await self._on_success(is_trial)
        return result

    async def _admit(self) -> bool:
        async with self._lock:
            health = self._health
            if health.state == CircuitState.OPEN:
                if self._cooldown_elapsed():
                    logger.info(
                        f"Circuit breaker {self.name}: Transitioning to half-open state",
                        extra={"circuit_breaker": self.name, "state": "half_open"}
                    )
                    health.state = CircuitState.HALF_OPEN
                else:
                    logger.warning(
                        f"Circuit breaker {self.name} is open, rejecting request",
                        extra={
                            "circuit_breaker": self.name,
                            "failure_count": health.consecutive_failures,
                            "state": "open"
                        }
                    )
                    raise CircuitBreakerOpenException(self.name, health.consecutive_failures)

            if health.state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenException(self.name, health.consecutive_failures)
                self._trial_in_flight = True
                return True
            return False

    def _cooldown_elapsed(self) -> bool:
        opened_at = self._health.opened_at
        return opened_at is not None and self._clock() - opened_at >= self.recovery_timeout

    async def _release_trial(self, is_trial: bool):
        if is_trial:
            async with self._lock:
                self._trial_in_flight = False

    async def _on_success(self, is_trial: bool):
        async with self._lock:
            health = self._health
            if is_trial:
                self._trial_in_flight = False
            if health.state == CircuitState.HALF_OPEN and is_trial:
                logger.info(
                    f"Circuit breaker {self.name}: Recovery successful, closing circuit",
                    extra={"circuit_breaker": self.name, "state": "closed"}
                )
                health.state = CircuitState.CLOSED
                health.opened_at = None
            if health.state == CircuitState.CLOSED:
                health.consecutive_failures = 0
                health.streak_started_at = None
            health.last_success_at = self._clock()

    async def _on_failure(self, is_trial: bool):
        async with self._lock:
            health = self._health
            now = self._clock()
            health.last_failure_at = now

            if is_trial:
                self._trial_in_flight = False
                health.consecutive_failures += 1
                health.state = CircuitState.OPEN
                health.opened_at = now
                logger.error(
                    f"Circuit breaker {self.name}: Trial call failed, reopening circuit",
                    extra={"circuit_breaker": self.name, "state": "open"}
                )
                return

            if health.state != CircuitState.CLOSED:
                # A call admitted before the circuit opened; it cannot extend the cooldown.
                return

            window_expired = (
                self.failure_window is not None
                and health.streak_started_at is not None
                and now - health.streak_started_at > self.failure_window
            )
            if health.consecutive_failures == 0 or window_expired:
                health.consecutive_failures = 0
                health.streak_started_at = now
            health.consecutive_failures += 1

            if health.consecutive_failures >= self.failure_threshold:
                logger.error(
                    f"Circuit breaker {self.name}: Failure threshold reached, opening circuit",
                    extra={
                        "circuit_breaker": self.name,
                        "failure_count": health.consecutive_failures,
                        "threshold": self.failure_threshold,
                        "state": "open"
                    }
                )
                health.state = CircuitState.OPEN
                health.opened_at = now

    def snapshot(self):
        data = self._health.snapshot()
        data["state"] = self.current_state().value
        return data
