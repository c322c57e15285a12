import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

class RetryConfig:
    MAX_ATTEMPTS = 3
    BASE_DELAY = 1.0
    MAX_DELAY = 10.0
    EXPONENTIAL_BASE = 2

def _always(exc: BaseException) -> bool:
    return True

async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = RetryConfig.MAX_ATTEMPTS,
    base_delay: float = RetryConfig.BASE_DELAY,
    max_delay: float = RetryConfig.MAX_DELAY,
    exponential_base: float = RetryConfig.EXPONENTIAL_BASE,
    exceptions: tuple = (Exception,),
    should_retry: Callable[[BaseException], bool] = _always,
    name: str = "call",
) -> T:
    for attempt in range(max_attempts):
        try:
            return await func()
        except exceptions as e:
            if attempt == max_attempts - 1 or not should_retry(e):
                if max_attempts > 1:
                    logger.error(f"{name} failed after {attempt + 1} attempt(s): {e}")
                raise

            delay = min(base_delay * (exponential_base ** attempt), max_delay)
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{max_attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await asyncio.sleep(delay)
    raise RuntimeError("max_attempts must be at least 1")

