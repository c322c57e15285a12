from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError
from config import logger
from exceptions import QuotaExceededException, UpstreamException
from models.bill import Bill, BillStage, SourceName
from utils.circuit_breaker import CircuitBreaker
from utils.rate_limiter import QuotaRateLimiter

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

class SourceAdapter:
    """Normalizes one upstream provider into the unified Bill model.

    Every remote call is admitted by the source's circuit breaker and then
    charged against its quota limiter before the request leaves. Adapters
    never retry; retry policy lives in the aggregator.
    """

    source: SourceName
    # Member activity this provider can answer, in merge order.
    member_roles: Tuple[str, ...] = ("sponsored",)

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        rate_limiter: QuotaRateLimiter,
        breaker: CircuitBreaker,
        timeout: float,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.breaker = breaker
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.source.value

    async def _guarded(self, func: Callable[[], Awaitable[T]]) -> T:
        if not self.api_key:
            raise UpstreamException(self.name, None, "API key missing")

        async def attempt() -> T:
            decision = await self.rate_limiter.try_acquire()
            if not decision.allowed:
                raise QuotaExceededException(self.name, self.rate_limiter.period_end())
            return await func()

        return await self.breaker.call(attempt)

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.get(url, params=params)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "%s API HTTP error %s for %s: %s",
                self.name, e.response.status_code, path, e.response.text[:200]
            )
            raise UpstreamException(self.name, e.response.status_code, f"HTTP {e.response.status_code}")
        except httpx.TimeoutException:
            logger.error("%s API timed out after %.1fs for %s", self.name, self.timeout, path)
            raise UpstreamException(self.name, None, "timeout")
        except httpx.RequestError as e:
            logger.error("%s API request error for %s: %s", self.name, path, type(e).__name__)
            raise UpstreamException(self.name, None, f"request error: {type(e).__name__}")
        except ValueError:
            logger.error("%s API returned invalid JSON for %s", self.name, path)
            raise UpstreamException(self.name, 200, "invalid JSON")

    def _validate(self, model: Type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error("%s API payload failed validation: %d error(s)", self.name, e.error_count())
            raise UpstreamException(self.name, 200, "schema validation failed")

    async def fetch_recent_bills(self, limit: int, offset: int) -> List[Bill]:
        raise NotImplementedError

    async def fetch_bills_by_topic(self, topic: str, limit: int, offset: int) -> List[Bill]:
        bills = await self.fetch_recent_bills(limit, offset)
        return [b for b in bills if b.matches_topic(topic)]

    async def fetch_bills_by_status(self, status: BillStage, limit: int, offset: int) -> List[Bill]:
        bills = await self.fetch_recent_bills(limit, offset)
        return [b for b in bills if b.status == status]

    async def fetch_sponsored_bills(self, member_id: str, limit: int) -> List[Bill]:
        raise NotImplementedError

    async def fetch_cosponsored_bills(self, member_id: str, limit: int) -> List[Bill]:
        raise NotImplementedError

    async def fetch_committee_bills(self, committee_id: str, limit: int) -> List[Bill]:
        raise NotImplementedError

    async def fetch_member_role(self, role: str, target_id: str, limit: int) -> List[Bill]:
        if role not in self.member_roles:
            raise ValueError(f"{self.name} does not support member role {role!r}")
        if role == "sponsored":
            return await self.fetch_sponsored_bills(target_id, limit)
        if role == "cosponsored":
            return await self.fetch_cosponsored_bills(target_id, limit)
        return await self.fetch_committee_bills(target_id, limit)
