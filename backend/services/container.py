from typing import Optional
from api.congress import CongressAdapter
from api.legiscan import LegiScanAdapter
from config import logger, API_TIMEOUTS, BREAKER_CONFIG, Settings, settings as default_settings
from services.aggregator import Aggregator
from services.bills import BillService
from services.cache import ResponseCache
from services.representatives import StaticRepresentativeResolver
from services.store import InMemoryStore, KeyValueStore, RedisStore
from utils.circuit_breaker import CircuitBreaker
from utils.rate_limiter import QuotaRateLimiter

def build_store(current: Settings) -> KeyValueStore:
    if current.REDIS_URL:
        logger.info("Using Redis key-value store")
        return RedisStore(current.REDIS_URL)
    return InMemoryStore()

def build_bill_service(current: Optional[Settings] = None, store: Optional[KeyValueStore] = None) -> BillService:
    """Wire per-source limiter and breaker state into adapters and the aggregator."""
    current = current or default_settings
    store = store if store is not None else build_store(current)
    # Quota counts only need persisting when they outlive the process.
    quota_store = store if isinstance(store, RedisStore) else None

    federal = CongressAdapter(
        current.CONGRESS_API_BASE_URL,
        current.CONGRESS_API_KEY,
        QuotaRateLimiter(
            "federal",
            current.FEDERAL_QUOTA_LIMIT,
            period_seconds=current.FEDERAL_QUOTA_PERIOD_SECONDS,
            store=quota_store,
        ),
        CircuitBreaker(
            "federal",
            failure_threshold=BREAKER_CONFIG.FAILURE_THRESHOLD,
            recovery_timeout=BREAKER_CONFIG.COOLDOWN,
        ),
        timeout=API_TIMEOUTS.FEDERAL,
        congress=current.CURRENT_CONGRESS,
    )
    state = LegiScanAdapter(
        current.LEGISCAN_API_BASE_URL,
        current.LEGISCAN_API_KEY,
        QuotaRateLimiter(
            "state",
            current.STATE_QUOTA_LIMIT,
            period_seconds=current.STATE_QUOTA_PERIOD_SECONDS,
            store=quota_store,
        ),
        CircuitBreaker(
            "state",
            failure_threshold=BREAKER_CONFIG.FAILURE_THRESHOLD,
            recovery_timeout=BREAKER_CONFIG.COOLDOWN,
        ),
        timeout=API_TIMEOUTS.STATE,
        state=current.LEGISCAN_STATE,
        store=store,
    )

    cache = ResponseCache(store, ttl=current.CACHE_TTL_SECONDS)
    aggregator = Aggregator(
        [federal, state],
        resolver=StaticRepresentativeResolver.from_file(current.REPRESENTATIVE_MAP_PATH),
        cache=cache,
    )
    return BillService(aggregator, cache)
