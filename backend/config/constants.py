from dataclasses import dataclass
from typing import Tuple

@dataclass(frozen=True)
class APITimeouts:
    """Timeout configurations for external API calls."""
    FEDERAL: float = 8.0
    STATE: float = 10.0

@dataclass(frozen=True)
class BreakerConfig:
    FAILURE_THRESHOLD: int = 5
    FAILURE_WINDOW: float = 60.0
    COOLDOWN: float = 30.0

@dataclass(frozen=True)
class CacheConfig:
    """Response cache and downstream cache-header tuning."""
    TTL: float = 300.0
    BROWSER_MAX_AGE: int = 60
    CDN_MAX_AGE: int = 300
    STALE_WHILE_REVALIDATE: int = 600
    KEY_PREFIX: str = "bills:"
    # Parsed LegiScan session list; one download serves every page and filter.
    MASTERLIST_TTL: float = 1800.0

    @property
    def cache_control(self) -> str:
        return (
            f"public, s-maxage={self.CDN_MAX_AGE}, "
            f"stale-while-revalidate={self.STALE_WHILE_REVALIDATE}, max-age={self.BROWSER_MAX_AGE}"
        )

    @property
    def cdn_cache_control(self) -> str:
        return f"max-age={self.CDN_MAX_AGE}"

@dataclass(frozen=True)
class AggregatorConfig:
    DEADLINE: float = 12.0
    REPRESENTATIVE_FETCH_LIMIT: int = 50
    SINGLE_SOURCE_MAX_ATTEMPTS: int = 2
    RETRY_BASE_DELAY: float = 0.5
    RETRY_MAX_DELAY: float = 2.0

@dataclass(frozen=True)
class QueryLimits:
    DEFAULT_LIMIT: int = 20
    MAX_LIMIT: int = 100
    MAX_OFFSET: int = 10000
    MAX_TOPIC_LENGTH: int = 200
    MAX_REPRESENTATIVE_ID_LENGTH: int = 64

@dataclass(frozen=True)
class QuotaAlertThresholds:
    MEDIUM: float = 70.0
    HIGH: float = 85.0
    CRITICAL: float = 95.0

    def level_for(self, percentage: float) -> str:
        if percentage >= self.CRITICAL:
            return "critical"
        if percentage >= self.HIGH:
            return "high"
        if percentage >= self.MEDIUM:
            return "medium"
        return "low"

# Merge priority: earlier sources win on duplicate bill identifiers.
SOURCE_PRIORITY: Tuple[str, ...] = ("federal", "state")

API_TIMEOUTS = APITimeouts()
BREAKER_CONFIG = BreakerConfig()
CACHE_CONFIG = CacheConfig()
AGGREGATOR_CONFIG = AggregatorConfig()
QUERY_LIMITS = QueryLimits()
QUOTA_ALERTS = QuotaAlertThresholds()
