from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from config import logger
from models.query import BillQuery
from services.aggregator import Aggregator
from services.cache import CacheEntry, ResponseCache
from utils.fingerprint import etag_matches

@dataclass(frozen=True)
class BillsResult:
    """What the router needs to answer one bills request."""
    not_modified: bool
    body: Optional[str]
    etag: str
    cache_status: str
    sources: Tuple[str, ...]

    @classmethod
    def from_entry(cls, entry: CacheEntry, cache_status: str, not_modified: bool = False) -> "BillsResult":
        return cls(
            not_modified=not_modified,
            body=None if not_modified else entry.body,
            etag=entry.etag,
            cache_status=cache_status,
            sources=entry.sources,
        )

class BillService:
    def __init__(self, aggregator: Aggregator, cache: ResponseCache):
        self.aggregator = aggregator
        self.cache = cache

    async def get_bills(self, query: BillQuery, if_none_match: Optional[str] = None) -> BillsResult:
        fingerprint = query.fingerprint()
        entry = await self.cache.get(fingerprint)

        if entry is not None and if_none_match and etag_matches(if_none_match, entry.etag):
            logger.info("Conditional request matched cached ETag for %s", fingerprint)
            return BillsResult.from_entry(entry, "HIT", not_modified=True)

        if entry is not None and self.cache.is_fresh(entry):
            logger.info("Cache hit for %s", fingerprint)
            return BillsResult.from_entry(entry, "HIT")

        result = await self.aggregator.aggregate(query)

        if result.from_stale_cache:
            entry = result.stale_entry
            cache_status = "STALE"
        else:
            entry = self.cache.build_entry(fingerprint, result.bills, result.sources)
            await self.cache.put(fingerprint, entry)
            cache_status = "MISS"

        if if_none_match and etag_matches(if_none_match, entry.etag):
            return BillsResult.from_entry(entry, cache_status, not_modified=True)
        return BillsResult.from_entry(entry, cache_status)

    def source_health(self) -> List[Dict[str, Any]]:
        return [
            {
                "source": adapter.name,
                "breaker": adapter.breaker.snapshot(),
                "quota": adapter.rate_limiter.usage(),
            }
            for adapter in self.aggregator.adapters
        ]

    async def close(self) -> None:
        """Release the shared key-value store connection."""
        await self.cache.store.close()
