import json
import time
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional, Sequence, Tuple
from config import logger, CACHE_CONFIG
from exceptions import STORE_ERRORS
from models.bill import Bill
from services.store import KeyValueStore, InMemoryStore
from utils.fingerprint import compute_etag

@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    body: str
    etag: str
    stored_at: float
    ttl: float
    sources: Tuple[str, ...] = ()

    def bills(self) -> List[Bill]:
        return [Bill.model_validate(item) for item in json.loads(self.body)]

    def to_dict(self):
        data = asdict(self)
        data["sources"] = list(self.sources)
        return data

    @classmethod
    def from_dict(cls, data) -> "CacheEntry":
        return cls(
            fingerprint=data["fingerprint"],
            body=data["body"],
            etag=data["etag"],
            stored_at=float(data["stored_at"]),
            ttl=float(data["ttl"]),
            sources=tuple(data.get("sources") or ()),
        )

def serialize_bills(bills: Sequence[Bill]) -> str:
    return json.dumps([b.model_dump(mode="json") for b in bills], separators=(",", ":"))

class ResponseCache:
    """Aggregated results keyed by query fingerprint.

    Expiry is advisory: ``get`` returns entries past their TTL so callers can
    fall back to stale data or answer conditional requests, and an entry's
    ETag stays valid until ``put`` replaces it.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        ttl: float = CACHE_CONFIG.TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.ttl = ttl
        self._clock = clock

    async def get(self, fingerprint: str) -> Optional[CacheEntry]:
        try:
            raw = await self.store.get(fingerprint)
        except STORE_ERRORS as e:
            logger.error("Cache read failed for %s, treating as miss: %s", fingerprint, e)
            return None
        if raw is None:
            logger.debug("Cache miss for %s", fingerprint)
            return None
        try:
            return CacheEntry.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed cache entry %s", fingerprint)
            return None

    async def put(self, fingerprint: str, entry: CacheEntry) -> bool:
        try:
            await self.store.put(fingerprint, entry.to_dict())
        except STORE_ERRORS as e:
            logger.error("Cache write failed for %s: %s", fingerprint, e)
            return False
        return True

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.stored_at + entry.ttl > self._clock()

    def build_entry(self, fingerprint: str, bills: Sequence[Bill], sources: Sequence[str]) -> CacheEntry:
        body = serialize_bills(bills)
        return CacheEntry(
            fingerprint=fingerprint,
            body=body,
            etag=compute_etag(body),
            stored_at=self._clock(),
            ttl=self.ttl,
            sources=tuple(sources),
        )
