from .aggregator import Aggregator, AggregationResult, merge_bills
from .bills import BillService, BillsResult
from .cache import CacheEntry, ResponseCache
from .container import build_bill_service
from .representatives import MemberRef, RepresentativeResolver, StaticRepresentativeResolver
from .store import InMemoryStore, KeyValueStore, RedisStore

__all__ = [
    "Aggregator",
    "AggregationResult",
    "merge_bills",
    "BillService",
    "BillsResult",
    "CacheEntry",
    "ResponseCache",
    "build_bill_service",
    "MemberRef",
    "RepresentativeResolver",
    "StaticRepresentativeResolver",
    "InMemoryStore",
    "KeyValueStore",
    "RedisStore",
]
