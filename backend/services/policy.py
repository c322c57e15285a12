from dataclasses import dataclass
from typing import Dict
from config import AGGREGATOR_CONFIG
from models.query import QueryShape

@dataclass(frozen=True)
class FallbackPolicy:
    """How the aggregator reacts to source failures for one query shape.

    fail_fast: any source failure fails the request with that source's error.
    stale_on_total_failure: when every call failed, serve the cached entry
        for the same fingerprint (even past TTL) before giving up.
    max_attempts: per-call attempts; only retryable upstream errors are retried.
    """
    fail_fast: bool
    stale_on_total_failure: bool
    max_attempts: int = 1

POLICIES: Dict[QueryShape, FallbackPolicy] = {
    # The caller named a source: no silent substitution, not even from cache.
    QueryShape.SINGLE_SOURCE: FallbackPolicy(
        fail_fast=True,
        stale_on_total_failure=False,
        max_attempts=AGGREGATOR_CONFIG.SINGLE_SOURCE_MAX_ATTEMPTS,
    ),
    QueryShape.MIXED: FallbackPolicy(fail_fast=False, stale_on_total_failure=True),
    QueryShape.REPRESENTATIVE: FallbackPolicy(fail_fast=False, stale_on_total_failure=True),
}
