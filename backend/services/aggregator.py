import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from api.base import SourceAdapter
from config import logger, AGGREGATOR_CONFIG, SOURCE_PRIORITY
from exceptions import (
    AllSourcesFailedException,
    UpstreamException,
    ValidationException,
)
from models.bill import Bill
from models.query import BillQuery, QueryShape
from services.cache import CacheEntry, ResponseCache
from services.policy import POLICIES, FallbackPolicy
from services.representatives import RepresentativeResolver, StaticRepresentativeResolver
from utils.retry import retry_async

@dataclass(frozen=True)
class FetchTask:
    source: str
    label: str
    factory: Callable[[], Awaitable[List[Bill]]]

@dataclass
class AggregationResult:
    bills: List[Bill]
    sources: Tuple[str, ...]
    failures: Dict[str, str] = field(default_factory=dict)
    stale_entry: Optional[CacheEntry] = None

    @property
    def from_stale_cache(self) -> bool:
        return self.stale_entry is not None

def merge_bills(groups: Iterable[Sequence[Bill]]) -> List[Bill]:
    """Concatenate in the given order, keeping the first bill seen per identifier."""
    seen = set()
    merged: List[Bill] = []
    for group in groups:
        for bill in group:
            if bill.id in seen:
                continue
            seen.add(bill.id)
            merged.append(bill)
    return merged

def apply_filters(bills: Sequence[Bill], query: BillQuery) -> List[Bill]:
    filtered = list(bills)
    if query.topic:
        filtered = [b for b in filtered if b.matches_topic(query.topic)]
    if query.status:
        filtered = [b for b in filtered if b.status == query.status]
    return filtered

def split_limit(limit: int, parts: int) -> List[int]:
    """Share ``limit`` across ``parts`` sources; higher priority gets the remainder."""
    base, remainder = divmod(limit, parts)
    return [base + (1 if i < remainder else 0) for i in range(parts)]

def _rows_before(position: int, block: int, shares: List[int]) -> List[int]:
    pages, partial_rows = divmod(position, block)
    counts = []
    for share in shares:
        taken = min(partial_rows, share)
        partial_rows -= taken
        counts.append(pages * share + taken)
    return counts

def mixed_windows(offset: int, limit: int, parts: int) -> List[Tuple[int, int]]:
    """Per-source ``(offset, count)`` for one page of a mixed listing.

    The listing is read as a fixed sequence of blocks, each holding
    ``split_limit(block, parts)`` rows per source in priority order, so
    consecutive pages of the same size cover every source row exactly once.
    """
    block = max(limit, parts)
    shares = split_limit(block, parts)
    start = _rows_before(offset, block, shares)
    end = _rows_before(offset + limit, block, shares)
    return [(first, last - first) for first, last in zip(start, end)]

class Aggregator:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        resolver: Optional[RepresentativeResolver] = None,
        cache: Optional[ResponseCache] = None,
        priority: Sequence[str] = SOURCE_PRIORITY,
        deadline: float = AGGREGATOR_CONFIG.DEADLINE,
        retry_base_delay: float = AGGREGATOR_CONFIG.RETRY_BASE_DELAY,
        policies: Dict[QueryShape, FallbackPolicy] = POLICIES,
    ):
        def rank(adapter: SourceAdapter) -> int:
            return priority.index(adapter.name) if adapter.name in priority else len(priority)

        self.adapters: List[SourceAdapter] = sorted(adapters, key=rank)
        self._by_name: Dict[str, SourceAdapter] = {a.name: a for a in self.adapters}
        self.resolver = resolver or StaticRepresentativeResolver()
        self.cache = cache
        self.deadline = deadline
        self.retry_base_delay = retry_base_delay
        self.policies = policies

    async def aggregate(self, query: BillQuery) -> AggregationResult:
        shape = query.shape
        policy = self.policies[shape]
        tasks = await self._plan(query, shape)

        if not tasks:
            logger.info("No upstream calls planned for %s query", shape.value)
            return AggregationResult(bills=[], sources=())

        outcomes = await self._run(tasks, policy)

        failures: Dict[str, str] = {}
        groups: List[List[Bill]] = []
        contributing: List[str] = []
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, Exception):
                if policy.fail_fast:
                    raise outcome
                logger.warning(
                    "Source %s (%s) failed: %s",
                    task.source, task.label, getattr(outcome, "classification", type(outcome).__name__)
                )
                failures[f"{task.source}:{task.label}"] = getattr(outcome, "classification", "internal_error")
                continue
            groups.append(outcome)
            if task.source not in contributing:
                contributing.append(task.source)

        if not groups:
            return await self._total_failure(query, policy, failures)

        merged = merge_bills(groups)
        filtered = apply_filters(merged, query)
        if shape == QueryShape.REPRESENTATIVE:
            page = filtered[query.offset:query.offset + query.limit]
        else:
            page = filtered[:query.limit]

        logger.info(
            "Aggregated %d bill(s) from %s",
            len(page), ",".join(contributing),
            extra={"shape": shape.value, "failed_calls": len(failures)}
        )
        return AggregationResult(bills=page, sources=tuple(contributing), failures=failures)

    async def _total_failure(
        self, query: BillQuery, policy: FallbackPolicy, failures: Dict[str, str]
    ) -> AggregationResult:
        if policy.stale_on_total_failure and self.cache is not None:
            entry = await self.cache.get(query.fingerprint())
            if entry is not None:
                logger.warning(
                    "All sources failed; serving cached result for %s",
                    entry.fingerprint, extra={"failures": failures}
                )
                return AggregationResult(
                    bills=entry.bills(), sources=entry.sources, failures=failures, stale_entry=entry
                )
        logger.error("All sources failed and no cached result is available", extra={"failures": failures})
        raise AllSourcesFailedException(failures)

    def _adapter_for(self, source: str) -> SourceAdapter:
        adapter = self._by_name.get(source)
        if adapter is None:
            raise ValidationException("source", f"{source} is not configured")
        return adapter

    async def _plan(self, query: BillQuery, shape: QueryShape) -> List[FetchTask]:
        if shape == QueryShape.SINGLE_SOURCE:
            adapter = self._adapter_for(query.source.value)
            return [FetchTask(adapter.name, "recent", partial(adapter.fetch_recent_bills, query.limit, query.offset))]

        if shape == QueryShape.MIXED:
            tasks = []
            windows = mixed_windows(query.offset, query.limit, len(self.adapters))
            for adapter, (offset, count) in zip(self.adapters, windows):
                if count == 0:
                    continue
                tasks.append(FetchTask(adapter.name, "recent", partial(adapter.fetch_recent_bills, count, offset)))
            return tasks

        return await self._plan_representative(query)

    async def _plan_representative(self, query: BillQuery) -> List[FetchTask]:
        if query.zip_code:
            refs = await self.resolver.resolve_zip(query.zip_code)
        else:
            refs = await self.resolver.resolve_representative(query.representative_id)
        if query.source is not None:
            refs = [r for r in refs if r.source == query.source.value]

        limit = AGGREGATOR_CONFIG.REPRESENTATIVE_FETCH_LIMIT
        tasks = []
        for ref in refs:
            adapter = self._by_name.get(ref.source)
            if adapter is None:
                logger.warning("No adapter for resolved source %s", ref.source)
                continue
            for role in adapter.member_roles:
                targets = ref.committees if role == "committee" else (ref.member_id,)
                for target in targets:
                    tasks.append(FetchTask(
                        adapter.name,
                        f"{role}:{target}",
                        partial(adapter.fetch_member_role, role, target, limit),
                    ))
        return tasks

    async def _attempt(self, task: FetchTask, policy: FallbackPolicy) -> List[Bill]:
        return await retry_async(
            task.factory,
            max_attempts=policy.max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=AGGREGATOR_CONFIG.RETRY_MAX_DELAY,
            exceptions=(UpstreamException,),
            should_retry=lambda e: e.retryable,
            name=f"{task.source} {task.label}",
        )

    async def _run(self, tasks: List[FetchTask], policy: FallbackPolicy) -> List[Union[List[Bill], Exception]]:
        running = [asyncio.ensure_future(self._attempt(task, policy)) for task in tasks]
        done, pending = await asyncio.wait(running, timeout=self.deadline)

        for future in pending:
            future.cancel()
        if pending:
            logger.warning("Deadline of %.1fs reached with %d call(s) outstanding", self.deadline, len(pending))

        outcomes: List[Union[List[Bill], Exception]] = []
        for task, future in zip(tasks, running):
            if future in done:
                exc = future.exception()
                outcomes.append(exc if exc is not None else future.result())
            else:
                outcomes.append(UpstreamException(task.source, None, "deadline exceeded"))
        return outcomes
