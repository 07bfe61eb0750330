"""Regional and category statistics via count-only probes.

Each statistic is one list_by_area call with numOfRows=1, issued for every
region (or every category) concurrently; only the upstream totalCount is
read. Probe failures are dropped with a warning (the HTTP client already
retried them); if every probe fails the whole statistic fails with
AggregateFailureError.

Results are memoized per aggregator for ``cache_ttl`` seconds, the same
one-hour revalidation window the dashboard used. Failures are not cached.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from tourgate.core.errors import AggregateFailureError
from tourgate.core.types import (
    CATEGORY_IDS,
    CategoryCount,
    RegionCount,
    StatsSummary,
    category_name,
)
from tourgate.observability.tracing import SpanType, start_span, trace
from tourgate.retrieval.tour_api import TourApiGateway

logger = logging.getLogger(__name__)

STATS_CACHE_TTL = 3600  # 1 hour
TOP_N = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def settle_all(probes: list[Awaitable]) -> list:
    """Await every probe; failures come back as exception objects, in input order.

    Cancellation of the caller cancels every in-flight probe.
    """
    results = await asyncio.gather(*probes, return_exceptions=True)
    for result in results:
        # A probe that was itself cancelled is not a probe failure
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    return results


class StatsAggregator:
    """Region / category counts and the dashboard summary."""

    def __init__(
        self,
        gateway: TourApiGateway,
        *,
        cache_ttl: float = STATS_CACHE_TTL,
        top_n: int = TOP_N,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _now,
    ) -> None:
        self.gateway = gateway
        self.cache_ttl = cache_ttl
        self.top_n = top_n
        self._clock = clock
        self._now = now
        self._cache: dict[str, tuple[list, float]] = {}

    # -- cache --------------------------------------------------------------

    def _cached(self, key: str) -> list | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at < self.cache_ttl:
            logger.debug("Stats cache hit: %s", key)
            return list(value)
        del self._cache[key]
        return None

    def _store(self, key: str, value: list) -> None:
        if self.cache_ttl > 0:
            self._cache[key] = (list(value), self._clock())

    def clear_cache(self) -> None:
        self._cache.clear()

    # -- probes -------------------------------------------------------------

    async def _probe_count(self, region_code: str | None = None, category_id: str | None = None) -> int:
        result = await self.gateway.list_by_area(
            region_code=region_code,
            category_id=category_id,
            page_size=1,
            page_number=1,
        )
        return result.total_count

    # -- statistics ---------------------------------------------------------

    @trace(name="region_stats", span_type=SpanType.CHAIN)
    async def region_stats(self, force_refresh: bool = False) -> list[RegionCount]:
        """Listing count per first-level region, highest first."""
        if not force_refresh:
            cached = self._cached("region")
            if cached is not None:
                return cached

        started = time.perf_counter()
        regions = await self.gateway.list_regions()
        if not regions:
            logger.warning("No region codes returned; region stats are empty")
            return []

        with start_span(name="region_probes", span_type=SpanType.TOOL) as span:
            span.set_inputs({"probes": len(regions)})
            results = await settle_all([self._probe_count(region_code=r.code) for r in regions])

            stats: list[RegionCount] = []
            failures: list[BaseException] = []
            for region, result in zip(regions, results):
                if isinstance(result, Exception):
                    failures.append(result)
                    logger.warning(
                        "Skipped region %s (%s): %s", region.code, region.name, result,
                        extra={"region_code": region.code},
                    )
                    continue
                stats.append(RegionCount(region_code=region.code, region_name=region.name, count=result))
            span.set_outputs({"succeeded": len(stats), "failed": len(failures)})

        if not stats:
            raise AggregateFailureError("region", failures)

        stats.sort(key=lambda s: s.count, reverse=True)
        logger.info(
            "Region stats collected: %d/%d regions in %.0fms",
            len(stats), len(regions), (time.perf_counter() - started) * 1000,
        )
        self._store("region", stats)
        return stats

    @trace(name="category_stats", span_type=SpanType.CHAIN)
    async def category_stats(self, force_refresh: bool = False) -> list[CategoryCount]:
        """Listing count per content category, highest first."""
        if not force_refresh:
            cached = self._cached("category")
            if cached is not None:
                return cached

        started = time.perf_counter()
        with start_span(name="category_probes", span_type=SpanType.TOOL) as span:
            span.set_inputs({"probes": len(CATEGORY_IDS)})
            results = await settle_all([self._probe_count(category_id=cid) for cid in CATEGORY_IDS])

            stats: list[CategoryCount] = []
            failures: list[BaseException] = []
            for category_id, result in zip(CATEGORY_IDS, results):
                if isinstance(result, Exception):
                    failures.append(result)
                    logger.warning("Skipped category %s: %s", category_id, result)
                    continue
                stats.append(CategoryCount(
                    category_id=category_id,
                    category_name=category_name(category_id),
                    count=result,
                ))
            span.set_outputs({"succeeded": len(stats), "failed": len(failures)})

        if not stats:
            raise AggregateFailureError("category", failures)

        stats.sort(key=lambda s: s.count, reverse=True)
        logger.info(
            "Category stats collected: %d/%d categories in %.0fms",
            len(stats), len(CATEGORY_IDS), (time.perf_counter() - started) * 1000,
        )
        self._store("category", stats)
        return stats

    @trace(name="stats_summary", span_type=SpanType.CHAIN)
    async def summary(self, force_refresh: bool = False) -> StatsSummary:
        """Total (sum of region counts, approximate) plus top regions and types."""
        tasks = (
            asyncio.ensure_future(self.region_stats(force_refresh=force_refresh)),
            asyncio.ensure_future(self.category_stats(force_refresh=force_refresh)),
        )
        try:
            region_stats, category_stats = await asyncio.gather(*tasks)
        except BaseException:
            # gather does not cancel the sibling of a failed task
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        if not region_stats and not category_stats:
            raise AggregateFailureError("statistics", [])

        # Summed per-region totals; close enough for a dashboard headline
        total = sum(r.count for r in region_stats)
        return StatsSummary(
            total_count=total,
            top_regions=region_stats[: self.top_n],
            top_types=category_stats[: self.top_n],
            generated_at=self._now(),
        )
