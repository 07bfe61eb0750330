"""Tests for the statistics aggregator's settle-all fan-out."""

import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tourgate.core.errors import AggregateFailureError, NetworkError, UpstreamTimeoutError
from tourgate.core.types import CATEGORY_IDS, ListingResult, RegionDescriptor
from tourgate.pipeline.stats import StatsAggregator, settle_all

REGIONS = [
    RegionDescriptor("1", "서울", 1),
    RegionDescriptor("6", "부산", 2),
    RegionDescriptor("39", "제주도", 3),
    RegionDescriptor("32", "강원도", 4),
]
REGION_COUNTS = {"1": 5000, "6": 2000, "39": 3000, "32": 4000}
CATEGORY_COUNTS = {"12": 900, "14": 300, "15": 50, "25": 20, "28": 150, "32": 400, "38": 100, "39": 1200}
NOW = datetime(2025, 12, 11, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _gateway(failing_regions=(), failing_categories=(), regions=REGIONS) -> MagicMock:
    async def list_by_area(region_code=None, category_id=None, page_size=10, page_number=1):
        assert page_size == 1
        if region_code in failing_regions or category_id in failing_categories:
            raise NetworkError("connection reset")
        if region_code is not None:
            return ListingResult([], REGION_COUNTS[region_code])
        return ListingResult([], CATEGORY_COUNTS[category_id])

    gateway = MagicMock()
    gateway.list_regions = AsyncMock(return_value=list(regions))
    gateway.list_by_area = AsyncMock(side_effect=list_by_area)
    return gateway


def _aggregator(gateway, **kwargs) -> StatsAggregator:
    kwargs.setdefault("clock", FakeClock())
    return StatsAggregator(gateway, now=lambda: NOW, **kwargs)


class TestSettleAll:
    async def test_results_in_input_order(self):
        async def ok(value):
            return value

        async def fail():
            raise NetworkError("x")

        results = await settle_all([ok(1), fail(), ok(3)])
        assert results[0] == 1
        assert isinstance(results[1], NetworkError)
        assert results[2] == 3

    async def test_caller_cancellation_cancels_probes(self):
        cancelled = []

        async def probe():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = asyncio.create_task(settle_all([probe(), probe()]))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert cancelled == [True, True]


class TestRegionStats:
    async def test_sorted_descending(self):
        stats = await _aggregator(_gateway()).region_stats()
        assert [(s.region_name, s.count) for s in stats] == [
            ("서울", 5000), ("강원도", 4000), ("제주도", 3000), ("부산", 2000),
        ]

    async def test_one_probe_per_region(self):
        gateway = _gateway()
        await _aggregator(gateway).region_stats()
        assert gateway.list_by_area.await_count == len(REGIONS)

    async def test_partial_failure_drops_region(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tourgate.pipeline.stats"):
            stats = await _aggregator(_gateway(failing_regions={"6"})).region_stats()
        assert len(stats) == len(REGIONS) - 1
        assert "부산" not in {s.region_name for s in stats}
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Skipped region 6" in warnings[0].getMessage()

    async def test_all_probes_fail(self):
        with pytest.raises(AggregateFailureError) as exc_info:
            await _aggregator(_gateway(failing_regions=set(REGION_COUNTS))).region_stats()
        assert len(exc_info.value.failures) == len(REGIONS)
        assert exc_info.value.retryable

    async def test_empty_region_list(self):
        stats = await _aggregator(_gateway(regions=[])).region_stats()
        assert stats == []

    async def test_region_list_failure_propagates(self):
        gateway = _gateway()
        gateway.list_regions = AsyncMock(side_effect=UpstreamTimeoutError("slow"))
        with pytest.raises(UpstreamTimeoutError):
            await _aggregator(gateway).region_stats()


class TestCategoryStats:
    async def test_all_categories_probed(self):
        gateway = _gateway()
        stats = await _aggregator(gateway).category_stats()
        assert len(stats) == len(CATEGORY_IDS)
        assert stats[0].category_id == "39"
        assert stats[0].category_name == "음식점"
        assert [s.count for s in stats] == sorted(CATEGORY_COUNTS.values(), reverse=True)

    async def test_partial_failure(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tourgate.pipeline.stats"):
            stats = await _aggregator(_gateway(failing_categories={"12", "15"})).category_stats()
        assert {s.category_id for s in stats} == set(CATEGORY_IDS) - {"12", "15"}
        skipped = sorted(r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)
        assert len(skipped) == 2
        assert skipped[0].startswith("Skipped category 12")
        assert skipped[1].startswith("Skipped category 15")

    async def test_all_probes_fail(self):
        with pytest.raises(AggregateFailureError):
            await _aggregator(_gateway(failing_categories=set(CATEGORY_IDS))).category_stats()


class TestCache:
    async def test_cached_within_ttl(self):
        gateway = _gateway()
        clock = FakeClock()
        aggregator = _aggregator(gateway, clock=clock, cache_ttl=3600)

        first = await aggregator.region_stats()
        clock.now += 3599
        second = await aggregator.region_stats()

        assert first == second
        assert gateway.list_regions.await_count == 1

    async def test_expired_after_ttl(self):
        gateway = _gateway()
        clock = FakeClock()
        aggregator = _aggregator(gateway, clock=clock, cache_ttl=3600)

        await aggregator.region_stats()
        clock.now += 3600
        await aggregator.region_stats()

        assert gateway.list_regions.await_count == 2

    async def test_force_refresh_bypasses_cache(self):
        gateway = _gateway()
        aggregator = _aggregator(gateway)
        await aggregator.category_stats()
        await aggregator.category_stats(force_refresh=True)
        assert gateway.list_by_area.await_count == 2 * len(CATEGORY_IDS)

    async def test_failures_not_cached(self):
        gateway = _gateway(failing_regions=set(REGION_COUNTS))
        aggregator = _aggregator(gateway)
        with pytest.raises(AggregateFailureError):
            await aggregator.region_stats()
        gateway.list_by_area.side_effect = _gateway().list_by_area.side_effect
        stats = await aggregator.region_stats()
        assert len(stats) == len(REGIONS)


class TestSummary:
    async def test_summary(self):
        summary = await _aggregator(_gateway(), top_n=3).summary()
        assert summary.total_count == sum(REGION_COUNTS.values())
        assert [r.region_code for r in summary.top_regions] == ["1", "32", "39"]
        assert [t.category_id for t in summary.top_types] == ["39", "12", "32"]
        assert summary.generated_at == NOW

    async def test_summary_total_excludes_failed_regions(self):
        summary = await _aggregator(_gateway(failing_regions={"1"})).summary()
        assert summary.total_count == 9000

    async def test_summary_propagates_aggregate_failure(self):
        with pytest.raises(AggregateFailureError):
            await _aggregator(_gateway(failing_categories=set(CATEGORY_IDS))).summary()

    async def test_failed_summary_cancels_the_other_statistic(self):
        cancelled = []

        async def list_by_area(region_code=None, category_id=None, page_size=10, page_number=1):
            if region_code is not None:
                raise NetworkError("connection reset")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(category_id)
                raise
            return ListingResult([], 1)

        gateway = _gateway()
        gateway.list_by_area = AsyncMock(side_effect=list_by_area)
        aggregator = _aggregator(gateway)

        with pytest.raises(AggregateFailureError):
            await aggregator.summary()

        assert sorted(cancelled) == sorted(CATEGORY_IDS)
        assert aggregator._cached("category") is None
