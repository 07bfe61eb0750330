"""Tourgate CLI: region, listing, search, detail and statistics commands."""

import asyncio
import logging
import sys

from tourgate.config import settings
from tourgate.core.errors import TourApiError, user_message
from tourgate.core.types import category_name
from tourgate.observability.logging import TEXT_FORMAT, RedactingFormatter, redact
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.retrieval.tour_api import TourApiGateway

USAGE = """Usage: tourgate <command> [args]
  regions [parentCode]              List region codes
  list [areaCode] [contentTypeId]   First page of listings
  search <keyword>                  Keyword search
  detail <contentId>                Listing detail with map position
  quality [areaCode]                Data-quality report for the first page"""


def _setup_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(RedactingFormatter(TEXT_FORMAT))
    logging.basicConfig(level=logging.INFO, handlers=[handler])


def _run(coro_fn, *args) -> None:
    """Run one command against a fresh gateway; upstream failures exit 1."""

    async def _with_gateway():
        metrics = ApiMetricsCollector(settings.metrics_capacity, settings.slow_call_threshold)
        gateway = TourApiGateway.from_settings(settings, metrics=metrics)
        try:
            await coro_fn(gateway, *args)
        finally:
            await gateway.aclose()
            metrics.log_summary()

    try:
        asyncio.run(_with_gateway())
    except TourApiError as e:
        print(f"\nError ({e.kind.value}): {user_message(e.kind)}")
        print(f"  {redact(str(e))}")
        sys.exit(1)


def main() -> None:
    """Browse the tourism API: tourgate <command> [args]"""
    _setup_logging()

    if len(sys.argv) < 2 or sys.argv[1] == "--help":
        print(USAGE)
        sys.exit(0 if sys.argv[1:] == ["--help"] else 1)

    command, args = sys.argv[1], sys.argv[2:]
    if command == "regions":
        _run(_regions, args[0] if args else None)
    elif command == "list":
        _run(_list, args[0] if args else None, args[1] if len(args) > 1 else None)
    elif command == "search":
        if not args:
            print("Usage: tourgate search <keyword>")
            print('  Example: tourgate search "경복궁"')
            sys.exit(1)
        _run(_search, " ".join(args))
    elif command == "detail":
        if not args:
            print("Usage: tourgate detail <contentId>")
            sys.exit(1)
        _run(_detail, args[0])
    elif command == "quality":
        _run(_quality, args[0] if args else None)
    else:
        print(f"Unknown command: {command}\n")
        print(USAGE)
        sys.exit(1)


async def _regions(gateway: TourApiGateway, parent_code: str | None) -> None:
    regions = await gateway.list_regions(parent_code)
    print(f"\n{len(regions)} regions:\n")
    for r in regions:
        print(f"  {r.code:>4}  {r.name}")


def _print_listings(items, total_count: int) -> None:
    print(f"\n{total_count:,} listings (showing {len(items)}):\n")
    for item in items:
        print(f"  [{item.content_id}] {item.title} ({category_name(item.category_id)})")
        if item.address:
            print(f"      {item.address}")


async def _list(gateway: TourApiGateway, region_code: str | None, category_id: str | None) -> None:
    result = await gateway.list_by_area(region_code, category_id, page_size=settings.page_size)
    _print_listings(result.items, result.total_count)


async def _search(gateway: TourApiGateway, keyword: str) -> None:
    result = await gateway.search_by_keyword(keyword, page_size=settings.page_size)
    _print_listings(result.items, result.total_count)


async def _detail(gateway: TourApiGateway, content_id: str) -> None:
    from tourgate.geo.coordinates import to_map_point

    detail = await gateway.get_detail(content_id)
    print(f"\n{detail.title}")
    print(f"{'=' * 50}")
    print(f"Category:   {category_name(detail.category_id)}")
    if detail.address:
        print(f"Address:    {detail.address} {detail.address_detail or ''}".rstrip())
    if detail.phone:
        print(f"Phone:      {detail.phone}")
    if detail.homepage:
        print(f"Homepage:   {detail.homepage}")
    point = to_map_point(detail)
    if point:
        print(f"Location:   {point.latitude:.6f}, {point.longitude:.6f}")
    if detail.overview:
        print(f"\n{detail.overview[:500]}")


async def _quality(gateway: TourApiGateway, region_code: str | None) -> None:
    from tourgate.pipeline.quality import quality_report

    result = await gateway.list_by_area(region_code, page_size=settings.page_size)
    report = quality_report(result.items)
    print(f"\nData quality score: {report.score}/100 ({report.total_items} listings)")
    print(f"  With images:       {report.items_with_images}")
    print(f"  With address:      {report.items_with_address}")
    print(f"  Valid coordinates: {report.items_with_valid_coordinates}")
    for issue in report.issues:
        print(f"  [{issue.severity.value:<4}] {issue.message}")


def stats_main() -> None:
    """Dashboard statistics: tourgate-stats"""
    _setup_logging()
    from tourgate.pipeline.stats import StatsAggregator

    async def _stats(gateway: TourApiGateway) -> None:
        aggregator = StatsAggregator(gateway, cache_ttl=settings.stats_cache_ttl, top_n=settings.stats_top_n)
        summary = await aggregator.summary()
        regions = await aggregator.region_stats()
        types = await aggregator.category_stats()

        print("\nTourism Listing Statistics")
        print(f"{'=' * 50}")
        print(f"Total listings: {summary.total_count:,}")
        print(f"Generated at:   {summary.generated_at.isoformat()}\n")
        print("By region:")
        for r in regions:
            print(f"  {r.region_name:<10} {r.count:>8,}")
        print("\nBy type:")
        for t in types:
            print(f"  {t.category_name:<10} {t.count:>8,}")

    _run(_stats)


if __name__ == "__main__":
    main()
