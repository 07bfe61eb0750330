"""Listing page orchestration: filters -> gateway -> local filtering -> page.

Keyword present -> search_by_keyword, otherwise list_by_area. The upstream
accepts a single contentTypeId, so only the first selected category is
sent and multi-category selection is applied to the returned page.

The pet filter has no upstream equivalent; when enabled, pet info for the
page's items is fetched concurrently and items without a pet policy (or
with a size policy that excludes the requested size) are dropped.
"""

import logging
import math

from tourgate.core.types import FilterState, ListingItem, ListingPage, PetInfo, PetSize, SortOrder
from tourgate.observability.tracing import SpanType, trace
from tourgate.pipeline.stats import settle_all
from tourgate.retrieval.tour_api import TourApiGateway

logger = logging.getLogger(__name__)

PAGE_SIZE = 15

# chkpetsize is free text; match both Korean and English size words
_PET_SIZE_WORDS: dict[PetSize, tuple[str, ...]] = {
    PetSize.SMALL: ("소형", "small"),
    PetSize.MEDIUM: ("중형", "medium"),
    PetSize.LARGE: ("대형", "large"),
}
_ALL_SIZES_WORDS = ("모든", "전체", "all sizes", "any size", "제한없음", "제한 없음")


def pet_size_allowed(info: PetInfo, size: PetSize | None) -> bool:
    """Whether a pet policy admits ``size`` (unknown policy text admits everything)."""
    if size is None or not info.size:
        return True
    text = info.size.lower()
    if any(word in text for word in _ALL_SIZES_WORDS):
        return True
    mentioned = [s for s, words in _PET_SIZE_WORDS.items() if any(w in text for w in words)]
    if not mentioned:
        return True
    return size in mentioned


def sort_items(items: list[ListingItem], order: SortOrder) -> list[ListingItem]:
    """Title order for NAME, most recently modified first for LATEST."""
    if order == SortOrder.NAME:
        return sorted(items, key=lambda i: i.title)
    # modifiedtime is YYYYMMDDHHMMSS, so string order is chronological
    return sorted(items, key=lambda i: i.modified_time, reverse=True)


async def filter_pet_friendly(
    gateway: TourApiGateway,
    items: list[ListingItem],
    size: PetSize | None = None,
) -> list[ListingItem]:
    """Keep items that have a pet policy admitting ``size``; lookups run concurrently."""
    if not items:
        return []
    results = await settle_all([gateway.get_pet_info(item.content_id) for item in items])

    kept = []
    for item, result in zip(items, results):
        if isinstance(result, Exception):
            logger.warning(
                "Pet info lookup failed for %s: %s", item.content_id, result,
                extra={"content_id": item.content_id},
            )
            continue
        if result is not None and pet_size_allowed(result, size):
            kept.append(item)
    return kept


@trace(name="browse_listings", span_type=SpanType.CHAIN)
async def browse_listings(
    gateway: TourApiGateway,
    filters: FilterState,
    page_size: int = PAGE_SIZE,
) -> ListingPage:
    """Fetch, filter and sort one page of listings for the given filters."""
    page = max(1, filters.page or 1)
    search_mode = bool(filters.keyword and filters.keyword.strip())
    first_category = filters.category_ids[0] if filters.category_ids else None

    if search_mode:
        result = await gateway.search_by_keyword(
            filters.keyword,
            region_code=filters.region_code,
            category_id=first_category,
            page_size=page_size,
            page_number=page,
        )
    else:
        result = await gateway.list_by_area(
            region_code=filters.region_code,
            category_id=first_category,
            page_size=page_size,
            page_number=page,
        )

    items = list(result.items)
    if filters.category_ids:
        wanted = set(filters.category_ids)
        items = [i for i in items if i.category_id in wanted]
    if filters.pet_friendly:
        items = await filter_pet_friendly(gateway, items, filters.pet_size)

    items = sort_items(items, filters.sort)

    # Upstream total unless local filtering removed rows from this page
    total_count = result.total_count if len(items) == len(result.items) else len(items)
    # Pages are upstream pages even when local filtering thinned this one out
    total_pages = math.ceil(result.total_count / page_size) if page_size else 0
    if total_pages and page > total_pages:
        page = total_pages

    logger.info(
        "Browse %s: %d items (total %d, page %d/%d)",
        "search" if search_mode else "list", len(items), total_count, page, total_pages,
    )
    return ListingPage(
        items=items,
        total_count=total_count,
        page=page,
        total_pages=total_pages,
        page_size=page_size,
        search_mode=search_mode,
    )
