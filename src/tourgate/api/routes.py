"""API route handlers for listings, statistics and metrics.

GET /api/v1/regions: first-level regions (or sub-regions of parentCode)
GET /api/v1/places: browse page decoded from the filter query string
GET /api/v1/places/{content_id}[/intro|/images|/pet]: detail views
GET /api/v1/stats/{regions,types,summary}: dashboard statistics
GET /api/v1/metrics: upstream call metrics

Gateway failures propagate as TourApiError and are rendered by the
exception handler registered in main.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request

from tourgate.api.deps import get_aggregator, get_gateway, get_metrics, get_page_size
from tourgate.api.schemas import (
    CategoryCountResponse,
    ErrorResponse,
    ListingDetailResponse,
    ListingImageResponse,
    ListingItemResponse,
    ListingPageResponse,
    MapPointResponse,
    OperatingInfoResponse,
    PetInfoResponse,
    RegionCountResponse,
    RegionResponse,
    StatsSummaryResponse,
)
from tourgate.core.filters import parse_filters, serialize_filters
from tourgate.core.types import ListingDetail, ListingItem, category_name
from tourgate.geo.coordinates import to_map_point, to_map_points
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.pipeline.browse import browse_listings
from tourgate.pipeline.stats import StatsAggregator
from tourgate.retrieval.tour_api import TourApiGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["tour"])

_ERRORS = {
    422: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"model": ErrorResponse, "description": "Upstream quota exceeded"},
    502: {"model": ErrorResponse, "description": "Upstream error"},
    504: {"model": ErrorResponse, "description": "Upstream timeout"},
}


def _listing_response(item: ListingItem) -> ListingItemResponse:
    return ListingItemResponse(**asdict(item), category_name=category_name(item.category_id))


def _detail_response(detail: ListingDetail) -> ListingDetailResponse:
    point = to_map_point(detail)
    return ListingDetailResponse(
        **asdict(detail),
        category_name=category_name(detail.category_id),
        map_point=MapPointResponse(**asdict(point)) if point else None,
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

@router.get("/regions", response_model=list[RegionResponse], responses=_ERRORS)
async def list_regions(
    parent_code: str | None = Query(None, alias="parentCode"),
    gateway: TourApiGateway = Depends(get_gateway),
):
    """Region codes for the region filter."""
    regions = await gateway.list_regions(parent_code)
    return [RegionResponse(**asdict(r)) for r in regions]


@router.get("/places", response_model=ListingPageResponse, responses=_ERRORS)
async def list_places(
    request: Request,
    gateway: TourApiGateway = Depends(get_gateway),
    page_size: int = Depends(get_page_size),
):
    """Browse listings: keyword, areaCode, contentTypeId, petFriendly, petSize, sort, page."""
    filters = parse_filters(request.url.query)
    page = await browse_listings(gateway, filters, page_size=page_size)
    return ListingPageResponse(
        items=[_listing_response(i) for i in page.items],
        map_points=[MapPointResponse(**asdict(p)) for p in to_map_points(page.items)],
        total_count=page.total_count,
        page=page.page,
        total_pages=page.total_pages,
        page_size=page.page_size,
        search_mode=page.search_mode,
        query=serialize_filters(filters),
    )


@router.get("/places/{content_id}", response_model=ListingDetailResponse, responses={
    **_ERRORS, 404: {"model": ErrorResponse, "description": "Listing not found"},
})
async def get_place(content_id: str, gateway: TourApiGateway = Depends(get_gateway)):
    detail = await gateway.get_detail(content_id)
    return _detail_response(detail)


@router.get("/places/{content_id}/intro", response_model=OperatingInfoResponse, responses={
    **_ERRORS, 404: {"model": ErrorResponse, "description": "Listing not found"},
})
async def get_place_intro(
    content_id: str,
    content_type_id: str = Query(..., alias="contentTypeId"),
    gateway: TourApiGateway = Depends(get_gateway),
):
    """Operating info; the field set depends on contentTypeId."""
    info = await gateway.get_intro(content_id, content_type_id)
    return OperatingInfoResponse(**asdict(info))


@router.get("/places/{content_id}/images", response_model=list[ListingImageResponse], responses=_ERRORS)
async def get_place_images(
    content_id: str,
    num_of_rows: int = Query(10, alias="numOfRows", ge=1, le=100),
    gateway: TourApiGateway = Depends(get_gateway),
):
    images = await gateway.get_images(content_id, page_size=num_of_rows)
    return [ListingImageResponse(**asdict(img)) for img in images]


@router.get("/places/{content_id}/pet", response_model=PetInfoResponse | None, responses=_ERRORS)
async def get_place_pet_info(content_id: str, gateway: TourApiGateway = Depends(get_gateway)):
    """Pet policy, or null when the listing has none."""
    info = await gateway.get_pet_info(content_id)
    return PetInfoResponse(**asdict(info)) if info else None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@router.get("/stats/regions", response_model=list[RegionCountResponse], responses={
    503: {"model": ErrorResponse, "description": "Every region probe failed"},
})
async def region_stats(refresh: bool = False, aggregator: StatsAggregator = Depends(get_aggregator)):
    stats = await aggregator.region_stats(force_refresh=refresh)
    return [RegionCountResponse(**asdict(s)) for s in stats]


@router.get("/stats/types", response_model=list[CategoryCountResponse], responses={
    503: {"model": ErrorResponse, "description": "Every category probe failed"},
})
async def category_stats(refresh: bool = False, aggregator: StatsAggregator = Depends(get_aggregator)):
    stats = await aggregator.category_stats(force_refresh=refresh)
    return [CategoryCountResponse(**asdict(s)) for s in stats]


@router.get("/stats/summary", response_model=StatsSummaryResponse, responses={
    503: {"model": ErrorResponse, "description": "Statistics unavailable"},
})
async def stats_summary(refresh: bool = False, aggregator: StatsAggregator = Depends(get_aggregator)):
    summary = await aggregator.summary(force_refresh=refresh)
    return StatsSummaryResponse(**asdict(summary))


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@router.get("/metrics")
async def api_metrics(metrics: ApiMetricsCollector = Depends(get_metrics)):
    """Summary of recent upstream calls (durations, error rates per endpoint)."""
    return metrics.summary()
