"""Pydantic request/response models for the tourgate API.

These are the API contract, decoupled from the internal domain dataclasses.
We bridge them using dataclasses.asdict() in the route handlers.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

class MapPointResponse(BaseModel):
    content_id: str
    title: str
    longitude: float
    latitude: float
    category_id: str = ""


class ListingItemResponse(BaseModel):
    content_id: str
    category_id: str
    category_name: str = ""
    title: str = ""
    address: str = ""
    address_detail: str | None = None
    area_code: str = ""
    map_x: str = ""
    map_y: str = ""
    image_url: str | None = None
    thumbnail_url: str | None = None
    phone: str | None = None
    category_tags: list[str] = []
    modified_time: str = ""


class ListingPageResponse(BaseModel):
    """One browse page: list, map points and pagination in a single payload."""

    items: list[ListingItemResponse]
    map_points: list[MapPointResponse] = []
    total_count: int
    page: int
    total_pages: int
    page_size: int
    search_mode: bool = False
    query: str = Field("", description="Canonical query string for the applied filters")


class ListingDetailResponse(ListingItemResponse):
    overview: str | None = None
    zip_code: str | None = None
    homepage: str | None = None
    map_point: MapPointResponse | None = None


class OperatingInfoResponse(BaseModel):
    content_id: str
    category_id: str
    fields: dict[str, str] = {}


class ListingImageResponse(BaseModel):
    content_id: str
    origin_url: str
    serial_number: str = ""
    thumbnail_url: str | None = None
    name: str | None = None


class PetInfoResponse(BaseModel):
    content_id: str
    category_id: str = ""
    leash: str | None = None
    size: str | None = None
    place: str | None = None
    fee: str | None = None
    info: str | None = None
    parking: str | None = None


class RegionResponse(BaseModel):
    code: str
    name: str
    order: int = 0


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class RegionCountResponse(BaseModel):
    region_code: str
    region_name: str
    count: int


class CategoryCountResponse(BaseModel):
    category_id: str
    category_name: str
    count: int


class StatsSummaryResponse(BaseModel):
    total_count: int
    top_regions: list[RegionCountResponse]
    top_types: list[CategoryCountResponse]
    generated_at: datetime


# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------

class BookmarkRequest(BaseModel):
    content_id: str = Field(..., min_length=1, max_length=50, examples=["126508"])


class ToggleRequest(BaseModel):
    is_bookmarked: bool = Field(..., description="Current state as shown to the user")


class BookmarkStatusResponse(BaseModel):
    content_id: str
    is_bookmarked: bool


class BookmarkEntryResponse(BaseModel):
    content_id: str
    created_at: datetime


class BookmarkedListingResponse(BaseModel):
    listing: ListingDetailResponse
    bookmarked_at: datetime


class ToggleResponse(BaseModel):
    success: bool
    is_bookmarked: bool
    error: str | None = None


class UserUpsertRequest(BaseModel):
    name: str = Field("", max_length=200)


class UserResponse(BaseModel):
    id: int
    external_id: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    """Error response body."""

    kind: str
    detail: str
    retryable: bool = False
