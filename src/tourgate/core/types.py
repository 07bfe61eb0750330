"""Domain types for the tourgate tourism-listing gateway.

All shared dataclasses and enums live here to prevent circular imports
and establish a single source of truth for the domain model. Everything
the gateway returns is a fresh value built per call; none of these
objects are shared or mutated after construction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ---------------------------------------------------------------------------
# Content categories (contentTypeId)
# ---------------------------------------------------------------------------

CATEGORY_NAMES: dict[str, str] = {
    "12": "관광지",
    "14": "문화시설",
    "15": "축제/행사",
    "25": "여행코스",
    "28": "레포츠",
    "32": "숙박",
    "38": "쇼핑",
    "39": "음식점",
}

CATEGORY_IDS: tuple[str, ...] = tuple(CATEGORY_NAMES)

UNKNOWN_CATEGORY_NAME = "기타"


def category_name(category_id: str) -> str:
    """Display name for a content type id ('기타' when unknown)."""
    return CATEGORY_NAMES.get(category_id, UNKNOWN_CATEGORY_NAME)


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------

@dataclass
class Coordinates:
    """WGS84 decimal degrees."""

    longitude: float
    latitude: float


class CoordinateIssueReason(str, Enum):
    EMPTY = "empty"
    NOT_NUMERIC = "not_numeric"
    RAW_OUT_OF_RANGE = "raw_out_of_range"
    CONVERTED_OUT_OF_RANGE = "converted_out_of_range"


@dataclass
class CoordinateIssue:
    """One reason a raw coordinate pair failed validation."""

    axis: str               # "x" (longitude) or "y" (latitude)
    reason: CoordinateIssueReason
    message: str


@dataclass
class CoordinateCheck:
    """Result of validating a raw mapx/mapy pair."""

    value: Coordinates | None
    is_valid: bool
    errors: list[CoordinateIssue] = field(default_factory=list)


@dataclass
class MapPoint:
    """A listing projected onto the map widget's coordinate space."""

    content_id: str
    title: str
    longitude: float
    latitude: float
    category_id: str = ""


# ---------------------------------------------------------------------------
# Upstream listing types
# ---------------------------------------------------------------------------

@dataclass
class ListingItem:
    """One row from areaBasedList2 / searchKeyword2.

    content_id and category_id are always present; map_x/map_y are the raw
    fixed-point strings and must be validated before use.
    """

    content_id: str
    category_id: str
    title: str = ""
    address: str = ""
    address_detail: str | None = None
    area_code: str = ""
    map_x: str = ""
    map_y: str = ""
    image_url: str | None = None
    thumbnail_url: str | None = None
    phone: str | None = None
    category_tags: list[str] = field(default_factory=list)   # cat1 / cat2 / cat3
    modified_time: str = ""                                   # YYYYMMDDHHMMSS


@dataclass
class ListingDetail:
    """detailCommon2 row: a ListingItem plus long-form fields."""

    content_id: str
    category_id: str
    title: str = ""
    address: str = ""
    address_detail: str | None = None
    area_code: str = ""
    map_x: str = ""
    map_y: str = ""
    image_url: str | None = None
    thumbnail_url: str | None = None
    phone: str | None = None
    category_tags: list[str] = field(default_factory=list)
    modified_time: str = ""
    overview: str | None = None
    zip_code: str | None = None
    homepage: str | None = None


@dataclass
class OperatingInfo:
    """detailIntro2 row. Field names vary per category and are kept as-is."""

    content_id: str
    category_id: str
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.fields.get(name, default)


@dataclass
class ListingImage:
    """detailImage2 row."""

    content_id: str
    origin_url: str
    serial_number: str = ""
    thumbnail_url: str | None = None
    name: str | None = None


@dataclass
class PetInfo:
    """detailPetTour2 row: pet companion policy for a listing."""

    content_id: str
    category_id: str = ""
    leash: str | None = None        # chkpetleash
    size: str | None = None         # chkpetsize
    place: str | None = None        # chkpetplace (indoor/outdoor)
    fee: str | None = None          # chkpetfee
    info: str | None = None         # petinfo
    parking: str | None = None


@dataclass
class RegionDescriptor:
    """areaCode2 row: a first-level administrative region."""

    code: str
    name: str
    order: int = 0


@dataclass
class ListingResult:
    """One upstream page of listings plus the upstream-reported total."""

    items: list[ListingItem]
    total_count: int
    page_number: int = 1
    page_size: int = 10


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass
class RegionCount:
    region_code: str
    region_name: str
    count: int


@dataclass
class CategoryCount:
    category_id: str
    category_name: str
    count: int


@dataclass
class StatsSummary:
    """Dashboard summary. total_count is the sum of per-region totals (approximate)."""

    total_count: int
    top_regions: list[RegionCount]
    top_types: list[CategoryCount]
    generated_at: datetime


# ---------------------------------------------------------------------------
# Filter state (URL query <-> structured)
# ---------------------------------------------------------------------------

class SortOrder(str, Enum):
    LATEST = "latest"
    NAME = "name"


class PetSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass
class FilterState:
    """Structured listing filters. Defaults are never written to the URL."""

    keyword: str | None = None
    region_code: str | None = None
    category_ids: list[str] = field(default_factory=list)
    pet_friendly: bool = False
    pet_size: PetSize | None = None
    sort: SortOrder = SortOrder.LATEST
    page: int = 1


@dataclass
class ListingPage:
    """A browse result ready for presentation (list + map + pagination)."""

    items: list[ListingItem]
    total_count: int
    page: int
    total_pages: int
    page_size: int
    search_mode: bool = False


# ---------------------------------------------------------------------------
# Data quality
# ---------------------------------------------------------------------------

class QualityIssueType(str, Enum):
    MISSING_IMAGE = "missing_image"
    MISSING_ADDRESS = "missing_address"
    MISSING_COORDINATES = "missing_coordinates"
    INVALID_COORDINATES = "invalid_coordinates"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class QualityIssue:
    content_id: str
    type: QualityIssueType
    severity: Severity
    message: str


@dataclass
class QualityReport:
    """Completeness of a batch of listings. score is 0-100."""

    total_items: int
    items_with_images: int
    items_with_address: int
    items_with_valid_coordinates: int
    issues: list[QualityIssue]
    score: int


# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------

@dataclass
class BookmarkEntry:
    """A stored bookmark: the listing id and when it was saved."""

    content_id: str
    created_at: datetime


@dataclass
class ToggleResult:
    """Outcome of a bookmark toggle; failures are reported, not raised."""

    success: bool
    is_bookmarked: bool
    error: str | None = None


@dataclass
class BookmarkedListing:
    """A bookmarked listing's detail joined with when it was saved."""

    listing: ListingDetail
    bookmarked_at: datetime
