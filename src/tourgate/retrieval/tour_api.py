"""Korea Tourism Organization open API gateway (KorService2).

Builds query parameters, calls each endpoint through the RetryingClient,
normalizes the envelope and converts raw rows into domain dataclasses.

Base URL: https://apis.data.go.kr/B551011/KorService2
Docs: https://www.data.go.kr/data/15101578/openapi.do

Every request carries the service key, the two client identifiers
(MobileOS, MobileApp) and _type=json. Optional caller parameters are
only sent when non-empty; upstream rejects empty values as invalid.
"""

import logging

from tourgate.config import Settings, settings as default_settings
from tourgate.core.errors import (
    ContentNotFoundError,
    ErrorKind,
    TourApiError,
    UpstreamResultError,
    ValidationError,
)
from tourgate.core.types import (
    ListingDetail,
    ListingImage,
    ListingItem,
    ListingResult,
    OperatingInfo,
    PetInfo,
    RegionDescriptor,
)
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.observability.tracing import SpanType, trace
from tourgate.retrieval.envelope import Envelope, parse_envelope
from tourgate.retrieval.http import RetryingClient, RetryPolicy

logger = logging.getLogger(__name__)

AREA_CODE = "/areaCode2"
AREA_BASED_LIST = "/areaBasedList2"
SEARCH_KEYWORD = "/searchKeyword2"
DETAIL_COMMON = "/detailCommon2"
DETAIL_INTRO = "/detailIntro2"
DETAIL_IMAGE = "/detailImage2"
DETAIL_PET_TOUR = "/detailPetTour2"

DEFAULT_PAGE_SIZE = 10

# Fields copied onto ListingItem / ListingDetail; everything else on an intro row is kept raw
_INTRO_ID_FIELDS = ("contentid", "contenttypeid")


# ---------------------------------------------------------------------------
# Row converters
# ---------------------------------------------------------------------------

def _text(raw: dict, key: str) -> str:
    val = raw.get(key)
    return "" if val is None else str(val).strip()


def _optional(raw: dict, key: str) -> str | None:
    return _text(raw, key) or None


def _category_tags(raw: dict) -> list[str]:
    return [tag for tag in (_text(raw, "cat1"), _text(raw, "cat2"), _text(raw, "cat3")) if tag]


def _to_listing_item(raw: dict) -> ListingItem:
    return ListingItem(
        content_id=_text(raw, "contentid"),
        category_id=_text(raw, "contenttypeid"),
        title=_text(raw, "title"),
        address=_text(raw, "addr1"),
        address_detail=_optional(raw, "addr2"),
        area_code=_text(raw, "areacode"),
        map_x=_text(raw, "mapx"),
        map_y=_text(raw, "mapy"),
        image_url=_optional(raw, "firstimage"),
        thumbnail_url=_optional(raw, "firstimage2"),
        phone=_optional(raw, "tel"),
        category_tags=_category_tags(raw),
        modified_time=_text(raw, "modifiedtime"),
    )


def _to_listing_detail(raw: dict) -> ListingDetail:
    return ListingDetail(
        content_id=_text(raw, "contentid"),
        category_id=_text(raw, "contenttypeid"),
        title=_text(raw, "title"),
        address=_text(raw, "addr1"),
        address_detail=_optional(raw, "addr2"),
        area_code=_text(raw, "areacode"),
        map_x=_text(raw, "mapx"),
        map_y=_text(raw, "mapy"),
        image_url=_optional(raw, "firstimage"),
        thumbnail_url=_optional(raw, "firstimage2"),
        phone=_optional(raw, "tel"),
        category_tags=_category_tags(raw),
        modified_time=_text(raw, "modifiedtime"),
        overview=_optional(raw, "overview"),
        zip_code=_optional(raw, "zipcode"),
        homepage=_optional(raw, "homepage"),
    )


def _to_operating_info(raw: dict) -> OperatingInfo:
    fields = {
        key: str(val).strip()
        for key, val in raw.items()
        if key not in _INTRO_ID_FIELDS and val not in (None, "")
    }
    return OperatingInfo(
        content_id=_text(raw, "contentid"),
        category_id=_text(raw, "contenttypeid"),
        fields=fields,
    )


def _to_listing_image(raw: dict) -> ListingImage:
    return ListingImage(
        content_id=_text(raw, "contentid"),
        origin_url=_text(raw, "originimgurl"),
        serial_number=_text(raw, "serialnum"),
        thumbnail_url=_optional(raw, "smallimageurl"),
        name=_optional(raw, "imgname"),
    )


def _to_pet_info(raw: dict) -> PetInfo:
    return PetInfo(
        content_id=_text(raw, "contentid"),
        category_id=_text(raw, "contenttypeid"),
        leash=_optional(raw, "chkpetleash"),
        size=_optional(raw, "chkpetsize"),
        place=_optional(raw, "chkpetplace"),
        fee=_optional(raw, "chkpetfee"),
        info=_optional(raw, "petinfo"),
        parking=_optional(raw, "parking"),
    )


def _to_region(raw: dict) -> RegionDescriptor:
    try:
        order = int(raw.get("rnum") or 0)
    except (TypeError, ValueError):
        order = 0
    return RegionDescriptor(code=_text(raw, "code"), name=_text(raw, "name"), order=order)


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class TourApiGateway:
    """Typed async operations over the tourism API."""

    def __init__(
        self,
        client: RetryingClient,
        service_key: str,
        base_url: str = "https://apis.data.go.kr/B551011/KorService2",
        mobile_os: str = "ETC",
        mobile_app: str = "MyTrip",
    ) -> None:
        self.client = client
        self.service_key = service_key
        self.base_url = base_url.rstrip("/")
        self.mobile_os = mobile_os
        self.mobile_app = mobile_app

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        metrics: ApiMetricsCollector | None = None,
        client: RetryingClient | None = None,
    ) -> "TourApiGateway":
        config = config or default_settings
        if client is None:
            policy = RetryPolicy(
                max_retries=config.max_retries,
                base_delay=config.retry_base_delay,
                timeout=config.request_timeout,
                retry_server_errors=config.retry_server_errors,
            )
            client = RetryingClient(policy=policy, metrics=metrics)
        return cls(
            client,
            service_key=config.tour_api_key,
            base_url=config.tour_api_base_url,
            mobile_os=config.tour_mobile_os,
            mobile_app=config.tour_mobile_app,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def build_params(self, **params) -> dict[str, str]:
        """Protocol parameters plus every caller parameter that has a value."""
        query = {
            "serviceKey": self.service_key,
            "MobileOS": self.mobile_os,
            "MobileApp": self.mobile_app,
            "_type": "json",
        }
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            query[key] = str(value)
        return query

    async def _fetch(self, endpoint: str, **params) -> Envelope:
        if not self.service_key:
            raise ValidationError("TOUR_API_KEY is not set", endpoint=endpoint)
        payload = await self.client.call(
            f"{self.base_url}{endpoint}",
            self.build_params(**params),
            endpoint=endpoint,
        )
        return parse_envelope(payload)

    # -- lookups ------------------------------------------------------------

    @trace(name="list_regions", span_type=SpanType.TOOL)
    async def list_regions(self, parent_code: str | None = None) -> list[RegionDescriptor]:
        """First-level regions, or the sub-regions of ``parent_code``."""
        envelope = await self._fetch(AREA_CODE, areaCode=parent_code, numOfRows=100, pageNo=1)
        return [_to_region(raw) for raw in envelope.items]

    @trace(name="list_by_area", span_type=SpanType.TOOL)
    async def list_by_area(
        self,
        region_code: str | None = None,
        category_id: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> ListingResult:
        """One page of listings filtered by region and/or category."""
        page_size = page_size or DEFAULT_PAGE_SIZE
        page_number = page_number or 1
        envelope = await self._fetch(
            AREA_BASED_LIST,
            numOfRows=page_size,
            pageNo=page_number,
            areaCode=region_code,
            contentTypeId=category_id,
        )
        return ListingResult(
            items=[_to_listing_item(raw) for raw in envelope.items],
            total_count=envelope.total_count,
            page_number=page_number,
            page_size=page_size,
        )

    @trace(name="search_by_keyword", span_type=SpanType.TOOL)
    async def search_by_keyword(
        self,
        keyword: str,
        region_code: str | None = None,
        category_id: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> ListingResult:
        """Keyword search. A blank keyword is rejected without a network call."""
        keyword = _require(keyword, "keyword")
        page_size = page_size or DEFAULT_PAGE_SIZE
        page_number = page_number or 1
        envelope = await self._fetch(
            SEARCH_KEYWORD,
            keyword=keyword,
            numOfRows=page_size,
            pageNo=page_number,
            areaCode=region_code,
            contentTypeId=category_id,
        )
        return ListingResult(
            items=[_to_listing_item(raw) for raw in envelope.items],
            total_count=envelope.total_count,
            page_number=page_number,
            page_size=page_size,
        )

    @trace(name="get_detail", span_type=SpanType.TOOL)
    async def get_detail(self, content_id: str) -> ListingDetail:
        content_id = _require(content_id, "content_id")
        envelope = await self._fetch(DETAIL_COMMON, contentId=content_id)
        if not envelope.items:
            raise ContentNotFoundError(
                f"Tour detail not found for contentId: {content_id}",
                content_id, endpoint=DETAIL_COMMON,
            )
        return _to_listing_detail(envelope.items[0])

    @trace(name="get_intro", span_type=SpanType.TOOL)
    async def get_intro(self, content_id: str, category_id: str) -> OperatingInfo:
        """Opening hours / rest days / parking; field names depend on the category."""
        content_id = _require(content_id, "content_id")
        category_id = _require(category_id, "category_id")
        envelope = await self._fetch(DETAIL_INTRO, contentId=content_id, contentTypeId=category_id)
        if not envelope.items:
            raise ContentNotFoundError(
                f"Tour intro not found for contentId: {content_id}, contentTypeId: {category_id}",
                content_id, endpoint=DETAIL_INTRO,
            )
        return _to_operating_info(envelope.items[0])

    @trace(name="get_images", span_type=SpanType.TOOL)
    async def get_images(
        self,
        content_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> list[ListingImage]:
        content_id = _require(content_id, "content_id")
        envelope = await self._fetch(
            DETAIL_IMAGE,
            contentId=content_id,
            numOfRows=page_size or DEFAULT_PAGE_SIZE,
            pageNo=page_number or 1,
        )
        return [_to_listing_image(raw) for raw in envelope.items if raw.get("originimgurl")]

    @trace(name="get_pet_info", span_type=SpanType.TOOL)
    async def get_pet_info(self, content_id: str) -> PetInfo | None:
        """Pet companion policy, or None when the listing has none.

        Absence is the common case, so zero rows, HTTP 404 and the upstream
        no-data code all return None. Other failures propagate.
        """
        content_id = _require(content_id, "content_id")
        try:
            envelope = await self._fetch(DETAIL_PET_TOUR, contentId=content_id)
        except UpstreamResultError as e:
            if e.no_data:
                logger.debug("No pet info for %s (upstream no-data)", content_id)
                return None
            raise
        except TourApiError as e:
            if e.kind == ErrorKind.NOT_FOUND:
                logger.debug("No pet info for %s (HTTP 404)", content_id)
                return None
            raise

        if not envelope.items:
            return None
        return _to_pet_info(envelope.items[0])
