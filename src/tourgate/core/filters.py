"""Filter state <-> URL query string.

Query keys follow the public site's URLs:

    keyword, areaCode, contentTypeId (comma-joined), petFriendly=true,
    petSize, sort (omitted when 'latest'), page (omitted when 1)

parse_filters() fills defaults and clamps the page to >= 1;
serialize_filters() never writes defaults, so an all-default state
serializes to ''. parse_filters(serialize_filters(s)) == s for any
normalized state.
"""

from collections.abc import Mapping
from dataclasses import replace
from urllib.parse import parse_qs, urlencode

from tourgate.core.types import FilterState, PetSize, SortOrder

QueryParams = Mapping[str, str | list[str] | None]


def _first(value: str | list[str] | None) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    value = value.strip()
    return value or None


def _split_ids(value: str | list[str] | None) -> list[str]:
    """'12,14' or ['12', '14'] or ['12,14'] -> ['12', '14'] (order kept, no duplicates)."""
    if value is None:
        return []
    parts = value if isinstance(value, list) else [value]
    ids: list[str] = []
    for part in parts:
        for cid in part.split(","):
            cid = cid.strip()
            if cid and cid not in ids:
                ids.append(cid)
    return ids


def _enum_or(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _parse_page(value: str | None) -> int:
    if value is None:
        return 1
    try:
        page = int(value)
    except ValueError:
        return 1
    return max(1, page)


def parse_filters(query: QueryParams | str) -> FilterState:
    """Decode URL query params (mapping or raw query string) into a FilterState."""
    if isinstance(query, str):
        query = parse_qs(query.lstrip("?"), keep_blank_values=False)

    pet_size = _first(query.get("petSize"))
    sort = _first(query.get("sort"))

    return FilterState(
        keyword=_first(query.get("keyword")),
        region_code=_first(query.get("areaCode")),
        category_ids=_split_ids(query.get("contentTypeId")),
        pet_friendly=_first(query.get("petFriendly")) == "true",
        pet_size=_enum_or(PetSize, pet_size, None),
        sort=_enum_or(SortOrder, sort, SortOrder.LATEST),
        page=_parse_page(_first(query.get("page"))),
    )


def serialize_filters(state: FilterState) -> str:
    """Encode a FilterState as a query string (no leading '?')."""
    params: list[tuple[str, str]] = []
    if state.keyword and state.keyword.strip():
        params.append(("keyword", state.keyword.strip()))
    if state.region_code:
        params.append(("areaCode", state.region_code))
    if state.category_ids:
        params.append(("contentTypeId", ",".join(state.category_ids)))
    if state.pet_friendly:
        params.append(("petFriendly", "true"))
    if state.pet_size:
        params.append(("petSize", PetSize(state.pet_size).value))
    if state.sort and SortOrder(state.sort) != SortOrder.LATEST:
        params.append(("sort", SortOrder(state.sort).value))
    if state.page and state.page > 1:
        params.append(("page", str(state.page)))
    return urlencode(params)


def update_filters(state: FilterState, **changes) -> FilterState:
    """Apply filter changes; any change other than the page itself resets to page 1."""
    if changes and "page" not in changes:
        changes["page"] = 1
    return replace(state, **changes)
