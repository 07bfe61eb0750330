"""Fixed-point planar coordinates to WGS84 decimal degrees.

The tourism API stores coordinates as integer strings scaled by 10^7
('1269779692' -> 126.9779692). convert() never raises: malformed input
yields NaN and callers must check. validate_coordinates() reports every
reason a pair is unusable.
"""

import logging
import math

from tourgate.core.types import (
    CoordinateCheck,
    CoordinateIssue,
    CoordinateIssueReason,
    Coordinates,
    ListingDetail,
    ListingItem,
    MapPoint,
)

logger = logging.getLogger(__name__)

SCALE = 10_000_000

# Korean peninsula bounds, degrees
LNG_MIN, LNG_MAX = 124.0, 132.0
LAT_MIN, LAT_MAX = 33.0, 43.0

# Same bounds in the raw fixed-point encoding
RAW_X_MIN, RAW_X_MAX = LNG_MIN * SCALE, LNG_MAX * SCALE
RAW_Y_MIN, RAW_Y_MAX = LAT_MIN * SCALE, LAT_MAX * SCALE

_AXES = {
    "x": ("longitude", RAW_X_MIN, RAW_X_MAX, LNG_MIN, LNG_MAX),
    "y": ("latitude", RAW_Y_MIN, RAW_Y_MAX, LAT_MIN, LAT_MAX),
}


def _parse_raw(raw) -> float:
    """Parse a raw coordinate string; NaN when it is not a number."""
    if raw is None:
        return math.nan
    try:
        return float(str(raw).strip())
    except ValueError:
        return math.nan


def convert(raw_x, raw_y) -> Coordinates:
    """Convert raw mapx/mapy to decimal degrees.

    '1281234567', '375678901' -> Coordinates(longitude=128.1234567, latitude=37.5678901)
    """
    return Coordinates(
        longitude=_parse_raw(raw_x) / SCALE,
        latitude=_parse_raw(raw_y) / SCALE,
    )


def _check_axis(axis: str, raw) -> list[CoordinateIssue]:
    label, raw_min, raw_max, deg_min, deg_max = _AXES[axis]

    if raw is None or str(raw).strip() == "":
        return [CoordinateIssue(axis, CoordinateIssueReason.EMPTY, f"{label} is missing")]

    value = _parse_raw(raw)
    if math.isnan(value) or math.isinf(value):
        return [CoordinateIssue(
            axis, CoordinateIssueReason.NOT_NUMERIC, f"{label} {raw!r} is not a number",
        )]

    issues = []
    if not raw_min <= value <= raw_max:
        issues.append(CoordinateIssue(
            axis, CoordinateIssueReason.RAW_OUT_OF_RANGE,
            f"raw {label} {raw} outside [{raw_min:.0f}, {raw_max:.0f}]",
        ))
    degrees = value / SCALE
    if not deg_min <= degrees <= deg_max:
        issues.append(CoordinateIssue(
            axis, CoordinateIssueReason.CONVERTED_OUT_OF_RANGE,
            f"{label} {degrees:.7f} outside [{deg_min:g}, {deg_max:g}]",
        ))
    return issues


def validate_coordinates(raw_x, raw_y) -> CoordinateCheck:
    """Validate and convert a raw mapx/mapy pair."""
    errors = _check_axis("x", raw_x) + _check_axis("y", raw_y)

    unparseable = {CoordinateIssueReason.EMPTY, CoordinateIssueReason.NOT_NUMERIC}
    value = None
    if not any(e.reason in unparseable for e in errors):
        value = convert(raw_x, raw_y)

    return CoordinateCheck(value=value, is_valid=not errors, errors=errors)


def to_map_point(item: ListingItem | ListingDetail) -> MapPoint | None:
    """Project a listing onto the map, or None if its coordinates are unusable."""
    check = validate_coordinates(item.map_x, item.map_y)
    if not check.is_valid or check.value is None:
        logger.debug(
            "Skipping map point for %s: %s",
            item.content_id, "; ".join(e.message for e in check.errors),
        )
        return None
    return MapPoint(
        content_id=item.content_id,
        title=item.title,
        longitude=check.value.longitude,
        latitude=check.value.latitude,
        category_id=item.category_id,
    )


def to_map_points(items: list[ListingItem]) -> list[MapPoint]:
    """Map points for every listing with valid coordinates, in input order."""
    points = []
    for item in items:
        point = to_map_point(item)
        if point is not None:
            points.append(point)
    return points
