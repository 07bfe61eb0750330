"""Data-quality checks for listing rows.

Flags listings that would render badly: no image, no address, no usable
coordinates. quality_report() folds a batch into a 0-100 score weighted
20 (image) / 30 (address) / 50 (coordinates), since a listing without a
map position is the most broken.
"""

import logging

from tourgate.core.types import (
    ListingDetail,
    ListingItem,
    QualityIssue,
    QualityIssueType,
    QualityReport,
    Severity,
)
from tourgate.geo.coordinates import validate_coordinates

logger = logging.getLogger(__name__)

IMAGE_WEIGHT = 20
ADDRESS_WEIGHT = 30
COORDINATE_WEIGHT = 50


def _has_image(item: ListingItem | ListingDetail) -> bool:
    return bool(item.image_url or item.thumbnail_url)


def _has_address(item: ListingItem | ListingDetail) -> bool:
    return bool(item.address and item.address.strip())


def _has_coordinates(item: ListingItem | ListingDetail) -> bool:
    return bool(item.map_x and item.map_y)


def _has_valid_coordinates(item: ListingItem | ListingDetail) -> bool:
    return _has_coordinates(item) and validate_coordinates(item.map_x, item.map_y).is_valid


def check_listing(item: ListingItem | ListingDetail) -> list[QualityIssue]:
    """Every quality issue found on one listing."""
    issues = []
    if not _has_image(item):
        issues.append(QualityIssue(
            item.content_id, QualityIssueType.MISSING_IMAGE, Severity.LOW,
            f'Listing "{item.title}" has no image',
        ))
    if not _has_address(item):
        issues.append(QualityIssue(
            item.content_id, QualityIssueType.MISSING_ADDRESS, Severity.HIGH,
            f'Listing "{item.title}" has no address',
        ))
    if not _has_coordinates(item):
        issues.append(QualityIssue(
            item.content_id, QualityIssueType.MISSING_COORDINATES, Severity.HIGH,
            f'Listing "{item.title}" has no coordinates',
        ))
    elif not _has_valid_coordinates(item):
        issues.append(QualityIssue(
            item.content_id, QualityIssueType.INVALID_COORDINATES, Severity.HIGH,
            f'Listing "{item.title}" has invalid coordinates (mapx: {item.map_x}, mapy: {item.map_y})',
        ))
    return issues


def quality_report(items: list[ListingItem]) -> QualityReport:
    """Counts, issues and weighted score for a batch. An empty batch scores 100."""
    total = len(items)
    if total == 0:
        return QualityReport(0, 0, 0, 0, [], 100)

    issues = [issue for item in items for issue in check_listing(item)]
    with_images = sum(1 for i in items if _has_image(i))
    with_address = sum(1 for i in items if _has_address(i))
    with_coords = sum(1 for i in items if _has_valid_coordinates(i))

    score = round(
        with_images / total * IMAGE_WEIGHT
        + with_address / total * ADDRESS_WEIGHT
        + with_coords / total * COORDINATE_WEIGHT
    )

    high = sum(1 for issue in issues if issue.severity == Severity.HIGH)
    if high:
        logger.warning("Data quality: %d high-severity issue(s) in %d listings", high, total)

    return QualityReport(
        total_items=total,
        items_with_images=with_images,
        items_with_address=with_address,
        items_with_valid_coordinates=with_coords,
        issues=issues,
        score=score,
    )
