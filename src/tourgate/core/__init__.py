"""Core domain types shared across all tourgate modules."""

from tourgate.core.types import (
    CATEGORY_NAMES,
    CategoryCount,
    Coordinates,
    FilterState,
    ListingDetail,
    ListingImage,
    ListingItem,
    ListingPage,
    ListingResult,
    OperatingInfo,
    PetInfo,
    RegionCount,
    RegionDescriptor,
    StatsSummary,
)

__all__ = [
    "CATEGORY_NAMES",
    "CategoryCount",
    "Coordinates",
    "FilterState",
    "ListingDetail",
    "ListingImage",
    "ListingItem",
    "ListingPage",
    "ListingResult",
    "OperatingInfo",
    "PetInfo",
    "RegionCount",
    "RegionDescriptor",
    "StatsSummary",
]
