"""Bookmark endpoints, scoped to the caller's X-User-Id.

Anonymous reads answer "not bookmarked" / empty; anonymous writes are 401.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, status

from tourgate.api.deps import get_bookmarks, get_gateway
from tourgate.api.schemas import (
    BookmarkedListingResponse,
    BookmarkEntryResponse,
    BookmarkRequest,
    BookmarkStatusResponse,
    ErrorResponse,
    ListingDetailResponse,
    ToggleRequest,
    ToggleResponse,
    UserResponse,
    UserUpsertRequest,
)
from tourgate.core.errors import AuthenticationRequiredError
from tourgate.core.types import category_name
from tourgate.retrieval.tour_api import TourApiGateway
from tourgate.storage.bookmarks import BookmarkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookmarks", tags=["bookmarks"])
users_router = APIRouter(prefix="/api/v1/users", tags=["bookmarks"])

_WRITE_ERRORS = {
    401: {"model": ErrorResponse, "description": "Sign-in required"},
    404: {"model": ErrorResponse, "description": "No user record for the caller"},
}


@users_router.put("/me", response_model=UserResponse, responses=_WRITE_ERRORS)
async def upsert_me(request: UserUpsertRequest, bookmarks: BookmarkService = Depends(get_bookmarks)):
    """Create or refresh the caller's user row (called after sign-in)."""
    user_pk = await bookmarks.upsert_user(request.name)
    return UserResponse(id=user_pk, external_id=bookmarks.current_user_id())


@router.get("", response_model=list[BookmarkEntryResponse])
async def list_bookmarks(bookmarks: BookmarkService = Depends(get_bookmarks)):
    """Bookmarked content ids, newest first."""
    return [BookmarkEntryResponse(**asdict(e)) for e in await bookmarks.list_entries()]


@router.get("/details", response_model=list[BookmarkedListingResponse])
async def list_bookmark_details(
    bookmarks: BookmarkService = Depends(get_bookmarks),
    gateway: TourApiGateway = Depends(get_gateway),
):
    """Bookmarked listings with details; listings that fail to load are omitted."""
    if bookmarks.current_user_id() is None:
        raise AuthenticationRequiredError()
    results = await bookmarks.list_bookmarked_listings(gateway)
    return [
        BookmarkedListingResponse(
            listing=ListingDetailResponse(
                **asdict(r.listing), category_name=category_name(r.listing.category_id),
            ),
            bookmarked_at=r.bookmarked_at,
        )
        for r in results
    ]


@router.get("/{content_id}", response_model=BookmarkStatusResponse)
async def get_bookmark(content_id: str, bookmarks: BookmarkService = Depends(get_bookmarks)):
    return BookmarkStatusResponse(content_id=content_id, is_bookmarked=await bookmarks.is_bookmarked(content_id))


@router.post("", response_model=BookmarkStatusResponse, status_code=status.HTTP_201_CREATED,
             responses=_WRITE_ERRORS)
async def add_bookmark(request: BookmarkRequest, bookmarks: BookmarkService = Depends(get_bookmarks)):
    """Bookmark a listing. Bookmarking it again is not an error."""
    await bookmarks.add(request.content_id)
    logger.info("Bookmarked %s", request.content_id, extra={"content_id": request.content_id})
    return BookmarkStatusResponse(content_id=request.content_id, is_bookmarked=True)


@router.delete("/{content_id}", response_model=BookmarkStatusResponse, responses=_WRITE_ERRORS)
async def remove_bookmark(content_id: str, bookmarks: BookmarkService = Depends(get_bookmarks)):
    await bookmarks.remove(content_id)
    return BookmarkStatusResponse(content_id=content_id, is_bookmarked=False)


@router.post("/{content_id}/toggle", response_model=ToggleResponse)
async def toggle_bookmark(
    content_id: str,
    request: ToggleRequest,
    bookmarks: BookmarkService = Depends(get_bookmarks),
):
    """Flip the bookmark; failures are reported in the body rather than as an error status."""
    result = await bookmarks.toggle(content_id, request.is_bookmarked)
    return ToggleResponse(**asdict(result))
