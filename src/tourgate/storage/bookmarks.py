"""Bookmark data-access facade.

Translates the current identity (the auth provider's user id, or None for
anonymous callers) plus a content id into reads and writes on the bookmark
store. Reads degrade to "not bookmarked" / empty for anonymous callers and
unknown users; writes raise AuthenticationRequiredError / UserNotFoundError.
Inserting a bookmark that already exists is a success.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourgate.core.errors import (
    AuthenticationRequiredError,
    BookmarkError,
    UserNotFoundError,
    ValidationError,
)
from tourgate.core.types import BookmarkedListing, BookmarkEntry, ToggleResult
from tourgate.pipeline.stats import settle_all
from tourgate.retrieval.tour_api import TourApiGateway
from tourgate.storage.models import Bookmark, User

logger = logging.getLogger(__name__)


def _content_id(content_id: str) -> str:
    if content_id is None or not str(content_id).strip():
        raise ValidationError("content_id is required")
    return str(content_id).strip()


class BookmarkService:
    """Bookmarks for one identity."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], identity: str | None) -> None:
        self.session_factory = session_factory
        self.identity = identity.strip() if identity and identity.strip() else None

    def current_user_id(self) -> str | None:
        """The auth provider's id for the caller, or None when anonymous."""
        return self.identity

    async def _user_pk(self, session: AsyncSession) -> int | None:
        if self.identity is None:
            return None
        return await session.scalar(select(User.id).where(User.external_id == self.identity))

    async def _require_user_pk(self, session: AsyncSession) -> int:
        if self.identity is None:
            raise AuthenticationRequiredError()
        user_pk = await self._user_pk(session)
        if user_pk is None:
            raise UserNotFoundError(self.identity)
        return user_pk

    # -- users --------------------------------------------------------------

    async def upsert_user(self, name: str = "") -> int:
        """Create the caller's user row, or refresh its name. Returns the row id."""
        if self.identity is None:
            raise AuthenticationRequiredError()
        async with self.session_factory() as session:
            user = await session.scalar(select(User).where(User.external_id == self.identity))
            if user is not None:
                user_pk = user.id
                if name and user.name != name:
                    user.name = name
                    await session.commit()
                return user_pk

            session.add(User(external_id=self.identity, name=name or ""))
            try:
                await session.commit()
            except IntegrityError:
                # Created concurrently by another request
                await session.rollback()
            else:
                logger.info("Created user for %s", self.identity)
            user_pk = await self._user_pk(session)
            if user_pk is None:
                raise UserNotFoundError(self.identity)
            return user_pk

    # -- bookmarks ----------------------------------------------------------

    async def is_bookmarked(self, content_id: str) -> bool:
        content_id = _content_id(content_id)
        async with self.session_factory() as session:
            user_pk = await self._user_pk(session)
            if user_pk is None:
                return False
            found = await session.scalar(
                select(Bookmark.id).where(Bookmark.user_id == user_pk, Bookmark.content_id == content_id)
            )
            return found is not None

    async def add(self, content_id: str) -> bool:
        content_id = _content_id(content_id)
        async with self.session_factory() as session:
            user_pk = await self._require_user_pk(session)
            session.add(Bookmark(user_id=user_pk, content_id=content_id))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.debug("Bookmark %s already exists for %s", content_id, self.identity,
                             extra={"content_id": content_id})
        return True

    async def remove(self, content_id: str) -> bool:
        content_id = _content_id(content_id)
        async with self.session_factory() as session:
            user_pk = await self._require_user_pk(session)
            await session.execute(
                delete(Bookmark).where(Bookmark.user_id == user_pk, Bookmark.content_id == content_id)
            )
            await session.commit()
        return True

    async def list_entries(self) -> list[BookmarkEntry]:
        """Bookmarks with their save time, newest first."""
        async with self.session_factory() as session:
            user_pk = await self._user_pk(session)
            if user_pk is None:
                return []
            rows = await session.execute(
                select(Bookmark.content_id, Bookmark.created_at)
                .where(Bookmark.user_id == user_pk)
                .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
            )
            return [BookmarkEntry(content_id=cid, created_at=created) for cid, created in rows]

    async def toggle(self, content_id: str, is_bookmarked: bool) -> ToggleResult:
        """Flip a bookmark given its current state. Failures come back in the result."""
        try:
            if is_bookmarked:
                await self.remove(content_id)
                return ToggleResult(success=True, is_bookmarked=False)
            await self.add(content_id)
            return ToggleResult(success=True, is_bookmarked=True)
        except (BookmarkError, ValidationError, SQLAlchemyError) as e:
            logger.warning("Bookmark toggle failed for %s: %s", content_id, e)
            return ToggleResult(success=False, is_bookmarked=is_bookmarked, error=str(e))

    async def list_bookmarked_listings(self, gateway: TourApiGateway) -> list[BookmarkedListing]:
        """Details for every bookmark, newest first. Listings that fail to load are skipped."""
        entries = await self.list_entries()
        if not entries:
            return []

        results = await settle_all([gateway.get_detail(entry.content_id) for entry in entries])
        listings = []
        for entry, result in zip(entries, results):
            if isinstance(result, Exception):
                logger.error(
                    "Failed to fetch detail for bookmarked %s: %s", entry.content_id, result,
                    extra={"content_id": entry.content_id},
                )
                continue
            listings.append(BookmarkedListing(listing=result, bookmarked_at=entry.created_at))
        return listings

    # Defined last: the name shadows the builtin inside the class body
    async def list(self) -> list[str]:
        """Bookmarked content ids, newest first."""
        return [entry.content_id for entry in await self.list_entries()]
