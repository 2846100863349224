"""
Reading and writing list membership.

Manual lists store membership as rows in ``bookmarks_in_lists``. Smart lists
have no rows; their members are the bookmarks matching the list's query at
read time. Both kinds share the read path (``get_member_ids``); only manual
lists accept writes.

The session-level functions are used inside request transactions. The
``SqlMembershipStore`` wraps them for the merge engine, giving every write its
own short transaction so that one failed association never affects another.
"""
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, exists, insert, literal, select
from sqlalchemy import Uuid as UuidType
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.bookmark import Bookmark
from models.bookmark_list import BookmarkList, bookmarks_in_lists
from services.exceptions import (
    AlreadyMemberError,
    BookmarkNotFoundError,
    SmartListMembershipError,
)
from services.query_filter import evaluate_query

MEMBERSHIP_PK_NAME = "pk_bookmarks_in_lists"


def _is_duplicate_membership(error: IntegrityError) -> bool:
    message = str(error)
    # PostgreSQL names the constraint; SQLite names the columns
    return MEMBERSHIP_PK_NAME in message or "bookmarks_in_lists.list_id" in message


async def get_member_ids(db: AsyncSession, bookmark_list: BookmarkList) -> set[UUID]:
    """
    Return the ids of the list's current active members.

    Manual lists return their stored associations; smart lists evaluate their
    query against the corpus now. Soft-deleted bookmarks are never included.
    """
    if bookmark_list.is_smart:
        return set(await evaluate_query(db, bookmark_list.query or ""))

    result = await db.execute(
        select(bookmarks_in_lists.c.bookmark_id)
        .join(Bookmark, Bookmark.id == bookmarks_in_lists.c.bookmark_id)
        .where(
            bookmarks_in_lists.c.list_id == bookmark_list.id,
            Bookmark.deleted_at.is_(None),
        ),
    )
    return set(result.scalars().all())


async def is_member(db: AsyncSession, list_id: UUID, bookmark_id: UUID) -> bool:
    """Check whether a stored association exists."""
    stmt = select(
        exists().where(
            bookmarks_in_lists.c.list_id == list_id,
            bookmarks_in_lists.c.bookmark_id == bookmark_id,
        ),
    )
    return bool(await db.scalar(stmt))


async def insert_membership(db: AsyncSession, list_id: UUID, bookmark_id: UUID) -> None:
    """
    Store one (list, bookmark) association with a single atomic statement.

    The bookmark existence check is part of the INSERT, so a bookmark deleted
    concurrently cannot end up half-added.

    Raises:
        AlreadyMemberError: If the association already exists.
        BookmarkNotFoundError: If the bookmark does not exist or is soft-deleted.
    """
    stmt = insert(bookmarks_in_lists).from_select(
        ["list_id", "bookmark_id"],
        select(literal(list_id, UuidType), Bookmark.id).where(
            Bookmark.id == bookmark_id,
            Bookmark.deleted_at.is_(None),
        ),
    )
    try:
        result = await db.execute(stmt)
    except IntegrityError as e:
        if _is_duplicate_membership(e):
            raise AlreadyMemberError(list_id, bookmark_id) from e
        raise
    if result.rowcount == 0:
        raise BookmarkNotFoundError(bookmark_id)


async def delete_membership(db: AsyncSession, list_id: UUID, bookmark_id: UUID) -> bool:
    """Remove one association. Returns True if a row was deleted."""
    result = await db.execute(
        delete(bookmarks_in_lists).where(
            bookmarks_in_lists.c.list_id == list_id,
            bookmarks_in_lists.c.bookmark_id == bookmark_id,
        ),
    )
    return result.rowcount > 0


def ensure_manual(bookmark_list: BookmarkList) -> None:
    """Raise SmartListMembershipError when membership writes target a smart list."""
    if bookmark_list.is_smart:
        raise SmartListMembershipError(bookmark_list.id)


class MembershipStore(Protocol):
    """What the merge engine needs from list storage."""

    async def get_list(self, list_id: UUID) -> BookmarkList | None:
        """Return the list, or None if it does not exist."""
        ...

    async def get_member_ids(self, bookmark_list: BookmarkList) -> set[UUID]:
        """Return the current members of the list."""
        ...

    async def add_member(self, list_id: UUID, bookmark_id: UUID) -> None:
        """Atomically add one association; raise AlreadyMemberError on duplicates."""
        ...


class SqlMembershipStore:
    """MembershipStore backed by the database, one session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_list(self, list_id: UUID) -> BookmarkList | None:
        async with self._session_factory() as session:
            return await session.get(BookmarkList, list_id)

    async def get_member_ids(self, bookmark_list: BookmarkList) -> set[UUID]:
        async with self._session_factory() as session:
            return await get_member_ids(session, bookmark_list)

    async def add_member(self, list_id: UUID, bookmark_id: UUID) -> None:
        # begin() commits on success and rolls back if the insert raises
        async with self._session_factory.begin() as session:
            await insert_membership(session, list_id, bookmark_id)
