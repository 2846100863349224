"""Service layer for bookmark list operations."""
import logging
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark_list import BookmarkList, bookmarks_in_lists
from schemas.bookmark_list import BookmarkListCreate, BookmarkListUpdate
from services.exceptions import (
    AlreadyMemberError,
    BookmarkNotFoundError,
    ListNotFoundError,
)
from services.list_hierarchy import check_parent_exists, get_descendant_ids, set_parent
from services.list_membership import (
    delete_membership,
    ensure_manual,
    get_member_ids,
    insert_membership,
    is_member,
)
from services.list_validation import is_blank_query, validate_create, validate_edit

logger = logging.getLogger(__name__)


async def create_list(db: AsyncSession, data: BookmarkListCreate) -> BookmarkList:
    """
    Validate and create a new list.

    Raises:
        ListValidationError: If the request breaks any list rule.
        ParentListNotFoundError: If ``parent_id`` does not exist.
    """
    validate_create(data)
    if data.parent_id is not None:
        await check_parent_exists(db, data.parent_id)

    bookmark_list = BookmarkList(
        name=data.name,
        icon=data.icon,
        type=data.type,
        query=None if is_blank_query(data.query) else data.query,
        parent_id=data.parent_id,
    )
    db.add(bookmark_list)
    await db.flush()
    await db.refresh(bookmark_list)
    logger.info("Created %s list %s", bookmark_list.type, bookmark_list.id)
    return bookmark_list


async def get_lists(db: AsyncSession) -> list[BookmarkList]:
    """Get all lists, ordered by creation date."""
    query = select(BookmarkList).order_by(BookmarkList.created_at, BookmarkList.id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_list(db: AsyncSession, list_id: UUID) -> BookmarkList | None:
    """Get a single list by ID."""
    query = select(BookmarkList).where(BookmarkList.id == list_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def update_list(
    db: AsyncSession,
    list_id: UUID,
    data: BookmarkListUpdate,
) -> BookmarkList | None:
    """
    Apply a partial edit to a list. Returns None if not found.

    Field rules are checked first; a parent change then goes through the
    hierarchy service so the cycle check and the write share one transaction.

    Raises:
        ListValidationError: If the patch breaks any list rule.
        HierarchyError: If the parent change is rejected.
    """
    bookmark_list = await get_list(db, list_id)
    if bookmark_list is None:
        return None

    patch = validate_edit(list_id, data, bookmark_list)

    if "parent_id" in patch:
        await set_parent(db, list_id, patch.pop("parent_id"))

    for field, value in patch.items():
        setattr(bookmark_list, field, value)

    await db.flush()
    await db.refresh(bookmark_list)
    return bookmark_list


async def delete_list(db: AsyncSession, list_id: UUID) -> bool:
    """
    Delete a list, its stored membership, and detach its children.

    Child lists move to the top level rather than being deleted.
    Returns True if deleted, False if not found.
    """
    bookmark_list = await get_list(db, list_id)
    if bookmark_list is None:
        return False

    await db.execute(
        update(BookmarkList)
        .where(BookmarkList.parent_id == list_id)
        .values(parent_id=None),
    )
    await db.execute(delete(bookmarks_in_lists).where(bookmarks_in_lists.c.list_id == list_id))
    await db.delete(bookmark_list)
    await db.flush()
    logger.info("Deleted list %s", list_id)
    return True


async def get_list_bookmark_ids(db: AsyncSession, list_id: UUID) -> list[UUID]:
    """
    Resolve a list's members, sorted for stable output.

    Raises:
        ListNotFoundError: If the list does not exist.
    """
    bookmark_list = await get_list(db, list_id)
    if bookmark_list is None:
        raise ListNotFoundError(list_id)
    return sorted(await get_member_ids(db, bookmark_list))


async def get_list_descendant_ids(db: AsyncSession, list_id: UUID) -> list[UUID]:
    """
    Return the ids of every list nested under ``list_id``.

    Raises:
        ListNotFoundError: If the list does not exist.
    """
    if await get_list(db, list_id) is None:
        raise ListNotFoundError(list_id)
    return await get_descendant_ids(db, list_id)


async def add_bookmark_to_list(db: AsyncSession, list_id: UUID, bookmark_id: UUID) -> bool:
    """
    Add a bookmark to a manual list.

    Idempotent: returns False when the bookmark was already a member.

    Raises:
        ListNotFoundError: If the list does not exist.
        SmartListMembershipError: If the list is smart.
        BookmarkNotFoundError: If the bookmark does not exist or is deleted.
    """
    bookmark_list = await get_list(db, list_id)
    if bookmark_list is None:
        raise ListNotFoundError(list_id)
    ensure_manual(bookmark_list)

    if await is_member(db, list_id, bookmark_id):
        return False
    try:
        await insert_membership(db, list_id, bookmark_id)
    except AlreadyMemberError:
        # Lost a race with a concurrent add; the transaction is no longer usable
        await db.rollback()
        raise
    return True


async def remove_bookmark_from_list(
    db: AsyncSession,
    list_id: UUID,
    bookmark_id: UUID,
) -> None:
    """
    Remove a bookmark from a manual list.

    Raises:
        ListNotFoundError: If the list does not exist.
        SmartListMembershipError: If the list is smart.
        BookmarkNotFoundError: If the bookmark is not a member of the list.
    """
    bookmark_list = await get_list(db, list_id)
    if bookmark_list is None:
        raise ListNotFoundError(list_id)
    ensure_manual(bookmark_list)

    if not await delete_membership(db, list_id, bookmark_id):
        raise BookmarkNotFoundError(bookmark_id)
