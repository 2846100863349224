"""
Parent/child structure of bookmark lists.

Re-parenting is guarded against cycles: the new parent's ancestor chain is
walked and must not contain the list being moved. Because two concurrent
moves could each pass that check before either commits (A under B, B under A),
every parent change also performs a compare-and-swap on the single
``list_hierarchy_state`` version row inside the same transaction. The second
writer's swap matches zero rows and it fails with ``HierarchyConflictError``
instead of committing a cycle.
"""
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark_list import BookmarkList, ListHierarchyState
from services.exceptions import (
    HierarchyConflictError,
    HierarchyCycleError,
    ListNotFoundError,
    ParentListNotFoundError,
    SelfParentError,
)

logger = logging.getLogger(__name__)

HIERARCHY_STATE_ID = 1


async def get_hierarchy_version(db: AsyncSession) -> int:
    """
    Read the current hierarchy version, creating the state row on first use.

    The row is normally seeded by the initial migration.
    """
    version = await db.scalar(
        select(ListHierarchyState.version).where(ListHierarchyState.id == HIERARCHY_STATE_ID),
    )
    if version is None:
        db.add(ListHierarchyState(id=HIERARCHY_STATE_ID, version=0))
        await db.flush()
        return 0
    return version


async def _bump_hierarchy_version(db: AsyncSession, seen_version: int) -> None:
    """Advance the version only if nobody else did since ``seen_version`` was read."""
    result = await db.execute(
        update(ListHierarchyState)
        .where(
            ListHierarchyState.id == HIERARCHY_STATE_ID,
            ListHierarchyState.version == seen_version,
        )
        .values(version=seen_version + 1),
    )
    if result.rowcount != 1:
        raise HierarchyConflictError


async def _get_parent_id(db: AsyncSession, list_id: UUID) -> tuple[bool, UUID | None]:
    """Return (exists, parent_id) for a list."""
    row = (
        await db.execute(select(BookmarkList.parent_id).where(BookmarkList.id == list_id))
    ).first()
    if row is None:
        return False, None
    return True, row.parent_id


async def get_ancestor_ids(db: AsyncSession, list_id: UUID) -> list[UUID]:
    """
    Return the chain of ancestors of a list, nearest parent first.

    Stops early if stored data already contains a loop, so it always terminates.
    """
    ancestors: list[UUID] = []
    seen = {list_id}
    _, current = await _get_parent_id(db, list_id)
    while current is not None and current not in seen:
        ancestors.append(current)
        seen.add(current)
        _, current = await _get_parent_id(db, current)
    return ancestors


async def get_descendant_ids(db: AsyncSession, list_id: UUID) -> list[UUID]:
    """Return every list below ``list_id`` in the hierarchy, breadth-first."""
    descendants: list[UUID] = []
    seen = {list_id}
    frontier = [list_id]
    while frontier:
        result = await db.execute(
            select(BookmarkList.id).where(BookmarkList.parent_id.in_(frontier)),
        )
        frontier = [child_id for child_id in result.scalars() if child_id not in seen]
        seen.update(frontier)
        descendants.extend(frontier)
    return descendants


async def would_create_cycle(db: AsyncSession, list_id: UUID, parent_id: UUID) -> bool:
    """True when ``list_id`` is ``parent_id`` or one of its ancestors."""
    if list_id == parent_id:
        return True
    return list_id in await get_ancestor_ids(db, parent_id)


async def check_parent_exists(db: AsyncSession, parent_id: UUID) -> None:
    """
    Raise ParentListNotFoundError if the parent list is missing.

    Used when creating a list under a parent; a brand new list has no
    descendants, so no cycle check is needed.
    """
    exists, _ = await _get_parent_id(db, parent_id)
    if not exists:
        raise ParentListNotFoundError(parent_id)


async def set_parent(
    db: AsyncSession,
    list_id: UUID,
    parent_id: UUID | None,
) -> BookmarkList:
    """
    Move a list under ``parent_id``, or to the top level when it is None.

    Nothing is written unless every check passes. The write is flushed, not
    committed; the caller's transaction commits it together with the version bump.

    Raises:
        ListNotFoundError: If the list does not exist.
        SelfParentError: If ``parent_id == list_id``.
        ParentListNotFoundError: If the parent does not exist.
        HierarchyCycleError: If the parent is a descendant of the list.
        HierarchyConflictError: If the hierarchy changed concurrently.
    """
    bookmark_list = await db.get(BookmarkList, list_id)
    if bookmark_list is None:
        raise ListNotFoundError(list_id)
    if parent_id == list_id:
        raise SelfParentError(list_id)

    seen_version = await get_hierarchy_version(db)

    if parent_id is not None:
        await check_parent_exists(db, parent_id)
        if await would_create_cycle(db, list_id, parent_id):
            raise HierarchyCycleError(list_id, parent_id)

    if bookmark_list.parent_id == parent_id:
        return bookmark_list

    await _bump_hierarchy_version(db, seen_version)
    bookmark_list.parent_id = parent_id
    await db.flush()
    logger.info("Moved list %s under %s", list_id, parent_id or "top level")
    return bookmark_list
