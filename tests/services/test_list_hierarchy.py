"""Tests for list nesting: cycle prevention and concurrent re-parenting."""
from uuid import UUID

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.bookmark_list import BookmarkList, ListHierarchyState
from services import list_hierarchy
from services.exceptions import (
    HierarchyConflictError,
    HierarchyCycleError,
    ListNotFoundError,
    ParentListNotFoundError,
    SelfParentError,
)
from services.list_hierarchy import (
    HIERARCHY_STATE_ID,
    check_parent_exists,
    get_ancestor_ids,
    get_descendant_ids,
    get_hierarchy_version,
    set_parent,
    would_create_cycle,
)
from tests.conftest import MakeList

FAKE_UUID = UUID("00000000-0000-7000-8000-000000000000")


@pytest.fixture(autouse=True)
async def hierarchy_state(db_session: AsyncSession) -> None:
    """Seed the version row the way the initial migration does."""
    await get_hierarchy_version(db_session)
    await db_session.commit()


async def _parent_of(
    session_factory: async_sessionmaker[AsyncSession], list_id: UUID,
) -> UUID | None:
    async with session_factory() as session:
        return await session.scalar(
            select(BookmarkList.parent_id).where(BookmarkList.id == list_id),
        )


async def _version(session_factory: async_sessionmaker[AsyncSession]) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(ListHierarchyState.version).where(
                ListHierarchyState.id == HIERARCHY_STATE_ID,
            ),
        )


# =============================================================================
# Reading the hierarchy
# =============================================================================


async def test__get_hierarchy_version__creates_row_on_first_use(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """The autouse fixture went through the create path; the row now exists at 0."""
    assert await _version(session_factory) == 0


async def test__ancestors_and_descendants(
    db_session: AsyncSession,
    make_list: MakeList,
) -> None:
    """
    Tree used:
        root
        ├── a
        │   └── a1
        └── b
    """
    root = await make_list("root")
    a = await make_list("a", parent_id=root.id)
    a1 = await make_list("a1", parent_id=a.id)
    b = await make_list("b", parent_id=root.id)

    assert await get_ancestor_ids(db_session, a1.id) == [a.id, root.id]
    assert await get_ancestor_ids(db_session, root.id) == []

    assert set(await get_descendant_ids(db_session, root.id)) == {a.id, a1.id, b.id}
    assert await get_descendant_ids(db_session, a.id) == [a1.id]
    assert await get_descendant_ids(db_session, b.id) == []


async def test__would_create_cycle(db_session: AsyncSession, make_list: MakeList) -> None:
    root = await make_list("root")
    child = await make_list("child", parent_id=root.id)
    other = await make_list("other")

    assert await would_create_cycle(db_session, root.id, child.id) is True
    assert await would_create_cycle(db_session, root.id, root.id) is True
    assert await would_create_cycle(db_session, child.id, other.id) is False
    assert await would_create_cycle(db_session, other.id, child.id) is False


async def test__check_parent_exists(db_session: AsyncSession, make_list: MakeList) -> None:
    parent = await make_list("parent")
    await check_parent_exists(db_session, parent.id)

    with pytest.raises(ParentListNotFoundError):
        await check_parent_exists(db_session, FAKE_UUID)


# =============================================================================
# set_parent
# =============================================================================


async def test__set_parent__moves_list_and_bumps_version(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
) -> None:
    parent = await make_list("parent")
    child = await make_list("child")

    await set_parent(db_session, child.id, parent.id)
    await db_session.commit()

    assert await _parent_of(session_factory, child.id) == parent.id
    assert await _version(session_factory) == 1


async def test__set_parent__none_moves_to_top_level(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
) -> None:
    parent = await make_list("parent")
    child = await make_list("child", parent_id=parent.id)

    await set_parent(db_session, child.id, None)
    await db_session.commit()

    assert await _parent_of(session_factory, child.id) is None


async def test__set_parent__unchanged_parent_is_noop(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
) -> None:
    parent = await make_list("parent")
    child = await make_list("child", parent_id=parent.id)

    await set_parent(db_session, child.id, parent.id)
    await db_session.commit()

    assert await _version(session_factory) == 0


async def test__set_parent__rejects_self(db_session: AsyncSession, make_list: MakeList) -> None:
    bookmark_list = await make_list("solo")
    with pytest.raises(SelfParentError):
        await set_parent(db_session, bookmark_list.id, bookmark_list.id)


async def test__set_parent__rejects_descendant_as_parent(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
) -> None:
    """Moving a list under its own grandchild would close a loop."""
    root = await make_list("root")
    child = await make_list("child", parent_id=root.id)
    grandchild = await make_list("grandchild", parent_id=child.id)
    # rollback expires loaded rows
    root_id = root.id

    with pytest.raises(HierarchyCycleError):
        await set_parent(db_session, root_id, grandchild.id)
    await db_session.rollback()

    assert await _parent_of(session_factory, root_id) is None
    assert await _version(session_factory) == 0


async def test__set_parent__unknown_list_or_parent(
    db_session: AsyncSession,
    make_list: MakeList,
) -> None:
    bookmark_list = await make_list("solo")

    with pytest.raises(ListNotFoundError):
        await set_parent(db_session, FAKE_UUID, bookmark_list.id)
    with pytest.raises(ParentListNotFoundError):
        await set_parent(db_session, bookmark_list.id, FAKE_UUID)


async def test__set_parent__stale_version_conflicts(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
) -> None:
    """A version read before another move committed cannot be swapped."""
    a = await make_list("a")
    b = await make_list("b")

    async with session_factory() as other:
        await set_parent(other, a.id, b.id)
        await other.commit()

    with pytest.raises(HierarchyConflictError):
        await list_hierarchy._bump_hierarchy_version(db_session, 0)


async def test__set_parent__concurrent_opposite_moves_cannot_both_commit(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_list: MakeList,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    A under B and B under A, interleaved so both pass the cycle check.

    The competing move commits right after this request's cycle check; the
    version swap then fails and no cycle is stored.
    """
    a = await make_list("a")
    b = await make_list("b")
    a_id, b_id = a.id, b.id
    real_would_create_cycle = list_hierarchy.would_create_cycle
    competing_move_done = False

    async def cycle_check_then_competing_move(
        db: AsyncSession, list_id: UUID, parent_id: UUID,
    ) -> bool:
        nonlocal competing_move_done
        result = await real_would_create_cycle(db, list_id, parent_id)
        if not competing_move_done:
            competing_move_done = True
            async with session_factory() as other:
                await set_parent(other, b_id, a_id)
                await other.commit()
        return result

    monkeypatch.setattr(list_hierarchy, "would_create_cycle", cycle_check_then_competing_move)

    with pytest.raises(HierarchyConflictError):
        await set_parent(db_session, a_id, b_id)
    await db_session.rollback()

    assert await _parent_of(session_factory, b_id) == a_id
    assert await _parent_of(session_factory, a_id) is None
    assert await _version(session_factory) == 1
