"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

# Must be set before any app imports that trigger Settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from models.base import Base
from models.bookmark import Bookmark
from models.bookmark_list import BookmarkList, ListType, bookmarks_in_lists
from models.tag import Tag


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """
    A fresh SQLite database file per test.

    A file (rather than :memory:) lets the merge engine open several
    connections concurrently, the way it does against PostgreSQL.
    """
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with the schema in place."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """An async session on the test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient]:
    """Create a test client whose sessions point at the test database."""
    from api.main import app
    from db.session import get_async_session, get_session_factory

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Data builders
# =============================================================================

MakeBookmark = Callable[..., Awaitable[Bookmark]]
MakeList = Callable[..., Awaitable[BookmarkList]]
AddMembers = Callable[[BookmarkList, list[Bookmark]], Awaitable[None]]


@pytest.fixture
def make_bookmark(db_session: AsyncSession) -> MakeBookmark:
    """Build and commit a bookmark."""

    async def _make(
        url: str = "https://example.com/",
        *,
        title: str | None = None,
        tags: list[str] | None = None,
        favourited: bool = False,
        archived: bool = False,
        deleted: bool = False,
        created_at: datetime | None = None,
    ) -> Bookmark:
        tag_objects = []
        for name in tags or []:
            tag = await db_session.scalar(select(Tag).where(Tag.name == name))
            if tag is None:
                tag = Tag(name=name)
                db_session.add(tag)
            tag_objects.append(tag)

        yesterday = datetime.now(UTC) - timedelta(days=1)
        bookmark = Bookmark(
            url=url,
            title=title,
            favourited=favourited,
            archived_at=yesterday if archived else None,
            deleted_at=yesterday if deleted else None,
        )
        if created_at is not None:
            bookmark.created_at = created_at
        bookmark.tag_objects = tag_objects
        db_session.add(bookmark)
        await db_session.commit()
        return bookmark

    return _make


@pytest.fixture
def make_list(db_session: AsyncSession) -> MakeList:
    """Build and commit a list directly, bypassing validation."""

    async def _make(
        name: str = "Reading",
        *,
        icon: str = "📚",
        type: ListType = ListType.MANUAL,
        query: str | None = None,
        parent_id: UUID | None = None,
    ) -> BookmarkList:
        bookmark_list = BookmarkList(
            name=name, icon=icon, type=type, query=query, parent_id=parent_id,
        )
        db_session.add(bookmark_list)
        await db_session.commit()
        return bookmark_list

    return _make


@pytest.fixture
def add_members(db_session: AsyncSession) -> AddMembers:
    """Store manual membership rows for a list."""

    async def _add(bookmark_list: BookmarkList, bookmarks: list[Bookmark]) -> None:
        if not bookmarks:
            return
        await db_session.execute(
            insert(bookmarks_in_lists),
            [{"list_id": bookmark_list.id, "bookmark_id": b.id} for b in bookmarks],
        )
        await db_session.commit()

    return _add
