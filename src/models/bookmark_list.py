"""BookmarkList model for manual and smart bookmark lists."""
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin, UUIDv7Mixin


class ListType(StrEnum):
    """How a list's membership is determined."""

    MANUAL = "manual"
    SMART = "smart"


# Stored membership of manual lists. Smart lists never have rows here.
bookmarks_in_lists = Table(
    "bookmarks_in_lists",
    Base.metadata,
    Column(
        "list_id",
        Uuid,
        ForeignKey("bookmark_lists.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "bookmark_id",
        Uuid,
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "added_at",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    ),
    # Named so duplicate inserts can be told apart from other integrity errors
    PrimaryKeyConstraint("list_id", "bookmark_id", name="pk_bookmarks_in_lists"),
    # Reverse lookup for "which lists contain this bookmark" (is:inlist)
    Index("ix_bookmarks_in_lists_bookmark_id", "bookmark_id"),
)


class BookmarkList(Base, UUIDv7Mixin, TimestampMixin):
    """
    BookmarkList model - a named, optionally nested grouping of bookmarks.

    Manual lists own an explicit set of rows in ``bookmarks_in_lists``.
    Smart lists store a search query instead; their members are computed by
    evaluating the query against the bookmark corpus whenever they are read.

    ``type`` is fixed at creation. ``query`` is set only for smart lists.
    """

    __tablename__ = "bookmark_lists"

    # id provided by UUIDv7Mixin
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default=ListType.MANUAL)
    query: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bookmark_lists.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    @property
    def is_smart(self) -> bool:
        """True when membership is derived from the list's query."""
        return self.type == ListType.SMART


class ListHierarchyState(Base):
    """
    Single-row version counter for the list hierarchy.

    Every parent change bumps ``version`` with a compare-and-swap in the same
    transaction as the write, so two re-parentings that both passed the cycle
    check cannot both commit.
    """

    __tablename__ = "list_hierarchy_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
