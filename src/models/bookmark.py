"""Bookmark model: the corpus that lists group and smart queries search."""
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String, Text, and_, func
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql.elements import ColumnElement

from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import bookmark_tags

if TYPE_CHECKING:
    from models.tag import Tag


class Bookmark(Base, UUIDv7Mixin, TimestampMixin):
    """
    Bookmark model - stores URLs with metadata and tags.

    Bookmarks are owned by another part of the system; lists only reference them.
    Soft-deleted bookmarks (deleted_at set) are invisible to list membership.
    """

    __tablename__ = "bookmarks"

    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    favourited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Soft delete and archive timestamps
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True,
    )

    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=bookmark_tags,
        back_populates="bookmarks",
    )

    @hybrid_property
    def is_archived(self) -> bool:
        """
        Check if bookmark is currently archived (past or present archived_at).

        Returns False if archived_at is None or in the future (scheduled archive).
        """
        if self.archived_at is None:
            return False
        # Handle both timezone-aware and naive datetimes
        now = datetime.now(UTC)
        archived_at = self.archived_at
        if archived_at.tzinfo is None:
            archived_at = archived_at.replace(tzinfo=UTC)
        return archived_at <= now

    @is_archived.expression
    def is_archived(cls) -> ColumnElement[bool]:  # noqa: N805
        """SQL expression for archived check - used in queries."""
        return and_(
            cls.archived_at.is_not(None),
            cls.archived_at <= func.now(),
        )
