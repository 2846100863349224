"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import Tag, bookmark_tags  # Must be before bookmark due to import
from models.bookmark import Bookmark
from models.bookmark_list import (
    BookmarkList,
    ListHierarchyState,
    ListType,
    bookmarks_in_lists,
)

__all__ = [
    "Base",
    "Bookmark",
    "BookmarkList",
    "ListHierarchyState",
    "ListType",
    "Tag",
    "TimestampMixin",
    "UUIDv7Mixin",
    "bookmark_tags",
    "bookmarks_in_lists",
]
