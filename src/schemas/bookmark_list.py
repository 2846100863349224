"""Pydantic schemas for bookmark list endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.bookmark_list import ListType


class BookmarkListCreate(BaseModel):
    """
    Schema for creating a new bookmark list.

    Only types are checked here. The list rules (name length, query vs type,
    query syntax) are applied by ``services.list_validation`` so that every
    violation is reported together.
    """

    name: str
    icon: str
    type: ListType = ListType.MANUAL
    query: str | None = None
    parent_id: UUID | None = None


class BookmarkListUpdate(BaseModel):
    """
    Schema for editing an existing bookmark list (partial patch).

    Omitted fields are left unchanged. An explicit ``parent_id: null`` moves the
    list to the top level. The list type cannot be changed.
    """

    name: str | None = None
    icon: str | None = None
    query: str | None = None
    parent_id: UUID | None = None


class BookmarkListResponse(BaseModel):
    """Schema for bookmark list responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    icon: str
    type: ListType
    query: str | None
    parent_id: UUID | None
    created_at: datetime
    updated_at: datetime


class ListBookmarksResponse(BaseModel):
    """Current members of a list (stored for manual lists, evaluated for smart lists)."""

    list_id: UUID
    bookmark_ids: list[UUID]
    total: int


class MergeListRequest(BaseModel):
    """
    Schema for merging one list's bookmarks into another.

    ``source_name`` and ``source_icon`` are display-only echoes from the client
    and are ignored by the merge.
    """

    list_id: UUID = Field(description="Source list")
    target_id: UUID = Field(description="Destination list")
    source_name: str | None = None
    source_icon: str | None = None

    @model_validator(mode="after")
    def check_distinct_lists(self) -> "MergeListRequest":
        """Reject merging a list into itself."""
        if self.list_id == self.target_id:
            raise ValueError("Cannot merge a list into itself")
        return self


class MergeListResponse(BaseModel):
    """
    Outcome of a merge.

    ``added_count + duplicate_count + failed_count`` equals ``total_items`` for a
    completed merge; a smaller sum means processing stopped early.
    """

    total_items: int = 0
    added_count: int = 0
    duplicate_count: int = 0
    failed_count: int = 0

    @property
    def processed(self) -> int:
        """Number of source bookmarks that reached a decision."""
        return self.added_count + self.duplicate_count + self.failed_count


class QueryValidationRequest(BaseModel):
    """Schema for checking a smart list query before saving it."""

    query: str


class QueryValidationResponse(BaseModel):
    """Result of validating a query string."""

    parsed: bool
    has_free_text: bool
    free_text_terms: list[str]
    error: str | None = None
