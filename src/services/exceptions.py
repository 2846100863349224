"""Shared exceptions for service layer operations."""
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from schemas.bookmark_list import MergeListResponse


class ListNotFoundError(Exception):
    """Raised when a list ID does not exist."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__(f"List not found: {list_id}")


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark does not exist or has been deleted."""

    def __init__(self, bookmark_id: UUID) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark not found: {bookmark_id}")


class InvalidListQueryError(Exception):
    """Raised when a stored smart list query cannot be evaluated."""

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Invalid smart list query {query!r}: {reason}")


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single violated rule, scoped to the request field that caused it."""

    field: str
    code: str
    message: str


class ListValidationError(Exception):
    """
    Raised when a create or edit request breaks one or more list rules.

    Carries every violation found, not just the first, so callers can show
    all problems at once.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in errors))


# =============================================================================
# Membership
# =============================================================================


class SmartListMembershipError(Exception):
    """Raised when trying to store membership on a smart list."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__("Smart lists cannot be added to or removed from directly")


class AlreadyMemberError(Exception):
    """Raised when a bookmark is already stored in a list."""

    def __init__(self, list_id: UUID, bookmark_id: UUID) -> None:
        self.list_id = list_id
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark {bookmark_id} is already in list {list_id}")


# =============================================================================
# Hierarchy
# =============================================================================


class HierarchyError(Exception):
    """Base exception for list re-parenting failures. No state is changed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SelfParentError(HierarchyError):
    """Raised when a list is made its own parent."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__("List can't be its own parent")


class HierarchyCycleError(HierarchyError):
    """Raised when the new parent is the list itself or one of its descendants."""

    def __init__(self, list_id: UUID, parent_id: UUID) -> None:
        self.list_id = list_id
        self.parent_id = parent_id
        super().__init__(f"Moving list {list_id} under {parent_id} would create a cycle")


class ParentListNotFoundError(HierarchyError):
    """Raised when the requested parent list does not exist."""

    def __init__(self, parent_id: UUID) -> None:
        self.parent_id = parent_id
        super().__init__(f"Parent list not found: {parent_id}")


class HierarchyConflictError(HierarchyError):
    """Raised when another re-parenting committed between the cycle check and the write."""

    def __init__(self) -> None:
        super().__init__("The list hierarchy was modified concurrently, please retry")


# =============================================================================
# Merge
# =============================================================================


class MergeError(Exception):
    """Base exception for merge requests that cannot start. No state is changed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SameListMergeError(MergeError):
    """Raised when source and destination are the same list."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__("Cannot merge a list into itself")


class MergeListNotFoundError(MergeError):
    """Raised when the source or destination list does not exist."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__(f"List not found: {list_id}")


class SmartListMergeTargetError(MergeError):
    """Raised when the destination is a smart list (its membership is derived)."""

    def __init__(self, list_id: UUID) -> None:
        self.list_id = list_id
        super().__init__("Cannot merge into a smart list")


class MergeCancelledError(Exception):
    """
    Raised when a merge is cut short by its deadline.

    Not a MergeError: the merge did start, and additions applied before the
    deadline are kept. ``partial`` reports how far processing got.
    """

    def __init__(self, partial: "MergeListResponse") -> None:
        self.partial = partial
        processed = partial.added_count + partial.duplicate_count + partial.failed_count
        super().__init__(
            f"Merge cancelled after processing {processed} of {partial.total_items} bookmarks",
        )
