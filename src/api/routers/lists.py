"""Bookmark list CRUD, membership, and merge endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_async_session, get_session_factory
from schemas.bookmark_list import (
    BookmarkListCreate,
    BookmarkListResponse,
    BookmarkListUpdate,
    ListBookmarksResponse,
    MergeListRequest,
    MergeListResponse,
    QueryValidationRequest,
    QueryValidationResponse,
)
from services import bookmark_list_service
from services.exceptions import (
    AlreadyMemberError,
    BookmarkNotFoundError,
    HierarchyConflictError,
    HierarchyCycleError,
    ListNotFoundError,
    ListValidationError,
    MergeCancelledError,
    MergeListNotFoundError,
    ParentListNotFoundError,
    SameListMergeError,
    SelfParentError,
    SmartListMembershipError,
    SmartListMergeTargetError,
)
from services.list_membership import SqlMembershipStore
from services.list_merge_service import merge_lists
from services.list_validation import SELF_PARENT
from services.search_query import parse_search_query

router = APIRouter(prefix="/lists", tags=["lists"])


def _validation_error(e: ListValidationError) -> HTTPException:
    """Report every violated rule, in the same shape FastAPI uses for schema errors."""
    return HTTPException(
        status_code=422,
        detail=[
            {"loc": ["body", error.field], "msg": error.message, "type": error.code}
            for error in e.errors
        ],
    )


def _hierarchy_error(e: Exception) -> HTTPException:
    if isinstance(e, SelfParentError):
        return HTTPException(
            status_code=422,
            detail=[{"loc": ["body", "parent_id"], "msg": str(e), "type": SELF_PARENT}],
        )
    if isinstance(e, ParentListNotFoundError):
        return HTTPException(status_code=404, detail="Parent list not found")
    if isinstance(e, HierarchyConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("/", response_model=BookmarkListResponse, status_code=201)
async def create_list(
    data: BookmarkListCreate,
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    Create a new list.

    Manual lists hold bookmarks added explicitly. Smart lists take a query made
    only of qualifiers (e.g. ``#work is:fav``) and always show what matches it.
    """
    try:
        bookmark_list = await bookmark_list_service.create_list(db, data)
    except ListValidationError as e:
        raise _validation_error(e)
    except ParentListNotFoundError as e:
        raise _hierarchy_error(e)
    return BookmarkListResponse.model_validate(bookmark_list)


@router.get("/", response_model=list[BookmarkListResponse])
async def get_lists(
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkListResponse]:
    """Get all lists."""
    lists = await bookmark_list_service.get_lists(db)
    return [BookmarkListResponse.model_validate(lst) for lst in lists]


@router.post("/merge", response_model=MergeListResponse)
async def merge_list(
    data: MergeListRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> MergeListResponse:
    """
    Merge the bookmarks of one list into another.

    The source list is left unchanged. Bookmarks already in the destination are
    reported as duplicates; bookmarks that could not be added are reported as
    failed without failing the request. Re-running a merge is safe.
    """
    store = SqlMembershipStore(session_factory)
    try:
        return await merge_lists(store, data.list_id, data.target_id)
    except MergeListNotFoundError:
        raise HTTPException(status_code=404, detail="List not found")
    except (SameListMergeError, SmartListMergeTargetError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MergeCancelledError as e:
        raise HTTPException(
            status_code=504,
            detail={
                "error": "merge_cancelled",
                "message": str(e),
                "partial": e.partial.model_dump(),
            },
        )


@router.post("/validate-query", response_model=QueryValidationResponse)
async def validate_query(data: QueryValidationRequest) -> QueryValidationResponse:
    """Check whether a query can be used as a smart list definition."""
    parsed = parse_search_query(data.query)
    return QueryValidationResponse(
        parsed=parsed.result == "full",
        has_free_text=bool(parsed.free_text_terms),
        free_text_terms=parsed.free_text_terms,
        error=parsed.error,
    )


@router.get("/{list_id}", response_model=BookmarkListResponse)
async def get_list(
    list_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """Get a specific list by ID."""
    bookmark_list = await bookmark_list_service.get_list(db, list_id)
    if bookmark_list is None:
        raise HTTPException(status_code=404, detail="List not found")
    return BookmarkListResponse.model_validate(bookmark_list)


@router.patch("/{list_id}", response_model=BookmarkListResponse)
async def update_list(
    list_id: UUID,
    data: BookmarkListUpdate,
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    Update a list.

    Only the fields sent are changed. Send ``"parent_id": null`` to move the
    list to the top level. The list type cannot be changed.
    """
    try:
        bookmark_list = await bookmark_list_service.update_list(db, list_id, data)
    except ListValidationError as e:
        raise _validation_error(e)
    except (
        SelfParentError,
        ParentListNotFoundError,
        HierarchyCycleError,
        HierarchyConflictError,
    ) as e:
        raise _hierarchy_error(e)
    if bookmark_list is None:
        raise HTTPException(status_code=404, detail="List not found")
    return BookmarkListResponse.model_validate(bookmark_list)


@router.delete("/{list_id}", status_code=204)
async def delete_list(
    list_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """
    Delete a list.

    Bookmarks are not deleted. Nested lists move to the top level.
    """
    deleted = await bookmark_list_service.delete_list(db, list_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="List not found")


@router.get("/{list_id}/bookmarks", response_model=ListBookmarksResponse)
async def get_list_bookmarks(
    list_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> ListBookmarksResponse:
    """Get the ids of the bookmarks currently in a list."""
    try:
        bookmark_ids = await bookmark_list_service.get_list_bookmark_ids(db, list_id)
    except ListNotFoundError:
        raise HTTPException(status_code=404, detail="List not found")
    return ListBookmarksResponse(
        list_id=list_id, bookmark_ids=bookmark_ids, total=len(bookmark_ids),
    )


@router.get("/{list_id}/descendants", response_model=list[UUID])
async def get_list_descendants(
    list_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> list[UUID]:
    """Get the ids of every list nested under a list (e.g. to hide them as merge targets)."""
    try:
        return await bookmark_list_service.get_list_descendant_ids(db, list_id)
    except ListNotFoundError:
        raise HTTPException(status_code=404, detail="List not found")


@router.put("/{list_id}/bookmarks/{bookmark_id}", status_code=204)
async def add_bookmark_to_list(
    list_id: UUID,
    bookmark_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Add a bookmark to a manual list. Adding a bookmark that is already there is a no-op."""
    try:
        await bookmark_list_service.add_bookmark_to_list(db, list_id, bookmark_id)
    except ListNotFoundError:
        raise HTTPException(status_code=404, detail="List not found")
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    except SmartListMembershipError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AlreadyMemberError:
        pass  # Concurrent add won; the end state is the same
    return Response(status_code=204)


@router.delete("/{list_id}/bookmarks/{bookmark_id}", status_code=204)
async def remove_bookmark_from_list(
    list_id: UUID,
    bookmark_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Remove a bookmark from a manual list."""
    try:
        await bookmark_list_service.remove_bookmark_from_list(db, list_id, bookmark_id)
    except ListNotFoundError:
        raise HTTPException(status_code=404, detail="List not found")
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark is not in this list")
    except SmartListMembershipError as e:
        raise HTTPException(status_code=400, detail=str(e))
