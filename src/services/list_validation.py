"""
Validation rules for list create and edit requests.

All rules run on every request and each violation is collected as a
``FieldError``, so a caller sees every problem at once. Validation is pure:
nothing here touches the database. Hierarchy checks that need stored data
(parent existence, cycles) live in ``services.list_hierarchy``.
"""
from typing import Any
from uuid import UUID

from core.config import get_settings
from models.bookmark_list import BookmarkList, ListType
from schemas.bookmark_list import BookmarkListCreate, BookmarkListUpdate
from services.exceptions import FieldError, ListValidationError
from services.search_query import validate_query

INVALID_NAME_LENGTH = "invalid_name_length"
MANUAL_LIST_QUERY = "manual_list_query"
SMART_LIST_MISSING_QUERY = "smart_list_missing_query"
INVALID_QUERY_SYNTAX = "invalid_query_syntax"
QUERY_HAS_FREE_TEXT = "query_has_free_text"
SELF_PARENT = "self_parent"


def _check_name(name: str) -> list[FieldError]:
    max_length = get_settings().max_list_name_length
    if len(name) < 1:
        return [FieldError("name", INVALID_NAME_LENGTH, "List name can't be empty")]
    if len(name) > max_length:
        return [
            FieldError(
                "name", INVALID_NAME_LENGTH, f"List name is at most {max_length} chars",
            ),
        ]
    return []


def is_blank_query(query: str | None) -> bool:
    """Whitespace-only queries count as no query at all."""
    return query is None or not query.strip()


def _check_query_matches_type(list_type: ListType, query: str | None) -> list[FieldError]:
    if list_type == ListType.MANUAL and not is_blank_query(query):
        return [FieldError("query", MANUAL_LIST_QUERY, "Manual lists cannot have a query")]
    if list_type == ListType.SMART and is_blank_query(query):
        return [FieldError("query", SMART_LIST_MISSING_QUERY, "Smart lists must have a query")]
    return []


def _check_query(query: str | None) -> list[FieldError]:
    if is_blank_query(query):
        return []
    validation = validate_query(query)
    if not validation.parsed:
        return [FieldError("query", INVALID_QUERY_SYNTAX, "Smart search query is not valid")]
    if validation.has_free_text:
        return [
            FieldError(
                "query",
                QUERY_HAS_FREE_TEXT,
                "Smart lists cannot have unqualified terms (aka full text search terms) "
                "in the query",
            ),
        ]
    return []


def validate_create(data: BookmarkListCreate) -> BookmarkListCreate:
    """
    Check a create request against the list rules.

    Returns the request unchanged when valid.

    Raises:
        ListValidationError: With one FieldError per violated rule.
    """
    errors = [
        *_check_name(data.name),
        *_check_query_matches_type(data.type, data.query),
        *_check_query(data.query),
    ]
    if errors:
        raise ListValidationError(errors)
    return data


def validate_edit(
    list_id: UUID,
    data: BookmarkListUpdate,
    existing: BookmarkList,
) -> dict[str, Any]:
    """
    Check an edit request against the list rules and return the patch to apply.

    Only fields present in the request are part of the patch. The list type is
    taken from ``existing`` since it cannot change.

    Raises:
        ListValidationError: With one FieldError per violated rule.
    """
    patch = data.model_dump(exclude_unset=True)
    errors: list[FieldError] = []

    if "name" in patch:
        if patch["name"] is None:
            errors.append(FieldError("name", INVALID_NAME_LENGTH, "List name can't be empty"))
        else:
            errors.extend(_check_name(patch["name"]))

    if "icon" in patch and patch["icon"] is None:
        patch.pop("icon")

    if "query" in patch:
        query = patch["query"]
        errors.extend(_check_query_matches_type(ListType(existing.type), query))
        errors.extend(_check_query(query))
        if is_blank_query(query):
            patch["query"] = None

    if "parent_id" in patch and patch["parent_id"] == list_id:
        errors.append(FieldError("parent_id", SELF_PARENT, "List can't be its own parent"))

    if errors:
        raise ListValidationError(errors)
    return patch
