"""Tests for bookmark list endpoints."""
from httpx import AsyncClient

from models.bookmark_list import ListType
from tests.conftest import AddMembers, MakeBookmark, MakeList

FAKE_UUID = "00000000-0000-7000-8000-000000000000"


# =============================================================================
# Create
# =============================================================================


async def test_create_manual_list(client: AsyncClient) -> None:
    """Test creating a manual list."""
    response = await client.post("/lists/", json={"name": "Reading", "icon": "📚"})
    assert response.status_code == 201

    data = response.json()
    assert data["name"] == "Reading"
    assert data["icon"] == "📚"
    assert data["type"] == "manual"
    assert data["query"] is None
    assert data["parent_id"] is None
    assert "id" in data
    assert "created_at" in data


async def test_create_smart_list(client: AsyncClient) -> None:
    """Test creating a smart list with a qualifier-only query."""
    response = await client.post(
        "/lists/",
        json={"name": "Work", "icon": "💼", "type": "smart", "query": "#work is:fav"},
    )
    assert response.status_code == 201
    assert response.json()["query"] == "#work is:fav"


async def test_create_list_reports_every_rule_violation(client: AsyncClient) -> None:
    """All violated rules come back in one 422 response."""
    response = await client.post(
        "/lists/",
        json={"name": "x" * 41, "icon": "📚", "type": "smart", "query": "#work news"},
    )
    assert response.status_code == 422

    detail = response.json()["detail"]
    assert [(d["loc"], d["type"]) for d in detail] == [
        (["body", "name"], "invalid_name_length"),
        (["body", "query"], "query_has_free_text"),
    ]
    assert detail[0]["msg"] == "List name is at most 40 chars"


async def test_create_smart_list_blank_query(client: AsyncClient) -> None:
    response = await client.post(
        "/lists/", json={"name": "Smart", "icon": "🔍", "type": "smart", "query": "   "},
    )
    assert response.status_code == 422
    assert [d["type"] for d in response.json()["detail"]] == ["smart_list_missing_query"]


async def test_create_list_missing_icon(client: AsyncClient) -> None:
    """Schema-level errors are still reported by FastAPI."""
    response = await client.post("/lists/", json={"name": "No icon"})
    assert response.status_code == 422


async def test_create_list_unknown_parent(client: AsyncClient) -> None:
    response = await client.post(
        "/lists/", json={"name": "Child", "icon": "📁", "parent_id": FAKE_UUID},
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Parent list not found"


# =============================================================================
# Read / update / delete
# =============================================================================


async def test_get_lists_and_get_list(client: AsyncClient, make_list: MakeList) -> None:
    first = await make_list("First")
    await make_list("Second")

    response = await client.get("/lists/")
    assert response.status_code == 200
    assert [lst["name"] for lst in response.json()] == ["First", "Second"]

    response = await client.get(f"/lists/{first.id}")
    assert response.status_code == 200
    assert response.json()["id"] == str(first.id)

    response = await client.get(f"/lists/{FAKE_UUID}")
    assert response.status_code == 404
    assert response.json()["detail"] == "List not found"


async def test_update_list(client: AsyncClient, make_list: MakeList) -> None:
    bookmark_list = await make_list("Old", icon="📁")

    response = await client.patch(f"/lists/{bookmark_list.id}", json={"name": "New"})
    assert response.status_code == 200
    assert response.json()["name"] == "New"
    assert response.json()["icon"] == "📁"


async def test_update_list_not_found(client: AsyncClient) -> None:
    response = await client.patch(f"/lists/{FAKE_UUID}", json={"name": "x"})
    assert response.status_code == 404


async def test_update_list_query_on_manual_list(client: AsyncClient, make_list: MakeList) -> None:
    bookmark_list = await make_list()

    response = await client.patch(f"/lists/{bookmark_list.id}", json={"query": "#work"})
    assert response.status_code == 422
    assert response.json()["detail"][0]["type"] == "manual_list_query"


async def test_update_list_parent(client: AsyncClient, make_list: MakeList) -> None:
    """Move under a parent, then back to the top level with an explicit null."""
    parent = await make_list("Parent")
    child = await make_list("Child")

    response = await client.patch(f"/lists/{child.id}", json={"parent_id": str(parent.id)})
    assert response.status_code == 200
    assert response.json()["parent_id"] == str(parent.id)

    response = await client.patch(f"/lists/{child.id}", json={"parent_id": None})
    assert response.status_code == 200
    assert response.json()["parent_id"] is None


async def test_update_list_hierarchy_errors(client: AsyncClient, make_list: MakeList) -> None:
    parent = await make_list("Parent")
    child = await make_list("Child", parent_id=parent.id)

    response = await client.patch(f"/lists/{parent.id}", json={"parent_id": str(parent.id)})
    assert response.status_code == 422
    assert response.json()["detail"][0]["type"] == "self_parent"

    response = await client.patch(f"/lists/{parent.id}", json={"parent_id": str(child.id)})
    assert response.status_code == 400

    response = await client.patch(f"/lists/{child.id}", json={"parent_id": FAKE_UUID})
    assert response.status_code == 404
    assert response.json()["detail"] == "Parent list not found"

    response = await client.get(f"/lists/{parent.id}")
    assert response.json()["parent_id"] is None


async def test_delete_list(client: AsyncClient, make_list: MakeList) -> None:
    parent = await make_list("Parent")
    child = await make_list("Child", parent_id=parent.id)

    response = await client.delete(f"/lists/{parent.id}")
    assert response.status_code == 204

    assert (await client.get(f"/lists/{parent.id}")).status_code == 404
    assert (await client.get(f"/lists/{child.id}")).json()["parent_id"] is None
    assert (await client.delete(f"/lists/{parent.id}")).status_code == 404


async def test_get_list_descendants(client: AsyncClient, make_list: MakeList) -> None:
    parent = await make_list("Parent")
    child = await make_list("Child", parent_id=parent.id)
    grandchild = await make_list("Grandchild", parent_id=child.id)

    response = await client.get(f"/lists/{parent.id}/descendants")
    assert response.status_code == 200
    assert set(response.json()) == {str(child.id), str(grandchild.id)}

    response = await client.get(f"/lists/{FAKE_UUID}/descendants")
    assert response.status_code == 404


# =============================================================================
# Membership
# =============================================================================


async def test_add_and_remove_bookmark(
    client: AsyncClient,
    make_list: MakeList,
    make_bookmark: MakeBookmark,
) -> None:
    bookmark_list = await make_list()
    bookmark = await make_bookmark()
    url = f"/lists/{bookmark_list.id}/bookmarks/{bookmark.id}"

    assert (await client.put(url)).status_code == 204
    assert (await client.put(url)).status_code == 204

    response = await client.get(f"/lists/{bookmark_list.id}/bookmarks")
    assert response.status_code == 200
    assert response.json() == {
        "list_id": str(bookmark_list.id),
        "bookmark_ids": [str(bookmark.id)],
        "total": 1,
    }

    assert (await client.delete(url)).status_code == 204
    response = await client.delete(url)
    assert response.status_code == 404
    assert response.json()["detail"] == "Bookmark is not in this list"


async def test_add_bookmark_errors(
    client: AsyncClient,
    make_list: MakeList,
    make_bookmark: MakeBookmark,
) -> None:
    manual = await make_list("Manual")
    smart = await make_list("Smart", type=ListType.SMART, query="#a")
    bookmark = await make_bookmark()

    response = await client.put(f"/lists/{FAKE_UUID}/bookmarks/{bookmark.id}")
    assert response.status_code == 404
    assert response.json()["detail"] == "List not found"

    response = await client.put(f"/lists/{manual.id}/bookmarks/{FAKE_UUID}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Bookmark not found"

    response = await client.put(f"/lists/{smart.id}/bookmarks/{bookmark.id}")
    assert response.status_code == 400

    response = await client.delete(f"/lists/{smart.id}/bookmarks/{bookmark.id}")
    assert response.status_code == 400


async def test_get_smart_list_bookmarks(
    client: AsyncClient,
    make_list: MakeList,
    make_bookmark: MakeBookmark,
) -> None:
    smart = await make_list("Favourites", type=ListType.SMART, query="is:fav")
    favourite = await make_bookmark("https://fav.example.com/", favourited=True)
    await make_bookmark("https://plain.example.com/")

    response = await client.get(f"/lists/{smart.id}/bookmarks")
    assert response.status_code == 200
    assert response.json()["bookmark_ids"] == [str(favourite.id)]

    response = await client.get(f"/lists/{FAKE_UUID}/bookmarks")
    assert response.status_code == 404


# =============================================================================
# Merge
# =============================================================================


async def test_merge_lists(
    client: AsyncClient,
    make_list: MakeList,
    make_bookmark: MakeBookmark,
    add_members: AddMembers,
) -> None:
    source = await make_list("Source")
    target = await make_list("Target")
    b1 = await make_bookmark("https://one.example.com/")
    b2 = await make_bookmark("https://two.example.com/")
    await add_members(source, [b1, b2])
    await add_members(target, [b2])
    payload = {
        "list_id": str(source.id),
        "target_id": str(target.id),
        "source_name": "Source",
        "source_icon": "📚",
    }

    response = await client.post("/lists/merge", json=payload)
    assert response.status_code == 200
    assert response.json() == {
        "total_items": 2,
        "added_count": 1,
        "duplicate_count": 1,
        "failed_count": 0,
    }

    response = await client.post("/lists/merge", json=payload)
    assert response.json()["added_count"] == 0
    assert response.json()["duplicate_count"] == 2

    response = await client.get(f"/lists/{target.id}/bookmarks")
    assert set(response.json()["bookmark_ids"]) == {str(b1.id), str(b2.id)}


async def test_merge_lists_rejections(client: AsyncClient, make_list: MakeList) -> None:
    manual = await make_list("Manual")
    smart = await make_list("Smart", type=ListType.SMART, query="#a")

    response = await client.post(
        "/lists/merge", json={"list_id": str(manual.id), "target_id": str(manual.id)},
    )
    assert response.status_code == 422

    response = await client.post(
        "/lists/merge", json={"list_id": FAKE_UUID, "target_id": str(manual.id)},
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "List not found"

    response = await client.post(
        "/lists/merge", json={"list_id": str(manual.id), "target_id": str(smart.id)},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot merge into a smart list"


# =============================================================================
# Query validation
# =============================================================================


async def test_validate_query(client: AsyncClient) -> None:
    response = await client.post("/lists/validate-query", json={"query": "#work -is:archived"})
    assert response.status_code == 200
    assert response.json() == {
        "parsed": True,
        "has_free_text": False,
        "free_text_terms": [],
        "error": None,
    }

    response = await client.post("/lists/validate-query", json={"query": "#work python"})
    assert response.json()["has_free_text"] is True
    assert response.json()["free_text_terms"] == ["python"]

    response = await client.post("/lists/validate-query", json={"query": "(#work"})
    assert response.json()["parsed"] is False
    assert response.json()["error"]
