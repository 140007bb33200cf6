"""Tests for the todo list endpoints (/api/todos/lists)."""

import pytest
from httpx import AsyncClient

LISTS = "/api/todos/lists"
ITEMS = "/api/todos/items"


async def create_list(client: AsyncClient, headers, title="Groceries", colour="#FF5733") -> dict:
    response = await client.post(LISTS, json={"title": title, "colour": colour}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.api
class TestAccess:
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get(LISTS)

        assert response.status_code == 401
        body = response.json()
        assert body["is_success"] is False
        assert body["errors"][0]["type"] == "unauthorized"

    async def test_missing_permission(self, client: AsyncClient, customer_headers):
        response = await client.get(LISTS, headers=customer_headers)

        assert response.status_code == 403
        assert response.json()["errors"][0]["type"] == "forbidden"

    async def test_viewer_can_list_but_not_create(self, client: AsyncClient, viewer_headers):
        listed = await client.get(LISTS, headers=viewer_headers)
        created = await client.post(
            LISTS, json={"title": "Groceries", "colour": "#FF5733"}, headers=viewer_headers
        )

        assert listed.status_code == 200
        assert created.status_code == 403


@pytest.mark.api
class TestCreate:
    async def test_create(self, client: AsyncClient, admin_headers):
        response = await client.post(
            LISTS, json={"title": "Groceries", "colour": "#ff5733"}, headers=admin_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Todo list created"
        assert body["data"]["title"] == "Groceries"
        assert body["data"]["colour"] == "#FF5733"
        assert body["data"]["id"] > 0

    async def test_duplicate_title(self, client: AsyncClient, admin_headers):
        await create_list(client, admin_headers)

        response = await client.post(
            LISTS, json={"title": "groceries", "colour": "#FFFFFF"}, headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "TodoList.TodoListAlreadyExists"

    async def test_validation_errors(self, client: AsyncClient, admin_headers):
        response = await client.post(
            LISTS, json={"title": "Bad!", "colour": "red"}, headers=admin_headers
        )

        assert response.status_code == 400
        codes = [e["code"] for e in response.json()["errors"]]
        assert codes == ["TodoList.TitleInvalidFormat", "TodoList.ColourInvalidFormat"]

    async def test_unsupported_colour(self, client: AsyncClient, admin_headers):
        response = await client.post(
            LISTS, json={"title": "Groceries", "colour": "#123456"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "Colour.NotSupported"


@pytest.mark.api
class TestRead:
    async def test_paginated_list(self, client: AsyncClient, admin_headers):
        for title in ("Alpha", "Bravo", "Charlie"):
            await create_list(client, admin_headers, title=title)

        response = await client.get(
            LISTS,
            params={"page_number": 2, "page_size": 2, "sort_by": "title"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert [item["title"] for item in body["data"]] == ["Charlie"]
        assert body["pagination"]["total_items"] == 3
        assert body["pagination"]["total_pages"] == 2
        assert body["pagination"]["has_previous"] is True
        assert body["pagination"]["has_next"] is False

    async def test_search_and_filter(self, client: AsyncClient, admin_headers):
        await create_list(client, admin_headers, title="Home chores", colour="#999999")
        await create_list(client, admin_headers, title="Home repairs", colour="#FF5733")
        await create_list(client, admin_headers, title="Work")

        searched = await client.get(LISTS, params={"search_term": "home"}, headers=admin_headers)
        filtered = await client.get(
            LISTS,
            params={"search_term": "home", "filters": "colour[eq]=#999999"},
            headers=admin_headers,
        )

        assert searched.json()["pagination"]["total_items"] == 2
        assert [item["title"] for item in filtered.json()["data"]] == ["Home chores"]

    async def test_page_size_limit(self, client: AsyncClient, admin_headers):
        response = await client.get(LISTS, params={"page_size": 101}, headers=admin_headers)
        assert response.status_code == 400

    async def test_get_detail(self, client: AsyncClient, admin_headers):
        created = await create_list(client, admin_headers)

        response = await client.get(f"{LISTS}/{created['id']}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Groceries"
        assert data["is_completed"] is True
        assert data["created_by"] is not None

    async def test_get_missing(self, client: AsyncClient, admin_headers):
        response = await client.get(f"{LISTS}/999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "TodoList.TodoListNotFound"


@pytest.mark.api
class TestUpdateDelete:
    async def test_update(self, client: AsyncClient, admin_headers):
        created = await create_list(client, admin_headers)

        response = await client.put(
            f"{LISTS}/{created['id']}",
            json={"title": "Shopping", "colour": "#6666FF"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Shopping"

    async def test_update_missing(self, client: AsyncClient, admin_headers):
        response = await client.put(
            f"{LISTS}/999", json={"title": "Shopping", "colour": "#6666FF"}, headers=admin_headers
        )
        assert response.status_code == 404

    async def test_delete_removes_items(self, client: AsyncClient, admin_headers):
        created = await create_list(client, admin_headers)
        item = await client.post(
            ITEMS, json={"list_id": created["id"], "title": "Milk"}, headers=admin_headers
        )
        item_id = item.json()["data"]["id"]

        response = await client.delete(f"{LISTS}/{created['id']}", headers=admin_headers)

        assert response.status_code == 204
        assert response.content == b""
        list_after = await client.get(f"{LISTS}/{created['id']}", headers=admin_headers)
        item_after = await client.get(f"{ITEMS}/{item_id}", headers=admin_headers)
        assert list_after.status_code == 404
        assert item_after.status_code == 404

    async def test_delete_missing(self, client: AsyncClient, admin_headers):
        response = await client.delete(f"{LISTS}/999", headers=admin_headers)
        assert response.status_code == 404
