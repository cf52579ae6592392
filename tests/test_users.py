"""
User endpoint tests: listing, fetching by id, partial profile updates and
account deactivation.
"""
import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_users_requires_auth(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_users_paginated(async_client: AsyncClient, register):
    _, headers = await register("alice")
    await register("bob")
    await register("carol")

    resp = await async_client.get("/api/v1/users?page=1&page_size=2&sort_by=username&sort_order=asc", headers=headers)
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["total"] == 3
    assert page["page"] == 1
    assert page["page_size"] == 2
    assert page["pages"] == 2
    assert [u["username"] for u in page["items"]] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_list_users_rejects_bad_pagination(async_client: AsyncClient, auth_headers):
    resp = await async_client.get("/api/v1/users?page=0", headers=auth_headers)
    assert resp.status_code == 422
    resp = await async_client.get("/api/v1/users?page_size=101", headers=auth_headers)
    assert resp.status_code == 422
    resp = await async_client.get("/api/v1/users?sort_order=sideways", headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_user_by_id(async_client: AsyncClient, register):
    bob, _ = await register("bob")
    _, headers = await register("alice")

    resp = await async_client.get(f"/api/v1/users/{bob['user']['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["username"] == "bob"


@pytest.mark.asyncio
async def test_get_unknown_user_is_not_found(async_client: AsyncClient, auth_headers):
    resp = await async_client.get(f"/api/v1/users/{uuid.uuid4()}", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_update_profile_only_changes_supplied_fields(async_client: AsyncClient, register):
    _, headers = await register("alice", full_name="Alice Liddell")

    resp = await async_client.patch("/api/v1/users/me", json={"username": "alice_l"}, headers=headers)
    assert resp.status_code == 200
    user = resp.json()["data"]
    assert user["username"] == "alice_l"
    assert user["full_name"] == "Alice Liddell"
    assert user["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_update_profile_clears_full_name_with_null(async_client: AsyncClient, register):
    _, headers = await register("alice", full_name="Alice Liddell")
    resp = await async_client.patch("/api/v1/users/me", json={"full_name": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["full_name"] is None


@pytest.mark.asyncio
async def test_update_profile_username_conflict(async_client: AsyncClient, register):
    await register("bob")
    _, headers = await register("alice")
    resp = await async_client.patch("/api/v1/users/me", json={"username": "bob"}, headers=headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_profile_rejects_null_username(async_client: AsyncClient, auth_headers):
    resp = await async_client.patch("/api/v1/users/me", json={"username": None}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"]["field"] == "username"


@pytest.mark.asyncio
async def test_deactivate_signs_out_and_hides_user(async_client: AsyncClient, register):
    alice, alice_headers = await register("alice")
    _, bob_headers = await register("bob")

    resp = await async_client.delete("/api/v1/users/me", headers=alice_headers)
    assert resp.status_code == 204
    assert resp.content == b""

    assert (await async_client.get("/api/v1/auth/me", headers=alice_headers)).status_code == 401

    listing = await async_client.get("/api/v1/users", headers=bob_headers)
    assert [u["username"] for u in listing.json()["data"]["items"]] == ["bob"]
