"""
Article endpoint tests: CRUD, the draft/published/archived lifecycle,
visibility of unpublished articles, slugs, search and pagination.
"""
import pytest
from httpx import AsyncClient

IMAGE = "https://images.example.com/cover.png"


async def _create_article(client: AsyncClient, headers: dict, **overrides) -> dict:
    payload = {
        "title": "Getting Started with FastAPI",
        "content": "FastAPI is a modern, fast web framework for Python.",
        "excerpt": "An introduction.",
        "featured_image": IMAGE,
        **overrides,
    }
    resp = await client.post("/api/v1/articles", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _publish(client: AsyncClient, headers: dict, article_id: int) -> dict:
    resp = await client.post(f"/api/v1/articles/{article_id}/publish", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_starts_as_draft(async_client: AsyncClient, register):
    user, headers = await register("alice")
    article = await _create_article(async_client, headers)

    assert article["title"] == "Getting Started with FastAPI"
    assert article["slug"] == "getting-started-with-fastapi"
    assert article["status"] == "draft"
    assert article["published_at"] is None
    assert article["view_count"] == 0
    assert article["author_id"] == user["user"]["id"]
    assert article["author"]["username"] == "alice"
    assert article["category"] is None


@pytest.mark.asyncio
async def test_create_article_requires_auth(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/articles", json={"title": "T", "content": "C"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_duplicate_title_gets_suffixed_slug(async_client: AsyncClient, auth_headers):
    first = await _create_article(async_client, auth_headers, title="Same Title")
    second = await _create_article(async_client, auth_headers, title="Same Title")
    third = await _create_article(async_client, auth_headers, title="Same Title")
    assert first["slug"] == "same-title"
    assert second["slug"] == "same-title-2"
    assert third["slug"] == "same-title-3"


@pytest.mark.asyncio
async def test_create_article_slug_is_url_safe(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers, title="Hello, World! (2024 Edition)")
    assert article["slug"] == "hello-world-2024-edition"


@pytest.mark.asyncio
@pytest.mark.parametrize("field,value", [
    ("title", "   "),
    ("content", ""),
    ("featured_image", "ftp://example.com/a.png"),
])
async def test_create_article_rejects_invalid_fields(async_client: AsyncClient, auth_headers, field, value):
    payload = {"title": "Valid", "content": "Valid content", field: value}
    resp = await async_client.post("/api/v1/articles", json=payload, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"]["field"] == field


@pytest.mark.asyncio
@pytest.mark.parametrize("category_id", [999, 0, 10 ** 20])
async def test_create_article_unknown_category(async_client: AsyncClient, auth_headers, category_id):
    resp = await async_client.post(
        "/api/v1/articles",
        json={"title": "T", "content": "C", "category_id": category_id},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"]["field"] == "category_id"


@pytest.mark.asyncio
async def test_create_article_with_category(async_client: AsyncClient, auth_headers):
    category = await async_client.post("/api/v1/categories", json={"name": "Python"}, headers=auth_headers)
    category_id = category.json()["data"]["id"]

    article = await _create_article(async_client, auth_headers, category_id=category_id)
    assert article["category_id"] == category_id
    assert article["category"]["slug"] == "python"


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_draft_visible_to_author_only(async_client: AsyncClient, register):
    _, alice = await register("alice")
    _, bob = await register("bob")
    article = await _create_article(async_client, alice)

    own = await async_client.get(f"/api/v1/articles/{article['id']}", headers=alice)
    assert own.status_code == 200
    assert own.json()["data"]["view_count"] == 0

    other = await async_client.get(f"/api/v1/articles/{article['id']}", headers=bob)
    assert other.status_code == 404

    anonymous = await async_client.get(f"/api/v1/articles/{article['id']}")
    assert anonymous.status_code == 404


@pytest.mark.asyncio
async def test_list_only_shows_published(async_client: AsyncClient, auth_headers):
    draft = await _create_article(async_client, auth_headers, title="Draft Article")
    live = await _create_article(async_client, auth_headers, title="Live Article")
    await _publish(async_client, auth_headers, live["id"])

    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["id"] == live["id"]
    assert "content" not in page["items"][0]
    assert draft["id"] not in [a["id"] for a in page["items"]]


@pytest.mark.asyncio
async def test_list_mine_includes_drafts_and_filters_status(async_client: AsyncClient, register):
    _, alice = await register("alice")
    _, bob = await register("bob")
    await _create_article(async_client, alice, title="Alice Draft")
    live = await _create_article(async_client, alice, title="Alice Live")
    await _publish(async_client, alice, live["id"])
    await _create_article(async_client, bob, title="Bob Draft")

    resp = await async_client.get("/api/v1/articles/mine", headers=alice)
    assert resp.status_code == 200
    assert resp.json()["data"]["total"] == 2

    drafts = await async_client.get("/api/v1/articles/mine?status=draft", headers=alice)
    assert [a["title"] for a in drafts.json()["data"]["items"]] == ["Alice Draft"]

    bad = await async_client.get("/api/v1/articles/mine?status=deleted", headers=alice)
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_get_published_article_counts_views(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    await _publish(async_client, auth_headers, article["id"])

    for expected in (1, 2, 3):
        resp = await async_client.get(f"/api/v1/articles/{article['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["view_count"] == expected

    by_slug = await async_client.get(f"/api/v1/articles/slug/{article['slug']}")
    assert by_slug.status_code == 200
    assert by_slug.json()["data"]["view_count"] == 4
    assert by_slug.json()["data"]["content"].startswith("FastAPI")


@pytest.mark.asyncio
async def test_article_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles/99999")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"

    resp = await async_client.get("/api/v1/articles/slug/no-such-article")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)

    resp = await async_client.put(
        f"/api/v1/articles/{article['id']}",
        json={"excerpt": "A shorter intro."},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["excerpt"] == "A shorter intro."
    assert updated["title"] == article["title"]
    assert updated["content"] == article["content"]
    assert updated["slug"] == article["slug"]
    assert updated["featured_image"] == IMAGE


@pytest.mark.asyncio
async def test_update_title_regenerates_slug(async_client: AsyncClient, auth_headers):
    await _create_article(async_client, auth_headers, title="Taken Title")
    article = await _create_article(async_client, auth_headers, title="Original")

    resp = await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"title": "Taken Title"}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["slug"] == "taken-title-2"


@pytest.mark.asyncio
async def test_update_by_non_author_is_forbidden(async_client: AsyncClient, register):
    _, alice = await register("alice")
    _, bob = await register("bob")
    article = await _create_article(async_client, alice)

    resp = await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"title": "Hijacked"}, headers=bob
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    resp = await async_client.delete(f"/api/v1/articles/{article['id']}", headers=bob)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_nonexistent_article(async_client: AsyncClient, auth_headers):
    resp = await async_client.put("/api/v1/articles/99999", json={"title": "X"}, headers=auth_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_article(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)

    resp = await async_client.delete(f"/api/v1/articles/{article['id']}", headers=auth_headers)
    assert resp.status_code == 204

    resp = await async_client.get(f"/api/v1/articles/{article['id']}", headers=auth_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_requires_auth(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    resp = await async_client.delete(f"/api/v1/articles/{article['id']}")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_publish_sets_published_at(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    published = await _publish(async_client, auth_headers, article["id"])
    assert published["status"] == "published"
    assert published["published_at"] is not None


@pytest.mark.asyncio
async def test_publish_without_featured_image_fails(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers, featured_image=None)
    resp = await async_client.post(f"/api/v1/articles/{article['id']}/publish", headers=auth_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "BUSINESS_LOGIC_ERROR"
    assert body["message"] == "featured image is required to publish"


@pytest.mark.asyncio
async def test_publish_twice_is_rejected(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    await _publish(async_client, auth_headers, article["id"])

    resp = await async_client.post(f"/api/v1/articles/{article['id']}/publish", headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "cannot change article status from published to published"


@pytest.mark.asyncio
async def test_published_article_cannot_drop_image(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    await _publish(async_client, auth_headers, article["id"])

    resp = await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"featured_image": None}, headers=auth_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_archive_flow(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)

    draft_archive = await async_client.post(
        f"/api/v1/articles/{article['id']}/archive", headers=auth_headers
    )
    assert draft_archive.status_code == 400

    await _publish(async_client, auth_headers, article["id"])
    resp = await async_client.post(f"/api/v1/articles/{article['id']}/archive", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "archived"

    edit = await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"title": "Too late"}, headers=auth_headers
    )
    assert edit.status_code == 400

    public = await async_client.get(f"/api/v1/articles/{article['id']}")
    assert public.status_code == 404


# ---------------------------------------------------------------------------
# Search and pagination
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_matches_title_and_content(async_client: AsyncClient, auth_headers):
    for title, content in [
        ("Async Python", "Coroutines everywhere."),
        ("Databases", "Postgres tuning with python drivers."),
        ("Gardening", "Tomatoes need sun."),
    ]:
        article = await _create_article(async_client, auth_headers, title=title, content=content)
        await _publish(async_client, auth_headers, article["id"])

    resp = await async_client.get("/api/v1/articles?q=PYTHON")
    titles = sorted(a["title"] for a in resp.json()["data"]["items"])
    assert titles == ["Async Python", "Databases"]

    # LIKE wildcards in the query are matched literally.
    resp = await async_client.get("/api/v1/articles?q=%25")
    assert resp.json()["data"]["total"] == 0


@pytest.mark.asyncio
async def test_filter_by_category(async_client: AsyncClient, auth_headers):
    category = await async_client.post("/api/v1/categories", json={"name": "News"}, headers=auth_headers)
    category_id = category.json()["data"]["id"]
    tagged = await _create_article(async_client, auth_headers, title="In News", category_id=category_id)
    other = await _create_article(async_client, auth_headers, title="Elsewhere")
    for article in (tagged, other):
        await _publish(async_client, auth_headers, article["id"])

    resp = await async_client.get(f"/api/v1/articles?category_id={category_id}")
    assert [a["title"] for a in resp.json()["data"]["items"]] == ["In News"]


@pytest.mark.asyncio
async def test_article_pagination(async_client: AsyncClient, auth_headers):
    for i in range(5):
        article = await _create_article(async_client, auth_headers, title=f"Paged {i}")
        await _publish(async_client, auth_headers, article["id"])

    resp = await async_client.get("/api/v1/articles?page=1&page_size=2&sort_by=title&sort_order=asc")
    page = resp.json()["data"]
    assert page["total"] == 5
    assert page["pages"] == 3
    assert [a["title"] for a in page["items"]] == ["Paged 0", "Paged 1"]

    last = await async_client.get("/api/v1/articles?page=3&page_size=2&sort_by=title&sort_order=asc")
    assert [a["title"] for a in last.json()["data"]["items"]] == ["Paged 4"]

    beyond = await async_client.get("/api/v1/articles?page=10&page_size=2")
    assert beyond.json()["data"]["items"] == []
    assert beyond.json()["data"]["total"] == 5


@pytest.mark.asyncio
async def test_unknown_sort_column_falls_back(async_client: AsyncClient, auth_headers):
    article = await _create_article(async_client, auth_headers)
    await _publish(async_client, auth_headers, article["id"])
    resp = await async_client.get("/api/v1/articles?sort_by=password_hash")
    assert resp.status_code == 200
    assert resp.json()["data"]["total"] == 1
