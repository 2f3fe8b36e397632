"""Tests for the HTTP API."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from cineco.core.contracts import Bucket, Category, FeedSettings
from cineco.core.feed_controller import FeedController
from cineco.core.library import add_entry
from cineco.core.sessions import FeedSessionRegistry
from cineco.providers.tmdb_client import TMDBServerError
from cineco.tests.fakes import FakeCatalog, FakeStore, make_candidate, page_of

AUTH = {"Authorization": "Bearer test-api-token"}

M = Category.MOVIE
S = Category.SERIES


@pytest.fixture
def feed_store():
    return FakeStore()


@pytest.fixture
def registry(feed_store):
    catalog = FakeCatalog({
        (M, 1): page_of(1, 2, 3),
        (S, 1): page_of(50, 51, category=S),
    })

    def factory(user_id: str) -> FeedController:
        return FeedController(
            user_id=user_id,
            catalog=catalog,
            store=feed_store,
            settings=FeedSettings(initial_pages=1, low_water_mark=0),
        )

    return FeedSessionRegistry(factory)


@pytest.fixture
def catalog():
    client = AsyncMock()
    client.search.return_value = [make_candidate(550, M, title="Fight Club")]
    client.search_all.return_value = {
        M: [make_candidate(550, M, title="Fight Club")],
        S: [],
    }
    return client


@pytest.fixture
async def client(registry, catalog, session_factory):
    from cineco.main import app, get_catalog, get_db_session, get_registry

    async def override_db_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_db_session] = override_db_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_health_endpoint(client):
    """Test that health endpoint returns ok status."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


# Auth


@pytest.mark.anyio
async def test_missing_token_is_rejected(client):
    response = await client.get("/users/42/feed/current")
    assert response.status_code == 401


@pytest.mark.anyio
async def test_wrong_token_is_rejected(client):
    response = await client.get("/users/42/feed/current", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 403


@pytest.mark.anyio
async def test_bare_token_is_accepted(client):
    response = await client.post("/users/42/feed/start", headers={"Authorization": "test-api-token"})
    assert response.status_code == 200


# Feed


@pytest.mark.anyio
async def test_feed_start_current_and_classify(client, feed_store):
    response = await client.post("/users/42/feed/start?category=movie", headers=AUTH)
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "ready"
    assert body["current"]["id"] == 1
    assert body["buffered"] == 3

    response = await client.get("/users/42/feed/current", headers=AUTH)
    assert response.json()["current"]["id"] == 1

    response = await client.post("/users/42/feed/classify", json={"bucket": "watched"}, headers=AUTH)
    assert response.status_code == 200
    body = response.json()
    assert body["classified"]["id"] == 1
    assert body["bucket"] == "watched"
    assert body["persisted"] is True
    assert body["error"] is None
    assert body["feed"]["current"]["id"] == 2
    assert feed_store.buckets_for("42", M, 1) == {Bucket.WATCHED}


@pytest.mark.anyio
async def test_feed_switch_category(client):
    await client.post("/users/42/feed/start?category=movie", headers=AUTH)

    response = await client.post("/users/42/feed/start?category=series", headers=AUTH)

    body = response.json()
    assert body["category"] == "series"
    assert body["current"]["id"] == 50


@pytest.mark.anyio
async def test_classify_write_failure_is_reported(client, feed_store):
    feed_store.fail_writes_for.add(1)
    await client.post("/users/42/feed/start", headers=AUTH)

    response = await client.post("/users/42/feed/classify", json={"bucket": "skipped"}, headers=AUTH)

    body = response.json()
    assert body["persisted"] is False
    assert "decision store unavailable" in body["error"]
    assert body["feed"]["current"]["id"] == 2


@pytest.mark.anyio
async def test_feed_without_session_is_404(client):
    response = await client.get("/users/nobody/feed/current", headers=AUTH)
    assert response.status_code == 404

    response = await client.post("/users/nobody/feed/classify", json={"bucket": "skipped"}, headers=AUTH)
    assert response.status_code == 404


@pytest.mark.anyio
async def test_classify_on_exhausted_feed_is_404(client):
    await client.post("/users/42/feed/start?category=series", headers=AUTH)
    for _ in range(2):
        await client.post("/users/42/feed/classify", json={"bucket": "skipped"}, headers=AUTH)

    response = await client.post("/users/42/feed/classify", json={"bucket": "skipped"}, headers=AUTH)

    assert response.status_code == 404


@pytest.mark.anyio
async def test_classify_during_pending_write_is_409(client, feed_store):
    feed_store.write_gates[1] = asyncio.Event()
    await client.post("/users/42/feed/start", headers=AUTH)

    first = asyncio.create_task(
        client.post("/users/42/feed/classify", json={"bucket": "watched"}, headers=AUTH)
    )
    await asyncio.wait_for(feed_store.write_started.setdefault(1, asyncio.Event()).wait(), 1.0)

    response = await client.post("/users/42/feed/classify", json={"bucket": "skipped"}, headers=AUTH)
    assert response.status_code == 409

    feed_store.write_gates[1].set()
    response = await first
    assert response.status_code == 200
    assert response.json()["feed"]["current"]["id"] == 2


@pytest.mark.anyio
async def test_classify_rejects_unknown_bucket(client):
    await client.post("/users/42/feed/start", headers=AUTH)

    response = await client.post("/users/42/feed/classify", json={"bucket": "loved"}, headers=AUTH)

    assert response.status_code == 422


@pytest.mark.anyio
async def test_close_feed(client, registry):
    await client.post("/users/42/feed/start", headers=AUTH)

    response = await client.delete("/users/42/feed", headers=AUTH)

    assert response.json() == {"ok": True, "closed": True}
    assert registry.get("42") is None


# Library


@pytest.mark.anyio
async def test_library_listing_and_move(client, session):
    await add_entry(session, "42", make_candidate(7, M, title="Heat"), Bucket.WATCHLISTED)

    response = await client.get("/users/42/library/movie/watchlisted", headers=AUTH)
    entries = response.json()["entries"]
    assert [e["title"] for e in entries] == ["Heat"]
    assert entries[0]["poster_url"] == "https://image.tmdb.org/t/p/w500/poster7.jpg"

    response = await client.post("/users/42/library/movie/7/watched", headers=AUTH)
    assert response.status_code == 200

    response = await client.get("/users/42/library/movie/items/7", headers=AUTH)
    assert response.json()["buckets"] == ["watched"]

    response = await client.get("/users/42/stats", headers=AUTH)
    assert response.json()["watched"] == {"movie": 1, "series": 0}


@pytest.mark.anyio
async def test_move_without_watchlist_entry_is_404(client):
    response = await client.post("/users/42/library/series/1399/watched", headers=AUTH)
    assert response.status_code == 404


@pytest.mark.anyio
async def test_remove_from_library(client, session):
    await add_entry(session, "42", make_candidate(8, S), Bucket.WATCHED)

    response = await client.delete("/users/42/library/series/watched/8", headers=AUTH)
    assert response.status_code == 200

    response = await client.delete("/users/42/library/series/watched/8", headers=AUTH)
    assert response.status_code == 404


# Search


@pytest.mark.anyio
async def test_search_all_categories(client, catalog):
    response = await client.get("/search", params={"query": "fight club"}, headers=AUTH)

    body = response.json()
    assert [r["title"] for r in body["results"]["movie"]] == ["Fight Club"]
    assert body["results"]["series"] == []
    catalog.search_all.assert_awaited_once_with("fight club")


@pytest.mark.anyio
async def test_search_single_category(client, catalog):
    response = await client.get("/search", params={"query": "fight", "category": "movie"}, headers=AUTH)

    assert list(response.json()["results"]) == ["movie"]
    catalog.search.assert_awaited_once_with(M, "fight")


@pytest.mark.anyio
async def test_search_catalog_failure_is_503(client, catalog):
    catalog.search_all.side_effect = TMDBServerError("Server error: 500", status_code=500)

    response = await client.get("/search", params={"query": "x"}, headers=AUTH)

    assert response.status_code == 503
