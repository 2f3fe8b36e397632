"""Tests for the TMDB catalog client."""

from unittest.mock import AsyncMock

import httpx
import pytest

from cineco.core.adapters import TMDBCatalog
from cineco.core.contracts import Category, FeedSettings, FeedState
from cineco.core.errors import CollaboratorUnavailable
from cineco.core.feed_controller import FeedController
from cineco.providers.tmdb_client import (
    TMDBBadRequestError,
    TMDBClient,
    TMDBNetworkError,
    TMDBRateLimitError,
    TMDBServerError,
    candidate_from_tmdb,
    genre_ids_to_names,
    release_year,
)
from cineco.tests.fakes import FakeStore

MOVIE_RESULT = {
    "id": 550,
    "title": "Fight Club",
    "overview": "An insomniac office worker...",
    "poster_path": "/fc.jpg",
    "release_date": "1999-10-15",
    "vote_average": 8.433,
    "genre_ids": [18, 53],
}

TV_RESULT = {
    "id": 1399,
    "name": "Game of Thrones",
    "overview": "Seven noble families...",
    "poster_path": None,
    "first_air_date": "",
    "vote_average": 8.4,
    "genre_ids": [10765],
}


def make_client(handler) -> TMDBClient:
    return TMDBClient(
        bearer_token="test_token",
        max_retries=3,
        backoff=0,
        transport=httpx.MockTransport(handler),
    )


# Mapping


def test_candidate_from_movie_result():
    candidate = candidate_from_tmdb(MOVIE_RESULT, Category.MOVIE)

    assert candidate.id == 550
    assert candidate.title == "Fight Club"
    assert candidate.year == "1999"
    assert candidate.rating_formatted == "8.4"
    assert candidate.poster_url == "https://image.tmdb.org/t/p/w500/fc.jpg"
    assert candidate.genre_ids == frozenset({18, 53})


def test_candidate_from_tv_result_without_date_or_poster():
    candidate = candidate_from_tmdb(TV_RESULT, Category.SERIES)

    assert candidate.title == "Game of Thrones"
    assert candidate.year == "N/A"
    assert candidate.poster_url is None
    assert candidate.category is Category.SERIES


def test_candidate_without_id_or_title_is_dropped():
    assert candidate_from_tmdb({"title": "No id"}, Category.MOVIE) is None
    assert candidate_from_tmdb({"id": 1}, Category.MOVIE) is None


def test_release_year_edge_cases():
    assert release_year("2024-01-01") == "2024"
    assert release_year(None) == "N/A"
    assert release_year("") == "N/A"
    assert release_year("202") == "N/A"


def test_genre_ids_to_names_skips_unknown():
    assert genre_ids_to_names([53, 18, 999999]) == ["Drama", "Thriller"]


# Requests


@pytest.mark.anyio
async def test_fetch_page_movies_uses_discover_with_filters():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"page": 2, "results": [MOVIE_RESULT]})

    client = make_client(handler)
    candidates = await client.fetch_page(Category.MOVIE, 2)
    await client.close()

    assert [c.id for c in candidates] == [550]
    request = seen[0]
    assert request.url.path == "/3/discover/movie"
    assert request.url.params["with_original_language"] == "en"
    assert request.url.params["vote_count.gte"] == "200"
    assert request.url.params["page"] == "2"
    assert request.url.params["language"] == "en-US"
    assert request.headers["Authorization"] == "Bearer test_token"


@pytest.mark.anyio
async def test_fetch_page_series_uses_popular_tv():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [TV_RESULT]})

    client = make_client(handler)
    candidates = await client.fetch_page(Category.SERIES, 1)
    await client.close()

    assert seen[0].url.path == "/3/tv/popular"
    assert seen[0].url.params["with_original_language"] == "en"
    assert candidates[0].category is Category.SERIES


@pytest.mark.anyio
async def test_search_excludes_adult_results():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [MOVIE_RESULT]})

    client = make_client(handler)
    results = await client.search(Category.MOVIE, "  fight club ")
    await client.close()

    assert [c.title for c in results] == ["Fight Club"]
    assert seen[0].url.path == "/3/search/movie"
    assert seen[0].url.params["query"] == "fight club"
    assert seen[0].url.params["include_adult"] == "false"


@pytest.mark.anyio
async def test_search_with_empty_query_makes_no_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = make_client(handler)

    assert await client.search(Category.SERIES, "   ") == []
    await client.close()


@pytest.mark.anyio
async def test_search_all_queries_both_categories():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/3/search/movie":
            return httpx.Response(200, json={"results": [MOVIE_RESULT]})
        return httpx.Response(200, json={"results": [TV_RESULT]})

    client = make_client(handler)
    results = await client.search_all("thrones")
    await client.close()

    assert [c.id for c in results[Category.MOVIE]] == [550]
    assert [c.id for c in results[Category.SERIES]] == [1399]


# Retries and errors


@pytest.mark.anyio
async def test_server_error_is_retried():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"results": []})

    client = make_client(handler)
    assert await client.fetch_page(Category.MOVIE, 1) == []
    await client.close()

    assert calls == 3


@pytest.mark.anyio
async def test_server_error_after_max_retries_raises():
    client = make_client(lambda request: httpx.Response(503))

    with pytest.raises(TMDBServerError) as exc_info:
        await client.fetch_page(Category.MOVIE, 1)
    await client.close()

    assert exc_info.value.status_code == 503


@pytest.mark.anyio
async def test_client_error_is_not_retried():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, json={"status_message": "Invalid API key"})

    client = make_client(handler)
    with pytest.raises(TMDBBadRequestError, match="Invalid API key"):
        await client.fetch_page(Category.MOVIE, 1)
    await client.close()

    assert calls == 1


@pytest.mark.anyio
async def test_rate_limit_after_max_retries_raises():
    client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "0"}))

    with pytest.raises(TMDBRateLimitError):
        await client.fetch_page(Category.SERIES, 1)
    await client.close()


@pytest.mark.anyio
async def test_network_error_after_retries_raises():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(TMDBNetworkError):
        await client.fetch_page(Category.MOVIE, 1)
    await client.close()

    assert calls == 3


@pytest.mark.anyio
async def test_unparseable_success_body_raises_server_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(TMDBServerError, match="Unparseable"):
        await client.fetch_page(Category.MOVIE, 1)
    await client.close()


@pytest.mark.anyio
async def test_non_object_success_body_raises_server_error():
    client = make_client(lambda request: httpx.Response(200, json=[1, 2, 3]))

    with pytest.raises(TMDBServerError):
        await client.fetch_page(Category.SERIES, 1)
    await client.close()


@pytest.mark.anyio
async def test_null_results_map_to_no_candidates():
    client = make_client(lambda request: httpx.Response(200, json={"page": 1, "results": None}))

    assert await client.fetch_page(Category.MOVIE, 1) == []
    await client.close()


@pytest.mark.anyio
async def test_rate_limit_with_http_date_retry_after_uses_backoff():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})

    client = make_client(handler)
    with pytest.raises(TMDBRateLimitError) as exc_info:
        await client.fetch_page(Category.MOVIE, 1)
    await client.close()

    assert exc_info.value.retry_after is None
    assert calls == 3


# Adapter


@pytest.mark.anyio
async def test_catalog_adapter_wraps_tmdb_errors():
    client = AsyncMock()
    client.fetch_page.side_effect = TMDBServerError("Server error: 500", status_code=500)
    catalog = TMDBCatalog(client)

    with pytest.raises(CollaboratorUnavailable) as exc_info:
        await catalog.fetch_page(Category.MOVIE, 1)

    assert exc_info.value.collaborator == "catalog"


@pytest.mark.anyio
async def test_catalog_adapter_passes_candidates_through():
    client = AsyncMock()
    client.fetch_page.return_value = [candidate_from_tmdb(MOVIE_RESULT, Category.MOVIE)]
    catalog = TMDBCatalog(client)

    result = await catalog.fetch_page(Category.MOVIE, 3)

    assert [c.id for c in result] == [550]
    client.fetch_page.assert_awaited_once_with(Category.MOVIE, 3)


@pytest.mark.anyio
async def test_feed_over_maintenance_page_settles_in_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    controller = FeedController(
        user_id="u1",
        catalog=TMDBCatalog(client),
        store=FakeStore(),
        settings=FeedSettings(initial_pages=2, low_water_mark=0),
    )

    state = await controller.start(Category.MOVIE)
    await client.close()

    assert state is FeedState.ERROR
    assert controller.current() is None
