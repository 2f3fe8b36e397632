"""TMDB API client with retry logic."""

import asyncio
from typing import Any, Literal

import httpx

from cineco.core.contracts import Candidate, Category
from cineco.logging import get_logger

logger = get_logger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_TIMEOUT = 15.0
MAX_RETRIES = 3
BASE_BACKOFF = 1.0

# Discovery filters: English-language titles with a meaningful number of votes
DISCOVERY_PARAMS: dict[str, Any] = {
    "with_original_language": "en",
    "vote_count.gte": 200,
}


# Combined movie + TV genre map (TMDB genre IDs -> English names)
TMDB_GENRE_MAP: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
    # TV-specific
    10759: "Action & Adventure",
    10762: "Kids",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
}


def genre_ids_to_names(genre_ids: list[int] | frozenset[int]) -> list[str]:
    """Convert TMDB genre IDs to human-readable names.

    Args:
        genre_ids: TMDB genre IDs

    Returns:
        List of genre name strings
    """
    return [TMDB_GENRE_MAP[gid] for gid in sorted(genre_ids) if gid in TMDB_GENRE_MAP]


def release_year(date: str | None) -> str:
    """Four-digit year from a TMDB date, or "N/A"."""
    if not date or len(date) < 4:
        return "N/A"
    return date[:4]


def candidate_from_tmdb(item: dict[str, Any], category: Category) -> Candidate | None:
    """Map one TMDB result to a Candidate.

    Args:
        item: TMDB result dict
        category: Category the result belongs to

    Returns:
        Candidate or None if the result has no ID or title
    """
    tmdb_id = item.get("id")
    if not tmdb_id:
        return None

    # Title differs between movies and TV
    if category is Category.MOVIE:
        title = item.get("title") or item.get("original_title")
        date = item.get("release_date")
    else:
        title = item.get("name") or item.get("original_name")
        date = item.get("first_air_date")

    if not title:
        return None

    vote_average = item.get("vote_average")

    return Candidate(
        id=int(tmdb_id),
        title=title,
        overview=item.get("overview") or "",
        poster_path=item.get("poster_path") or None,
        year=release_year(date),
        rating=float(vote_average) if vote_average is not None else 0.0,
        category=category,
        genre_ids=frozenset(item.get("genre_ids") or []),
    )


def candidates_from_response(data: dict[str, Any], category: Category) -> list[Candidate]:
    """Map a TMDB list response, keeping result order."""
    candidates = []
    for item in data.get("results") or []:
        if not isinstance(item, dict):
            continue
        candidate = candidate_from_tmdb(item, category)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


class TMDBError(Exception):
    """Base exception for TMDB API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TMDBBadRequestError(TMDBError):
    """Client error (4xx other than 429)."""


class TMDBServerError(TMDBError):
    """Server error persisted after retries."""


class TMDBNetworkError(TMDBError):
    """Timeout or transport failure persisted after retries."""


class TMDBRateLimitError(TMDBError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


def _parse_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a successful response, rejecting non-object bodies."""
    try:
        data = response.json()
    except ValueError as e:
        raise TMDBServerError(f"Unparseable response body: {e}", status_code=response.status_code) from e
    if not isinstance(data, dict):
        raise TMDBServerError(
            f"Unexpected response body: {type(data).__name__}",
            status_code=response.status_code,
        )
    return data


def _parse_retry_after(value: str | None) -> int | None:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(0, int(value))
    except ValueError:
        return None


class TMDBClient:
    """Async TMDB API client with retry logic."""

    def __init__(
        self,
        bearer_token: str,
        language: str = "en-US",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        backoff: float = BASE_BACKOFF,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize TMDB client.

        Args:
            bearer_token: TMDB API bearer token (v4 auth)
            language: Language for results (e.g., "en-US")
            timeout: Request timeout in seconds
            max_retries: Attempts per request before giving up
            backoff: Base delay for exponential backoff in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.bearer_token = bearer_token
        self.language = language
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=TMDB_BASE_URL,
                headers={
                    "Authorization": f"Bearer {self.bearer_token}",
                    "accept": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            path: API path (e.g., "/discover/movie")
            params: Query parameters

        Returns:
            Parsed JSON response

        Raises:
            TMDBError: On API error after retries exhausted
        """
        client = await self._get_client()

        if params is None:
            params = {}
        params.setdefault("language", self.language)

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            wait_time = self.backoff * (2 ** attempt)
            try:
                response = await client.request(method, path, params=params)

                if response.status_code == 200:
                    return _parse_body(response)

                if response.status_code == 429:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    if retry_after is not None:
                        wait_time = retry_after
                    logger.warning(
                        f"TMDB rate limited, retry after {wait_time}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(wait_time)
                        continue
                    raise TMDBRateLimitError(retry_after=retry_after)

                if response.status_code >= 500:
                    logger.warning(
                        f"TMDB server error {response.status_code}, "
                        f"retry in {wait_time}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(wait_time)
                        continue
                    raise TMDBServerError(
                        f"Server error: {response.status_code}",
                        status_code=response.status_code,
                    )

                # Client error (4xx except 429)
                try:
                    error_data = response.json() if response.content else {}
                except ValueError:
                    error_data = {}
                error_msg = error_data.get("status_message", f"HTTP {response.status_code}")
                raise TMDBBadRequestError(error_msg, status_code=response.status_code)

            except httpx.TimeoutException as e:
                logger.warning(
                    f"TMDB timeout, retry in {wait_time}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                last_error = e
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(wait_time)
                    continue

            except httpx.RequestError as e:
                logger.warning(
                    f"TMDB request error: {e}, retry in {wait_time}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                last_error = e
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(wait_time)
                    continue

        raise TMDBNetworkError(f"Max retries exceeded: {last_error}")

    async def discover(
        self,
        media_type: Literal["movie", "tv"],
        page: int = 1,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Discover movies or TV shows with filters.

        Args:
            media_type: "movie" or "tv"
            page: Page number (1-based)
            params: Additional filter parameters (e.g., vote_count.gte)

        Returns:
            TMDB response with results array
        """
        request_params: dict[str, Any] = {"page": page}
        if params:
            request_params.update(params)
        return await self._request("GET", f"/discover/{media_type}", params=request_params)

    async def fetch_popular(
        self,
        media_type: Literal["movie", "tv"],
        page: int = 1,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch popular movies or TV shows.

        Args:
            media_type: "movie" or "tv"
            page: Page number (1-based)
            params: Additional query parameters

        Returns:
            TMDB response with results array
        """
        request_params: dict[str, Any] = {"page": page}
        if params:
            request_params.update(params)
        return await self._request("GET", f"/{media_type}/popular", params=request_params)

    async def fetch_page(self, category: Category, page: int) -> list[Candidate]:
        """Fetch one page of discovery candidates.

        Movies come from /discover/movie and series from /tv/popular, both
        limited to English originals with at least 200 votes.

        Args:
            category: Movie or series
            page: Page number (1-based)

        Returns:
            Candidates in TMDB relevance order
        """
        if category is Category.MOVIE:
            data = await self.discover("movie", page=page, params=dict(DISCOVERY_PARAMS))
        else:
            data = await self.fetch_popular("tv", page=page, params=dict(DISCOVERY_PARAMS))
        return candidates_from_response(data, category)

    async def search(self, category: Category, query: str) -> list[Candidate]:
        """Search titles by free text.

        Args:
            category: Movie or series
            query: Search text

        Returns:
            Matching candidates (first page only)
        """
        query = query.strip()
        if not query:
            return []

        data = await self._request(
            "GET",
            f"/search/{category.tmdb_media_type}",
            params={"query": query, "include_adult": "false", "page": 1},
        )
        return candidates_from_response(data, category)

    async def search_all(self, query: str) -> dict[Category, list[Candidate]]:
        """Search movies and series concurrently.

        Args:
            query: Search text

        Returns:
            Results per category
        """
        movies, series = await asyncio.gather(
            self.search(Category.MOVIE, query),
            self.search(Category.SERIES, query),
        )
        return {Category.MOVIE: movies, Category.SERIES: series}


_client: TMDBClient | None = None


def get_tmdb_client() -> TMDBClient:
    """Get or create the shared TMDB client from configuration."""
    global _client

    if _client is None:
        from cineco.config import config

        if not config.tmdb_bearer_token:
            logger.warning("TMDB_BEARER_TOKEN not set, catalog requests will fail")

        _client = TMDBClient(
            bearer_token=config.tmdb_bearer_token or "",
            language=config.tmdb_language,
            timeout=config.tmdb_timeout_seconds,
            max_retries=config.tmdb_max_retries,
        )

    return _client


async def close_tmdb_client() -> None:
    """Close the shared TMDB client."""
    global _client

    if _client is not None:
        await _client.close()
        _client = None
