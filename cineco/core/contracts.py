"""Domain contracts and type definitions for the discovery feed."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Protocol

from cineco.core.errors import FeedError

TMDB_POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"


class Category(str, Enum):
    """Content categories offered by the feed."""

    MOVIE = "movie"
    SERIES = "series"

    @property
    def tmdb_media_type(self) -> Literal["movie", "tv"]:
        """TMDB path segment for this category."""
        return "movie" if self is Category.MOVIE else "tv"

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Parse a category, accepting TMDB's ``tv`` as an alias for series."""
        normalized = value.strip().lower()
        if normalized == "tv":
            return cls.SERIES
        return cls(normalized)


class Bucket(str, Enum):
    """Terminal buckets a candidate can be classified into."""

    WATCHED = "watched"
    WATCHLISTED = "watchlisted"
    SKIPPED = "skipped"


class FeedState(str, Enum):
    """Observable state of a feed controller."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    PREFETCHING = "prefetching"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class Candidate:
    """One piece of content offered to the user."""

    id: int
    title: str
    overview: str
    poster_path: str | None
    year: str
    rating: float
    category: Category
    genre_ids: frozenset[int] = frozenset()

    @property
    def poster_url(self) -> str | None:
        if not self.poster_path:
            return None
        return f"{TMDB_POSTER_BASE_URL}{self.poster_path}"

    @property
    def rating_formatted(self) -> str:
        return f"{self.rating:.1f}"

    def metadata(self) -> dict[str, Any]:
        """Display fields persisted alongside a decision."""
        return {
            "title": self.title,
            "year": self.year,
            "poster_path": self.poster_path,
            "rating": self.rating,
            "genre_ids": sorted(self.genre_ids),
        }


@dataclass(frozen=True)
class LibraryEntry:
    """A stored decision with its display metadata."""

    item_id: int
    category: Category
    bucket: Bucket
    title: str
    year: str
    poster_path: str | None
    rating: float
    created_at: datetime
    genre_ids: tuple[int, ...] = ()

    @property
    def poster_url(self) -> str | None:
        if not self.poster_path:
            return None
        return f"{TMDB_POSTER_BASE_URL}{self.poster_path}"


@dataclass
class ClassifyOutcome:
    """Result of a single classify call.

    ``persisted`` is False when the decision store write failed; the feed
    still advanced past ``candidate``.
    """

    candidate: Candidate
    bucket: Bucket
    persisted: bool = True
    error: FeedError | None = None
    prefetch_scheduled: bool = False


@dataclass
class FeedSettings:
    """Tunable pagination thresholds for a feed session."""

    initial_pages: int = 3
    low_water_mark: int = 5
    exhausted_after: int = 3


class CatalogClient(Protocol):
    """Paginated read-only source of candidates."""

    async def fetch_page(self, category: Category, page: int) -> list[Candidate]:
        """Fetch one page of candidates in relevance order."""
        ...


class DecisionStore(Protocol):
    """Durable per-user record of classified items."""

    async def read_bucket_ids(self, user_id: str, category: Category, bucket: Bucket) -> set[int]:
        """Return all item IDs in the given bucket."""
        ...

    async def write_decision(
        self,
        user_id: str,
        category: Category,
        item_id: int,
        bucket: Bucket,
        metadata: dict[str, Any],
    ) -> None:
        """Persist a decision, overwriting an existing one in the same bucket."""
        ...

    async def delete_decision(
        self,
        user_id: str,
        category: Category,
        item_id: int,
        bucket: Bucket,
    ) -> bool:
        """Delete a decision. Returns True if a record was removed."""
        ...
