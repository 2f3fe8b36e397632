"""Content helpers: poster loading and caching."""

from cineco.content.poster_cache import PosterCache, get_poster_cache

__all__ = [
    "PosterCache",
    "get_poster_cache",
]
