"""Bounded LRU cache of downscaled poster JPEGs."""

from collections import OrderedDict
from io import BytesIO

import httpx
from PIL import Image, UnidentifiedImageError

from cineco.core.contracts import TMDB_POSTER_BASE_URL
from cineco.logging import get_logger

logger = get_logger(__name__)

JPEG_QUALITY = 85
FETCH_TIMEOUT = 15.0


def _resize_to_width(img: Image.Image, width: int) -> Image.Image:
    """Resize image down to target width, preserving aspect ratio."""
    if img.width <= width:
        return img
    ratio = width / img.width
    new_height = round(img.height * ratio)
    return img.resize((width, new_height), Image.LANCZOS)


def _encode_poster(raw: bytes, width: int) -> bytes:
    img = Image.open(BytesIO(raw)).convert("RGB")
    img = _resize_to_width(img, width)
    buf = BytesIO()
    img.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


class PosterCache:
    """Poster bytes keyed by TMDB poster path, evicted least-recently-used.

    Total cached bytes never exceed ``max_bytes``.
    """

    def __init__(
        self,
        max_bytes: int,
        width: int = 342,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            max_bytes: Byte cap over all cached posters
            width: Target poster width in pixels
            transport: Optional httpx transport (used by tests)
        """
        self.max_bytes = max_bytes
        self.width = width
        self._transport = transport
        self._entries: OrderedDict[str, bytes] = OrderedDict()
        self._size = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, poster_path: object) -> bool:
        return poster_path in self._entries

    @property
    def size_bytes(self) -> int:
        return self._size

    def peek(self, poster_path: str) -> bytes | None:
        """Return cached bytes and mark them recently used."""
        data = self._entries.get(poster_path)
        if data is not None:
            self._entries.move_to_end(poster_path)
        return data

    def put(self, poster_path: str, data: bytes) -> bool:
        """Store poster bytes, evicting old entries to stay under the cap.

        Returns:
            False if the entry alone exceeds the cap and was not stored
        """
        if len(data) > self.max_bytes:
            logger.debug(f"Poster {poster_path} ({len(data)} bytes) exceeds cache cap")
            return False

        previous = self._entries.pop(poster_path, None)
        if previous is not None:
            self._size -= len(previous)

        self._entries[poster_path] = data
        self._size += len(data)

        while self._size > self.max_bytes:
            evicted_path, evicted = self._entries.popitem(last=False)
            self._size -= len(evicted)
            logger.debug(f"Evicted poster {evicted_path} ({len(evicted)} bytes)")

        return True

    async def _download(self, url: str) -> bytes:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, transport=self._transport) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.content

    async def get(self, poster_path: str | None) -> bytes | None:
        """Get a downscaled poster, fetching it on a miss.

        Args:
            poster_path: TMDB poster path (e.g. "/abc.jpg")

        Returns:
            JPEG bytes, or None if unavailable
        """
        if not poster_path:
            return None

        cached = self.peek(poster_path)
        if cached is not None:
            return cached

        url = f"{TMDB_POSTER_BASE_URL}{poster_path}"
        try:
            raw = await self._download(url)
            data = _encode_poster(raw, self.width)
        except (httpx.HTTPError, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning(f"Failed to load poster {poster_path}: {e}")
            return None

        self.put(poster_path, data)
        return data


_cache: PosterCache | None = None


def get_poster_cache() -> PosterCache:
    """Get or create the shared poster cache from configuration."""
    global _cache

    if _cache is None:
        from cineco.config import config

        _cache = PosterCache(max_bytes=config.poster_cache_max_bytes, width=config.poster_width)

    return _cache
