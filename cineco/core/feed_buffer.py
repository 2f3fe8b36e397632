"""Ordered, de-duplicated buffer of unclassified candidates."""

from collections import deque
from typing import Iterable

from cineco.core.contracts import Candidate
from cineco.logging import get_logger

logger = get_logger(__name__)


class FeedBuffer:
    """Candidates waiting to be classified plus the pagination cursor.

    Source order from the catalog is preserved; the buffer never re-sorts.
    """

    def __init__(self, exhausted_after: int = 3) -> None:
        """Initialize an empty buffer starting at page 1.

        Args:
            exhausted_after: Consecutive pages adding zero items before the
                catalog is treated as exhausted
        """
        self._items: deque[Candidate] = deque()
        self._buffered_ids: set[int] = set()
        self._exhausted_after = exhausted_after
        self._empty_streak = 0
        self.next_page = 1
        self.exhausted = False

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._buffered_ids

    def ids(self) -> list[int]:
        """IDs currently buffered, head first."""
        return [c.id for c in self._items]

    def append(self, candidates: Iterable[Candidate], exclusion: set[int]) -> int:
        """Append candidates not excluded and not already buffered.

        Args:
            candidates: Raw page in catalog order
            exclusion: IDs that must not be offered this session

        Returns:
            Number of candidates actually added
        """
        added = 0
        for candidate in candidates:
            if candidate.id in exclusion or candidate.id in self._buffered_ids:
                continue
            self._items.append(candidate)
            self._buffered_ids.add(candidate.id)
            added += 1
        return added

    def peek(self) -> Candidate | None:
        """Return the head without removing it."""
        return self._items[0] if self._items else None

    def take_head(self) -> Candidate | None:
        """Remove and return the head."""
        if not self._items:
            return None
        candidate = self._items.popleft()
        self._buffered_ids.discard(candidate.id)
        return candidate

    def is_low(self, threshold: int) -> bool:
        """True when the remaining count is at or below threshold."""
        return len(self._items) <= threshold

    def advance_page(self) -> int:
        """Return the current page cursor and move it forward."""
        page = self.next_page
        self.next_page += 1
        return page

    def rewind_page(self, page: int) -> None:
        """Put the cursor back so a failed page is fetched again."""
        if self.next_page == page + 1:
            self.next_page = page

    def record_page(self, added: int) -> None:
        """Track pages that contributed nothing new.

        Args:
            added: Items added by the page just appended
        """
        if added > 0:
            self._empty_streak = 0
            return

        self._empty_streak += 1
        if self._empty_streak >= self._exhausted_after:
            self.mark_exhausted()

    def mark_exhausted(self) -> None:
        """Stop further prefetching for this session."""
        if not self.exhausted:
            logger.info(
                f"Feed exhausted after {self._empty_streak} empty pages "
                f"(next_page={self.next_page})"
            )
        self.exhausted = True
