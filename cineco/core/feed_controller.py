"""Discovery feed controller: session start, peek, classify and prefetch."""

import asyncio
import contextlib
import time
from typing import Callable

from cineco.core.contracts import (
    Bucket,
    CatalogClient,
    Category,
    Candidate,
    ClassifyOutcome,
    DecisionStore,
    FeedSettings,
    FeedState,
)
from cineco.core.errors import (
    ClassificationInProgress,
    CollaboratorUnavailable,
    NoCurrentItem,
    SessionStale,
)
from cineco.core.exclusion import build_exclusion_set
from cineco.core.feed_buffer import FeedBuffer
from cineco.logging import get_logger

logger = get_logger(__name__)

StateListener = Callable[[FeedState, FeedState], None]


class FeedController:
    """Owns one user's discovery feed session.

    The buffer and exclusion set are mutated only from this controller.
    Every ``start``/``switch_category``/``close`` bumps a generation counter;
    results of awaits begun under an older generation are discarded.
    """

    def __init__(
        self,
        user_id: str,
        catalog: CatalogClient,
        store: DecisionStore,
        settings: FeedSettings | None = None,
    ) -> None:
        """Initialize controller with injected collaborators.

        Args:
            user_id: Owner of this feed session
            catalog: Source of candidate pages
            store: Durable decision store
            settings: Pagination thresholds (defaults: 3 pages, low mark 5)
        """
        self.user_id = user_id
        self._catalog = catalog
        self._store = store
        self._settings = settings or FeedSettings()

        self.category: Category | None = None
        self._state = FeedState.UNINITIALIZED
        self._listeners: list[StateListener] = []

        self._buffer = FeedBuffer(exhausted_after=self._settings.exhausted_after)
        self._exclusion: set[int] = set()
        self._generation = 0
        self._prefetch_task: asyncio.Task | None = None
        self._classifying_generation: int | None = None
        self.last_activity = time.monotonic()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def exclusion(self) -> frozenset[int]:
        return frozenset(self._exclusion)

    @property
    def buffer(self) -> FeedBuffer:
        return self._buffer

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Args:
            listener: Called as ``listener(old_state, new_state)``

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: FeedState) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state
        logger.debug(f"Feed {self.user_id}: {old_state.value} -> {new_state.value}")
        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception(f"Feed state listener failed for user {self.user_id}")

    def _touch(self) -> None:
        self.last_activity = time.monotonic()

    async def _fetch_page(self, category: Category, page: int) -> list[Candidate]:
        """Fetch a catalog page; any failure surfaces as CollaboratorUnavailable."""
        try:
            return await self._catalog.fetch_page(category, page)
        except CollaboratorUnavailable:
            raise
        except Exception as e:
            logger.exception(f"Catalog raised unexpectedly on page {page} for user {self.user_id}")
            raise CollaboratorUnavailable("catalog", f"{type(e).__name__}: {e}") from e

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.debug(f"Discarding {what} for user {self.user_id}: {SessionStale(generation, self._generation)}")
        return True

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start(self, category: Category) -> FeedState:
        """Begin a fresh session for the category.

        Builds the exclusion set (fail-open), then fetches the initial run
        of pages before settling on READY, EMPTY or ERROR.

        Args:
            category: Category to browse

        Returns:
            State after loading (unchanged state if superseded meanwhile)
        """
        self._touch()
        self._generation += 1
        generation = self._generation
        self._cancel_prefetch()

        self.category = category
        self._buffer = FeedBuffer(exhausted_after=self._settings.exhausted_after)
        self._exclusion = set()
        self._set_state(FeedState.LOADING)

        logger.info(f"Starting {category.value} feed for user {self.user_id} (gen {generation})")

        try:
            exclusion = await build_exclusion_set(self._store, self.user_id, category)
        except CollaboratorUnavailable as e:
            logger.warning(
                f"Exclusion set unavailable for user {self.user_id}, "
                f"feed may repeat items: {e}"
            )
            exclusion = set()

        if self._is_stale(generation, "exclusion set"):
            return self._state

        self._exclusion |= exclusion

        failed_pages = 0
        for _ in range(self._settings.initial_pages):
            if self._buffer.exhausted:
                break
            page = self._buffer.advance_page()
            try:
                candidates = await self._fetch_page(category, page)
            except CollaboratorUnavailable as e:
                if self._is_stale(generation, f"failed page {page}"):
                    return self._state
                failed_pages += 1
                logger.warning(f"Initial page {page} failed for user {self.user_id}: {e}")
                continue

            if self._is_stale(generation, f"page {page}"):
                return self._state

            added = self._buffer.append(candidates, self._exclusion)
            self._buffer.record_page(added)

        if self._buffer.peek() is not None:
            self._set_state(FeedState.READY)
            self._maybe_prefetch()
        elif failed_pages:
            self._set_state(FeedState.ERROR)
        else:
            self._set_state(FeedState.EMPTY)

        logger.info(
            f"Feed ready for user {self.user_id}: {len(self._buffer)} candidates, "
            f"{len(self._exclusion)} excluded, state={self._state.value}"
        )
        return self._state

    async def switch_category(self, category: Category) -> FeedState:
        """Discard the current session and start one for another category."""
        logger.info(f"User {self.user_id} switching feed to {category.value}")
        return await self.start(category)

    async def close(self) -> None:
        """Tear down the session, cancelling any in-flight prefetch."""
        self._generation += 1
        task = self._prefetch_task
        self._cancel_prefetch()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self.category = None
        self._buffer = FeedBuffer(exhausted_after=self._settings.exhausted_after)
        self._exclusion = set()
        self._classifying_generation = None
        self._set_state(FeedState.UNINITIALIZED)

    # ------------------------------------------------------------------
    # Feed operations
    # ------------------------------------------------------------------

    def current(self) -> Candidate | None:
        """Return the candidate on offer without consuming it."""
        return self._buffer.peek()

    async def classify(self, bucket: Bucket) -> ClassifyOutcome:
        """Record a decision for the current candidate and advance.

        The candidate is excluded before the store write is awaited. The
        feed advances once the write settles, even if it failed; until then
        further classify calls on this session are rejected.

        Args:
            bucket: Bucket chosen by the user

        Returns:
            Outcome carrying the classified candidate and write status

        Raises:
            ClassificationInProgress: Another classify has not advanced yet
            NoCurrentItem: Nothing to classify
        """
        self._touch()

        if self._classifying_generation == self._generation:
            raise ClassificationInProgress(f"user {self.user_id} is already classifying")

        candidate = self._buffer.peek()
        if candidate is None or self.category is None:
            raise NoCurrentItem(f"no current item for user {self.user_id}")

        generation = self._generation
        category = self.category
        self._classifying_generation = generation

        try:
            self._exclusion.add(candidate.id)

            error: CollaboratorUnavailable | None = None
            try:
                await self._store.write_decision(
                    self.user_id,
                    category,
                    candidate.id,
                    bucket,
                    candidate.metadata(),
                )
            except CollaboratorUnavailable as e:
                logger.warning(
                    f"Decision {bucket.value} for item {candidate.id} not persisted "
                    f"(user {self.user_id}): {e}"
                )
                error = e

            outcome = ClassifyOutcome(
                candidate=candidate,
                bucket=bucket,
                persisted=error is None,
                error=error,
            )

            if self._is_stale(generation, f"classification of {candidate.id}"):
                return outcome

            self._buffer.take_head()
            outcome.prefetch_scheduled = self._maybe_prefetch()

            if self._buffer.peek() is None:
                if error is not None:
                    self._set_state(FeedState.ERROR)
                elif not self._prefetch_running():
                    self._set_state(FeedState.EMPTY)
            elif not self._prefetch_running():
                self._set_state(FeedState.READY)

            logger.info(
                f"User {self.user_id} classified {category.value} {candidate.id} "
                f"as {bucket.value} (persisted={outcome.persisted}, left={len(self._buffer)})"
            )
            return outcome
        finally:
            if self._classifying_generation == generation:
                self._classifying_generation = None

    # ------------------------------------------------------------------
    # Prefetch
    # ------------------------------------------------------------------

    def _prefetch_running(self) -> bool:
        return self._prefetch_task is not None and not self._prefetch_task.done()

    def _cancel_prefetch(self) -> None:
        task = self._prefetch_task
        self._prefetch_task = None
        if task is not None and not task.done():
            task.cancel()

    def _maybe_prefetch(self) -> bool:
        """Start a background prefetch when the buffer runs low.

        Returns:
            True if a new prefetch task was started
        """
        if self.category is None or self._buffer.exhausted:
            return False
        if not self._buffer.is_low(self._settings.low_water_mark):
            return False
        if self._prefetch_running():
            return False

        generation = self._generation
        self._prefetch_task = asyncio.create_task(
            self._prefetch(generation, self.category),
            name=f"feed-prefetch-{self.user_id}-{generation}",
        )
        self._set_state(FeedState.PREFETCHING)
        return True

    async def _prefetch(self, generation: int, category: Category) -> None:
        failed = False
        try:
            while not self._buffer.exhausted and self._buffer.is_low(self._settings.low_water_mark):
                page = self._buffer.advance_page()
                try:
                    candidates = await self._fetch_page(category, page)
                except CollaboratorUnavailable as e:
                    if self._is_stale(generation, f"failed prefetch of page {page}"):
                        return
                    self._buffer.rewind_page(page)
                    logger.warning(f"Prefetch of page {page} failed for user {self.user_id}: {e}")
                    failed = True
                    break

                if self._is_stale(generation, f"prefetched page {page}"):
                    return

                added = self._buffer.append(candidates, self._exclusion)
                self._buffer.record_page(added)
                logger.debug(
                    f"Prefetched page {page} for user {self.user_id}: "
                    f"{added}/{len(candidates)} new"
                )
        finally:
            if generation == self._generation:
                if self._prefetch_task is asyncio.current_task():
                    self._prefetch_task = None
                self._settle_after_prefetch(failed)

    def _settle_after_prefetch(self, failed: bool) -> None:
        if self._buffer.peek() is not None:
            self._set_state(FeedState.READY)
        elif failed:
            self._set_state(FeedState.ERROR)
        else:
            self._set_state(FeedState.EMPTY)

    async def wait_for_prefetch(self) -> None:
        """Wait until any in-flight prefetch settles."""
        task = self._prefetch_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
