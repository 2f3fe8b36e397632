"""In-memory registry of per-user feed controllers with idle TTL."""

import time
from typing import Callable

from cineco.core.contracts import FeedSettings
from cineco.core.feed_controller import FeedController
from cineco.logging import get_logger

logger = get_logger(__name__)

ControllerFactory = Callable[[str], FeedController]


class FeedSessionRegistry:
    """One feed controller per user, closed after an idle period."""

    def __init__(self, factory: ControllerFactory, ttl_seconds: int = 1800) -> None:
        """Initialize registry.

        Args:
            factory: Builds a controller for a user ID
            ttl_seconds: Idle time before a session is torn down
        """
        self._factory = factory
        self._ttl = ttl_seconds
        self._controllers: dict[str, FeedController] = {}

    def __len__(self) -> int:
        return len(self._controllers)

    def get(self, user_id: str) -> FeedController | None:
        """Get the user's controller, or None if there is none."""
        return self._controllers.get(user_id)

    def get_or_create(self, user_id: str) -> FeedController:
        """Get existing controller or create a new one."""
        controller = self._controllers.get(user_id)
        if controller is None:
            controller = self._factory(user_id)
            self._controllers[user_id] = controller
            logger.debug(f"Created feed session for user {user_id}")
        return controller

    async def close(self, user_id: str) -> bool:
        """Tear down the user's session.

        Returns:
            True if a session existed
        """
        controller = self._controllers.pop(user_id, None)
        if controller is None:
            return False
        await controller.close()
        return True

    async def sweep_expired(self, now: float | None = None) -> int:
        """Close sessions idle for longer than the TTL.

        Args:
            now: Monotonic timestamp override (tests)

        Returns:
            Number of sessions closed
        """
        now = time.monotonic() if now is None else now
        expired = [
            uid for uid, c in self._controllers.items()
            if (now - c.last_activity) > self._ttl
        ]
        for uid in expired:
            await self.close(uid)

        if expired:
            logger.info(f"Closed {len(expired)} idle feed sessions, {len(self)} active")
        return len(expired)

    async def close_all(self) -> None:
        """Tear down every session (shutdown)."""
        for uid in list(self._controllers):
            await self.close(uid)


def _default_factory(user_id: str) -> FeedController:
    from cineco.config import config
    from cineco.core.adapters import SqlDecisionStore, TMDBCatalog
    from cineco.providers.tmdb_client import get_tmdb_client
    from cineco.storage import get_session_factory

    return FeedController(
        user_id=user_id,
        catalog=TMDBCatalog(get_tmdb_client()),
        store=SqlDecisionStore(get_session_factory()),
        settings=FeedSettings(
            initial_pages=config.feed_initial_pages,
            low_water_mark=config.feed_low_water_mark,
            exhausted_after=config.feed_exhausted_after,
        ),
    )


_registry: FeedSessionRegistry | None = None


def get_feed_sessions() -> FeedSessionRegistry:
    """Get or create the process-wide feed session registry."""
    global _registry

    if _registry is None:
        from cineco.config import config

        _registry = FeedSessionRegistry(_default_factory, ttl_seconds=config.feed_session_ttl_seconds)

    return _registry


def set_feed_sessions(registry: FeedSessionRegistry | None) -> None:
    """Replace the process-wide registry (tests and custom wiring)."""
    global _registry
    _registry = registry
