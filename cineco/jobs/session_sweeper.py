"""Close feed sessions that have been idle longer than their TTL.

Runs on an interval inside the serving process, since the session
registry is in-memory.
"""

from cineco.core.sessions import get_feed_sessions
from cineco.logging import get_logger

logger = get_logger(__name__)


async def run_session_sweep() -> dict:
    """Sweep idle feed sessions.

    Returns:
        Summary dict with closed and remaining counts.
    """
    registry = get_feed_sessions()
    closed = await registry.sweep_expired()
    if not closed:
        logger.debug(f"session_sweep: nothing to close, {len(registry)} active")
    return {"closed": closed, "active": len(registry)}
