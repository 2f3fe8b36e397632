"""In-memory chat state with TTL: last feed category and search results."""

import time
from dataclasses import dataclass, field

from cineco.core.contracts import Candidate, Category


@dataclass
class ChatSession:
    """Per-user chat state with creation timestamp."""

    user_id: str
    created_at: float = field(default_factory=time.time)
    last_category: Category | None = None
    search_results: dict[tuple[Category, int], Candidate] = field(default_factory=dict)


class SessionStore:
    """In-memory session store with TTL cleanup."""

    def __init__(self, ttl_seconds: int = 1800) -> None:
        """Initialize session store.

        Args:
            ttl_seconds: Time-to-live for sessions (default 30 minutes)
        """
        self._sessions: dict[str, ChatSession] = {}
        self._ttl = ttl_seconds

    def get(self, user_id: str) -> ChatSession | None:
        """Get session for user, returns None if expired or missing."""
        self._cleanup_expired()
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> ChatSession:
        """Get existing session or create a new one."""
        session = self.get(user_id)
        if session is None:
            session = ChatSession(user_id=user_id)
            self._sessions[user_id] = session
        return session

    def set_category(self, user_id: str, category: Category) -> None:
        """Remember the category the user is browsing."""
        session = self.get_or_create(user_id)
        session.last_category = category
        session.created_at = time.time()

    def get_category(self, user_id: str) -> Category | None:
        session = self.get(user_id)
        return session.last_category if session else None

    def set_search_results(self, user_id: str, results: list[Candidate]) -> None:
        """Replace the user's last search results."""
        session = self.get_or_create(user_id)
        session.search_results = {(c.category, c.id): c for c in results}
        session.created_at = time.time()

    def get_search_result(self, user_id: str, category: Category, item_id: int) -> Candidate | None:
        session = self.get(user_id)
        if session is None:
            return None
        return session.search_results.get((category, item_id))

    def clear(self, user_id: str) -> None:
        """Clear session for user."""
        self._sessions.pop(user_id, None)

    def _cleanup_expired(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [
            uid for uid, s in self._sessions.items()
            if (now - s.created_at) > self._ttl
        ]
        for uid in expired:
            del self._sessions[uid]


chat_sessions = SessionStore(ttl_seconds=1800)
