"""Bot module containing handlers, keyboards, and messaging utilities."""

from cineco.bot.router import setup_routers
from cineco.bot.session import chat_sessions

__all__ = [
    "setup_routers",
    "chat_sessions",
]
