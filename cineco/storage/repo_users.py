"""Repository for user operations."""

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cineco.storage.models import User


class UsersRepo:
    """Repository for user profile operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_or_create_user(self, user_id: str, display_name: str | None = None) -> User:
        """Get existing user or create a new one.

        Args:
            user_id: User ID as string
            display_name: Name to store when the user is created

        Returns:
            User instance (new or existing)
        """
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()

        if user is not None:
            return user

        now = datetime.now(timezone.utc)
        user = User(
            user_id=user_id,
            display_name=display_name,
            created_at=now,
            last_seen_at=now,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def get_user(self, user_id: str) -> User | None:
        """Get user by ID."""
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_last_seen(self, user_id: str) -> None:
        """Update user's last seen timestamp."""
        now = datetime.now(timezone.utc)
        stmt = update(User).where(User.user_id == user_id).values(last_seen_at=now)
        await self.session.execute(stmt)
        await self.session.commit()

    async def update_display_name(self, user_id: str, display_name: str) -> bool:
        """Change the user's display name.

        Args:
            user_id: User ID
            display_name: New name (surrounding whitespace is stripped)

        Returns:
            True if the user exists and was updated
        """
        stmt = (
            update(User)
            .where(User.user_id == user_id)
            .values(display_name=display_name.strip())
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def ensure_user(self, user_id: str, display_name: str | None = None) -> User:
        """Ensure user exists and update last_seen.

        Args:
            user_id: User ID as string
            display_name: Name to store on first sight

        Returns:
            User instance
        """
        user = await self.get_or_create_user(user_id, display_name=display_name)
        await self.update_last_seen(user_id)
        return user
