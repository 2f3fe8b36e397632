"""Repository for watched / watchlisted / skipped decisions."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from cineco.storage.json_utils import decode_int_list, encode_int_list
from cineco.storage.models import Decision


def make_doc_id(user_id: str, category: str, item_id: int) -> str:
    """Document key for a decision within its bucket."""
    return f"{user_id}_{category}_{item_id}"


class DecisionsRepo:
    """Repository for per-user decision records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _upsert_stmt(
        self,
        user_id: str,
        category: str,
        item_id: int,
        bucket: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ):
        values = {
            "bucket": bucket,
            "doc_id": make_doc_id(user_id, category, item_id),
            "user_id": user_id,
            "category": category,
            "item_id": item_id,
            "title": metadata.get("title") or "",
            "year": metadata.get("year") or "N/A",
            "poster_path": metadata.get("poster_path") or None,
            "rating": float(metadata.get("rating") or 0.0),
            "genre_ids_json": encode_int_list(metadata.get("genre_ids")),
            "created_at": created_at,
        }
        insert_stmt = sqlite_insert(Decision).values(**values)
        # Writing an existing document replaces it
        return insert_stmt.on_conflict_do_update(
            index_elements=["bucket", "doc_id"],
            set_={k: v for k, v in values.items() if k not in ("bucket", "doc_id")},
        )

    async def upsert_decision(
        self,
        user_id: str,
        category: str,
        item_id: int,
        bucket: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write a decision, replacing any record for the same key and bucket.

        Args:
            user_id: User ID
            category: "movie" or "series"
            item_id: TMDB item ID
            bucket: "watched", "watchlisted" or "skipped"
            metadata: Display fields (title, year, poster_path, rating, genre_ids)
        """
        stmt = self._upsert_stmt(
            user_id,
            category,
            item_id,
            bucket,
            metadata or {},
            datetime.now(timezone.utc),
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def replace_decision(
        self,
        user_id: str,
        category: str,
        item_id: int,
        bucket: str,
        metadata: dict[str, Any] | None = None,
    ) -> set[str]:
        """Write a decision and drop the item from every other bucket.

        Returns:
            Buckets the item was removed from
        """
        doc_id = make_doc_id(user_id, category, item_id)
        previous = await self.list_buckets_for_item(user_id, category, item_id)
        others = previous - {bucket}

        await self.session.execute(
            self._upsert_stmt(
                user_id,
                category,
                item_id,
                bucket,
                metadata or {},
                datetime.now(timezone.utc),
            )
        )
        if others:
            await self.session.execute(
                delete(Decision).where(
                    Decision.bucket.in_(others),
                    Decision.doc_id == doc_id,
                )
            )
        await self.session.commit()
        return others

    async def delete_decision(self, user_id: str, category: str, item_id: int, bucket: str) -> bool:
        """Delete a decision.

        Returns:
            True if removed, False if not found
        """
        stmt = delete(Decision).where(
            Decision.bucket == bucket,
            Decision.doc_id == make_doc_id(user_id, category, item_id),
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def get_decision(self, user_id: str, category: str, item_id: int, bucket: str) -> Decision | None:
        """Get a single decision record."""
        stmt = select(Decision).where(
            Decision.bucket == bucket,
            Decision.doc_id == make_doc_id(user_id, category, item_id),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_item_ids(self, user_id: str, category: str, bucket: str) -> set[int]:
        """Get all item IDs in a bucket.

        Args:
            user_id: User ID
            category: "movie" or "series"
            bucket: Bucket name

        Returns:
            Set of item IDs
        """
        stmt = select(Decision.item_id).where(
            Decision.user_id == user_id,
            Decision.category == category,
            Decision.bucket == bucket,
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def list_decisions(
        self,
        user_id: str,
        category: str,
        bucket: str,
        limit: int = 50,
    ) -> list[Decision]:
        """Get a bucket's decisions, newest first."""
        stmt = (
            select(Decision)
            .where(
                Decision.user_id == user_id,
                Decision.category == category,
                Decision.bucket == bucket,
            )
            .order_by(Decision.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_buckets_for_item(self, user_id: str, category: str, item_id: int) -> set[str]:
        """Buckets that currently hold the item."""
        stmt = select(Decision.bucket).where(Decision.doc_id == make_doc_id(user_id, category, item_id))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def count_decisions(self, user_id: str, category: str, bucket: str) -> int:
        """Count decisions in a bucket."""
        stmt = (
            select(func.count())
            .select_from(Decision)
            .where(
                Decision.user_id == user_id,
                Decision.category == category,
                Decision.bucket == bucket,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def move_decision(
        self,
        user_id: str,
        category: str,
        item_id: int,
        from_bucket: str,
        to_bucket: str,
    ) -> bool:
        """Move a decision between buckets in one transaction.

        The target record is written and the source deleted before a single
        commit, so callers never observe the item in both or neither.

        Returns:
            True if moved, False if the source record does not exist
        """
        source = await self.get_decision(user_id, category, item_id, from_bucket)
        if source is None:
            return False

        metadata = {
            "title": source.title,
            "year": source.year,
            "poster_path": source.poster_path,
            "rating": source.rating,
            "genre_ids": decision_genre_ids(source),
        }
        await self.session.execute(
            self._upsert_stmt(
                user_id,
                category,
                item_id,
                to_bucket,
                metadata,
                datetime.now(timezone.utc),
            )
        )
        await self.session.execute(
            delete(Decision).where(
                Decision.bucket == from_bucket,
                Decision.doc_id == source.doc_id,
            )
        )
        await self.session.commit()
        return True


def decision_genre_ids(decision: Decision) -> list[int]:
    """Genre IDs stored on a decision record."""
    return decode_int_list(decision.genre_ids_json)
