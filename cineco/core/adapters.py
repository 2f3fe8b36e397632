"""Adapters binding the feed engine to TMDB and the SQL decision store.

Both translate their collaborator's failures into ``CollaboratorUnavailable``
so the controller handles one error type.
"""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cineco.core.contracts import Bucket, Candidate, Category
from cineco.core.errors import CollaboratorUnavailable
from cineco.providers.tmdb_client import TMDBClient, TMDBError
from cineco.storage.repo_decisions import DecisionsRepo


class TMDBCatalog:
    """Catalog client backed by TMDB."""

    def __init__(self, client: TMDBClient) -> None:
        self.client = client

    async def fetch_page(self, category: Category, page: int) -> list[Candidate]:
        try:
            return await self.client.fetch_page(category, page)
        except TMDBError as e:
            raise CollaboratorUnavailable("catalog", str(e)) from e


class SqlDecisionStore:
    """Decision store backed by the decisions table.

    Each call opens its own session so concurrent reads do not share one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def read_bucket_ids(self, user_id: str, category: Category, bucket: Bucket) -> set[int]:
        try:
            async with self.session_factory() as session:
                return await DecisionsRepo(session).list_item_ids(user_id, category.value, bucket.value)
        except SQLAlchemyError as e:
            raise CollaboratorUnavailable("decision store", str(e)) from e

    async def write_decision(
        self,
        user_id: str,
        category: Category,
        item_id: int,
        bucket: Bucket,
        metadata: dict[str, Any],
    ) -> None:
        try:
            async with self.session_factory() as session:
                await DecisionsRepo(session).upsert_decision(
                    user_id, category.value, item_id, bucket.value, metadata
                )
        except SQLAlchemyError as e:
            raise CollaboratorUnavailable("decision store", str(e)) from e

    async def delete_decision(
        self,
        user_id: str,
        category: Category,
        item_id: int,
        bucket: Bucket,
    ) -> bool:
        try:
            async with self.session_factory() as session:
                return await DecisionsRepo(session).delete_decision(
                    user_id, category.value, item_id, bucket.value
                )
        except SQLAlchemyError as e:
            raise CollaboratorUnavailable("decision store", str(e)) from e
