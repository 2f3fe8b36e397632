"""Exclusion set building for feed sessions."""

import asyncio

from cineco.core.contracts import Bucket, Category, DecisionStore
from cineco.core.errors import CollaboratorUnavailable
from cineco.logging import get_logger

logger = get_logger(__name__)

EXCLUDED_BUCKETS = (Bucket.WATCHED, Bucket.WATCHLISTED, Bucket.SKIPPED)


async def build_exclusion_set(
    store: DecisionStore,
    user_id: str,
    category: Category,
) -> set[int]:
    """Get item IDs the user already classified in this category.

    Reads the watched, watchlisted and skipped buckets concurrently and
    waits for all three before returning their union.

    Args:
        store: Decision store to read from
        user_id: User ID
        category: Active feed category

    Returns:
        Set of item IDs that must not be offered again

    Raises:
        CollaboratorUnavailable: If any bucket read failed
    """
    results = await asyncio.gather(
        *(store.read_bucket_ids(user_id, category, bucket) for bucket in EXCLUDED_BUCKETS),
        return_exceptions=True,
    )

    excluded: set[int] = set()
    failures: list[str] = []
    for bucket, result in zip(EXCLUDED_BUCKETS, results):
        if isinstance(result, BaseException):
            failures.append(f"{bucket.value}: {result}")
            continue
        excluded |= result

    if failures:
        raise CollaboratorUnavailable("decision store", "; ".join(failures))

    logger.debug(f"Exclusion set for user {user_id}/{category.value}: {len(excluded)} ids")
    return excluded
