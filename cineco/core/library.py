"""Watched and watchlist library operations outside the swipe feed."""

from sqlalchemy.ext.asyncio import AsyncSession

from cineco.core.contracts import Bucket, Candidate, Category, LibraryEntry
from cineco.logging import get_logger
from cineco.storage import DecisionsRepo, decision_genre_ids
from cineco.storage.models import Decision

logger = get_logger(__name__)


def _to_entry(decision: Decision) -> LibraryEntry:
    return LibraryEntry(
        item_id=decision.item_id,
        category=Category(decision.category),
        bucket=Bucket(decision.bucket),
        title=decision.title,
        year=decision.year,
        poster_path=decision.poster_path,
        rating=decision.rating,
        created_at=decision.created_at,
        genre_ids=tuple(decision_genre_ids(decision)),
    )


async def list_entries(
    session: AsyncSession,
    user_id: str,
    category: Category,
    bucket: Bucket,
    limit: int = 50,
) -> list[LibraryEntry]:
    """Get a user's entries in a bucket, newest first.

    Args:
        session: Database session
        user_id: User ID
        category: Movie or series
        bucket: Bucket to list
        limit: Maximum entries to return

    Returns:
        Library entries
    """
    repo = DecisionsRepo(session)
    decisions = await repo.list_decisions(user_id, category.value, bucket.value, limit=limit)
    return [_to_entry(d) for d in decisions]


async def add_entry(
    session: AsyncSession,
    user_id: str,
    candidate: Candidate,
    bucket: Bucket,
) -> None:
    """Record a decision for a candidate found outside the feed (e.g. search).

    The item leaves any other bucket it was in, keeping buckets disjoint.
    """
    repo = DecisionsRepo(session)
    await repo.replace_decision(
        user_id,
        candidate.category.value,
        candidate.id,
        bucket.value,
        candidate.metadata(),
    )
    logger.info(f"User {user_id} added {candidate.category.value} {candidate.id} to {bucket.value}")


async def remove_entry(
    session: AsyncSession,
    user_id: str,
    category: Category,
    item_id: int,
    bucket: Bucket,
) -> bool:
    """Remove an item from a bucket.

    Returns:
        True if the item was in the bucket
    """
    repo = DecisionsRepo(session)
    removed = await repo.delete_decision(user_id, category.value, item_id, bucket.value)
    if removed:
        logger.info(f"User {user_id} removed {category.value} {item_id} from {bucket.value}")
    return removed


async def move_to_watched(
    session: AsyncSession,
    user_id: str,
    category: Category,
    item_id: int,
) -> bool:
    """Move a watchlisted item to watched as one transaction.

    Returns:
        True if moved, False if the item was not on the watchlist
    """
    repo = DecisionsRepo(session)
    moved = await repo.move_decision(
        user_id,
        category.value,
        item_id,
        from_bucket=Bucket.WATCHLISTED.value,
        to_bucket=Bucket.WATCHED.value,
    )
    if moved:
        logger.info(f"User {user_id} moved {category.value} {item_id} to watched")
    else:
        logger.info(f"Move to watched ignored, {category.value} {item_id} not on watchlist of {user_id}")
    return moved


async def item_status(
    session: AsyncSession,
    user_id: str,
    category: Category,
    item_id: int,
) -> set[Bucket]:
    """Buckets currently holding the item."""
    repo = DecisionsRepo(session)
    buckets = await repo.list_buckets_for_item(user_id, category.value, item_id)
    return {Bucket(b) for b in buckets}


async def watched_counts(session: AsyncSession, user_id: str) -> dict[Category, int]:
    """Number of watched movies and series."""
    repo = DecisionsRepo(session)
    return {
        category: await repo.count_decisions(user_id, category.value, Bucket.WATCHED.value)
        for category in Category
    }
