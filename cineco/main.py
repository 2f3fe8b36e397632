"""Application entrypoint for the HTTP API and bot startup."""

import asyncio
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import uvicorn
from aiogram import Dispatcher
from aiogram.types import Update
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cineco.bot.instance import bot
from cineco.bot.router import setup_routers
from cineco.config import config
from cineco.core import (
    Bucket,
    Candidate,
    Category,
    ClassificationInProgress,
    FeedController,
    FeedState,
    LibraryEntry,
    NoCurrentItem,
)
from cineco.core import library
from cineco.core.sessions import FeedSessionRegistry, get_feed_sessions
from cineco.jobs import setup_all_jobs, shutdown_scheduler, start_scheduler
from cineco.logging import get_logger, setup_logging
from cineco.providers.tmdb_client import TMDBClient, TMDBError, close_tmdb_client, get_tmdb_client
from cineco.storage import UsersRepo, close_engine, create_tables, get_session_factory

setup_logging(config.log_level)
logger = get_logger(__name__)

dp = Dispatcher()

setup_routers(dp)


# ------------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------------

async def verify_api_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify the API token for feed and library endpoints.

    Args:
        authorization: Authorization header value

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not config.api_token:
        raise HTTPException(
            status_code=503,
            detail="API not configured (API_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != config.api_token:
        raise HTTPException(status_code=403, detail="Invalid API token")


def get_registry() -> FeedSessionRegistry:
    return get_feed_sessions()


def get_catalog() -> TMDBClient:
    return get_tmdb_client()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        yield session


# ------------------------------------------------------------------
# Schemas
# ------------------------------------------------------------------

class CandidateOut(BaseModel):
    """A feed or search candidate."""

    id: int
    title: str
    overview: str
    poster_path: str | None
    poster_url: str | None
    year: str
    rating: float
    category: Category
    genre_ids: list[int]

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateOut":
        return cls(
            id=candidate.id,
            title=candidate.title,
            overview=candidate.overview,
            poster_path=candidate.poster_path,
            poster_url=candidate.poster_url,
            year=candidate.year,
            rating=candidate.rating,
            category=candidate.category,
            genre_ids=sorted(candidate.genre_ids),
        )


class FeedOut(BaseModel):
    """Observable feed state plus the candidate on offer."""

    state: FeedState
    category: Category | None
    current: CandidateOut | None
    buffered: int

    @classmethod
    def from_controller(cls, controller: FeedController) -> "FeedOut":
        current = controller.current()
        return cls(
            state=controller.state,
            category=controller.category,
            current=CandidateOut.from_candidate(current) if current else None,
            buffered=len(controller.buffer),
        )


class ClassifyIn(BaseModel):
    bucket: Bucket


class ClassifyOut(BaseModel):
    """Result of a classification and the feed after advancing."""

    classified: CandidateOut
    bucket: Bucket
    persisted: bool
    error: str | None
    feed: FeedOut


class LibraryEntryOut(BaseModel):
    item_id: int
    category: Category
    bucket: Bucket
    title: str
    year: str
    poster_path: str | None
    poster_url: str | None
    rating: float
    genre_ids: list[int]
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: LibraryEntry) -> "LibraryEntryOut":
        return cls(
            item_id=entry.item_id,
            category=entry.category,
            bucket=entry.bucket,
            title=entry.title,
            year=entry.year,
            poster_path=entry.poster_path,
            poster_url=entry.poster_url,
            rating=entry.rating,
            genre_ids=list(entry.genre_ids),
            created_at=entry.created_at,
        )


def _require_controller(registry: FeedSessionRegistry, user_id: str) -> FeedController:
    controller = registry.get(user_id)
    if controller is None or controller.state is FeedState.UNINITIALIZED:
        raise HTTPException(status_code=404, detail="No active feed session")
    return controller


# ------------------------------------------------------------------
# App
# ------------------------------------------------------------------

async def _startup() -> None:
    await create_tables()
    start_scheduler()
    setup_all_jobs()


async def _shutdown() -> None:
    shutdown_scheduler()
    await get_feed_sessions().close_all()
    await close_tmdb_client()
    await close_engine()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")
    await _startup()

    if config.bot_mode == "webhook":
        webhook_full_url = f"{config.webhook_url}{config.webhook_path}"
        logger.info(f"Setting webhook to {webhook_full_url}")
        await bot.set_webhook(
            url=webhook_full_url,
            drop_pending_updates=True,
        )
        logger.info("Webhook registered successfully")

    yield

    logger.info("Shutting down application")
    await _shutdown()

    if config.bot_mode == "webhook":
        await bot.delete_webhook()
        logger.info("Webhook deleted")

    await bot.session.close()
    logger.info("Bot session closed")


app = FastAPI(
    title="CineCo",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True}


@app.post(config.webhook_path)
async def telegram_webhook(request: Request) -> JSONResponse:
    """Handle incoming Telegram webhook updates."""
    if config.bot_mode != "webhook":
        return JSONResponse(
            status_code=400,
            content={"error": "Webhook mode is not enabled"},
        )

    try:
        data = await request.json()
        update = Update.model_validate(data, context={"bot": bot})
        await dp.feed_update(bot=bot, update=update)
        return JSONResponse(content={"ok": True})
    except Exception as e:
        logger.exception(f"Error processing webhook update: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


# ------------------------------------------------------------------
# Discovery feed
# ------------------------------------------------------------------

@app.post("/users/{user_id}/feed/start", response_model=FeedOut)
async def start_feed(
    user_id: str,
    category: Category = Category.MOVIE,
    registry: FeedSessionRegistry = Depends(get_registry),
    _: None = Depends(verify_api_token),
) -> FeedOut:
    """Start a fresh feed session (or switch category) for the user."""
    controller = registry.get_or_create(user_id)
    if controller.category is None or controller.category is category:
        await controller.start(category)
    else:
        await controller.switch_category(category)
    return FeedOut.from_controller(controller)


@app.get("/users/{user_id}/feed/current", response_model=FeedOut)
async def get_current(
    user_id: str,
    registry: FeedSessionRegistry = Depends(get_registry),
    _: None = Depends(verify_api_token),
) -> FeedOut:
    """Peek at the candidate on offer without consuming it."""
    controller = _require_controller(registry, user_id)
    return FeedOut.from_controller(controller)


@app.post("/users/{user_id}/feed/classify", response_model=ClassifyOut)
async def classify_current(
    user_id: str,
    payload: ClassifyIn,
    registry: FeedSessionRegistry = Depends(get_registry),
    _: None = Depends(verify_api_token),
) -> ClassifyOut:
    """Classify the candidate on offer and advance the feed."""
    controller = _require_controller(registry, user_id)

    try:
        outcome = await controller.classify(payload.bucket)
    except ClassificationInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NoCurrentItem as e:
        raise HTTPException(status_code=404, detail=str(e))

    return ClassifyOut(
        classified=CandidateOut.from_candidate(outcome.candidate),
        bucket=outcome.bucket,
        persisted=outcome.persisted,
        error=str(outcome.error) if outcome.error else None,
        feed=FeedOut.from_controller(controller),
    )


@app.delete("/users/{user_id}/feed")
async def close_feed(
    user_id: str,
    registry: FeedSessionRegistry = Depends(get_registry),
    _: None = Depends(verify_api_token),
) -> dict:
    """Tear down the user's feed session."""
    closed = await registry.close(user_id)
    return {"ok": True, "closed": closed}


# ------------------------------------------------------------------
# Library
# ------------------------------------------------------------------

@app.get("/users/{user_id}/library/{category}/{bucket}")
async def list_library(
    user_id: str,
    category: Category,
    bucket: Bucket,
    limit: int = 50,
    session: AsyncSession = Depends(get_db_session),
    _: None = Depends(verify_api_token),
) -> dict:
    """List a bucket's entries, newest first."""
    try:
        entries = await library.list_entries(session, user_id, category, bucket, limit=min(max(limit, 1), 200))
    except SQLAlchemyError as e:
        logger.error(f"Library listing failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="decision store unavailable")

    return {
        "ok": True,
        "entries": [LibraryEntryOut.from_entry(e).model_dump(mode="json") for e in entries],
    }


@app.get("/users/{user_id}/library/{category}/items/{item_id}")
async def get_item_status(
    user_id: str,
    category: Category,
    item_id: int,
    session: AsyncSession = Depends(get_db_session),
    _: None = Depends(verify_api_token),
) -> dict:
    """Buckets currently holding an item."""
    try:
        buckets = await library.item_status(session, user_id, category, item_id)
    except SQLAlchemyError as e:
        logger.error(f"Item status lookup failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="decision store unavailable")

    return {"ok": True, "item_id": item_id, "buckets": sorted(b.value for b in buckets)}


@app.post("/users/{user_id}/library/{category}/{item_id}/watched")
async def mark_watched(
    user_id: str,
    category: Category,
    item_id: int,
    session: AsyncSession = Depends(get_db_session),
    _: None = Depends(verify_api_token),
) -> dict:
    """Move a watchlisted item to watched."""
    try:
        moved = await library.move_to_watched(session, user_id, category, item_id)
    except SQLAlchemyError as e:
        logger.error(f"Move to watched failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="decision store unavailable")

    if not moved:
        raise HTTPException(status_code=404, detail="Item is not on the watchlist")
    return {"ok": True}


@app.delete("/users/{user_id}/library/{category}/{bucket}/{item_id}")
async def remove_from_library(
    user_id: str,
    category: Category,
    bucket: Bucket,
    item_id: int,
    session: AsyncSession = Depends(get_db_session),
    _: None = Depends(verify_api_token),
) -> dict:
    """Remove an item from a bucket."""
    try:
        removed = await library.remove_entry(session, user_id, category, item_id, bucket)
    except SQLAlchemyError as e:
        logger.error(f"Remove failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="decision store unavailable")

    if not removed:
        raise HTTPException(status_code=404, detail="Item not found in bucket")
    return {"ok": True}


@app.get("/users/{user_id}/stats")
async def get_user_stats(
    user_id: str,
    session: AsyncSession = Depends(get_db_session),
    _: None = Depends(verify_api_token),
) -> dict:
    """Display name and per-category watched counts."""
    try:
        user = await UsersRepo(session).get_user(user_id)
        counts = await library.watched_counts(session, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Stats lookup failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="decision store unavailable")

    return {
        "ok": True,
        "display_name": user.display_name if user else None,
        "watched": {category.value: count for category, count in counts.items()},
    }


# ------------------------------------------------------------------
# Search
# ------------------------------------------------------------------

@app.get("/search")
async def search(
    query: str,
    category: Category | None = None,
    catalog: TMDBClient = Depends(get_catalog),
    _: None = Depends(verify_api_token),
) -> dict:
    """Search the catalog by title; both categories when none is given."""
    try:
        if category is None:
            results = await catalog.search_all(query)
        else:
            results = {category: await catalog.search(category, query)}
    except TMDBError as e:
        logger.warning(f"Search failed for '{query}': {e}")
        raise HTTPException(status_code=503, detail="catalog unavailable")

    return {
        "ok": True,
        "results": {
            cat.value: [CandidateOut.from_candidate(c).model_dump(mode="json") for c in items]
            for cat, items in results.items()
        },
    }


async def run_polling() -> None:
    """Run the bot in polling mode."""
    logger.info("Starting bot in polling mode")
    await _startup()

    try:
        await dp.start_polling(
            bot,
            drop_pending_updates=True,
            allowed_updates=["message", "callback_query"],
        )
    finally:
        await _shutdown()
        await bot.session.close()
        logger.info("Polling stopped, bot session closed")


def main() -> None:
    """Main entrypoint supporting both polling and webhook modes."""
    if len(sys.argv) > 1 and sys.argv[1] == "polling":
        asyncio.run(run_polling())
    elif config.bot_mode == "polling" and len(sys.argv) == 1:
        asyncio.run(run_polling())
    else:
        logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
        uvicorn.run(
            "cineco.main:app",
            host=config.host,
            port=config.port,
            reload=False,
        )


if __name__ == "__main__":
    main()
