"""Handlers for the library: /watchlist, /watched, /stats, /search and entry buttons."""

from aiogram import Bot, F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from cineco.bot.keyboards import (
    kb_library_categories,
    kb_library_entry,
    kb_search_result,
    parse_callback,
)
from cineco.bot.messages import (
    added_from_search,
    error_message,
    library_empty,
    library_entry,
    library_header,
    library_pick_category,
    moved_to_watched,
    removed,
    search_empty,
    search_expired,
    search_header,
    search_result,
    search_usage,
    stats_message,
)
from cineco.bot.sender import safe_answer_callback, safe_send_message
from cineco.bot.session import chat_sessions
from cineco.core import Bucket, Category
from cineco.core.library import (
    add_entry,
    list_entries,
    move_to_watched,
    remove_entry,
    watched_counts,
)
from cineco.logging import get_logger
from cineco.providers.tmdb_client import TMDBError, get_tmdb_client
from cineco.storage import UsersRepo, get_session_factory

router = Router(name="library")
logger = get_logger(__name__)

LIBRARY_LIMIT = 20
SEARCH_LIMIT_PER_CATEGORY = 5

CATEGORY_ARGS = {
    "movie": Category.MOVIE,
    "movies": Category.MOVIE,
    "series": Category.SERIES,
    "tv": Category.SERIES,
    "shows": Category.SERIES,
}


def _parse_category_arg(args: str | None) -> Category | None:
    """Parse "movies"/"series" style command arguments."""
    if not args:
        return None
    return CATEGORY_ARGS.get(args.strip().lower())


async def _send_library(
    bot: Bot | None,
    chat_id: int,
    user_id: str,
    bucket: Bucket,
    category: Category,
) -> None:
    """Send the header and one message per entry, each with its actions."""
    session_factory = get_session_factory()
    async with session_factory() as session:
        entries = await list_entries(session, user_id, category, bucket, limit=LIBRARY_LIMIT)

    if not entries:
        await safe_send_message(bot, chat_id, library_empty(bucket, category))
        return

    await safe_send_message(bot, chat_id, library_header(bucket, category, len(entries)))
    for entry in entries:
        await safe_send_message(
            bot,
            chat_id,
            library_entry(entry),
            reply_markup=kb_library_entry(entry),
        )


async def _handle_library_command(message: Message, command: CommandObject, bucket: Bucket) -> None:
    if not message.from_user:
        return

    category = _parse_category_arg(command.args)
    if category is None:
        await safe_send_message(
            message.bot,
            message.chat.id,
            library_pick_category(bucket),
            reply_markup=kb_library_categories(bucket),
        )
        return

    await _send_library(message.bot, message.chat.id, str(message.from_user.id), bucket, category)


@router.message(Command("watchlist"))
async def handle_watchlist(message: Message, command: CommandObject) -> None:
    """Handle /watchlist [movies|series]."""
    await _handle_library_command(message, command, Bucket.WATCHLISTED)


@router.message(Command("watched"))
async def handle_watched(message: Message, command: CommandObject) -> None:
    """Handle /watched [movies|series]."""
    await _handle_library_command(message, command, Bucket.WATCHED)


@router.callback_query(F.data.startswith("n:watch"))
async def handle_library_button(callback: CallbackQuery) -> None:
    """Handle Watchlist / Watched menu buttons and the category picker."""
    await safe_answer_callback(callback)

    if not callback.message or not callback.from_user or not callback.data:
        return

    _, value, extra = parse_callback(callback.data)
    try:
        bucket = Bucket(value)
    except ValueError:
        logger.warning(f"Unknown library bucket in callback: {callback.data}")
        return

    chat_id = callback.message.chat.id
    if not extra:
        await safe_send_message(
            callback.bot,
            chat_id,
            library_pick_category(bucket),
            reply_markup=kb_library_categories(bucket),
        )
        return

    try:
        category = Category.parse(extra[0])
    except ValueError:
        logger.warning(f"Unknown category in callback: {callback.data}")
        return

    await _send_library(callback.bot, chat_id, str(callback.from_user.id), bucket, category)


@router.callback_query(F.data.startswith("l:"))
async def handle_library_action(callback: CallbackQuery) -> None:
    """Handle Mark watched (l:mv) and Remove (l:rm) on library entries."""
    if not callback.from_user or not callback.data:
        await safe_answer_callback(callback)
        return

    user_id = str(callback.from_user.id)
    _, action, extra = parse_callback(callback.data)

    try:
        if action == "mv":
            category = Category.parse(extra[0])
            item_id = int(extra[1])
            bucket = None
        elif action == "rm":
            bucket = Bucket(extra[0])
            category = Category.parse(extra[1])
            item_id = int(extra[2])
        else:
            raise ValueError(action)
    except (ValueError, IndexError):
        logger.warning(f"Malformed library callback: {callback.data}")
        await safe_answer_callback(callback)
        return

    session_factory = get_session_factory()
    async with session_factory() as session:
        if bucket is None:
            moved = await move_to_watched(session, user_id, category, item_id)
            notice = moved_to_watched(moved)
        else:
            was_present = await remove_entry(session, user_id, category, item_id, bucket)
            notice = removed(was_present)

    await safe_answer_callback(callback, text=notice)


@router.message(Command("stats"))
async def handle_stats(message: Message) -> None:
    """Handle /stats: per-category watched counts."""
    if not message.from_user:
        return
    await _send_stats(message.bot, message.chat.id, str(message.from_user.id))


@router.callback_query(F.data == "n:stats")
async def handle_stats_button(callback: CallbackQuery) -> None:
    await safe_answer_callback(callback)
    if not callback.message or not callback.from_user:
        return
    await _send_stats(callback.bot, callback.message.chat.id, str(callback.from_user.id))


async def _send_stats(bot: Bot | None, chat_id: int, user_id: str) -> None:
    session_factory = get_session_factory()
    async with session_factory() as session:
        user = await UsersRepo(session).get_user(user_id)
        counts = await watched_counts(session, user_id)

    display_name = user.display_name if user else None
    await safe_send_message(bot, chat_id, stats_message(display_name, counts))


@router.message(Command("search"))
async def handle_search(message: Message, command: CommandObject) -> None:
    """Handle /search <text>: movies and series searched concurrently."""
    if not message.from_user:
        return

    query = (command.args or "").strip()
    if not query:
        await safe_send_message(message.bot, message.chat.id, search_usage())
        return

    user_id = str(message.from_user.id)
    logger.info(f"User {user_id} searched for '{query}'")

    try:
        results = await get_tmdb_client().search_all(query)
    except TMDBError as e:
        logger.warning(f"Search failed for user {user_id}: {e}")
        await safe_send_message(message.bot, message.chat.id, error_message())
        return

    candidates = [
        candidate
        for category in Category
        for candidate in results.get(category, [])[:SEARCH_LIMIT_PER_CATEGORY]
    ]
    chat_sessions.set_search_results(user_id, candidates)

    if not candidates:
        await safe_send_message(message.bot, message.chat.id, search_empty(query))
        return

    await safe_send_message(message.bot, message.chat.id, search_header(query, len(candidates)))
    for candidate in candidates:
        await safe_send_message(
            message.bot,
            message.chat.id,
            search_result(candidate),
            reply_markup=kb_search_result(candidate),
        )


@router.callback_query(F.data.startswith("a:"))
async def handle_add_from_search(callback: CallbackQuery) -> None:
    """Handle Watchlist / Watched on a search result."""
    if not callback.from_user or not callback.data:
        await safe_answer_callback(callback)
        return

    _, value, extra = parse_callback(callback.data)
    try:
        bucket = Bucket(value)
        category = Category.parse(extra[0])
        item_id = int(extra[1])
    except (ValueError, IndexError):
        logger.warning(f"Malformed search callback: {callback.data}")
        await safe_answer_callback(callback)
        return

    user_id = str(callback.from_user.id)
    candidate = chat_sessions.get_search_result(user_id, category, item_id)
    if candidate is None:
        await safe_answer_callback(callback, text=search_expired(), show_alert=True)
        return

    session_factory = get_session_factory()
    async with session_factory() as session:
        await add_entry(session, user_id, candidate, bucket)

    await safe_answer_callback(callback, text=added_from_search(bucket))
