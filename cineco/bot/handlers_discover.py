"""Handlers for the discovery feed: /discover, /movies, /series and card buttons."""

from aiogram import Bot, F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from cineco.bot.keyboards import kb_feed_card, kb_feed_empty, kb_feed_retry, parse_callback
from cineco.bot.messages import (
    classification_busy,
    classified_ack,
    feed_card,
    feed_empty,
    feed_error,
    feed_expired,
    not_persisted,
    stale_card,
)
from cineco.bot.sender import safe_answer_callback, safe_send_message, send_card
from cineco.bot.session import chat_sessions
from cineco.content import get_poster_cache
from cineco.core import (
    Bucket,
    Category,
    ClassificationInProgress,
    FeedController,
    FeedState,
    NoCurrentItem,
)
from cineco.core.sessions import get_feed_sessions
from cineco.logging import get_logger

router = Router(name="discover")
logger = get_logger(__name__)


async def render_feed(bot: Bot | None, chat_id: int, controller: FeedController) -> None:
    """Send whatever the feed currently shows: a card, empty or error.

    When the buffer is empty but a prefetch is still running, waits for it
    to settle first.
    """
    if controller.current() is None and controller.state is FeedState.PREFETCHING:
        await controller.wait_for_prefetch()

    category = controller.category or Category.MOVIE
    candidate = controller.current()

    if candidate is not None:
        poster = await get_poster_cache().get(candidate.poster_path)
        await send_card(
            bot,
            chat_id,
            feed_card(candidate),
            poster,
            reply_markup=kb_feed_card(candidate),
        )
        return

    if controller.state is FeedState.ERROR:
        await safe_send_message(bot, chat_id, feed_error(), reply_markup=kb_feed_retry(category))
    else:
        await safe_send_message(bot, chat_id, feed_empty(category), reply_markup=kb_feed_empty(category))


async def _open_feed(bot: Bot | None, chat_id: int, user_id: str, category: Category) -> None:
    """Start (or restart) the user's feed for a category and show it."""
    chat_sessions.set_category(user_id, category)
    controller = get_feed_sessions().get_or_create(user_id)

    if controller.category is category and controller.current() is not None:
        logger.debug(f"User {user_id} resumed {category.value} feed")
    elif controller.category is None or controller.category is category:
        await controller.start(category)
    else:
        await controller.switch_category(category)

    await render_feed(bot, chat_id, controller)


@router.message(Command("discover"))
async def handle_discover(message: Message) -> None:
    """Resume the last category, movies by default."""
    if not message.from_user:
        return
    user_id = str(message.from_user.id)
    category = chat_sessions.get_category(user_id) or Category.MOVIE
    await _open_feed(message.bot, message.chat.id, user_id, category)


@router.message(Command("movies"))
async def handle_movies(message: Message) -> None:
    if not message.from_user:
        return
    await _open_feed(message.bot, message.chat.id, str(message.from_user.id), Category.MOVIE)


@router.message(Command("series"))
async def handle_series(message: Message) -> None:
    if not message.from_user:
        return
    await _open_feed(message.bot, message.chat.id, str(message.from_user.id), Category.SERIES)


@router.callback_query(F.data.startswith("d:"))
async def handle_category_button(callback: CallbackQuery) -> None:
    """Handle category picks, switches and retries."""
    await safe_answer_callback(callback)

    if not callback.message or not callback.from_user or not callback.data:
        return

    _, value, _ = parse_callback(callback.data)
    try:
        category = Category.parse(value)
    except ValueError:
        logger.warning(f"Unknown category in callback: {callback.data}")
        return

    await _open_feed(callback.bot, callback.message.chat.id, str(callback.from_user.id), category)


@router.callback_query(F.data.startswith("c:"))
async def handle_classify(callback: CallbackQuery) -> None:
    """Handle Watched / Watchlist / Skip on a feed card."""
    if not callback.message or not callback.from_user or not callback.data:
        await safe_answer_callback(callback)
        return

    _, value, extra = parse_callback(callback.data)
    try:
        bucket = Bucket(value)
        item_id = int(extra[0])
    except (ValueError, IndexError):
        logger.warning(f"Malformed classify callback: {callback.data}")
        await safe_answer_callback(callback)
        return

    user_id = str(callback.from_user.id)
    controller = get_feed_sessions().get(user_id)
    if controller is None or controller.state is FeedState.UNINITIALIZED:
        await safe_answer_callback(callback, text=feed_expired(), show_alert=True)
        return

    current = controller.current()
    if current is None or current.id != item_id:
        await safe_answer_callback(callback, text=stale_card())
        return

    try:
        outcome = await controller.classify(bucket)
    except ClassificationInProgress:
        await safe_answer_callback(callback, text=classification_busy())
        return
    except NoCurrentItem:
        await safe_answer_callback(callback, text=stale_card())
        return

    await safe_answer_callback(callback, text=classified_ack(bucket))

    chat_id = callback.message.chat.id
    if not outcome.persisted:
        await safe_send_message(callback.bot, chat_id, not_persisted(outcome.candidate.title))

    await render_feed(callback.bot, chat_id, controller)
