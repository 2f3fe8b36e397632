"""Telegram delivery helpers: messages, poster cards and callback answers.

Every helper returns None/False instead of raising, so a failed delivery
never breaks the feed flow that triggered it.
"""

import asyncio
from typing import Any, Awaitable, Callable

from aiogram import Bot
from aiogram.exceptions import (
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
    TelegramServerError,
)
from aiogram.types import BufferedInputFile, InlineKeyboardMarkup, Message

from cineco.logging import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 3
CAPTION_LIMIT = 1024


async def _deliver(
    send: Callable[[], Awaitable[Message]],
    chat_id: int,
    what: str,
) -> Message | None:
    """Run a Telegram send call, retrying rate limits and server errors.

    Args:
        send: Zero-argument coroutine factory performing the API call
        chat_id: Target chat ID (for logging)
        what: Short description of the payload ("message", "poster card")

    Returns:
        The sent Message, or None if delivery failed
    """
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            return await send()

        except TelegramRetryAfter as e:
            logger.warning(
                f"Rate limited sending {what} to {chat_id}, "
                f"retry after {e.retry_after}s (attempt {attempt}/{MAX_RETRIES})"
            )
            if attempt < MAX_RETRIES:
                await asyncio.sleep(e.retry_after)

        except TelegramServerError as e:
            logger.warning(
                f"Telegram server error sending {what} to {chat_id}: {e} "
                f"(attempt {attempt}/{MAX_RETRIES})"
            )
            if attempt < MAX_RETRIES:
                await asyncio.sleep(2 ** (attempt - 1))

        except TelegramForbiddenError:
            logger.info(f"Chat {chat_id} blocked the bot or is unavailable")
            return None

        except TelegramBadRequest as e:
            logger.error(f"Bad request sending {what} to {chat_id}: {e}")
            return None

        except Exception as e:
            logger.exception(f"Unexpected error sending {what} to {chat_id}: {e}")
            return None

    logger.error(f"Gave up sending {what} to {chat_id} after {MAX_RETRIES} attempts")
    return None


async def safe_send_message(
    bot: Bot | None,
    chat_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
    **kwargs: Any,
) -> Message | None:
    """Send a text message.

    Args:
        bot: The aiogram Bot instance
        chat_id: Target chat ID
        text: HTML message text
        reply_markup: Optional inline keyboard
        **kwargs: Additional arguments passed to send_message

    Returns:
        The sent Message object, or None if sending failed
    """
    if bot is None:
        logger.error("No bot available, cannot send message")
        return None

    return await _deliver(
        lambda: bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup, **kwargs),
        chat_id,
        "message",
    )


async def safe_send_photo(
    bot: Bot | None,
    chat_id: int,
    photo: bytes | str,
    caption: str | None = None,
    reply_markup: InlineKeyboardMarkup | None = None,
    filename: str = "poster.jpg",
) -> Message | None:
    """Send a photo; bytes are uploaded, strings are sent as file ID or URL."""
    if bot is None:
        logger.error("No bot available, cannot send photo")
        return None

    photo_input: str | BufferedInputFile
    if isinstance(photo, bytes):
        photo_input = BufferedInputFile(photo, filename=filename)
    else:
        photo_input = photo

    return await _deliver(
        lambda: bot.send_photo(
            chat_id=chat_id,
            photo=photo_input,
            caption=caption,
            reply_markup=reply_markup,
        ),
        chat_id,
        "poster card",
    )


async def send_card(
    bot: Bot | None,
    chat_id: int,
    text: str,
    poster: bytes | None,
    reply_markup: InlineKeyboardMarkup | None = None,
) -> Message | None:
    """Send a poster card, or plain text when there is no poster.

    Captions are capped by Telegram, so long texts go out as a message
    even when a poster is available.
    """
    if poster is not None and len(text) <= CAPTION_LIMIT:
        sent = await safe_send_photo(bot, chat_id, poster, caption=text, reply_markup=reply_markup)
        if sent is not None:
            return sent
    return await safe_send_message(bot, chat_id, text, reply_markup=reply_markup)


async def safe_answer_callback(
    callback_query,
    text: str | None = None,
    show_alert: bool = False,
) -> bool:
    """Answer a callback query, ignoring expired or duplicate answers."""
    try:
        await callback_query.answer(text=text, show_alert=show_alert)
        return True
    except Exception as e:
        logger.warning(f"Failed to answer callback: {e}")
        return False
