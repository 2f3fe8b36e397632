"""Handlers for /start, /help and /name."""

from aiogram import F, Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message

from cineco.bot.keyboards import kb_start
from cineco.bot.messages import HELP_MESSAGE, name_updated, name_usage, start_message
from cineco.bot.sender import safe_answer_callback, safe_send_message
from cineco.logging import get_logger
from cineco.storage import UsersRepo, get_session_factory

router = Router(name="start")
logger = get_logger(__name__)


@router.message(CommandStart())
async def handle_start(message: Message) -> None:
    """Handle the /start command.

    Registers the user (display name from Telegram) and shows the menu.
    """
    user = message.from_user
    if not user:
        return

    user_id = str(user.id)
    logger.info(f"User {user_id} started the bot")

    session_factory = get_session_factory()
    async with session_factory() as session:
        users_repo = UsersRepo(session)
        db_user = await users_repo.ensure_user(user_id, display_name=user.first_name)
        display_name = db_user.display_name

    await safe_send_message(
        bot=message.bot,
        chat_id=message.chat.id,
        text=start_message(display_name),
        reply_markup=kb_start(),
    )


@router.message(Command("help"))
async def handle_help(message: Message) -> None:
    """Handle the /help command."""
    await safe_send_message(
        bot=message.bot,
        chat_id=message.chat.id,
        text=HELP_MESSAGE,
    )


@router.callback_query(F.data == "n:help")
async def handle_help_button(callback: CallbackQuery) -> None:
    """Handle the Help button from the start menu."""
    await safe_answer_callback(callback)

    if not callback.message:
        return

    await safe_send_message(
        bot=callback.bot,
        chat_id=callback.message.chat.id,
        text=HELP_MESSAGE,
    )


@router.message(Command("name"))
async def handle_name(message: Message, command: CommandObject) -> None:
    """Handle /name <display name>, shown in /stats."""
    user = message.from_user
    if not user:
        return

    new_name = (command.args or "").strip()
    if not new_name:
        await safe_send_message(bot=message.bot, chat_id=message.chat.id, text=name_usage())
        return

    user_id = str(user.id)
    session_factory = get_session_factory()
    async with session_factory() as session:
        users_repo = UsersRepo(session)
        await users_repo.ensure_user(user_id, display_name=user.first_name)
        await users_repo.update_display_name(user_id, new_name[:64])

    logger.info(f"User {user_id} changed display name")
    await safe_send_message(
        bot=message.bot,
        chat_id=message.chat.id,
        text=name_updated(new_name[:64]),
    )
