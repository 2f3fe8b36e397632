"""Router configuration and wiring for all bot handlers."""

from aiogram import Dispatcher, Router

from cineco.bot.handlers_discover import router as discover_router
from cineco.bot.handlers_library import router as library_router
from cineco.bot.handlers_start import router as start_router

main_router = Router(name="main")


def setup_routers(dp: Dispatcher) -> None:
    """Wire all routers to the dispatcher.

    Start handles /start and /help, discover owns the swipe feed,
    library owns watchlist, watched, stats and search.

    Args:
        dp: The aiogram Dispatcher instance
    """
    main_router.include_router(start_router)
    main_router.include_router(discover_router)
    main_router.include_router(library_router)

    dp.include_router(main_router)
