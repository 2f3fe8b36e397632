"""Inline keyboard builders with compact callback data."""

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from cineco.core.contracts import Bucket, Candidate, Category, LibraryEntry

# Callback data prefixes:
# c: classify the current feed card (watched/watchlisted/skipped|item_id)
# d: start or switch the discovery feed (movie/series)
# l: library action (mv|category|item_id, rm|bucket|category|item_id)
# a: add a search result (bucket|category|item_id)
# n: navigation (watchlist/watched/stats/help)

CATEGORY_LABELS = {
    Category.MOVIE: "🎬 Movies",
    Category.SERIES: "📺 Series",
}


def kb_start() -> InlineKeyboardMarkup:
    """Start menu keyboard."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text=CATEGORY_LABELS[Category.MOVIE], callback_data="d:movie"),
                InlineKeyboardButton(text=CATEGORY_LABELS[Category.SERIES], callback_data="d:series"),
            ],
            [
                InlineKeyboardButton(text="📌 Watchlist", callback_data="n:watchlisted"),
                InlineKeyboardButton(text="✅ Watched", callback_data="n:watched"),
            ],
            [
                InlineKeyboardButton(text="📊 Stats", callback_data="n:stats"),
                InlineKeyboardButton(text="❓ Help", callback_data="n:help"),
            ],
        ]
    )


def kb_feed_card(candidate: Candidate) -> InlineKeyboardMarkup:
    """Classification keyboard for the card on offer.

    The item id travels with the callback so a tap on an old card
    can be told apart from a tap on the current one.
    """
    item_id = candidate.id
    other = Category.SERIES if candidate.category is Category.MOVIE else Category.MOVIE

    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Watched", callback_data=f"c:watched|{item_id}"),
                InlineKeyboardButton(text="📌 Watchlist", callback_data=f"c:watchlisted|{item_id}"),
                InlineKeyboardButton(text="⏭ Skip", callback_data=f"c:skipped|{item_id}"),
            ],
            [
                InlineKeyboardButton(
                    text=f"Switch to {CATEGORY_LABELS[other]}",
                    callback_data=f"d:{other.value}",
                ),
            ],
        ]
    )


def kb_feed_retry(category: Category) -> InlineKeyboardMarkup:
    """Retry keyboard shown when the feed failed to load."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🔄 Try again", callback_data=f"d:{category.value}")]
        ]
    )


def kb_feed_empty(category: Category) -> InlineKeyboardMarkup:
    """Keyboard shown when a category has nothing left to offer."""
    other = Category.SERIES if category is Category.MOVIE else Category.MOVIE
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text=CATEGORY_LABELS[other], callback_data=f"d:{other.value}"),
                InlineKeyboardButton(text="📌 Watchlist", callback_data="n:watchlisted"),
            ]
        ]
    )


def kb_library_entry(entry: LibraryEntry) -> InlineKeyboardMarkup:
    """Actions for one library entry.

    Watchlist entries can be marked watched; every entry can be removed.
    """
    category = entry.category.value
    rows = []
    if entry.bucket is Bucket.WATCHLISTED:
        rows.append(
            [
                InlineKeyboardButton(
                    text="✅ Mark watched",
                    callback_data=f"l:mv|{category}|{entry.item_id}",
                )
            ]
        )
    rows.append(
        [
            InlineKeyboardButton(
                text="🗑 Remove",
                callback_data=f"l:rm|{entry.bucket.value}|{category}|{entry.item_id}",
            )
        ]
    )
    return InlineKeyboardMarkup(inline_keyboard=rows)


def kb_search_result(candidate: Candidate) -> InlineKeyboardMarkup:
    """Add-to-library keyboard for a search result."""
    category = candidate.category.value
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text="📌 Watchlist",
                    callback_data=f"a:watchlisted|{category}|{candidate.id}",
                ),
                InlineKeyboardButton(
                    text="✅ Watched",
                    callback_data=f"a:watched|{category}|{candidate.id}",
                ),
            ]
        ]
    )


def kb_library_categories(bucket: Bucket) -> InlineKeyboardMarkup:
    """Category picker for a library list."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text=CATEGORY_LABELS[category],
                    callback_data=f"n:{bucket.value}|{category.value}",
                )
                for category in Category
            ]
        ]
    )


# Parsing utilities

def parse_callback(data: str) -> tuple[str, str, list[str]]:
    """Parse callback data into prefix, value, and extra params.

    Args:
        data: Raw callback data string

    Returns:
        Tuple of (prefix, value, extra_params)

    Examples:
        "d:movie" -> ("d", "movie", [])
        "c:skipped|550" -> ("c", "skipped", ["550"])
        "l:rm|watched|series|1399" -> ("l", "rm", ["watched", "series", "1399"])
    """
    if ":" not in data:
        return ("", data, [])

    prefix, rest = data.split(":", 1)
    parts = rest.split("|")
    value = parts[0]
    extra = parts[1:] if len(parts) > 1 else []

    return (prefix, value, extra)
