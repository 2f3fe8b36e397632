"""Message templates and text constants."""

from html import escape

from cineco.core.contracts import Bucket, Candidate, Category, LibraryEntry
from cineco.providers.tmdb_client import genre_ids_to_names

OVERVIEW_LIMIT = 600

CATEGORY_NAMES = {
    Category.MOVIE: "movies",
    Category.SERIES: "series",
}

BUCKET_NAMES = {
    Bucket.WATCHED: "Watched",
    Bucket.WATCHLISTED: "Watchlist",
    Bucket.SKIPPED: "Skipped",
}


def start_message(display_name: str | None = None) -> str:
    """Welcome message."""
    greeting = f"Hi, {escape(display_name)}!" if display_name else "Hi!"
    return (
        f"<b>{greeting} Let's find something to watch.</b>\n\n"
        "I'll show you popular movies and series one at a time. "
        "Mark each one as watched, add it to your watchlist, or skip it. "
        "You won't see the same title twice.\n\n"
        "Pick a category below."
    )


def _shorten(text: str, limit: int = OVERVIEW_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def feed_card(candidate: Candidate) -> str:
    """Discovery card for the candidate on offer.

    Args:
        candidate: Candidate at the head of the feed

    Returns:
        Formatted card text
    """
    title_line = f"<b>{escape(candidate.title)}</b> ({escape(candidate.year)})"
    rating_line = f"⭐ {candidate.rating_formatted}"

    genres = genre_ids_to_names(candidate.genre_ids)
    if genres:
        rating_line += f"  ·  {escape(', '.join(genres[:3]))}"

    parts = [title_line, rating_line]
    if candidate.overview:
        parts.append(escape(_shorten(candidate.overview)))

    return "\n\n".join(parts)


def feed_loading(category: Category) -> str:
    """Shown while the first pages load."""
    return f"Loading {CATEGORY_NAMES[category]}..."


def feed_empty(category: Category) -> str:
    """Shown when there is nothing left to offer."""
    return (
        f"You've gone through all the {CATEGORY_NAMES[category]} I can find right now.\n\n"
        "Check back later or try the other category."
    )


def feed_error() -> str:
    """Shown when the catalog could not be reached."""
    return "I couldn't load new titles. Check your connection and try again."


def feed_expired() -> str:
    """Shown when a button belongs to a session that no longer exists."""
    return "This feed has expired. Send /discover to start again."


def stale_card() -> str:
    """Callback notice for a tap on a card that is no longer current."""
    return "That card is gone already, use the latest one."


def classification_busy() -> str:
    """Callback notice while a previous choice is still being saved."""
    return "One moment, still saving your last choice."


def classified_ack(bucket: Bucket) -> str:
    """Callback notice after a classification."""
    if bucket is Bucket.WATCHED:
        return "Marked as watched"
    if bucket is Bucket.WATCHLISTED:
        return "Added to your watchlist"
    return "Skipped"


def not_persisted(title: str) -> str:
    """Notice that a classification could not be saved."""
    return (
        f"⚠️ I couldn't save your choice for <b>{escape(title)}</b>. "
        "It won't show up again in this session, but it may return later."
    )


def library_header(bucket: Bucket, category: Category, count: int) -> str:
    """Header for a library list."""
    return f"<b>{BUCKET_NAMES[bucket]}: {CATEGORY_NAMES[category]}</b> ({count})"


def library_empty(bucket: Bucket, category: Category) -> str:
    """Message when a library list is empty."""
    if bucket is Bucket.WATCHLISTED:
        return f"Your {CATEGORY_NAMES[category]} watchlist is empty. Send /discover to fill it up."
    return f"No watched {CATEGORY_NAMES[category]} yet. Send /discover to get started."


def library_entry(entry: LibraryEntry) -> str:
    """Format a single library entry."""
    return f"<b>{escape(entry.title)}</b> ({escape(entry.year)})  ⭐ {entry.rating:.1f}"


def library_pick_category(bucket: Bucket) -> str:
    """Prompt to choose which list to show."""
    return f"<b>{BUCKET_NAMES[bucket]}</b>: movies or series?"


def moved_to_watched(moved: bool) -> str:
    """Callback notice after a watchlist → watched move."""
    return "Moved to watched" if moved else "It's no longer on your watchlist"


def removed(was_present: bool) -> str:
    """Callback notice after removing an entry."""
    return "Removed" if was_present else "Already removed"


def added_from_search(bucket: Bucket) -> str:
    """Callback notice after adding a search result."""
    if bucket is Bucket.WATCHED:
        return "Marked as watched"
    return "Added to your watchlist"


def search_usage() -> str:
    """Usage hint for /search."""
    return "Send <code>/search title</code>, for example <code>/search dune</code>."


def search_header(query: str, count: int) -> str:
    """Header for search results."""
    return f"<b>Results for “{escape(query)}”</b> ({count})"


def search_empty(query: str) -> str:
    """Message when a search returns nothing."""
    return f"Nothing found for “{escape(query)}”."


def search_result(candidate: Candidate) -> str:
    """Format a single search result."""
    kind = "Movie" if candidate.category is Category.MOVIE else "Series"
    return (
        f"<b>{escape(candidate.title)}</b> ({escape(candidate.year)})\n"
        f"{kind}  ·  ⭐ {candidate.rating_formatted}"
    )


def search_expired() -> str:
    """Callback notice when a search result is no longer in the session."""
    return "This result has expired, search again."


def stats_message(display_name: str | None, counts: dict[Category, int]) -> str:
    """Per-category watched counts."""
    name = escape(display_name) if display_name else "You"
    return (
        f"<b>{name}</b>\n\n"
        f"🎬 Movies watched: {counts.get(Category.MOVIE, 0)}\n"
        f"📺 Series watched: {counts.get(Category.SERIES, 0)}"
    )


def name_usage() -> str:
    """Usage hint for /name."""
    return "Send <code>/name Your Name</code> to change how I call you."


def name_updated(display_name: str) -> str:
    return f"Done, I'll call you <b>{escape(display_name)}</b>."


def error_message() -> str:
    """Generic error message."""
    return "Oops, something went wrong. Please try again in a moment."


HELP_MESSAGE = (
    "<b>Commands:</b>\n\n"
    "/discover - Continue discovering (movies by default)\n"
    "/movies - Discover movies\n"
    "/series - Discover series\n"
    "/watchlist - Your watchlist\n"
    "/watched - What you've watched\n"
    "/search <i>title</i> - Search movies and series\n"
    "/stats - How much you've watched\n"
    "/name <i>name</i> - Change your display name\n"
    "/help - Show this help\n\n"
    "This product uses the TMDB API but is not endorsed or certified by TMDB."
)
