"""Tests for bot UX flow components."""

import time
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cineco.bot.keyboards import (
    kb_feed_card,
    kb_library_categories,
    kb_library_entry,
    kb_search_result,
    kb_start,
    parse_callback,
)
from cineco.bot.messages import (
    classified_ack,
    feed_card,
    feed_expired,
    search_result,
    stale_card,
    start_message,
    stats_message,
)
from cineco.bot.session import SessionStore
from cineco.core.contracts import Bucket, Category, FeedSettings, LibraryEntry
from cineco.core.feed_controller import FeedController
from cineco.core.sessions import FeedSessionRegistry, set_feed_sessions
from cineco.tests.fakes import FakeCatalog, FakeStore, make_candidate, page_of

M = Category.MOVIE
S = Category.SERIES


def _callback_data(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


# Callback parsing


def test_parse_callback_simple():
    assert parse_callback("d:movie") == ("d", "movie", [])


def test_parse_callback_with_extra():
    assert parse_callback("c:skipped|550") == ("c", "skipped", ["550"])


def test_parse_callback_with_multiple_extra():
    assert parse_callback("l:rm|watched|series|1399") == ("l", "rm", ["watched", "series", "1399"])


def test_parse_callback_no_prefix():
    assert parse_callback("garbage") == ("", "garbage", [])


# Keyboards


def test_kb_start():
    data = _callback_data(kb_start())
    assert data == ["d:movie", "d:series", "n:watchlisted", "n:watched", "n:stats", "n:help"]


def test_kb_feed_card_carries_item_id_and_switch():
    data = _callback_data(kb_feed_card(make_candidate(550, M)))
    assert data == ["c:watched|550", "c:watchlisted|550", "c:skipped|550", "d:series"]

    data = _callback_data(kb_feed_card(make_candidate(1399, S)))
    assert data[-1] == "d:movie"


def test_kb_library_entry_actions_depend_on_bucket():
    entry = LibraryEntry(
        item_id=1399,
        category=S,
        bucket=Bucket.WATCHLISTED,
        title="Game of Thrones",
        year="2011",
        poster_path=None,
        rating=8.4,
        created_at=None,
    )
    assert _callback_data(kb_library_entry(entry)) == [
        "l:mv|series|1399",
        "l:rm|watchlisted|series|1399",
    ]

    watched = replace(entry, bucket=Bucket.WATCHED)
    assert _callback_data(kb_library_entry(watched)) == ["l:rm|watched|series|1399"]


def test_callback_data_fits_telegram_limit():
    big_id = 10**12
    candidate = make_candidate(big_id, S)
    entry = LibraryEntry(
        item_id=big_id,
        category=S,
        bucket=Bucket.WATCHLISTED,
        title="x",
        year="N/A",
        poster_path=None,
        rating=0.0,
        created_at=None,
    )
    markups = [
        kb_feed_card(candidate),
        kb_search_result(candidate),
        kb_library_entry(entry),
        kb_library_categories(Bucket.WATCHLISTED),
    ]
    for markup in markups:
        for data in _callback_data(markup):
            assert len(data.encode("utf-8")) <= 64


# Messages


def test_feed_card_escapes_html_and_lists_genres():
    candidate = make_candidate(
        1,
        M,
        title="Tom & Jerry <The Movie>",
        overview="Cat <chases> mouse",
        rating=6.94,
        genre_ids=frozenset({16, 35, 10751, 12}),
    )

    text = feed_card(candidate)

    assert "Tom &amp; Jerry &lt;The Movie&gt;" in text
    assert "Cat &lt;chases&gt; mouse" in text
    assert "⭐ 6.9" in text
    # At most three genres
    assert "Adventure, Animation, Comedy" in text
    assert "Family" not in text


def test_feed_card_shortens_long_overview():
    text = feed_card(make_candidate(1, M, overview="word " * 300))
    assert text.endswith("…")


def test_start_message_uses_display_name():
    assert "Hi, Ada &amp; Co!" in start_message("Ada & Co")
    assert "Hi!" in start_message(None)


def test_search_result_and_stats_messages():
    assert "Title 9" in search_result(make_candidate(9, S))
    text = stats_message("Ada", {M: 3, S: 1})
    assert "3" in text and "1" in text


# Chat session store


def test_session_store_category_and_search_results():
    store = SessionStore(ttl_seconds=60)
    candidate = make_candidate(550, M)

    store.set_category("u1", S)
    store.set_search_results("u1", [candidate])

    assert store.get_category("u1") is S
    assert store.get_search_result("u1", M, 550) == candidate
    assert store.get_search_result("u1", S, 550) is None
    assert store.get_category("u2") is None


def test_session_store_ttl():
    store = SessionStore(ttl_seconds=60)
    store.set_category("u1", M)
    store.get("u1").created_at = time.time() - 120

    assert store.get("u1") is None
    assert store.get_category("u1") is None


def test_session_store_clear():
    store = SessionStore()
    store.set_category("u1", M)
    store.clear("u1")
    assert store.get("u1") is None


# Classify callback


def make_callback(data: str, user_id: int = 42) -> MagicMock:
    callback = MagicMock()
    callback.data = data
    callback.from_user.id = user_id
    callback.message.chat.id = 1000
    callback.answer = AsyncMock()
    return callback


@pytest.fixture
def feed_registry():
    catalog = FakeCatalog({(M, 1): page_of(1, 2, 3)})
    store = FakeStore()

    def factory(user_id: str) -> FeedController:
        return FeedController(
            user_id=user_id,
            catalog=catalog,
            store=store,
            settings=FeedSettings(initial_pages=1, low_water_mark=0),
        )

    registry = FeedSessionRegistry(factory)
    set_feed_sessions(registry)
    yield registry, store
    set_feed_sessions(None)


@pytest.mark.anyio
async def test_classify_without_session_reports_expired(feed_registry):
    from cineco.bot.handlers_discover import handle_classify

    callback = make_callback("c:skipped|1")
    await handle_classify(callback)

    callback.answer.assert_awaited_once_with(text=feed_expired(), show_alert=True)


@pytest.mark.anyio
async def test_classify_on_stale_card_is_ignored(feed_registry):
    from cineco.bot.handlers_discover import handle_classify

    registry, store = feed_registry
    controller = registry.get_or_create("42")
    await controller.start(M)

    callback = make_callback("c:skipped|3")
    await handle_classify(callback)

    callback.answer.assert_awaited_once_with(text=stale_card(), show_alert=False)
    assert controller.current().id == 1
    assert store.records == {}


@pytest.mark.anyio
async def test_classify_current_card_advances_and_renders_next(feed_registry):
    from cineco.bot import handlers_discover

    registry, store = feed_registry
    controller = registry.get_or_create("42")
    await controller.start(M)

    poster_cache = MagicMock()
    poster_cache.get = AsyncMock(return_value=b"jpeg")
    send_card = AsyncMock()

    with patch.object(handlers_discover, "get_poster_cache", return_value=poster_cache), \
            patch.object(handlers_discover, "send_card", send_card):
        await handlers_discover.handle_classify(make_callback("c:watchlisted|1"))

    assert controller.current().id == 2
    assert store.buckets_for("42", M, 1) == {Bucket.WATCHLISTED}

    send_card.assert_awaited_once()
    args, kwargs = send_card.call_args
    assert args[1] == 1000
    assert args[3] == b"jpeg"
    assert _callback_data(kwargs["reply_markup"])[0] == "c:watched|2"


@pytest.mark.anyio
async def test_classify_ack_text(feed_registry):
    from cineco.bot import handlers_discover

    registry, store = feed_registry
    controller = registry.get_or_create("42")
    await controller.start(M)
    callback = make_callback("c:watched|1")

    with patch.object(handlers_discover, "render_feed", AsyncMock()):
        await handlers_discover.handle_classify(callback)

    callback.answer.assert_awaited_once_with(text=classified_ack(Bucket.WATCHED), show_alert=False)
