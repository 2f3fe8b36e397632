"""Tests for the feed session registry and its sweeper job."""

import pytest

from cineco.core.contracts import Category, FeedSettings, FeedState
from cineco.core.feed_controller import FeedController
from cineco.core.sessions import FeedSessionRegistry, get_feed_sessions, set_feed_sessions
from cineco.jobs.scheduler import (
    SESSION_SWEEP_JOB_ID,
    get_scheduler,
    setup_session_sweeper_job,
    shutdown_scheduler,
)
from cineco.jobs.session_sweeper import run_session_sweep
from cineco.tests.fakes import FakeCatalog, FakeStore, page_of


def make_registry(ttl_seconds: int = 60) -> FeedSessionRegistry:
    catalog = FakeCatalog({(Category.MOVIE, 1): page_of(1, 2, 3)})
    store = FakeStore()

    def factory(user_id: str) -> FeedController:
        return FeedController(
            user_id=user_id,
            catalog=catalog,
            store=store,
            settings=FeedSettings(initial_pages=1, low_water_mark=0),
        )

    return FeedSessionRegistry(factory, ttl_seconds=ttl_seconds)


@pytest.fixture
def registry():
    registry = make_registry()
    set_feed_sessions(registry)
    yield registry
    set_feed_sessions(None)


def test_get_or_create_returns_same_controller(registry):
    first = registry.get_or_create("u1")

    assert registry.get_or_create("u1") is first
    assert registry.get("u1") is first
    assert registry.get("u2") is None
    assert len(registry) == 1


@pytest.mark.anyio
async def test_close_tears_down_controller(registry):
    controller = registry.get_or_create("u1")
    await controller.start(Category.MOVIE)

    assert await registry.close("u1") is True
    assert await registry.close("u1") is False
    assert controller.state is FeedState.UNINITIALIZED
    assert registry.get("u1") is None


@pytest.mark.anyio
async def test_sweep_closes_only_idle_sessions(registry):
    idle = registry.get_or_create("idle")
    active = registry.get_or_create("active")
    idle.last_activity = 1000.0
    active.last_activity = 1050.0

    closed = await registry.sweep_expired(now=1100.0)

    assert closed == 1
    assert registry.get("idle") is None
    assert registry.get("active") is active


@pytest.mark.anyio
async def test_close_all(registry):
    registry.get_or_create("a")
    registry.get_or_create("b")

    await registry.close_all()

    assert len(registry) == 0


@pytest.mark.anyio
async def test_session_sweep_job_uses_process_registry(registry):
    assert get_feed_sessions() is registry
    stale = registry.get_or_create("stale")
    stale.last_activity = -10_000.0
    registry.get_or_create("fresh")

    summary = await run_session_sweep()

    assert summary == {"closed": 1, "active": 1}


def test_sweeper_job_scheduled_with_interval():
    try:
        job_id = setup_session_sweeper_job(interval_seconds=120)

        assert job_id == SESSION_SWEEP_JOB_ID
        job = get_scheduler().get_job(SESSION_SWEEP_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 120
    finally:
        shutdown_scheduler()


def test_sweeper_job_disabled_with_zero_interval():
    try:
        assert setup_session_sweeper_job(interval_seconds=0) is None
        assert get_scheduler().get_job(SESSION_SWEEP_JOB_ID) is None
    finally:
        shutdown_scheduler()
