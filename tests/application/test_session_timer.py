import asyncio
from datetime import timedelta

import pytest

from taaltuig.application.session import ReviewSession, SessionPhase, SessionTimer
from taaltuig.domain.models import Grade, utcnow


async def waiting_session(make_item, delays):
    """A session whose items were all failed and are waiting for the given delays."""
    session = ReviewSession()
    items = [make_item(f"item-{n}") for n in range(len(delays))]
    session.init_queue(items)
    now = utcnow()
    for delay in delays:
        graded = session.grade(Grade.AGAIN)
        session.schedule_return(graded, now + delay, was_again=True)
    return session


@pytest.mark.asyncio
async def test_timer_releases_waiting_item(make_item):
    session = await waiting_session(make_item, [timedelta(milliseconds=50)])
    timer = SessionTimer(session)

    assert timer.armed
    assert session.phase == SessionPhase.WAITING

    await asyncio.sleep(0.2)

    assert session.phase == SessionPhase.REVIEWING
    assert session.current.review_item_id == "item-0"
    assert not timer.armed
    timer.close()


@pytest.mark.asyncio
async def test_timer_rearms_for_next_entry(make_item):
    session = await waiting_session(
        make_item, [timedelta(milliseconds=30), timedelta(milliseconds=150)]
    )
    timer = SessionTimer(session)

    await asyncio.sleep(0.08)
    assert session.current.review_item_id == "item-0"
    assert session.waiting_count == 1
    assert timer.armed

    await asyncio.sleep(0.2)
    assert session.waiting_count == 0
    assert session.ready[0].review_item_id == "item-1"
    timer.close()


@pytest.mark.asyncio
async def test_timer_follows_new_returns(make_item):
    session = ReviewSession()
    session.init_queue([make_item("a"), make_item("b")])
    timer = SessionTimer(session)
    assert not timer.armed

    graded = session.grade(Grade.AGAIN)
    session.schedule_return(graded, utcnow() + timedelta(milliseconds=30), was_again=True)
    assert timer.armed

    await asyncio.sleep(0.1)

    assert session.current.review_item_id == "b"
    assert session.ready[0].review_item_id == "a"
    timer.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_release(make_item):
    session = await waiting_session(make_item, [timedelta(milliseconds=30)])
    timer = SessionTimer(session)

    timer.close()
    await asyncio.sleep(0.1)

    assert timer.closed
    assert not timer.armed
    assert session.phase == SessionPhase.WAITING
    assert session.waiting_count == 1


@pytest.mark.asyncio
async def test_fire_after_close_is_noop(make_item):
    session = await waiting_session(make_item, [timedelta(seconds=-1)])
    timer = SessionTimer(session)
    timer.close()

    timer._fire()

    assert session.waiting_count == 1


@pytest.mark.asyncio
async def test_sync_after_close_does_not_arm(make_item):
    session = await waiting_session(make_item, [timedelta(milliseconds=30)])
    timer = SessionTimer(session)
    timer.close()

    timer.sync()
    graded_again = session.waiting[0].item
    session.schedule_return(graded_again, utcnow() + timedelta(seconds=1), was_again=True)

    assert not timer.armed
