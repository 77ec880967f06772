"""
In-session queue manager.

Owns one review sitting: the item on screen, the items ready to show next,
and the items waiting to come back once their short learning or relearning
delay has elapsed. Nothing here is persisted.

The manager itself never reads a timer. ``make_available`` and
``release_due`` are the entry points for whatever drives time; ``SessionTimer``
does that on an asyncio event loop with a single re-armed handle.
"""

import asyncio
import bisect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from taaltuig.domain import constants as c
from taaltuig.domain.models import Grade, ReviewItem, utcnow

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    LOADING = "loading"  # waiting for the initial batch
    EMPTY = "empty"  # nothing to review at all
    REVIEWING = "reviewing"  # an item is (or is about to be) on screen
    WAITING = "waiting"  # only items held for a later return remain
    COMPLETE = "complete"  # everything seen, nothing left


@dataclass(frozen=True)
class WaitingEntry:
    item: ReviewItem
    available_at: datetime


@dataclass(frozen=True)
class SessionStats:
    total_seen: int
    reviewed_count: int
    again_count: int
    again_reviewed: int
    cards_remaining: int


def compute_phase(
    current: ReviewItem | None,
    ready: list[ReviewItem],
    waiting: list[WaitingEntry],
    total_seen: int,
) -> SessionPhase:
    if current is not None:
        return SessionPhase.REVIEWING
    if ready:
        return SessionPhase.REVIEWING  # rotation supplies the next item
    if waiting:
        return SessionPhase.WAITING
    if total_seen > 0:
        return SessionPhase.COMPLETE
    return SessionPhase.EMPTY


def should_hold(
    due_at: datetime,
    graded_at: datetime,
    horizon: timedelta = timedelta(hours=c.DEFAULT_HOLD_HORIZON_HOURS),
) -> bool:
    """True if an item due at ``due_at`` is worth holding in the current sitting."""
    until_due = due_at - graded_at
    return timedelta(0) <= until_due < horizon


class ReviewSession:
    """
    Single-session, single-writer state machine over ``SessionPhase``.

    Every public mutation is total over the session's state: calling one
    with nothing to act on is a no-op, never an error.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._initialized = False
        self._listeners: list[Callable[[], None]] = []

        self.phase = SessionPhase.LOADING
        self.current: ReviewItem | None = None
        self.ready: list[ReviewItem] = []
        self.waiting: list[WaitingEntry] = []

        self.total_seen = 0
        self.reviewed_count = 0
        self.again_count = 0
        self.again_reviewed = 0
        self._again_ids: set[str] = set()

        self.show_answer = False
        self.started_at: datetime = clock()
        self.loading_extra: int | None = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def cards_remaining(self) -> int:
        return (1 if self.current is not None else 0) + len(self.ready) + len(self.waiting)

    @property
    def waiting_count(self) -> int:
        return len(self.waiting)

    @property
    def next_waiting_time(self) -> datetime | None:
        return self.waiting[0].available_at if self.waiting else None

    @property
    def stats(self) -> SessionStats:
        return SessionStats(
            total_seen=self.total_seen,
            reviewed_count=self.reviewed_count,
            again_count=self.again_count,
            again_reviewed=self.again_reviewed,
            cards_remaining=self.cards_remaining,
        )

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired whenever the waiting set's membership changes."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def contains(self, review_item_id: str) -> bool:
        """True if the item is on screen, ready, or waiting in this session."""
        if self.current is not None and self.current.review_item_id == review_item_id:
            return True
        return any(i.review_item_id == review_item_id for i in self.ready) or any(
            e.item.review_item_id == review_item_id for e in self.waiting
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def init_queue(self, items: Iterable[ReviewItem]) -> bool:
        """
        Start the session from the queue builder's batch.

        Runs once; later calls are ignored (returns False) even with a
        different batch.
        """
        if self._initialized:
            return False
        self._initialized = True

        items = list(items)
        self.current = items[0] if items else None
        self.ready = items[1:]
        self.waiting = []
        self.total_seen = len(items)
        self.reviewed_count = 0
        self.again_count = 0
        self.again_reviewed = 0
        self._again_ids = set()
        self.show_answer = False
        self.started_at = self._clock()
        self._refresh_phase()

        logger.debug(f"Session started with {len(items)} items ({self.phase.value})")
        return True

    def reveal_answer(self) -> None:
        self.show_answer = True

    def grade(self, grade: Grade) -> ReviewItem | None:
        """
        Move past the current item.

        Returns the graded item, or None (no-op) if nothing is on screen. The
        caller schedules it externally and may hand it back via
        ``schedule_return``.
        """
        if self.current is None:
            return None

        grade = Grade.parse(grade)
        graded = self.current
        is_again = grade == Grade.AGAIN

        self.current = self.ready.pop(0) if self.ready else None
        self.reviewed_count += 1
        if is_again:
            self.again_count += 1
        if graded.review_item_id in self._again_ids:
            self.again_reviewed += 1
        self.show_answer = False
        self.started_at = self._clock()

        self._refresh_phase()
        # The graded item is about to be scheduled back in
        if is_again and self.phase == SessionPhase.COMPLETE:
            self.phase = SessionPhase.WAITING
        return graded

    def schedule_return(self, item: ReviewItem, due_at: datetime, was_again: bool) -> None:
        """
        Hold ``item`` in the session until ``due_at``.

        Callers should only hand over items that ``should_hold`` accepts.
        """
        # One entry per item
        self.waiting = [e for e in self.waiting if e.item.review_item_id != item.review_item_id]
        bisect.insort_right(
            self.waiting, WaitingEntry(item, due_at), key=lambda e: e.available_at
        )
        if was_again:
            self._again_ids.add(item.review_item_id)

        if self.phase == SessionPhase.COMPLETE and self.current is None:
            self.phase = SessionPhase.WAITING
        logger.debug(f"{item.review_item_id} returns at {due_at.isoformat()}")
        self._notify()

    def decline_return(self) -> None:
        """
        The caller will not hold the last graded item after all (its next due
        time is beyond the horizon). Drops a forced ``waiting`` phase.
        """
        self._refresh_phase()

    def make_available(self, review_item_id: str) -> bool:
        """
        A waiting item's time has come. Unknown ids are ignored (stale timer).
        """
        released = self._release(review_item_id)
        if released:
            self._notify()
        return released

    def release_due(self, now: datetime | None = None) -> list[ReviewItem]:
        """Release every waiting entry available at ``now``, soonest first."""
        now = now or self._clock()
        released: list[ReviewItem] = []
        while self.waiting and self.waiting[0].available_at <= now:
            entry = self.waiting[0]
            self._release(entry.item.review_item_id)
            released.append(entry.item)
        if released:
            self._notify()
        return released

    def extend(self, items: Iterable[ReviewItem]) -> None:
        """Append extra items fetched mid-session (e.g. past the daily limit)."""
        items = list(items)
        if not items:
            return

        if self.current is None:
            self.current = items[0]
            self.ready.extend(items[1:])
            self.show_answer = False
            self.started_at = self._clock()
        else:
            self.ready.extend(items)
        self.total_seen += len(items)
        self.loading_extra = None
        self._refresh_phase()

    def set_loading_extra(self, count: int | None) -> None:
        """Mark an extra-items fetch as in flight (count) or finished/failed (None)."""
        self.loading_extra = count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _release(self, review_item_id: str) -> bool:
        index = next(
            (i for i, e in enumerate(self.waiting) if e.item.review_item_id == review_item_id),
            None,
        )
        if index is None:
            logger.debug(f"Ignoring release of {review_item_id}: not waiting")
            return False

        entry = self.waiting.pop(index)
        if self.current is None:
            self.current = entry.item
            self.show_answer = False
            self.started_at = self._clock()
        else:
            # Recently failed items come back before never-seen ones
            self.ready.insert(0, entry.item)
        self._refresh_phase()
        return True

    def _refresh_phase(self) -> None:
        self.phase = compute_phase(self.current, self.ready, self.waiting, self.total_seen)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()


class SessionTimer:
    """
    Drives a session's waiting items on an asyncio event loop.

    Holds one handle pointing at the soonest waiting entry and re-arms it
    whenever the waiting set changes. Callbacks run on the loop thread, so
    they are serialized with every other mutation made from that loop.
    """

    def __init__(
        self,
        session: ReviewSession,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self._loop = loop or asyncio.get_running_loop()
        self._clock = clock
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False
        session.add_listener(self.sync)
        self.sync()

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def sync(self) -> None:
        """Cancel the pending handle and arm a new one for the soonest entry."""
        self._cancel()
        if self._closed:
            return
        next_time = self.session.next_waiting_time
        if next_time is None:
            return
        delay = max(0.0, (next_time - self._clock()).total_seconds())
        self._handle = self._loop.call_later(delay, self._fire)

    def close(self) -> None:
        """Tear down: cancel the handle. Later fires and syncs do nothing."""
        self._closed = True
        self._cancel()
        self.session.remove_listener(self.sync)

    def _fire(self) -> None:
        self._handle = None
        if self._closed:
            return
        released = self.session.release_due(self._clock())
        if not released:
            # Woke early (clock skew); try again
            self.sync()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
