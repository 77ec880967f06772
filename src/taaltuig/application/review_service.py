"""
Review Service: application layer orchestrator.

Coordinates a grading event: load the item and settings, run the scheduler,
persist the new state and append a history entry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from taaltuig.domain.errors import ConfigurationError, ItemNotFoundError
from taaltuig.domain.models import (
    Grade,
    QueueResult,
    ReviewHistoryEntry,
    ReviewItem,
    ScheduleResult,
    new_item_pair,
    utcnow,
)
from taaltuig.domain.ports import HistoryRecorder, ReviewItemStore, SettingsProvider
from taaltuig.domain.settings import SchedulingConfig

from .queue_builder import build_review_queue, list_all
from .scheduler import SM2Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """The item before and after grading, and the scheduler's decision."""

    before: ReviewItem
    after: ReviewItem
    result: ScheduleResult
    graded_at: datetime


class ReviewService:
    """
    Application service for grading items and managing the per-user setup.

    Follows Dependency Inversion: depends on the store ports, not concrete
    adapters. Store failures propagate unchanged.
    """

    def __init__(
        self,
        store: ReviewItemStore,
        settings: SettingsProvider,
        history: HistoryRecorder,
        scheduler: SM2Scheduler | None = None,
    ):
        self._store = store
        self._settings = settings
        self._history = history
        self._scheduler = scheduler or SM2Scheduler()

    async def submit_review(
        self,
        user_id: str,
        review_item_id: str,
        grade: Grade,
        duration_ms: int = 0,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Grade one item and persist the outcome.

        Raises:
            ItemNotFoundError: No such item for this user.
            ConfigurationError: The user has no scheduling configuration.
        """
        now = now or utcnow()
        grade = Grade.parse(grade)
        if duration_ms < 0:
            raise ValueError("duration_ms must be >= 0")

        item = await self._store.get_item(user_id, review_item_id)
        if item is None or item.user_id != user_id:
            raise ItemNotFoundError(review_item_id)

        settings = await self._settings.get_settings(user_id)
        if settings is None:
            raise ConfigurationError(f"No scheduling configuration for user {user_id}")

        result = self._scheduler.schedule(item, grade, settings, now)
        updated = item.apply(result, reviewed_at=now)
        await self._store.update_item(updated)

        await self._history.record(
            ReviewHistoryEntry(
                review_item_id=review_item_id,
                user_id=user_id,
                grade=grade,
                duration_ms=duration_ms,
                state_before=item.state,
                state_after=result.state,
                interval_before=item.interval,
                interval_after=result.interval,
                ease_factor_before=item.ease_factor,
                ease_factor_after=result.ease_factor,
                reviewed_at=now,
            )
        )

        logger.info(
            f"Reviewed {review_item_id} as {grade.name}: {item.state.value} -> "
            f"{result.state.value}, due {result.due_at.isoformat()}"
        )
        return ReviewOutcome(before=item, after=updated, result=result, graded_at=now)

    async def get_settings(self, user_id: str) -> SchedulingConfig:
        return await self._settings.get_or_create_settings(user_id)

    async def update_settings(self, user_id: str, changes: dict[str, Any]) -> SchedulingConfig:
        # Provision defaults first so a partial update has something to apply to
        await self._settings.get_or_create_settings(user_id)
        return await self._settings.update_settings(user_id, changes)

    async def add_card(
        self,
        user_id: str,
        front: str,
        back: str,
        explanation: str | None = None,
        category: str | None = None,
        now: datetime | None = None,
    ) -> tuple[ReviewItem, ReviewItem]:
        """Create the forward and reverse review items of a new card."""
        now = now or utcnow()
        settings = await self._settings.get_or_create_settings(user_id)
        pair = new_item_pair(
            user_id,
            front,
            back,
            starting_ease=settings.starting_ease,
            now=now,
            explanation=explanation,
            category=category,
        )
        for item in pair:
            await self._store.put_item(item)
        logger.info(f"Added card {pair[0].card_id} for {user_id}")
        return pair

    async def build_queue(
        self, user_id: str, extra_new: int = 0, now: datetime | None = None
    ) -> QueueResult:
        """Build the session queue, provisioning default settings on first use."""
        await self._settings.get_or_create_settings(user_id)
        return await build_review_queue(
            self._store, self._settings, user_id, extra_new=extra_new, now=now
        )

    async def list_all(self, user_id: str, now: datetime | None = None) -> QueueResult:
        """Every item of the user, regardless of state or due time."""
        return await list_all(self._store, user_id, now=now)

    async def reset_daily_reviews(self, user_id: str, now: datetime | None = None) -> int:
        """
        Undo today's reviews: every item graded today goes back to NEW and
        today's history is deleted. Returns the number of history entries removed.
        """
        now = now or utcnow()
        today = now.date()
        settings = await self._settings.get_or_create_settings(user_id)

        entries = await self._history.list_history_on(user_id, today)
        item_ids = dict.fromkeys(entry.review_item_id for entry in entries)

        for review_item_id in item_ids:
            item = await self._store.get_item(user_id, review_item_id)
            if item is not None:
                await self._store.update_item(item.reset_to_new(settings.starting_ease, now))

        deleted = await self._history.delete_history_on(user_id, today)
        logger.info(f"Reset {len(item_ids)} items and {deleted} history entries for {user_id}")
        return deleted
