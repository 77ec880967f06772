"""
Queue builder for daily review sessions.

Builds the session queue by:
1. Collecting due REVIEW, LEARNING and RELEARNING items
2. Working out how many NEW items today's budget still allows
3. Sampling that many NEW items uniformly from the whole NEW pool
"""

import asyncio
import logging
import random
from collections.abc import Iterable
from datetime import datetime

from taaltuig.domain.errors import ConfigurationError
from taaltuig.domain.models import QueueResult, QueueStats, ReviewItem, State, utcnow
from taaltuig.domain.ports import ReviewItemStore, SettingsProvider

logger = logging.getLogger(__name__)


async def build_review_queue(
    store: ReviewItemStore,
    settings_provider: SettingsProvider,
    user_id: str,
    extra_new: int = 0,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> QueueResult:
    """
    Build today's review queue for a user.

    Args:
        store: Item store (port).
        settings_provider: Configuration provider (port). Settings must exist.
        user_id: Owner of the items.
        extra_new: NEW items requested beyond the daily budget ("continue session").
        now: Reference time; defaults to the current UTC time.
        rng: Random source for the NEW-pool shuffle.

    Returns:
        QueueResult with items ordered review, learning, relearning, new.

    Raises:
        ConfigurationError: The user has no scheduling configuration.
    """
    now = now or utcnow()
    extra_new = max(0, extra_new)

    settings, review_items, learning_items, relearning_items, new_today = await asyncio.gather(
        settings_provider.get_settings(user_id),
        store.query_items_by_state(user_id, State.REVIEW, now),
        store.query_items_by_state(user_id, State.LEARNING, now),
        store.query_items_by_state(user_id, State.RELEARNING, now),
        store.count_new_introduced_on(user_id, now.date()),
    )

    if settings is None:
        raise ConfigurationError(f"No scheduling configuration for user {user_id}")

    if settings.max_reviews_per_day is not None:
        review_items = review_items[: settings.max_reviews_per_day]

    remaining_new = max(0, settings.new_cards_per_day - new_today)
    target_new = remaining_new + extra_new

    selected_new: list[ReviewItem] = []
    if target_new > 0:
        pool = await store.query_new_items(user_id)
        pool = filter_categories(pool, settings.excluded_categories)
        selected_new = shuffled(pool, rng)[:target_new]

    queue = [*review_items, *learning_items, *relearning_items, *selected_new]
    stats = QueueStats(
        due_count=len(review_items),
        new_count=len(selected_new),
        learning_count=len(learning_items) + len(relearning_items),
        total_count=len(queue),
        new_remaining_today=max(0, remaining_new - len(selected_new)),
    )

    logger.info(
        f"Queue for {user_id}: {stats.due_count} due, {stats.learning_count} learning, "
        f"{stats.new_count} new ({new_today} introduced today)"
    )
    return QueueResult(items=queue, stats=stats)


async def list_all(
    store: ReviewItemStore, user_id: str, now: datetime | None = None
) -> QueueResult:
    """
    Debug listing: every item of the user, with stats over the whole collection.
    """
    now = now or utcnow()
    items = await store.list_all_items(user_id)

    due_count = sum(
        1
        for item in items
        if item.state in (State.LEARNING, State.REVIEW, State.RELEARNING) and item.due_at <= now
    )
    stats = QueueStats(
        due_count=due_count,
        new_count=sum(1 for item in items if item.state == State.NEW),
        learning_count=sum(
            1 for item in items if item.state in (State.LEARNING, State.RELEARNING)
        ),
        total_count=len(items),
        new_remaining_today=0,
    )
    return QueueResult(items=items, stats=stats)


def filter_categories(items: Iterable[ReviewItem], excluded: frozenset[str]) -> list[ReviewItem]:
    """Drop items whose category is excluded. Uncategorized items always stay."""
    if not excluded:
        return list(items)
    return [item for item in items if not item.category or item.category not in excluded]


def shuffled(items: list[ReviewItem], rng: random.Random | None = None) -> list[ReviewItem]:
    """
    Uniform Fisher-Yates shuffle of a copy of the whole list.

    The full pool is shuffled, not a page of it, so a card's forward and
    reverse facets (adjacent in storage) do not come out back-to-back.
    """
    rng = rng or random.Random()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result
