"""
In-memory store: infrastructure adapter keeping everything in dictionaries.

Implements all three ports (items, settings, history). Used by tests, by the
CLI when no data file is configured, and as the base of JsonFileStore.
"""

import logging
from datetime import date, datetime
from typing import Any

from taaltuig.domain.errors import ItemNotFoundError, StoreClosedError
from taaltuig.domain.models import ReviewHistoryEntry, ReviewItem, State
from taaltuig.domain.ports import HistoryRecorder, ReviewItemStore, SettingsProvider
from taaltuig.domain.settings import SchedulingConfig

logger = logging.getLogger(__name__)


class MemoryStore(ReviewItemStore, SettingsProvider, HistoryRecorder):
    """
    Process-local store handle.

    Usable straight after construction; ``close()`` ends its lifecycle and any
    later call raises StoreClosedError.
    """

    def __init__(self, default_settings: SchedulingConfig | None = None):
        self._items: dict[tuple[str, str], ReviewItem] = {}
        self._settings: dict[str, SchedulingConfig] = {}
        self._history: list[ReviewHistoryEntry] = []
        self._default_settings = default_settings or SchedulingConfig()
        self._open = True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "MemoryStore":
        self._open = True
        return self

    def close(self) -> None:
        self._open = False

    def __enter__(self) -> "MemoryStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if not self._open:
            raise StoreClosedError(f"{type(self).__name__} is closed")

    def _changed(self) -> None:
        """Hook called after every write."""

    # ------------------------------------------------------------------
    # ReviewItemStore
    # ------------------------------------------------------------------

    async def query_items_by_state(
        self, user_id: str, state: State, due_before: datetime | None = None
    ) -> list[ReviewItem]:
        self._check_open()
        items = [
            item
            for (owner, _), item in self._items.items()
            if owner == user_id
            and item.state == state
            and (due_before is None or item.due_at <= due_before)
        ]
        return sorted(items, key=lambda item: item.due_at)

    async def query_new_items(self, user_id: str) -> list[ReviewItem]:
        self._check_open()
        return [
            item
            for (owner, _), item in self._items.items()
            if owner == user_id and item.state == State.NEW
        ]

    async def count_new_introduced_on(self, user_id: str, day: date) -> int:
        self._check_open()
        return sum(
            1
            for entry in self._history
            if entry.user_id == user_id
            and entry.state_before == State.NEW
            and entry.reviewed_at.date() == day
        )

    async def get_item(self, user_id: str, review_item_id: str) -> ReviewItem | None:
        self._check_open()
        return self._items.get((user_id, review_item_id))

    async def put_item(self, item: ReviewItem) -> None:
        self._check_open()
        self._items[(item.user_id, item.review_item_id)] = item
        self._changed()

    async def update_item(self, item: ReviewItem) -> None:
        self._check_open()
        key = (item.user_id, item.review_item_id)
        if key not in self._items:
            raise ItemNotFoundError(item.review_item_id)
        self._items[key] = item
        self._changed()

    async def list_all_items(self, user_id: str) -> list[ReviewItem]:
        self._check_open()
        return [item for (owner, _), item in self._items.items() if owner == user_id]

    # ------------------------------------------------------------------
    # SettingsProvider
    # ------------------------------------------------------------------

    async def get_settings(self, user_id: str) -> SchedulingConfig | None:
        self._check_open()
        return self._settings.get(user_id)

    async def create_default_settings(self, user_id: str) -> SchedulingConfig:
        self._check_open()
        settings = self._default_settings
        self._settings[user_id] = settings
        logger.info(f"Created default scheduling settings for {user_id}")
        self._changed()
        return settings

    async def update_settings(self, user_id: str, changes: dict[str, Any]) -> SchedulingConfig:
        self._check_open()
        current = self._settings.get(user_id) or self._default_settings
        updated = current.with_updates(**changes)
        self._settings[user_id] = updated
        self._changed()
        return updated

    # ------------------------------------------------------------------
    # HistoryRecorder
    # ------------------------------------------------------------------

    async def record(self, entry: ReviewHistoryEntry) -> None:
        self._check_open()
        self._history.append(entry)
        self._changed()

    async def list_history_on(self, user_id: str, day: date) -> list[ReviewHistoryEntry]:
        self._check_open()
        return [
            entry
            for entry in self._history
            if entry.user_id == user_id and entry.reviewed_at.date() == day
        ]

    async def delete_history_on(self, user_id: str, day: date) -> int:
        self._check_open()
        kept = [
            entry
            for entry in self._history
            if not (entry.user_id == user_id and entry.reviewed_at.date() == day)
        ]
        deleted = len(self._history) - len(kept)
        self._history = kept
        if deleted:
            self._changed()
        return deleted
