"""
Ports (interfaces) for the scheduling core's external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from .models import ReviewHistoryEntry, ReviewItem, State
from .settings import SchedulingConfig


class ReviewItemStore(ABC):
    """
    Port for persisted review items, keyed by user + item id.

    Implementations:
        - MemoryStore: process-local dictionaries.
        - JsonFileStore: a single JSON document on disk.
    """

    @abstractmethod
    async def query_items_by_state(
        self, user_id: str, state: State, due_before: datetime | None = None
    ) -> list[ReviewItem]:
        """
        Fetch the user's items in ``state``.

        Args:
            user_id: Owner of the items.
            state: Lifecycle state to match.
            due_before: If given, only items with ``due_at <= due_before``.

        Returns:
            Items sorted by ``due_at`` ascending.
        """
        pass

    @abstractmethod
    async def query_new_items(self, user_id: str) -> list[ReviewItem]:
        """
        Fetch every NEW item of the user as one logical set.

        Items must come back in storage order (a card's forward and reverse
        facets adjacent), however the backend pages internally.
        """
        pass

    @abstractmethod
    async def count_new_introduced_on(self, user_id: str, day: date) -> int:
        """Count grading events on ``day`` whose item was NEW when graded."""
        pass

    @abstractmethod
    async def get_item(self, user_id: str, review_item_id: str) -> ReviewItem | None:
        pass

    @abstractmethod
    async def put_item(self, item: ReviewItem) -> None:
        pass

    @abstractmethod
    async def update_item(self, item: ReviewItem) -> None:
        """Replace the stored item with the same user and id."""
        pass

    @abstractmethod
    async def list_all_items(self, user_id: str) -> list[ReviewItem]:
        pass


class SettingsProvider(ABC):
    """Port for per-user scheduling configuration."""

    @abstractmethod
    async def get_settings(self, user_id: str) -> SchedulingConfig | None:
        pass

    @abstractmethod
    async def create_default_settings(self, user_id: str) -> SchedulingConfig:
        pass

    @abstractmethod
    async def update_settings(self, user_id: str, changes: dict[str, Any]) -> SchedulingConfig:
        pass

    async def get_or_create_settings(self, user_id: str) -> SchedulingConfig:
        settings = await self.get_settings(user_id)
        if settings is None:
            settings = await self.create_default_settings(user_id)
        return settings


class HistoryRecorder(ABC):
    """
    Port for the append-only grading log.

    The scheduling core only writes to it. Listing and deleting exist for the
    daily-reset maintenance operation.
    """

    @abstractmethod
    async def record(self, entry: ReviewHistoryEntry) -> None:
        pass

    @abstractmethod
    async def list_history_on(self, user_id: str, day: date) -> list[ReviewHistoryEntry]:
        pass

    @abstractmethod
    async def delete_history_on(self, user_id: str, day: date) -> int:
        """Delete the user's entries for ``day``. Returns how many were removed."""
        pass
