"""
JSON file store: infrastructure adapter persisting to a single JSON document.

The handle has an explicit lifecycle: ``open()`` loads the file, every write
is flushed atomically, ``close()`` flushes and releases the handle.

    with JsonFileStore(path) as store:
        ...
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from taaltuig.domain.models import ReviewHistoryEntry, ReviewItem
from taaltuig.domain.settings import SchedulingConfig

from .memory_store import MemoryStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonFileStore(MemoryStore):
    def __init__(self, path: Path, default_settings: SchedulingConfig | None = None):
        super().__init__(default_settings)
        self.path = Path(path)
        self._open = False

    def open(self) -> "JsonFileStore":
        if self._open:
            return self
        if self.path.exists():
            self._load(json.loads(self.path.read_text(encoding="utf-8")))
            logger.debug(f"Loaded {len(self._items)} items from {self.path}")
        self._open = True
        return self

    def close(self) -> None:
        if self._open:
            self._flush()
        self._open = False

    def _changed(self) -> None:
        self._flush()

    def _load(self, data: dict[str, Any]) -> None:
        self._items = {}
        for raw in data.get("items", []):
            item = ReviewItem.from_dict(raw)
            self._items[(item.user_id, item.review_item_id)] = item
        self._settings = {
            user_id: SchedulingConfig.model_validate(raw)
            for user_id, raw in data.get("settings", {}).items()
        }
        self._history = [ReviewHistoryEntry.from_dict(raw) for raw in data.get("history", [])]

    def _dump(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "items": [item.to_dict() for item in self._items.values()],
            "settings": {
                user_id: settings.model_dump() for user_id, settings in self._settings.items()
            },
            "history": [entry.to_dict() for entry in self._history],
        }

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._dump(), f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
