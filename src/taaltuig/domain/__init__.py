# Domain Package
from .errors import ConfigurationError, ItemNotFoundError, StoreClosedError, TaaltuigError
from .models import (
    Direction,
    Grade,
    QueueResult,
    QueueStats,
    ReviewHistoryEntry,
    ReviewItem,
    ScheduleResult,
    State,
)
from .settings import SchedulingConfig

__all__ = [
    "ConfigurationError",
    "Direction",
    "Grade",
    "ItemNotFoundError",
    "QueueResult",
    "QueueStats",
    "ReviewHistoryEntry",
    "ReviewItem",
    "ScheduleResult",
    "SchedulingConfig",
    "State",
    "StoreClosedError",
    "TaaltuigError",
]
