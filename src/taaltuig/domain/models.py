"""
Domain models for the scheduling core.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any

from ulid import ULID


class State(str, Enum):
    """Lifecycle state of a review item."""

    NEW = "NEW"
    LEARNING = "LEARNING"
    REVIEW = "REVIEW"
    RELEARNING = "RELEARNING"


class Grade(IntEnum):
    """Reviewer feedback. Values match the wire format (there is no 1)."""

    AGAIN = 0
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: "Grade | int | str") -> "Grade":
        """Accept a Grade, its wire integer, or a case-insensitive name."""
        if isinstance(value, Grade):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                return cls(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise ValueError(f"Unknown grade: {value!r}") from None
        return cls(value)


class Direction(str, Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


def utcnow() -> datetime:
    return datetime.now(UTC)


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 in UTC. Naive datetimes are taken to be UTC already."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat()


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


@dataclass(frozen=True)
class ScheduleResult:
    """
    Output of one scheduling decision.

    Attributes:
        state: Next lifecycle state.
        interval: Days until due (fractional for learning steps).
        ease_factor: Multiplier for REVIEW interval growth, never below 1.3.
        repetitions: Successful REVIEW-state reviews since the last lapse.
        step_index: Position in the learning or relearning ladder.
        due_at: Absolute time the item becomes due.
    """

    state: State
    interval: float
    ease_factor: float
    repetitions: int
    step_index: int
    due_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "interval": float(self.interval),
            "ease_factor": float(self.ease_factor),
            "repetitions": self.repetitions,
            "step_index": self.step_index,
            "due_at": format_timestamp(self.due_at),
        }


@dataclass(frozen=True)
class ReviewItem:
    """
    One direction-specific facet of a card (forward or reverse).

    Only the scheduler decides the values of the scheduling fields; callers
    persist them through ``apply``.
    """

    review_item_id: str
    card_id: str
    user_id: str
    direction: Direction
    state: State
    interval: float
    ease_factor: float
    repetitions: int
    step_index: int
    due_at: datetime
    created_at: datetime
    last_reviewed: datetime | None = None

    # Denormalized card content
    front: str = ""
    back: str = ""
    explanation: str | None = None
    category: str | None = None

    def apply(self, result: ScheduleResult, reviewed_at: datetime) -> "ReviewItem":
        """Return a copy of this item carrying the scheduler's decision."""
        return replace(
            self,
            state=result.state,
            interval=result.interval,
            ease_factor=result.ease_factor,
            repetitions=result.repetitions,
            step_index=result.step_index,
            due_at=result.due_at,
            last_reviewed=reviewed_at,
        )

    def reset_to_new(self, starting_ease: float, now: datetime) -> "ReviewItem":
        return replace(
            self,
            state=State.NEW,
            interval=0.0,
            ease_factor=starting_ease,
            repetitions=0,
            step_index=0,
            due_at=now,
            last_reviewed=None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "review_item_id": self.review_item_id,
            "card_id": self.card_id,
            "user_id": self.user_id,
            "direction": self.direction.value,
            "state": self.state.value,
            "interval": float(self.interval),
            "ease_factor": float(self.ease_factor),
            "repetitions": self.repetitions,
            "step_index": self.step_index,
            "due_at": format_timestamp(self.due_at),
            "created_at": format_timestamp(self.created_at),
            "last_reviewed": (
                format_timestamp(self.last_reviewed) if self.last_reviewed else None
            ),
            "front": self.front,
            "back": self.back,
            "explanation": self.explanation,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewItem":
        last_reviewed = data.get("last_reviewed")
        return cls(
            review_item_id=data["review_item_id"],
            card_id=data["card_id"],
            user_id=data["user_id"],
            direction=Direction(data["direction"]),
            state=State(data["state"]),
            interval=float(data["interval"]),
            ease_factor=float(data["ease_factor"]),
            repetitions=int(data["repetitions"]),
            step_index=int(data["step_index"]),
            due_at=parse_timestamp(data["due_at"]),
            created_at=parse_timestamp(data["created_at"]),
            last_reviewed=parse_timestamp(last_reviewed) if last_reviewed else None,
            front=data.get("front", ""),
            back=data.get("back", ""),
            explanation=data.get("explanation"),
            category=data.get("category"),
        )


def new_item_pair(
    user_id: str,
    front: str,
    back: str,
    starting_ease: float,
    now: datetime,
    card_id: str | None = None,
    explanation: str | None = None,
    category: str | None = None,
) -> tuple[ReviewItem, ReviewItem]:
    """
    Create the forward and reverse items for a freshly authored card.

    The reverse item swaps front and back. Both start NEW and due immediately.
    """
    card_id = card_id or str(ULID())

    def make(direction: Direction, shown: str, hidden: str) -> ReviewItem:
        return ReviewItem(
            review_item_id=str(ULID()),
            card_id=card_id,
            user_id=user_id,
            direction=direction,
            state=State.NEW,
            interval=0.0,
            ease_factor=starting_ease,
            repetitions=0,
            step_index=0,
            due_at=now,
            created_at=now,
            front=shown,
            back=hidden,
            explanation=explanation,
            category=category,
        )

    return make(Direction.FORWARD, front, back), make(Direction.REVERSE, back, front)


@dataclass(frozen=True)
class ReviewHistoryEntry:
    """
    A single grading event. Write-only from the core's point of view.

    Attributes:
        duration_ms: Time the reviewer spent on the item.
        state_before: Item state when it was graded. A NEW here marks the
            item as introduced on the day of ``reviewed_at``.
    """

    review_item_id: str
    user_id: str
    grade: Grade
    duration_ms: int
    state_before: State
    state_after: State
    interval_before: float
    interval_after: float
    ease_factor_before: float
    ease_factor_after: float
    reviewed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "review_item_id": self.review_item_id,
            "user_id": self.user_id,
            "grade": int(self.grade),
            "duration_ms": self.duration_ms,
            "state_before": self.state_before.value,
            "state_after": self.state_after.value,
            "interval_before": float(self.interval_before),
            "interval_after": float(self.interval_after),
            "ease_factor_before": float(self.ease_factor_before),
            "ease_factor_after": float(self.ease_factor_after),
            "reviewed_at": format_timestamp(self.reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewHistoryEntry":
        return cls(
            review_item_id=data["review_item_id"],
            user_id=data["user_id"],
            grade=Grade(int(data["grade"])),
            duration_ms=int(data["duration_ms"]),
            state_before=State(data["state_before"]),
            state_after=State(data["state_after"]),
            interval_before=float(data["interval_before"]),
            interval_after=float(data["interval_after"]),
            ease_factor_before=float(data["ease_factor_before"]),
            ease_factor_after=float(data["ease_factor_after"]),
            reviewed_at=parse_timestamp(data["reviewed_at"]),
        )


@dataclass
class QueueStats:
    due_count: int = 0
    new_count: int = 0
    learning_count: int = 0  # LEARNING + RELEARNING
    total_count: int = 0
    new_remaining_today: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "due_count": self.due_count,
            "new_count": self.new_count,
            "learning_count": self.learning_count,
            "total_count": self.total_count,
            "new_remaining_today": self.new_remaining_today,
        }


@dataclass
class QueueResult:
    """Items for one session, in presentation order, plus counters."""

    items: list[ReviewItem] = field(default_factory=list)
    stats: QueueStats = field(default_factory=QueueStats)
