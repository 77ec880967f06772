from dataclasses import replace
from datetime import UTC, datetime

import pytest

from taaltuig.application import config as config_module
from taaltuig.domain.models import Direction, ReviewItem, State
from taaltuig.domain.settings import SchedulingConfig
from taaltuig.infrastructure.adapters.memory_store import MemoryStore

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def settings():
    return SchedulingConfig()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's real config file and TAALTUIG_* variables out of tests."""
    monkeypatch.setattr(config_module, "CONFIG_FILES", [tmp_path / "missing.toml"])
    for var in ("DATA_FILE", "USER_ID", "HOLD_HORIZON_HOURS", "LOG_DIR", "VERBOSE"):
        monkeypatch.delenv(f"TAALTUIG_{var}", raising=False)
    monkeypatch.setenv("TAALTUIG_LOG_DIR", str(tmp_path / "logs"))


def make_item(
    review_item_id: str = "item-1",
    state: State = State.NEW,
    interval: float = 0.0,
    ease_factor: float = 2.5,
    repetitions: int = 0,
    step_index: int = 0,
    due_at: datetime = NOW,
    user_id: str = "user-1",
    category: str | None = None,
    **kwargs,
) -> ReviewItem:
    item = ReviewItem(
        review_item_id=review_item_id,
        card_id=f"card-{review_item_id}",
        user_id=user_id,
        direction=Direction.FORWARD,
        state=state,
        interval=interval,
        ease_factor=ease_factor,
        repetitions=repetitions,
        step_index=step_index,
        due_at=due_at,
        created_at=NOW,
        front=f"front {review_item_id}",
        back=f"back {review_item_id}",
        category=category,
    )
    return replace(item, **kwargs) if kwargs else item


@pytest.fixture(name="make_item")
def make_item_fixture():
    return make_item
