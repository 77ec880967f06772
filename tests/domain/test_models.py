from datetime import UTC, datetime, timedelta, timezone

import pytest

from taaltuig.domain.models import (
    Direction,
    Grade,
    ReviewHistoryEntry,
    ReviewItem,
    ScheduleResult,
    State,
    format_timestamp,
    new_item_pair,
    parse_timestamp,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (Grade.HARD, Grade.HARD),
        (0, Grade.AGAIN),
        (4, Grade.EASY),
        ("3", Grade.GOOD),
        ("again", Grade.AGAIN),
        (" Easy ", Grade.EASY),
    ],
)
def test_grade_parse(value, expected):
    assert Grade.parse(value) is expected


@pytest.mark.parametrize("value", [1, 5, -1, "1", "meh", ""])
def test_grade_parse_rejects_unknown(value):
    with pytest.raises(ValueError):
        Grade.parse(value)


def test_timestamps_are_utc():
    local = datetime(2024, 3, 15, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(local) == "2024-03-15T12:00:00+00:00"
    assert parse_timestamp("2024-03-15T12:00:00") == datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


def test_new_item_pair(now):
    forward, reverse = new_item_pair(
        "user-1", "huis", "house", starting_ease=2.5, now=now, category="Nouns"
    )

    assert forward.card_id == reverse.card_id
    assert forward.review_item_id != reverse.review_item_id
    assert forward.direction == Direction.FORWARD
    assert reverse.direction == Direction.REVERSE
    assert (forward.front, forward.back) == ("huis", "house")
    assert (reverse.front, reverse.back) == ("house", "huis")

    for item in (forward, reverse):
        assert item.state == State.NEW
        assert item.interval == 0.0
        assert item.ease_factor == 2.5
        assert item.repetitions == 0
        assert item.step_index == 0
        assert item.due_at == now
        assert item.category == "Nouns"


def test_apply_copies_schedule_result(make_item, now):
    item = make_item()
    result = ScheduleResult(
        state=State.LEARNING,
        interval=10 / 1440,
        ease_factor=2.5,
        repetitions=0,
        step_index=1,
        due_at=now + timedelta(minutes=10),
    )

    updated = item.apply(result, reviewed_at=now)

    assert updated.state == State.LEARNING
    assert updated.step_index == 1
    assert updated.due_at == now + timedelta(minutes=10)
    assert updated.last_reviewed == now
    # The source item is untouched
    assert item.state == State.NEW
    assert item.last_reviewed is None


def test_reset_to_new(make_item, now):
    item = make_item(state=State.REVIEW, interval=25.0, ease_factor=1.9, repetitions=4)
    later = now + timedelta(hours=3)

    reset = item.reset_to_new(2.5, later)

    assert reset.state == State.NEW
    assert reset.interval == 0.0
    assert reset.ease_factor == 2.5
    assert reset.repetitions == 0
    assert reset.due_at == later
    assert reset.last_reviewed is None


def test_item_dict_round_trip(make_item, now):
    item = make_item(
        state=State.RELEARNING,
        interval=12.5,
        step_index=0,
        last_reviewed=now,
        explanation="het huis",
        category="Nouns",
    )
    data = item.to_dict()

    assert data["state"] == "RELEARNING"
    assert data["direction"] == "forward"
    assert ReviewItem.from_dict(data) == item


def test_history_entry_dict(now):
    entry = ReviewHistoryEntry(
        review_item_id="item-1",
        user_id="user-1",
        grade=Grade.HARD,
        duration_ms=1500,
        state_before=State.NEW,
        state_after=State.LEARNING,
        interval_before=0.0,
        interval_after=6 / 1440,
        ease_factor_before=2.5,
        ease_factor_after=2.5,
        reviewed_at=now,
    )
    data = entry.to_dict()

    assert data["grade"] == 2
    assert ReviewHistoryEntry.from_dict(data) == entry
