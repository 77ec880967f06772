"""
SM-2 scheduler with Anki-style learning steps.

Pure computation: ``schedule(item, grade, config, now)`` has no I/O, reads no
clock and uses no randomness, so identical inputs give identical results.
"""

import logging
import math
from datetime import datetime, timedelta

from taaltuig.domain import constants as c
from taaltuig.domain.models import Grade, ReviewItem, ScheduleResult, State
from taaltuig.domain.settings import SchedulingConfig

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive inputs (not banker's rounding)."""
    return math.floor(value + 0.5)


def cap_interval(interval: float, maximum: float) -> float:
    return min(interval, maximum)


def floor_ease(ease: float) -> float:
    return max(c.MIN_EASE, ease)


class SM2Scheduler:
    """
    Computes the next scheduling state of a review item after a grade.

    NEW and LEARNING share the learning ladder. RELEARNING uses the relearning
    ladder and keeps the pre-lapse REVIEW interval in ``interval`` until it
    graduates. REVIEW applies SM-2 ease arithmetic.
    """

    def schedule(
        self,
        item: ReviewItem,
        grade: Grade,
        config: SchedulingConfig,
        now: datetime,
    ) -> ScheduleResult:
        grade = Grade.parse(grade)

        if item.state in (State.NEW, State.LEARNING):
            result = self._schedule_learning(item, grade, config, now)
        elif item.state == State.RELEARNING:
            result = self._schedule_relearning(item, grade, config, now)
        else:
            result = self._schedule_review(item, grade, config, now)

        logger.debug(
            f"{item.review_item_id}: {item.state.value} --{grade.name}--> "
            f"{result.state.value} (interval={result.interval:.4f}d, "
            f"ease={result.ease_factor:.2f}, step={result.step_index})"
        )
        return result

    # ------------------------------------------------------------------
    # NEW / LEARNING
    # ------------------------------------------------------------------

    def _schedule_learning(
        self, item: ReviewItem, grade: Grade, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        steps = config.learning_steps
        ease = config.starting_ease

        # No ladder: every grade graduates
        if not steps:
            days = config.easy_interval if grade == Grade.EASY else config.graduating_interval
            return self._graduate(days, ease, config, now)

        step = self._clamp_step(item, len(steps))

        if grade == Grade.AGAIN:
            return self._step_result(State.LEARNING, steps[0], 0, ease, 0, now)

        if grade == Grade.HARD:
            if step == 0:
                good = steps[1] if len(steps) > 1 else steps[0]
                return self._step_result(
                    State.LEARNING, round_half_up((steps[0] + good) / 2), 0, ease, 0, now
                )
            return self._step_result(State.LEARNING, steps[step - 1], step - 1, ease, 0, now)

        if grade == Grade.EASY:
            return self._graduate(config.easy_interval, ease, config, now)

        # Good
        if step >= len(steps) - 1:
            return self._graduate(config.graduating_interval, ease, config, now)
        return self._step_result(State.LEARNING, steps[step + 1], step + 1, ease, 0, now)

    def _graduate(
        self, days: float, ease: float, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        return self._review_result(days, ease, 1, config, now)

    # ------------------------------------------------------------------
    # RELEARNING
    # ------------------------------------------------------------------

    def _schedule_relearning(
        self, item: ReviewItem, grade: Grade, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        steps = config.relearning_steps
        ease = floor_ease(item.ease_factor)
        prior = cap_interval(item.interval, config.maximum_interval)

        if not steps:
            return self._recover_from_lapse(prior, ease, config, now)

        step = self._clamp_step(item, len(steps))

        if grade == Grade.AGAIN:
            return self._step_result(State.RELEARNING, steps[0], 0, ease, 0, now, interval=prior)

        if grade == Grade.HARD:
            if step == 0:
                # With a single step, Good would graduate: average against the
                # prior REVIEW interval in minutes instead.
                good = steps[1] if len(steps) > 1 else prior * c.MINUTES_PER_DAY
                return self._step_result(
                    State.RELEARNING,
                    round_half_up((steps[0] + good) / 2),
                    0,
                    ease,
                    0,
                    now,
                    interval=prior,
                )
            return self._step_result(
                State.RELEARNING, steps[step - 1], step - 1, ease, 0, now, interval=prior
            )

        if grade == Grade.EASY or step >= len(steps) - 1:
            return self._recover_from_lapse(prior, ease, config, now)

        return self._step_result(
            State.RELEARNING, steps[step + 1], step + 1, ease, 0, now, interval=prior
        )

    def _recover_from_lapse(
        self, prior: float, ease: float, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        days = max(c.MIN_LAPSE_INTERVAL, prior * config.lapse_recovery_fraction)
        return self._review_result(days, ease, 0, config, now)

    # ------------------------------------------------------------------
    # REVIEW
    # ------------------------------------------------------------------

    def _schedule_review(
        self, item: ReviewItem, grade: Grade, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        interval = item.interval
        ease = floor_ease(item.ease_factor)
        modifier = config.interval_modifier

        if grade == Grade.AGAIN:
            lapsed_ease = floor_ease(ease - c.AGAIN_EASE_PENALTY)
            prior = cap_interval(interval, config.maximum_interval)
            if not config.relearning_steps:
                return self._recover_from_lapse(prior, lapsed_ease, config, now)
            return self._step_result(
                State.RELEARNING,
                config.relearning_steps[0],
                0,
                lapsed_ease,
                0,
                now,
                interval=prior,
            )

        if grade == Grade.HARD:
            return self._review_result(
                interval * c.HARD_INTERVAL_MULTIPLIER * modifier,
                floor_ease(ease - c.HARD_EASE_PENALTY),
                item.repetitions,
                config,
                now,
            )

        if grade == Grade.GOOD:
            return self._review_result(
                interval * ease * modifier, ease, item.repetitions + 1, config, now
            )

        # Easy: the interval grows with the ease from before the bonus
        return self._review_result(
            interval * ease * config.easy_bonus * modifier,
            ease + c.EASY_EASE_BONUS,
            item.repetitions + 1,
            config,
            now,
        )

    # ------------------------------------------------------------------
    # Result builders
    # ------------------------------------------------------------------

    @staticmethod
    def _clamp_step(item: ReviewItem, ladder_length: int) -> int:
        step = item.step_index
        if step >= ladder_length:
            logger.warning(
                f"{item.review_item_id}: step_index {step} outside a ladder of "
                f"{ladder_length}; using the last step"
            )
            return ladder_length - 1
        return max(0, step)

    @staticmethod
    def _review_result(
        days: float, ease: float, repetitions: int, config: SchedulingConfig, now: datetime
    ) -> ScheduleResult:
        days = cap_interval(days, config.maximum_interval)
        return ScheduleResult(
            state=State.REVIEW,
            interval=days,
            ease_factor=floor_ease(ease),
            repetitions=repetitions,
            step_index=0,
            due_at=now + timedelta(days=days),
        )

    @staticmethod
    def _step_result(
        state: State,
        delay_minutes: float,
        step_index: int,
        ease: float,
        repetitions: int,
        now: datetime,
        interval: float | None = None,
    ) -> ScheduleResult:
        return ScheduleResult(
            state=state,
            interval=delay_minutes / c.MINUTES_PER_DAY if interval is None else interval,
            ease_factor=floor_ease(ease),
            repetitions=repetitions,
            step_index=step_index,
            due_at=now + timedelta(minutes=delay_minutes),
        )


_default_scheduler = SM2Scheduler()


def schedule(
    item: ReviewItem, grade: Grade, config: SchedulingConfig, now: datetime
) -> ScheduleResult:
    """Module-level shortcut for ``SM2Scheduler().schedule``."""
    return _default_scheduler.schedule(item, grade, config, now)
