"""
Per-user scheduling configuration.

Treated as an immutable snapshot for the duration of one scheduling call.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import constants as c


class SchedulingConfig(BaseModel):
    """
    SM-2 parameters for one user.

    Step ladders are in minutes; intervals are in days.
    ``lapse_new_interval`` is the percentage (0-100) of the prior interval an
    item keeps when it graduates out of relearning.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    new_cards_per_day: int = Field(
        default=c.DEFAULT_NEW_CARDS_PER_DAY, ge=0, le=c.MAX_NEW_CARDS_PER_DAY
    )
    max_reviews_per_day: int | None = Field(default=None, ge=0)
    learning_steps: list[float] = Field(default_factory=lambda: list(c.DEFAULT_LEARNING_STEPS))
    relearning_steps: list[float] = Field(
        default_factory=lambda: list(c.DEFAULT_RELEARNING_STEPS)
    )
    graduating_interval: float = Field(default=c.DEFAULT_GRADUATING_INTERVAL, gt=0)
    easy_interval: float = Field(default=c.DEFAULT_EASY_INTERVAL, gt=0)
    starting_ease: float = Field(default=c.DEFAULT_STARTING_EASE, ge=c.MIN_EASE)
    easy_bonus: float = Field(default=c.DEFAULT_EASY_BONUS, gt=0)
    interval_modifier: float = Field(default=c.DEFAULT_INTERVAL_MODIFIER, gt=0)
    maximum_interval: float = Field(default=c.DEFAULT_MAXIMUM_INTERVAL, gt=0)
    lapse_new_interval: float = Field(default=c.DEFAULT_LAPSE_NEW_INTERVAL, ge=0, le=100)
    disabled_categories: list[str] | None = None

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def steps_positive(cls, v: list[float]) -> list[float]:
        if any(step < 0 for step in v):
            raise ValueError("step delays must be >= 0 minutes")
        return v

    @property
    def lapse_recovery_fraction(self) -> float:
        return self.lapse_new_interval / 100

    @property
    def excluded_categories(self) -> frozenset[str]:
        return frozenset(self.disabled_categories or ())

    def with_updates(self, **changes: Any) -> "SchedulingConfig":
        """Partial update. Unknown keys are ignored; the result is re-validated."""
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if k in type(self).model_fields})
        return type(self).model_validate(data)
