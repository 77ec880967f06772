"""Centralized constants for the scheduling core.

Numeric rules of the SM-2 variant and the default values of a freshly
provisioned scheduling configuration live here.
"""

# ---------- Ease factor ----------
MIN_EASE = 1.3
AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Review intervals ----------
HARD_INTERVAL_MULTIPLIER = 1.2
MIN_LAPSE_INTERVAL = 1.0  # days

# ---------- Time units ----------
MINUTES_PER_DAY = 1440

# ---------- Scheduling defaults ----------
DEFAULT_NEW_CARDS_PER_DAY = 20
MAX_NEW_CARDS_PER_DAY = 100
DEFAULT_LEARNING_STEPS = [1, 10]  # minutes
DEFAULT_RELEARNING_STEPS = [10]  # minutes
DEFAULT_GRADUATING_INTERVAL = 1  # days
DEFAULT_EASY_INTERVAL = 4  # days
DEFAULT_STARTING_EASE = 2.5
DEFAULT_EASY_BONUS = 1.3
DEFAULT_INTERVAL_MODIFIER = 1.0
DEFAULT_MAXIMUM_INTERVAL = 36500  # 100 years
DEFAULT_LAPSE_NEW_INTERVAL = 0  # percent of the prior interval kept after a lapse

# ---------- Session ----------
DEFAULT_HOLD_HORIZON_HOURS = 24.0
