"""
Goal calculation and progress helpers.

Everything here is pure: no state, no I/O. The store calls
`daily_goal_ml()` whenever the weight changes and when a loaded record
carries a goal that does not match its weight.
"""

import math
import random
from typing import Optional

from errors import ValidationError

ML_PER_KG = 33
MIN_WEIGHT_KG = 30
MAX_WEIGHT_KG = 200

PROGRESS_TIPS = (
    "Start your day with a glass!",
    "Great start! Keep sipping.",
    "Halfway there! Your skin thanks you.",
    "Almost done! One more push.",
    "Hydration champion! Goal reached.",
)

GENERAL_TIPS = (
    "Drink water within 30 minutes of waking up!",
    "Keep a water bottle on your desk at all times",
    "Drink before meals to aid digestion",
    "If you feel hungry, drink water first - you might be thirsty!",
    "Add lemon or cucumber slices for flavor",
    "Drink a glass before and after exercise",
    "Set hourly reminders on your phone",
    "Drink more when it's hot or you're in AC",
    "Your urine should be light yellow - check it!",
    "Drink water instead of sugary drinks",
    "Eat water-rich foods like watermelon and cucumber",
    "Drink before you feel thirsty - thirst means you're already dehydrated",
)


def daily_goal_ml(weight_kg: float) -> int:
    """Daily intake goal in ml: 33 ml per kg of body weight, halves rounded up."""

    return int(math.floor(weight_kg * ML_PER_KG + 0.5))


def validate_weight(weight_kg: float) -> float:
    if weight_kg is None or not (MIN_WEIGHT_KG <= weight_kg <= MAX_WEIGHT_KG):
        raise ValidationError(
            f"Please enter a valid weight between {MIN_WEIGHT_KG}-{MAX_WEIGHT_KG} kg"
        )
    return float(weight_kg)


def validate_cup_size(size_ml: int) -> int:
    if size_ml is None or isinstance(size_ml, bool):
        raise ValidationError("Cup size must be a positive number of ml")
    if isinstance(size_ml, float) and not size_ml.is_integer():
        raise ValidationError("Cup size must be a whole number of ml")
    if size_ml <= 0:
        raise ValidationError("Cup size must be a positive number of ml")
    return int(size_ml)


def progress_percentage(intake_ml: int, goal_ml: int) -> int:
    """Whole-number percentage of the goal, capped at 100. 0 when no goal is set."""

    if goal_ml <= 0:
        return 0
    return min(100, int(round(intake_ml / goal_ml * 100)))


def remaining_ml(intake_ml: int, goal_ml: int) -> int:
    return max(0, goal_ml - intake_ml)


def tip_for(percentage: int) -> str:
    """Pick the progress tip for a percentage band."""

    if percentage <= 0:
        return PROGRESS_TIPS[0]
    if percentage < 30:
        return PROGRESS_TIPS[1]
    if percentage < 60:
        return PROGRESS_TIPS[2]
    if percentage < 90:
        return PROGRESS_TIPS[3]
    return PROGRESS_TIPS[4]


def random_tip(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(GENERAL_TIPS)
