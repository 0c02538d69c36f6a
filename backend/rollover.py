"""
Day-rollover policy.

Intake, history and the goal-reached flag belong to one calendar day
(local time). When the stored `last_date` is not today the day is over:
those three are cleared and `last_date` moves to today. Weight, goal, cup
size and the lifetime total carry over. Skipped days are not back-filled.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from models import HydrationState

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now().astimezone()


def current_day(clock: Optional[Clock] = None) -> date:
    """Calendar day in the local timezone at the moment of the call."""

    return (clock or local_now)().date()


def is_new_day(state: HydrationState, today: date) -> bool:
    return state.last_date != today


def reconcile(state: HydrationState, today: date) -> HydrationState:
    """Return `state` untouched for the same day, else a reset copy.

    Idempotent: reconciling the result again with the same `today` is a no-op.
    A state that was never dated (first run) counts as a new day.
    """

    if not is_new_day(state, today):
        return state

    logger.info("New day detected (%s -> %s); resetting today's progress", state.last_date, today)
    return state.model_copy(
        update={
            "current_intake_ml": 0,
            "history": [],
            "goal_reached_today": False,
            "last_date": today,
        },
        deep=True,
    )
