"""Tests for the day-rollover policy."""

from __future__ import annotations

from datetime import date, datetime

from models import DrinkEvent, HydrationState
from rollover import current_day, is_new_day, reconcile


def stored_state() -> HydrationState:
    return HydrationState(
        weight_kg=70,
        daily_goal_ml=2310,
        current_intake_ml=1500,
        cup_size_ml=500,
        history=[
            DrinkEvent(time="08:00", amount_ml=500, total_after_ml=500),
            DrinkEvent(time="11:00", amount_ml=500, total_after_ml=1000),
            DrinkEvent(time="14:00", amount_ml=500, total_after_ml=1500),
        ],
        last_date=date(2024, 1, 1),
        goal_reached_today=True,
        lifetime_total_ml=9000,
    )


def test_new_day_resets_progress_and_keeps_settings() -> None:
    state = stored_state()

    rolled = reconcile(state, date(2024, 1, 2))

    assert rolled.current_intake_ml == 0
    assert rolled.history == []
    assert rolled.goal_reached_today is False
    assert rolled.last_date == date(2024, 1, 2)
    assert rolled.weight_kg == 70
    assert rolled.daily_goal_ml == 2310
    assert rolled.cup_size_ml == 500
    assert rolled.lifetime_total_ml == 9000


def test_reconcile_returns_a_copy_and_leaves_input_alone() -> None:
    state = stored_state()

    rolled = reconcile(state, date(2024, 1, 2))

    assert rolled is not state
    assert state.current_intake_ml == 1500
    assert len(state.history) == 3


def test_same_day_is_untouched() -> None:
    state = stored_state()
    assert reconcile(state, date(2024, 1, 1)) is state


def test_reconcile_is_idempotent() -> None:
    once = reconcile(stored_state(), date(2024, 1, 2))
    twice = reconcile(once, date(2024, 1, 2))
    assert twice is once


def test_first_run_without_date_counts_as_new_day() -> None:
    state = HydrationState()
    assert is_new_day(state, date(2024, 1, 1))

    rolled = reconcile(state, date(2024, 1, 1))
    assert rolled.last_date == date(2024, 1, 1)


def test_skipped_days_are_not_backfilled() -> None:
    rolled = reconcile(stored_state(), date(2024, 1, 9))
    assert rolled.history == []
    assert rolled.lifetime_total_ml == 9000


def test_current_day_reads_the_clock() -> None:
    assert current_day(lambda: datetime(2024, 3, 5, 23, 59)) == date(2024, 3, 5)
