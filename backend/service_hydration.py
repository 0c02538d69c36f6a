"""
Service / facade layer: the hydration state store.

This module owns the one `HydrationState` of a running session. It is free
of SQL and calls `StateRepo` for durable reads and writes. Every write path
of the application goes through `HydrationService` so that validation,
day rollover and persistence happen in one place.

Key responsibilities:
- load the persisted record, merge it over defaults, recover from corruption
- apply the day-rollover policy on startup and before each mutation
- validate user input (weight, cup size)
- persist after every mutation; a failed save is reported, never rolled back
- hand snapshots and notices to the presentation layer through callbacks

Only one store should write a given key. Two processes sharing a key (two
browser tabs, two app instances) race and the last writer wins.
"""

import functools
import json
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from errors import DeserializationError, PersistenceError, ValidationError
from goals import (
    daily_goal_ml,
    progress_percentage,
    random_tip,
    remaining_ml,
    tip_for,
    validate_cup_size,
    validate_weight,
)
from models import DrinkEvent, HydrationState, ProgressSnapshot
from repo_state import StateRepo
from rollover import Clock, current_day, local_now, reconcile
from settings import settings

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ProgressSnapshot], None]
Notifier = Callable[[str, str], None]


class UndoStatus(str, Enum):
    UNDONE = "undone"
    NOTHING_TO_UNDO = "nothing_to_undo"


class DrinkResult(BaseModel):
    percentage: int
    goal_just_reached: bool
    event: DrinkEvent
    saved: bool


class UndoResult(BaseModel):
    status: UndoStatus
    event: Optional[DrinkEvent] = None
    saved: bool = False


def synchronized(method):
    """Run `method` while holding the service lock."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def deep_merge(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay `loaded` on `defaults`, recursing into nested dicts.

    Keys only in `defaults` keep their default, keys in both take the loaded
    value. Neither input is modified.
    """

    merged = dict(defaults)
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class HydrationService:
    """Single owner of the hydration state.

    Example usage:
        svc = HydrationService(StateRepo(), on_change=redraw, notify=toast)
        svc.start()
        result = svc.add_drink()
        if result.goal_just_reached:
            ...
    """

    def __init__(
        self,
        repo: StateRepo,
        clock: Optional[Clock] = None,
        on_change: Optional[ChangeListener] = None,
        notify: Optional[Notifier] = None,
        on_goal_reached: Optional[ChangeListener] = None,
        history_cap: Optional[int] = None,
        state_key: Optional[str] = None,
    ):
        self.repo = repo
        self.clock = clock or local_now
        self.on_change = on_change
        self.notify = notify
        self.on_goal_reached = on_goal_reached
        self.history_cap = history_cap if history_cap is not None else settings.history_cap
        self.state_key = state_key or settings.state_key
        self.state = self.defaults()
        self.last_saved_at: Optional[datetime] = None
        self.started_new_day = False
        self.had_saved_data = False
        self.load_failed = False
        # FastAPI runs sync routes in a threadpool and the ticks run in worker
        # threads; every public entry point takes this lock.
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # load / save
    # ------------------------------------------------------------------

    def defaults(self) -> HydrationState:
        return HydrationState(cup_size_ml=settings.default_cup_size_ml)

    @synchronized
    def start(self) -> HydrationState:
        """Load persisted state and roll it over to today. Call once per session."""

        self.load()
        self.started_new_day = False if self.load_failed else self._roll_over()
        logger.info(
            "Session started: intake=%sml goal=%sml new_day=%s",
            self.state.current_intake_ml,
            self.state.daily_goal_ml,
            self.started_new_day,
        )
        self._emit_change()
        return self.state

    @synchronized
    def load(self) -> HydrationState:
        """Read the persisted record into memory. Never raises.

        A missing, unreadable or invalid record yields defaults; a corrupt one
        is also erased so it is not read again. After an unreadable one,
        `load_failed` stays set and nothing is written until a later read
        succeeds. No rollover happens here.
        """

        try:
            raw = self.repo.read(self.state_key)
        except PersistenceError as e:
            logger.error("Could not read saved data: %s", e)
            self._notify("warning", "Saved data could not be read, changes will not be saved yet")
            self.load_failed = True
            self.state = self.defaults()
            return self.state

        self.load_failed = False
        self.had_saved_data = raw is not None
        if raw is None:
            logger.info("No saved data found, using defaults")
            self.state = self.defaults()
            return self.state

        try:
            state = self.deserialize(raw)
        except DeserializationError as e:
            logger.warning("Discarding corrupt saved data: %s", e)
            self._notify("warning", "Saved data was corrupt and has been reset")
            self._discard_record()
            self.had_saved_data = False
            self.state = self.defaults()
            return self.state

        self.state = self._sync_goal(state)
        logger.debug("Loaded saved data for %s", self.state.last_date)
        return self.state

    def deserialize(self, raw: str) -> HydrationState:
        """Parse a stored JSON document and merge it over defaults."""

        try:
            loaded = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise DeserializationError(f"invalid JSON: {e}") from e
        if not isinstance(loaded, dict):
            raise DeserializationError(f"expected an object, got {type(loaded).__name__}")

        merged = deep_merge(self.defaults().to_record(), loaded)
        try:
            return HydrationState.model_validate(merged)
        except SchemaError as e:
            raise DeserializationError(str(e)) from e

    def serialize(self, state: HydrationState) -> str:
        return json.dumps(state.to_record())

    @synchronized
    def save(self, state: Optional[HydrationState] = None) -> bool:
        """Persist `state` (default: the current state). Returns False on failure.

        A failure leaves the in-memory state untouched and is reported through
        the notifier. There is no retry. While the stored record could not be
        read, nothing is written so the defaults never replace it.
        """

        if not self._ensure_loaded():
            logger.warning("Skipping save: saved data has not been read yet")
            return False
        if state is None:
            state = self.state
        try:
            self.repo.write(self.state_key, self.serialize(state))
        except (PersistenceError, TypeError, ValueError) as e:
            logger.error("Save failed: %s", e)
            self._notify("error", "Could not save your data. Your progress is kept for now.")
            return False

        self.last_saved_at = self.clock()
        logger.debug("Saved state at %s", self.last_saved_at)
        return True

    @synchronized
    def flush(self) -> bool:
        """Last synchronous save before shutdown."""

        logger.info("Flushing state before exit")
        return self.save()

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    @synchronized
    def set_weight(self, weight_kg: float) -> bool:
        """Set body weight and derive the daily goal. Returns the saved flag."""

        try:
            weight = validate_weight(weight_kg)
        except ValidationError as e:
            self._notify("error", str(e))
            raise

        self._roll_over()
        state = self.state
        state.weight_kg = weight
        state.daily_goal_ml = daily_goal_ml(weight)
        # a raised goal can be celebrated again
        if state.daily_goal_ml > state.current_intake_ml:
            state.goal_reached_today = False

        logger.info("Weight set to %skg, goal %sml", weight, state.daily_goal_ml)
        return self._commit(f"Goal set! Drink {state.daily_goal_ml / 1000:.1f}L daily")

    @synchronized
    def set_cup_size(self, size_ml: int) -> bool:
        try:
            size = validate_cup_size(size_ml)
        except ValidationError as e:
            self._notify("error", str(e))
            raise

        self._roll_over()
        self.state.cup_size_ml = size
        return self._commit(f"Cup size set to {size}ml")

    @synchronized
    def add_drink(self) -> DrinkResult:
        """Log one cup of the current size.

        `goal_just_reached` is True only for the drink that takes intake from
        below the goal to at/above it, and at most once per day.
        """

        self._roll_over()
        state = self.state
        if not state.has_goal:
            self._notify("error", "Please set your weight first!")
            raise ValidationError("Please set your weight first!")

        was_below = state.current_intake_ml < state.daily_goal_ml
        amount = state.cup_size_ml
        state.current_intake_ml += amount
        event = DrinkEvent(
            time=self.clock().strftime("%H:%M"),
            amount_ml=amount,
            total_after_ml=state.current_intake_ml,
        )
        state.history.append(event)
        if len(state.history) > self.history_cap:
            state.history = state.history[-self.history_cap:]
        state.lifetime_total_ml += amount

        goal_just_reached = (
            was_below
            and not state.goal_reached_today
            and state.current_intake_ml >= state.daily_goal_ml
        )
        if goal_just_reached:
            state.goal_reached_today = True
            logger.info("Daily goal of %sml reached", state.daily_goal_ml)

        saved = self._commit(f"+{amount}ml added! Total: {state.current_intake_ml}ml")
        if goal_just_reached and self.on_goal_reached:
            self.on_goal_reached(self.snapshot())

        return DrinkResult(
            percentage=progress_percentage(state.current_intake_ml, state.daily_goal_ml),
            goal_just_reached=goal_just_reached,
            event=event,
            saved=saved,
        )

    @synchronized
    def undo_last_drink(self) -> UndoResult:
        """Remove the most recent drink. An empty history is a no-op, not an error."""

        self._roll_over()
        state = self.state
        if not state.history:
            self._notify("info", "No drinks to undo")
            return UndoResult(status=UndoStatus.NOTHING_TO_UNDO)

        event = state.history.pop()
        state.current_intake_ml = max(0, state.current_intake_ml - event.amount_ml)
        saved = self._commit(f"Undid {event.amount_ml}ml drink")
        return UndoResult(status=UndoStatus.UNDONE, event=event, saved=saved)

    @synchronized
    def reset_today(self) -> bool:
        """Clear today's progress. Weight, goal, cup size and lifetime total stay."""

        self._roll_over()
        state = self.state
        state.current_intake_ml = 0
        state.history = []
        state.goal_reached_today = False
        return self._commit("Today's progress reset!")

    @synchronized
    def clear_all(self) -> bool:
        """Back to hard defaults and erase the durable record. Returns the erased flag."""

        self.state = self.defaults()
        self.state.last_date = current_day(self.clock)
        self.had_saved_data = False
        erased = self._discard_record()
        if erased:
            self.load_failed = False
            logger.info("All data cleared")
            self._notify("warning", "All data cleared successfully")
        self._emit_change()
        return erased

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------

    @synchronized
    def snapshot(self) -> ProgressSnapshot:
        state = self.state
        percentage = progress_percentage(state.current_intake_ml, state.daily_goal_ml)
        return ProgressSnapshot(
            weight_kg=state.weight_kg,
            daily_goal_ml=state.daily_goal_ml,
            current_intake_ml=state.current_intake_ml,
            remaining_ml=remaining_ml(state.current_intake_ml, state.daily_goal_ml),
            percentage=percentage,
            cup_size_ml=state.cup_size_ml,
            history=list(reversed(state.history)),
            goal_reached_today=state.goal_reached_today,
            lifetime_total_ml=state.lifetime_total_ml,
            last_date=state.last_date,
            tip=tip_for(percentage),
            last_saved_at=self.last_saved_at,
        )

    @synchronized
    def recent_history(self, limit: int = 10) -> List[DrinkEvent]:
        """Newest-first slice of today's drinks."""

        return list(reversed(self.state.history))[:max(0, limit)]

    def next_tip(self, rng=None) -> str:
        return random_tip(rng)

    def storage_used_bytes(self) -> int:
        try:
            return self.repo.storage_bytes()
        except PersistenceError as e:
            logger.warning("Could not measure storage: %s", e)
            return 0

    def health_check(self) -> None:
        """Perform a lightweight DB ping via the repository."""

        self.repo.ping()

    def welcome_message(self) -> Optional[str]:
        """Greeting for the start of a session, or None for a brand-new user."""

        if self.had_saved_data and self.started_new_day:
            return "Welcome to a new day! Stay hydrated!"
        if self.state.has_goal:
            return "Welcome back! Your data was loaded."
        return None

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> bool:
        """Retry a failed startup read. True once the stored record is in memory."""

        if not self.load_failed:
            return True
        self.load()
        if self.load_failed:
            return False
        logger.info("Saved data is readable again, restored it")
        self.state = reconcile(self.state, current_day(self.clock))
        self._emit_change()
        return True

    def _roll_over(self) -> bool:
        """Apply the day-rollover policy; persist when it changed anything."""

        self._ensure_loaded()
        rolled = reconcile(self.state, current_day(self.clock))
        if rolled is self.state:
            return False
        self.state = rolled
        if not self.load_failed:
            self.save()
        return True

    def _sync_goal(self, state: HydrationState) -> HydrationState:
        expected = daily_goal_ml(state.weight_kg) if state.weight_kg > 0 else 0
        if state.daily_goal_ml != expected:
            logger.info("Recomputing stale goal %sml -> %sml", state.daily_goal_ml, expected)
            state.daily_goal_ml = expected
        return state

    def _discard_record(self) -> bool:
        try:
            self.repo.delete(self.state_key)
        except PersistenceError as e:
            logger.error("Could not erase saved data: %s", e)
            self._notify("error", "Could not erase saved data")
            return False
        return True

    def _commit(self, message: Optional[str] = None) -> bool:
        saved = self.save()
        if saved and message:
            self._notify("success", message)
        self._emit_change()
        return saved

    def _emit_change(self) -> None:
        if self.on_change:
            self.on_change(self.snapshot())

    def _notify(self, level: str, message: str) -> None:
        if self.notify:
            self.notify(level, message)
