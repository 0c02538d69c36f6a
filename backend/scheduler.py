"""
Background ticks: periodic auto-save and hydration reminders.

Both run as asyncio tasks next to the web app and are independent of the
store's synchronous API. The store stays correct whether or not they run;
auto-save only adds redundant writes on top of the per-mutation saves.
"""

import asyncio
import logging
from typing import Callable, Optional

from service_hydration import HydrationService, Notifier
from settings import settings

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Call `callback` every `interval` seconds until stopped.

    The callback runs in a worker thread so blocking storage calls never
    stall the event loop. A failing callback is logged and the loop keeps going.
    """

    def __init__(self, interval: float, callback: Callable[[], object], name: str):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await asyncio.to_thread(self.callback)
            except Exception:
                logger.exception("Periodic task %s failed", self.name)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting %s every %ss", self.name, self.interval)
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped %s", self.name)


def reminder_text(service: HydrationService) -> Optional[str]:
    """Reminder for the current state, or None when no reminder is due."""

    state = service.snapshot()
    if state.daily_goal_ml <= 0 or state.goal_reached_today:
        return None
    if state.current_intake_ml >= state.daily_goal_ml:
        return None
    return (
        f"Time to drink water! You've had {state.current_intake_ml}ml today. "
        f"Goal: {state.daily_goal_ml}ml"
    )


def autosave_task(service: HydrationService, interval: Optional[float] = None) -> PeriodicTask:
    return PeriodicTask(
        interval if interval is not None else settings.autosave_interval_seconds,
        service.save,
        "autosave",
    )


def reminder_task(
    service: HydrationService, notify: Notifier, interval: Optional[float] = None
) -> PeriodicTask:
    def remind() -> None:
        text = reminder_text(service)
        if text:
            notify("reminder", text)

    return PeriodicTask(
        interval if interval is not None else settings.reminder_interval_seconds,
        remind,
        "reminder",
    )
