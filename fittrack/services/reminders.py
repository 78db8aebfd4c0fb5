"""
Periodic reminder evaluation.

One ``ReminderScheduler`` runs per process. Every tick it walks the stored
notification configs, works out which reminder slots fell between the
previous check and now in the user's time zone, and queues one notification
per due slot.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from fittrack.schemas.notifications import NotificationConfig, ReminderKind
from fittrack.services.notifications import NotificationConfigStore, NotificationDispatcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _minutes_since_midnight(value: datetime) -> int:
    return value.hour * 60 + value.minute


def _sunday_based_weekday(value: datetime) -> int:
    return (value.weekday() + 1) % 7


def due_reminders(config: NotificationConfig, now: datetime) -> list[ReminderKind]:
    """
    Return the reminder kinds whose slot lies in ``(last_checked, now]``.

    Times are compared as minutes since local midnight. A previous check on
    the same local day starts the window at its minute; a check on the day
    before wraps the window across midnight; anything older (or no check at
    all) starts the window at midnight today.
    """
    if not config.enabled:
        return []

    zone = ZoneInfo(config.timezone)
    local_now = now.astimezone(zone)
    current = _minutes_since_midnight(local_now)
    today = _sunday_based_weekday(local_now)

    last = 0
    wraps = False
    if config.last_checked is not None:
        last_local = config.last_checked.astimezone(zone)
        if last_local > local_now:
            return []
        if last_local.date() == local_now.date():
            last = _minutes_since_midnight(last_local)
        elif last_local.date() == local_now.date() - timedelta(days=1):
            last = _minutes_since_midnight(last_local)
            wraps = True

    due: list[ReminderKind] = []
    for kind in ReminderKind:
        schedule = config.reminders[kind]
        if not schedule.enabled:
            continue
        target = schedule.minutes
        if wraps:
            if target > last:
                slot_day = (today - 1) % 7
            elif target <= current:
                slot_day = today
            else:
                continue
        elif last < target <= current:
            slot_day = today
        else:
            continue
        if schedule.weekdays and slot_day not in schedule.weekdays:
            continue
        due.append(kind)
    return due


class ReminderScheduler:
    """Process-wide loop that fires due reminders on a fixed interval."""

    def __init__(
        self,
        config_store: NotificationConfigStore,
        dispatcher: NotificationDispatcher,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._configs = config_store
        self._dispatcher = dispatcher
        self._interval = interval_seconds
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Run an immediate check and start the loop on the running event loop.

        Returns False without doing anything when the loop is already active.
        """
        if self.is_active:
            return False
        try:
            self.check_now()
        except Exception:
            logger.exception("Initial reminder check failed")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="reminder-loop"
        )
        logger.info("Reminder loop started")
        return True

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Reminder loop stopped")

    def check_now(self) -> Dict[str, list[ReminderKind]]:
        """Evaluate every stored config once and queue the due reminders."""
        now = self._clock()
        fired: Dict[str, list[ReminderKind]] = {}
        for config in self._configs.list_all():
            if not config.can_notify:
                continue
            due = due_reminders(config, now)
            for kind in due:
                self._dispatcher.send_reminder(config, kind)
            self._configs.record_check(config.user_id, now)
            if due:
                fired[config.user_id] = due
        return fired

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.check_now()
            except Exception:
                logger.exception("Reminder check failed")


__all__ = ["ReminderScheduler", "due_reminders"]
