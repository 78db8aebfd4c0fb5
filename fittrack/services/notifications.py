"""
Notification preferences and delivery.

Preferences live in the record store under the ``notifications`` partition,
one item per user. Delivery appends to the outbox that the web client drains
and shows through the browser Notification API.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict

from fittrack.clients.notification_outbox import NotificationOutbox
from fittrack.clients.sqlite_store import SQLiteStore
from fittrack.schemas.notifications import (
    NotificationConfig,
    NotificationConfigUpdate,
    NotificationPermission,
    ReminderKind,
    ReminderMessage,
)

logger = logging.getLogger(__name__)

REMINDER_MESSAGES: Dict[ReminderKind, ReminderMessage] = {
    ReminderKind.BREAKFAST: ReminderMessage(
        title="Good morning! ☀️",
        body="What did you have for breakfast?",
        tag="breakfast-reminder",
    ),
    ReminderKind.LUNCH: ReminderMessage(
        title="Lunch time! 🍽️",
        body="Log your meal to keep track of your calories",
        tag="lunch-reminder",
    ),
    ReminderKind.DINNER: ReminderMessage(
        title="Good evening! 🌙",
        body="How was dinner? Log it to close out the day",
        tag="dinner-reminder",
    ),
    ReminderKind.WEIGHT: ReminderMessage(
        title="New week! ⚖️",
        body="How about weighing in today to follow your progress?",
        tag="weight-reminder",
    ),
}

TEST_MESSAGE = ReminderMessage(
    title="Test notification",
    body="Notifications are working correctly!",
    tag="test-notification",
)


class NotificationConfigStore:
    """Load and persist per-user notification preferences."""

    _PARTITION = "notifications"

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store

    @staticmethod
    def _sort_key(user_id: str) -> str:
        return f"user#{user_id}"

    @staticmethod
    def _from_record(record: Dict[str, Any]) -> NotificationConfig:
        data = {key: value for key, value in record.items() if key not in ("pk", "sk")}
        return NotificationConfig.model_validate(data)

    def get(self, user_id: str) -> NotificationConfig:
        """Return stored preferences merged over the defaults."""
        record = self._store.get_item(
            partition_key=self._PARTITION, sort_key=self._sort_key(user_id)
        )
        if not record:
            return NotificationConfig(user_id=user_id)
        return self._from_record(record)

    def save(self, config: NotificationConfig) -> NotificationConfig:
        item = config.model_dump(mode="json")
        item["pk"] = self._PARTITION
        item["sk"] = self._sort_key(config.user_id)
        self._store.put_item(item)
        return config

    def update(self, user_id: str, changes: NotificationConfigUpdate) -> NotificationConfig:
        current = self.get(user_id)
        updates = changes.model_dump(exclude_none=True)
        if "reminders" in updates:
            merged = dict(current.reminders)
            merged.update(changes.reminders or {})
            updates["reminders"] = merged
        updated = NotificationConfig.model_validate(
            {**current.model_dump(), **updates}
        )
        return self.save(updated)

    def set_permission(
        self, user_id: str, permission: NotificationPermission
    ) -> NotificationConfig:
        config = self.get(user_id)
        config.permission = permission
        return self.save(config)

    def record_check(self, user_id: str, checked_at: datetime) -> None:
        config = self.get(user_id)
        config.last_checked = checked_at
        self.save(config)

    def list_all(self) -> list[NotificationConfig]:
        records = self._store.list_items_with_prefix(
            partition_key=self._PARTITION, sort_key_prefix="user#"
        )
        return [self._from_record(record) for record in records]


class NotificationDispatcher:
    """Queue notifications for users who granted permission."""

    def __init__(self, config_store: NotificationConfigStore, outbox: NotificationOutbox) -> None:
        self._configs = config_store
        self._outbox = outbox

    def send(self, config: NotificationConfig, message: ReminderMessage) -> bool:
        """Queue ``message`` for the user; False when permission is not granted."""
        if config.permission != "granted":
            return False
        self._outbox.enqueue(config.user_id, message.model_dump())
        logger.info("Queued notification %s for user %s", message.tag, config.user_id)
        return True

    def send_reminder(self, config: NotificationConfig, kind: ReminderKind) -> bool:
        return self.send(config, REMINDER_MESSAGES[kind])

    def send_test(self, user_id: str) -> bool:
        return self.send(self._configs.get(user_id), TEST_MESSAGE)

    def pending(self, user_id: str, limit: int = 20) -> list[Dict[str, Any]]:
        return self._outbox.drain(user_id, limit=limit)


__all__ = [
    "NotificationConfigStore",
    "NotificationDispatcher",
    "REMINDER_MESSAGES",
    "TEST_MESSAGE",
]
