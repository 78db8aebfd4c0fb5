"""Public schema exports."""

from .auth import (
    AuthErrorPage,
    AuthSession,
    CallbackOutcome,
    CallbackParams,
    CallbackResponse,
)
from .notifications import (
    NotificationConfig,
    NotificationConfigUpdate,
    PermissionReport,
    ReminderKind,
    ReminderMessage,
    ReminderSchedule,
)

__all__ = [
    "AuthErrorPage",
    "AuthSession",
    "CallbackOutcome",
    "CallbackParams",
    "CallbackResponse",
    "NotificationConfig",
    "NotificationConfigUpdate",
    "PermissionReport",
    "ReminderKind",
    "ReminderMessage",
    "ReminderSchedule",
]
