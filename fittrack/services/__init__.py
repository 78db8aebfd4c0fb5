"""Service layer exports."""

from .auth_callback import AuthCallbackReconciler, CallbackResult
from .exchange_ledger import ExchangeLedger
from .notifications import NotificationConfigStore, NotificationDispatcher
from .reminders import ReminderScheduler, due_reminders
from .session_store import SessionStore, StoredSession
from .token_cipher import TokenCipherService

__all__ = [
    "AuthCallbackReconciler",
    "CallbackResult",
    "ExchangeLedger",
    "NotificationConfigStore",
    "NotificationDispatcher",
    "ReminderScheduler",
    "SessionStore",
    "StoredSession",
    "TokenCipherService",
    "due_reminders",
]
