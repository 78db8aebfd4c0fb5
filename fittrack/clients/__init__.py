"""Expose constructed client wrappers."""

from .notification_outbox import NotificationOutbox
from .sqlite_store import SQLiteStore
from .supabase_auth import SessionExchangeError, SupabaseAuthClient, VerifierStateEncoder

__all__ = [
    "NotificationOutbox",
    "SQLiteStore",
    "SessionExchangeError",
    "SupabaseAuthClient",
    "VerifierStateEncoder",
]
