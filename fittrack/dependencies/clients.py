"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from fittrack.clients import (
    NotificationOutbox,
    SQLiteStore,
    SupabaseAuthClient,
    VerifierStateEncoder,
)
from fittrack.core.config import get_settings
from fittrack.services import (
    ExchangeLedger,
    NotificationConfigStore,
    NotificationDispatcher,
    ReminderScheduler,
    SessionStore,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide the shared SQLite record store."""
    return SQLiteStore(_settings().database_path)


@lru_cache()
def get_notification_outbox() -> NotificationOutbox:
    """Provide the SQLite-backed notification outbox."""
    settings = _settings()
    return NotificationOutbox(
        settings.database_path, ttl_seconds=settings.reminders.outbox_ttl_seconds
    )


@lru_cache()
def get_supabase_auth_client() -> SupabaseAuthClient:
    """Create a singleton Supabase Auth client."""
    return SupabaseAuthClient(_settings().supabase)


@lru_cache()
def get_verifier_state_encoder() -> VerifierStateEncoder:
    """Provide the PKCE verifier cookie signer."""
    settings = _settings()
    secret = settings.security.state_signing_secret or settings.supabase.anon_key
    return VerifierStateEncoder(secret_key=secret)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for session storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.supabase.anon_key
    return TokenCipherService(secret=secret)


def get_session_store() -> SessionStore:
    """Build the encrypted session store."""
    return SessionStore(store=get_sqlite_store(), cipher=get_token_cipher_service())


def get_exchange_ledger() -> ExchangeLedger:
    """Build the authorization code claim ledger."""
    return ExchangeLedger(
        get_sqlite_store(), ttl_seconds=_settings().auth.claim_ttl_seconds
    )


def get_notification_config_store() -> NotificationConfigStore:
    """Build the notification preference store."""
    return NotificationConfigStore(get_sqlite_store())


def get_notification_dispatcher() -> NotificationDispatcher:
    """Build the notification dispatcher."""
    return NotificationDispatcher(
        config_store=get_notification_config_store(),
        outbox=get_notification_outbox(),
    )


@lru_cache()
def get_reminder_scheduler() -> ReminderScheduler:
    """Provide the process-wide reminder scheduler."""
    return ReminderScheduler(
        config_store=get_notification_config_store(),
        dispatcher=get_notification_dispatcher(),
        interval_seconds=_settings().reminders.check_interval_seconds,
    )


__all__ = [
    "get_exchange_ledger",
    "get_notification_config_store",
    "get_notification_dispatcher",
    "get_notification_outbox",
    "get_reminder_scheduler",
    "get_session_store",
    "get_sqlite_store",
    "get_supabase_auth_client",
    "get_token_cipher_service",
    "get_verifier_state_encoder",
]
