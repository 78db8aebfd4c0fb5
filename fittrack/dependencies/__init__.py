"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_exchange_ledger,
    get_notification_config_store,
    get_notification_dispatcher,
    get_notification_outbox,
    get_reminder_scheduler,
    get_session_store,
    get_sqlite_store,
    get_supabase_auth_client,
    get_token_cipher_service,
    get_verifier_state_encoder,
)
from .config import SettingsDependency, get_app_settings
from .session import get_current_session, get_current_user_id

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_current_session",
    "get_current_user_id",
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
