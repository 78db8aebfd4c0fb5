"""
Server-side persistence for sessions produced by the callback exchange.

The browser only receives an opaque session id; both tokens are stored
encrypted under ``session#<id>``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fittrack.clients.sqlite_store import SQLiteStore
from fittrack.schemas.auth import AuthSession
from fittrack.services.token_cipher import TokenCipherService


@dataclass(slots=True)
class StoredSession:
    session_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def expired(self) -> bool:
        return self.expires_at <= datetime.now(timezone.utc)


class SessionStore:
    """Save and load encrypted session records."""

    _SORT_KEY = "supabase"

    def __init__(self, store: SQLiteStore, cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = cipher

    def save(self, session: AuthSession) -> str:
        session_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        self._store.put_item(
            {
                "pk": f"session#{session_id}",
                "sk": self._SORT_KEY,
                "user_id": session.user_id,
                "email": session.email,
                "access_token_encrypted": self._cipher.encrypt(session.access_token),
                "refresh_token_encrypted": self._cipher.encrypt(session.refresh_token),
                "expires_at": (now + timedelta(seconds=session.expires_in)).isoformat(),
                "created_at": now.isoformat(),
            }
        )
        return session_id

    def get(self, session_id: str) -> Optional[StoredSession]:
        record = self._store.get_item(
            partition_key=f"session#{session_id}", sort_key=self._SORT_KEY
        )
        if not record:
            return None
        return StoredSession(
            session_id=session_id,
            access_token=self._cipher.decrypt(record["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt(record["refresh_token_encrypted"]),
            expires_at=datetime.fromisoformat(record["expires_at"]),
            user_id=record.get("user_id"),
            email=record.get("email"),
        )

    def delete(self, session_id: str) -> None:
        self._store.delete_item(
            partition_key=f"session#{session_id}", sort_key=self._SORT_KEY
        )


__all__ = ["SessionStore", "StoredSession"]
