"""
Short-lived claims on authorization codes shared by both callback paths.

Whichever path claims a code first performs the exchange and records how it
ended; the other path reads that record instead of calling the provider a
second time. Codes are stored only as SHA-256 digests.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from fittrack.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class ClaimStatus(str, Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    FAILED = "failed"


@dataclass(slots=True)
class ExchangeClaim:
    status: ClaimStatus
    expires_at: datetime
    message: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    # Fixed-width timestamps so the store can compare them as strings.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class ExchangeLedger:
    """Record which authorization codes are being or have been exchanged."""

    _SORT_KEY = "claim"

    def __init__(
        self,
        store: SQLiteStore,
        *,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    @staticmethod
    def _partition_key(code: str) -> str:
        digest = hashlib.sha256(code.encode("utf-8")).hexdigest()
        return f"exchange#{digest}"

    def _record(self, code: str, status: ClaimStatus, message: Optional[str] = None) -> dict:
        now = self._clock()
        return {
            "pk": self._partition_key(code),
            "sk": self._SORT_KEY,
            "status": status.value,
            "message": message,
            "updated_at": _iso(now),
            "expires_at": _iso(now + self._ttl),
        }

    def claim(self, code: str) -> bool:
        """Try to become the only path exchanging ``code``."""
        acquired = self._store.claim_item(
            self._record(code, ClaimStatus.PENDING),
            stale_before=_iso(self._clock()),
        )
        if acquired:
            logger.debug("Claimed authorization code for exchange")
        return acquired

    def get(self, code: str) -> Optional[ExchangeClaim]:
        """Return the live claim for ``code``, ignoring expired ones."""
        record = self._store.get_item(
            partition_key=self._partition_key(code), sort_key=self._SORT_KEY
        )
        if not record:
            return None
        expires_at = datetime.fromisoformat(record["expires_at"])
        if expires_at < self._clock():
            return None
        return ExchangeClaim(
            status=ClaimStatus(record["status"]),
            expires_at=expires_at,
            message=record.get("message"),
        )

    def mark_consumed(self, code: str) -> None:
        self._store.put_item(self._record(code, ClaimStatus.CONSUMED))

    def mark_failed(self, code: str, message: str) -> None:
        self._store.put_item(self._record(code, ClaimStatus.FAILED, message))

    def release(self, code: str) -> None:
        """Drop the claim so another path may attempt the exchange."""
        self._store.delete_item(
            partition_key=self._partition_key(code), sort_key=self._SORT_KEY
        )


__all__ = ["ClaimStatus", "ExchangeClaim", "ExchangeLedger"]
