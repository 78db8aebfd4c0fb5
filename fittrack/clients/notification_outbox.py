"""SQLite-backed outbox holding notifications until the client displays them."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationOutbox:
    """
    Persist pending notifications per user in arrival order.

    Entries older than ``ttl_seconds`` are stale: they are never delivered and
    are pruned on every enqueue and drain.
    """

    def __init__(
        self,
        db_path: str,
        *,
        ttl_seconds: float = 10800,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # The inner block commits or rolls back; closing releases the handle.
        with closing(conn), conn:
            yield conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_outbox (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

    def _prune(self, conn: sqlite3.Connection, now: datetime) -> int:
        # created_at is fixed-width UTC isoformat, so string order is time order.
        cursor = conn.execute(
            "DELETE FROM notification_outbox WHERE created_at < ?",
            ((now - self._ttl).isoformat(timespec="microseconds"),),
        )
        return cursor.rowcount

    def enqueue(self, user_id: str, payload: Dict[str, Any]) -> None:
        now = self._clock().astimezone(timezone.utc)
        with self._connect() as conn:
            self._prune(conn, now)
            conn.execute(
                "INSERT INTO notification_outbox (user_id, payload, created_at) "
                "VALUES (?, ?, ?)",
                (user_id, json.dumps(payload), now.isoformat(timespec="microseconds")),
            )

    def drain(self, user_id: str, limit: int = 20) -> list[Dict[str, Any]]:
        """Remove and return up to ``limit`` live notifications, oldest first."""
        now = self._clock().astimezone(timezone.utc)
        with self._connect() as conn:
            self._prune(conn, now)
            rows = conn.execute(
                "SELECT id, payload, created_at FROM notification_outbox "
                "WHERE user_id = ? ORDER BY id LIMIT ?",
                (user_id, limit),
            ).fetchall()
            if rows:
                conn.executemany(
                    "DELETE FROM notification_outbox WHERE id = ?",
                    [(row["id"],) for row in rows],
                )
        drained = []
        for row in rows:
            payload = json.loads(row["payload"])
            payload["created_at"] = row["created_at"]
            drained.append(payload)
        return drained


__all__ = ["NotificationOutbox"]
