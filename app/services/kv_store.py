# app/services/kv_store.py
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from typing import Any, Dict, Optional, Protocol

log = logging.getLogger("services.kv_store")


class KVStoreError(Exception):
    """Помилка читання/запису у сховище (I/O, зіпсований JSON)."""


class KVStore(Protocol):
    """
    Мінімальний інтерфейс key-value сховища, який потрібен ядру.
    Значення: dict, що серіалізується у «рідний» формат сховища.
    """

    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> None: ...


def _now() -> int:
    return int(time.time())


def _has_column(c: sqlite3.Connection, table: str, col: str) -> bool:
    cur = c.execute(f"PRAGMA table_info({table});")
    return any(r[1] == col for r in cur.fetchall())


class SqliteKVStore:
    """
    KV-таблиця у SQLite з TTL на рівні рядка.

    Рядок із expires_at <= now вважається відсутнім і прибирається при читанні;
    purge_expired() чистить усе протухле одним запитом.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    # ----------------- low-level -----------------
    def _connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        with self._lock:
            if self._conn is not None:
                return self._conn
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.execute("PRAGMA busy_timeout=3000;")
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._ensure_schema(conn)
            self._conn = conn
            return conn

    @staticmethod
    def _ensure_schema(c: sqlite3.Connection) -> None:
        with c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    k          TEXT PRIMARY KEY,
                    v          TEXT NOT NULL,
                    expires_at INTEGER
                )
                """
            )
            # старі БД: таблиця kv(k, v) без TTL
            if not _has_column(c, "kv", "expires_at"):
                c.execute("ALTER TABLE kv ADD COLUMN expires_at INTEGER;")
            c.execute("CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv(expires_at);")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ----------------- public API -----------------
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            c = self._connect()
            row = c.execute("SELECT v, expires_at FROM kv WHERE k=?", (key,)).fetchone()
            if not row:
                return None
            raw, expires_at = row
            if expires_at is not None and int(expires_at) <= _now():
                # просте авто-очищення протухлих
                with c:
                    c.execute("DELETE FROM kv WHERE k=?", (key,))
                return None
            return json.loads(raw)
        except (sqlite3.Error, ValueError) as e:
            raise KVStoreError(f"get {key!r} failed: {e}") from e

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        expires_at = _now() + max(1, int(ttl_seconds)) if ttl_seconds else None
        try:
            payload = json.dumps(value, ensure_ascii=False)
            c = self._connect()
            with c:
                c.execute(
                    """
                    INSERT INTO kv(k, v, expires_at) VALUES (?, ?, ?)
                    ON CONFLICT(k) DO UPDATE SET
                        v=excluded.v,
                        expires_at=excluded.expires_at
                    """,
                    (key, payload, expires_at),
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise KVStoreError(f"set {key!r} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            c = self._connect()
            with c:
                c.execute("DELETE FROM kv WHERE k=?", (key,))
        except sqlite3.Error as e:
            raise KVStoreError(f"delete {key!r} failed: {e}") from e

    # --------------- maintenance ---------------
    def purge_expired(self) -> int:
        """Видаляє протухлі записи, повертає кількість видалених."""
        c = self._connect()
        with c:
            cur = c.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (_now(),),
            )
        removed = cur.rowcount or 0
        if removed:
            log.info("kv_store: purged %d expired rows", removed)
        return removed

    def count(self) -> int:
        c = self._connect()
        row = c.execute(
            "SELECT COUNT(*) FROM kv WHERE expires_at IS NULL OR expires_at > ?",
            (_now(),),
        ).fetchone()
        return int(row[0])
