# app/services/__init__.py
from __future__ import annotations

import os
import threading
from typing import Optional

from .kv_store import SqliteKVStore

# ---------------------------------------------------------------------
# SINGLETON KV store
# ---------------------------------------------------------------------
_DB_PATH = os.getenv("DB_PATH", os.path.join(os.getcwd(), "link_resharing.sqlite3"))
_STORE_LOCK = threading.Lock()
_STORE: Optional[SqliteKVStore] = None


def init_store(db_path: Optional[str] = None) -> SqliteKVStore:
    """
    Створює (або перевідкриває) єдине KV-сховище для всього процесу.
    Безпечно викликати повторно.
    """
    global _STORE, _DB_PATH
    with _STORE_LOCK:
        if db_path and db_path != _DB_PATH:
            _DB_PATH = db_path
            if _STORE is not None:
                _STORE.close()
                _STORE = None
        if _STORE is None:
            _STORE = SqliteKVStore(_DB_PATH)
        return _STORE
