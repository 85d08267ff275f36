#!/usr/bin/env python3
"""
One-off maintenance script: delete expired rows (link provenance and remembered
message texts) from the KV store.

The bot purges on startup and periodically (PURGE_INTERVAL_SEC); this script is for
shrinking the database while the bot is stopped or after changing LINK_TTL_SECONDS.

Usage:
    python -m scripts.purge_expired_links [--db path/to/db.sqlite3] [--vacuum]
"""

import argparse
import os
import sqlite3
import sys

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.config import DB_PATH
from app.services.kv_store import SqliteKVStore


def purge(db_path: str, vacuum: bool = False) -> bool:
    print(f"Purging expired entries in database: {db_path}")

    if not os.path.exists(db_path):
        print(f"Database file not found: {db_path}")
        return False

    store = SqliteKVStore(db_path)
    try:
        before = store.count()
        removed = store.purge_expired()
        print(f"Live entries: {before}")
        print(f"Expired entries removed: {removed}")

        if vacuum:
            print("Running VACUUM...")
            conn = sqlite3.connect(db_path)
            try:
                conn.execute("VACUUM")
            finally:
                conn.close()
        return True

    except sqlite3.Error as e:
        print(f"Purge failed: {e}")
        return False

    finally:
        store.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete expired link records")
    parser.add_argument("--db", default=DB_PATH, help="SQLite file (default: DB_PATH)")
    parser.add_argument("--vacuum", action="store_true", help="VACUUM the file afterwards")
    args = parser.parse_args()

    print("Expired Links Purge Script")
    print("=" * 40)

    if not purge(args.db, args.vacuum):
        sys.exit(1)
