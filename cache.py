from __future__ import annotations

import hashlib
import json
import sqlite3
import time
from typing import Optional


class SQLiteCache:
    """SQLite cache for raw model responses, with a time-to-live."""

    def __init__(self, path: str, ttl_s: int = 86400):
        self.path = path
        self.ttl_s = ttl_s
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute(
                "CREATE TABLE IF NOT EXISTS model_responses "
                "(k TEXT PRIMARY KEY, v TEXT NOT NULL, created_at REAL NOT NULL)"
            )
            con.commit()

    @staticmethod
    def make_key(payload: dict) -> str:
        raw = json.dumps(payload, ensure_ascii=False, sort_keys=True).encode("utf-8")
        return hashlib.sha256(raw).hexdigest()

    def get(self, key: str) -> Optional[dict]:
        """Cached value, or None when missing or older than the TTL."""
        with sqlite3.connect(self.path) as con:
            row = con.execute("SELECT v, created_at FROM model_responses WHERE k=?", (key,)).fetchone()
        if not row:
            return None
        if self.ttl_s > 0 and time.time() - row[1] > self.ttl_s:
            self.delete(key)
            return None
        return json.loads(row[0])

    def set(self, key: str, value: dict) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute(
                "INSERT OR REPLACE INTO model_responses (k, v, created_at) VALUES (?, ?, ?)",
                (key, json.dumps(value, ensure_ascii=False), time.time()),
            )
            con.commit()

    def delete(self, key: str) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute("DELETE FROM model_responses WHERE k=?", (key,))
            con.commit()

    def purge_expired(self) -> int:
        """Deletes expired rows and returns how many were removed."""
        if self.ttl_s <= 0:
            return 0
        cutoff = time.time() - self.ttl_s
        with sqlite3.connect(self.path) as con:
            cur = con.execute("DELETE FROM model_responses WHERE created_at < ?", (cutoff,))
            con.commit()
            return cur.rowcount
