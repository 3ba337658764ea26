from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, List, Optional, Sequence

from appcore.core.db.store import ExecuteResult, Row

log = logging.getLogger("appcore.db")


class SQLiteStore:
    """
    RelationalStore over one sqlite3 connection.

    FastAPI runs sync endpoints in a thread pool, so the single connection is
    opened with check_same_thread=False and serialised with a lock.
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def executescript(self, script: str) -> None:
        with self._lock:
            self._conn.executescript(script)
            self._conn.commit()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        log.debug("sql fetch_all %s params=%s", sql, len(params))
        with self._lock:
            cur = self._conn.execute(sql, tuple(params))
            return [dict(r) for r in cur.fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        with self._lock:
            cur = self._conn.execute(sql, tuple(params))
            row = cur.fetchone()
        return dict(row) if row is not None else None

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        with self._lock:
            cur = self._conn.execute(sql, tuple(params))
            row = cur.fetchone()
        return row[0] if row is not None else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        log.debug("sql execute %s params=%s", sql, len(params))
        with self._lock:
            cur = self._conn.execute(sql, tuple(params))
            self._conn.commit()
            return ExecuteResult(rowcount=cur.rowcount, lastrowid=cur.lastrowid)
