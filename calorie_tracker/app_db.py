# -*- coding: utf-8 -*-
"""App database (users/search history/sessions) — SQLite helpers."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_app_db(db_path: Path) -> None:
    conn = connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                password TEXT NOT NULL,
                nickname TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS search_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                search_id TEXT NOT NULL,
                query TEXT NOT NULL,
                summary TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                UNIQUE (user_id, search_id),
                FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_search_history_user_id ON search_history(user_id, id DESC);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                data_json TEXT NOT NULL,
                expires_at REAL NOT NULL
            );
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);")
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class DatabaseManager:
    """Owns the database lifecycle for the process entry point."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._connected = False

    def connect(self) -> None:
        if self._connected:
            logger.debug("Database already connected: %s", self.db_path)
            return
        init_app_db(self.db_path)
        self._connected = True
        logger.info("Database ready at %s", self.db_path)

    def disconnect(self) -> None:
        if self._connected:
            self._connected = False
            logger.info("Database disconnected: %s", self.db_path)

    def is_connected(self) -> bool:
        return self._connected

    def status(self) -> dict:
        return {"is_connected": self._connected, "path": str(self.db_path)}
