# -*- coding: utf-8 -*-
"""Auth — DB storage helpers (users + per-user search history)."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..app_db import db_conn
from ..config import settings
from .security import hash_password

MAX_USER_SEARCH_HISTORY = 10


class UsernameTakenError(Exception):
    """Raised when the unique username index rejects an insert."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _db_path(db_path: Path | None) -> Path:
    return db_path or settings.app_db_path


def normalize_username(username: str) -> str:
    return username.strip().lower()


def get_user_by_username(username: str, db_path: Path | None = None) -> Optional[Dict[str, Any]]:
    with db_conn(_db_path(db_path)) as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE username = ?", (normalize_username(username),)
        ).fetchone()
        return dict(row) if row else None


def create_user(
    *,
    username: str,
    password: str,
    nickname: str,
    db_path: Path | None = None,
) -> Dict[str, Any]:
    """Insert a user. ``password`` is plaintext and is hashed exactly once, here."""
    user_id = str(uuid4())
    now = _utc_now()
    username_norm = normalize_username(username)
    password_hash = hash_password(password)
    try:
        with db_conn(_db_path(db_path)) as conn:
            conn.execute(
                """
                INSERT INTO users (id, username, password, nickname, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, username_norm, password_hash, nickname.strip(), now, now),
            )
    except sqlite3.IntegrityError as exc:
        raise UsernameTakenError(username_norm) from exc
    return {
        "id": user_id,
        "username": username_norm,
        "password": password_hash,
        "nickname": nickname.strip(),
        "created_at": now,
        "updated_at": now,
    }


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the password hash from a user row."""
    return {k: v for k, v in row.items() if k != "password"}


# ---------- Search history ----------


def _history_row(row: Any) -> Dict[str, Any]:
    return {
        "search_id": row["search_id"],
        "query": row["query"],
        "summary": row["summary"],
        "timestamp": row["timestamp"],
    }


def get_search_history(user_id: str, db_path: Path | None = None) -> List[Dict[str, Any]]:
    with db_conn(_db_path(db_path)) as conn:
        rows = conn.execute(
            "SELECT search_id, query, summary, timestamp FROM search_history WHERE user_id = ? ORDER BY id DESC",
            (user_id,),
        ).fetchall()
    return [_history_row(r) for r in rows]


def add_search_history(
    user_id: str,
    *,
    search_id: str,
    query: str,
    summary: str,
    limit: int = MAX_USER_SEARCH_HISTORY,
    db_path: Path | None = None,
) -> List[Dict[str, Any]]:
    """Move-to-front insert capped at ``limit``, in one write transaction.

    A re-added ``search_id`` replaces its previous entry instead of duplicating it.
    """
    now = _utc_now()
    with db_conn(_db_path(db_path)) as conn:
        conn.execute("BEGIN IMMEDIATE")
        conn.execute(
            "DELETE FROM search_history WHERE user_id = ? AND search_id = ?",
            (user_id, search_id),
        )
        conn.execute(
            """
            INSERT INTO search_history (user_id, search_id, query, summary, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, search_id, query, summary, now),
        )
        conn.execute(
            """
            DELETE FROM search_history
            WHERE user_id = ? AND id NOT IN (
                SELECT id FROM search_history WHERE user_id = ? ORDER BY id DESC LIMIT ?
            )
            """,
            (user_id, user_id, int(limit)),
        )
        conn.execute("UPDATE users SET updated_at = ? WHERE id = ?", (now, user_id))
        rows = conn.execute(
            "SELECT search_id, query, summary, timestamp FROM search_history WHERE user_id = ? ORDER BY id DESC",
            (user_id,),
        ).fetchall()
    return [_history_row(r) for r in rows]


def clear_search_history(user_id: str, db_path: Path | None = None) -> int:
    with db_conn(_db_path(db_path)) as conn:
        cur = conn.execute("DELETE FROM search_history WHERE user_id = ?", (user_id,))
        conn.execute("UPDATE users SET updated_at = ? WHERE id = ?", (_utc_now(), user_id))
        return cur.rowcount
