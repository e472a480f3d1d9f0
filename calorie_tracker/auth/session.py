# -*- coding: utf-8 -*-
"""Auth — server-side sessions.

The browser only ever sees an opaque, HMAC-signed session id in a cookie; the
session record itself lives in a :class:`SessionStore` (SQLite or in-memory).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fastapi import Request

from ..app_db import db_conn
from ..config import settings

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "calorie_tracker.sid"

_AUTH_KEYS = ("user_id", "username", "nickname", "login_time")


class Session(dict):
    """A dict that remembers whether it changed during the request."""

    def __init__(self, session_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(data or {})
        self.is_new = session_id is None
        self.id = session_id or secrets.token_urlsafe(32)
        self.modified = False
        self.persisted = not self.is_new
        self.destroyed = False

    def __setitem__(self, key: str, value: Any) -> None:
        super().__setitem__(key, value)
        self.modified = True

    def __delitem__(self, key: str) -> None:
        super().__delitem__(key)
        self.modified = True

    def pop(self, key: str, *default: Any) -> Any:
        self.modified = True
        return super().pop(key, *default)

    def clear(self) -> None:
        super().clear()
        self.modified = True


# ---------- Session helper ----------


def create_user_session(session: Session, user: Dict[str, Any]) -> None:
    session["is_authenticated"] = True
    session["user_id"] = str(user["id"])
    session["username"] = user["username"]
    session["nickname"] = user["nickname"]
    session["login_time"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def destroy_user_session(session: Session) -> None:
    session["is_authenticated"] = False
    for key in _AUTH_KEYS:
        session.pop(key, None)


def is_authenticated(session: Optional[Dict[str, Any]]) -> bool:
    return bool(session and session.get("is_authenticated") and session.get("user_id"))


def get_user_from_session(session: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not session or not is_authenticated(session):
        return None
    return {
        "user_id": session["user_id"],
        "username": session.get("username"),
        "nickname": session.get("nickname"),
    }


# ---------- Stores ----------


class SessionStore:
    """Keyed by session id. Implementations must be safe to call from worker threads."""

    def __init__(self, max_age_seconds: int) -> None:
        self.max_age_seconds = max_age_seconds

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save(self, session: Session) -> None:
        raise NotImplementedError

    def delete(self, session_id: str) -> None:
        raise NotImplementedError

    def _expires_at(self) -> float:
        return time.time() + self.max_age_seconds


class MemorySessionStore(SessionStore):
    def __init__(self, max_age_seconds: int) -> None:
        super().__init__(max_age_seconds)
        self._lock = threading.Lock()
        self._sessions: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            found = self._sessions.get(session_id)
            if not found:
                return None
            expires_at, data = found
            if expires_at < time.time():
                del self._sessions[session_id]
                return None
            return dict(data)

    def save(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = (self._expires_at(), dict(session))
        session.modified = False
        session.persisted = True

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


class SQLiteSessionStore(SessionStore):
    def __init__(self, db_path: Path, max_age_seconds: int) -> None:
        super().__init__(max_age_seconds)
        self.db_path = db_path

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        with db_conn(self.db_path) as conn:
            row = conn.execute(
                "SELECT data_json, expires_at FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
            if not row:
                return None
            if row["expires_at"] < time.time():
                conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
                return None
        try:
            data = json.loads(row["data_json"])
        except ValueError:
            logger.warning("Discarding unreadable session %s", session_id[:8])
            return None
        return data if isinstance(data, dict) else None

    def save(self, session: Session) -> None:
        payload = json.dumps(dict(session), ensure_ascii=False)
        with db_conn(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, data_json, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET data_json = excluded.data_json, expires_at = excluded.expires_at
                """,
                (session.id, payload, self._expires_at()),
            )
        session.modified = False
        session.persisted = True

    def delete(self, session_id: str) -> None:
        with db_conn(self.db_path) as conn:
            conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))

    def purge_expired(self) -> int:
        with db_conn(self.db_path) as conn:
            cur = conn.execute("DELETE FROM sessions WHERE expires_at < ?", (time.time(),))
            return cur.rowcount


def build_session_store() -> SessionStore:
    if settings.session_store == "memory":
        return MemorySessionStore(settings.session_max_age_seconds)
    return SQLiteSessionStore(settings.app_db_path, settings.session_max_age_seconds)


# ---------- Cookie transport ----------


def _signature(session_id: str) -> str:
    return hmac.new(
        settings.session_secret.encode("utf-8"), session_id.encode("ascii"), hashlib.sha256
    ).hexdigest()


def sign_session_id(session_id: str) -> str:
    return f"{session_id}.{_signature(session_id)}"


def unsign_session_id(cookie: Optional[str]) -> Optional[str]:
    if not cookie or "." not in cookie:
        return None
    session_id, sig = cookie.rsplit(".", 1)
    try:
        expected = _signature(session_id)
    except UnicodeEncodeError:
        return None
    if not hmac.compare_digest(expected, sig):
        return None
    return session_id


def load_session(request: Request, store: SessionStore) -> Session:
    session_id = unsign_session_id(request.cookies.get(SESSION_COOKIE_NAME))
    if session_id:
        data = store.load(session_id)
        if data is not None:
            return Session(session_id, data)
    return Session()


async def session_middleware(request: Request, call_next):
    store: SessionStore = request.app.state.session_store
    session = load_session(request, store)
    request.state.session = session

    response = await call_next(request)

    if session.destroyed:
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")
        return response
    if session.modified:
        store.save(session)
    if session.is_new and session.persisted:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            sign_session_id(session.id),
            httponly=True,
            secure=bool(settings.cookie_secure),
            samesite="lax",
            max_age=int(settings.session_max_age_seconds),
            path="/",
        )
    return response


def get_session(request: Request) -> Session:
    session = getattr(request.state, "session", None)
    if session is None:
        # Middleware not installed (e.g. a bare router in tests): fall back to a throwaway session.
        session = Session()
        request.state.session = session
    return session


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store
