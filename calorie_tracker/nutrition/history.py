# -*- coding: utf-8 -*-
"""Nutrition — per-session search history (process lifetime only)."""

from __future__ import annotations

import math
import secrets
import string
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..validation import validate_session_id

HISTORY_SESSION_KEY = "history_session_id"

_ID_ALPHABET = string.digits + string.ascii_lowercase

_EMPTY_STATS: Dict[str, Any] = {
    "total_searches": 0,
    "total_calories_analyzed": 0,
    "average_calories": 0,
    "first_search": None,
    "last_search": None,
}


def _generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def _page_args(page: Any, per_page: Any) -> tuple[int, int]:
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        per_page = int(per_page)
    except (TypeError, ValueError):
        per_page = 20
    page = max(1, page)
    per_page = min(per_page if per_page > 0 else 20, 50)
    return page, per_page


@runtime_checkable
class HistoryStore(Protocol):
    """Backing store for per-session search lists."""

    def get(self, session_id: str) -> Optional[List[Dict[str, Any]]]: ...

    def put(self, session_id: str, searches: List[Dict[str, Any]]) -> None: ...

    def delete(self, session_id: str) -> None: ...

    def values(self) -> Iterable[List[Dict[str, Any]]]: ...

    def __len__(self) -> int: ...


class MemoryHistoryStore:
    """Plain dict keyed by history session id. Not thread-safe on its own."""

    def __init__(self) -> None:
        self._data: Dict[str, List[Dict[str, Any]]] = {}

    def get(self, session_id: str) -> Optional[List[Dict[str, Any]]]:
        return self._data.get(session_id)

    def put(self, session_id: str, searches: List[Dict[str, Any]]) -> None:
        self._data[session_id] = searches

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def values(self) -> Iterable[List[Dict[str, Any]]]:
        return list(self._data.values())

    def __len__(self) -> int:
        return len(self._data)


class SearchHistoryService:
    def __init__(self, store: Optional[HistoryStore] = None, max_per_session: int = 50) -> None:
        self.store: HistoryStore = store if store is not None else MemoryHistoryStore()
        self.max_per_session = max_per_session
        self._lock = threading.Lock()

    def get_or_create_session_id(self, session: Dict[str, Any]) -> str:
        current = session.get(HISTORY_SESSION_KEY)
        if current and not validate_session_id(current).error:
            return current
        session_id = _generate_id("session")
        session[HISTORY_SESSION_KEY] = session_id
        return session_id

    def save_search(self, session_id: str, search_data: Dict[str, Any]) -> Dict[str, Any]:
        record = {
            **search_data,
            "id": _generate_id("search"),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        with self._lock:
            searches = list(self.store.get(session_id) or [])
            searches.insert(0, record)
            del searches[self.max_per_session :]
            self.store.put(session_id, searches)
        return record

    def get_search_history(self, session_id: Optional[str], page: Any = 1, per_page: Any = 20) -> Dict[str, Any]:
        page, per_page = _page_args(page, per_page)
        with self._lock:
            searches = list(self.store.get(session_id) or []) if session_id else []

        start = (page - 1) * per_page
        return {
            "searches": [self._summary(s) for s in searches[start : start + per_page]],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total_searches": len(searches),
                "total_pages": math.ceil(len(searches) / per_page),
            },
            "stats": self._calculate_stats(searches),
        }

    def get_recent_searches(self, session_id: Optional[str], limit: int = 5) -> List[Dict[str, Any]]:
        if not session_id:
            return []
        with self._lock:
            searches = list(self.store.get(session_id) or [])
        return [
            {
                "id": s["id"],
                "query": _truncate(s["query"], 50),
                "total_calories": s["total_calories"],
                "timestamp": s["timestamp"],
            }
            for s in searches[: max(0, int(limit))]
        ]

    def get_search_by_id(self, session_id: Optional[str], search_id: str) -> Optional[Dict[str, Any]]:
        if not session_id:
            return None
        with self._lock:
            searches = self.store.get(session_id) or []
            found = next((s for s in searches if s["id"] == search_id), None)
        return dict(found) if found else None

    def clear_history(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._lock:
            self.store.delete(session_id)

    def get_total_sessions(self) -> int:
        with self._lock:
            return len(self.store)

    def get_total_searches(self) -> int:
        with self._lock:
            return sum(len(searches) for searches in self.store.values())

    def get_average_calories_per_session(self) -> int:
        """Mean over sessions of each session's summed calories."""
        with self._lock:
            totals = [sum(s["total_calories"] for s in searches) for searches in self.store.values()]
        if not totals:
            return 0
        return round(sum(totals) / len(totals))

    @staticmethod
    def _summary(search: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": search["id"],
            "query": search["query"],
            "total_calories": search["total_calories"],
            "confidence": search["confidence"],
            "timestamp": search["timestamp"],
        }

    @staticmethod
    def _calculate_stats(searches: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not searches:
            return dict(_EMPTY_STATS)
        total = sum(s["total_calories"] for s in searches)
        return {
            "total_searches": len(searches),
            "total_calories_analyzed": total,
            "average_calories": round(total / len(searches)),
            "first_search": searches[-1]["timestamp"],
            "last_search": searches[0]["timestamp"],
        }
