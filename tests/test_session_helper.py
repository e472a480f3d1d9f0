# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest

from calorie_tracker.auth.session import (
    MemorySessionStore,
    Session,
    create_user_session,
    destroy_user_session,
    get_user_from_session,
    is_authenticated,
    sign_session_id,
    unsign_session_id,
)

USER = {"id": "8f14e45f-ceea-467f-a0e6-7d3b2c1a9e00", "username": "testuser", "nickname": "TestUser"}


class TestSessionHelper(unittest.TestCase):
    def test_missing_session(self) -> None:
        self.assertFalse(is_authenticated(None))
        self.assertIsNone(get_user_from_session(None))

    def test_create_user_session(self) -> None:
        session = Session()
        create_user_session(session, USER)
        self.assertTrue(is_authenticated(session))
        self.assertEqual(
            get_user_from_session(session),
            {"user_id": str(USER["id"]), "username": "testuser", "nickname": "TestUser"},
        )
        self.assertTrue(session["login_time"].endswith("Z"))
        self.assertTrue(session.modified)

    def test_numeric_id_is_stringified(self) -> None:
        session = Session()
        create_user_session(session, {**USER, "id": 42})
        self.assertEqual(get_user_from_session(session)["user_id"], "42")

    def test_destroy_user_session(self) -> None:
        session = Session()
        create_user_session(session, USER)
        destroy_user_session(session)
        self.assertFalse(is_authenticated(session))
        self.assertIsNone(get_user_from_session(session))
        for key in ("user_id", "username", "nickname", "login_time"):
            self.assertNotIn(key, session)

    def test_flag_without_user_id_is_not_authenticated(self) -> None:
        self.assertFalse(is_authenticated({"is_authenticated": True}))
        self.assertFalse(is_authenticated({"user_id": "abc"}))


class TestSessionStore(unittest.TestCase):
    def test_save_load_delete(self) -> None:
        store = MemorySessionStore(max_age_seconds=60)
        session = Session()
        session["history_session_id"] = "session_1_abc"
        store.save(session)
        self.assertTrue(session.persisted)
        self.assertFalse(session.modified)

        loaded = store.load(session.id)
        self.assertEqual(loaded, {"history_session_id": "session_1_abc"})
        restored = Session(session.id, loaded)
        self.assertFalse(restored.is_new)
        self.assertFalse(restored.modified)

        store.delete(session.id)
        self.assertIsNone(store.load(session.id))

    def test_expired_sessions_are_dropped(self) -> None:
        store = MemorySessionStore(max_age_seconds=-1)
        session = Session()
        session["x"] = 1
        store.save(session)
        self.assertIsNone(store.load(session.id))

    def test_cookie_signature(self) -> None:
        signed = sign_session_id("abc123")
        self.assertEqual(unsign_session_id(signed), "abc123")
        self.assertIsNone(unsign_session_id(signed[:-1] + ("0" if signed[-1] != "0" else "1")))
        self.assertIsNone(unsign_session_id("abc123"))
        self.assertIsNone(unsign_session_id(None))


if __name__ == "__main__":
    unittest.main()
