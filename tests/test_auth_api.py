# -*- coding: utf-8 -*-

from __future__ import annotations

import json
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient


class TestAuthAPI(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._tmp = Path(tempfile.mkdtemp(prefix="calorie-tracker-auth-"))
        data_root = cls._tmp / "data"
        os.environ["APP_ENV"] = "test"
        os.environ["CALORIE_TRACKER_DATA_ROOT"] = str(data_root)
        os.environ["CALORIE_TRACKER_DB_PATH"] = str(data_root / "calorie_tracker.db")
        os.environ["SESSION_SECRET"] = "test-secret"
        os.environ["SESSION_STORE"] = "sqlite"
        os.environ.pop("OPENAI_API_KEY", None)

        # Ensure settings/app reflect the env vars above.
        for name in list(sys.modules.keys()):
            if name.startswith("calorie_tracker."):
                sys.modules.pop(name, None)

        from calorie_tracker.api import app  # noqa: WPS433 (import inside test for env control)

        cls.app = app

    @classmethod
    def tearDownClass(cls) -> None:
        shutil.rmtree(cls._tmp, ignore_errors=True)

    def setUp(self) -> None:
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()

    def _register(self, username: str, password: str = "password123", nickname: str = "TestUser"):
        return self.client.post(
            "/api/auth/register",
            json={"username": username, "password": password, "nickname": nickname},
        )

    def _login(self, username: str, password: str = "password123"):
        return self.client.post("/api/auth/login", json={"username": username, "password": password})

    def test_register(self) -> None:
        resp = self._register("testuser")
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "User registered successfully")
        self.assertEqual(body["user"]["username"], "testuser")
        self.assertEqual(body["user"]["nickname"], "TestUser")
        self.assertTrue(body["user"]["id"])
        self.assertTrue(body["user"]["createdAt"])
        self.assertNotIn("password", json.dumps(body))

    def test_register_duplicate_is_case_insensitive(self) -> None:
        self.assertEqual(self._register("dupe_user").status_code, 201)
        resp = self._register("dupe_user")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json(), {"success": False, "message": "Username already exists"})

        resp = self._register("DUPE_USER")
        self.assertEqual(resp.status_code, 409)

    def test_register_stores_lowercase_username(self) -> None:
        resp = self._register("MixedCase")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["user"]["username"], "mixedcase")
        self.assertEqual(self._login("MIXEDCASE").status_code, 200)

    def test_register_requires_all_fields(self) -> None:
        resp = self.client.post("/api/auth/register", json={"username": "someone", "password": "password123"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Username, password, and nickname are required")

    def test_register_rule_violation(self) -> None:
        resp = self._register("ab")
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["message"], "Validation error")
        self.assertIn("at least 3", body["details"])

    def test_register_sanitizes_nickname(self) -> None:
        resp = self._register("nick_user", nickname="  <b>Bob</b>   Smith ")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["user"]["nickname"], "bBob/b Smith")

    def test_login_me_status_logout(self) -> None:
        self._register("flow_user", nickname="Flow")

        resp = self.client.get("/api/auth/status")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "isAuthenticated": False, "user": None})

        resp = self._login("flow_user")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["message"], "Login successful")
        self.assertEqual(body["user"]["username"], "flow_user")
        self.assertIn("calorie_tracker.sid", resp.headers.get("set-cookie", ""))
        self.assertIn("httponly", resp.headers["set-cookie"].lower())
        user_id = body["user"]["id"]

        resp = self.client.get("/api/auth/me")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"], {"id": user_id, "username": "flow_user", "nickname": "Flow"})

        resp = self.client.get("/api/auth/status")
        self.assertTrue(resp.json()["isAuthenticated"])
        self.assertEqual(resp.json()["user"]["id"], user_id)

        resp = self.client.post("/api/auth/logout")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "message": "Logout successful"})

        resp = self.client.get("/api/auth/me")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"success": False, "message": "Not authenticated"})

    def test_logout_without_session_is_idempotent(self) -> None:
        resp = self.client.post("/api/auth/logout")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Logout successful")

    def test_tampered_cookie_is_ignored(self) -> None:
        self._register("tamper_user")
        self.assertEqual(self._login("tamper_user").status_code, 200)
        cookie = self.client.cookies.get("calorie_tracker.sid")
        self.assertEqual(self.client.get("/api/auth/me").status_code, 200)

        self.client.cookies.clear()
        forged = cookie.rsplit(".", 1)[0] + ".forged"
        resp = self.client.get("/api/auth/me", headers={"cookie": f"calorie_tracker.sid={forged}"})
        self.assertEqual(resp.status_code, 401)

    def test_login_failures_do_not_reveal_which_part_was_wrong(self) -> None:
        self._register("real_user")
        wrong_password = self._login("real_user", "not-the-password")
        unknown_user = self._login("ghost_user", "password123")
        for resp in (wrong_password, unknown_user):
            self.assertEqual(resp.status_code, 401)
            self.assertEqual(resp.json(), {"success": False, "message": "Invalid username or password"})

    def test_login_requires_both_fields(self) -> None:
        resp = self.client.post("/api/auth/login", json={"username": "someone"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Username and password are required")

    def test_search_history_requires_auth(self) -> None:
        for method in ("get", "post", "delete"):
            kwargs = {"json": {"searchId": "s", "query": "q", "summary": "x"}} if method == "post" else {}
            resp = getattr(self.client, method)("/api/auth/search-history", **kwargs)
            self.assertEqual(resp.status_code, 401, msg=method)
            self.assertEqual(resp.json()["message"], "Authentication required")

    def test_search_history_cap_and_dedup(self) -> None:
        self._register("history_user")
        self.assertEqual(self._login("history_user").status_code, 200)

        for i in range(11):
            resp = self.client.post(
                "/api/auth/search-history",
                json={"searchId": f"search_{i}", "query": f"meal {i}", "summary": f"{i * 100} kcal"},
            )
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.json()["message"], "Search added to history")

        history = self.client.get("/api/auth/search-history").json()["searchHistory"]
        self.assertEqual(len(history), 10)
        self.assertEqual(history[0]["searchId"], "search_10")
        self.assertEqual(history[-1]["searchId"], "search_1")
        self.assertNotIn("search_0", [h["searchId"] for h in history])

        resp = self.client.post(
            "/api/auth/search-history",
            json={"searchId": "search_5", "query": "meal 5 again", "summary": "500 kcal"},
        )
        history = resp.json()["searchHistory"]
        self.assertEqual(len(history), 10)
        self.assertEqual(history[0]["searchId"], "search_5")
        self.assertEqual(history[0]["query"], "meal 5 again")
        self.assertEqual([h["searchId"] for h in history].count("search_5"), 1)

        resp = self.client.delete("/api/auth/search-history")
        self.assertEqual(resp.json(), {"success": True, "message": "Search history cleared successfully"})
        self.assertEqual(self.client.get("/api/auth/search-history").json()["searchHistory"], [])

    def test_search_history_validation(self) -> None:
        self._register("limits_user")
        self.assertEqual(self._login("limits_user").status_code, 200)

        resp = self.client.post("/api/auth/search-history", json={"searchId": "s1", "query": "q"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Search ID, query, and summary are required")

        resp = self.client.post(
            "/api/auth/search-history", json={"searchId": "s1", "query": "q" * 501, "summary": "ok"}
        )
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(
            "/api/auth/search-history", json={"searchId": "s1", "query": "ok", "summary": "s" * 1001}
        )
        self.assertEqual(resp.status_code, 400)

    def test_delete_account_stub(self) -> None:
        self._register("leaving_user")
        self.assertEqual(self._login("leaving_user").status_code, 200)
        resp = self.client.delete("/api/auth/account")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "message": "Account deleted successfully"})
        # Nothing is removed yet.
        self.assertEqual(self.client.get("/api/auth/me").status_code, 200)

    def test_delete_account_requires_auth(self) -> None:
        resp = self.client.delete("/api/auth/account")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"success": False, "message": "Authentication required"})

    def test_lifespan_connects_and_disconnects_database(self) -> None:
        manager = self.app.state.db_manager
        try:
            with TestClient(self.app) as client:
                self.assertTrue(manager.is_connected())
                self.assertTrue(client.get("/api/health").json()["database"]["is_connected"])
            self.assertFalse(manager.is_connected())
        finally:
            manager.connect()


if __name__ == "__main__":
    unittest.main()
