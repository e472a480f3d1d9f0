# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest

from calorie_tracker.validation import (
    validate_login,
    validate_nutrition_request,
    validate_pagination_params,
    validate_registration,
    validate_search_id,
    validate_session_id,
)


class TestNutritionRequest(unittest.TestCase):
    def test_valid_food(self) -> None:
        result = validate_nutrition_request({"food": "apple pie"})
        self.assertIsNone(result.error)
        self.assertEqual(result.value, {"food": "apple pie"})

    def test_trims_and_drops_extra_keys(self) -> None:
        result = validate_nutrition_request({"food": "  banana  ", "extra": "ignored"})
        self.assertIsNone(result.error)
        self.assertEqual(result.value, {"food": "banana"})

    def test_missing_food(self) -> None:
        result = validate_nutrition_request({})
        self.assertIsNotNone(result.error)
        self.assertIn("required", result.error.details[0].message)

    def test_blank_food(self) -> None:
        result = validate_nutrition_request({"food": "   "})
        self.assertEqual(result.error.details[0].message, "Food input is required")

    def test_too_long(self) -> None:
        result = validate_nutrition_request({"food": "a" * 1001})
        self.assertIsNotNone(result.error)
        self.assertIn("length", result.error.details[0].message)

    def test_configured_max_length(self) -> None:
        self.assertIsNone(validate_nutrition_request({"food": "a" * 20}, max_length=20).error)
        result = validate_nutrition_request({"food": "a" * 21}, max_length=20)
        self.assertIn("20", result.error.message)

    def test_non_string(self) -> None:
        for value in (123, ["apple"], {"name": "apple"}, True):
            result = validate_nutrition_request({"food": value})
            self.assertIsNotNone(result.error, msg=repr(value))
            self.assertIn("string", result.error.message)

    def test_non_mapping_input(self) -> None:
        result = validate_nutrition_request("apple")
        self.assertEqual(result.error.message, "Food input is required")


class TestPaginationParams(unittest.TestCase):
    def test_defaults(self) -> None:
        result = validate_pagination_params({})
        self.assertEqual(result.value, {"page": 1, "per_page": 20, "limit": 5})

    def test_query_strings_are_coerced(self) -> None:
        result = validate_pagination_params({"page": "3", "per_page": "10", "limit": None})
        self.assertIsNone(result.error)
        self.assertEqual(result.value, {"page": 3, "per_page": 10, "limit": 5})

    def test_bounds(self) -> None:
        self.assertEqual(
            validate_pagination_params({"per_page": 51}).error.message,
            "per_page must be less than or equal to 50",
        )
        self.assertEqual(
            validate_pagination_params({"page": 0}).error.message,
            "page must be greater than or equal to 1",
        )
        self.assertEqual(
            validate_pagination_params({"limit": "11"}).error.message,
            "limit must be less than or equal to 10",
        )
        self.assertEqual(validate_pagination_params({"page": "abc"}).error.message, "page must be an integer")


class TestIdentifiers(unittest.TestCase):
    def test_search_id(self) -> None:
        ok = validate_search_id("search_1700000000000_abc123xyz")
        self.assertIsNone(ok.error)
        self.assertEqual(ok.value["id"], "search_1700000000000_abc123xyz")
        for bad in ("search_abc_123", "session_1_abc", "", None, 5, "search_1_ABC"):
            self.assertEqual(validate_search_id(bad).error.message, "Invalid search ID", msg=repr(bad))

    def test_session_id(self) -> None:
        self.assertIsNone(validate_session_id("session_1700000000000_k3j4h5g6f").error)
        self.assertEqual(validate_session_id("search_1_abc").error.message, "Invalid session ID")


class TestAuthSchemas(unittest.TestCase):
    def test_valid_registration(self) -> None:
        result = validate_registration({"username": " test_user ", "password": "password123", "nickname": " Tester "})
        self.assertIsNone(result.error)
        self.assertEqual(result.value["username"], "test_user")
        self.assertEqual(result.value["nickname"], "Tester")
        self.assertEqual(result.value["password"], "password123")

    def test_registration_rules(self) -> None:
        cases = [
            ({"username": "ab", "password": "password123", "nickname": "n"}, "at least 3"),
            ({"username": "a" * 51, "password": "password123", "nickname": "n"}, "50"),
            ({"username": "bad name!", "password": "password123", "nickname": "n"}, "letters, numbers"),
            ({"username": "gooduser", "password": "12345", "nickname": "n"}, "at least 6"),
            ({"username": "gooduser", "password": "x" * 101, "nickname": "n"}, "100"),
            ({"username": "gooduser", "password": "password123", "nickname": "   "}, "Nickname is required"),
            ({"username": "gooduser", "password": "password123", "nickname": "n" * 101}, "100"),
        ]
        for data, expected in cases:
            result = validate_registration(data)
            self.assertIsNotNone(result.error, msg=repr(data))
            self.assertIn(expected, result.error.message, msg=repr(data))

    def test_login_requires_both(self) -> None:
        self.assertIsNone(validate_login({"username": "u", "password": "p"}).error)
        self.assertEqual(validate_login({"username": "u"}).error.message, "Password is required")


if __name__ == "__main__":
    unittest.main()
