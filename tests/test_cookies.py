"""
Unit tests for cookie jar helpers.

Contract:
- Cookie header is "name=value" pairs joined by "; "
- later occurrences of a name win, attributes (path, HttpOnly) are dropped
- malformed entries are skipped
"""

import unittest

from simascraper.cookies import cookie_map, merge_cookies, parse_cookies


class TestCookies(unittest.TestCase):
    def test_parse_cookies_last_value_wins(self) -> None:
        jar = ["a=1; path=/", "b=2", "a=3"]
        self.assertEqual(parse_cookies(jar), "a=3; b=2")

    def test_attributes_are_dropped(self) -> None:
        jar = ["MoodleSession=abc123; path=/; secure; HttpOnly; SameSite=None"]
        self.assertEqual(cookie_map(jar), {"MoodleSession": "abc123"})

    def test_malformed_entries_are_skipped(self) -> None:
        jar = ["novalue", "=orphan", "empty=", "ok=1"]
        self.assertEqual(parse_cookies(jar), "ok=1")

    def test_value_may_contain_equals(self) -> None:
        self.assertEqual(cookie_map(["token=a=b==; path=/"]), {"token": "a=b=="})

    def test_empty_jar(self) -> None:
        self.assertEqual(parse_cookies([]), "")

    def test_merge_keeps_every_hop_in_order(self) -> None:
        merged = merge_cookies(["MoodleSession=first"], [], ["MOODLEID1_=x", "MoodleSession=second"])
        self.assertEqual(merged, ["MoodleSession=first", "MOODLEID1_=x", "MoodleSession=second"])
        # the latest session cookie is what gets sent
        self.assertEqual(cookie_map(merged)["MoodleSession"], "second")


if __name__ == "__main__":
    unittest.main()
