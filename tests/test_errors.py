"""
Unit tests for the exception hierarchy and its HTTP status mapping.
"""

import unittest

from simascraper.errors import (
    AuthenticationError,
    ConfigError,
    HttpStatusError,
    InvalidCredentials,
    LoginTokenNotFound,
    NoAuthenticatedPageFound,
    SessionExpired,
    SimaError,
    TransportError,
    http_status_for,
)


class TestErrors(unittest.TestCase):
    def test_authentication_errors_map_to_401(self) -> None:
        for exc in (SessionExpired(), InvalidCredentials(), AuthenticationError("nope")):
            with self.subTest(exc=type(exc).__name__):
                self.assertEqual(http_status_for(exc), 401)

    def test_config_errors_map_to_400(self) -> None:
        self.assertEqual(http_status_for(ConfigError("bad timeout")), 400)

    def test_everything_else_maps_to_500(self) -> None:
        for exc in (
            LoginTokenNotFound(),
            NoAuthenticatedPageFound(),
            TransportError("reset", url="https://sima.test/my/"),
            HttpStatusError(502, url="https://sima.test/my/"),
            ValueError("unexpected"),
        ):
            with self.subTest(exc=type(exc).__name__):
                self.assertEqual(http_status_for(exc), 500)

    def test_defaults_and_hierarchy(self) -> None:
        self.assertEqual(str(InvalidCredentials()), "Authentication failed - invalid credentials")
        self.assertIsInstance(InvalidCredentials(), SimaError)
        err = HttpStatusError(404, url="https://sima.test/x")
        self.assertEqual(err.status_code, 404)
        self.assertEqual(err.url, "https://sima.test/x")


if __name__ == "__main__":
    unittest.main()
