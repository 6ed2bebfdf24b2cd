"""
Tests for sesskey resolution and session validation.

All portal answers are canned pages served by FakeClient.
"""

import unittest

from simascraper.config import CALENDAR_PAGE, DASHBOARD_PAGE
from simascraper.errors import HttpStatusError, SessionExpired, SessionKeyNotFound, TransportError
from simascraper.session import (
    extract_session_key,
    get_session_key,
    has_login_form,
    looks_expired,
    validate_session,
)

from support import BASE, FakeClient, fixture_html, page, redirect, url


LOGIN_FORM = fixture_html(
    '<form id="login" action="/login/index.php" method="post">'
    '<input type="text" name="username" id="username">'
    '<input type="password" name="password" id="password">'
    "</form>"
)

COOKIES = ["MoodleSession=abc; path=/"]


class TestSessionKeyExtraction(unittest.TestCase):
    def test_hidden_input(self) -> None:
        html = fixture_html('<form><input type="hidden" name="sesskey" value="K1npUt"></form>')
        self.assertEqual(extract_session_key(html), "K1npUt")

    def test_data_attribute(self) -> None:
        html = fixture_html('<div data-sesskey="dataKey9"></div>')
        self.assertEqual(extract_session_key(html), "dataKey9")

    def test_inline_config(self) -> None:
        html = '<script>M.cfg = {"wwwroot":"https://x","sesskey":"CfgKey77","sessiontimeout":"7200"};</script>'
        self.assertEqual(extract_session_key(html), "CfgKey77")

    def test_query_string(self) -> None:
        html = '<a href="/login/logout.php?sesskey=LogoutKey1">Salir</a>'
        self.assertEqual(extract_session_key(html), "LogoutKey1")

    def test_input_beats_regex(self) -> None:
        html = '<script>var x = {"sesskey":"fromJs"}</script><input name="sesskey" value="fromInput">'
        self.assertEqual(extract_session_key(html), "fromInput")

    def test_missing(self) -> None:
        self.assertIsNone(extract_session_key(fixture_html("<p>nada</p>")))


class TestGetSessionKey(unittest.TestCase):
    def test_resolves_from_calendar_page(self) -> None:
        client = FakeClient({url(CALENDAR_PAGE): page(url(CALENDAR_PAGE), '<input name="sesskey" value="abc">')})
        self.assertEqual(get_session_key(client, COOKIES), "abc")
        self.assertEqual(client.calls[0].cookies, COOKIES)

    def test_login_bounce_is_session_expired(self) -> None:
        client = FakeClient({url(CALENDAR_PAGE): page(f"{BASE}/login/index.php", LOGIN_FORM)})
        with self.assertRaises(SessionExpired):
            get_session_key(client, COOKIES)

    def test_missing_key_is_structure_error(self) -> None:
        client = FakeClient({url(CALENDAR_PAGE): page(url(CALENDAR_PAGE), fixture_html("<p>Calendario</p>"))})
        with self.assertRaises(SessionKeyNotFound):
            get_session_key(client, COOKIES)

    def test_http_error_propagates(self) -> None:
        client = FakeClient({url(CALENDAR_PAGE): page(url(CALENDAR_PAGE), "oops", status=503)})
        with self.assertRaises(HttpStatusError):
            get_session_key(client, COOKIES)


class TestLoginPageDetection(unittest.TestCase):
    def test_login_form(self) -> None:
        self.assertTrue(has_login_form(LOGIN_FORM))

    def test_username_alone_is_not_a_login_form(self) -> None:
        self.assertFalse(has_login_form('<span id="username">jdoe</span>'))

    def test_similar_names_do_not_match(self) -> None:
        html = '<input name="username_hint"><input name="passwordpolicy">'
        self.assertFalse(has_login_form(html))

    def test_expired_markers(self) -> None:
        self.assertTrue(looks_expired("<p>Su sesión ha caducado. Por favor, ingrese de nuevo.</p>"))
        self.assertTrue(looks_expired('<div id="loginform"></div>'))
        self.assertFalse(looks_expired("<p>Bienvenido</p>"))


class TestValidateSession(unittest.TestCase):
    def setUp(self) -> None:
        self.dashboard = url(DASHBOARD_PAGE)

    def test_dashboard_is_valid(self) -> None:
        client = FakeClient({self.dashboard: page(self.dashboard, fixture_html("<h1>Área personal</h1>"))})
        self.assertTrue(validate_session(client, COOKIES))
        self.assertFalse(client.calls[0].kwargs["allow_redirects"])

    def test_redirect_to_login_is_invalid(self) -> None:
        client = FakeClient({self.dashboard: redirect(self.dashboard, f"{BASE}/login/index.php")})
        self.assertFalse(validate_session(client, COOKIES))

    def test_redirect_elsewhere_is_valid(self) -> None:
        client = FakeClient({self.dashboard: redirect(self.dashboard, f"{BASE}/my/courses.php")})
        self.assertTrue(validate_session(client, COOKIES))

    def test_login_form_is_invalid(self) -> None:
        client = FakeClient({self.dashboard: page(self.dashboard, LOGIN_FORM)})
        self.assertFalse(validate_session(client, COOKIES))

    def test_expiry_text_is_invalid(self) -> None:
        html = fixture_html("<div class='alert'>Su sesión ha caducado</div>")
        client = FakeClient({self.dashboard: page(self.dashboard, html)})
        self.assertFalse(validate_session(client, COOKIES))

    def test_transport_error_propagates(self) -> None:
        client = FakeClient({self.dashboard: TransportError("timeout", url=self.dashboard)})
        with self.assertRaises(TransportError):
            validate_session(client, COOKIES)


if __name__ == "__main__":
    unittest.main()
