"""
Login engine.

Acquires an authenticated cookie jar for SIMA the way a browser does:

    FETCH_TOKEN         GET login page, read the hidden logintoken
    SUBMIT_CREDENTIALS  POST token + username + password (no redirects)
    CLASSIFY_REDIRECT   3xx: back to login -> FAILED
                             testsession bridge -> FOLLOW_BRIDGE
                             anything else -> AUTHENTICATED
    NO_REDIRECT         200: decide from the returned page
    FOLLOW_BRIDGE       GET the bridge URL (no redirects), follow once more
                        if it points somewhere real
    FORCE_SESSION       bridge stalled: GET the dashboard so the final
                        session cookie gets issued

Every transition is appended to LoginResult.trace. The cookie list in the
result is the union of all hops; no single response carries the full set.

Credential failures are returned (success=False). A missing login token
raises LoginTokenNotFound and a transport failure on the token fetch or the
credential submit raises TransportError.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from bs4 import BeautifulSoup

from simascraper.client import Page, SimaClient
from simascraper.config import BRIDGE_MARKER, DASHBOARD_PAGE, LOGIN_PAGE, LOGIN_PATH
from simascraper.cookies import merge_cookies
from simascraper.errors import LoginTokenNotFound, TransportError
from simascraper.model import LoginResult, LoginStep, SessionData


logger = logging.getLogger(__name__)

# FETCH, SUBMIT, CLASSIFY, BRIDGE, FORCE, terminal: never more than this
MAX_STEPS = 8

ERROR_SELECTORS = ("#loginerrormessage", ".alert-danger", ".loginerrors .error", ".error")

REASON_INVALID_CREDENTIALS = "invalid_credentials"
REASON_NO_SESSION = "session_not_established"


class LoginState(str, Enum):
    FETCH_TOKEN = "fetch_token"
    SUBMIT_CREDENTIALS = "submit_credentials"
    CLASSIFY_REDIRECT = "classify_redirect"
    NO_REDIRECT = "no_redirect"
    FOLLOW_BRIDGE = "follow_bridge"
    FORCE_SESSION = "force_session"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


TERMINAL_STATES = (LoginState.AUTHENTICATED, LoginState.FAILED)


def extract_login_token(html: str) -> Optional[str]:
    soup = BeautifulSoup(html or "", "html.parser")
    field = soup.select_one('input[name="logintoken"]')
    if field is None:
        return None
    value = (field.get("value") or "").strip()
    return value or None


def extract_login_error(html: str) -> str:
    """Server-rendered error text on a login page ('' when none)."""
    soup = BeautifulSoup(html or "", "html.parser")
    for selector in ERROR_SELECTORS:
        el = soup.select_one(selector)
        if el:
            text = " ".join(el.get_text(" ", strip=True).split())
            if text:
                return text
    return ""


def is_bridge_url(url: Optional[str]) -> bool:
    return bool(url) and BRIDGE_MARKER in url


def is_login_url(url: Optional[str]) -> bool:
    return bool(url) and LOGIN_PATH in url and BRIDGE_MARKER not in url


class LoginFlow:
    """
    One login attempt. Not reusable: create a new flow per attempt.
    """

    def __init__(self, client: SimaClient, username: str, password: str) -> None:
        self.client = client
        self.username = username
        self.password = password

        self.cookies: list[str] = []
        self.trace: list[LoginStep] = []
        self.login_token: str = ""
        self.redirect_url: Optional[str] = None
        self.error: Optional[str] = None
        self.reason: Optional[str] = None

        self._submit_page: Optional[Page] = None
        self._bridge_url: Optional[str] = None
        self._bridge_page: Optional[Page] = None

        self._handlers: dict[LoginState, Callable[[], LoginState]] = {
            LoginState.FETCH_TOKEN: self._fetch_token,
            LoginState.SUBMIT_CREDENTIALS: self._submit_credentials,
            LoginState.CLASSIFY_REDIRECT: self._classify_redirect,
            LoginState.NO_REDIRECT: self._no_redirect,
            LoginState.FOLLOW_BRIDGE: self._follow_bridge,
            LoginState.FORCE_SESSION: self._force_session,
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run(self) -> LoginResult:
        logger.info(f"Attempting SIMA login for user: {self.username}")
        state = LoginState.FETCH_TOKEN
        steps = 0

        while state not in TERMINAL_STATES:
            if steps >= MAX_STEPS:
                state = self._fail(REASON_NO_SESSION, "Login did not settle (too many steps)")
                break
            state = self._handlers[state]()
            steps += 1

        self._record(state, url=self.redirect_url, detail=self.error)
        return self._result(state)

    def _result(self, state: LoginState) -> LoginResult:
        if state is LoginState.AUTHENTICATED:
            logger.info(f"Login successful ({len(self.cookies)} cookies)")
            return LoginResult(
                success=True,
                cookies=list(self.cookies),
                session_data=SessionData(login_token=self.login_token, redirect_url=self.redirect_url),
                trace=self.trace,
            )

        logger.warning(f"Login failed: {self.error}")
        return LoginResult(success=False, error=self.error, reason=self.reason, trace=self.trace)

    def _record(self, state: LoginState, url: Optional[str] = None, status: Optional[int] = None,
                detail: Optional[str] = None) -> None:
        self.trace.append(LoginStep(state=state.value, url=url, status=status, detail=detail))

    def _absorb(self, page: Page) -> None:
        self.cookies = merge_cookies(self.cookies, page.set_cookies)

    def _fail(self, reason: str, message: str) -> LoginState:
        self.reason = reason
        self.error = message
        return LoginState.FAILED

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _fetch_token(self) -> LoginState:
        page = self.client.get(self.client.url(LOGIN_PAGE))
        page.raise_for_status()
        self._record(LoginState.FETCH_TOKEN, url=page.url, status=page.status_code)

        token = extract_login_token(page.text)
        if not token:
            raise LoginTokenNotFound()

        self.login_token = token
        self._absorb(page)
        return LoginState.SUBMIT_CREDENTIALS

    def _submit_credentials(self) -> LoginState:
        login_url = self.client.url(LOGIN_PAGE)
        page = self.client.post(
            login_url,
            self.cookies,
            data={
                "logintoken": self.login_token,
                "username": self.username,
                "password": self.password,
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Origin": self.client.settings.base_url,
                "Referer": login_url,
            },
            allow_redirects=False,
        )
        self._absorb(page)
        self._submit_page = page
        self._record(LoginState.SUBMIT_CREDENTIALS, url=page.location or page.url, status=page.status_code)

        if page.is_redirect:
            return LoginState.CLASSIFY_REDIRECT
        if not page.ok:
            raise TransportError(f"Login submit answered HTTP {page.status_code}", url=login_url)
        return LoginState.NO_REDIRECT

    def _classify_redirect(self) -> LoginState:
        page = self._submit_page
        location = page.location if page else None
        self._record(LoginState.CLASSIFY_REDIRECT, url=location)

        if is_bridge_url(location):
            self._bridge_url = location
            return LoginState.FOLLOW_BRIDGE

        if is_login_url(location):
            message = extract_login_error(page.text) or self._error_from(location)
            return self._fail(REASON_INVALID_CREDENTIALS, message or "Authentication failed - invalid credentials")

        self.redirect_url = location
        return LoginState.AUTHENTICATED

    def _no_redirect(self) -> LoginState:
        page = self._submit_page
        self._record(LoginState.NO_REDIRECT, url=page.url, status=page.status_code)

        message = extract_login_error(page.text)
        if message:
            return self._fail(REASON_INVALID_CREDENTIALS, message)

        soup = page.soup()
        if soup.select_one('input[name="username"]') is None:
            self.redirect_url = page.url
            return LoginState.AUTHENTICATED

        return self._fail(REASON_INVALID_CREDENTIALS, "Authentication failed - invalid credentials")

    def _follow_bridge(self) -> LoginState:
        bridge_url = self._bridge_url
        page = self.client.get(
            bridge_url,
            self.cookies,
            allow_redirects=False,
            headers={"Referer": self.client.url(LOGIN_PAGE)},
        )
        self._absorb(page)
        self._bridge_page = page
        self._record(LoginState.FOLLOW_BRIDGE, url=page.location or page.url, status=page.status_code)

        if page.is_redirect:
            target = page.location
            if is_login_url(target):
                return self._fail(REASON_NO_SESSION, "Session could not be established (bridge returned to login)")
            if not is_bridge_url(target):
                landing = self.client.get(target, self.cookies, headers={"Referer": bridge_url})
                self._absorb(landing)
                self.redirect_url = landing.url
                self._record(LoginState.FOLLOW_BRIDGE, url=landing.url, status=landing.status_code,
                             detail="followed bridge redirect")
                return LoginState.AUTHENTICATED

        # Stuck on the bridge URL
        return LoginState.FORCE_SESSION

    def _force_session(self) -> LoginState:
        referer = self._bridge_page.url if self._bridge_page else self._bridge_url
        try:
            page = self.client.get(
                self.client.url(DASHBOARD_PAGE),
                self.cookies,
                headers={"Referer": referer or self.client.url(LOGIN_PAGE)},
            )
        except TransportError as e:
            logger.warning(f"Dashboard access after bridge failed, keeping bridge cookies: {e}")
            self._record(LoginState.FORCE_SESSION, url=self.client.url(DASHBOARD_PAGE), detail=str(e))
            self.redirect_url = referer
            return LoginState.AUTHENTICATED

        self._absorb(page)
        self.redirect_url = page.url
        self._record(LoginState.FORCE_SESSION, url=page.url, status=page.status_code)
        return LoginState.AUTHENTICATED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _error_from(self, login_url: Optional[str]) -> str:
        """The error is usually rendered on the login page we got sent back to."""
        if not login_url:
            return ""
        try:
            page = self.client.get(login_url, self.cookies)
        except TransportError as e:
            logger.debug(f"Could not load login error page: {e}")
            return ""
        return extract_login_error(page.text)


def login(client: SimaClient, username: str, password: str) -> LoginResult:
    """Log in with SIMA credentials and return the resulting cookie jar."""
    return LoginFlow(client, username, password).run()
