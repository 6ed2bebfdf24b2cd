"""
Session helpers: sesskey resolution and session validation.

- get_session_key(): the anti-CSRF token Moodle requires for AJAX calls
- validate_session(): is this cookie jar still logged in?

Neither function caches anything. A sesskey is cheap to fetch and only valid
as long as its cookie jar, so it is resolved again for every AJAX call.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from simascraper.client import Page, SimaClient
from simascraper.config import CALENDAR_PAGE, DASHBOARD_PAGE, LOGIN_PATH
from simascraper.errors import SessionExpired, SessionKeyNotFound


logger = logging.getLogger(__name__)

SESSKEY_RE = re.compile(r"""sesskey["']?\s*[:=]\s*["']?([^"',\s]+)""", re.IGNORECASE)
USERNAME_FIELD_RE = re.compile(r"""\b(?:name|id)\s*=\s*["']?username(?:["'\s/>]|$)""", re.IGNORECASE)
PASSWORD_FIELD_RE = re.compile(r"""\b(?:name|id)\s*=\s*["']?password(?:["'\s/>]|$)""", re.IGNORECASE)

# Text shown by the portal when a session died (compared lowercase)
SESSION_EXPIRED_INDICATORS = (
    "su sesión ha caducado",
    "tu sesión ha caducado",
    "la sesión ha expirado",
    "sesión expirada",
    "your session has timed out",
    "session has expired",
)


# ---------------------------------------------------------------------------
# Login page detection (shared with courses / calendar scrapers)
# ---------------------------------------------------------------------------


def has_login_form(html: str | None) -> bool:
    """
    True when the page carries both a username and a password field.

    Regex over the raw text: it also matches truncated or broken markup
    that an HTML parser might not recover.
    """
    text = html or ""
    return bool(USERNAME_FIELD_RE.search(text)) and bool(PASSWORD_FIELD_RE.search(text))


def looks_expired(html: str | None) -> bool:
    lower = (html or "").lower()
    if 'id="loginform"' in lower or "class=\"loginform\"" in lower:
        return True
    return any(marker in lower for marker in SESSION_EXPIRED_INDICATORS)


def is_login_bounce(page: Page) -> bool:
    """The request ended on the login page instead of the page we wanted."""
    return page.landed_on_login() or has_login_form(page.text)


# ---------------------------------------------------------------------------
# sesskey
# ---------------------------------------------------------------------------


def extract_session_key(html: str) -> Optional[str]:
    """
    Find the sesskey in a page. Strategies, in order:
    1. <input name="sesskey" value="...">
    2. any element with a data-sesskey attribute
    3. regex over the raw HTML (M.cfg JSON, inline JS, query strings)
    """
    soup = BeautifulSoup(html or "", "html.parser")

    field = soup.select_one('input[name="sesskey"]')
    if field and field.get("value"):
        return field["value"].strip()

    holder = soup.select_one("[data-sesskey]")
    if holder and holder.get("data-sesskey"):
        return holder["data-sesskey"].strip()

    m = SESSKEY_RE.search(html or "")
    if m:
        return m.group(1)
    return None


def get_session_key(client: SimaClient, cookies: Iterable[str]) -> str:
    """
    Resolve the sesskey for an authenticated cookie jar.

    Raises SessionExpired when the portal bounced us to the login page and
    SessionKeyNotFound when the page had no token. Callers should treat
    both as "log in again".
    """
    page = client.get(client.url(CALENDAR_PAGE), cookies)

    if is_login_bounce(page):
        raise SessionExpired()

    page.raise_for_status()

    sesskey = extract_session_key(page.text)
    if not sesskey:
        raise SessionKeyNotFound()

    logger.debug(f"Resolved sesskey {sesskey[:4]}...")
    return sesskey


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_session(client: SimaClient, cookies: Iterable[str]) -> bool:
    """
    Return True when the cookie jar is still authenticated.

    Requests the dashboard without following redirects. Transport errors are
    not caught: the caller decides what "cannot tell" means (usually: assume
    invalid).
    """
    page = client.get(client.url(DASHBOARD_PAGE), cookies, allow_redirects=False)

    if page.is_redirect:
        location = page.location or ""
        if LOGIN_PATH in location:
            logger.info(f"Session invalid - redirected to login ({location})")
            return False
        return True

    if has_login_form(page.text):
        logger.info("Session invalid - login form on dashboard")
        return False

    if looks_expired(page.text):
        logger.info("Session invalid - expiry marker on dashboard")
        return False

    return True
