"""
HTTP transport.

SimaClient is the only place that talks to the network. Every scraping
function receives a client, so tests can pass a fake one that serves canned
pages (override `request`).

Cookie handling:
- the requests.Session jar is blocked, so nothing leaks between calls that
  use different cookie jars
- every call passes its own jar explicitly; while following redirects
  requests also carries cookies set by intermediate hops
- Page.set_cookies collects the raw Set-Cookie headers of every hop
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Iterable, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from simascraper.config import LOGIN_PATH, Settings
from simascraper.cookies import cookie_map, parse_cookies
from simascraper.errors import HttpStatusError, TransportError


logger = logging.getLogger(__name__)

REDIRECT_CODES = (301, 302, 303, 307, 308)


@dataclass
class Page:
    """
    Transport-neutral view of one HTTP response.

    url is the final URL (after redirects, if they were followed).
    """

    url: str
    status_code: int
    text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    set_cookies: list[str] = field(default_factory=list)
    history_urls: list[str] = field(default_factory=list)

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_CODES and bool(self.headers.get("location"))

    @property
    def location(self) -> Optional[str]:
        """Absolute redirect target, or None."""
        loc = self.headers.get("location")
        if not loc:
            return None
        return urljoin(self.url, loc)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> "Page":
        if not self.ok:
            raise HttpStatusError(self.status_code, self.url)
        return self

    def json(self) -> Any:
        """Decoded JSON body; raises ValueError when the body is not JSON."""
        return json.loads(self.text)

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.text or "", "html.parser")

    def landed_on_login(self) -> bool:
        return LOGIN_PATH in (self.url or "")


def _raw_set_cookies(response: requests.Response) -> list[str]:
    headers = getattr(response.raw, "headers", None)
    if headers is not None and hasattr(headers, "getlist"):
        return list(headers.getlist("Set-Cookie"))
    value = response.headers.get("Set-Cookie")
    return [value] if value else []


def page_from_response(response: requests.Response) -> Page:
    hops = list(response.history) + [response]
    set_cookies: list[str] = []
    for hop in hops:
        set_cookies.extend(_raw_set_cookies(hop))

    return Page(
        url=response.url,
        status_code=response.status_code,
        text=response.text or "",
        headers={k.lower(): v for k, v in response.headers.items()},
        set_cookies=set_cookies,
        history_urls=[h.url for h in response.history],
    )


class SimaClient:
    """Portal HTTP client bound to one Settings object."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None) -> None:
        self.settings = settings or Settings()
        self.session = session or requests.Session()
        # Never remember cookies between calls
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self.session.verify = self.settings.verify_tls

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------

    def default_headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": self.settings.accept_language,
        }
        headers.update(self.settings.extra_headers)
        return headers

    def request(
        self,
        method: str,
        url: str,
        cookies: Iterable[str] = (),
        *,
        allow_redirects: bool = True,
        data: Any = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Page:
        jar = list(cookies)
        merged_headers = self.default_headers()
        if headers:
            merged_headers.update(headers)

        logger.debug(
            f"{method} {url} (redirects={allow_redirects}, cookies={parse_cookies(jar)[:60]!r})"
        )
        try:
            response = self.session.request(
                method,
                url,
                cookies=cookie_map(jar),
                headers=merged_headers,
                data=data,
                json=json,
                allow_redirects=allow_redirects,
                timeout=self.settings.timeout,
                verify=self.settings.verify_tls,
            )
        except requests.exceptions.TooManyRedirects as e:
            raise TransportError(f"Too many redirects for {url}: {e}", url=url) from e
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

        page = page_from_response(response)
        logger.debug(f"-> {page.status_code} {page.url} (+{len(page.set_cookies)} cookies)")
        return page

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def get(self, url: str, cookies: Iterable[str] = (), **kwargs: Any) -> Page:
        return self.request("GET", url, cookies, **kwargs)

    def post(self, url: str, cookies: Iterable[str] = (), **kwargs: Any) -> Page:
        kwargs.setdefault("allow_redirects", False)
        return self.request("POST", url, cookies, **kwargs)

    def url(self, path: str = "", **params: Any) -> str:
        return self.settings.url(path, **params)

    def absolute(self, href: Optional[str]) -> Optional[str]:
        return self.settings.absolute(href)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "SimaClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
