"""
Shared test helpers.

FakeClient is a SimaClient whose `request` never touches the network:
routes map a URL (or a (method, url) pair) to what the portal should answer:

- a Page                      returned as is
- an Exception instance       raised
- a callable(method, url, kw) called, its return value used
- a list of any of the above  consumed one per call (last one repeats)

Unrouted URLs answer 404. Every call is recorded in `calls`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from simascraper.client import Page, SimaClient
from simascraper.config import Settings


BASE = "https://sima.test"


def settings(**overrides: Any) -> Settings:
    values = {"base_url": BASE}
    values.update(overrides)
    return Settings(**values)


def page(
    url: str,
    text: str = "",
    status: int = 200,
    location: Optional[str] = None,
    set_cookies: Optional[list[str]] = None,
    headers: Optional[dict[str, str]] = None,
) -> Page:
    all_headers = {k.lower(): v for k, v in (headers or {}).items()}
    if location:
        all_headers["location"] = location
    return Page(url=url, status_code=status, text=text, headers=all_headers, set_cookies=list(set_cookies or []))


def redirect(url: str, location: str, set_cookies: Optional[list[str]] = None, status: int = 303) -> Page:
    return page(url, status=status, location=location, set_cookies=set_cookies)


@dataclass
class Call:
    method: str
    url: str
    cookies: list[str]
    kwargs: dict[str, Any] = field(default_factory=dict)


class FakeClient(SimaClient):
    def __init__(self, routes: Optional[dict] = None, **setting_overrides: Any) -> None:
        super().__init__(settings(**setting_overrides))
        self.routes: dict = dict(routes or {})
        self.calls: list[Call] = []

    def route(self, key, answer) -> "FakeClient":
        self.routes[key] = answer
        return self

    def _lookup(self, method: str, url: str):
        if (method, url) in self.routes:
            return self.routes[(method, url)]
        return self.routes.get(url)

    def request(self, method, url, cookies=(), **kwargs) -> Page:
        self.calls.append(Call(method=method, url=url, cookies=list(cookies), kwargs=kwargs))

        answer = self._lookup(method, url)
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        if answer is None:
            return page(url, status=404)
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return answer(method, url, kwargs)
        return answer

    def urls(self, method: Optional[str] = None) -> list[str]:
        return [c.url for c in self.calls if method is None or c.method == method]


def url(path: str = "", **params: Any) -> str:
    return settings().url(path, **params)


def fixture_html(body: str) -> str:
    return f"<!DOCTYPE html><html><head><title>SIMA</title></head><body>{body}</body></html>"
