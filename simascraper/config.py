"""
Configuration.

The portal root URL is an external dependency and must never be hard-coded
at call sites: everything builds URLs through Settings.url().

Values come from (highest priority first):
- explicit Settings(...) arguments
- environment variables (optionally loaded from a .env file)
- the defaults below
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from simascraper.errors import ConfigError


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "https://sima.unicartagena.edu.co"
DEFAULT_TIMEOUT = 30.0
DEFAULT_TIMEZONE = "America/Bogota"
DEFAULT_SECTION_COUNT = 5
DEFAULT_MAX_DAYS_AHEAD = 30

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/141.0.0.0 Safari/537.36"
)
ACCEPT_LANGUAGE = "es-419,es;q=0.9,en;q=0.8"

# Portal paths (relative to base_url)
LOGIN_PATH = "/login/"
LOGIN_PAGE = "login/index.php"
DASHBOARD_PAGE = "my/"
CALENDAR_PAGE = "calendar/view.php"
COURSE_PAGE = "course/view.php"
AJAX_SERVICE = "lib/ajax/service.php"
BRIDGE_MARKER = "testsession="

COURSE_LIST_CANDIDATES = ("course/index.php", "my/courses.php", "", "my/")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Injectable transport/engine configuration.

    TLS verification is on by default; turning it off is an explicit choice
    (SIMA_VERIFY_TLS=0), never a silent global.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = True
    user_agent: str = USER_AGENT
    accept_language: str = ACCEPT_LANGUAGE
    timezone: str = DEFAULT_TIMEZONE
    section_count: int = DEFAULT_SECTION_COUNT
    max_days_ahead: int = DEFAULT_MAX_DAYS_AHEAD
    extra_headers: dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        base = (self.base_url or "").strip().rstrip("/")
        if not base.startswith(("http://", "https://")):
            raise ConfigError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        object.__setattr__(self, "base_url", base)
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.section_count < 1:
            raise ConfigError(f"section_count must be >= 1, got {self.section_count}")
        if self.max_days_ahead < 0:
            raise ConfigError(f"max_days_ahead must be >= 0, got {self.max_days_ahead}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown timezone: {self.timezone!r}") from None

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None, **overrides) -> "Settings":
        """
        Build settings from SIMA_* environment variables.

        A .env file is loaded first (without overriding variables that are
        already set). Range checks happen in __post_init__, for environment
        values and explicit arguments alike.
        """
        load_dotenv(dotenv_path)

        values = {
            "base_url": os.getenv("SIMA_BASE_URL") or DEFAULT_BASE_URL,
            "timeout": _env_float("SIMA_TIMEOUT", DEFAULT_TIMEOUT),
            "verify_tls": _env_bool("SIMA_VERIFY_TLS", True),
            "timezone": os.getenv("SIMA_TIMEZONE") or DEFAULT_TIMEZONE,
            "section_count": _env_int("SIMA_SECTION_COUNT", DEFAULT_SECTION_COUNT),
            "max_days_ahead": _env_int("SIMA_MAX_DAYS_AHEAD", DEFAULT_MAX_DAYS_AHEAD),
        }
        return cls(**values).with_overrides(**overrides)

    def with_overrides(self, **changes) -> "Settings":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def url(self, path: str = "", **params) -> str:
        """
        Absolute portal URL for a relative path, with optional query params.

        >>> Settings().url("course/view.php", id=12, section=3)
        'https://sima.unicartagena.edu.co/course/view.php?id=12&section=3'
        """
        out = f"{self.base_url}/{path.lstrip('/')}"
        query = {k: v for k, v in params.items() if v is not None}
        if query:
            out += "?" + urlencode(query)
        return out

    def absolute(self, href: str | None) -> str | None:
        """Resolve an href scraped from a page against base_url."""
        if not href:
            return href
        if href.startswith(("http://", "https://")):
            return href
        if href.startswith("/"):
            return f"{self.base_url}{href}"
        return f"{self.base_url}/{href}"
