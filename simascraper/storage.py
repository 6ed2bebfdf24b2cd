"""
Persistent storage for the session cookie jar.

This module manages the file:

    ~/.simascraper/session.json      (or $SIMA_STATE_DIR/session.json)

Format:

    {"cookies": ["MoodleSession=...; path=/; HttpOnly", ...]}

`simascraper login` writes it; every other CLI command reads it, so the
credentials are only needed once per portal session.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)


def _default_session_path() -> Path:
    """
    Return the default path of session.json.

    Using a function instead of a constant makes testing easier,
    because tests can override the path (or SIMA_STATE_DIR).
    """
    base_dir = os.getenv("SIMA_STATE_DIR")
    root = Path(base_dir).expanduser() if base_dir else Path.home() / ".simascraper"
    return root / "session.json"


def load_cookies(path: str | Path | None = None) -> list[str]:
    """
    Load the stored cookie jar.

    Returns an empty list if the file does not exist or is invalid.
    """
    session_path = Path(path) if path is not None else _default_session_path()

    # Never logged in on this machine
    if not session_path.exists():
        return []

    try:
        data = json.loads(session_path.read_text(encoding="utf-8"))
        cookies = data.get("cookies", [])
        if not isinstance(cookies, list):
            return []
        return [c for c in cookies if isinstance(c, str) and c.strip()]
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable session file {session_path}: {e}")
        return []


def save_cookies(cookies: Iterable[str], path: str | Path | None = None) -> Path:
    """
    Save the cookie jar, creating parent directories if needed.

    The file holds live session credentials, so it is only readable by the
    owner.
    """
    session_path = Path(path) if path is not None else _default_session_path()
    session_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {"cookies": [c for c in cookies if isinstance(c, str) and c.strip()]}
    session_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    try:
        session_path.chmod(0o600)
    except OSError as e:
        logger.debug(f"Could not restrict permissions of {session_path}: {e}")
    return session_path


def clear_cookies(path: str | Path | None = None) -> bool:
    """Delete the stored jar. Returns False when there was nothing to delete."""
    session_path = Path(path) if path is not None else _default_session_path()
    try:
        session_path.unlink()
    except FileNotFoundError:
        return False
    return True
