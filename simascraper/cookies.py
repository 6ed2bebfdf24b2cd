"""
Cookie jar helpers.

A cookie jar here is simply the ordered list of raw Set-Cookie strings seen
across a request chain, e.g.:

    ["MoodleSession=abc; path=/; HttpOnly", "MOODLEID1_=xyz; path=/"]

Later entries win when the same cookie name appears more than once.
"""

from __future__ import annotations

from typing import Iterable


def cookie_map(cookies: Iterable[str]) -> dict[str, str]:
    """
    Canonicalize raw cookie strings into name -> value (last one wins).

    Entries without '=' or with an empty name/value are skipped.
    Insertion order of the first occurrence of each name is kept.
    """
    out: dict[str, str] = {}
    for raw in cookies:
        if not isinstance(raw, str):
            continue
        first = raw.split(";", 1)[0]
        if "=" not in first:
            continue
        name, value = first.split("=", 1)
        name = name.strip()
        value = value.strip()
        if name and value:
            out[name] = value
    return out


def parse_cookies(cookies: Iterable[str]) -> str:
    """
    Build a single Cookie request header from raw Set-Cookie strings.

    >>> parse_cookies(["a=1; path=/", "b=2", "a=3"])
    'a=3; b=2'
    """
    return "; ".join(f"{name}={value}" for name, value in cookie_map(cookies).items())


def merge_cookies(*jars: Iterable[str]) -> list[str]:
    """
    Concatenate jars in order. No de-duplication on purpose: the raw list
    keeps every hop, and cookie_map() resolves duplicates when sending.
    """
    out: list[str] = []
    for jar in jars:
        out.extend(jar)
    return out

