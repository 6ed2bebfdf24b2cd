"""
Central data model definitions used across the project.

Every scraping call builds these objects fresh; nothing is cached.

Field names are snake_case in Python. to_dict() produces the JSON contract
the surrounding HTTP layer serves (camelCase keys, optional fields left out
when they are None), e.g. CalendarEvent.activity_dates -> "activityDates".
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Iterable, List, Optional, TypeVar


T = TypeVar("T")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _to_json(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in fields(value):
            if not f.metadata.get("serialize", True):
                continue
            item = getattr(value, f.name)
            if item is None:
                continue
            out[_camel(f.name)] = _to_json(item)
        return out
    if isinstance(value, (list, tuple)):
        return [_to_json(x) for x in value]
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    return value


class Serializable:
    def to_dict(self) -> dict[str, Any]:
        return _to_json(self)


def to_json_data(value: Any) -> Any:
    """to_dict() for a single model object or any list of them."""
    return _to_json(value)


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


@dataclass
class CourseRef(Serializable):
    """Course as referenced from inside an event."""

    id: str
    fullname: str
    shortname: str


@dataclass
class ActivityDates(Serializable):
    """
    Submission window as printed by the portal ("Apertura:" / "Cierre:").

    The strings are kept exactly as displayed, e.g.
    "lunes, 6 de octubre de 2025, 00:00".
    """

    apertura: Optional[str] = None
    cierre: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.apertura or self.cierre)


@dataclass
class EventMetadata(Serializable):
    date: Optional[str] = None
    time: Optional[str] = None
    action_type: Optional[str] = None
    action_button: Optional[str] = None
    action_button_url: Optional[str] = None
    activity_icon: Optional[str] = None
    component: Optional[str] = None
    eventtype: Optional[str] = None


# ---------------------------------------------------------------------------
# Courses and calendar
# ---------------------------------------------------------------------------


@dataclass
class CourseInfo(Serializable):
    """
    One course as listed on the user's course page.

    id is the portal-internal numeric id used by every per-course call.
    """

    id: str
    name: str
    shortname: str


@dataclass
class CalendarEvent(Serializable):
    """
    One calendar entry.

    timestart is epoch seconds; 0 means the page layout did not expose a
    time (month grid, generic fallback).
    """

    id: str
    name: str
    timestart: int = 0
    timeduration: int = 0
    eventtype: str = "activity"
    description: Optional[str] = None
    course: Optional[CourseRef] = None
    location: Optional[str] = None
    url: Optional[str] = None
    activity_dates: Optional[ActivityDates] = None
    metadata: Optional[EventMetadata] = None


@dataclass
class Activity(Serializable):
    """Schedule-facing projection of a CalendarEvent."""

    id: str
    title: str
    start_time: str
    type: str
    end_time: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    activity_dates: Optional[ActivityDates] = None
    course: Optional[CourseRef] = None
    url: Optional[str] = None
    metadata: Optional[EventMetadata] = None


@dataclass
class ScheduleData(Serializable):
    date: str
    activities: List[Activity] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Course sections
# ---------------------------------------------------------------------------


@dataclass
class CourseActivity(Serializable):
    id: str
    name: str
    type: str
    section: int
    section_name: Optional[str] = None
    url: Optional[str] = None
    dates: Optional[ActivityDates] = None
    icon: Optional[str] = None
    description: Optional[str] = None


@dataclass
class CourseSection(Serializable):
    section_number: int
    section_name: str
    activities: List[CourseActivity] = field(default_factory=list)


@dataclass
class Omitted(Serializable):
    """
    An item deliberately left out of a best-effort batch.

    key identifies the item (e.g. "section:3", "course:1234"); reason is the
    error text that caused the omission.
    """

    key: str
    reason: str


@dataclass
class CourseSchedule(Serializable):
    """
    All activities of one course, grouped by section.

    Invariant: total_activities == sum(len(s.activities) for s in sections).
    Sections that failed or were empty are not in `sections`; failures are
    listed in `omitted` (not part of the JSON contract).
    """

    course_id: str
    course_name: str
    sections: List[CourseSection] = field(default_factory=list)
    total_activities: int = 0
    last_updated: str = ""
    omitted: List[Omitted] = field(default_factory=list, metadata={"serialize": False})


class Collected(List[T]):
    """
    A plain list of results that also remembers what was left out.

    Callers that only care about the data use it as a list; tests and
    diagnostics can inspect `.omitted` to tell "legitimately empty" from
    "some items failed".
    """

    def __init__(self, items: Iterable[T] = (), omitted: Optional[Iterable[Omitted]] = None) -> None:
        super().__init__(items)
        self.omitted: list[Omitted] = list(omitted or [])

    def omit(self, key: str, reason: str) -> None:
        self.omitted.append(Omitted(key=key, reason=reason))


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@dataclass
class LoginStep(Serializable):
    """One transition of the login state machine."""

    state: str
    url: Optional[str] = None
    status: Optional[int] = None
    detail: Optional[str] = None


@dataclass
class SessionData(Serializable):
    login_token: str
    redirect_url: Optional[str] = None


@dataclass
class LoginResult(Serializable):
    """
    Outcome of a login attempt.

    cookies is the union of every Set-Cookie seen across all hops.
    reason is "invalid_credentials" or "session_not_established" on failure.
    """

    success: bool
    cookies: List[str] = field(default_factory=list)
    session_data: Optional[SessionData] = None
    error: Optional[str] = None
    reason: Optional[str] = field(default=None, metadata={"serialize": False})
    trace: List[LoginStep] = field(default_factory=list, metadata={"serialize": False})
