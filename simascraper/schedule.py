"""
Schedule assembly and orchestration.

convert_events_to_schedule() is pure: it turns a flat list of calendar
events into ScheduleData groups, one per date.

Date key and start time of an event come from, in order:
1. metadata.date (Spanish long date) + metadata.time   (timeline rows)
2. metadata.date only, timestart == 0                   (month grid; no time)
3. timestart, converted to the portal time zone

Within a date, activities are sorted by startTime ("HH:MM", so string order
is time order); dates are sorted ascending. Every input event lands in
exactly one group.

get_schedule() is the entry point used by the CLI: it scrapes, enriches,
assembles and, for an empty "day", searches forward for the next day that
has something.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import tzinfo
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

from simascraper.activity_dates import enhance_events_with_activity_dates
from simascraper.calendar_events import get_calendar_events
from simascraper.client import SimaClient
from simascraper.config import DEFAULT_TIMEZONE
from simascraper.errors import ConfigError, SessionExpired
from simascraper.model import Activity, CalendarEvent, CourseInfo, CourseRef, ScheduleData, Serializable
from simascraper.session import validate_session
from simascraper.timeparse import (
    add_days,
    format_hhmm,
    local_datetime,
    normalize_time,
    parse_iso_date,
    parse_spanish_date,
    today,
)


logger = logging.getLogger(__name__)

PERIODS = ("day", "week", "month", "upcoming")

# The portal has no week view; a week is served from the month page
PERIOD_VIEWS = {"day": "day", "week": "month", "month": "month", "upcoming": "upcoming"}


# ---------------------------------------------------------------------------
# Assembly (pure)
# ---------------------------------------------------------------------------


def _slot(event: CalendarEvent, tz: tzinfo) -> tuple[str, str]:
    """(date key, start time) of one event."""
    meta = event.metadata
    if meta is not None and meta.date:
        iso = parse_spanish_date(meta.date)
        if iso and meta.time:
            return iso, normalize_time(meta.time) or meta.time.strip()
        if iso and not event.timestart:
            return iso, ""
        if iso is None:
            logger.debug(f"Unparseable event date {meta.date!r}, using timestart")

    start = local_datetime(event.timestart, tz)
    return start.date().isoformat(), format_hhmm(start.hour, start.minute)


def _end_time(event: CalendarEvent, tz: tzinfo) -> Optional[str]:
    if event.timeduration > 0 and event.timestart:
        end = local_datetime(event.timestart + event.timeduration, tz)
        return format_hhmm(end.hour, end.minute)
    return None


def _course_for(event: CalendarEvent, courses_by_id: dict[str, CourseInfo]) -> Optional[CourseRef]:
    course = event.course
    if course is None:
        return None
    known = courses_by_id.get(course.id)
    if known is None or course.fullname:
        return replace(course)
    return CourseRef(id=course.id, fullname=known.name, shortname=course.shortname or known.shortname)


def event_to_activity(
    event: CalendarEvent,
    tz: tzinfo,
    courses_by_id: Optional[dict[str, CourseInfo]] = None,
) -> tuple[str, Activity]:
    date_key, start_time = _slot(event, tz)
    activity = Activity(
        id=event.id,
        title=event.name,
        start_time=start_time,
        end_time=_end_time(event, tz),
        description=event.description,
        location=event.location,
        type=event.eventtype,
        activity_dates=event.activity_dates,
        course=_course_for(event, courses_by_id or {}),
        url=event.url,
        metadata=event.metadata,
    )
    return date_key, activity


def convert_events_to_schedule(
    events: Iterable[CalendarEvent],
    courses: Optional[Iterable[CourseInfo]] = None,
    tz: Optional[tzinfo] = None,
) -> list[ScheduleData]:
    """
    Group events by date.

    tz is the time zone used to read timestart (default: the portal's).
    courses, when given, fills in course names for events that only know
    the course id.
    """
    zone = tz or ZoneInfo(DEFAULT_TIMEZONE)
    courses_by_id = {c.id: c for c in courses or []}

    groups: "OrderedDict[str, list[Activity]]" = OrderedDict()
    for event in events:
        date_key, activity = event_to_activity(event, zone, courses_by_id)
        groups.setdefault(date_key, []).append(activity)

    return [
        ScheduleData(date=date_key, activities=sorted(activities, key=lambda a: a.start_time))
        for date_key, activities in sorted(groups.items())
    ]


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------


def _check_period(period: str) -> str:
    if period not in PERIOD_VIEWS:
        raise ConfigError(f"Unknown period {period!r} (expected one of: {', '.join(PERIODS)})")
    return PERIOD_VIEWS[period]


def collect_schedule(
    client: SimaClient,
    cookies: Iterable[str],
    period: str,
    course_id: Optional[str] = None,
    date: Optional[str] = None,
) -> list[ScheduleData]:
    """Fetch, enrich and assemble one period. Does not validate the session."""
    view = _check_period(period)
    jar = list(cookies)

    events = get_calendar_events(client, jar, view=view, course_id=course_id, date=date)
    enriched = enhance_events_with_activity_dates(client, jar, events)
    return convert_events_to_schedule(enriched, tz=client.settings.tz)


def scrape_schedule(
    client: SimaClient,
    cookies: Iterable[str],
    period: str,
    course_id: Optional[str] = None,
    date: Optional[str] = None,
) -> list[ScheduleData]:
    """
    Schedule of one period for an authenticated cookie jar.

    Raises SessionExpired when the jar is not logged in anymore.
    """
    _check_period(period)
    jar = list(cookies)
    if not validate_session(client, jar):
        raise SessionExpired()
    return collect_schedule(client, jar, period, course_id, date)


@dataclass
class DayLookup(Serializable):
    """
    Result of a schedule request.

    date is the day the schedule belongs to (the matched day after a
    forward search). attempts counts the extra days that were queried.
    """

    date: str
    schedule: List[ScheduleData] = field(default_factory=list)
    attempts: int = 0

    @property
    def found(self) -> bool:
        return any(group.activities for group in self.schedule)


def find_next_available_day(
    fetch: Callable[[str], list[ScheduleData]],
    start_date: str,
    max_days: int,
) -> DayLookup:
    """
    Query start_date + 1, + 2, ... until fetch() returns activities.

    Never calls fetch() more than max_days times. When nothing is found the
    result carries start_date and an empty schedule.
    """
    parse_iso_date(start_date)

    for offset in range(1, max_days + 1):
        candidate = add_days(start_date, offset)
        schedule = fetch(candidate)
        if any(group.activities for group in schedule):
            logger.info(f"Next day with activities: {candidate} (after {offset} attempts)")
            return DayLookup(date=candidate, schedule=schedule, attempts=offset)

    logger.info(f"No activities in the {max_days} days after {start_date}")
    return DayLookup(date=start_date, schedule=[], attempts=max_days)


def get_schedule(
    client: SimaClient,
    cookies: Iterable[str],
    period: str = "day",
    course_id: Optional[str] = None,
    date: Optional[str] = None,
    max_days: Optional[int] = None,
) -> DayLookup:
    """
    Schedule for a period, starting at `date` (default: today, portal time).

    An empty "day" triggers the forward search over the following
    max_days days (default settings.max_days_ahead).
    """
    _check_period(period)
    jar = list(cookies)
    target = date or today(client.settings.tz)
    try:
        parse_iso_date(target)
    except ValueError as e:
        raise ConfigError(str(e)) from None

    schedule = scrape_schedule(client, jar, period, course_id, target)
    lookup = DayLookup(date=target, schedule=schedule)
    if period != "day" or lookup.found:
        return lookup

    budget = client.settings.max_days_ahead if max_days is None else max_days
    logger.info(f"No activities on {target}, searching the next {budget} days")
    return find_next_available_day(
        lambda day: collect_schedule(client, jar, "day", course_id, day),
        target,
        budget,
    )
