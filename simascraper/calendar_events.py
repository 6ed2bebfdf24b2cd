"""
Calendar scraping (network side).

    get_calendar_events()   calendar/view.php pages, any view
    get_upcoming_events()   the AJAX upcoming view of one course

Parsing lives in calendar_parse.py; this module only fetches and decides
what a failure means. The AJAX path is best-effort (failure -> empty result
with the reason recorded), the page path propagates errors.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from simascraper.calendar_parse import ParseContext, parse_calendar_html, parse_upcoming_response, requested_time_param
from simascraper.client import SimaClient
from simascraper.config import AJAX_SERVICE, CALENDAR_PAGE
from simascraper.errors import ConfigError, SessionExpired, SimaError
from simascraper.model import CalendarEvent, Collected, Omitted
from simascraper.session import get_session_key, is_login_bounce
from simascraper.timeparse import parse_iso_date


logger = logging.getLogger(__name__)

UPCOMING_METHOD = "core_calendar_get_calendar_upcoming_view"

VIEWS = ("day", "month", "upcoming")


def calendar_url(client: SimaClient, view: str, course_id: Optional[str] = None, date: Optional[str] = None) -> str:
    """
    >>> calendar_url(SimaClient(), "day", None, "2025-10-11")
    'https://sima.unicartagena.edu.co/calendar/view.php?view=day&course=1&time=1760140800'
    """
    return client.url(CALENDAR_PAGE, view=view, course=course_id or 1, time=requested_time_param(date))


def get_upcoming_events(client: SimaClient, cookies: Iterable[str], course_id: str) -> Collected[CalendarEvent]:
    """
    Upcoming events of one course through lib/ajax/service.php.

    Never raises: any failure (sesskey, transport, malformed answer, Moodle
    error payload) yields an empty result whose .omitted says why.
    """
    jar = list(cookies)
    key = f"upcoming:{course_id}"
    try:
        sesskey = get_session_key(client, jar)
        page = client.post(
            client.url(AJAX_SERVICE, sesskey=sesskey, info=UPCOMING_METHOD),
            jar,
            json=[{"index": 0, "methodname": UPCOMING_METHOD, "args": {"courseid": int(course_id)}}],
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json, text/javascript, */*; q=0.01",
                "X-Requested-With": "XMLHttpRequest",
            },
        )
        page.raise_for_status()
        payload = page.json()
    except (SimaError, ValueError) as e:
        logger.error(f"Error fetching upcoming events for course {course_id}: {e}")
        return Collected(omitted=[Omitted(key=key, reason=str(e))])

    first = payload[0] if isinstance(payload, list) and payload else None
    if not isinstance(first, dict) or first.get("error") or not isinstance(first.get("data"), dict):
        reason = "Unexpected AJAX response"
        if isinstance(first, dict) and isinstance(first.get("exception"), dict):
            reason = first["exception"].get("message") or reason
        logger.error(f"Upcoming events for course {course_id}: {reason}")
        return Collected(omitted=[Omitted(key=key, reason=reason)])

    events = parse_upcoming_response(first["data"])
    logger.info(f"Found {len(events)} upcoming events for course {course_id}")
    return Collected(events)


def get_calendar_events(
    client: SimaClient,
    cookies: Iterable[str],
    view: str = "month",
    course_id: Optional[str] = None,
    date: Optional[str] = None,
) -> list[CalendarEvent]:
    """
    Calendar events for a view ("day", "month" or "upcoming").

    A date ("YYYY-MM-DD") selects the day/month shown. "upcoming" with a
    course id goes through the AJAX service instead of the page.

    Raises ConfigError for a malformed date and SessionExpired when the
    portal answers with its login page; transport and HTTP errors propagate.
    """
    if date:
        try:
            parse_iso_date(date)
        except ValueError as e:
            raise ConfigError(str(e)) from None

    if view == "upcoming" and course_id:
        return get_upcoming_events(client, cookies, course_id)

    url = calendar_url(client, view, course_id, date)
    logger.info(f"Fetching calendar: {url}")

    page = client.get(url, cookies)
    if is_login_bounce(page):
        raise SessionExpired()
    page.raise_for_status()

    context = ParseContext(view=view, date=date, settings=client.settings)
    events = parse_calendar_html(page.text, context)
    logger.info(f"Parsed {len(events)} calendar events (view={view}, date={date})")
    return events
