"""
Calendar parsing (HTML/JSON -> CalendarEvent).

SIMA answers a calendar request with one of several layouts, depending on
the view and on markup changes nobody announces:

    TIMELINE    day view, [data-region="event-list-wrapper"] with date
                sections and event rows (has times)
    MONTH_GRID  a day was requested but a month table came back; events
                live in td[data-day="N"] cells (no times)
    GENERIC     day view without either marker; scan list items that look
                like events
    EVENT_LIST  month / upcoming page views

classify_page() picks the shape, and each shape has its own parser class
with the same parse(soup, context) signature.

Everything here is pure: no network access.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from simascraper.config import Settings
from simascraper.event_types import determine_event_type, from_component, map_action_type
from simascraper.model import CalendarEvent, CourseRef, EventMetadata
from simascraper.timeparse import day_timestamp, parse_time_of_day, same_day


logger = logging.getLogger(__name__)

DEFAULT_ICON_TEXT = "Evento de actividad"

EVENT_ID_RE = re.compile(r"[?&]id=(\d+)")
COURSE_ID_RE = re.compile(r"[?&]course=(\d+)")


class PageShape(str, Enum):
    TIMELINE = "timeline"
    MONTH_GRID = "month_grid"
    GENERIC = "generic"
    EVENT_LIST = "event_list"


@dataclass
class ParseContext:
    view: str = "month"
    date: Optional[str] = None
    settings: Optional[Settings] = None

    def absolute(self, href: Optional[str]) -> Optional[str]:
        settings = self.settings or Settings()
        return settings.absolute(href)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text(" ", strip=True).split())


def _first(root: Tag, selectors: str) -> Optional[Tag]:
    return root.select_one(selectors)


def _attr(el: Optional[Tag], name: str) -> Optional[str]:
    if el is None:
        return None
    value = el.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) and value.strip() else None


def _course_shortname(fullname: str) -> str:
    return fullname.split("-")[-1].strip() or fullname


def _id_from_url(url: Optional[str], pattern: re.Pattern) -> Optional[str]:
    if not url:
        return None
    m = pattern.search(url)
    return m.group(1) if m else None


# ---------------------------------------------------------------------------
# Shape detection
# ---------------------------------------------------------------------------


def classify_page(soup: BeautifulSoup, view: str, date: Optional[str] = None) -> PageShape:
    """Decide which layout a calendar page was rendered with."""
    if view != "day":
        return PageShape.EVENT_LIST
    if soup.select_one('[data-region="event-list-wrapper"]') is not None:
        return PageShape.TIMELINE
    if date and soup.select_one("td.day[data-day]") is not None:
        return PageShape.MONTH_GRID
    return PageShape.GENERIC


# ---------------------------------------------------------------------------
# Timeline / generic rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowSelectors:
    name_link: str
    name_fallback: Optional[str]
    course: str
    time: str
    action_button: str


TIMELINE_ROW = RowSelectors(
    name_link=".event-name a",
    name_fallback=None,
    course=".coursename-action .h-regular-6",
    time=".small-info-text",
    action_button=".timeline-action-button a",
)

GENERIC_ROW = RowSelectors(
    name_link=".event-name a, h6 a",
    name_fallback="h6",
    course=".coursename-action span, .h-regular-6",
    time=".small-info-text, small",
    action_button=".timeline-action-button a, .event-action a",
)


def parse_event_row(
    row: Tag,
    context: ParseContext,
    index: int,
    selectors: RowSelectors = TIMELINE_ROW,
    day_ts: Optional[int] = None,
    date_text: Optional[str] = None,
) -> Optional[CalendarEvent]:
    """
    Extract one event row (timeline layout or generic list item).

    Returns None when the row has no event name.
    """
    link = _first(row, selectors.name_link)
    name = _text(link)
    if not name and selectors.name_fallback:
        name = _text(_first(row, selectors.name_fallback))
    if not name:
        return None

    event_url = context.absolute(_attr(link, "href"))
    event_title = _attr(link, "title")

    course_name = _text(_first(row, selectors.course))
    action_text = _text(_first(row, ".coursename-action"))
    action_type = action_text.replace(course_name, "", 1).replace("-", "", 1).strip() if action_text else ""

    time_text = _text(_first(row, selectors.time))

    icon = _first(row, ".activityiconcontainer img")
    activity_icon = _attr(icon, "title") or _attr(icon, "alt") or DEFAULT_ICON_TEXT

    button = _first(row, selectors.action_button)
    button_text = _text(button)
    button_url = context.absolute(_attr(button, "href"))

    timestart = 0
    if day_ts is not None and time_text:
        parsed = parse_time_of_day(time_text)
        if parsed:
            hour, minute = parsed
            timestart = day_ts + hour * 3600 + minute * 60

    course = None
    if course_name:
        course = CourseRef(
            id=_id_from_url(event_url, COURSE_ID_RE) or "",
            fullname=course_name,
            shortname=_course_shortname(course_name),
        )

    fallback_id = f"event-{day_ts}-{index}" if day_ts is not None else f"event-alt-{index}"

    return CalendarEvent(
        id=_id_from_url(event_url, EVENT_ID_RE) or fallback_id,
        name=name,
        description=event_title or action_type,
        timestart=timestart,
        timeduration=0,
        course=course,
        eventtype=map_action_type(action_type, activity_icon),
        url=event_url,
        metadata=EventMetadata(
            date=date_text or None,
            time=time_text,
            action_type=action_type,
            action_button=button_text,
            action_button_url=button_url,
            activity_icon=activity_icon,
        ),
    )


class TimelineParser:
    """Day view rendered as a timeline: date sections containing event rows."""

    shape = PageShape.TIMELINE

    WRAPPERS = (
        '[data-region="event-list-wrapper"]',
        ".edw-timeline-event-list",
        '[data-region="event-list-content"]',
        ".timeline-event-list",
    )
    DATE_SECTIONS = (
        ".edw-timeline-event-list-item",
        '[data-region="day-content"]',
        ".timeline-event-list-item-wrapper",
    )
    EVENT_ROWS = (
        '[data-region="event-list-item"]',
        ".list-group-item",
        ".timeline-event-list-item",
    )

    @staticmethod
    def _first_match(root: Tag, selectors: tuple[str, ...]) -> list[Tag]:
        for selector in selectors:
            found = root.select(selector)
            if found:
                return found
        return []

    def parse(self, soup: BeautifulSoup, context: ParseContext) -> list[CalendarEvent]:
        wrappers = self._first_match(soup, self.WRAPPERS)
        if not wrappers:
            logger.debug("No timeline wrapper found, using generic parsing")
            return GenericParser().parse(soup, context)
        wrapper = wrappers[0]

        sections = self._first_match(wrapper, self.DATE_SECTIONS)
        if not sections:
            logger.debug("Timeline wrapper has no date sections")
            return []

        events: list[CalendarEvent] = []
        for section in sections:
            date_region = section.select_one('[data-region="event-list-content-date"]')
            date_text = _text(date_region.select_one("h5") if date_region else None) or _text(section.select_one("h5"))
            raw_ts = _attr(date_region, "data-timestamp")
            day_ts = int(raw_ts) if raw_ts and raw_ts.isdigit() else None

            if context.date and day_ts is not None and not same_day(context.date, day_ts):
                logger.debug(f"Skipping date section {date_text!r} (not {context.date})")
                continue

            rows = self._first_match(section, self.EVENT_ROWS)
            for index, row in enumerate(rows):
                event = parse_event_row(row, context, index, TIMELINE_ROW, day_ts=day_ts, date_text=date_text)
                if event is None:
                    logger.debug(f"Skipping timeline row {index} without a name")
                    continue
                events.append(event)

        logger.info(f"Timeline parser found {len(events)} events")
        return events


class GenericParser:
    """
    Last resort for day views: any list item that looks like an event.

    Items carry no timestamp; the requested day goes into metadata.date.
    """

    shape = PageShape.GENERIC

    CANDIDATES = '.list-group-item, [data-region="event-list-item"], .timeline-event-list-item'

    def parse(self, soup: BeautifulSoup, context: ParseContext) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for index, item in enumerate(soup.select(self.CANDIDATES)):
            has_icon = item.select_one(".activityiconcontainer") is not None
            has_name = item.select_one(".event-name, h6") is not None
            if not has_icon and not has_name:
                continue

            event = parse_event_row(item, context, index, GENERIC_ROW, date_text=context.date)
            if event is not None:
                events.append(event)

        logger.info(f"Generic parser found {len(events)} events")
        return events


# ---------------------------------------------------------------------------
# Month grid (day requested, month rendered)
# ---------------------------------------------------------------------------


class MonthGridParser:
    """
    Events of a single day taken from a month table.

    The month table has no time of day, so every event has timestart = 0;
    the requested date is kept in metadata.date instead.
    """

    shape = PageShape.MONTH_GRID

    def parse(self, soup: BeautifulSoup, context: ParseContext) -> list[CalendarEvent]:
        if not context.date:
            logger.warning("Month grid parser needs a date")
            return []

        day_of_month = str(int(context.date.split("-")[2]))
        cells = soup.select(f'td.day[data-day="{day_of_month}"]') or soup.select(f'td[data-day="{day_of_month}"]')
        if not cells:
            available = ", ".join(td.get("data-day", "") for td in soup.select("td[data-day]"))
            logger.info(f"Day cell {day_of_month} not found (available: {available})")
            return []

        events: list[CalendarEvent] = []
        for cell in cells:
            for index, item in enumerate(cell.select('[data-region="event-item"]')):
                link = item.select_one('a[data-action="view-event"]')
                name = _text(link.select_one(".eventname") if link else None)
                if not name:
                    logger.debug(f"Skipping month cell event {index} without a name")
                    continue

                component = _attr(item, "data-event-component")
                eventtype = _attr(item, "data-event-eventtype")
                event_id = _attr(item.select_one("a[data-event-id]"), "data-event-id") or f"event-{index}"

                events.append(
                    CalendarEvent(
                        id=event_id,
                        name=name,
                        description=_attr(link, "title") or "",
                        timestart=0,
                        timeduration=0,
                        eventtype=from_component(component, eventtype),
                        url=context.absolute(_attr(link, "href")) or "",
                        metadata=EventMetadata(date=context.date, component=component, eventtype=eventtype),
                    )
                )

        logger.info(f"Month grid parser found {len(events)} events for day {day_of_month}")
        return events


# ---------------------------------------------------------------------------
# Month / upcoming page views
# ---------------------------------------------------------------------------


class EventListParser:
    """Broad scan used for non-day views."""

    shape = PageShape.EVENT_LIST

    CANDIDATES = '.calendar-event, .event, [data-event-id], [data-region="event-item"]'

    def parse(self, soup: BeautifulSoup, context: ParseContext) -> list[CalendarEvent]:
        matched = soup.select(self.CANDIDATES)
        matched_ids = {id(el) for el in matched}

        events: list[CalendarEvent] = []
        for index, el in enumerate(matched):
            # nested matches (li[data-region=event-item] > a[data-event-id]) describe the same event
            if any(id(parent) in matched_ids for parent in el.parents):
                continue
            event = self._parse_item(el, context, index)
            if event is not None:
                events.append(event)

        logger.info(f"Event list parser found {len(events)} events")
        return events

    def _parse_item(self, el: Tag, context: ParseContext, index: int) -> Optional[CalendarEvent]:
        nested = el.select_one("[data-event-id]")
        event_id = (
            _attr(el, "data-event-id")
            or _attr(el, "data-event")
            or _attr(nested, "data-event-id")
            or f"event-{index}"
        )

        name = (
            _text(el.select_one(".event-name, .eventname, .event-title, h3, .title"))
            or _attr(el, "title")
            or (el.get_text("\n", strip=True).split("\n")[0] if el.get_text(strip=True) else "")
        )
        if not name:
            return None

        description = _text(el.select_one(".event-description, .description, .eventdescription, .content"))
        location = _text(el.select_one(".event-location, .location, .eventlocation"))
        time_text = _text(el.select_one(".event-time, .time, .eventtime, [data-time]"))
        class_names = " ".join(el.get("class") or [])

        href = (
            _attr(el.select_one("a"), "href")
            or _attr(el, "href")
            or _attr(el.select_one('[href*="/mod/"]'), "href")
            or _attr(el.select_one('[href*="view.php"]'), "href")
        )

        # Moodle month cells carry the day's midnight timestamp
        timestart = 0
        cell = el.find_parent(attrs={"data-day-timestamp": True})
        raw_ts = _attr(cell, "data-day-timestamp")
        if raw_ts and raw_ts.isdigit():
            timestart = int(raw_ts)
            parsed = parse_time_of_day(time_text)
            if parsed:
                timestart += parsed[0] * 3600 + parsed[1] * 60

        return CalendarEvent(
            id=event_id,
            name=name,
            description=description or None,
            timestart=timestart,
            timeduration=0,
            location=location or None,
            eventtype=determine_event_type(class_names, name),
            url=context.absolute(href),
            metadata=EventMetadata(time=time_text) if time_text else None,
        )


PARSERS = {
    PageShape.TIMELINE: TimelineParser(),
    PageShape.MONTH_GRID: MonthGridParser(),
    PageShape.GENERIC: GenericParser(),
    PageShape.EVENT_LIST: EventListParser(),
}


def parse_calendar_html(html: str, context: ParseContext) -> list[CalendarEvent]:
    soup = BeautifulSoup(html or "", "html.parser")
    shape = classify_page(soup, context.view, context.date)
    logger.debug(f"Calendar page shape: {shape.value} (view={context.view}, date={context.date})")
    return PARSERS[shape].parse(soup, context)


# ---------------------------------------------------------------------------
# Upcoming view (AJAX JSON)
# ---------------------------------------------------------------------------


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_upcoming_response(data: dict[str, Any]) -> list[CalendarEvent]:
    """Map core_calendar_get_calendar_upcoming_view data to events."""
    events: list[CalendarEvent] = []
    for raw in data.get("events") or []:
        if not isinstance(raw, dict):
            continue
        course_raw = raw.get("course")
        course = None
        if isinstance(course_raw, dict):
            course = CourseRef(
                id=str(course_raw.get("id") or ""),
                fullname=course_raw.get("fullname") or "",
                shortname=course_raw.get("shortname") or "",
            )

        events.append(
            CalendarEvent(
                id=str(raw.get("id") or ""),
                name=raw.get("name") or "",
                description=raw.get("description") or "",
                timestart=_as_int(raw.get("timestart")),
                timeduration=_as_int(raw.get("timeduration")),
                course=course,
                location=raw.get("location") or "",
                eventtype=raw.get("eventtype") or "activity",
                url=raw.get("url") or "",
            )
        )
    return events


def requested_time_param(date: Optional[str]) -> Optional[int]:
    """Value for the calendar `time=` query parameter."""
    return day_timestamp(date) if date else None
