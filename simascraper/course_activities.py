"""
Course activities, section by section.

A course page only renders the section it was asked for, so the course is
read as:

    course/view.php?id=<id>              course title
    course/view.php?id=<id>&section=1    activities of section 1
    ...
    course/view.php?id=<id>&section=N    (N = settings.section_count)

Sections are fetched sequentially. A section that fails or has no activities
is left out; the rest of the course is still returned.
"""

from __future__ import annotations

import copy
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from simascraper.activity_dates import parse_activity_dates
from simascraper.client import SimaClient
from simascraper.config import COURSE_PAGE
from simascraper.errors import SessionExpired, SimaError
from simascraper.model import Collected, CourseActivity, CourseSchedule, CourseSection, Omitted
from simascraper.session import is_login_bounce


logger = logging.getLogger(__name__)

DEFAULT_COURSE_NAME = "Curso sin nombre"
MODTYPE_RE = re.compile(r"^modtype_(\w+)$")

# Labels are plain text blocks, not activities
SKIPPED_TYPES = ("label",)


def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text(" ", strip=True).split())


def activity_type(item: Tag) -> str:
    for cls in item.get("class") or []:
        m = MODTYPE_RE.match(cls)
        if m:
            return m.group(1)
    return "unknown"


def activity_name(item: Tag) -> str:
    """Visible activity name, without the screen-reader-only suffix."""
    instance = item.select_one(".instancename")
    if instance is not None:
        instance = copy.copy(instance)
        for hidden in instance.select(".accesshide"):
            hidden.decompose()
        name = _text(instance)
        if name:
            return name
    return _text(item.select_one(".activityname a"))


def section_name(soup: BeautifulSoup, section_number: int) -> str:
    return (
        _text(soup.select_one(".sectionname span"))
        or _text(soup.select_one("h3.sectionname"))
        or f"UNIDAD {section_number}"
    )


def parse_section(html: str, section_number: int, base_url_resolver=None) -> CourseSection:
    """
    Parse one course section page.

    base_url_resolver turns relative hrefs into absolute ones (usually
    Settings.absolute).
    """
    soup = BeautifulSoup(html or "", "html.parser")
    resolve = base_url_resolver or (lambda href: href)
    name = section_name(soup, section_number)

    activities: list[CourseActivity] = []
    for item in soup.select("li.activity[data-id]"):
        kind = activity_type(item)
        if kind in SKIPPED_TYPES:
            continue

        title = activity_name(item)
        if not title:
            continue

        link = item.select_one(".activityname a, a.aalink")
        icon = item.select_one(".activityicon, .activityiconcontainer img")
        dates = parse_activity_dates(item)
        description = _text(item.select_one(".description, .contentafterlink"))

        activities.append(
            CourseActivity(
                id=str(item.get("data-id")),
                name=title,
                type=kind,
                section=section_number,
                section_name=name,
                url=resolve(link.get("href")) if link is not None and link.get("href") else None,
                dates=dates if dates else None,
                icon=icon.get("src") if icon is not None and icon.get("src") else None,
                description=description or None,
            )
        )

    return CourseSection(section_number=section_number, section_name=name, activities=activities)


def get_course_activities(client: SimaClient, cookies: Iterable[str], course_id: str) -> CourseSchedule:
    """
    All activities of a course, grouped by section.

    The course page itself must load (errors propagate, a login page raises
    SessionExpired). Section failures are recorded in CourseSchedule.omitted.
    """
    jar = list(cookies)
    course_url = client.url(COURSE_PAGE, id=course_id)
    logger.info(f"Fetching activities for course {course_id}")

    page = client.get(course_url, jar)
    if is_login_bounce(page):
        raise SessionExpired()
    page.raise_for_status()

    course_name = _text(page.soup().select_one("h1")) or DEFAULT_COURSE_NAME
    schedule = CourseSchedule(course_id=str(course_id), course_name=course_name)

    for number in range(1, client.settings.section_count + 1):
        section_url = client.url(COURSE_PAGE, id=course_id, section=number)
        try:
            section_page = client.get(section_url, jar)
            section_page.raise_for_status()
            section = parse_section(section_page.text, number, client.absolute)
        except SimaError as e:
            logger.error(f"Error fetching section {number} of course {course_id}: {e}")
            schedule.omitted.append(Omitted(key=f"section:{number}", reason=str(e)))
            continue

        if not section.activities:
            logger.debug(f"Section {number} of course {course_id} has no activities")
            continue

        schedule.sections.append(section)
        logger.info(f"Section {number} ({section.section_name}): {len(section.activities)} activities")

    schedule.total_activities = sum(len(s.activities) for s in schedule.sections)
    schedule.last_updated = datetime.now(timezone.utc).isoformat()
    return schedule


def get_multiple_courses_activities(
    client: SimaClient,
    cookies: Iterable[str],
    course_ids: Iterable[str],
) -> Collected[CourseSchedule]:
    """Sequential get_course_activities(); failing courses are left out."""
    jar = list(cookies)
    out: Collected[CourseSchedule] = Collected()

    for course_id in course_ids:
        try:
            out.append(get_course_activities(client, jar, course_id))
        except SimaError as e:
            logger.error(f"Error fetching activities for course {course_id}: {e}")
            out.omit(f"course:{course_id}", str(e))

    return out


def get_course_activities_with_dates(
    client: SimaClient,
    cookies: Iterable[str],
    course_id: str,
) -> list[CourseActivity]:
    """Activities of a course that show an opening or closing date."""
    schedule = get_course_activities(client, cookies, course_id)
    return [
        activity
        for section in schedule.sections
        for activity in section.activities
        if activity.dates and (activity.dates.apertura or activity.dates.cierre)
    ]
