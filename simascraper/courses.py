"""
Course discovery.

The course list lives on different pages depending on the portal theme and
the user's role, so a fixed list of candidate pages is tried in order until
one renders without bouncing to the login page.

parse_courses() is pure and works on any of those pages:
1. course containers (.coursebox, [data-course-id], ...)
2. if none: plain links to course/view.php?id=<n>
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from simascraper.client import SimaClient
from simascraper.config import COURSE_LIST_CANDIDATES
from simascraper.errors import NoAuthenticatedPageFound, TransportError
from simascraper.model import CourseInfo
from simascraper.session import is_login_bounce


logger = logging.getLogger(__name__)

COURSE_CONTAINERS = ".coursebox, .course-info-container, [data-course-id], [data-courseid]"
COURSE_LINK_ID_RE = re.compile(r"course/view\.php\?(?:[^\"'#]*&)?id=(\d+)")


def _collapse(text: str) -> str:
    return " ".join((text or "").split())


def _course_id_from_link(el: Tag) -> Optional[str]:
    for a in el.select('a[href*="course/view.php"]'):
        m = COURSE_LINK_ID_RE.search(a.get("href") or "")
        if m:
            return m.group(1)
    return None


def _from_container(el: Tag) -> Optional[CourseInfo]:
    course_id = (el.get("data-course-id") or el.get("data-courseid") or "").strip() or _course_id_from_link(el)
    if not course_id:
        return None

    name_el = el.select_one(".coursename, .course-title, h3")
    name = _collapse(name_el.get_text(" ", strip=True)) if name_el else ""
    if not name:
        link = el.select_one('a[href*="course/view.php"]')
        name = _collapse(link.get_text(" ", strip=True)) if link else ""
    if not name:
        return None

    short_el = el.select_one(".course-shortname, .shortname")
    shortname = _collapse(short_el.get_text(" ", strip=True)) if short_el else ""
    return CourseInfo(id=course_id, name=name, shortname=shortname or name.split(" ")[0])


def parse_courses(html: str) -> list[CourseInfo]:
    """
    Extract the courses listed on a page.

    Container ids are unique in the result (nested containers of one course
    match more than once; the first wins). The link fallback keeps every
    matching anchor, in page order.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    found: list[CourseInfo] = []
    seen: set[str] = set()

    for el in soup.select(COURSE_CONTAINERS):
        course = _from_container(el)
        if course is None or course.id in seen:
            continue
        seen.add(course.id)
        found.append(course)

    if found:
        return found

    for a in soup.select('a[href*="course/view.php"]'):
        m = COURSE_LINK_ID_RE.search(a.get("href") or "")
        name = _collapse(a.get_text(" ", strip=True))
        if m and len(name) > 3:
            found.append(CourseInfo(id=m.group(1), name=name, shortname=name.split(" ")[0]))
    return found


def get_user_courses(client: SimaClient, cookies: Iterable[str]) -> list[CourseInfo]:
    """
    Fetch the user's enrolled courses.

    Raises NoAuthenticatedPageFound when every candidate page failed or
    bounced to the login page. An empty list means the page loaded but
    listed no courses.
    """
    jar = list(cookies)

    for path in COURSE_LIST_CANDIDATES:
        url = client.url(path)
        try:
            page = client.get(url, jar)
        except TransportError as e:
            logger.warning(f"Course list candidate failed ({url}): {e}")
            continue

        if is_login_bounce(page):
            logger.info(f"Course list candidate redirected to login: {url}")
            continue
        if not page.ok:
            logger.warning(f"Course list candidate answered HTTP {page.status_code}: {url}")
            continue

        courses = parse_courses(page.text)
        logger.info(f"Found {len(courses)} courses on {page.url}")
        return courses

    raise NoAuthenticatedPageFound()
