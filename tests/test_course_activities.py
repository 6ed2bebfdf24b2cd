"""
Tests for the course-activities scraper.

The section loop must survive a broken section: with section 3 of 5
failing, sections 1, 2, 4 and 5 are still returned.
"""

import unittest

from simascraper.config import COURSE_PAGE
from simascraper.course_activities import (
    DEFAULT_COURSE_NAME,
    get_course_activities,
    get_course_activities_with_dates,
    get_multiple_courses_activities,
    parse_section,
)
from simascraper.errors import HttpStatusError, SessionExpired, TransportError

from support import BASE, FakeClient, fixture_html, page, url


COOKIES = ["MoodleSession=abc"]

COURSE_HOME = fixture_html("<h1>CÁLCULO DIFERENCIAL - GRUPO A</h1>")


def activity(data_id: str, modtype: str, name: str, dates: str = "") -> str:
    return f"""
    <li class="activity activity-wrapper {modtype} modtype_{modtype}" data-id="{data_id}">
      <div class="activityiconcontainer"><img class="activityicon" src="/theme/image.php/{modtype}/icon"></div>
      <div class="activityname">
        <a href="/mod/{modtype}/view.php?id={data_id}" class="aalink">
          <span class="instancename">{name} <span class="accesshide"> Tarea</span></span>
        </a>
      </div>
      {dates}
    </li>
    """


def section_page(title: str, *items: str) -> str:
    return fixture_html(
        f'<li class="section main" id="section-1"><h3 class="sectionname"><span>{title}</span></h3>'
        f'<ul class="section img-text">{"".join(items)}</ul></li>'
    )


DATES = """
<div data-region="activity-dates">
  <div><strong>Apertura:</strong> lunes, 6 de octubre de 2025, 00:00</div>
  <div><strong>Cierre:</strong> domingo, 12 de octubre de 2025, 23:59</div>
</div>
"""

LABEL = '<li class="activity label modtype_label" data-id="1"><div class="contentwithoutlink">Bienvenidos</div></li>'
NAMELESS = '<li class="activity modtype_page" data-id="2"><div class="activityname"></div></li>'


def course_routes(course_id: str = "101", sections=None) -> dict:
    routes = {url(COURSE_PAGE, id=course_id): page(url(COURSE_PAGE, id=course_id), COURSE_HOME)}
    for number, answer in (sections or {}).items():
        section_url = url(COURSE_PAGE, id=course_id, section=number)
        routes[section_url] = page(section_url, answer) if isinstance(answer, str) else answer
    return routes


class TestParseSection(unittest.TestCase):
    def test_items(self) -> None:
        html = section_page(
            "UNIDAD 1: LÍMITES",
            LABEL,
            activity("31", "assign", "Taller 1", DATES),
            NAMELESS,
            activity("32", "resource", "Guía de estudio"),
            '<li class="activity" data-id="33"><div class="activityname"><a href="/mod/x/view.php?id=33">Otra cosa</a></div></li>',
        )
        section = parse_section(html, 1, lambda href: f"{BASE}{href}")

        self.assertEqual(section.section_name, "UNIDAD 1: LÍMITES")
        self.assertEqual([a.id for a in section.activities], ["31", "32", "33"])

        taller = section.activities[0]
        self.assertEqual(taller.name, "Taller 1")  # accesshide text stripped
        self.assertEqual(taller.type, "assign")
        self.assertEqual(taller.section, 1)
        self.assertEqual(taller.section_name, "UNIDAD 1: LÍMITES")
        self.assertEqual(taller.url, f"{BASE}/mod/assign/view.php?id=31")
        self.assertEqual(taller.icon, "/theme/image.php/assign/icon")
        self.assertEqual(taller.dates.cierre, "domingo, 12 de octubre de 2025, 23:59")

        self.assertIsNone(section.activities[1].dates)
        # no modtype_ class, name from the link
        self.assertEqual(section.activities[2].type, "unknown")
        self.assertEqual(section.activities[2].name, "Otra cosa")

    def test_default_section_name(self) -> None:
        section = parse_section(fixture_html("<ul></ul>"), 4)
        self.assertEqual(section.section_name, "UNIDAD 4")
        self.assertEqual(section.activities, [])


class TestGetCourseActivities(unittest.TestCase):
    def test_failing_section_is_omitted(self) -> None:
        routes = course_routes(
            sections={
                1: section_page("UNIDAD 1", activity("11", "assign", "Taller 1", DATES)),
                2: section_page("UNIDAD 2", activity("21", "quiz", "Quiz 1"), activity("22", "forum", "Foro")),
                3: TransportError("connection reset"),
                4: section_page("UNIDAD 4", activity("41", "resource", "Lectura")),
                5: section_page("UNIDAD 5", activity("51", "assign", "Proyecto final")),
            }
        )
        client = FakeClient(routes)

        schedule = get_course_activities(client, COOKIES, "101")

        self.assertEqual(schedule.course_id, "101")
        self.assertEqual(schedule.course_name, "CÁLCULO DIFERENCIAL - GRUPO A")
        self.assertEqual([s.section_number for s in schedule.sections], [1, 2, 4, 5])
        self.assertEqual(schedule.total_activities, 5)
        self.assertEqual(schedule.total_activities, sum(len(s.activities) for s in schedule.sections))
        self.assertEqual([o.key for o in schedule.omitted], ["section:3"])
        self.assertTrue(schedule.last_updated)
        # sections fetched in order, after the course page
        self.assertEqual(len(client.calls), 6)
        self.assertEqual(client.calls[3].url, url(COURSE_PAGE, id="101", section=3))

    def test_empty_and_http_error_sections(self) -> None:
        routes = course_routes(
            sections={
                1: section_page("UNIDAD 1", LABEL),
                2: section_page("UNIDAD 2", activity("21", "quiz", "Quiz 1")),
                3: page(url(COURSE_PAGE, id="101", section=3), "", status=500),
            }
        )
        schedule = get_course_activities(FakeClient(routes), COOKIES, "101")

        # 4 and 5 are unrouted (404) and omitted too
        self.assertEqual([s.section_number for s in schedule.sections], [2])
        self.assertEqual(schedule.total_activities, 1)
        self.assertEqual([o.key for o in schedule.omitted], ["section:3", "section:4", "section:5"])

    def test_section_count_setting(self) -> None:
        routes = course_routes(sections={1: section_page("UNIDAD 1", activity("11", "assign", "Taller 1"))})
        client = FakeClient(routes, section_count=1)

        get_course_activities(client, COOKIES, "101")
        self.assertEqual(len(client.calls), 2)

    def test_course_page_failure_is_fatal(self) -> None:
        course_url = url(COURSE_PAGE, id="101")
        client = FakeClient({course_url: page(course_url, "", status=503)})
        with self.assertRaises(HttpStatusError):
            get_course_activities(client, COOKIES, "101")

    def test_course_page_login_bounce(self) -> None:
        course_url = url(COURSE_PAGE, id="101")
        client = FakeClient({course_url: page(f"{BASE}/login/index.php", "")})
        with self.assertRaises(SessionExpired):
            get_course_activities(client, COOKIES, "101")

    def test_course_without_title(self) -> None:
        course_url = url(COURSE_PAGE, id="101")
        client = FakeClient({course_url: page(course_url, fixture_html("<p>...</p>"))}, section_count=1)
        self.assertEqual(get_course_activities(client, COOKIES, "101").course_name, DEFAULT_COURSE_NAME)

    def test_serialized_shape(self) -> None:
        routes = course_routes(sections={1: section_page("UNIDAD 1", activity("11", "assign", "Taller 1", DATES))})
        data = get_course_activities(FakeClient(routes, section_count=1), COOKIES, "101").to_dict()

        self.assertEqual(set(data), {"courseId", "courseName", "sections", "totalActivities", "lastUpdated"})
        first = data["sections"][0]
        self.assertEqual(first["sectionNumber"], 1)
        self.assertEqual(first["activities"][0]["sectionName"], "UNIDAD 1")
        self.assertIn("apertura", first["activities"][0]["dates"])


class TestMultipleCourses(unittest.TestCase):
    def test_failing_course_is_omitted(self) -> None:
        routes = course_routes("101", {1: section_page("UNIDAD 1", activity("11", "assign", "Taller 1"))})
        routes.update(course_routes("303", {1: section_page("UNIDAD 1", activity("31", "quiz", "Quiz"))}))
        routes[url(COURSE_PAGE, id="202")] = TransportError("timeout")
        client = FakeClient(routes, section_count=1)

        schedules = get_multiple_courses_activities(client, COOKIES, ["101", "202", "303"])

        self.assertEqual([s.course_id for s in schedules], ["101", "303"])
        self.assertEqual([o.key for o in schedules.omitted], ["course:202"])


class TestDatedActivities(unittest.TestCase):
    def test_only_activities_with_dates(self) -> None:
        routes = course_routes(
            sections={
                1: section_page("UNIDAD 1", activity("11", "assign", "Taller 1", DATES), activity("12", "page", "Lectura")),
                2: section_page("UNIDAD 2", activity("21", "quiz", "Quiz 1", DATES)),
            }
        )
        activities = get_course_activities_with_dates(FakeClient(routes, section_count=2), COOKIES, "101")

        self.assertEqual([a.id for a in activities], ["11", "21"])
        self.assertTrue(all(a.dates.apertura for a in activities))


if __name__ == "__main__":
    unittest.main()
