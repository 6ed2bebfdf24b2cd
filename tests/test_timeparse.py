"""
Unit tests for date/time helpers and event type heuristics.
"""

import unittest

from simascraper.event_types import determine_event_type, from_component, map_action_type
from simascraper.timeparse import (
    add_days,
    day_timestamp,
    normalize_time,
    parse_iso_date,
    parse_spanish_date,
    parse_time_of_day,
    same_day,
)


class TestSpanishDates(unittest.TestCase):
    def test_long_date(self) -> None:
        self.assertEqual(parse_spanish_date("sábado, 11 de octubre de 2025"), "2025-10-11")
        self.assertEqual(parse_spanish_date("Lunes, 1 de Septiembre de 2025, 00:00"), "2025-09-01")
        self.assertEqual(parse_spanish_date("3 de setiembre de 2025"), "2025-09-03")

    def test_iso_passes_through(self) -> None:
        self.assertEqual(parse_spanish_date("2025-10-11"), "2025-10-11")

    def test_unparseable(self) -> None:
        self.assertIsNone(parse_spanish_date("mañana"))
        self.assertIsNone(parse_spanish_date("11 de brumario de 2025"))
        self.assertIsNone(parse_spanish_date("31 de febrero de 2025"))
        self.assertIsNone(parse_spanish_date(""))
        self.assertIsNone(parse_spanish_date(None))


class TestTimes(unittest.TestCase):
    def test_time_of_day(self) -> None:
        self.assertEqual(parse_time_of_day("23:59"), (23, 59))
        self.assertEqual(parse_time_of_day("Cierre 7:05"), (7, 5))
        self.assertEqual(parse_time_of_day("11:59 p. m."), (23, 59))
        self.assertEqual(parse_time_of_day("12:30 a. m."), (0, 30))
        self.assertEqual(parse_time_of_day("2:15 PM"), (14, 15))
        self.assertIsNone(parse_time_of_day("Todo el día"))
        self.assertIsNone(parse_time_of_day("25:00"))

    def test_normalize(self) -> None:
        self.assertEqual(normalize_time("8:00"), "08:00")
        self.assertIsNone(normalize_time(""))


class TestDays(unittest.TestCase):
    def test_day_timestamp_is_utc_midnight(self) -> None:
        self.assertEqual(day_timestamp("2025-10-11"), 1760140800)

    def test_same_day(self) -> None:
        self.assertTrue(same_day("2025-10-11", 1760140800 + 86399))
        self.assertFalse(same_day("2025-10-11", 1760140800 + 86400))

    def test_add_days_crosses_months(self) -> None:
        self.assertEqual(add_days("2025-10-31", 1), "2025-11-01")
        self.assertEqual(add_days("2024-02-28", 1), "2024-02-29")

    def test_iso_validation(self) -> None:
        with self.assertRaises(ValueError):
            parse_iso_date("2025-13-01")
        with self.assertRaises(ValueError):
            parse_iso_date("11/10/2025")


class TestEventTypes(unittest.TestCase):
    def test_map_action_type(self) -> None:
        self.assertEqual(map_action_type("Vencimiento de Tarea", "Tarea"), "assign")
        self.assertEqual(map_action_type("", "Cuestionario"), "quiz")
        self.assertEqual(map_action_type("Foro de discusión", ""), "forum")
        self.assertEqual(map_action_type("Examen final", None), "exam")
        self.assertEqual(map_action_type(None, "Evento de actividad"), "activity")

    def test_determine_event_type(self) -> None:
        self.assertEqual(determine_event_type("calendar-event assignment", ""), "assignment")
        self.assertEqual(determine_event_type("", "Examen parcial"), "quiz")
        self.assertEqual(determine_event_type("event", "Clase 3"), "lesson")
        self.assertEqual(determine_event_type("event", "Reunión"), "activity")

    def test_from_component(self) -> None:
        self.assertEqual(from_component("mod_assign", "due"), "assign")
        self.assertEqual(from_component(None, "course"), "course")
        self.assertEqual(from_component(None, None), "activity")


if __name__ == "__main__":
    unittest.main()
