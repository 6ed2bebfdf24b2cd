"""
Activity dates ("Apertura:" / "Cierre:").

Assignment and quiz pages print their submission window in a
[data-region="activity-dates"] block:

    <div data-region="activity-dates">
      <div><strong>Apertura:</strong> lunes, 6 de octubre de 2025, 00:00</div>
      <div><strong>Cierre:</strong> domingo, 12 de octubre de 2025, 23:59</div>
    </div>

Closed activities use the past tense labels "Abrió:" / "Cerró:".
Strings are kept exactly as displayed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from simascraper.client import SimaClient
from simascraper.errors import SimaError
from simascraper.model import ActivityDates, CalendarEvent, Collected


logger = logging.getLogger(__name__)

OPEN_LABELS = ("Apertura:", "Abrió:")
CLOSE_LABELS = ("Cierre:", "Cerró:")

ENRICHED_TYPES = ("assign", "assignment", "quiz")


def parse_activity_dates(container: Optional[Tag]) -> ActivityDates:
    """
    Read the dates block of an activity (page or course section item).

    Returns an empty ActivityDates when there is no block or no known label.
    """
    dates = ActivityDates()
    if container is None:
        return dates

    block = container.select_one('[data-region="activity-dates"]')
    if block is None:
        return dates

    for row in block.find_all("div"):
        label_el = row.find("strong", recursive=False)
        if label_el is None:
            continue
        label = label_el.get_text(strip=True)
        value = " ".join(row.get_text(" ", strip=True).replace(label, "", 1).split())
        if not value:
            continue
        if label in OPEN_LABELS and dates.apertura is None:
            dates.apertura = value
        elif label in CLOSE_LABELS and dates.cierre is None:
            dates.cierre = value
    return dates


def submission_url(url: str) -> str:
    """
    Assignment view pages only show the dates on the submission screen.

    >>> submission_url("https://sima.unicartagena.edu.co/mod/assign/view.php?id=7")
    'https://sima.unicartagena.edu.co/mod/assign/view.php?id=7&action=editsubmission'
    """
    parts = urlsplit(url)
    if parts.path.endswith("/mod/assign/view.php") and "action=" not in (parts.query or ""):
        separator = "&" if parts.query else "?"
        return f"{url}{separator}action=editsubmission"
    return url


def get_activity_dates(client: SimaClient, cookies: Iterable[str], url: str) -> ActivityDates:
    """
    Fetch an activity page and read its dates.

    Transport and HTTP errors propagate.
    """
    target = submission_url(client.absolute(url) or url)
    page = client.get(target, cookies)
    page.raise_for_status()

    soup = BeautifulSoup(page.text or "", "html.parser")
    dates = parse_activity_dates(soup)
    logger.debug(f"Activity dates for {target}: apertura={dates.apertura!r} cierre={dates.cierre!r}")
    return dates


def is_enrichment_candidate(event: CalendarEvent) -> bool:
    if event.eventtype in ENRICHED_TYPES:
        return True
    if "evaluación" in (event.name or "").lower():
        return True
    action_type = ((event.metadata.action_type if event.metadata else None) or "").lower()
    return "tarea" in action_type or "cuestionario" in action_type


def _fetch_url(event: CalendarEvent) -> Optional[str]:
    if event.metadata and event.metadata.action_button_url:
        return event.metadata.action_button_url
    return event.url or None


def enhance_events_with_activity_dates(
    client: SimaClient,
    cookies: Iterable[str],
    events: Iterable[CalendarEvent],
) -> Collected[CalendarEvent]:
    """
    Return copies of `events` with activity_dates filled where possible.

    Events are processed one after the other, in order. A failing fetch
    keeps the event as it was and records it in .omitted.
    """
    jar = list(cookies)
    out: Collected[CalendarEvent] = Collected()

    for event in events:
        url = _fetch_url(event)
        if not url or not is_enrichment_candidate(event):
            out.append(replace(event))
            continue

        try:
            dates = get_activity_dates(client, jar, url)
        except SimaError as e:
            logger.warning(f"Could not get activity dates for event {event.id}: {e}")
            out.omit(f"event:{event.id}", str(e))
            out.append(replace(event))
            continue

        if dates:
            out.append(replace(event, activity_dates=dates))
        else:
            out.append(replace(event))

    enriched = sum(1 for e in out if e.activity_dates)
    logger.info(f"Enriched {enriched} of {len(out)} events with activity dates")
    return out
