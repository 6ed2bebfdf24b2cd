"""
CLI (Command Line Interface).

Terminal access to the scraping engine, e.g.:

    simascraper login <username>
    simascraper validate
    simascraper courses
    simascraper schedule day --date 2025-10-11
    simascraper events month
    simascraper upcoming <course_id>
    simascraper activities <course_id> [<course_id> ...]
    simascraper dated <course_id>
    simascraper logout

`login` stores the cookie jar (see storage.py); every other command reads
it. Output is JSON on stdout; --table renders rich tables instead.
Logs go to stderr (-v for debug output).

Exit codes:
    0  ok
    1  usage / configuration error
    2  not logged in, session expired, invalid credentials
    3  scraping or network error
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from simascraper.calendar_events import VIEWS, get_calendar_events, get_upcoming_events
from simascraper.client import SimaClient
from simascraper.config import Settings
from simascraper.course_activities import get_course_activities_with_dates, get_multiple_courses_activities
from simascraper.courses import get_user_courses
from simascraper.errors import AuthenticationError, ConfigError, InvalidCredentials, SessionExpired, SimaError
from simascraper.login import REASON_INVALID_CREDENTIALS, login
from simascraper.model import to_json_data
from simascraper.schedule import PERIODS, get_schedule
from simascraper.session import get_session_key, validate_session
from simascraper.storage import clear_cookies, load_cookies, save_cookies
from simascraper.timeparse import parse_iso_date


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_AUTH = 2
EXIT_SCRAPE = 3

console = Console()
err_console = Console(stderr=True)


class _Parser(argparse.ArgumentParser):
    """argparse exits with 2 on bad usage; 2 means "not authenticated" here."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_json(value: Any) -> None:
    print(json.dumps(to_json_data(value), indent=2, ensure_ascii=False))


def _table(title: str, *columns: str) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    for col in columns:
        table.add_column(col)
    return table


def _warn_omitted(omitted: list) -> None:
    for item in omitted:
        err_console.print(f"[yellow]Omitted {item.key}:[/yellow] {item.reason}")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
        force=True,
    )


def _require_cookies(args: argparse.Namespace) -> list[str]:
    cookies = load_cookies(args.session_file)
    if not cookies:
        raise SessionExpired("Not logged in. Run `simascraper login <username>` first.")
    return cookies


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_login(args: argparse.Namespace, client: SimaClient) -> int:
    """
    Log in and store the cookie jar.
    """
    username = (args.username or "").strip()
    if not username:
        err_console.print("Please provide a username.")
        return EXIT_USAGE

    password = args.password or os.getenv("SIMA_PASSWORD") or getpass.getpass("SIMA password: ")
    if not password:
        err_console.print("Please provide a password.")
        return EXIT_USAGE

    result = login(client, username, password)
    if not result.success:
        if result.reason == REASON_INVALID_CREDENTIALS:
            raise InvalidCredentials(result.error)
        raise AuthenticationError(f"Login failed: {result.error}")

    path = save_cookies(result.cookies, args.session_file)

    if args.table:
        table = _table("Login steps", "state", "status", "url")
        for step in result.trace:
            table.add_row(step.state, str(step.status or ""), step.url or "")
        console.print(table)
        console.print(f"Logged in ({len(result.cookies)} cookies saved to {path})")
    else:
        _print_json(
            {
                "success": True,
                "redirectUrl": result.session_data.redirect_url if result.session_data else None,
                "cookieCount": len(result.cookies),
                "sessionFile": str(path),
            }
        )
    return EXIT_OK


def _cmd_logout(args: argparse.Namespace, client: SimaClient) -> int:
    removed = clear_cookies(args.session_file)
    err_console.print("Stored session removed." if removed else "No stored session.")
    return EXIT_OK


def _cmd_validate(args: argparse.Namespace, client: SimaClient) -> int:
    valid = validate_session(client, _require_cookies(args))
    if args.table:
        console.print("Session is valid." if valid else "Session expired.")
    else:
        _print_json({"valid": valid})
    return EXIT_OK if valid else EXIT_AUTH


def _cmd_sesskey(args: argparse.Namespace, client: SimaClient) -> int:
    sesskey = get_session_key(client, _require_cookies(args))
    _print_json({"sesskey": sesskey})
    return EXIT_OK


def _cmd_courses(args: argparse.Namespace, client: SimaClient) -> int:
    courses = get_user_courses(client, _require_cookies(args))

    if not args.table:
        _print_json(courses)
        return EXIT_OK

    if not courses:
        console.print("No courses found.")
        return EXIT_OK
    table = _table(f"Courses ({len(courses)})", "id", "shortname", "name")
    for c in courses:
        table.add_row(c.id, c.shortname, c.name)
    console.print(table)
    return EXIT_OK


def _cmd_schedule(args: argparse.Namespace, client: SimaClient) -> int:
    lookup = get_schedule(
        client,
        _require_cookies(args),
        period=args.period,
        course_id=args.course,
        date=args.date,
        max_days=args.max_days,
    )

    if not args.table:
        _print_json(lookup)
        return EXIT_OK

    if not lookup.found:
        console.print("No activities found.")
        return EXIT_OK
    table = _table(f"Schedule from {lookup.date}", "date", "start", "end", "type", "title", "course", "cierre")
    for group in lookup.schedule:
        for a in group.activities:
            table.add_row(
                group.date,
                a.start_time,
                a.end_time or "",
                a.type,
                a.title,
                a.course.fullname if a.course else "",
                (a.activity_dates.cierre or "") if a.activity_dates else "",
            )
    console.print(table)
    return EXIT_OK


def _events_table(title: str, events: list) -> Table:
    table = _table(title, "id", "type", "name", "course", "url")
    for e in events:
        table.add_row(e.id, e.eventtype, e.name, e.course.fullname if e.course else "", e.url or "")
    return table


def _cmd_events(args: argparse.Namespace, client: SimaClient) -> int:
    events = get_calendar_events(client, _require_cookies(args), view=args.view, course_id=args.course, date=args.date)
    if args.table:
        console.print(_events_table(f"Calendar ({args.view})", events))
    else:
        _print_json(events)
    return EXIT_OK


def _cmd_upcoming(args: argparse.Namespace, client: SimaClient) -> int:
    events = get_upcoming_events(client, _require_cookies(args), args.course_id)
    _warn_omitted(events.omitted)

    if args.table:
        console.print(_events_table(f"Upcoming events of course {args.course_id}", events))
    else:
        _print_json(list(events))
    return EXIT_SCRAPE if events.omitted else EXIT_OK


def _cmd_activities(args: argparse.Namespace, client: SimaClient) -> int:
    schedules = get_multiple_courses_activities(client, _require_cookies(args), args.course_ids)
    _warn_omitted(schedules.omitted)
    for s in schedules:
        _warn_omitted(s.omitted)

    if args.table:
        for s in schedules:
            table = _table(f"{s.course_name} ({s.total_activities} activities)", "section", "type", "name", "cierre")
            for section in s.sections:
                for a in section.activities:
                    table.add_row(section.section_name, a.type, a.name, (a.dates.cierre or "") if a.dates else "")
            console.print(table)
    else:
        _print_json(list(schedules))

    if schedules.omitted and not schedules:
        return EXIT_SCRAPE
    return EXIT_OK


def _cmd_dated(args: argparse.Namespace, client: SimaClient) -> int:
    activities = get_course_activities_with_dates(client, _require_cookies(args), args.course_id)

    if not args.table:
        _print_json(activities)
        return EXIT_OK

    table = _table(f"Dated activities of course {args.course_id}", "section", "name", "apertura", "cierre")
    for a in activities:
        table.add_row(a.section_name or str(a.section), a.name, a.dates.apertura or "", a.dates.cierre or "")
    console.print(table)
    return EXIT_OK


def _iso_date(value: str) -> str:
    try:
        return parse_iso_date(value).isoformat()
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


COMMANDS: dict[str, Callable[[argparse.Namespace, SimaClient], int]] = {
    "login": _cmd_login,
    "logout": _cmd_logout,
    "validate": _cmd_validate,
    "sesskey": _cmd_sesskey,
    "courses": _cmd_courses,
    "schedule": _cmd_schedule,
    "events": _cmd_events,
    "upcoming": _cmd_upcoming,
    "activities": _cmd_activities,
    "dated": _cmd_dated,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = _Parser(prog="simascraper", description="SIMA portal scraper")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--table", action="store_true", help="Render tables instead of JSON")
    parser.add_argument("--base-url", type=str, default=None, help="Portal root URL (default: SIMA_BASE_URL)")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    parser.add_argument("--session-file", type=Path, default=None, help="Where the cookie jar is stored")
    sub = parser.add_subparsers(dest="command", required=True)

    p_login = sub.add_parser("login", help="Log in and store the session")
    p_login.add_argument("username", type=str, help="SIMA username")
    p_login.add_argument("--password", type=str, default=None, help="Password (default: SIMA_PASSWORD or prompt)")

    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("validate", help="Check whether the stored session is still valid")
    sub.add_parser("sesskey", help="Print the session key of the stored session")
    sub.add_parser("courses", help="List enrolled courses")

    p_schedule = sub.add_parser("schedule", help="Activities grouped by date")
    p_schedule.add_argument("period", choices=PERIODS, help="day, week, month or upcoming")
    p_schedule.add_argument("--date", type=_iso_date, default=None, help="YYYY-MM-DD (default: today)")
    p_schedule.add_argument("--course", type=str, default=None, help="Course id")
    p_schedule.add_argument(
        "--max-days", type=int, default=None, help="Days to search ahead when a day is empty"
    )

    p_events = sub.add_parser("events", help="Raw calendar events")
    p_events.add_argument("view", choices=VIEWS, help="day, month or upcoming")
    p_events.add_argument("--date", type=_iso_date, default=None, help="YYYY-MM-DD")
    p_events.add_argument("--course", type=str, default=None, help="Course id")

    p_upcoming = sub.add_parser("upcoming", help="Upcoming events of a course")
    p_upcoming.add_argument("course_id", type=str, help="Course id")

    p_activities = sub.add_parser("activities", help="Activities of one or more courses, by section")
    p_activities.add_argument("course_ids", nargs="+", type=str, help="Course ids")

    p_dated = sub.add_parser("dated", help="Activities of a course that have opening/closing dates")
    p_dated.add_argument("course_id", type=str, help="Course id")

    return parser


def _run(args: argparse.Namespace, client: Optional[SimaClient]) -> int:
    try:
        if client is None:
            settings = Settings.from_env(base_url=args.base_url, timeout=args.timeout)
            with SimaClient(settings) as owned:
                return COMMANDS[args.command](args, owned)
        return COMMANDS[args.command](args, client)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_USAGE
    except AuthenticationError as e:
        err_console.print(f"[red]Authentication error:[/red] {e}")
        return EXIT_AUTH
    except SimaError as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"[red]Error:[/red] {e}")
        return EXIT_SCRAPE


def main(argv: list[str] | None = None, client: SimaClient | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    raise SystemExit(_run(args, client))
