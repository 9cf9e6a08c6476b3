"""
CLI (Command Line Interface).

This module drives the schedule engine from the terminal, e.g.:

    academia show
    academia conflicts
    academia timetable --days 7
    academia import timetable.html
    academia clear
    academia remind
    academia materials list

All state lives in a data directory (default: academia/data, or
ACADEMIA_DATA_DIR, or --data-dir) as schedule.json and materials.json.
"""

from __future__ import annotations

import argparse
import base64
import mimetypes
import time
from pathlib import Path

import requests
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from academia.conflicts import find_conflicts
from academia.drafts import EDITABLE_FIELDS, DraftSession
from academia.extract import drafts_from_source
from academia.layout import GridConfig, layout_week
from academia.log import setup_logging
from academia.model import WEEKDAYS, Lesson
from academia.reminders import (
    DEFAULT_LEAD_MINUTES,
    DEFAULT_POLL_SECONDS,
    PermissionState,
    ReminderConfig,
    ReminderPolicy,
    ReminderScheduler,
)
from academia.schedule import LessonStore, MaterialLibrary
from academia.storage import JsonFileStore

console = Console()


def _open_store(args: argparse.Namespace) -> JsonFileStore:
    return JsonFileStore(args.data_dir)


def _load_schedule(args: argparse.Namespace) -> LessonStore:
    store = LessonStore(_open_store(args))
    store.load()
    return store


def _status(lesson: Lesson) -> str:
    if not lesson.is_valid:
        return "[yellow]invalid[/]"
    if lesson.is_conflict:
        return "[bold red]conflict[/]"
    return "[green]ok[/]"


def _lesson_table(lessons: list[Lesson], title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Subject")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Location")
    table.add_column("Instructor")
    table.add_column("Status")
    for i, lesson in enumerate(lessons, start=1):
        table.add_row(
            str(i),
            escape(lesson.subject) or "(no subject)",
            lesson.day_of_week,
            f"{lesson.start_time}-{lesson.end_time}",
            escape(lesson.location) or "N/A",
            escape(lesson.instructor or ""),
            _status(lesson),
        )
    return table


def _confirm(msg: str) -> bool:
    return console.input(f"{msg} \\[Y/n]: ").strip().lower() != "n"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_show(args: argparse.Namespace) -> int:
    store = _load_schedule(args)
    if not len(store):
        console.print("No classes scheduled yet.")
        return 0
    console.print(_lesson_table(store.lessons, f"Schedule ({len(store)} classes)"))
    return 0


def _cmd_conflicts(args: argparse.Namespace) -> int:
    """
    Print all overlapping lesson pairs.
    """
    store = _load_schedule(args)
    confs = find_conflicts(store.lessons)
    if not confs:
        console.print("No conflicts found.")
        return 0

    console.print(f"Conflicts found: {len(confs)}")
    for a, b in confs:
        console.print(
            f"- {a.day_of_week} {a.start_time}-{a.end_time} {escape(a.subject)}"
            f"  <->  {b.start_time}-{b.end_time} {escape(b.subject)}"
        )
    return 0


def _cmd_timetable(args: argparse.Namespace) -> int:
    try:
        config = GridConfig(
            day_columns=tuple(WEEKDAYS[: args.days]),
            grid_start_hour=args.start_hour,
            grid_end_hour=args.end_hour,
        )
    except ValueError as exc:
        console.print(f"Invalid grid: {exc}")
        return 1

    store = _load_schedule(args)
    by_id = {lesson.id: lesson for lesson in store.lessons}
    placements = layout_week(store.lessons, config)

    table = Table(box=box.SIMPLE, title="Weekly timetable")
    table.add_column("Time", justify="right")
    for day in config.day_columns:
        table.add_column(day[:3])

    pph = config.pixels_per_hour
    for row, hour in enumerate(config.hours()):
        row_top = row * pph
        row_bottom = row_top + pph
        cells: list[list[str]] = [[] for _ in config.day_columns]
        for p in placements:
            if p.top_offset_px >= row_bottom or p.top_offset_px + p.height_px <= row_top:
                continue
            lesson = by_id[p.lesson_id]
            style = "bold red" if lesson.is_conflict else "cyan"
            if row_top <= p.top_offset_px < row_bottom:
                text = f"[{style}]{lesson.start_time} {escape(lesson.subject)}[/]"
            else:
                text = f"[{style}]│[/]"
            cells[p.day_column_index].append(text)
        table.add_row(f"{hour}:00", *["\n".join(c) for c in cells])

    console.print(table)

    hidden = len(store) - len(placements)
    if hidden:
        console.print(f"{hidden} class(es) not shown (outside the grid or invalid).")
    return 0


def _edit_drafts(session: DraftSession) -> None:
    drafts = session.drafts
    pick = console.input("Lesson number to edit \\[blank = back]: ").strip()
    if not pick:
        return
    if not pick.isdigit() or not (1 <= int(pick) <= len(drafts)):
        console.print("Out of range.")
        return
    lesson = drafts[int(pick) - 1]

    field = console.input(f"Field ({', '.join(EDITABLE_FIELDS)}): ").strip()
    if field not in EDITABLE_FIELDS:
        console.print("Unknown field.")
        return
    value = console.input(f"New value for {field}: ")
    session.edit_field(lesson.id, field, value)


def _cmd_import(args: argparse.Namespace) -> int:
    """
    Read a timetable document into drafts, review them, then save or discard.
    """
    try:
        drafts = drafts_from_source(args.source)
    except (OSError, UnicodeDecodeError, requests.RequestException) as exc:
        console.print(f"Could not read {escape(args.source)}: {escape(str(exc))}")
        return 1

    if not drafts:
        console.print("No classes found in document.")
        return 1

    store = _load_schedule(args)
    session = DraftSession(store, drafts)

    if args.yes:
        session.commit()
        console.print(f"Saved {len(drafts)} classes (total {len(store)}).")
        return 0

    while True:
        console.print(_lesson_table(session.drafts, f"Draft classes from {escape(args.source)}"))
        choice = console.input("\\[s] Save schedule  \\[e] Edit a class  \\[c] Cancel: ").strip().lower()
        if choice == "s":
            saved = len(session)
            session.commit()
            console.print(f"Saved {saved} classes (total {len(store)}).")
            return 0
        if choice == "e":
            _edit_drafts(session)
        elif choice == "c":
            session.discard()
            console.print("Discarded drafts.")
            return 0
        else:
            console.print("Invalid choice.")


def _cmd_clear(args: argparse.Namespace) -> int:
    store = _load_schedule(args)
    if not args.yes and not _confirm("Are you sure you want to clear your entire schedule?"):
        console.print("Nothing changed.")
        return 0
    store.clear()
    console.print("Schedule cleared.")
    return 0


class ConsolePermission:
    """Asks once on the terminal whether reminders may be shown."""

    def __init__(self, granted: bool = False) -> None:
        self._state = PermissionState.GRANTED if granted else PermissionState.NOT_YET_ASKED

    @property
    def state(self) -> PermissionState:
        return self._state

    def request(self) -> PermissionState:
        if self._state == PermissionState.NOT_YET_ASKED:
            ok = _confirm("Show class reminders in this terminal?")
            self._state = PermissionState.GRANTED if ok else PermissionState.DENIED
        return self._state


def _print_reminder(title: str, body: str) -> None:
    console.print(f"\a[bold yellow]{escape(title)}[/] - {escape(body)}")


def _cmd_remind(args: argparse.Namespace) -> int:
    try:
        config = ReminderConfig(
            lead_minutes=args.lead,
            interval_seconds=args.interval,
            policy=ReminderPolicy(args.policy),
        )
    except ValueError as exc:
        console.print(f"Invalid reminder settings: {exc}")
        return 1

    store = _load_schedule(args)
    permission = ConsolePermission(granted=args.yes)
    if permission.request() != PermissionState.GRANTED:
        console.print("Reminders disabled.")
        return 0

    scheduler = ReminderScheduler(lambda: store.lessons, _print_reminder, permission, config)
    if args.once:
        fired = scheduler.tick()
        console.print(f"Reminders sent: {len(fired)}")
        return 0

    console.print(f"Watching {len(store)} classes, reminding {config.lead_minutes} min before start. Ctrl+C to stop.")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
    return 0


def _cmd_materials(args: argparse.Namespace) -> int:
    library = MaterialLibrary(_open_store(args))
    library.load()

    if args.action == "list":
        materials = library.search(args.search)
        if not materials:
            if args.search:
                console.print(f"No study materials matching '{escape(args.search)}'.")
            else:
                console.print("No study materials yet.")
            return 0
        table = Table(title="Study materials", box=box.SIMPLE)
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Summary")
        for m in materials:
            table.add_row(m.id, escape(m.name), m.mime_type, "yes" if m.summary else "")
        console.print(table)
        return 0

    if args.action == "add":
        path = Path(args.target)
        try:
            data = path.read_bytes()
        except OSError as exc:
            console.print(f"Could not read {path}: {exc}")
            return 1
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        material = library.add(path.name, mime_type, base64.b64encode(data).decode("ascii"))
        console.print(f"Added: {material.id} ({material.name})")
        return 0

    if args.action == "delete":
        if not library.delete(args.target):
            console.print(f"Not found: {args.target}")
            return 1
        console.print(f"Deleted: {args.target}")
        return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="academia", description="Weekly class schedule and reminders")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding schedule.json/materials.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="List all classes")
    sub.add_parser("conflicts", help="Show overlapping classes")

    p_grid = sub.add_parser("timetable", help="Show the weekly grid")
    p_grid.add_argument("--days", type=int, choices=(6, 7), default=6, help="6 = Mon-Sat, 7 = Mon-Sun")
    p_grid.add_argument("--start-hour", type=int, default=8)
    p_grid.add_argument("--end-hour", type=int, default=22)

    p_import = sub.add_parser("import", help="Import classes from an HTML/JSON timetable (file or URL)")
    p_import.add_argument("source", type=str, help="Path or http(s) URL")
    p_import.add_argument("--yes", "-y", action="store_true", help="Save without review")

    p_clear = sub.add_parser("clear", help="Remove all classes")
    p_clear.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    p_remind = sub.add_parser("remind", help="Print reminders before classes start")
    p_remind.add_argument("--lead", type=int, default=DEFAULT_LEAD_MINUTES, help="Minutes before start")
    p_remind.add_argument("--interval", type=float, default=DEFAULT_POLL_SECONDS, help="Polling interval (s)")
    p_remind.add_argument("--policy", choices=[p.value for p in ReminderPolicy], default=ReminderPolicy.WINDOW.value)
    p_remind.add_argument("--once", action="store_true", help="Run a single check and exit")
    p_remind.add_argument("--yes", "-y", action="store_true", help="Allow reminders without asking")

    p_mat = sub.add_parser("materials", help="Manage study materials")
    p_mat.add_argument("action", choices=("list", "add", "delete"))
    p_mat.add_argument("target", nargs="?", default="", help="File to add / material id to delete")
    p_mat.add_argument("--search", "-s", default="", help="Only list materials whose name contains TEXT")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    if args.command == "materials" and args.action in ("add", "delete") and not args.target.strip():
        print("Please provide a file path or material id.")
        raise SystemExit(1)

    handlers = {
        "show": _cmd_show,
        "conflicts": _cmd_conflicts,
        "timetable": _cmd_timetable,
        "import": _cmd_import,
        "clear": _cmd_clear,
        "remind": _cmd_remind,
        "materials": _cmd_materials,
    }
    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(2)
    raise SystemExit(handler(args))
