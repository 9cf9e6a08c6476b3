"""
Timetable import (document -> draft lessons).

Two sources feed the draft review:
- records returned by the document-intelligence service (list of dicts with
  subject, dayOfWeek, startTime, endTime, location, instructor, isConflict)
- HTML timetables: the first <table> whose header row names the columns we
  need is read row by row, 1 row = 1 lesson

Important rules:
- the incoming isConflict flag is advisory and always dropped
- every draft gets a fresh id
- rows we cannot read are skipped, never raised
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional

import requests
from bs4 import BeautifulSoup

from academia.model import Lesson, new_lesson_id

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


# ---------------------------------------------------------------------------
# Service records
# ---------------------------------------------------------------------------


def lessons_from_records(records: Iterable[Any]) -> list[Lesson]:
    """
    Convert service records into draft lessons.
    Non-dict entries are skipped.
    """
    drafts: list[Lesson] = []
    for record in records:
        if not isinstance(record, dict):
            logger.debug("Skipping non-object record %r", record)
            continue
        drafts.append(Lesson.from_dict(record, lesson_id=new_lesson_id()))
    return drafts


# ---------------------------------------------------------------------------
# HTML timetables
# ---------------------------------------------------------------------------

# header text -> record key; checked in order, first match wins
_HEADER_KEYS = [
    (("start", "from", "begin"), "startTime"),
    (("end", "until", "to"), "endTime"),
    (("time", "hours"), "time"),
    (("day", "weekday"), "dayOfWeek"),
    (("subject", "course", "class", "title", "module"), "subject"),
    (("location", "room", "place", "venue"), "location"),
    (("instructor", "teacher", "lecturer", "professor", "tutor"), "instructor"),
]

_TIME_RANGE = re.compile(r"(\d{1,2})[:.](\d{2})\s*[-–]\s*(\d{1,2})[:.](\d{2})")
_SINGLE_TIME = re.compile(r"^(\d{1,2})[:.](\d{2})$")


def _header_key(text: str) -> Optional[str]:
    label = text.strip().lower()
    if not label:
        return None
    for words, key in _HEADER_KEYS:
        if any(label == w or label.startswith(w + " ") or label.endswith(" " + w) for w in words):
            return key
    return None


def _norm_time(text: str) -> str:
    """
    Turn '9:00', '09.00' into '09:00'. Anything else is returned stripped,
    and the lesson ends up invalid.
    """
    raw = text.replace("Uhr", "").strip()
    m = _SINGLE_TIME.match(raw)
    if not m:
        return raw
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def _column_map(cells: list[str]) -> dict[int, str]:
    mapping: dict[int, str] = {}
    for i, text in enumerate(cells):
        key = _header_key(text)
        if key and key not in mapping.values():
            mapping[i] = key
    return mapping


def _usable(mapping: dict[int, str]) -> bool:
    keys = set(mapping.values())
    has_times = {"startTime", "endTime"} <= keys or "time" in keys
    return "subject" in keys and "dayOfWeek" in keys and has_times


def parse_timetable_html(html: str) -> list[dict[str, Any]]:
    """
    Extract lesson records from the first usable table in an HTML document.
    """
    soup = BeautifulSoup(html, "html.parser")

    for table in soup.find_all("table"):
        rows = table.find_all("tr")
        if not rows:
            continue

        header = [c.get_text(" ", strip=True) for c in rows[0].find_all(["th", "td"])]
        mapping = _column_map(header)
        if not _usable(mapping):
            continue

        records: list[dict[str, Any]] = []
        for row in rows[1:]:
            cells = [c.get_text(" ", strip=True) for c in row.find_all(["th", "td"])]
            if not any(cells):
                continue

            record: dict[str, Any] = {}
            for i, key in mapping.items():
                if i < len(cells):
                    record[key] = cells[i]

            time_range = record.pop("time", "")
            m = _TIME_RANGE.search(time_range)
            if m:
                record.setdefault("startTime", f"{int(m.group(1)):02d}:{m.group(2)}")
                record.setdefault("endTime", f"{int(m.group(3)):02d}:{m.group(4)}")

            if not record.get("subject"):
                continue
            record["startTime"] = _norm_time(str(record.get("startTime", "")))
            record["endTime"] = _norm_time(str(record.get("endTime", "")))
            records.append(record)

        logger.info("Read %d timetable rows from HTML", len(records))
        return records

    logger.warning("No timetable table found in HTML document")
    return []


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def fetch_document(url: str) -> str:
    """
    Download a timetable page. Raises requests.RequestException on failure.
    """
    resp = requests.get(url, timeout=REQUEST_TIMEOUT)
    resp.raise_for_status()
    return resp.text


def load_document(source: str) -> str:
    """
    Read a timetable from a URL (http/https) or a local file path.
    """
    if source.startswith(("http://", "https://")):
        return fetch_document(source)
    return Path(source).read_text(encoding="utf-8")


def drafts_from_source(source: str) -> list[Lesson]:
    """
    Load an HTML or JSON timetable and return draft lessons.

    JSON must be a list of service records. Anything else is treated as HTML.
    """
    text = load_document(source)
    stripped = text.lstrip()
    if stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as exc:
            logger.warning("Could not parse %s as JSON: %s", source, exc)
            return []
        return lessons_from_records(data if isinstance(data, list) else [])
    return lessons_from_records(parse_timetable_html(text))
