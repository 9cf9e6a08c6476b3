"""
Central data model definitions used across the project.

This module defines the canonical structure of Lesson and StudyMaterial objects so that:
- all modules share the same field names
- persisted JSON keeps the same keys the document service produces
- time strings are parsed in exactly one place
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional


WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# snake_case attribute -> key used in persisted JSON / service records
WIRE_KEYS = {
    "id": "id",
    "subject": "subject",
    "day_of_week": "dayOfWeek",
    "start_time": "startTime",
    "end_time": "endTime",
    "location": "location",
    "instructor": "instructor",
    "is_conflict": "isConflict",
}


def new_lesson_id() -> str:
    return f"lesson-{uuid.uuid4().hex[:12]}"


def new_material_id() -> str:
    return f"mat-{uuid.uuid4().hex[:12]}"


_HHMM = re.compile(r"(\d{2}):(\d{2})", re.ASCII)


def time_to_minutes(hhmm: str) -> int:
    """
    Convert zero-padded 24h 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    match = _HHMM.fullmatch(hhmm.strip())
    if not match:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(match.group(1))
    m = int(match.group(2))
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def normalize_day(text: Any) -> Optional[str]:
    """
    Map 'monday', 'MON', ' Monday ' etc. to the canonical weekday name.
    Returns None if the text is not a weekday.
    """
    if not isinstance(text, str):
        return None
    key = text.strip().lower()
    if len(key) < 3:
        return None
    for name in WEEKDAYS:
        if name.lower() == key or name.lower()[:3] == key:
            return name
    return None


@dataclass(frozen=True)
class Lesson:
    """
    Represents one weekly class slot (e.g. every Monday 09:00-10:30).

    is_conflict is a derived value. Only the conflict detector sets it;
    anything passed in from outside is overwritten on commit.
    Instances are frozen; use dataclasses.replace() to derive a changed copy.
    """

    id: str
    subject: str
    day_of_week: str
    start_time: str
    end_time: str
    location: str = ""
    instructor: Optional[str] = None
    is_conflict: bool = False

    def interval(self) -> Optional[tuple[int, int]]:
        """
        Return (start, end) in minutes since midnight, or None if the lesson
        cannot be placed in time (bad format or start >= end).
        """
        try:
            start = time_to_minutes(self.start_time)
            end = time_to_minutes(self.end_time)
        except (ValueError, AttributeError):
            return None
        if end <= start:
            return None
        return start, end

    @property
    def is_valid(self) -> bool:
        if not self.subject.strip():
            return False
        if self.day_of_week not in WEEKDAYS:
            return False
        return self.interval() is not None

    def to_dict(self) -> dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in WIRE_KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any], lesson_id: Optional[str] = None) -> "Lesson":
        """
        Build a Lesson from a persisted or service-provided record.

        Unknown day names are kept as given (the lesson is then invalid).
        The incoming isConflict is ignored.
        """
        raw_day = str(data.get("dayOfWeek", data.get("day_of_week", "")) or "").strip()
        instructor = data.get("instructor")
        return cls(
            id=lesson_id or str(data.get("id") or "").strip() or new_lesson_id(),
            subject=str(data.get("subject", "") or "").strip(),
            day_of_week=normalize_day(raw_day) or raw_day,
            start_time=str(data.get("startTime", data.get("start_time", "")) or "").strip(),
            end_time=str(data.get("endTime", data.get("end_time", "")) or "").strip(),
            location=str(data.get("location", "") or "").strip(),
            instructor=str(instructor).strip() if instructor not in (None, "") else None,
        )

    def with_conflict(self, flag: bool) -> "Lesson":
        return replace(self, is_conflict=flag)


@dataclass(frozen=True)
class MaterialSummary:
    objectives: str
    results: str
    explanation: str


@dataclass(frozen=True)
class StudyMaterial:
    """
    Represents one uploaded study document as stored under the 'materials' key.
    """

    id: str
    name: str
    mime_type: str
    content: str
    upload_date: int
    summary: Optional[MaterialSummary] = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "mimeType": self.mime_type,
            "content": self.content,
            "uploadDate": self.upload_date,
        }
        if self.summary is not None:
            out["summary"] = {
                "objectives": self.summary.objectives,
                "results": self.summary.results,
                "explanation": self.summary.explanation,
            }
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StudyMaterial":
        summary = None
        raw_summary = data.get("summary")
        if isinstance(raw_summary, dict):
            summary = MaterialSummary(
                objectives=str(raw_summary.get("objectives", "")),
                results=str(raw_summary.get("results", "")),
                explanation=str(raw_summary.get("explanation", "")),
            )
        return cls(
            id=str(data.get("id") or "").strip() or new_material_id(),
            name=str(data.get("name", "")),
            mime_type=str(data.get("mimeType", "")),
            content=str(data.get("content", "")),
            upload_date=int(data.get("uploadDate", 0) or 0),
            summary=summary,
        )
