"""
Draft lessons proposed by an extraction step, before they enter the schedule.

Conflict flags on drafts are always computed against the current schedule plus
all drafts, never taken from the extractor. Every edit recomputes them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable

from academia.conflicts import detect_conflicts
from academia.model import WIRE_KEYS, Lesson, new_lesson_id, normalize_day
from academia.schedule import LessonStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("subject", "day_of_week", "start_time", "end_time", "location", "instructor")

_FIELD_ALIASES = {wire: attr for attr, wire in WIRE_KEYS.items()}


def reconcile(existing: Iterable[Lesson], drafts: Iterable[Lesson]) -> list[Lesson]:
    """
    Return the drafts with is_conflict computed over existing + drafts.

    A draft that overlaps a lesson already in the schedule is flagged even if
    no other draft overlaps it.
    """
    drafts = list(drafts)
    flags = detect_conflicts(list(existing) + drafts)
    return [draft.with_conflict(flags[draft.id]) for draft in drafts]


def _field_name(name: str) -> str:
    attr = _FIELD_ALIASES.get(name, name)
    if attr not in EDITABLE_FIELDS:
        raise ValueError(f"Field {name!r} cannot be edited")
    return attr


def _clean_value(attr: str, value: Any) -> Any:
    if attr == "instructor":
        text = "" if value is None else str(value).strip()
        return text or None
    text = "" if value is None else str(value).strip()
    if attr == "day_of_week":
        return normalize_day(text) or text
    return text


class DraftSession:
    """
    One review of extracted lessons: edit, then commit or discard.
    """

    def __init__(self, store: LessonStore, drafts: Iterable[Lesson] = ()) -> None:
        self._store = store
        self._drafts: list[Lesson] = []
        self.propose(drafts)

    @property
    def drafts(self) -> list[Lesson]:
        return list(self._drafts)

    def __len__(self) -> int:
        return len(self._drafts)

    def propose(self, drafts: Iterable[Lesson]) -> list[Lesson]:
        """Replace the current drafts with a new proposal."""
        taken = {lesson.id for lesson in self._store.lessons}
        unique: list[Lesson] = []
        for draft in drafts:
            if draft.id in taken:
                draft = replace(draft, id=new_lesson_id())
            taken.add(draft.id)
            unique.append(draft)
        self._drafts = reconcile(self._store.lessons, unique)
        return self.drafts

    def refresh(self) -> list[Lesson]:
        """Recompute flags, e.g. after the schedule changed underneath."""
        self._drafts = reconcile(self._store.lessons, self._drafts)
        return self.drafts

    def edit_field(self, lesson_id: str, field: str, value: Any) -> list[Lesson]:
        """
        Change one field of one draft and reconcile again.

        field may be the attribute name (start_time) or the record key
        (startTime). Raises KeyError for an unknown draft id.
        """
        attr = _field_name(field)
        for i, draft in enumerate(self._drafts):
            if draft.id == lesson_id:
                self._drafts[i] = replace(draft, **{attr: _clean_value(attr, value)})
                break
        else:
            raise KeyError(lesson_id)
        logger.debug("Draft %s: %s=%r", lesson_id, attr, value)
        return self.refresh()

    def commit(self) -> list[Lesson]:
        """Append the drafts to the schedule and empty the session."""
        schedule = self._store.append(self._drafts)
        logger.info("Committed %d draft lessons", len(self._drafts))
        self._drafts = []
        return schedule

    def discard(self) -> None:
        logger.info("Discarded %d draft lessons", len(self._drafts))
        self._drafts = []
