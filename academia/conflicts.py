"""
Conflict detection.

Given all lessons of the weekly schedule, detect overlaps on the same weekday.
Overlap rule:
    max(start_a, start_b) < min(end_a, end_b)

Touching endpoints (one lesson ends at 10:00, the next starts at 10:00) are not
a conflict. Invalid lessons (bad time format, start >= end, unknown day) are
never reported as conflicting.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from academia.model import WEEKDAYS, Lesson


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return max(a_start, b_start) < min(a_end, b_end)


def _by_day(lessons: Iterable[Lesson]) -> dict[str, list[tuple[int, int, Lesson]]]:
    """
    Group valid lessons by weekday, each day sorted by (start, end, id).
    """
    groups: dict[str, list[tuple[int, int, Lesson]]] = defaultdict(list)
    for lesson in lessons:
        if not lesson.is_valid:
            continue
        span = lesson.interval()
        if span is None:
            continue
        groups[lesson.day_of_week].append((span[0], span[1], lesson))
    for day_lessons in groups.values():
        day_lessons.sort(key=lambda item: (item[0], item[1], item[2].id))
    return groups


def detect_conflicts(lessons: Iterable[Lesson]) -> dict[str, bool]:
    """
    Return {lesson_id: is_conflict} for every lesson passed in.

    Sort-and-sweep per day: keep the largest end time seen so far and the
    lesson it belongs to. A lesson starting before that end overlaps the
    owner of the running maximum, so both are flagged.
    """
    lessons = list(lessons)
    flags: dict[str, bool] = {lesson.id: False for lesson in lessons}

    for day_lessons in _by_day(lessons).values():
        max_end = -1
        max_owner: Lesson | None = None
        for start, end, lesson in day_lessons:
            if max_owner is not None and start < max_end:
                flags[lesson.id] = True
                flags[max_owner.id] = True
            if end > max_end:
                max_end = end
                max_owner = lesson

    return flags


def find_conflicts(lessons: Iterable[Lesson]) -> list[tuple[Lesson, Lesson]]:
    """
    Find overlapping lesson pairs (A, B), each pair appears once.
    Pairs are ordered by day, then by A's start time.
    """
    conflicts: list[tuple[Lesson, Lesson]] = []
    groups = _by_day(lessons)

    for day in sorted(groups, key=WEEKDAYS.index):
        day_lessons = groups[day]
        for i in range(len(day_lessons)):
            s1, e1, a = day_lessons[i]
            for j in range(i + 1, len(day_lessons)):
                s2, e2, b = day_lessons[j]
                # sorted by start: nothing later can overlap a
                if s2 >= e1:
                    break
                if _overlaps(s1, e1, s2, e2):
                    conflicts.append((a, b))

    return conflicts


def apply_conflicts(lessons: Iterable[Lesson]) -> list[Lesson]:
    """
    Return copies of the lessons with is_conflict recomputed from the full set.
    """
    lessons = list(lessons)
    flags = detect_conflicts(lessons)
    return [lesson.with_conflict(flags[lesson.id]) for lesson in lessons]
