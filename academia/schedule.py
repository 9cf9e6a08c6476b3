"""
Lesson store and material library.

LessonStore owns the canonical weekly schedule. It is mutated only through
append() and clear(); each mutation recomputes the conflict flags over the full
set, persists the new snapshot, and only then makes it visible. If the write
fails the exception propagates and the previous schedule stays in place.

MaterialLibrary is the same idea for uploaded study documents.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Iterable, Optional

from academia.conflicts import apply_conflicts
from academia.model import Lesson, MaterialSummary, StudyMaterial, new_lesson_id, new_material_id
from academia.storage import MATERIALS_KEY, SCHEDULE_KEY, KeyValueStore, load_records, save_records

logger = logging.getLogger(__name__)


class LessonStore:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lessons: list[Lesson] = []
        self._lock = threading.Lock()

    @property
    def lessons(self) -> list[Lesson]:
        """Snapshot of the current schedule, in insertion order."""
        return list(self._lessons)

    def __len__(self) -> int:
        return len(self._lessons)

    def get(self, lesson_id: str) -> Optional[Lesson]:
        for lesson in self._lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def load(self) -> list[Lesson]:
        """
        Hydrate from the persistence collaborator.

        Missing or corrupt state gives an empty schedule. Persisted conflict
        flags are not trusted; they are recomputed here.
        """
        lessons: list[Lesson] = []
        seen: set[str] = set()
        for record in load_records(self._store, SCHEDULE_KEY):
            try:
                lesson = Lesson.from_dict(record)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable lesson record %r: %s", record, exc)
                continue
            if lesson.id in seen:
                logger.warning("Skipping duplicate lesson id %s", lesson.id)
                continue
            seen.add(lesson.id)
            lessons.append(lesson)

        with self._lock:
            self._lessons = apply_conflicts(lessons)
        logger.info("Loaded %d lessons", len(lessons))
        return self.lessons

    def append(self, lessons: Iterable[Lesson]) -> list[Lesson]:
        """
        Append lessons to the schedule (confirm draft).

        Lessons whose id is already taken get a fresh id.
        """
        with self._lock:
            taken = {lesson.id for lesson in self._lessons}
            incoming: list[Lesson] = []
            for lesson in lessons:
                if lesson.id in taken:
                    fresh = new_lesson_id()
                    logger.warning("Lesson id %s already exists, using %s", lesson.id, fresh)
                    lesson = replace(lesson, id=fresh)
                taken.add(lesson.id)
                incoming.append(lesson)

            updated = apply_conflicts(self._lessons + incoming)
            self._commit(updated)
            logger.info("Appended %d lessons (total %d)", len(incoming), len(updated))
            return list(updated)

    def clear(self) -> list[Lesson]:
        with self._lock:
            self._commit([])
            logger.info("Schedule cleared")
            return []

    def _commit(self, lessons: list[Lesson]) -> None:
        # persist first: a failed write must leave the in-memory state untouched
        save_records(self._store, SCHEDULE_KEY, [lesson.to_dict() for lesson in lessons])
        self._lessons = lessons


class MaterialLibrary:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._materials: list[StudyMaterial] = []
        self._lock = threading.Lock()

    @property
    def materials(self) -> list[StudyMaterial]:
        """Newest first."""
        return list(self._materials)

    def get(self, material_id: str) -> Optional[StudyMaterial]:
        for material in self._materials:
            if material.id == material_id:
                return material
        return None

    def search(self, query: str) -> list[StudyMaterial]:
        """
        Materials whose name contains query (case-insensitive), newest first.
        A blank query matches everything.
        """
        needle = query.strip().casefold()
        return [m for m in self._materials if needle in m.name.casefold()]

    def load(self) -> list[StudyMaterial]:
        materials: list[StudyMaterial] = []
        for record in load_records(self._store, MATERIALS_KEY):
            try:
                materials.append(StudyMaterial.from_dict(record))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable material record: %s", exc)
        with self._lock:
            self._materials = materials
        return self.materials

    def add(
        self,
        name: str,
        mime_type: str,
        content: str,
        summary: Optional[MaterialSummary] = None,
    ) -> StudyMaterial:
        material = StudyMaterial(
            id=new_material_id(),
            name=name,
            mime_type=mime_type,
            content=content,
            upload_date=int(time.time() * 1000),
            summary=summary,
        )
        with self._lock:
            self._commit([material] + self._materials)
        logger.info("Added material %s (%s)", material.id, name)
        return material

    def delete(self, material_id: str) -> bool:
        """
        Remove a material. Returns False (and writes nothing) if the id is unknown.
        """
        with self._lock:
            remaining = [m for m in self._materials if m.id != material_id]
            if len(remaining) == len(self._materials):
                return False
            self._commit(remaining)
        logger.info("Deleted material %s", material_id)
        return True

    def _commit(self, materials: list[StudyMaterial]) -> None:
        save_records(self._store, MATERIALS_KEY, [m.to_dict() for m in materials])
        self._materials = materials
