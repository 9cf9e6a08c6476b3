import json
import unittest
from dataclasses import FrozenInstanceError

from academia.drafts import DraftSession, reconcile
from academia.model import Lesson
from academia.schedule import LessonStore
from academia.storage import SCHEDULE_KEY, MemoryStore


def lesson(lesson_id: str, day: str, start: str, end: str, flag: bool = False) -> Lesson:
    return Lesson(id=lesson_id, subject=lesson_id, day_of_week=day, start_time=start, end_time=end, is_conflict=flag)


class TestReconcile(unittest.TestCase):
    def test_conflict_against_existing_schedule(self) -> None:
        existing = [lesson("old", "Monday", "09:00", "10:00")]
        drafts = [lesson("new", "Monday", "09:30", "10:30")]
        result = reconcile(existing, drafts)
        self.assertEqual([x.id for x in result], ["new"])
        self.assertTrue(result[0].is_conflict)

    def test_advisory_flag_ignored(self) -> None:
        drafts = [lesson("a", "Monday", "09:00", "10:00", flag=True)]
        self.assertFalse(reconcile([], drafts)[0].is_conflict)

    def test_existing_lessons_not_returned(self) -> None:
        existing = [lesson("old", "Monday", "09:00", "10:00")]
        drafts = [lesson("n1", "Tuesday", "09:00", "10:00"), lesson("n2", "Tuesday", "09:30", "10:00")]
        result = reconcile(existing, drafts)
        self.assertEqual([(x.id, x.is_conflict) for x in result], [("n1", True), ("n2", True)])


class TestDraftSession(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryStore()
        self.store = LessonStore(self.backend)
        self.store.append([lesson("old", "Monday", "09:00", "10:00")])

    def test_edit_resolves_conflict(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Monday", "09:30", "10:30")])
        self.assertTrue(session.drafts[0].is_conflict)

        drafts = session.edit_field("new", "startTime", "10:00")
        self.assertEqual(drafts[0].start_time, "10:00")
        self.assertFalse(drafts[0].is_conflict)

    def test_drafts_only_change_through_edit_field(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Monday", "09:30", "10:30")])
        with self.assertRaises(FrozenInstanceError):
            session.drafts[0].start_time = "10:00"
        self.assertEqual(session.drafts[0].start_time, "09:30")
        self.assertTrue(session.drafts[0].is_conflict)

    def test_edit_creates_conflict(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Tuesday", "09:30", "10:30")])
        self.assertFalse(session.drafts[0].is_conflict)
        drafts = session.edit_field("new", "day_of_week", "mon")
        self.assertEqual(drafts[0].day_of_week, "Monday")
        self.assertTrue(drafts[0].is_conflict)

    def test_edit_rejects_unknown(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Tuesday", "09:30", "10:30")])
        with self.assertRaises(KeyError):
            session.edit_field("missing", "subject", "x")
        with self.assertRaises(ValueError):
            session.edit_field("new", "isConflict", True)
        with self.assertRaises(ValueError):
            session.edit_field("new", "id", "other")

    def test_empty_instructor_becomes_none(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Tuesday", "09:30", "10:30")])
        drafts = session.edit_field("new", "instructor", "  ")
        self.assertIsNone(drafts[0].instructor)

    def test_commit_appends_to_schedule(self) -> None:
        session = DraftSession(self.store, [lesson("new", "Monday", "09:30", "10:30")])
        schedule = session.commit()
        self.assertEqual([x.id for x in schedule], ["old", "new"])
        self.assertTrue(all(x.is_conflict for x in schedule))
        self.assertEqual(len(session), 0)
        self.assertEqual(len(json.loads(self.backend.get(SCHEDULE_KEY))), 2)

    def test_discard_has_no_side_effect(self) -> None:
        before = self.backend.get(SCHEDULE_KEY)
        session = DraftSession(self.store, [lesson("new", "Monday", "09:30", "10:30")])
        session.discard()
        self.assertEqual(session.drafts, [])
        self.assertEqual(self.backend.get(SCHEDULE_KEY), before)
        self.assertEqual([x.id for x in self.store.lessons], ["old"])

    def test_colliding_draft_id_is_replaced(self) -> None:
        session = DraftSession(self.store, [lesson("old", "Friday", "09:00", "10:00")])
        self.assertNotEqual(session.drafts[0].id, "old")


if __name__ == "__main__":
    unittest.main()
