"""
Unit tests for the reminder scheduler.

2024-01-01 is a Monday; all ticks use explicit timestamps.
"""

import threading
import unittest
from datetime import date, datetime

from academia.model import Lesson
from academia.reminders import (
    PermissionState,
    ReminderConfig,
    ReminderFireLog,
    ReminderPolicy,
    ReminderScheduler,
    StaticPermission,
    minutes_until,
)

MONDAY = datetime(2024, 1, 1)


def at(hour: int, minute: int, second: int = 0, day: datetime = MONDAY) -> datetime:
    return day.replace(hour=hour, minute=minute, second=second)


class Recorder:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def __call__(self, title: str, body: str) -> None:
        self.sent.append((title, body))


def make_scheduler(lessons, policy=ReminderPolicy.WINDOW, state=PermissionState.GRANTED):
    sink = Recorder()
    scheduler = ReminderScheduler(
        lambda: lessons,
        sink,
        StaticPermission(state),
        ReminderConfig(lead_minutes=15, interval_seconds=60, policy=policy),
    )
    return scheduler, sink


class TestReminderScheduler(unittest.TestCase):
    def setUp(self) -> None:
        self.lesson = Lesson("a", "Physics", "Monday", "10:00", "11:00", "Lab 2")

    def test_fires_once_per_occurrence(self) -> None:
        scheduler, sink = make_scheduler([self.lesson])

        fired = scheduler.tick(at(9, 45))
        self.assertEqual(len(fired), 1)
        self.assertEqual(sink.sent, [("Upcoming Class: Physics", "Starting in 15 mins at Lab 2")])

        self.assertEqual(scheduler.tick(at(9, 46)), [])
        self.assertEqual(len(sink.sent), 1)

    def test_missed_boundary_still_fires(self) -> None:
        scheduler, sink = make_scheduler([self.lesson])
        scheduler.tick(at(9, 40))
        self.assertEqual(sink.sent, [])
        # the 09:45 tick was skipped
        scheduler.tick(at(9, 47))
        self.assertEqual(len(sink.sent), 1)
        self.assertIn("13 mins", sink.sent[0][1])

    def test_not_after_start(self) -> None:
        scheduler, sink = make_scheduler([self.lesson])
        scheduler.tick(at(10, 0))
        scheduler.tick(at(10, 5))
        self.assertEqual(sink.sent, [])

    def test_other_day_ignored(self) -> None:
        tuesday = Lesson("b", "Chemistry", "Tuesday", "10:00", "11:00")
        scheduler, sink = make_scheduler([tuesday])
        scheduler.tick(at(9, 45))
        self.assertEqual(sink.sent, [])

    def test_exact_policy(self) -> None:
        scheduler, sink = make_scheduler([self.lesson], policy=ReminderPolicy.EXACT)
        scheduler.tick(at(9, 46))
        self.assertEqual(sink.sent, [])
        scheduler.tick(at(9, 45))
        self.assertEqual(len(sink.sent), 1)

    def test_permission_gate(self) -> None:
        for state in (PermissionState.DENIED, PermissionState.NOT_YET_ASKED):
            scheduler, sink = make_scheduler([self.lesson], state=state)
            self.assertEqual(scheduler.tick(at(9, 45)), [])
            self.assertEqual(sink.sent, [])
            self.assertEqual(len(scheduler.fire_log), 0)

    def test_permission_checked_every_tick(self) -> None:
        permission = StaticPermission(PermissionState.NOT_YET_ASKED)
        sink = Recorder()
        scheduler = ReminderScheduler(lambda: [self.lesson], sink, permission)
        scheduler.tick(at(9, 45))
        self.assertEqual(sink.sent, [])
        permission.request()
        scheduler.tick(at(9, 46))
        self.assertEqual(len(sink.sent), 1)

    def test_next_week_fires_again(self) -> None:
        scheduler, sink = make_scheduler([self.lesson])
        scheduler.tick(at(9, 45))
        scheduler.tick(at(9, 45, day=datetime(2024, 1, 8)))
        self.assertEqual(len(sink.sent), 2)
        # last week's entry was pruned
        self.assertEqual(len(scheduler.fire_log), 1)

    def test_failing_sink_retries_next_tick(self) -> None:
        calls = []

        def flaky(title: str, body: str) -> None:
            calls.append(title)
            if len(calls) == 1:
                raise RuntimeError("notification backend down")

        scheduler = ReminderScheduler(lambda: [self.lesson], flaky, StaticPermission(PermissionState.GRANTED))
        with self.assertLogs("academia.reminders", level="ERROR"):
            self.assertEqual(scheduler.tick(at(9, 45)), [])
        self.assertEqual(len(scheduler.tick(at(9, 46))), 1)
        self.assertEqual(len(calls), 2)

    def test_invalid_lesson_skipped(self) -> None:
        broken = Lesson("x", "Broken", "Monday", "10:00", "10:00")
        scheduler, sink = make_scheduler([broken])
        scheduler.tick(at(9, 45))
        self.assertEqual(sink.sent, [])

    def test_location_fallback(self) -> None:
        lesson = Lesson("c", "Art", "Monday", "10:00", "11:00")
        scheduler, sink = make_scheduler([lesson])
        scheduler.tick(at(9, 45))
        self.assertEqual(sink.sent[0][1], "Starting in 15 mins at N/A")


class TestPolling(unittest.TestCase):
    def test_start_and_stop(self) -> None:
        ticked = threading.Event()

        def lessons():
            ticked.set()
            return []

        scheduler = ReminderScheduler(
            lessons,
            Recorder(),
            StaticPermission(PermissionState.GRANTED),
            ReminderConfig(interval_seconds=0.01),
        )
        scheduler.start()
        self.assertTrue(ticked.wait(2.0))
        scheduler.stop(timeout=2.0)
        self.assertFalse(scheduler.running)


class TestHelpers(unittest.TestCase):
    def test_minutes_until_floors(self) -> None:
        lesson = Lesson("a", "X", "Monday", "10:00", "11:00")
        self.assertEqual(minutes_until(lesson, at(9, 45)), 15)
        self.assertEqual(minutes_until(lesson, at(9, 45, 30)), 14)
        self.assertEqual(minutes_until(lesson, at(10, 30)), -30)

    def test_fire_log_prune(self) -> None:
        log = ReminderFireLog()
        log.add("a", date(2024, 1, 1))
        log.add("b", date(2024, 1, 2))
        self.assertEqual(log.prune(date(2024, 1, 2)), 1)
        self.assertNotIn(("a", date(2024, 1, 1)), log)
        self.assertIn(("b", date(2024, 1, 2)), log)

    def test_invalid_config(self) -> None:
        with self.assertRaises(ValueError):
            ReminderConfig(lead_minutes=0)
        with self.assertRaises(ValueError):
            ReminderConfig(interval_seconds=0)


if __name__ == "__main__":
    unittest.main()
