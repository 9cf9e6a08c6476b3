"""
"Upcoming class" reminders.

ReminderScheduler polls on a fixed interval. Each tick looks at today's
lessons, computes how many whole minutes remain until each one starts, and
emits a reminder when that number falls inside the lead window:

    window policy (default):  0 < minutes_left <= lead_minutes
    exact policy:             minutes_left == lead_minutes

The exact policy can miss a lesson if a tick is late; the window policy
cannot, and the fire log keeps it to one reminder per lesson per date.

Nothing is emitted unless the notification permission is GRANTED.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

from academia.model import WEEKDAYS, Lesson

logger = logging.getLogger(__name__)

DEFAULT_LEAD_MINUTES = 15
DEFAULT_POLL_SECONDS = 60.0


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    NOT_YET_ASKED = "not-yet-asked"


class ReminderPolicy(str, Enum):
    WINDOW = "window"
    EXACT = "exact"


class NotificationPermission(Protocol):
    @property
    def state(self) -> PermissionState: ...

    def request(self) -> PermissionState: ...


class StaticPermission:
    """Permission holder with a fixed answer to request()."""

    def __init__(
        self,
        state: PermissionState = PermissionState.NOT_YET_ASKED,
        answer: PermissionState = PermissionState.GRANTED,
    ) -> None:
        self._state = state
        self._answer = answer

    @property
    def state(self) -> PermissionState:
        return self._state

    def request(self) -> PermissionState:
        if self._state == PermissionState.NOT_YET_ASKED:
            self._state = self._answer
        return self._state


ReminderSink = Callable[[str, str], None]


@dataclass(frozen=True)
class ReminderConfig:
    lead_minutes: int = DEFAULT_LEAD_MINUTES
    interval_seconds: float = DEFAULT_POLL_SECONDS
    policy: ReminderPolicy = ReminderPolicy.WINDOW

    def __post_init__(self) -> None:
        if self.lead_minutes <= 0:
            raise ValueError("lead_minutes must be positive")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")


@dataclass(frozen=True)
class Reminder:
    lesson_id: str
    occurrence: date
    title: str
    body: str


class ReminderFireLog:
    """
    (lesson_id, occurrence_date) pairs that were already notified.
    """

    def __init__(self) -> None:
        self._fired: set[tuple[str, date]] = set()

    def __contains__(self, key: tuple[str, date]) -> bool:
        return key in self._fired

    def __len__(self) -> int:
        return len(self._fired)

    def add(self, lesson_id: str, occurrence: date) -> None:
        self._fired.add((lesson_id, occurrence))

    def prune(self, today: date) -> int:
        """Drop entries for dates before today. Returns how many were dropped."""
        stale = {key for key in self._fired if key[1] < today}
        self._fired -= stale
        return len(stale)


def minutes_until(lesson: Lesson, now: datetime) -> Optional[int]:
    """
    Whole minutes from now until the lesson's start time today (floored,
    negative once it has started). None for lessons without a valid time.
    """
    span = lesson.interval()
    if span is None:
        return None
    start = now.replace(hour=span[0] // 60, minute=span[0] % 60, second=0, microsecond=0)
    return math.floor((start - now).total_seconds() / 60)


def reminder_text(lesson: Lesson, minutes_left: int) -> tuple[str, str]:
    title = f"Upcoming Class: {lesson.subject}"
    where = lesson.location or "N/A"
    return title, f"Starting in {minutes_left} mins at {where}"


class ReminderScheduler:
    def __init__(
        self,
        lessons: Callable[[], Iterable[Lesson]],
        sink: ReminderSink,
        permission: NotificationPermission,
        config: ReminderConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._lessons = lessons
        self._sink = sink
        self._permission = permission
        self.config = config or ReminderConfig()
        self._clock = clock
        self.fire_log = ReminderFireLog()

        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _due(self, minutes_left: int) -> bool:
        if self.config.policy == ReminderPolicy.EXACT:
            return minutes_left == self.config.lead_minutes
        return 0 < minutes_left <= self.config.lead_minutes

    def tick(self, now: datetime | None = None) -> list[Reminder]:
        """
        Evaluate all lessons once and emit whatever is due.
        Ticks never overlap: a second caller waits for the first to finish.
        """
        with self._tick_lock:
            now = now or self._clock()
            today = now.date()
            self.fire_log.prune(today)

            if self._permission.state != PermissionState.GRANTED:
                logger.debug("Notifications not granted, skipping tick")
                return []

            current_day = WEEKDAYS[now.weekday()]
            fired: list[Reminder] = []
            for lesson in self._lessons():
                if not lesson.is_valid or lesson.day_of_week != current_day:
                    continue
                minutes_left = minutes_until(lesson, now)
                if minutes_left is None or not self._due(minutes_left):
                    continue
                if (lesson.id, today) in self.fire_log:
                    continue

                title, body = reminder_text(lesson, minutes_left)
                try:
                    self._sink(title, body)
                except Exception:
                    # not logged as fired, so the next tick retries
                    logger.exception("Reminder sink failed for lesson %s", lesson.id)
                    continue
                self.fire_log.add(lesson.id, today)
                fired.append(Reminder(lesson.id, today, title, body))
                logger.info("Reminder sent for %s (%s)", lesson.subject, lesson.id)

            return fired

    # ------------------------------------------------------------------
    # Background polling
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="academia-reminders", daemon=True)
        self._thread.start()
        logger.info("Reminder polling started (every %ss)", self.config.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """
        Stop polling. Waits for an in-flight tick to complete.
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reminder polling stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Reminder tick failed")
            self._stop.wait(self.config.interval_seconds)
