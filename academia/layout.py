"""
Weekly grid layout.

Projects lessons onto a timetable grid: one column per configured weekday,
rows from grid_start_hour to grid_end_hour, pixels_per_hour vertical scale.

Lessons that run past the grid window are clipped to it. Lessons entirely
outside the window, on a day without a column, or with invalid times are not
placed (they stay in the schedule, they are just not drawn).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from academia.model import WEEKDAYS, Lesson

MIN_BLOCK_PX = 1.0


@dataclass(frozen=True)
class GridConfig:
    day_columns: tuple[str, ...] = field(default_factory=lambda: tuple(WEEKDAYS[:6]))
    grid_start_hour: int = 8
    grid_end_hour: int = 22
    pixels_per_hour: float = 80.0

    def __post_init__(self) -> None:
        if len(self.day_columns) not in (6, 7):
            raise ValueError(f"day_columns must have 6 or 7 entries, got {len(self.day_columns)}")
        unknown = [d for d in self.day_columns if d not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown day column(s): {unknown}")
        if not (0 <= self.grid_start_hour < self.grid_end_hour <= 24):
            raise ValueError(f"Invalid hour window: {self.grid_start_hour}-{self.grid_end_hour}")
        if self.pixels_per_hour <= 0:
            raise ValueError("pixels_per_hour must be positive")

    def hours(self) -> list[int]:
        """Hour labels for the grid rows, e.g. [8, 9, ..., 21]."""
        return list(range(self.grid_start_hour, self.grid_end_hour))

    @property
    def height_px(self) -> float:
        return (self.grid_end_hour - self.grid_start_hour) * self.pixels_per_hour


@dataclass(frozen=True)
class Placement:
    lesson_id: str
    day_column_index: int
    top_offset_px: float
    height_px: float
    clipped: bool = False


def place_lesson(lesson: Lesson, config: GridConfig) -> Optional[Placement]:
    """
    Compute where a lesson is drawn on the grid, or None if it is not drawn.
    """
    if not lesson.is_valid or lesson.day_of_week not in config.day_columns:
        return None
    span = lesson.interval()
    if span is None:
        return None
    start, end = span

    window_start = config.grid_start_hour * 60
    window_end = config.grid_end_hour * 60
    shown_start = max(start, window_start)
    shown_end = min(end, window_end)
    if shown_end <= shown_start:
        return None

    pph = config.pixels_per_hour
    top = (shown_start - window_start) / 60 * pph
    height = (shown_end - shown_start) / 60 * pph

    return Placement(
        lesson_id=lesson.id,
        day_column_index=config.day_columns.index(lesson.day_of_week),
        top_offset_px=round(top, 2),
        height_px=max(round(height, 2), MIN_BLOCK_PX),
        clipped=(shown_start, shown_end) != (start, end),
    )


def layout_week(lessons: Iterable[Lesson], config: GridConfig | None = None) -> list[Placement]:
    """
    Place every drawable lesson, ordered by column then top offset.
    """
    config = config or GridConfig()
    placements = [p for p in (place_lesson(lesson, config) for lesson in lessons) if p is not None]
    placements.sort(key=lambda p: (p.day_column_index, p.top_offset_px))
    return placements
