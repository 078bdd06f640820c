from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

from ..models import MealName
from .calendar import TICK_MINUTES, WorkingHoursCalendar, format_hhmm

DAY_END_MINUTE = 23 * 60 + 59
SLOT_DURATIONS = (30, 60)


def occupied_ticks(start: int, duration: int) -> tuple[int, ...]:
    """30-minute ticks held by a booking of `duration` minutes starting at `start`."""
    return tuple(range(start, start + duration, TICK_MINUTES))


@dataclass(frozen=True)
class Slot:
    day: date
    start: int
    meal: MealName
    duration: int

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start)

    @property
    def ticks(self) -> tuple[int, ...]:
        return occupied_ticks(self.start, self.duration)


def _round_up_to_tick(minute: int) -> int:
    return -(-minute // TICK_MINUTES) * TICK_MINUTES


@dataclass(frozen=True)
class SlotGenerator:
    """
    Bookable slots between two date/times, ascending by (date, start).

    Iterating twice yields the same slots. Ticks are walked in 30-minute
    steps whatever the duration, starting from the first tick at or after
    the requested start; intermediate days run from 00:00 to 23:59.
    """

    start_date: date
    start: int
    end_date: date
    end: int
    duration: int
    calendar: WorkingHoursCalendar

    def __iter__(self) -> Iterator[Slot]:
        day = self.start_date
        while day <= self.end_date:
            first = _round_up_to_tick(self.start) if day == self.start_date else 0
            last = self.end if day == self.end_date else DAY_END_MINUTE
            yield from self._slots_for_day(day, first, last)
            day += timedelta(days=1)

    def _slots_for_day(self, day: date, first: int, last: int) -> Iterator[Slot]:
        tick = first
        while tick + self.duration <= last:
            meal = self.calendar.meal_for_span(tick, self.duration)
            if meal is not None:
                yield Slot(day=day, start=tick, meal=meal, duration=self.duration)
            tick += TICK_MINUTES
