from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..models import MealName
from .errors import InvalidWorkingHoursError

TICK_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """Parse ``HH:mm`` into minutes of day. Raises ValueError when malformed."""
    match = _HHMM_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"invalid time {value!r}, expected HH:mm")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


@dataclass(frozen=True)
class WorkingHoursPeriod:
    meal: MealName
    start: int
    end: int

    def contains(self, minute: int) -> bool:
        return self.start <= minute < self.end

    @property
    def from_time(self) -> str:
        return format_hhmm(self.start)

    @property
    def to_time(self) -> str:
        return format_hhmm(self.end)


class WorkingHoursCalendar:
    """Meal periods of one canteen, kept sorted by start."""

    def __init__(self, periods: Iterable[WorkingHoursPeriod]) -> None:
        self.periods: tuple[WorkingHoursPeriod, ...] = tuple(sorted(periods, key=lambda p: p.start))

    def _period_at(self, minute: int) -> WorkingHoursPeriod | None:
        for period in self.periods:
            if period.contains(minute):
                return period
        return None

    def classify(self, minute: int) -> MealName | None:
        period = self._period_at(minute)
        return period.meal if period is not None else None

    def meal_for_span(self, start: int, duration: int) -> MealName | None:
        """
        Meal of a bookable slot starting at `start`, or None.

        The whole span must sit inside a single period, and 60-minute slots
        only begin on the hour.
        """
        if duration == 60 and start % 60 != 0:
            return None
        period = self._period_at(start)
        if period is None or start + duration > period.end:
            return None
        return period.meal


def validate_working_hours(periods: Sequence[Mapping[str, str]]) -> list[WorkingHoursPeriod]:
    """Validate raw ``{"meal", "from", "to"}`` entries and return them sorted."""
    if not periods:
        raise InvalidWorkingHoursError("at least one working hours period is required")

    parsed: list[WorkingHoursPeriod] = []
    for raw in periods:
        meal_value = raw.get("meal")
        if not isinstance(meal_value, str) or not meal_value:
            raise InvalidWorkingHoursError("each working hours period must have a meal name")
        try:
            meal = MealName(meal_value.strip().lower())
        except ValueError as exc:
            raise InvalidWorkingHoursError(
                f"invalid meal type: {meal_value}. Must be breakfast, lunch, or dinner"
            ) from exc

        bounds: list[int] = []
        for key in ("from", "to"):
            value = raw.get(key)
            try:
                bounds.append(parse_hhmm(value))  # type: ignore[arg-type]
            except ValueError as exc:
                raise InvalidWorkingHoursError(f"invalid {key} time format: {value}. Must be HH:mm") from exc
        start, end = bounds

        if start >= end:
            raise InvalidWorkingHoursError(
                f"working hours 'from' ({format_hhmm(start)}) must be before 'to' ({format_hhmm(end)})"
            )
        if end - start < TICK_MINUTES:
            raise InvalidWorkingHoursError("each working hours period must be at least 30 minutes")
        parsed.append(WorkingHoursPeriod(meal=meal, start=start, end=end))

    parsed.sort(key=lambda p: p.start)
    for current, following in zip(parsed, parsed[1:]):
        if current.end > following.start:
            raise InvalidWorkingHoursError("working hours periods cannot overlap")
    return parsed
