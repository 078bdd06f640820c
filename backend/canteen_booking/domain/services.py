from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Sequence

from ..models import Canteen, MealName
from .calendar import TICK_MINUTES, WorkingHoursCalendar, WorkingHoursPeriod, format_hhmm, parse_hhmm, validate_working_hours
from .errors import ValidationError
from .slots import SLOT_DURATIONS

MAX_CAPACITY = 10000
MAX_NAME_LENGTH = 100
MAX_LOCATION_LENGTH = 200

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class CanteenSnapshot:
    id: int
    name: str
    capacity: int
    calendar: WorkingHoursCalendar


@dataclass(frozen=True)
class StudentSnapshot:
    id: int
    is_admin: bool


@dataclass(frozen=True)
class ReservationRequest:
    student_id: int
    canteen_id: int
    day: date
    start: int
    duration: int

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.day, datetime.min.time()) + timedelta(minutes=self.start)

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start)


@dataclass(frozen=True)
class AvailabilityQuery:
    start_date: date
    start: int
    end_date: date
    end: int
    duration: int


@dataclass(frozen=True)
class CanteenData:
    name: str | None = None
    location: str | None = None
    capacity: int | None = None
    working_hours: tuple[WorkingHoursPeriod, ...] | None = None


def canteen_snapshot(canteen: Canteen) -> CanteenSnapshot:
    periods = [
        WorkingHoursPeriod(meal=MealName(wh.meal), start=parse_hhmm(wh.from_time), end=parse_hhmm(wh.to_time))
        for wh in canteen.working_hours
    ]
    return CanteenSnapshot(
        id=canteen.id,
        name=canteen.name,
        capacity=canteen.capacity,
        calendar=WorkingHoursCalendar(periods),
    )


def _parse_int(field: str, value: Any, message: str) -> int:
    """Whole numbers only: ints or decimal digit strings. Floats are never truncated."""
    if value is None:
        raise ValidationError(field, f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(field, message)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdecimal():
        return int(value)
    raise ValidationError(field, message)


def parse_positive_id(field: str, value: Any) -> int:
    parsed = _parse_int(field, value, f"{field} must be a positive integer")
    if parsed < 1:
        raise ValidationError(field, f"{field} must be a positive integer")
    return parsed


def parse_date(field: str, value: Any) -> date:
    if not value or not isinstance(value, str):
        raise ValidationError(field, f"{field} is required")
    if not _DATE_RE.match(value):
        raise ValidationError(field, "invalid date format. Must be YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(field, "invalid date") from exc


def parse_time(field: str, value: Any) -> int:
    if not value or not isinstance(value, str):
        raise ValidationError(field, f"{field} is required")
    try:
        return parse_hhmm(value)
    except ValueError as exc:
        raise ValidationError(field, "invalid time format. Must be HH:mm") from exc


def parse_duration(field: str, value: Any) -> int:
    parsed = _parse_int(field, value, f"{field} must be 30 or 60")
    if parsed not in SLOT_DURATIONS:
        raise ValidationError(field, f"{field} must be 30 or 60")
    return parsed


def validate_reservation_request(
    *,
    student_id: Any,
    canteen_id: Any,
    date: Any,
    time: Any,
    duration: Any,
) -> ReservationRequest:
    """
    Pure shape validation for a booking request.
    Returns the normalized request or raises ValidationError naming the field.
    """
    request = ReservationRequest(
        student_id=parse_positive_id("student_id", student_id),
        canteen_id=parse_positive_id("canteen_id", canteen_id),
        day=parse_date("date", date),
        start=parse_time("time", time),
        duration=parse_duration("duration", duration),
    )
    if request.start % TICK_MINUTES != 0:
        raise ValidationError("time", "reservations must start on the hour or half hour (e.g. 12:00, 12:30)")
    if request.duration == 60 and request.start % 60 != 0:
        raise ValidationError("time", "60-minute reservations must start on the hour (e.g. 08:00, 09:00)")
    return request


def validate_availability_query(
    *,
    start_date: Any,
    start_time: Any,
    end_date: Any,
    end_time: Any,
    duration: Any,
) -> AvailabilityQuery:
    query = AvailabilityQuery(
        start_date=parse_date("start_date", start_date),
        start=parse_time("start_time", start_time),
        end_date=parse_date("end_date", end_date),
        end=parse_time("end_time", end_time),
        duration=parse_duration("duration", duration),
    )
    if (query.end_date, query.end) < (query.start_date, query.start):
        raise ValidationError("end_date", "end must not be before start")
    return query


def validate_date_range(start_date: Any, end_date: Any) -> tuple[date, date]:
    start = parse_date("start_date", start_date)
    end = parse_date("end_date", end_date)
    if end < start:
        raise ValidationError("end_date", "end_date must not be before start_date")
    return start, end


def _validate_text(field: str, value: Any, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} is required")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(field, f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(field, f"{field} cannot exceed {max_length} characters")
    return trimmed


def _validate_capacity(value: Any) -> int:
    if value is None:
        raise ValidationError("capacity", "capacity is required")
    try:
        capacity = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("capacity", "capacity must be a positive integer") from exc
    if capacity < 1:
        raise ValidationError("capacity", "capacity must be a positive integer")
    if capacity > MAX_CAPACITY:
        raise ValidationError("capacity", f"capacity cannot exceed {MAX_CAPACITY}")
    return capacity


def validate_canteen_data(
    *,
    name: Any,
    location: Any,
    capacity: Any,
    working_hours: Sequence[Mapping[str, str]] | None,
) -> CanteenData:
    return CanteenData(
        name=_validate_text("name", name, MAX_NAME_LENGTH),
        location=_validate_text("location", location, MAX_LOCATION_LENGTH),
        capacity=_validate_capacity(capacity),
        working_hours=tuple(validate_working_hours(working_hours or [])),
    )


def validate_canteen_update(changes: Mapping[str, Any]) -> CanteenData:
    """Validate only the fields present in `changes`; at least one is required."""
    data = CanteenData(
        name=_validate_text("name", changes["name"], MAX_NAME_LENGTH) if "name" in changes else None,
        location=(
            _validate_text("location", changes["location"], MAX_LOCATION_LENGTH) if "location" in changes else None
        ),
        capacity=_validate_capacity(changes["capacity"]) if "capacity" in changes else None,
        working_hours=(
            tuple(validate_working_hours(changes["working_hours"] or [])) if "working_hours" in changes else None
        ),
    )
    if data == CanteenData():
        raise ValidationError("body", "at least one field to update is required")
    return data


def validate_student_data(*, name: Any, email: Any) -> tuple[str, str]:
    trimmed_name = _validate_text("name", name, MAX_NAME_LENGTH)
    if not isinstance(email, str) or not email:
        raise ValidationError("email", "email is required")
    if not _EMAIL_RE.match(email):
        raise ValidationError("email", "invalid email format")
    return trimmed_name, email
