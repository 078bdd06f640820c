from __future__ import annotations

from datetime import date
from typing import Any


class DomainError(Exception):
    """Base class for failures the booking core reports to its callers."""

    code = "domain_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(DomainError):
    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "field": self.field}


class InvalidWorkingHoursError(ValidationError):
    code = "invalid_working_hours"

    def __init__(self, message: str) -> None:
        super().__init__("working_hours", message)


class NotFoundError(DomainError):
    code = "not_found"

    def __init__(self, resource: str, identifier: int) -> None:
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "resource": self.resource}


class UnauthorizedError(DomainError):
    code = "unauthorized"


class OutsideWorkingHoursError(DomainError):
    code = "outside_working_hours"

    def __init__(self, time: str, duration: int) -> None:
        super().__init__(f"a {duration}-minute reservation at {time} is outside working hours")
        self.time = time
        self.duration = duration

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "field": "time"}


class PastDateTimeError(DomainError):
    code = "past_date_time"

    def __init__(self) -> None:
        super().__init__("reservation date and time cannot be in the past")

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "field": "date"}


class DuplicateBookingError(DomainError):
    code = "duplicate_booking"

    def __init__(self, reservation_id: int, tick: str) -> None:
        super().__init__(f"student already holds reservation {reservation_id} covering {tick}")
        self.reservation_id = reservation_id
        self.tick = tick

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "reservation_id": self.reservation_id, "tick": self.tick}


class SlotFullError(DomainError):
    code = "slot_full"

    def __init__(self, day: date, tick: str) -> None:
        super().__init__(f"slot at {day.isoformat()} {tick} is fully booked")
        self.day = day
        self.tick = tick

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "date": self.day.isoformat(), "tick": self.tick}


class AlreadyCancelledError(DomainError):
    code = "already_cancelled"

    def __init__(self, reservation_id: int) -> None:
        super().__init__(f"reservation {reservation_id} is already cancelled")
        self.reservation_id = reservation_id
