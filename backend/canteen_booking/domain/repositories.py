from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Protocol, Sequence

from ..models import Canteen, Reservation, ReservationStatus, Student
from .calendar import WorkingHoursPeriod
from .services import CanteenData, CanteenSnapshot, StudentSnapshot


@dataclass(frozen=True)
class Denied:
    """First tick that had no capacity left when a reservation was attempted."""

    tick: int
    occupancy: int


class StudentDirectory(Protocol):
    async def get(self, student_id: int) -> StudentSnapshot | None: ...

    async def get_for_update(self, student_id: int) -> StudentSnapshot | None: ...


class StudentRepository(StudentDirectory, Protocol):
    async def create(self, *, name: str, email: str, is_admin: bool) -> Student: ...

    async def get_model(self, student_id: int) -> Student | None: ...

    async def get_by_email(self, email: str) -> Student | None: ...


class CanteenDirectory(Protocol):
    async def get(self, canteen_id: int) -> CanteenSnapshot | None: ...

    async def list_all(self) -> list[CanteenSnapshot]: ...


class CanteenRepository(CanteenDirectory, Protocol):
    async def get_model(self, canteen_id: int) -> Canteen | None: ...

    async def list_models(self) -> list[Canteen]: ...

    async def create(
        self,
        *,
        name: str,
        location: str,
        capacity: int,
        working_hours: Sequence[WorkingHoursPeriod],
        created_by_id: int,
    ) -> Canteen: ...

    async def update(self, canteen: Canteen, changes: CanteenData) -> Canteen: ...


class ReservationStore(Protocol):
    async def create(
        self,
        *,
        student_id: int,
        canteen_id: int,
        day: date,
        start_minute: int,
        duration_minutes: int,
        status: ReservationStatus,
    ) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation: ...

    async def list_active_for_student(self, student_id: int, day: date) -> list[Reservation]: ...

    async def list_by_student(self, student_id: int, start_date: date, end_date: date) -> list[Reservation]: ...


class CapacityLedger(Protocol):
    async def occupancy(self, canteen_id: int, day: date, tick: int) -> int: ...

    async def occupancy_map(self, canteen_id: int, start_date: date, end_date: date) -> Mapping[tuple[date, int], int]: ...

    async def try_reserve(self, canteen_id: int, day: date, ticks: Sequence[int], capacity: int) -> Denied | None: ...

    async def release(self, canteen_id: int, day: date, ticks: Sequence[int]) -> None: ...
