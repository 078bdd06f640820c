"""
In-memory backing for the booking core.

Plays the role of the key-value counter store: tick counters live in one
dict keyed by ``(canteen_id, day, tick)``. ``InMemoryDatabase.begin()`` is
the unit of work, holding a lock the way a serializable transaction would.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence

from ..domain.calendar import WorkingHoursPeriod
from ..domain.repositories import (
    CanteenRepository,
    CapacityLedger,
    Denied,
    ReservationStore,
    StudentRepository,
)
from ..domain.services import CanteenData, CanteenSnapshot, StudentSnapshot, canteen_snapshot
from ..models import Canteen, CanteenWorkingHours, Reservation, ReservationStatus, Student


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryDatabase:
    def __init__(self) -> None:
        self.students: Dict[int, Student] = {}
        self.canteens: Dict[int, Canteen] = {}
        self.reservations: Dict[int, Reservation] = {}
        self.ticks: Dict[tuple[int, date, int], int] = defaultdict(int)
        self.ids = defaultdict(lambda: itertools.count(1))
        self._tx_lock = asyncio.Lock()
        self.ledger_lock = asyncio.Lock()

    def next_id(self, table: str) -> int:
        return next(self.ids[table])

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["InMemoryDatabase"]:
        async with self._tx_lock:
            yield self


class InMemoryStudentRepository(StudentRepository):
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get(self, student_id: int) -> StudentSnapshot | None:
        student = self.db.students.get(student_id)
        return StudentSnapshot(id=student.id, is_admin=student.is_admin) if student is not None else None

    async def get_for_update(self, student_id: int) -> StudentSnapshot | None:
        return await self.get(student_id)

    async def get_model(self, student_id: int) -> Student | None:
        return self.db.students.get(student_id)

    async def get_by_email(self, email: str) -> Student | None:
        return next((s for s in self.db.students.values() if s.email == email), None)

    async def create(self, *, name: str, email: str, is_admin: bool) -> Student:
        student = Student(
            id=self.db.next_id("students"),
            name=name,
            email=email,
            is_admin=is_admin,
            created_at=_utc_now_naive(),
        )
        self.db.students[student.id] = student
        return student


class InMemoryCanteenRepository(CanteenRepository):
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get_model(self, canteen_id: int) -> Canteen | None:
        return self.db.canteens.get(canteen_id)

    async def list_models(self) -> List[Canteen]:
        return [self.db.canteens[key] for key in sorted(self.db.canteens)]

    async def get(self, canteen_id: int) -> CanteenSnapshot | None:
        canteen = self.db.canteens.get(canteen_id)
        return canteen_snapshot(canteen) if canteen is not None else None

    async def list_all(self) -> List[CanteenSnapshot]:
        return [canteen_snapshot(canteen) for canteen in await self.list_models()]

    async def create(
        self,
        *,
        name: str,
        location: str,
        capacity: int,
        working_hours: Sequence[WorkingHoursPeriod],
        created_by_id: int,
    ) -> Canteen:
        now = _utc_now_naive()
        canteen = Canteen(
            id=self.db.next_id("canteens"),
            name=name,
            location=location,
            capacity=capacity,
            created_by_id=created_by_id,
            working_hours=[
                CanteenWorkingHours(meal=p.meal, from_time=p.from_time, to_time=p.to_time) for p in working_hours
            ],
            created_at=now,
            updated_at=now,
        )
        self.db.canteens[canteen.id] = canteen
        return canteen

    async def update(self, canteen: Canteen, changes: CanteenData) -> Canteen:
        if changes.name is not None:
            canteen.name = changes.name
        if changes.location is not None:
            canteen.location = changes.location
        if changes.capacity is not None:
            canteen.capacity = changes.capacity
        if changes.working_hours is not None:
            canteen.working_hours = [
                CanteenWorkingHours(meal=p.meal, from_time=p.from_time, to_time=p.to_time)
                for p in changes.working_hours
            ]
        canteen.updated_at = _utc_now_naive()
        return canteen


class InMemoryReservationRepository(ReservationStore):
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def create(
        self,
        *,
        student_id: int,
        canteen_id: int,
        day: date,
        start_minute: int,
        duration_minutes: int,
        status: ReservationStatus,
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            id=self.db.next_id("reservations"),
            student_id=student_id,
            canteen_id=canteen_id,
            day=day,
            start_minute=start_minute,
            duration_minutes=duration_minutes,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.db.reservations[reservation.id] = reservation
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.db.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return self.db.reservations.get(reservation_id)

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        reservation.status = status
        reservation.updated_at = _utc_now_naive()
        return reservation

    async def list_active_for_student(self, student_id: int, day: date) -> List[Reservation]:
        return [
            r
            for r in self.db.reservations.values()
            if r.student_id == student_id and r.day == day and r.status == ReservationStatus.ACTIVE
        ]

    async def list_by_student(self, student_id: int, start_date: date, end_date: date) -> List[Reservation]:
        rows = [
            r
            for r in self.db.reservations.values()
            if r.student_id == student_id and start_date <= r.day <= end_date
        ]
        return sorted(rows, key=lambda r: (r.day, r.start_minute, r.id))


class InMemoryCapacityLedger(CapacityLedger):
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def occupancy(self, canteen_id: int, day: date, tick: int) -> int:
        return self.db.ticks.get((canteen_id, day, tick), 0)

    async def occupancy_map(self, canteen_id: int, start_date: date, end_date: date) -> Dict[tuple[date, int], int]:
        return {
            (day, tick): count
            for (cid, day, tick), count in self.db.ticks.items()
            if cid == canteen_id and start_date <= day <= end_date
        }

    async def try_reserve(self, canteen_id: int, day: date, ticks: Sequence[int], capacity: int) -> Denied | None:
        async with self.db.ledger_lock:
            for tick in ticks:
                current = self.db.ticks.get((canteen_id, day, tick), 0)
                if current >= capacity:
                    return Denied(tick=tick, occupancy=current)
            for tick in ticks:
                self.db.ticks[(canteen_id, day, tick)] += 1
        return None

    async def release(self, canteen_id: int, day: date, ticks: Sequence[int]) -> None:
        async with self.db.ledger_lock:
            for tick in ticks:
                key = (canteen_id, day, tick)
                self.db.ticks[key] = max(self.db.ticks[key] - 1, 0)
