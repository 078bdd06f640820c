from datetime import datetime

import pytest
from canteen_booking.domain.calendar import validate_working_hours
from canteen_booking.infrastructure.memory import (
    InMemoryCanteenRepository,
    InMemoryCapacityLedger,
    InMemoryDatabase,
    InMemoryReservationRepository,
    InMemoryStudentRepository,
)
from canteen_booking.models import Reservation
from canteen_booking.usecases import reservations as reservation_usecase

LUNCH_ONLY = [{"meal": "lunch", "from": "12:00", "to": "13:00"}]


class Backend:
    """In-memory wiring of the booking core, one unit of work per call."""

    now = datetime(2025, 1, 1, 8, 0)

    def __init__(self) -> None:
        self.db = InMemoryDatabase()
        self.students = InMemoryStudentRepository(self.db)
        self.canteens = InMemoryCanteenRepository(self.db)
        self.reservations = InMemoryReservationRepository(self.db)
        self.ledger = InMemoryCapacityLedger(self.db)

    async def add_student(self, *, is_admin: bool = False) -> int:
        count = len(self.db.students) + 1
        student = await self.students.create(name=f"Student {count}", email=f"s{count}@uni.test", is_admin=is_admin)
        return student.id

    async def add_canteen(self, *, capacity: int = 2, hours: list[dict[str, str]] | None = None, name: str = "Main") -> int:
        canteen = await self.canteens.create(
            name=name,
            location="Campus",
            capacity=capacity,
            working_hours=validate_working_hours(hours or LUNCH_ONLY),
            created_by_id=1,
        )
        return canteen.id

    async def book(
        self,
        student_id: int,
        canteen_id: int,
        *,
        date: str = "2025-01-10",
        time: str = "12:00",
        duration: int = 30,
        now: datetime | None = None,
    ) -> Reservation:
        async with self.db.begin():
            return await reservation_usecase.create_reservation(
                self.canteens,
                self.students,
                self.reservations,
                self.ledger,
                student_id=student_id,
                canteen_id=canteen_id,
                date=date,
                time=time,
                duration=duration,
                now=now or self.now,
            )

    async def cancel(self, reservation_id: int, student_id: int) -> Reservation:
        async with self.db.begin():
            return await reservation_usecase.cancel_reservation(
                self.reservations,
                self.ledger,
                reservation_id=reservation_id,
                student_id=student_id,
            )


@pytest.fixture
def backend() -> Backend:
    return Backend()
