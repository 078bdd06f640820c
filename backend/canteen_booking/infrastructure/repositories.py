from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.calendar import WorkingHoursPeriod
from ..domain.repositories import (
    CanteenRepository,
    CapacityLedger,
    Denied,
    ReservationStore,
    StudentRepository,
)
from ..domain.services import CanteenData, CanteenSnapshot, StudentSnapshot, canteen_snapshot
from ..models import Canteen, CanteenWorkingHours, Reservation, ReservationStatus, Student, TickOccupancy

logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _working_hours_rows(periods: Sequence[WorkingHoursPeriod]) -> list[CanteenWorkingHours]:
    return [CanteenWorkingHours(meal=p.meal, from_time=p.from_time, to_time=p.to_time) for p in periods]


class SqlAlchemyStudentRepository(StudentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, student_id: int) -> StudentSnapshot | None:
        student = await self.get_model(student_id)
        return StudentSnapshot(id=student.id, is_admin=student.is_admin) if student is not None else None

    async def get_for_update(self, student_id: int) -> StudentSnapshot | None:
        result = await self.session.scalar(select(Student).where(Student.id == student_id).with_for_update())
        if not isinstance(result, Student):
            return None
        return StudentSnapshot(id=result.id, is_admin=result.is_admin)

    async def get_model(self, student_id: int) -> Student | None:
        result = await self.session.scalar(select(Student).where(Student.id == student_id))
        return result if isinstance(result, Student) else None

    async def get_by_email(self, email: str) -> Student | None:
        result = await self.session.scalar(select(Student).where(Student.email == email))
        return result if isinstance(result, Student) else None

    async def create(self, *, name: str, email: str, is_admin: bool) -> Student:
        student = Student(name=name, email=email, is_admin=is_admin, created_at=_utc_now_naive())
        self.session.add(student)
        await self.session.flush()
        return student


class SqlAlchemyCanteenRepository(CanteenRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _select(self) -> Select[tuple[Canteen]]:
        return select(Canteen).options(selectinload(Canteen.working_hours))

    async def get_model(self, canteen_id: int) -> Canteen | None:
        result = await self.session.scalar(self._select().where(Canteen.id == canteen_id))
        return result if isinstance(result, Canteen) else None

    async def list_models(self) -> List[Canteen]:
        rows = await self.session.scalars(self._select().order_by(Canteen.id))
        return list(rows.all())

    async def get(self, canteen_id: int) -> CanteenSnapshot | None:
        canteen = await self.get_model(canteen_id)
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
            name=name,
            location=location,
            capacity=capacity,
            created_by_id=created_by_id,
            working_hours=_working_hours_rows(working_hours),
            created_at=now,
            updated_at=now,
        )
        self.session.add(canteen)
        await self.session.flush()
        return canteen

    async def update(self, canteen: Canteen, changes: CanteenData) -> Canteen:
        if changes.name is not None:
            canteen.name = changes.name
        if changes.location is not None:
            canteen.location = changes.location
        if changes.capacity is not None:
            canteen.capacity = changes.capacity
        if changes.working_hours is not None:
            canteen.working_hours = _working_hours_rows(changes.working_hours)
        canteen.updated_at = _utc_now_naive()
        self.session.add(canteen)
        await self.session.flush()
        return canteen


class SqlAlchemyReservationRepository(ReservationStore):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

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
            student_id=student_id,
            canteen_id=canteen_id,
            day=day,
            start_minute=start_minute,
            duration_minutes=duration_minutes,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(select(Reservation).where(Reservation.id == reservation_id))
        return result if isinstance(result, Reservation) else None

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        reservation.status = status
        reservation.updated_at = _utc_now_naive()
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_active_for_student(self, student_id: int, day: date) -> List[Reservation]:
        # Locking read: sees rows committed after the transaction's snapshot.
        stmt = (
            select(Reservation)
            .where(
                Reservation.student_id == student_id,
                Reservation.day == day,
                Reservation.status == ReservationStatus.ACTIVE,
            )
            .with_for_update()
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_by_student(self, student_id: int, start_date: date, end_date: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(
                Reservation.student_id == student_id,
                Reservation.day >= start_date,
                Reservation.day <= end_date,
            )
            .order_by(Reservation.day, Reservation.start_minute, Reservation.id)
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyCapacityLedger(CapacityLedger):
    """
    Tick counters in ``tick_occupancy``.

    Rows are locked in ascending tick order so concurrent reservations on
    overlapping ticks queue behind each other instead of deadlocking. Must run
    inside the caller's transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _tick_query(self, canteen_id: int, day: date, ticks: Sequence[int]) -> Select[tuple[TickOccupancy]]:
        return (
            select(TickOccupancy)
            .where(
                TickOccupancy.canteen_id == canteen_id,
                TickOccupancy.day == day,
                TickOccupancy.tick.in_(list(ticks)),
            )
            .order_by(TickOccupancy.tick)
            .with_for_update()
        )

    async def _lock_ticks(self, canteen_id: int, day: date, ticks: Sequence[int]) -> Dict[int, TickOccupancy]:
        rows = {row.tick: row for row in (await self.session.scalars(self._tick_query(canteen_id, day, ticks))).all()}
        missing = [tick for tick in sorted(ticks) if tick not in rows]
        if not missing:
            return rows
        for tick in missing:
            try:
                async with self.session.begin_nested():
                    self.session.add(TickOccupancy(canteen_id=canteen_id, day=day, tick=tick, reserved=0))
            except IntegrityError:
                # Inserted by a concurrent transaction; the re-select below locks it.
                logger.debug("tick row %s/%s/%s created concurrently", canteen_id, day, tick)
        return {row.tick: row for row in (await self.session.scalars(self._tick_query(canteen_id, day, ticks))).all()}

    async def occupancy(self, canteen_id: int, day: date, tick: int) -> int:
        stmt = select(TickOccupancy.reserved).where(
            TickOccupancy.canteen_id == canteen_id,
            TickOccupancy.day == day,
            TickOccupancy.tick == tick,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def occupancy_map(self, canteen_id: int, start_date: date, end_date: date) -> Dict[tuple[date, int], int]:
        stmt = select(TickOccupancy.day, TickOccupancy.tick, TickOccupancy.reserved).where(
            TickOccupancy.canteen_id == canteen_id,
            TickOccupancy.day >= start_date,
            TickOccupancy.day <= end_date,
        )
        rows = await self.session.execute(stmt)
        return {(day, tick): int(reserved) for day, tick, reserved in rows.all()}

    async def try_reserve(self, canteen_id: int, day: date, ticks: Sequence[int], capacity: int) -> Denied | None:
        rows = await self._lock_ticks(canteen_id, day, ticks)
        for tick in ticks:
            if rows[tick].reserved >= capacity:
                logger.info("capacity denied canteen=%s day=%s tick=%s", canteen_id, day, tick)
                return Denied(tick=tick, occupancy=rows[tick].reserved)
        for tick in ticks:
            rows[tick].reserved += 1
        await self.session.flush()
        return None

    async def release(self, canteen_id: int, day: date, ticks: Sequence[int]) -> None:
        rows = (await self.session.scalars(self._tick_query(canteen_id, day, ticks))).all()
        for row in rows:
            row.reserved = max(row.reserved - 1, 0)
        await self.session.flush()
