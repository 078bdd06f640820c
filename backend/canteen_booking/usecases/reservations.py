from datetime import datetime
from typing import Any

from ..domain.calendar import format_hhmm
from ..domain.errors import (
    AlreadyCancelledError,
    DuplicateBookingError,
    NotFoundError,
    OutsideWorkingHoursError,
    PastDateTimeError,
    SlotFullError,
    UnauthorizedError,
)
from ..domain.repositories import CanteenDirectory, CapacityLedger, ReservationStore, StudentDirectory
from ..domain.services import parse_positive_id, validate_date_range, validate_reservation_request
from ..domain.slots import occupied_ticks
from ..models import Reservation, ReservationStatus
from ..utils.time import local_now

_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.ACTIVE: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
}


def reservation_ticks(reservation: Reservation) -> tuple[int, ...]:
    return occupied_ticks(reservation.start_minute, reservation.duration_minutes)


async def create_reservation(
    canteens: CanteenDirectory,
    students: StudentDirectory,
    res_repo: ReservationStore,
    ledger: CapacityLedger,
    *,
    student_id: Any,
    canteen_id: Any,
    date: Any,
    time: Any,
    duration: Any,
    now: datetime | None = None,
) -> Reservation:
    """
    Book a slot for a student.

    Must run inside one unit of work: the duplicate check, the capacity
    reservation and the insert are only linearizable together.
    """
    request = validate_reservation_request(
        student_id=student_id,
        canteen_id=canteen_id,
        date=date,
        time=time,
        duration=duration,
    )

    # The student row lock is the first read of the unit of work, so the
    # duplicate check below sees every booking committed before it.
    student = await students.get_for_update(request.student_id)
    canteen = await canteens.get(request.canteen_id)
    if canteen is None:
        raise NotFoundError("canteen", request.canteen_id)
    if student is None:
        raise NotFoundError("student", request.student_id)

    if request.starts_at < (now or local_now()):
        raise PastDateTimeError()
    if canteen.calendar.meal_for_span(request.start, request.duration) is None:
        raise OutsideWorkingHoursError(request.start_time, request.duration)

    ticks = occupied_ticks(request.start, request.duration)
    for held in await res_repo.list_active_for_student(student.id, request.day):
        shared = sorted(set(ticks) & set(reservation_ticks(held)))
        if shared:
            raise DuplicateBookingError(held.id, format_hhmm(shared[0]))

    denied = await ledger.try_reserve(canteen.id, request.day, ticks, canteen.capacity)
    if denied is not None:
        raise SlotFullError(request.day, format_hhmm(denied.tick))

    return await res_repo.create(
        student_id=student.id,
        canteen_id=canteen.id,
        day=request.day,
        start_minute=request.start,
        duration_minutes=request.duration,
        status=ReservationStatus.ACTIVE,
    )


async def cancel_reservation(
    res_repo: ReservationStore,
    ledger: CapacityLedger,
    *,
    reservation_id: int,
    student_id: int,
) -> Reservation:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation", reservation_id)
    if reservation.student_id != student_id:
        raise UnauthorizedError("only the owner can cancel this reservation")
    if ReservationStatus.CANCELLED not in _TRANSITIONS[reservation.status]:
        raise AlreadyCancelledError(reservation.id)

    # Status flips before capacity is released.
    updated = await res_repo.update_status(reservation, ReservationStatus.CANCELLED)
    await ledger.release(updated.canteen_id, updated.day, reservation_ticks(updated))
    return updated


async def get_student_reservation(
    res_repo: ReservationStore,
    *,
    reservation_id: int,
    student_id: int,
) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None or reservation.student_id != student_id:
        raise NotFoundError("reservation", reservation_id)
    return reservation


async def list_student_reservations(
    res_repo: ReservationStore,
    *,
    student_id: Any,
    start_date: Any,
    end_date: Any,
) -> list[Reservation]:
    owner = parse_positive_id("student_id", student_id)
    start, end = validate_date_range(start_date, end_date)
    return await res_repo.list_by_student(owner, start, end)
