from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_student_id, get_session
from ..domain.calendar import format_hhmm
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyCanteenRepository,
    SqlAlchemyCapacityLedger,
    SqlAlchemyReservationRepository,
    SqlAlchemyStudentRepository,
)
from ..models import Reservation, ReservationStatus
from ..schemas import ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from .errors import http_error

router = APIRouter(prefix="", tags=["reservations"])


def _audit(action: AuditAction, reservation: Reservation, status_from: ReservationStatus | None) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="student",
            reservation_id=reservation.id,
            canteen_id=reservation.canteen_id,
            student_id=reservation.student_id,
            day=reservation.day,
            start_time=format_hhmm(reservation.start_minute),
            duration=reservation.duration_minutes,
            status_from=status_from,
            status_to=reservation.status,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> ReservationRead:
    canteens = SqlAlchemyCanteenRepository(session)
    students = SqlAlchemyStudentRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.create_reservation(
                canteens,
                students,
                res_repo,
                ledger,
                student_id=student_id,
                canteen_id=payload.canteen_id,
                date=payload.date,
                time=payload.time,
                duration=payload.duration,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    _audit("reservation.created", reservation, None)
    return ReservationRead.from_db(reservation=reservation)


@router.delete("/reservations/{reservation_id}", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    async with session.begin():
        try:
            updated = await reservation_usecase.cancel_reservation(
                res_repo,
                ledger,
                reservation_id=reservation_id,
                student_id=student_id,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    _audit("reservation.cancelled", updated, ReservationStatus.ACTIVE)
    return ReservationRead.from_db(reservation=updated)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    start_date: str = Query(..., description="YYYY-MM-DD"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_student_reservations(
            res_repo,
            student_id=student_id,
            start_date=start_date,
            end_date=end_date,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return [ReservationRead.from_db(reservation=row) for row in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_student_reservation(
            res_repo,
            reservation_id=reservation_id,
            student_id=student_id,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return ReservationRead.from_db(reservation=reservation)
