from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_student_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyCanteenRepository,
    SqlAlchemyCapacityLedger,
    SqlAlchemyStudentRepository,
)
from ..schemas import CanteenCreate, CanteenRead, CanteenStatus, CanteenUpdate, SlotAvailability
from ..usecases import availability as availability_usecase
from ..usecases import canteens as canteen_usecase
from .errors import http_error

router = APIRouter(prefix="/canteens", tags=["canteens"])


@router.post("", response_model=CanteenRead, status_code=status.HTTP_201_CREATED)
async def create_canteen(
    payload: CanteenCreate,
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> CanteenRead:
    students = SqlAlchemyStudentRepository(session)
    canteen_repo = SqlAlchemyCanteenRepository(session)
    async with session.begin():
        try:
            canteen = await canteen_usecase.create_canteen(
                students,
                canteen_repo,
                admin_id=student_id,
                name=payload.name,
                location=payload.location,
                capacity=payload.capacity,
                working_hours=[period.as_raw() for period in payload.working_hours],
            )
        except DomainError as exc:
            raise http_error(exc) from exc
    return CanteenRead.from_db(canteen=canteen)


@router.get("", response_model=List[CanteenRead])
async def list_canteens(session: AsyncSession = Depends(get_session)) -> list[CanteenRead]:
    canteen_repo = SqlAlchemyCanteenRepository(session)
    rows = await canteen_usecase.list_canteens(canteen_repo)
    return [CanteenRead.from_db(canteen=canteen) for canteen in rows]


# Declared before /{canteen_id} so "status" is not parsed as an id.
@router.get("/status", response_model=List[CanteenStatus])
async def all_canteens_status(
    start_date: str = Query(..., description="YYYY-MM-DD"),
    start_time: str = Query(..., description="HH:mm"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
    end_time: str = Query(..., description="HH:mm"),
    duration: int = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[CanteenStatus]:
    canteen_repo = SqlAlchemyCanteenRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    try:
        reports = await availability_usecase.report_all_availability(
            canteen_repo,
            ledger,
            start_date=start_date,
            start_time=start_time,
            end_date=end_date,
            end_time=end_time,
            duration=duration,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return [CanteenStatus.from_report(report) for report in reports]


@router.get("/{canteen_id}", response_model=CanteenRead)
async def get_canteen(canteen_id: int, session: AsyncSession = Depends(get_session)) -> CanteenRead:
    canteen_repo = SqlAlchemyCanteenRepository(session)
    try:
        canteen = await canteen_usecase.get_canteen(canteen_repo, canteen_id=canteen_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return CanteenRead.from_db(canteen=canteen)


@router.put("/{canteen_id}", response_model=CanteenRead)
async def update_canteen(
    canteen_id: int,
    payload: CanteenUpdate,
    session: AsyncSession = Depends(get_session),
    student_id: int = Depends(get_current_student_id),
) -> CanteenRead:
    students = SqlAlchemyStudentRepository(session)
    canteen_repo = SqlAlchemyCanteenRepository(session)
    async with session.begin():
        try:
            canteen = await canteen_usecase.update_canteen(
                students,
                canteen_repo,
                admin_id=student_id,
                canteen_id=canteen_id,
                changes=payload.changes(),
            )
        except DomainError as exc:
            raise http_error(exc) from exc
    return CanteenRead.from_db(canteen=canteen)


@router.get("/{canteen_id}/status", response_model=List[SlotAvailability])
async def canteen_status(
    canteen_id: int,
    start_date: str = Query(..., description="YYYY-MM-DD"),
    start_time: str = Query(..., description="HH:mm"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
    end_time: str = Query(..., description="HH:mm"),
    duration: int = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[SlotAvailability]:
    canteen_repo = SqlAlchemyCanteenRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    try:
        entries = await availability_usecase.report_availability(
            canteen_repo,
            ledger,
            canteen_id=canteen_id,
            start_date=start_date,
            start_time=start_time,
            end_date=end_date,
            end_time=end_time,
            duration=duration,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return [SlotAvailability.from_entry(entry) for entry in entries]
