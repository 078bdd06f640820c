from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyStudentRepository
from ..schemas import StudentCreate, StudentRead
from ..usecases import students as student_usecase
from .errors import http_error

router = APIRouter(prefix="/students", tags=["students"])


@router.post("", response_model=StudentRead, status_code=status.HTTP_201_CREATED)
async def create_student(payload: StudentCreate, session: AsyncSession = Depends(get_session)) -> StudentRead:
    student_repo = SqlAlchemyStudentRepository(session)
    async with session.begin():
        try:
            student = await student_usecase.create_student(
                student_repo,
                name=payload.name,
                email=payload.email,
                is_admin=payload.is_admin,
            )
        except DomainError as exc:
            raise http_error(exc) from exc
    return StudentRead.from_db(student=student)


@router.get("/{student_id}", response_model=StudentRead)
async def get_student(student_id: int, session: AsyncSession = Depends(get_session)) -> StudentRead:
    student_repo = SqlAlchemyStudentRepository(session)
    try:
        student = await student_usecase.get_student(student_repo, student_id=student_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return StudentRead.from_db(student=student)
