from typing import Any

from ..domain.errors import NotFoundError, ValidationError
from ..domain.repositories import StudentRepository
from ..domain.services import validate_student_data
from ..models import Student


async def create_student(
    student_repo: StudentRepository,
    *,
    name: Any,
    email: Any,
    is_admin: bool = False,
) -> Student:
    trimmed_name, email_value = validate_student_data(name=name, email=email)
    if await student_repo.get_by_email(email_value) is not None:
        raise ValidationError("email", "email already in use")
    return await student_repo.create(name=trimmed_name, email=email_value, is_admin=bool(is_admin))


async def get_student(student_repo: StudentRepository, *, student_id: int) -> Student:
    student = await student_repo.get_model(student_id)
    if student is None:
        raise NotFoundError("student", student_id)
    return student
