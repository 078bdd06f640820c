from typing import Any, List, Mapping, Sequence

from ..domain.errors import NotFoundError, UnauthorizedError
from ..domain.repositories import CanteenRepository, StudentDirectory
from ..domain.services import validate_canteen_data, validate_canteen_update
from ..models import Canteen


async def _require_admin(students: StudentDirectory, student_id: int) -> None:
    student = await students.get(student_id)
    if student is None or not student.is_admin:
        raise UnauthorizedError("only admin students can manage canteens")


async def create_canteen(
    students: StudentDirectory,
    canteen_repo: CanteenRepository,
    *,
    admin_id: int,
    name: Any,
    location: Any,
    capacity: Any,
    working_hours: Sequence[Mapping[str, str]] | None,
) -> Canteen:
    data = validate_canteen_data(name=name, location=location, capacity=capacity, working_hours=working_hours)
    await _require_admin(students, admin_id)
    return await canteen_repo.create(
        name=data.name or "",
        location=data.location or "",
        capacity=data.capacity or 0,
        working_hours=data.working_hours or (),
        created_by_id=admin_id,
    )


async def update_canteen(
    students: StudentDirectory,
    canteen_repo: CanteenRepository,
    *,
    admin_id: int,
    canteen_id: int,
    changes: Mapping[str, Any],
) -> Canteen:
    """Apply a partial update; capacity and hours only affect later bookings."""
    await _require_admin(students, admin_id)
    canteen = await canteen_repo.get_model(canteen_id)
    if canteen is None:
        raise NotFoundError("canteen", canteen_id)
    data = validate_canteen_update(changes)
    return await canteen_repo.update(canteen, data)


async def get_canteen(canteen_repo: CanteenRepository, *, canteen_id: int) -> Canteen:
    canteen = await canteen_repo.get_model(canteen_id)
    if canteen is None:
        raise NotFoundError("canteen", canteen_id)
    return canteen


async def list_canteens(canteen_repo: CanteenRepository) -> List[Canteen]:
    return await canteen_repo.list_models()
