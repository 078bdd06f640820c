from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain.calendar import format_hhmm
from .models import Canteen, MealName, Reservation, ReservationStatus, Student
from .usecases.availability import AvailabilityEntry, CanteenAvailability


class WorkingHoursPeriodIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meal: str
    from_time: str = Field(alias="from")
    to_time: str = Field(alias="to")

    def as_raw(self) -> dict[str, str]:
        return {"meal": self.meal, "from": self.from_time, "to": self.to_time}


class WorkingHoursPeriodRead(BaseModel):
    meal: MealName
    from_time: str = Field(serialization_alias="from")
    to_time: str = Field(serialization_alias="to")


class StudentCreate(BaseModel):
    name: str
    email: str
    is_admin: bool = False


class StudentRead(BaseModel):
    id: int
    name: str
    email: str
    is_admin: bool

    @classmethod
    def from_db(cls, *, student: Student) -> "StudentRead":
        return cls(id=student.id, name=student.name, email=student.email, is_admin=student.is_admin)


class CanteenCreate(BaseModel):
    name: str
    location: str
    capacity: int
    working_hours: List[WorkingHoursPeriodIn]


class CanteenUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[int] = None
    working_hours: Optional[List[WorkingHoursPeriodIn]] = None

    def changes(self) -> dict[str, object]:
        provided = self.model_dump(exclude_unset=True, exclude={"working_hours"})
        if self.working_hours is not None:
            provided["working_hours"] = [period.as_raw() for period in self.working_hours]
        return provided


class CanteenRead(BaseModel):
    id: int
    name: str
    location: str
    capacity: int
    working_hours: List[WorkingHoursPeriodRead]

    @classmethod
    def from_db(cls, *, canteen: Canteen) -> "CanteenRead":
        return cls(
            id=canteen.id,
            name=canteen.name,
            location=canteen.location,
            capacity=canteen.capacity,
            working_hours=[
                WorkingHoursPeriodRead(meal=wh.meal, from_time=wh.from_time, to_time=wh.to_time)
                for wh in sorted(canteen.working_hours, key=lambda wh: wh.from_time)
            ],
        )


class ReservationCreate(BaseModel):
    canteen_id: int = Field(ge=1)
    date: str
    time: str
    duration: int


class ReservationRead(BaseModel):
    reservation_id: int
    student_id: int
    canteen_id: int
    date: date
    time: str
    duration: int
    status: ReservationStatus

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            student_id=reservation.student_id,
            canteen_id=reservation.canteen_id,
            date=reservation.day,
            time=format_hhmm(reservation.start_minute),
            duration=reservation.duration_minutes,
            status=reservation.status,
        )


class SlotAvailability(BaseModel):
    date: date
    meal: MealName
    start_time: str
    remaining_capacity: int

    @classmethod
    def from_entry(cls, entry: AvailabilityEntry) -> "SlotAvailability":
        return cls(
            date=entry.date,
            meal=entry.meal,
            start_time=entry.start_time,
            remaining_capacity=entry.remaining_capacity,
        )


class CanteenStatus(BaseModel):
    canteen_id: int
    name: str
    slots: List[SlotAvailability]

    @classmethod
    def from_report(cls, report: CanteenAvailability) -> "CanteenStatus":
        return cls(
            canteen_id=report.canteen_id,
            name=report.name,
            slots=[SlotAvailability.from_entry(entry) for entry in report.slots],
        )
