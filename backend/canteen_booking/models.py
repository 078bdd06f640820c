from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from sqlalchemy import Boolean, CheckConstraint, Date, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


class MealName(StrEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class ReservationStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("email", name="uq_students_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Canteen(Base):
    __tablename__ = "canteens"
    __table_args__ = (CheckConstraint("capacity >= 1 AND capacity <= 10000", name="chk_canteens_capacity"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    working_hours: Mapped[list["CanteenWorkingHours"]] = relationship(
        back_populates="canteen",
        cascade="all, delete-orphan",
        order_by="CanteenWorkingHours.from_time",
    )


class CanteenWorkingHours(Base):
    __tablename__ = "canteen_working_hours"
    __table_args__ = (
        CheckConstraint("from_time < to_time", name="chk_working_hours_range"),
        Index("idx_working_hours_canteen", "canteen_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), nullable=False)
    meal: Mapped[MealName] = mapped_column(
        Enum(
            MealName,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
    )
    # HH:mm, compared lexicographically
    from_time: Mapped[str] = mapped_column(String(5), nullable=False)
    to_time: Mapped[str] = mapped_column(String(5), nullable=False)

    canteen: Mapped["Canteen"] = relationship(back_populates="working_hours")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("duration_minutes IN (30, 60)", name="chk_res_duration"),
        CheckConstraint("start_minute >= 0 AND start_minute < 1440", name="chk_res_start"),
        Index("idx_res_student_day", "student_id", "day"),
        Index("idx_res_canteen_day", "canteen_id", "day"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(
            ReservationStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=ReservationStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class TickOccupancy(Base):
    """Count of active reservations holding one 30-minute tick of a canteen."""

    __tablename__ = "tick_occupancy"
    __table_args__ = (CheckConstraint("reserved >= 0", name="chk_tick_reserved"),)

    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    tick: Mapped[int] = mapped_column(Integer, primary_key=True)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
