from datetime import date, datetime
from typing import Any, cast

import pytest
from canteen_booking.domain.errors import AlreadyCancelledError, SlotFullError, UnauthorizedError
from canteen_booking.models import Reservation, ReservationStatus
from canteen_booking.routers import reservations as router
from canteen_booking.schemas import ReservationCreate, ReservationRead
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _reservation(status: ReservationStatus = ReservationStatus.ACTIVE) -> Reservation:
    now = datetime(2025, 1, 1)
    return Reservation(
        id=100,
        student_id=200,
        canteen_id=10,
        day=date(2025, 1, 10),
        start_minute=720,
        duration_minutes=60,
        status=status,
        created_at=now,
        updated_at=now,
    )


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SqlAlchemyCanteenRepository",
        "SqlAlchemyStudentRepository",
        "SqlAlchemyReservationRepository",
        "SqlAlchemyCapacityLedger",
    ):
        monkeypatch.setattr(router, name, lambda s: s)  # type: ignore[assignment]


@pytest.mark.asyncio
async def test_create_reservation_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    session = DummySession()
    reservation = _reservation()
    seen: dict[str, Any] = {}

    async def fake_create_reservation(*args: object, **kwargs: Any) -> Reservation:
        seen.update(kwargs)
        return reservation

    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create_reservation)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    payload = ReservationCreate(canteen_id=10, date="2025-01-10", time="12:00", duration=60)
    result: ReservationRead = await router.create_reservation(
        payload=payload,
        session=cast(AsyncSession, session),
        student_id=reservation.student_id,
    )

    assert seen["student_id"] == 200
    assert seen["time"] == "12:00"
    assert result.reservation_id == reservation.id
    assert result.time == "12:00"
    assert result.status == ReservationStatus.ACTIVE
    assert len(calls) == 1
    assert calls[0]["action"] == "reservation.created"
    assert calls[0]["status_to"] == ReservationStatus.ACTIVE
    assert calls[0]["start_time"] == "12:00"


@pytest.mark.asyncio
async def test_create_reservation_maps_slot_full_to_409(monkeypatch: pytest.MonkeyPatch) -> None:
    session = DummySession()

    async def fake_create_reservation(*args: object, **kwargs: object) -> Reservation:
        raise SlotFullError(date(2025, 1, 10), "12:30")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create_reservation)

    payload = ReservationCreate(canteen_id=10, date="2025-01-10", time="12:00", duration=60)
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=payload, session=cast(AsyncSession, session), student_id=1)

    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["code"] == "slot_full"
    assert excinfo.value.detail["tick"] == "12:30"


@pytest.mark.asyncio
async def test_cancel_reservation_emits_transition(monkeypatch: pytest.MonkeyPatch) -> None:
    session = DummySession()
    reservation = _reservation(status=ReservationStatus.CANCELLED)

    async def fake_cancel(*args: object, **kwargs: object) -> Reservation:
        return reservation

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.cancel_reservation(
        reservation_id=reservation.id,
        session=cast(AsyncSession, session),
        student_id=reservation.student_id,
    )

    assert result.status == ReservationStatus.CANCELLED
    assert calls[0]["action"] == "reservation.cancelled"
    assert calls[0]["status_from"] == ReservationStatus.ACTIVE


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    session = DummySession()
    reservation = _reservation(status=ReservationStatus.CANCELLED)

    async def fake_cancel(*args: object, **kwargs: object) -> Reservation:
        return reservation

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=reservation.id,
            session=cast(AsyncSession, session),
            student_id=reservation.student_id,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (AlreadyCancelledError(100), 404),
        (UnauthorizedError("not yours"), 403),
    ],
)
async def test_cancel_reservation_maps_domain_errors(
    monkeypatch: pytest.MonkeyPatch,
    error: Exception,
    status_code: int,
) -> None:
    session = DummySession()

    async def fake_cancel(*args: object, **kwargs: object) -> Reservation:
        raise error

    emitted: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: emitted.append(kwargs))

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(reservation_id=100, session=cast(AsyncSession, session), student_id=1)

    assert excinfo.value.status_code == status_code
    assert emitted == []
