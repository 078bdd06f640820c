from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Iterable, cast

import pytest
from canteen_booking.domain.repositories import Denied
from canteen_booking.infrastructure.repositories import SqlAlchemyCapacityLedger, SqlAlchemyReservationRepository
from canteen_booking.models import TickOccupancy
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

DAY = date(2025, 1, 10)
NOON = 720
HALF_PAST = 750


class DummyScalars:
    def __init__(self, rows: Iterable[Any]) -> None:
        self._rows = list(rows)

    def all(self) -> list[Any]:
        return self._rows


class TickSession:
    """
    Stands in for the AsyncSession around the tick table.

    ``racing`` rows become visible after the first select, as if another
    transaction inserted them between our select and our insert.
    """

    def __init__(self, rows: Iterable[TickOccupancy] = (), racing: Iterable[TickOccupancy] = ()) -> None:
        self.table = {(r.canteen_id, r.day, r.tick): r for r in rows}
        self.racing = list(racing)
        self.pending: list[TickOccupancy] = []
        self.selects: list[tuple[int, ...]] = []
        self.savepoints = 0
        self.flushes = 0

    async def scalars(self, query: tuple[int, date, tuple[int, ...]]) -> DummyScalars:
        canteen_id, day, ticks = query
        self.selects.append(ticks)
        found = [self.table[(canteen_id, day, t)] for t in sorted(ticks) if (canteen_id, day, t) in self.table]
        for row in self.racing:
            self.table[(row.canteen_id, row.day, row.tick)] = row
        self.racing = []
        return DummyScalars(found)

    def add(self, row: TickOccupancy) -> None:
        self.pending.append(row)

    @asynccontextmanager
    async def begin_nested(self) -> AsyncIterator["TickSession"]:
        self.savepoints += 1
        yield self
        pending, self.pending = self.pending, []
        for row in pending:
            key = (row.canteen_id, row.day, row.tick)
            if key in self.table:
                raise IntegrityError("INSERT INTO tick_occupancy", {}, Exception("Duplicate entry"))
            self.table[key] = row

    async def flush(self) -> None:
        self.flushes += 1


def _row(tick: int, reserved: int, canteen_id: int = 1) -> TickOccupancy:
    return TickOccupancy(canteen_id=canteen_id, day=DAY, tick=tick, reserved=reserved)


def _ledger(session: TickSession, monkeypatch: pytest.MonkeyPatch) -> SqlAlchemyCapacityLedger:
    ledger = SqlAlchemyCapacityLedger(cast(AsyncSession, session))
    monkeypatch.setattr(ledger, "_tick_query", lambda canteen_id, day, ticks: (canteen_id, day, tuple(ticks)))
    return ledger


def _reserved(session: TickSession) -> dict[int, int]:
    return {tick: row.reserved for (_, _, tick), row in session.table.items()}


def test_tick_query_locks_rows_in_ascending_tick_order() -> None:
    ledger = SqlAlchemyCapacityLedger(cast(AsyncSession, None))
    sql = str(ledger._tick_query(1, DAY, [HALF_PAST, NOON]).compile(dialect=mysql.dialect()))

    assert "ORDER BY tick_occupancy.tick" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


@pytest.mark.asyncio
async def test_try_reserve_inserts_missing_tick_rows_then_increments(monkeypatch: pytest.MonkeyPatch) -> None:
    session = TickSession(rows=[_row(NOON, 1)])
    ledger = _ledger(session, monkeypatch)

    denied = await ledger.try_reserve(1, DAY, (NOON, HALF_PAST), capacity=2)

    assert denied is None
    assert _reserved(session) == {NOON: 2, HALF_PAST: 1}
    assert session.savepoints == 1
    assert session.selects == [(NOON, HALF_PAST), (NOON, HALF_PAST)]
    assert session.flushes == 1


@pytest.mark.asyncio
async def test_try_reserve_denial_leaves_every_tick_untouched(monkeypatch: pytest.MonkeyPatch) -> None:
    session = TickSession(rows=[_row(NOON, 0), _row(HALF_PAST, 1)])
    ledger = _ledger(session, monkeypatch)

    denied = await ledger.try_reserve(1, DAY, (NOON, HALF_PAST), capacity=1)

    assert denied == Denied(tick=HALF_PAST, occupancy=1)
    assert _reserved(session) == {NOON: 0, HALF_PAST: 1}
    assert session.flushes == 0


@pytest.mark.asyncio
async def test_try_reserve_uses_row_inserted_by_concurrent_transaction(monkeypatch: pytest.MonkeyPatch) -> None:
    session = TickSession(racing=[_row(NOON, 1)])
    ledger = _ledger(session, monkeypatch)

    denied = await ledger.try_reserve(1, DAY, (NOON,), capacity=1)

    assert denied == Denied(tick=NOON, occupancy=1)
    assert _reserved(session) == {NOON: 1}


@pytest.mark.asyncio
async def test_try_reserve_skips_inserts_when_rows_exist(monkeypatch: pytest.MonkeyPatch) -> None:
    session = TickSession(rows=[_row(NOON, 0)])
    ledger = _ledger(session, monkeypatch)

    assert await ledger.try_reserve(1, DAY, (NOON,), capacity=1) is None
    assert session.savepoints == 0
    assert session.selects == [(NOON,)]


@pytest.mark.asyncio
async def test_release_decrements_and_floors_at_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    session = TickSession(rows=[_row(NOON, 0), _row(HALF_PAST, 2)])
    ledger = _ledger(session, monkeypatch)

    await ledger.release(1, DAY, (NOON, HALF_PAST))

    assert _reserved(session) == {NOON: 0, HALF_PAST: 1}
    assert session.flushes == 1


class StatementSession:
    def __init__(self) -> None:
        self.statements: list[Any] = []

    async def scalars(self, stmt: Any) -> DummyScalars:
        self.statements.append(stmt)
        return DummyScalars([])


@pytest.mark.asyncio
async def test_duplicate_lookup_is_a_locking_read() -> None:
    session = StatementSession()
    repo = SqlAlchemyReservationRepository(cast(AsyncSession, session))

    assert await repo.list_active_for_student(7, DAY) == []

    sql = str(session.statements[0].compile(dialect=mysql.dialect()))
    assert "reservations.student_id" in sql
    assert sql.rstrip().endswith("FOR UPDATE")
