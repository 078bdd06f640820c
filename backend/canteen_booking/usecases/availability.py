from dataclasses import dataclass
from datetime import date
from typing import Any, List

from ..domain.errors import NotFoundError
from ..domain.repositories import CanteenDirectory, CapacityLedger
from ..domain.services import AvailabilityQuery, CanteenSnapshot, parse_positive_id, validate_availability_query
from ..domain.slots import SlotGenerator
from ..models import MealName


@dataclass(frozen=True)
class AvailabilityEntry:
    date: date
    meal: MealName
    start_time: str
    remaining_capacity: int


@dataclass(frozen=True)
class CanteenAvailability:
    canteen_id: int
    name: str
    slots: List[AvailabilityEntry]


async def _canteen_slots(
    ledger: CapacityLedger,
    canteen: CanteenSnapshot,
    query: AvailabilityQuery,
) -> List[AvailabilityEntry]:
    occupancy = await ledger.occupancy_map(canteen.id, query.start_date, query.end_date)
    slots = SlotGenerator(
        start_date=query.start_date,
        start=query.start,
        end_date=query.end_date,
        end=query.end,
        duration=query.duration,
        calendar=canteen.calendar,
    )
    entries: List[AvailabilityEntry] = []
    for slot in slots:
        # A 60-minute slot is bound by its busier tick.
        busiest = max(occupancy.get((slot.day, tick), 0) for tick in slot.ticks)
        entries.append(
            AvailabilityEntry(
                date=slot.day,
                meal=slot.meal,
                start_time=slot.start_time,
                remaining_capacity=max(canteen.capacity - busiest, 0),
            )
        )
    return entries


async def report_availability(
    canteens: CanteenDirectory,
    ledger: CapacityLedger,
    *,
    canteen_id: Any,
    start_date: Any,
    start_time: Any,
    end_date: Any,
    end_time: Any,
    duration: Any,
) -> List[AvailabilityEntry]:
    query = validate_availability_query(
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        duration=duration,
    )
    target = parse_positive_id("canteen_id", canteen_id)
    canteen = await canteens.get(target)
    if canteen is None:
        raise NotFoundError("canteen", target)
    return await _canteen_slots(ledger, canteen, query)


async def report_all_availability(
    canteens: CanteenDirectory,
    ledger: CapacityLedger,
    *,
    start_date: Any,
    start_time: Any,
    end_date: Any,
    end_time: Any,
    duration: Any,
) -> List[CanteenAvailability]:
    query = validate_availability_query(
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        duration=duration,
    )
    return [
        CanteenAvailability(canteen_id=canteen.id, name=canteen.name, slots=await _canteen_slots(ledger, canteen, query))
        for canteen in await canteens.list_all()
    ]
