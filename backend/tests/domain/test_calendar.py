import pytest
from canteen_booking.domain.calendar import (
    WorkingHoursCalendar,
    WorkingHoursPeriod,
    format_hhmm,
    parse_hhmm,
    validate_working_hours,
)
from canteen_booking.domain.errors import InvalidWorkingHoursError
from canteen_booking.models import MealName


def _calendar(*periods: tuple[str, str, str]) -> WorkingHoursCalendar:
    return WorkingHoursCalendar(
        WorkingHoursPeriod(meal=MealName(meal), start=parse_hhmm(start), end=parse_hhmm(end))
        for meal, start, end in periods
    )


def test_parse_and_format_round_trip_edges() -> None:
    assert parse_hhmm("00:00") == 0
    assert parse_hhmm("23:59") == 1439
    assert format_hhmm(7 * 60 + 5) == "07:05"


@pytest.mark.parametrize("value", ["24:00", "7:00", "07:60", "0700", "", None])
def test_parse_rejects_malformed_time(value: object) -> None:
    with pytest.raises(ValueError):
        parse_hhmm(value)  # type: ignore[arg-type]


def test_classify_is_half_open() -> None:
    calendar = _calendar(("breakfast", "07:00", "09:00"), ("lunch", "12:00", "14:00"))
    assert calendar.classify(parse_hhmm("07:00")) == MealName.BREAKFAST
    assert calendar.classify(parse_hhmm("08:59")) == MealName.BREAKFAST
    assert calendar.classify(parse_hhmm("09:00")) is None
    assert calendar.classify(parse_hhmm("12:30")) == MealName.LUNCH
    assert calendar.classify(parse_hhmm("06:59")) is None


def test_classify_first_sorted_match_wins_when_periods_overlap() -> None:
    calendar = _calendar(("lunch", "12:00", "14:00"), ("breakfast", "11:00", "13:00"))
    assert calendar.classify(parse_hhmm("12:30")) == MealName.BREAKFAST


def test_meal_for_span_requires_whole_span_inside_one_period() -> None:
    calendar = _calendar(("breakfast", "07:00", "08:45"))
    assert calendar.meal_for_span(parse_hhmm("07:00"), 60) == MealName.BREAKFAST
    assert calendar.meal_for_span(parse_hhmm("08:00"), 60) is None
    assert calendar.meal_for_span(parse_hhmm("08:00"), 30) == MealName.BREAKFAST


def test_meal_for_span_rejects_sixty_minutes_off_the_hour() -> None:
    calendar = _calendar(("lunch", "12:00", "14:00"))
    assert calendar.meal_for_span(parse_hhmm("12:30"), 60) is None
    assert calendar.meal_for_span(parse_hhmm("12:30"), 30) == MealName.LUNCH


def test_meal_for_span_rejects_crossing_adjacent_periods() -> None:
    calendar = _calendar(("breakfast", "07:00", "08:30"), ("lunch", "08:30", "10:00"))
    assert calendar.meal_for_span(parse_hhmm("08:00"), 60) is None


def test_validate_sorts_and_normalizes_meal_case() -> None:
    periods = validate_working_hours(
        [
            {"meal": "Lunch", "from": "12:00", "to": "13:00"},
            {"meal": "breakfast", "from": "07:00", "to": "09:00"},
        ]
    )
    assert [p.meal for p in periods] == [MealName.BREAKFAST, MealName.LUNCH]
    assert periods[0].from_time == "07:00"
    assert periods[1].to_time == "13:00"


@pytest.mark.parametrize(
    "periods",
    [
        [],
        [{"meal": "brunch", "from": "10:00", "to": "11:00"}],
        [{"meal": "lunch", "from": "12:00", "to": "12:00"}],
        [{"meal": "lunch", "from": "13:00", "to": "12:00"}],
        [{"meal": "lunch", "from": "12:00", "to": "12:20"}],
        [{"meal": "lunch", "from": "12:00"}],
        [{"meal": "lunch", "from": "12-00", "to": "13:00"}],
        [{"from": "12:00", "to": "13:00"}],
        [
            {"meal": "breakfast", "from": "07:00", "to": "09:30"},
            {"meal": "lunch", "from": "09:00", "to": "13:00"},
        ],
    ],
)
def test_validate_rejects_invalid_working_hours(periods: list[dict[str, str]]) -> None:
    with pytest.raises(InvalidWorkingHoursError) as excinfo:
        validate_working_hours(periods)
    assert excinfo.value.field == "working_hours"


def test_validate_accepts_touching_periods() -> None:
    periods = validate_working_hours(
        [
            {"meal": "breakfast", "from": "07:00", "to": "09:00"},
            {"meal": "lunch", "from": "09:00", "to": "10:00"},
        ]
    )
    assert len(periods) == 2
