from datetime import date

import pytest

from team_timeline.dates import (
    add_days,
    add_months,
    add_weeks,
    add_years,
    days_between,
    default_repeat_until,
    format_range,
    overlaps,
    parse_date,
    sub_months,
    sub_weeks,
    task_position,
    visible_days,
)
from team_timeline.errors import InvalidDateError


def test_month_steps_clamp_to_month_end() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 3) == date(2024, 4, 30)
    assert sub_months(date(2024, 3, 31), 1) == date(2024, 2, 29)


def test_year_step_from_leap_day() -> None:
    assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
    assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)


def test_day_and_week_steps() -> None:
    assert add_days(date(2024, 12, 31), 1) == date(2025, 1, 1)
    assert add_weeks(date(2024, 1, 1), 2) == date(2024, 1, 15)
    assert add_days(date(2024, 3, 1), -1) == date(2024, 2, 29)
    assert sub_weeks(date(2024, 1, 15), 2) == date(2024, 1, 1)


def test_days_between_is_exclusive_and_signed() -> None:
    assert days_between(date(2024, 1, 1), date(2024, 1, 1)) == 0
    assert days_between(date(2024, 1, 1), date(2024, 1, 8)) == 7
    assert days_between(date(2024, 1, 8), date(2024, 1, 1)) == -7


def test_overlaps_shares_boundary_day() -> None:
    assert overlaps(date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 5), date(2024, 1, 9))
    assert not overlaps(date(2024, 1, 1), date(2024, 1, 4), date(2024, 1, 5), date(2024, 1, 9))
    assert overlaps(date(2024, 1, 1), date(2024, 1, 31), date(2024, 1, 10), date(2024, 1, 12))


def test_format_range_variants() -> None:
    assert format_range(date(2024, 1, 5), date(2024, 1, 5)) == "Jan 5, 2024"
    assert format_range(date(2024, 1, 5), date(2024, 1, 9)) == "Jan 5 - 9, 2024"
    assert format_range(date(2024, 1, 30), date(2024, 2, 2)) == "Jan 30 - Feb 2, 2024"
    assert format_range(date(2023, 12, 30), date(2024, 1, 2)) == "Dec 30, 2023 - Jan 2, 2024"


def test_parse_date_rejects_malformed_input() -> None:
    assert parse_date(" 2024-02-29 ") == date(2024, 2, 29)
    for raw in ["2024-2-29", "2023-02-29", "", "yesterday"]:
        with pytest.raises(InvalidDateError):
            parse_date(raw)
    with pytest.raises(ValueError):
        parse_date("2024-13-01")


def test_default_repeat_until_stays_in_month() -> None:
    assert default_repeat_until(date(2024, 1, 10)) == date(2024, 1, 11)
    assert default_repeat_until(date(2024, 1, 31)) == date(2024, 1, 31)


def test_visible_days_cover_tasks_and_align_to_weeks() -> None:
    days = visible_days(date(2024, 6, 12), [(date(2023, 1, 3), date(2024, 12, 20))], week_aligned=True)
    assert days[0] <= date(2022, 1, 3)
    assert days[-1] >= date(2025, 12, 20)
    assert days[0].weekday() == 0
    assert days[-1].weekday() == 6
    assert all(days_between(a, b) == 1 for a, b in zip(days, days[1:]))


def test_task_position_in_pixels() -> None:
    first, last = date(2024, 1, 1), date(2024, 1, 31)
    assert task_position(date(2024, 1, 3), date(2024, 1, 4), first, last, 48) == (96, 92)
    assert task_position(date(2024, 2, 3), date(2024, 2, 4), first, last, 48) is None
