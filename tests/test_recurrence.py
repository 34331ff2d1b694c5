from datetime import date

import pytest

from team_timeline.config import TimelineSettings
from team_timeline.errors import NoOccurrencesError, RecurrenceValidationError
from team_timeline.models import Ends, Frequency, RecurrenceRule, Task
from team_timeline.recurrence import generate, infer_frequency, occurrence_starts, validate_rule


def _seed(start: str = "2024-01-01", end: str = "2024-01-01", **extra) -> Task:
    return Task(
        id="seed",
        title="Standup",
        start=date.fromisoformat(start),
        end=date.fromisoformat(end),
        **extra,
    )


def test_weekly_after_count() -> None:
    created = generate(_seed(), RecurrenceRule(Frequency.WEEKLY, Ends.AFTER, count=4))
    assert [task.start for task in created] == [
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
        date(2024, 1, 29),
    ]


def test_daily_until_is_inclusive() -> None:
    created = generate(_seed(), RecurrenceRule(Frequency.DAILY, Ends.ON, until=date(2024, 1, 3)))
    assert [task.start for task in created] == [date(2024, 1, 2), date(2024, 1, 3)]


def test_copies_keep_payload_and_duration_with_fresh_ids() -> None:
    seed = _seed("2024-01-01", "2024-01-03", assignee_ids=("ann",), project_id="web", tag_ids=("x",))
    created = generate(seed, RecurrenceRule(Frequency.BIWEEKLY, Ends.AFTER, count=2))
    assert [(task.start, task.end) for task in created] == [
        (date(2024, 1, 15), date(2024, 1, 17)),
        (date(2024, 1, 29), date(2024, 1, 31)),
    ]
    assert len({task.id for task in created} | {seed.id}) == 3
    assert {task.repeat_id for task in created} == {created[0].repeat_id}
    assert created[0].repeat_id is not None
    assert all(task.payload() == seed.payload() for task in created)


def test_series_id_comes_from_argument_then_seed() -> None:
    rule = RecurrenceRule(Frequency.DAILY, Ends.AFTER, count=1)
    assert generate(_seed(), rule, repeat_id="r1")[0].repeat_id == "r1"
    assert generate(_seed(repeat_id="r2"), rule)[0].repeat_id == "r2"


def test_monthly_steps_from_seed_without_drift() -> None:
    created = generate(_seed("2024-01-31", "2024-01-31"), RecurrenceRule(Frequency.MONTHLY, Ends.AFTER, count=3))
    assert [task.start for task in created] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_yearly_from_leap_day() -> None:
    created = generate(_seed("2024-02-29", "2024-02-29"), RecurrenceRule(Frequency.YEARLY, Ends.AFTER, count=2))
    assert [task.start for task in created] == [date(2025, 2, 28), date(2026, 2, 28)]


def test_never_stops_at_one_year_horizon() -> None:
    weekly = generate(_seed(), RecurrenceRule(Frequency.WEEKLY, Ends.NEVER))
    assert weekly[-1].start == date(2024, 12, 30)
    assert len(weekly) == 52

    monthly = generate(_seed(), RecurrenceRule(Frequency.MONTHLY, Ends.NEVER))
    assert monthly[-1].start == date(2025, 1, 1)
    assert len(monthly) == 12


def test_never_horizon_is_configurable() -> None:
    settings = TimelineSettings(never_horizon_days=10)
    created = generate(_seed(), RecurrenceRule(Frequency.DAILY, Ends.NEVER), settings=settings)
    assert len(created) == 10


def test_hard_cap_on_occurrences() -> None:
    rule = RecurrenceRule(Frequency.DAILY, Ends.AFTER, count=10_000)
    assert len(generate(_seed(), rule)) == 500
    assert len(list(occurrence_starts(date(2024, 1, 1), rule, TimelineSettings(max_occurrences=7)))) == 7


def test_until_before_first_occurrence_is_empty_result() -> None:
    rule = RecurrenceRule(Frequency.WEEKLY, Ends.ON, until=date(2024, 1, 5))
    with pytest.raises(NoOccurrencesError):
        generate(_seed(), rule)


def test_existing_series_dates_are_skipped() -> None:
    rule = RecurrenceRule(Frequency.DAILY, Ends.AFTER, count=4)
    created = generate(_seed(), rule, existing_starts=[date(2024, 1, 2), date(2024, 1, 4)])
    assert [task.start for task in created] == [date(2024, 1, 3), date(2024, 1, 5)]

    with pytest.raises(NoOccurrencesError):
        generate(
            _seed(),
            RecurrenceRule(Frequency.DAILY, Ends.AFTER, count=1),
            existing_starts=[date(2024, 1, 2)],
        )


@pytest.mark.parametrize(
    "rule, field",
    [
        (RecurrenceRule(Frequency.NONE), "frequency"),
        (RecurrenceRule(Frequency.DAILY, Ends.AFTER), "count"),
        (RecurrenceRule(Frequency.DAILY, Ends.AFTER, count=0), "count"),
        (RecurrenceRule(Frequency.DAILY, Ends.ON), "until"),
    ],
)
def test_invalid_rules_are_rejected_before_generation(rule: RecurrenceRule, field: str) -> None:
    with pytest.raises(RecurrenceValidationError) as excinfo:
        validate_rule(rule)
    assert excinfo.value.field == field
    with pytest.raises(RecurrenceValidationError):
        generate(_seed(), rule)


def test_infer_frequency_from_first_gap() -> None:
    def series(*starts):
        return [Task(id=f"t{i}", title="", start=d, end=d, repeat_id="r") for i, d in enumerate(starts)]

    assert infer_frequency(series(date(2024, 1, 1))) is Frequency.NONE
    assert infer_frequency(series(date(2024, 1, 2), date(2024, 1, 1))) is Frequency.DAILY
    assert infer_frequency(series(date(2024, 1, 1), date(2024, 1, 8))) is Frequency.WEEKLY
    assert infer_frequency(series(date(2024, 1, 1), date(2024, 1, 15))) is Frequency.BIWEEKLY
    assert infer_frequency(series(date(2024, 1, 31), date(2024, 2, 29))) is Frequency.MONTHLY
    assert infer_frequency(series(date(2024, 2, 29), date(2025, 2, 28))) is Frequency.YEARLY
    assert infer_frequency(series(date(2024, 1, 1), date(2024, 1, 4))) is Frequency.NONE
