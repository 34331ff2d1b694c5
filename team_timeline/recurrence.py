"""Generate repeat series from a seed task."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from .config import DEFAULT_SETTINGS, TimelineSettings
from .dates import add_days, add_months, add_weeks, add_years, days_between
from .errors import NoOccurrencesError, RecurrenceValidationError
from .models import Ends, Frequency, RecurrenceRule, Task

logger = logging.getLogger(__name__)

_STEPS: Dict[Frequency, Callable[[date, int], date]] = {
    Frequency.DAILY: add_days,
    Frequency.WEEKLY: add_weeks,
    Frequency.BIWEEKLY: lambda value, index: add_weeks(value, 2 * index),
    Frequency.MONTHLY: add_months,
    Frequency.YEARLY: add_years,
}


def new_id() -> str:
    return uuid.uuid4().hex


def validate_rule(rule: RecurrenceRule) -> None:
    """Reject incomplete repeat requests before anything is generated."""
    if rule.frequency is Frequency.NONE or rule.frequency not in _STEPS:
        raise RecurrenceValidationError("frequency", "Select a repeat schedule.")
    if rule.ends is Ends.AFTER and (rule.count is None or rule.count < 1):
        raise RecurrenceValidationError("count", "Enter how many repeats to create.")
    if rule.ends is Ends.ON and not isinstance(rule.until, date):
        raise RecurrenceValidationError("until", "Select an end date.")


def _horizon(start: date, settings: TimelineSettings) -> date:
    if settings.never_horizon_days is None:
        return add_years(start, 1)
    return add_days(start, settings.never_horizon_days)


def occurrence_starts(
    start: date,
    rule: RecurrenceRule,
    settings: TimelineSettings = DEFAULT_SETTINGS,
) -> Iterator[date]:
    """Yield the start date of every repeat after ``start`` (which is index 0).

    Each occurrence is stepped from the seed rather than from the previous
    occurrence, so month-end clamping on one step doesn't shift later ones.
    """
    validate_rule(rule)
    step = _STEPS[rule.frequency]
    horizon = _horizon(start, settings)
    for index in range(1, settings.max_occurrences + 1):
        if rule.ends is Ends.AFTER and index > rule.count:
            return
        next_start = step(start, index)
        if rule.ends is Ends.ON and next_start > rule.until:
            return
        if rule.ends is Ends.NEVER and next_start > horizon:
            return
        yield next_start


def generate(
    seed: Task,
    rule: RecurrenceRule,
    *,
    repeat_id: Optional[str] = None,
    existing_starts: Iterable[date] = (),
    settings: TimelineSettings = DEFAULT_SETTINGS,
) -> List[Task]:
    """Build the batch of tasks a repeat request creates, ordered by start.

    Copies keep the seed's descriptive fields and duration, get fresh ids and
    share one ``repeat_id``. Dates already taken in the series are skipped so
    a second request extends the series instead of duplicating it.

    Raises RecurrenceValidationError for an incomplete rule and
    NoOccurrencesError when the rule admits no new dates.
    """
    validate_rule(rule)
    series_id = repeat_id or seed.repeat_id or new_id()
    span = days_between(seed.start, seed.end)
    taken = set(existing_starts)
    taken.add(seed.start)

    created: List[Task] = []
    for next_start in occurrence_starts(seed.start, rule, settings):
        if next_start in taken:
            continue
        taken.add(next_start)
        created.append(
            replace(
                seed,
                id=new_id(),
                start=next_start,
                end=add_days(next_start, span),
                repeat_id=series_id,
            )
        )

    if not created:
        logger.warning("Repeat request for task %s produced no occurrences", seed.id)
        raise NoOccurrencesError("No repeats created for the selected range.")
    logger.debug("Generated %d repeats of task %s in series %s", len(created), seed.id, series_id)
    return created


def infer_frequency(series: Sequence[Task]) -> Frequency:
    """Guess the schedule of an existing series from its first two members."""
    if len(series) < 2:
        return Frequency.NONE
    first, second = sorted(series, key=lambda task: (task.start, task.id))[:2]
    gap = abs(days_between(first.start, second.start))
    if gap == 1:
        return Frequency.DAILY
    if gap == 7:
        return Frequency.WEEKLY
    if gap == 14:
        return Frequency.BIWEEKLY
    if 28 <= gap <= 31:
        return Frequency.MONTHLY
    if 364 <= gap <= 366:
        return Frequency.YEARLY
    return Frequency.NONE
