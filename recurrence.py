"""
Recurrence rule evaluation for recurring task templates.

A template's string frequency fields are turned into one of a closed set of
rule types, and `next_occurrence` dispatches over that set. Month and year
arithmetic goes through `relativedelta`, so a day-of-month that does not exist
in the target month is clamped to that month's last day (Jan 31 -> Feb 28).
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional, Union

from dateutil.relativedelta import relativedelta

from services.validation_service import parse_bounded_int, parse_days_of_week
from time_utils import now_local


@dataclass(frozen=True)
class Daily:
    interval: int = 1


@dataclass(frozen=True)
class Weekly:
    interval: int = 1
    days_of_week: FrozenSet[int] = field(default_factory=frozenset)  # 0=Sunday


@dataclass(frozen=True)
class Biweekly:
    interval: int = 1


@dataclass(frozen=True)
class Monthly:
    interval: int = 1
    day_of_month: Optional[int] = None


@dataclass(frozen=True)
class Yearly:
    interval: int = 1
    month_of_year: Optional[int] = None  # 0=January
    day_of_month: Optional[int] = None


@dataclass(frozen=True)
class Custom:
    interval: int = 1


RecurrenceRule = Union[Daily, Weekly, Biweekly, Monthly, Yearly, Custom]


def _sunday_weekday(value: datetime) -> int:
    # datetime.weekday() is Monday=0; rules use Sunday=0.
    return (value.weekday() + 1) % 7


def rule_from_task(task) -> Optional[RecurrenceRule]:
    """Build the rule described by a template's recurrence fields, or None."""
    frequency = (getattr(task, 'recurring_frequency', None) or '').strip().lower()
    interval = getattr(task, 'recurring_interval', None) or 1
    interval = max(int(interval), 1)
    day_of_month = parse_bounded_int(getattr(task, 'day_of_month', None), 1, 31)

    if frequency == 'daily':
        return Daily(interval)
    if frequency == 'weekly':
        days = frozenset(parse_days_of_week(getattr(task, 'days_of_week', None)))
        return Weekly(interval, days)
    if frequency == 'biweekly':
        return Biweekly(interval)
    if frequency == 'monthly':
        return Monthly(interval, day_of_month)
    if frequency == 'yearly':
        month_of_year = parse_bounded_int(getattr(task, 'month_of_year', None), 0, 11)
        return Yearly(interval, month_of_year, day_of_month)
    if frequency == 'custom':
        return Custom(interval)
    return None


def next_occurrence(rule: RecurrenceRule, last_due: datetime, now: datetime) -> datetime:
    if isinstance(rule, (Daily, Custom)):
        return last_due + timedelta(days=rule.interval)

    if isinstance(rule, Weekly):
        if rule.days_of_week:
            current = _sunday_weekday(last_due)
            for offset in range(1, 8):
                if (current + offset) % 7 in rule.days_of_week:
                    return last_due + timedelta(days=offset)
        return last_due + timedelta(days=7 * rule.interval)

    if isinstance(rule, Biweekly):
        return last_due + timedelta(days=14 * rule.interval)

    if isinstance(rule, Monthly):
        if rule.day_of_month is None:
            return last_due + relativedelta(months=rule.interval)
        candidate = last_due + relativedelta(months=rule.interval, day=rule.day_of_month)
        if candidate <= now:
            candidate = candidate + relativedelta(months=1, day=rule.day_of_month)
        return candidate

    if isinstance(rule, Yearly):
        if rule.month_of_year is None or rule.day_of_month is None:
            return last_due + relativedelta(years=rule.interval)
        month = rule.month_of_year + 1
        candidate = last_due + relativedelta(years=rule.interval, month=month, day=rule.day_of_month)
        if candidate <= now:
            candidate = candidate + relativedelta(years=1, month=month, day=rule.day_of_month)
        return candidate

    raise TypeError(f"Unsupported recurrence rule: {rule!r}")


def compute_next_due_date(task, last_due_date=None, now=None):
    """
    Return the next due datetime for a recurring template, or None when the
    template carries no recognised frequency.

    `last_due_date` defaults to `now`, and `now` defaults to the local clock.
    The template is never modified.
    """
    rule = rule_from_task(task)
    if rule is None:
        return None
    if now is None:
        now = now_local()
    return next_occurrence(rule, last_due_date or now, now)
