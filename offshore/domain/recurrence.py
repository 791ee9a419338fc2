"""
Deterministic recurrence occurrence generator.

Uses date only (no time of day). All results are clipped to the query range,
strictly ascending and free of duplicates.

Frequencies:
- none:    no occurrences
- daily:   every N days, anchored to the range start
- weekly:  one weekday every N weeks, first match on/after the range start
- monthly: day-of-month (clamped to month length) or last day, every N months
- yearly:  month + day (clamped, leap-year aware), every N years

Invalid field values are clamped rather than rejected.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterator

from offshore.domain.calendar import CalendarProvider, clamp


FREQ_NONE = "none"
FREQ_DAILY = "daily"
FREQ_WEEKLY = "weekly"
FREQ_MONTHLY = "monthly"
FREQ_YEARLY = "yearly"
VALID_FREQ = frozenset({FREQ_NONE, FREQ_DAILY, FREQ_WEEKLY, FREQ_MONTHLY, FREQ_YEARLY})

_DEFAULT_CALENDAR = CalendarProvider()


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str = FREQ_MONTHLY
    interval: int = 1
    weekly_weekday: int = 6  # weekly only, 1=Sunday .. 7=Saturday
    monthly_day_of_month: int = 15  # monthly only, 1..31
    monthly_is_last_day: bool = False  # monthly only, wins over monthly_day_of_month
    yearly_month: int = 1  # yearly only, 1..12
    yearly_day_of_month: int = 15  # yearly only, 1..31

    def __post_init__(self):
        freq = (self.frequency or FREQ_NONE).lower()
        object.__setattr__(self, "frequency", freq if freq in VALID_FREQ else FREQ_NONE)
        object.__setattr__(self, "interval", max(1, int(self.interval or 1)))
        object.__setattr__(self, "weekly_weekday", clamp(int(self.weekly_weekday), 1, 7))
        object.__setattr__(self, "monthly_day_of_month", clamp(int(self.monthly_day_of_month), 1, 31))
        object.__setattr__(self, "monthly_is_last_day", bool(self.monthly_is_last_day))
        object.__setattr__(self, "yearly_month", clamp(int(self.yearly_month), 1, 12))
        object.__setattr__(self, "yearly_day_of_month", clamp(int(self.yearly_day_of_month), 1, 31))

    @classmethod
    def from_preset(cls, row) -> "RecurrenceRule":
        """Build a rule from a PresetModel row (any object with matching attributes)."""
        return cls(
            frequency=row.frequency,
            interval=row.interval,
            weekly_weekday=row.weekly_weekday,
            monthly_day_of_month=row.monthly_day_of_month,
            monthly_is_last_day=row.monthly_is_last_day,
            yearly_month=row.yearly_month,
            yearly_day_of_month=row.yearly_day_of_month,
        )


def _daily(rule: RecurrenceRule, start: date, end: date, cal: CalendarProvider) -> Iterator[date]:
    # Anchored to the range start: shifting the range shifts every occurrence.
    d = start
    while d <= end:
        yield d
        d = cal.add_days(d, rule.interval)


def _weekly(rule: RecurrenceRule, start: date, end: date, cal: CalendarProvider) -> Iterator[date]:
    offset = (rule.weekly_weekday - cal.gregorian_weekday(start)) % 7
    d = cal.add_days(start, offset)
    while d <= end:
        yield d
        d = cal.add_weeks(d, rule.interval)


def _monthly(rule: RecurrenceRule, start: date, end: date, cal: CalendarProvider) -> Iterator[date]:
    cursor = cal.start_of_month(start)
    while cursor <= end:
        last = cal.days_in_month(cursor.year, cursor.month)
        if rule.monthly_is_last_day:
            day = last
        else:
            day = min(rule.monthly_day_of_month, last)
        d = date(cursor.year, cursor.month, day)
        if start <= d <= end:
            yield d
        cursor = cal.add_months(cursor, rule.interval)


def _yearly(rule: RecurrenceRule, start: date, end: date, cal: CalendarProvider) -> Iterator[date]:
    year = start.year
    while year <= end.year:
        last = cal.days_in_month(year, rule.yearly_month)
        d = date(year, rule.yearly_month, min(rule.yearly_day_of_month, last))
        if start <= d <= end:
            yield d
        year += rule.interval


_EXPANDERS = {
    FREQ_DAILY: _daily,
    FREQ_WEEKLY: _weekly,
    FREQ_MONTHLY: _monthly,
    FREQ_YEARLY: _yearly,
}


def iter_occurrences(
    rule: RecurrenceRule,
    range_start: date,
    range_end: date,
    cal: CalendarProvider | None = None,
) -> Iterator[date]:
    """Lazily yield occurrence dates in [range_start, range_end] (inclusive)."""
    cal = cal or _DEFAULT_CALENDAR
    start = cal.start_of_day(range_start)
    end = cal.start_of_day(range_end)
    if start > end:
        return
    expand = _EXPANDERS.get(rule.frequency)
    if expand is None:
        return

    previous: date | None = None
    for d in expand(rule, start, end, cal):
        if previous is not None and d <= previous:
            continue
        previous = d
        yield d


def generate_occurrence_dates(
    rule: RecurrenceRule,
    range_start: date,
    range_end: date,
    cal: CalendarProvider | None = None,
) -> list[date]:
    """Generate occurrence dates in [range_start, range_end] (inclusive).
    Deterministic, sorted ascending."""
    return list(iter_occurrences(rule, range_start, range_end, cal))


class Occurrences:
    """Restartable view over the occurrences of a rule in a range."""

    def __init__(self, rule: RecurrenceRule, range_start: date, range_end: date,
                 cal: CalendarProvider | None = None):
        self.rule = rule
        self.range_start = range_start
        self.range_end = range_end
        self.cal = cal

    def __iter__(self) -> Iterator[date]:
        return iter_occurrences(self.rule, self.range_start, self.range_end, self.cal)

    def __len__(self) -> int:
        return sum(1 for _ in self)
