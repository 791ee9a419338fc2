"""
Calendar arithmetic provider.

Day-granular date math used by the recurrence engine. Everything is expressed
in plain `date` values (start-of-day); aware datetimes are first converted to
the configured timezone.

Stored weekdays use the fixed Gregorian numbering 1 = Sunday .. 7 = Saturday.
`first_weekday` (same numbering) only affects `weekday()`, the locale-relative
number used for display: FIRST_WEEKDAY=1 gives Sunday-first weeks and
FIRST_WEEKDAY=2 gives ISO weeks.
"""
import calendar
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


class CalendarProvider:
    def __init__(self, tz: str = "UTC", first_weekday: int = 1):
        self.tz = ZoneInfo(tz)
        self.first_weekday = clamp(first_weekday, 1, 7)

    @classmethod
    def from_settings(cls, settings=None) -> "CalendarProvider":
        if settings is None:
            from offshore.config import get_settings
            settings = get_settings()
        return cls(tz=settings.TIMEZONE, first_weekday=settings.FIRST_WEEKDAY)

    # --- normalisation ---

    def start_of_day(self, value: date | datetime) -> date:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.tz)
            return value.date()
        return value

    # --- arithmetic ---

    def add_days(self, d: date, n: int) -> date:
        return d + timedelta(days=n)

    def add_weeks(self, d: date, n: int) -> date:
        return d + timedelta(weeks=n)

    def add_months(self, d: date, n: int) -> date:
        month = d.month - 1 + n
        year = d.year + month // 12
        month = month % 12 + 1
        day = min(d.day, last_day_of_month(year, month))
        return date(year, month, day)

    def add_years(self, d: date, n: int) -> date:
        year = d.year + n
        day = min(d.day, last_day_of_month(year, d.month))
        return date(year, d.month, day)

    # --- queries ---

    def days_in_month(self, year: int, month: int) -> int:
        return last_day_of_month(year, month)

    def is_leap_year(self, year: int) -> bool:
        return calendar.isleap(year)

    def gregorian_weekday(self, d: date) -> int:
        """Sunday=1 .. Saturday=7, independent of `first_weekday`."""
        return d.isoweekday() % 7 + 1

    def weekday(self, d: date) -> int:
        """Locale-relative weekday, 1..7 where 1 is `first_weekday`."""
        return (self.gregorian_weekday(d) - self.first_weekday) % 7 + 1

    def start_of_month(self, d: date) -> date:
        return d.replace(day=1)
