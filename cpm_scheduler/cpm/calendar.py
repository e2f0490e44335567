"""
Working-day Calendar and Date Arithmetic.

Provides work-day-aware date calculations over a weekday rule plus
date-specific exceptions (holidays or added work days).
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Union

from cpm_scheduler.config.settings import settings


ONE_DAY = timedelta(days=1)

# Host calendars number weekdays 0=Sunday ... 6=Saturday
HOST_DAY_NAMES = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']


def host_day_to_weekday(host_day: int) -> int:
    """Convert host day index (0=Sunday) to Python weekday() (0=Monday)."""
    return (host_day + 6) % 7


def weekday_to_host_day(weekday: int) -> int:
    """Convert Python weekday() (0=Monday) to host day index (0=Sunday)."""
    return (weekday + 1) % 7


@dataclass(frozen=True)
class CalendarException:
    """Override for a single date."""
    working: bool = False
    description: str = ''


@dataclass
class WorkCalendar:
    """
    Project calendar with a working week and exception dates.

    Handles:
    - Working weekdays (Python weekday() numbering, 0=Monday)
    - Exception dates that override the weekday rule either way
    - Work-day date arithmetic that never loops on an empty calendar
    """

    working_weekdays: frozenset[int] = frozenset({0, 1, 2, 3, 4})
    exceptions: dict[date, CalendarException] = field(default_factory=dict)

    def __post_init__(self):
        self.working_weekdays = frozenset(self.working_weekdays)
        # Sorted working exception dates, used when no weekday is a work day
        self._extra_work_days = sorted(
            d for d, exc in self.exceptions.items() if exc.working
        )

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> 'WorkCalendar':
        """
        Parse the host calendar format into a WorkCalendar.

        Args:
            data: {"workingDays": [1, 2, 3, 4, 5], "exceptions": {...}} where
                  working days use 0=Sunday and each exception is either a
                  description string (holiday) or {"working": bool, "description": str}
        """
        data = data or {}
        host_days = data.get('workingDays')
        if host_days is None:
            host_days = settings.DEFAULT_WORKING_DAYS

        exceptions = {}
        for key, value in (data.get('exceptions') or {}).items():
            exc_date = date.fromisoformat(key) if isinstance(key, str) else key
            if isinstance(value, str):
                exceptions[exc_date] = CalendarException(working=False, description=value)
            else:
                exceptions[exc_date] = CalendarException(
                    working=bool(value.get('working', False)),
                    description=str(value.get('description', '')),
                )

        return cls(
            working_weekdays=frozenset(host_day_to_weekday(d) for d in host_days),
            exceptions=exceptions,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the host calendar format."""
        return {
            'workingDays': sorted(weekday_to_host_day(d) for d in self.working_weekdays),
            'exceptions': {
                d.isoformat(): {'working': exc.working, 'description': exc.description}
                for d, exc in sorted(self.exceptions.items())
            },
        }

    def with_exception(self, exc_date: date, working: bool = False,
                       description: str = '') -> 'WorkCalendar':
        """Return a new calendar with one exception added or replaced."""
        exceptions = dict(self.exceptions)
        exceptions[exc_date] = CalendarException(working=working, description=description)
        return WorkCalendar(working_weekdays=self.working_weekdays, exceptions=exceptions)

    def is_working_day(self, dt: date) -> bool:
        """Check if a date is a work day. Exceptions always win."""
        exc = self.exceptions.get(dt)
        if exc is not None:
            return exc.working
        return dt.weekday() in self.working_weekdays

    def has_working_days(self) -> bool:
        """False when no date can ever be a work day."""
        return bool(self.working_weekdays) or bool(self._extra_work_days)

    def roll_forward(self, dt: date) -> date:
        """Return dt if it is a work day, else the next work day."""
        if self.is_working_day(dt):
            return dt
        found = self._next_working_day(dt)
        return found if found is not None else dt

    def roll_backward(self, dt: date) -> date:
        """Return dt if it is a work day, else the previous work day."""
        if self.is_working_day(dt):
            return dt
        found = self._previous_working_day(dt)
        return found if found is not None else dt

    def add_work_days(self, start: date, days: int) -> date:
        """
        Add (or subtract, for negative values) work days to a date.

        Only work days are counted while stepping, so any non-zero step lands
        on a work day. days == 0 returns start when it is a work day, otherwise
        the next work day.
        """
        if days == 0:
            return self.roll_forward(start)

        step = self._next_working_day if days > 0 else self._previous_working_day
        current = start
        for _ in range(abs(days)):
            found = step(current)
            if found is None:
                # No more work days in this direction
                break
            current = found
        return current

    def try_add_work_days(self, start: date, days: int) -> Optional[date]:
        """
        Same as add_work_days, but returns None when the calendar has no
        work day left in the direction of travel.
        """
        if days == 0:
            return start if self.is_working_day(start) else self._next_working_day(start)

        step = self._next_working_day if days > 0 else self._previous_working_day
        current = start
        for _ in range(abs(days)):
            current = step(current)
            if current is None:
                return None
        return current

    def subtract_work_days(self, end: date, days: int) -> date:
        """Subtract work days from a date."""
        return self.add_work_days(end, -days)

    def work_days_between(self, start: date, end: date) -> int:
        """
        Signed count of work days spanned moving from start to end.

        Counts work days in (start, end] when end is later, and the negated
        count of work days in (end, start] when end is earlier.
        """
        if start == end:
            return 0
        if end > start:
            return self._count_range(start + ONE_DAY, end)
        return -self._count_range(end + ONE_DAY, start)

    def count_work_days(self, start: date, end: date) -> int:
        """Count work days between two dates (inclusive, order-insensitive)."""
        if end < start:
            start, end = end, start
        return self._count_range(start, end)

    def _count_range(self, start: date, end: date) -> int:
        """Inclusive work-day count for start <= end."""
        total_days = (end - start).days + 1
        if total_days <= 0:
            return 0

        # Whole weeks contribute len(working_weekdays) each
        full_weeks, remainder = divmod(total_days, 7)
        count = full_weeks * len(self.working_weekdays)
        tail_start = start + timedelta(days=full_weeks * 7)
        for offset in range(remainder):
            if (tail_start + timedelta(days=offset)).weekday() in self.working_weekdays:
                count += 1

        # Correct for exceptions inside the range
        for exc_date, exc in self.exceptions.items():
            if start <= exc_date <= end:
                weekday_working = exc_date.weekday() in self.working_weekdays
                if exc.working and not weekday_working:
                    count += 1
                elif not exc.working and weekday_working:
                    count -= 1
        return count

    def _next_working_day(self, dt: date) -> Optional[date]:
        """First work day strictly after dt, or None if there is none."""
        if not self.working_weekdays:
            idx = bisect_right(self._extra_work_days, dt)
            return self._extra_work_days[idx] if idx < len(self._extra_work_days) else None

        current = dt + ONE_DAY
        # Bounded: past the last exception, a work day occurs within 7 days
        while not self.is_working_day(current):
            current += ONE_DAY
        return current

    def _previous_working_day(self, dt: date) -> Optional[date]:
        """Last work day strictly before dt, or None if there is none."""
        if not self.working_weekdays:
            idx = bisect_left(self._extra_work_days, dt)
            return self._extra_work_days[idx - 1] if idx > 0 else None

        current = dt - ONE_DAY
        while not self.is_working_day(current):
            current -= ONE_DAY
        return current

    def __repr__(self) -> str:
        days = [HOST_DAY_NAMES[weekday_to_host_day(d)] for d in sorted(self.working_weekdays)]
        return f"WorkCalendar({','.join(days) or 'no work days'}, {len(self.exceptions)} exceptions)"


def as_calendar(value: Union[WorkCalendar, dict[str, Any], None]) -> WorkCalendar:
    """Accept a WorkCalendar or host calendar dict."""
    if isinstance(value, WorkCalendar):
        return value
    return WorkCalendar.from_dict(value)
