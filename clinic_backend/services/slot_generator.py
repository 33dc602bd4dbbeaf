"""Expansion of a date range and a daily window into fixed-width schedule slots."""

import math
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from clinic_backend.core import config

Slot = tuple[datetime, datetime]


def parse_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def parse_time_of_day(value: time | str) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return time.fromisoformat(value.strip()).replace(second=0, microsecond=0)


class SlotRange:
    """Restartable iterable of ``(start, end)`` pairs.

    One pass per day in ``[start_date, end_date]``; each day starts fresh at
    ``daily_start`` and steps a cursor by ``interval_minutes`` while the
    cursor is before ``daily_end``. Every slot has the full interval width,
    so a window that is not a whole multiple of the interval ends with a
    slot running past ``daily_end``.
    """

    def __init__(
        self,
        start_date: date | str,
        end_date: date | str,
        daily_start: time | str,
        daily_end: time | str,
        interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
    ):
        if interval_minutes <= 0:
            raise ValueError('interval_minutes must be positive.')

        self.start_date = parse_date(start_date)
        self.end_date = parse_date(end_date)
        self.daily_start = parse_time_of_day(daily_start)
        self.daily_end = parse_time_of_day(daily_end)
        self.interval = timedelta(minutes=interval_minutes)

    @property
    def days(self) -> int:
        return max((self.end_date - self.start_date).days + 1, 0)

    @property
    def slots_per_day(self) -> int:
        window = datetime.combine(date.min, self.daily_end) - datetime.combine(date.min, self.daily_start)
        if window <= timedelta(0):
            return 0
        return math.ceil(window / self.interval)

    def __len__(self) -> int:
        return self.days * self.slots_per_day

    def __iter__(self) -> Iterator[Slot]:
        current_day = self.start_date

        while current_day <= self.end_date:
            cursor = datetime.combine(current_day, self.daily_start)
            day_end = datetime.combine(current_day, self.daily_end)

            while cursor < day_end:
                slot_end = cursor + self.interval
                yield cursor, slot_end
                cursor = slot_end

            current_day += timedelta(days=1)

    def __repr__(self) -> str:
        return (
            f'SlotRange({self.start_date.isoformat()}..{self.end_date.isoformat()}, '
            f'{self.daily_start.strftime("%H:%M")}-{self.daily_end.strftime("%H:%M")}, '
            f'every {int(self.interval.total_seconds() // 60)}m)'
        )


def generate_slots(
    start_date: date | str,
    end_date: date | str,
    daily_start: time | str,
    daily_end: time | str,
    interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
) -> SlotRange:
    return SlotRange(start_date, end_date, daily_start, daily_end, interval_minutes)
