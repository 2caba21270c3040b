# Contribution index: which local days have an entry, laid out as month calendars.
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import config

WEEKDAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@dataclass
class MonthBlock:
    year: int
    month: int
    weeks: list  # rows of 7 cells, Sunday first; None for blanks

    @property
    def label(self) -> str:
        return date(self.year, self.month, 1).strftime("%b %Y")


def date_key(ts: datetime, tz: ZoneInfo) -> str:
    return ts.astimezone(tz).strftime("%Y-%m-%d")


def build_index(timestamps, window_days: int, now: datetime, tz: ZoneInfo) -> set[str]:
    start = now - timedelta(days=max(window_days, 0))
    return {date_key(ts, tz) for ts in timestamps if start <= ts <= now}


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_weeks(year: int, month: int, today: date) -> list:
    pad = (date(year, month, 1).weekday() + 1) % 7
    _, ndays = monthrange(year, month)
    cells = [None] * pad
    for d in range(1, ndays + 1):
        day = date(year, month, d)
        cells.append(day if day <= today else None)
    while len(cells) % 7:
        cells.append(None)
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


def layout_months(today: date, months: int = config.GRID_MONTHS) -> list[MonthBlock]:
    """Trailing `months` calendars ending with today's month, oldest first."""
    blocks = []
    for delta in range(-(months - 1), 1):
        year, month = _shift_month(today.year, today.month, delta)
        blocks.append(MonthBlock(year, month, _month_weeks(year, month, today)))
    return blocks


def current_streak(index: set[str], today: date) -> int:
    """Consecutive written days ending today, or yesterday when today is still blank."""
    day = today if today.isoformat() in index else today - timedelta(days=1)
    count = 0
    while day.isoformat() in index:
        count += 1
        day -= timedelta(days=1)
    return count
