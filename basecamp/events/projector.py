"""Projection of a flat event list onto day, week, month and year grids.

All grid math lives here so every view shares one implementation. Instants
are converted to the configured calendar timezone before they are bucketed
into days or turned into minute offsets.
"""

from __future__ import annotations

import calendar
import datetime
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable
from zoneinfo import ZoneInfo

from basecamp.core.constants import (
    DEFAULT_TIMEZONE,
    MIN_EVENT_HEIGHT,
    MONTH_PREVIEW_LIMIT,
)

from .holidays import Holiday, get_holidays
from .models import to_utc

HOURS = list(range(24))


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class EventBlock:
    """An event positioned inside a day column, in minutes."""

    event_id: str
    title: str
    color: str
    start: datetime.datetime
    end: datetime.datetime
    top: int
    height: int


@dataclass(frozen=True)
class DayColumn:
    date: datetime.date
    is_today: bool
    holiday: str | None
    blocks: list[EventBlock] = field(default_factory=list)


@dataclass(frozen=True)
class TimeGrid:
    """Day or week view: one column per day, 24 hourly rows."""

    mode: ViewMode
    start: datetime.date
    end: datetime.date
    columns: list[DayColumn]
    hours: list[int] = field(default_factory=lambda: list(HOURS))


@dataclass(frozen=True)
class EventPreview:
    event_id: str
    title: str
    color: str
    start: datetime.datetime


@dataclass(frozen=True)
class DayCell:
    date: datetime.date
    in_month: bool
    is_today: bool
    is_holiday: bool
    holiday: str | None
    has_event: bool
    dot_color: str | None
    event_count: int
    preview: list[EventPreview]


@dataclass(frozen=True)
class MonthGrid:
    year: int
    month: int
    weeks: list[list[DayCell]]
    holidays: list[Holiday]
    highlights: list[EventPreview]

    @property
    def days(self) -> list[DayCell]:
        return [cell for week in self.weeks for cell in week]


@dataclass(frozen=True)
class YearGrid:
    year: int
    months: list[MonthGrid]


class CalendarProjector:
    """Turns events into render geometry for one timezone and week layout."""

    def __init__(
        self,
        timezone: str | datetime.tzinfo = DEFAULT_TIMEZONE,
        first_weekday: int = calendar.SUNDAY,
        min_height: int = MIN_EVENT_HEIGHT,
        preview_limit: int = MONTH_PREVIEW_LIMIT,
        holiday_source: Callable[[int], list[Holiday]] = get_holidays,
    ) -> None:
        self.tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.first_weekday = first_weekday
        self.min_height = min_height
        self.preview_limit = preview_limit
        self.holiday_source = holiday_source

    def today(self) -> datetime.date:
        return datetime.datetime.now(self.tz).date()

    def local(self, instant: Any) -> datetime.datetime:
        return to_utc(instant).astimezone(self.tz)

    def event_day(self, event: dict[str, Any]) -> datetime.date:
        return self.local(event["startTime"]).date()

    def week_start(self, day: datetime.date) -> datetime.date:
        """The first shown weekday on or before ``day``."""
        return day - datetime.timedelta(days=(day.weekday() - self.first_weekday) % 7)

    def weekday_names(self) -> list[str]:
        return [
            calendar.day_abbr[(self.first_weekday + i) % 7] for i in range(7)
        ]

    def bucket_by_day(
        self, events: Iterable[dict[str, Any]]
    ) -> dict[datetime.date, list[dict[str, Any]]]:
        """Group events under the local date they start on, earliest first."""
        buckets: dict[datetime.date, list[dict[str, Any]]] = defaultdict(list)
        for event in sorted(events, key=lambda e: to_utc(e["startTime"])):
            buckets[self.event_day(event)].append(event)
        return buckets

    def block(self, event: dict[str, Any]) -> EventBlock:
        start = self.local(event["startTime"])
        end = self.local(event.get("endTime") or event["startTime"])
        # Subtract in UTC; same-zone subtraction ignores DST shifts.
        elapsed = to_utc(end) - to_utc(start)
        duration = int(elapsed.total_seconds() // 60)
        return EventBlock(
            event_id=event["id"],
            title=event.get("title", ""),
            color=event.get("color", "blue"),
            start=start,
            end=end,
            top=start.hour * 60 + start.minute,
            height=max(duration, self.min_height),
        )

    def _preview(self, event: dict[str, Any]) -> EventPreview:
        return EventPreview(
            event_id=event["id"],
            title=event.get("title", ""),
            color=event.get("color", "blue"),
            start=self.local(event["startTime"]),
        )

    def _holiday_names(self, years: Iterable[int]) -> dict[datetime.date, str]:
        names = {}
        for year in set(years):
            for holiday in self.holiday_source(year):
                names.setdefault(holiday.date, holiday.name)
        return names

    def time_grid(
        self,
        events: Iterable[dict[str, Any]],
        reference: datetime.date,
        mode: ViewMode = ViewMode.WEEK,
        today: datetime.date | None = None,
    ) -> TimeGrid:
        """Day columns for the week (or single day) containing ``reference``."""
        today = today or self.today()
        if mode is ViewMode.DAY:
            days = [reference]
        else:
            start = self.week_start(reference)
            days = [start + datetime.timedelta(days=i) for i in range(7)]

        buckets = self.bucket_by_day(events)
        holidays = self._holiday_names(day.year for day in days)
        columns = [
            DayColumn(
                date=day,
                is_today=day == today,
                holiday=holidays.get(day),
                blocks=[self.block(event) for event in buckets.get(day, [])],
            )
            for day in days
        ]
        return TimeGrid(mode=mode, start=days[0], end=days[-1], columns=columns)

    def month_grid(
        self,
        events: Iterable[dict[str, Any]],
        year: int,
        month: int,
        today: datetime.date | None = None,
        buckets: dict[datetime.date, list[dict[str, Any]]] | None = None,
    ) -> MonthGrid:
        """Whole weeks covering ``month``, padded with neighbouring days."""
        today = today or self.today()
        if buckets is None:
            buckets = self.bucket_by_day(events)
        weeks_of_days = calendar.Calendar(self.first_weekday).monthdatescalendar(
            year, month
        )
        holidays = self._holiday_names(
            {day.year for week in weeks_of_days for day in week}
        )

        weeks = []
        for week in weeks_of_days:
            row = []
            for day in week:
                day_events = buckets.get(day, [])
                row.append(
                    DayCell(
                        date=day,
                        in_month=day.month == month,
                        is_today=day == today,
                        is_holiday=day in holidays,
                        holiday=holidays.get(day),
                        has_event=bool(day_events),
                        dot_color=day_events[0].get("color") if day_events else None,
                        event_count=len(day_events),
                        preview=[
                            self._preview(e) for e in day_events[: self.preview_limit]
                        ],
                    )
                )
            weeks.append(row)

        month_events = [
            event
            for day, day_events in sorted(buckets.items())
            if day.year == year and day.month == month
            for event in day_events
        ]
        return MonthGrid(
            year=year,
            month=month,
            weeks=weeks,
            holidays=[
                h
                for h in self.holiday_source(year)
                if h.date.year == year and h.date.month == month
            ],
            highlights=[
                self._preview(e) for e in month_events[: self.preview_limit]
            ],
        )

    def year_grid(
        self,
        events: Iterable[dict[str, Any]],
        year: int,
        today: datetime.date | None = None,
    ) -> YearGrid:
        today = today or self.today()
        buckets = self.bucket_by_day(events)
        return YearGrid(
            year=year,
            months=[
                self.month_grid([], year, month, today, buckets=buckets)
                for month in range(1, 13)
            ],
        )

    def project(
        self,
        events: Iterable[dict[str, Any]],
        reference: datetime.date,
        mode: ViewMode | str,
        today: datetime.date | None = None,
    ) -> TimeGrid | MonthGrid | YearGrid:
        """Render geometry for ``mode`` around ``reference``."""
        mode = ViewMode(mode)
        if mode in (ViewMode.DAY, ViewMode.WEEK):
            return self.time_grid(events, reference, mode, today)
        if mode is ViewMode.MONTH:
            return self.month_grid(events, reference.year, reference.month, today)
        return self.year_grid(events, reference.year, today)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple) and hasattr(value, "_asdict"):
        return _jsonable(value._asdict())
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def grid_to_json(grid: TimeGrid | MonthGrid | YearGrid) -> dict[str, Any]:
    """Plain JSON-ready representation of a projected grid."""
    return _jsonable(asdict(grid))
