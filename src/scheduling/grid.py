"""View grid builder.

Turns a pivot and granularity into the ordered cells of the visible view:

    month → 5 or 6 rows × 7 columns, Monday first, blanks outside the month
    week  → 7 day columns of hour rows (06:00–22:00 by default)
    day   → 1 day column of hour rows

Each cell carries the day's classification and the agenda events starting in
it.  Stateless, no I/O; markup is left to the presentation layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, Iterable, Sequence

from src.models.calendar import ConcreteEvent, DerivedEvent
from src.models.schedule import ScheduleEvent
from src.scheduling.classifier import EMPTY, DayClassification, classify
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.time_cursor import Granularity, compute_range

AnyEvent = ConcreteEvent | DerivedEvent


@dataclass(frozen=True)
class MonthCell:
    day: date | None
    classification: DayClassification = EMPTY
    schedule_events: tuple[ScheduleEvent, ...] = ()
    is_today: bool = False

    @property
    def is_blank(self) -> bool:
        return self.day is None


BLANK = MonthCell(day=None)


@dataclass(frozen=True)
class HourSlot:
    start: datetime
    schedule_events: tuple[ScheduleEvent, ...] = ()

    @property
    def hour(self) -> int:
        return self.start.hour


@dataclass(frozen=True)
class DayColumn:
    day: date
    classification: DayClassification
    all_day_events: tuple[ScheduleEvent, ...]
    slots: tuple[HourSlot, ...]
    is_today: bool = False


def _starting_on(day: date, events: Sequence[ScheduleEvent]) -> list[ScheduleEvent]:
    return sorted(
        (e for e in events if e.event_beginning.date() == day),
        key=lambda e: e.event_beginning,
    )


def month_grid(
    pivot: date,
    cycle_events: Sequence[AnyEvent] = (),
    schedule_events: Sequence[ScheduleEvent] = (),
    config: CalendarConfig | None = None,
    today: date | None = None,
) -> list[list[MonthCell]]:
    """Rows of seven cells for the pivot's month."""
    config = config or get_calendar_config()
    month = compute_range(pivot, Granularity.MONTH)

    cells: list[MonthCell] = [BLANK] * month.start.weekday()
    for day in month.days():
        cells.append(
            MonthCell(
                day=day,
                classification=classify(day, cycle_events),
                schedule_events=tuple(_starting_on(day, schedule_events)),
                is_today=day == today,
            )
        )

    rows = max(-(-len(cells) // 7), config.grid.min_month_rows)
    cells.extend([BLANK] * (rows * 7 - len(cells)))
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


def _day_column(
    day: date,
    cycle_events: Sequence[AnyEvent],
    schedule_events: Sequence[ScheduleEvent],
    hours: list[int],
    today: date | None,
) -> DayColumn:
    starting = _starting_on(day, schedule_events)
    all_day = tuple(e for e in starting if e.is_all_day)
    timed = [e for e in starting if not e.is_all_day]

    first, last = hours[0], hours[-1]
    by_hour: dict[int, list[ScheduleEvent]] = {h: [] for h in hours}
    for event in timed:
        # Events outside the visible hours land in the nearest row.
        hour = min(max(event.event_beginning.hour, first), last)
        by_hour[hour].append(event)

    return DayColumn(
        day=day,
        classification=classify(day, cycle_events),
        all_day_events=all_day,
        slots=tuple(
            HourSlot(start=datetime.combine(day, time(h)), schedule_events=tuple(by_hour[h]))
            for h in hours
        ),
        is_today=day == today,
    )


def time_grid(
    pivot: date,
    granularity: Granularity,
    cycle_events: Sequence[AnyEvent] = (),
    schedule_events: Sequence[ScheduleEvent] = (),
    config: CalendarConfig | None = None,
    today: date | None = None,
) -> list[DayColumn]:
    """Day columns with hour rows for the week or day view."""
    if granularity is Granularity.MONTH:
        raise ValueError("Use month_grid() for the month view")
    config = config or get_calendar_config()
    hours = config.grid.hours
    return [
        _day_column(day, cycle_events, schedule_events, hours, today)
        for day in compute_range(pivot, granularity).days()
    ]


def build_grid(
    pivot: date,
    granularity: Granularity,
    cycle_events: Iterable[AnyEvent] = (),
    schedule_events: Iterable[ScheduleEvent] = (),
    config: CalendarConfig | None = None,
    clock: Callable[[], date] = date.today,
) -> list[list[MonthCell]] | list[DayColumn]:
    """Grid for any granularity, with ``is_today`` computed from ``clock``."""
    cycle_events = list(cycle_events)
    schedule_events = list(schedule_events)
    today = clock()
    if Granularity(granularity) is Granularity.MONTH:
        return month_grid(pivot, cycle_events, schedule_events, config, today)
    return time_grid(pivot, Granularity(granularity), cycle_events, schedule_events, config, today)

