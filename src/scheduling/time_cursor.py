"""Time cursor and range loader.

The cursor tracks the navigation pivot and the visible granularity and
computes the inclusive ``[start, end]`` query range:

    month → first to last day of the pivot's month
    week  → Monday through Sunday containing the pivot
    day   → the pivot alone

The loader owns the visible event snapshot for that range.  Every load is
stamped with a monotonically increasing generation; a response is applied
only if its generation is still the current one, so a slow response for an
old range never overwrites the newer one ("last-request-wins").  The
snapshot is replaced wholesale on success and kept unchanged on failure.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Awaitable, Callable, Generic, Iterator, Sequence, TypeVar

from src.scheduling.errors import CalendarError, PrerequisiteError
from src.scheduling.notifications import LoggingNotifier, Notifier

logger = logging.getLogger("portal.scheduling.time_cursor")

T = TypeVar("T")

Clock = Callable[[], date]


class Granularity(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date range."""

    start: date
    end: date

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1


def compute_range(pivot: date, granularity: Granularity) -> DateRange:
    """Return the inclusive range visible for ``pivot`` at ``granularity``."""
    if granularity is Granularity.MONTH:
        last = calendar.monthrange(pivot.year, pivot.month)[1]
        return DateRange(pivot.replace(day=1), pivot.replace(day=last))
    if granularity is Granularity.WEEK:
        monday = pivot - timedelta(days=pivot.weekday())
        return DateRange(monday, monday + timedelta(days=6))
    return DateRange(pivot, pivot)


def shift(pivot: date, granularity: Granularity, steps: int) -> date:
    """Move ``pivot`` by ``steps`` units of ``granularity``.

    Month steps keep the day of month, clamped to the target month's length
    (31 January + 1 month → 29 February in a leap year).
    """
    if granularity is Granularity.MONTH:
        index = pivot.year * 12 + (pivot.month - 1) + steps
        year, month = divmod(index, 12)
        month += 1
        day = min(pivot.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)
    if granularity is Granularity.WEEK:
        return pivot + timedelta(weeks=steps)
    return pivot + timedelta(days=steps)


class TimeCursor:
    """Navigation pivot plus granularity.

    Usage::

        cursor = TimeCursor(pivot=date(2024, 6, 15), granularity=Granularity.WEEK)
        cursor.range            # DateRange(2024-06-10, 2024-06-16)
        cursor.next()
        cursor.range            # DateRange(2024-06-17, 2024-06-23)
    """

    def __init__(
        self,
        pivot: date | None = None,
        granularity: Granularity = Granularity.MONTH,
        clock: Clock = date.today,
    ) -> None:
        self._clock = clock
        self.pivot = pivot or clock()
        self.granularity = Granularity(granularity)

    @property
    def range(self) -> DateRange:
        return compute_range(self.pivot, self.granularity)

    def previous(self) -> DateRange:
        self.pivot = shift(self.pivot, self.granularity, -1)
        return self.range

    def next(self) -> DateRange:
        self.pivot = shift(self.pivot, self.granularity, 1)
        return self.range

    def today(self) -> DateRange:
        self.pivot = self._clock()
        return self.range

    def go_to(self, pivot: date) -> DateRange:
        self.pivot = pivot
        return self.range

    def set_granularity(self, granularity: Granularity) -> DateRange:
        self.granularity = Granularity(granularity)
        return self.range

    def title_range(self) -> DateRange:
        """Range shown in the view header; formatting is left to the caller."""
        return self.range


class RangeLoader(Generic[T]):
    """Owns the visible snapshot for the cursor's range.

    Args:
        fetch:    Coroutine function returning the records for a range.
                  The only suspension point of the loader.
        cursor:   Time cursor whose range is loaded.
        notifier: Sink for load failures.

    Attributes:
        events:                  Current snapshot (tuple, replaced wholesale).
        loaded_range:            Range the snapshot belongs to.
        requires_profile_update: Set when the store reports a missing
                                 profile prerequisite; the grid must not render.
        last_error:              Most recent load failure, cleared on success.
    """

    def __init__(
        self,
        fetch: Callable[[DateRange], Awaitable[Sequence[T]]],
        cursor: TimeCursor,
        notifier: Notifier | None = None,
    ) -> None:
        self._fetch = fetch
        self.cursor = cursor
        self._notifier = notifier or LoggingNotifier()
        self._generation = 0
        self._in_flight = 0
        self.events: tuple[T, ...] = ()
        self.loaded_range: DateRange | None = None
        self.requires_profile_update = False
        self.last_error: CalendarError | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    async def load(self) -> bool:
        """Load the cursor's current range.

        Returns:
            True if the snapshot was replaced, False if the load failed or its
            response was discarded as stale.
        """
        self._generation += 1
        generation = self._generation
        target = self.cursor.range
        self._in_flight += 1
        try:
            records = await self._fetch(target)
        except PrerequisiteError as exc:
            if generation != self._generation:
                logger.debug("Discarding stale failure for %s..%s", target.start, target.end)
                return False
            self.requires_profile_update = True
            self.last_error = exc
            self._notifier.error(exc.message)
            return False
        except CalendarError as exc:
            if generation != self._generation:
                logger.debug("Discarding stale failure for %s..%s", target.start, target.end)
                return False
            self.last_error = exc
            self._notifier.error(exc.message)
            return False
        finally:
            self._in_flight -= 1

        if generation != self._generation:
            logger.debug(
                "Discarding stale response for %s..%s (generation %d, current %d)",
                target.start, target.end, generation, self._generation,
            )
            return False

        self.events = tuple(records)
        self.loaded_range = target
        self.requires_profile_update = False
        self.last_error = None
        logger.info(
            "Loaded %d record(s) for %s..%s", len(self.events), target.start, target.end
        )
        return True

    async def reload(self) -> bool:
        return await self.load()

    async def previous(self) -> bool:
        self.cursor.previous()
        return await self.load()

    async def next(self) -> bool:
        self.cursor.next()
        return await self.load()

    async def today(self) -> bool:
        self.cursor.today()
        return await self.load()

    async def go_to(self, pivot: date) -> bool:
        self.cursor.go_to(pivot)
        return await self.load()

    async def set_granularity(self, granularity: Granularity) -> bool:
        self.cursor.set_granularity(granularity)
        return await self.load()
