"""Menstrual-period invariants, checked before any mutating request.

Invariants:
  - At most one menses event without ``ending`` (the open period) exists.
  - A period cannot start on a date already covered by a menses event.
  - A period can only be ended while one is open, and not before it began.
  - Moving or overriding a period never makes it overlap another one.

An open period covers every date from its beginning onwards.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from src.models.calendar import ConcreteEvent, DerivedEvent, EventType, LastMensesStatus
from src.scheduling.errors import ConflictError, ValidationError

logger = logging.getLogger("portal.scheduling.cycle_guard")


def menses_periods(events: Iterable[ConcreteEvent | DerivedEvent]) -> list[ConcreteEvent]:
    """Concrete menses events, earliest first."""
    periods = [
        e for e in events
        if isinstance(e, ConcreteEvent) and e.type_id is EventType.MENSES
    ]
    return sorted(periods, key=lambda e: e.beginning)


def open_periods(events: Iterable[ConcreteEvent | DerivedEvent]) -> list[ConcreteEvent]:
    return [e for e in menses_periods(events) if e.ending is None]


def _covers(period: ConcreteEvent, day: date) -> bool:
    if period.ending is None:
        return period.beginning <= day
    return period.beginning <= day <= period.ending


def is_in_menses_period(day: date, events: Iterable[ConcreteEvent | DerivedEvent]) -> bool:
    return any(_covers(p, day) for p in menses_periods(events))


def can_start_period(day: date, events: Iterable[ConcreteEvent | DerivedEvent]) -> bool:
    """False if ``day`` falls inside any existing menses range, open or closed."""
    return not is_in_menses_period(day, events)


def can_end_period(
    events: Iterable[ConcreteEvent | DerivedEvent],
    status: LastMensesStatus | None = None,
) -> bool:
    """True only if an open period exists.

    The store's ``hasOpenPeriod`` flag is authoritative when available; the
    loaded events are consulted otherwise.
    """
    if status is not None:
        return status.has_open_period
    return bool(open_periods(events))


def ensure_can_start(
    day: date,
    events: Iterable[ConcreteEvent | DerivedEvent],
    status: LastMensesStatus | None = None,
) -> None:
    """Raise ConflictError unless a period may start on ``day``."""
    events = list(events)
    if not can_start_period(day, events):
        logger.info("Rejected start-period on %s: date is inside a period", day)
        raise ConflictError(f"{day.isoformat()} is already inside a menstrual period")
    if open_periods(events) or (status is not None and status.has_open_period):
        logger.info("Rejected start-period on %s: a period is already open", day)
        raise ConflictError("A menstrual period is already open; end it first")


def ensure_can_end(
    day: date,
    events: Iterable[ConcreteEvent | DerivedEvent],
    status: LastMensesStatus | None = None,
) -> None:
    """Raise ConflictError if no period is open, ValidationError if ``day``
    precedes the open period's beginning."""
    events = list(events)
    if not can_end_period(events, status):
        logger.info("Rejected end-period on %s: no open period", day)
        raise ConflictError("There is no open menstrual period to end")

    beginning = _open_period_beginning(events, status)
    if beginning is not None and day < beginning:
        logger.info("Rejected end-period on %s: period began %s", day, beginning)
        raise ValidationError(
            "date",
            f"The period cannot end before it began ({beginning.isoformat()})",
        )


def _open_period_beginning(
    events: list[ConcreteEvent | DerivedEvent],
    status: LastMensesStatus | None,
) -> date | None:
    candidates = open_periods(events)
    if status is not None and status.open_period_id is not None:
        for period in candidates:
            if period.id == status.open_period_id:
                return period.beginning
    if candidates:
        return candidates[-1].beginning
    return status.last_menses_date if status is not None else None


def _spans_overlap(
    start: date, end: date | None, other_start: date, other_end: date | None
) -> bool:
    # ``None`` ends are open and extend indefinitely.
    return (other_end is None or start <= other_end) and (end is None or other_start <= end)


def ensure_period_span(
    beginning: date,
    ending: date | None,
    events: Iterable[ConcreteEvent | DerivedEvent],
    exclude_id: int | None = None,
) -> None:
    """Raise unless a menses event may span ``beginning``..``ending``.

    ``exclude_id`` names the period being edited, which never conflicts with
    itself.

    Raises:
        ValidationError: ``ending`` precedes ``beginning``.
        ConflictError:   The span overlaps another period, open or closed.
    """
    if ending is not None and ending < beginning:
        raise ValidationError("ending", "The period cannot end before it began")
    for period in menses_periods(events):
        if exclude_id is not None and period.id == exclude_id:
            continue
        if _spans_overlap(beginning, ending, period.beginning, period.ending):
            logger.info(
                "Rejected period span %s..%s: overlaps period %s",
                beginning, ending or "open", period.id,
            )
            raise ConflictError(
                f"The period would overlap the one starting {period.beginning.isoformat()}"
            )
