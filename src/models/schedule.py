"""Pydantic models for the personal agenda: schedule events, palette colours,
and the move/resize payloads used by drag & drop."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from src.models.base import PortalBase


def _local_naive(value: Any) -> Any:
    """Convert tz-aware timestamps to naive local wall-clock time.

    Slots in the agenda grid are naive local datetimes; the store sends UTC
    with a ``Z`` suffix.
    """
    if isinstance(value, str) and value:
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class ScheduleEvent(PortalBase):
    """An agenda appointment.

    Accepts both the documented field names and the store's list format
    (``title``/``description``/``start``/``end``).
    """

    id: int | None = None
    heading: str = Field(validation_alias=AliasChoices("heading", "title"))
    message: str | None = Field(
        default=None, validation_alias=AliasChoices("message", "description")
    )
    event_beginning: datetime = Field(
        validation_alias=AliasChoices("eventBeginning", "event_beginning", "start")
    )
    event_ending: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("eventEnding", "event_ending", "end"),
    )
    reminder: datetime | None = None
    color: str | None = None
    all_day: bool | None = Field(
        default=None, validation_alias=AliasChoices("allDay", "all_day")
    )
    editable: bool = True

    @field_validator("event_beginning", "event_ending", "reminder", mode="before")
    @classmethod
    def _naive(cls, value: Any) -> Any:
        return _local_naive(value)

    @property
    def is_all_day(self) -> bool:
        """All-day when there is no end, or it spans 00:00 to 23:59."""
        if self.all_day is not None:
            return self.all_day
        if self.event_ending is None:
            return True
        start, end = self.event_beginning, self.event_ending
        return (start.hour, start.minute) == (0, 0) and (end.hour, end.minute) == (23, 59)


class ScheduleEventsResponse(PortalBase):
    events: list[ScheduleEvent] = Field(default_factory=list)


class ScheduleEventCreate(PortalBase):
    heading: str
    message: str | None = None
    event_beginning: datetime
    event_ending: datetime | None = None
    reminder: datetime | None = None
    color: str | None = None


class ScheduleEventUpdate(PortalBase):
    heading: str | None = None
    message: str | None = None
    event_beginning: datetime | None = None
    event_ending: datetime | None = None
    reminder: datetime | None = None
    color: str | None = None


class ScheduleMove(PortalBase):
    start: datetime
    end: datetime


class ScheduleResize(PortalBase):
    end: datetime


class PaletteColor(PortalBase):
    id: str
    label: str = ""
    hex: str = ""


class ColorsResponse(PortalBase):
    colors: list[PaletteColor] = Field(default_factory=list)
