"""Pydantic models for the cycle tracker: calendar events, event details,
detail-type catalog, and the period start/end payloads."""

from __future__ import annotations

from datetime import date
from enum import IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
    model_validator,
)

from src.models.base import PortalBase, to_calendar_date


# ---------- Enums ----------

class EventType(IntEnum):
    """Event typology ids as stored by the event store."""

    MENSES = 20
    TEMPERATURE = 21
    WEIGHT = 22
    SYMPTOMS = 23
    DRUGS = 24
    MOODS = 25
    OVULATION = 26
    FERTILITY = 27
    MENSES_EXPECTATION = 28
    PREGNANCY = 29


INTENSITY_EVENT_TYPES = frozenset({EventType.SYMPTOMS, EventType.MOODS})
PRESENCE_EVENT_TYPES = frozenset({EventType.DRUGS})
DETAIL_EVENT_TYPES = INTENSITY_EVENT_TYPES | PRESENCE_EVENT_TYPES
MEASUREMENT_EVENT_TYPES = frozenset({EventType.WEIGHT, EventType.TEMPERATURE})

# Highest detail value the store accepts.
MAX_INTENSITY = 3


def _coerce_event_type(value: Any) -> Any:
    # typeId comes back as a string from some store queries
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


# ---------- Details ----------

class EventDetail(PortalBase):
    """One selected symptom, drug, or mood on an event.

    ``value`` is the intensity (1–3) for symptoms and moods and a presence
    marker (1) for drugs.  ``selected=False`` asks the store to remove it.
    """

    detail_type_id: int = Field(ge=1)
    value: int | None = Field(default=1, ge=0, le=MAX_INTENSITY)
    selected: bool = True
    label: str | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _flatten_detail_type(cls, data: Any) -> Any:
        # Stored details come back as {id, value, detailType: {id, label}}
        if isinstance(data, dict) and "detailType" in data:
            nested = data.get("detailType") or {}
            data = {k: v for k, v in data.items() if k not in ("detailType", "id")}
            data.setdefault("detailTypeId", nested.get("id"))
            data.setdefault("label", nested.get("label"))
        if isinstance(data, dict) and data.get("value") is None:
            data = {**data, "value": 1}
        return data


class EventDetailType(PortalBase):
    """A catalog entry (e.g. 'Headache') selectable for an event type."""

    id: int
    label: str
    event_type_id: EventType | None = None

    @field_validator("event_type_id", mode="before")
    @classmethod
    def _type_from_wire(cls, value: Any) -> Any:
        return _coerce_event_type(value)


class DetailTypesResponse(PortalBase):
    detail_types: list[EventDetailType] = Field(default_factory=list)


# ---------- Calendar events ----------

class _CalendarEventBase(PortalBase):
    type_id: EventType
    beginning: date
    ending: date | None = None
    value: float | None = None
    details: list[EventDetail] = Field(default_factory=list)
    trimester: int | None = Field(default=None, ge=1, le=3)

    @field_validator("type_id", mode="before")
    @classmethod
    def _type_from_wire(cls, value: Any) -> Any:
        return _coerce_event_type(value)

    @field_validator("beginning", "ending", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        return to_calendar_date(value)

    @property
    def last_day(self) -> date:
        """Last covered day; an event without ``ending`` covers one day."""
        return self.ending or self.beginning

    @property
    def is_open_period(self) -> bool:
        return self.type_id is EventType.MENSES and self.ending is None

    def applies_on(self, day: date) -> bool:
        return self.beginning <= day <= self.last_day


class ConcreteEvent(_CalendarEventBase):
    """A user-entered, authoritative event.  The only kind that may be mutated."""

    id: int | None = None
    calculated: Literal[False] = False

    @property
    def is_draft(self) -> bool:
        return self.id is None


class DerivedEvent(_CalendarEventBase):
    """A server-derived projection (ovulation, fertility window, expected
    period).  Read-only: edits produce a new ConcreteEvent override."""

    id: str | None = None
    calculated: Literal[True] = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        return None if value is None else str(value)


def _event_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "derived" if value.get("calculated") else "concrete"
    return "derived" if getattr(value, "calculated", False) else "concrete"


CalendarEvent = Annotated[
    Union[
        Annotated[ConcreteEvent, Tag("concrete")],
        Annotated[DerivedEvent, Tag("derived")],
    ],
    Discriminator(_event_kind),
]

_EVENT_LIST = TypeAdapter(list[CalendarEvent])


def parse_calendar_events(raw: list[dict]) -> list[ConcreteEvent | DerivedEvent]:
    """Validate a list of wire events into Concrete/Derived variants."""
    return _EVENT_LIST.validate_python(raw)


class CycleProfile(PortalBase):
    """Profile fields the store needs to derive cycle projections."""

    duration_period: int | None = None
    duration_menstruation: int | None = None
    regularity_menstruation: Any = None
    age_first_menstruation: int | None = None


class CalendarEventsResponse(PortalBase):
    events: list[CalendarEvent] = Field(default_factory=list)
    user_profile: CycleProfile | None = None


# ---------- Write payloads ----------

class CalendarEventCreate(PortalBase):
    type_id: EventType
    beginning: date
    ending: date | None = None
    value: float | None = None
    details: list[EventDetail] | None = None


class CalendarEventUpdate(PortalBase):
    """Partial update; only explicitly set fields are sent."""

    beginning: date | None = None
    ending: date | None = None
    value: float | None = None
    details: list[EventDetail] | None = None


class PeriodRequest(PortalBase):
    period_date: date = Field(alias="date")


class EventRef(PortalBase):
    """Minimal event echo returned by write endpoints."""

    id: int
    beginning: date | None = None
    ending: date | None = None
    value: float | None = None
    type_id: EventType | None = None

    @field_validator("beginning", "ending", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        return to_calendar_date(value)

    @field_validator("type_id", mode="before")
    @classmethod
    def _type_from_wire(cls, value: Any) -> Any:
        return _coerce_event_type(value)


class EventWriteResponse(PortalBase):
    message: str = ""
    event: EventRef | None = None


class LastMensesStatus(PortalBase):
    """Open-period status of the current user."""

    has_open_period: bool = False
    open_period_id: int | None = None
    last_menses_date: date | None = None

    @field_validator("last_menses_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        return to_calendar_date(value)
