"""Mutating operations of the cycle tracker.

Each command validates locally, runs the cycle guard where relevant and
only then issues exactly one write through the gateway.  Commands never
touch the loaded snapshot; callers reload after a successful write.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable

from src.models.calendar import (
    DETAIL_EVENT_TYPES,
    MEASUREMENT_EVENT_TYPES,
    CalendarEventCreate,
    CalendarEventUpdate,
    ConcreteEvent,
    DerivedEvent,
    EventRef,
    EventType,
    LastMensesStatus,
)
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.cycle_guard import ensure_can_end, ensure_can_start, ensure_period_span
from src.scheduling.detail_selection import DetailSelection
from src.scheduling.errors import ConflictError, ValidationError
from src.scheduling.gateway import EventStoreGateway

logger = logging.getLogger("portal.scheduling.cycle_commands")

AnyEvent = ConcreteEvent | DerivedEvent

_MEASUREMENT_NAMES = {
    EventType.WEIGHT: "weight",
    EventType.TEMPERATURE: "temperature",
}


def find_concrete(
    events: Iterable[AnyEvent], day: date, event_type: EventType
) -> ConcreteEvent | None:
    """The persisted concrete event of ``event_type`` that begins on ``day``."""
    for event in events:
        if (
            isinstance(event, ConcreteEvent)
            and event.type_id is event_type
            and event.beginning == day
            and not event.is_draft
        ):
            return event
    return None


def parse_measurement(
    event_type: EventType,
    raw: str | float | int | None,
    config: CalendarConfig | None = None,
) -> float:
    """Parse and range-check a weight or temperature input.

    A comma is accepted as decimal separator ("36,7").

    Raises:
        ValidationError: Empty, non-numeric, or out of the configured range.
    """
    name = _MEASUREMENT_NAMES[event_type]
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(name, f"Enter a {name} value")
    try:
        value = float(Decimal(str(raw).strip().replace(",", ".")))
    except (InvalidOperation, ValueError):
        raise ValidationError(name, f"{raw!r} is not a valid {name}") from None

    accepted = (config or get_calendar_config()).measurement(name)
    if not accepted.contains(value):
        raise ValidationError(
            name,
            f"{name.capitalize()} must be between {accepted.min:g} and "
            f"{accepted.max:g} {accepted.unit}".rstrip(),
        )
    return value


class CycleCommands:
    """Write operations for the cycle tracker.

    Usage::

        commands = CycleCommands(gateway)
        status = await commands.last_menses()
        await commands.start_period(date(2024, 3, 1), loader.events, status)
    """

    def __init__(
        self,
        gateway: EventStoreGateway,
        config: CalendarConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config or get_calendar_config()

    async def last_menses(self) -> LastMensesStatus:
        return await self._gateway.get_last_menses()

    # ── Periods ──

    async def start_period(
        self,
        day: date,
        events: Iterable[AnyEvent],
        status: LastMensesStatus | None = None,
    ) -> EventRef:
        ensure_can_start(day, events, status)
        event = await self._gateway.start_period(day)
        logger.info("Started period on %s (event %s)", day, event.id)
        return event

    async def end_period(
        self,
        day: date,
        events: Iterable[AnyEvent],
        status: LastMensesStatus | None = None,
    ) -> EventRef:
        ensure_can_end(day, events, status)
        event = await self._gateway.end_period(day)
        logger.info("Ended period on %s (event %s)", day, event.id)
        return event

    # ── Measurements ──

    async def save_measurement(
        self,
        day: date,
        event_type: EventType,
        raw: str | float | int | None,
        events: Iterable[AnyEvent],
    ) -> EventRef:
        """Create or update the single weight/temperature record of ``day``."""
        if event_type not in MEASUREMENT_EVENT_TYPES:
            raise ValueError(f"{event_type.name} is not a measurement")
        value = parse_measurement(event_type, raw, self._config)

        existing = find_concrete(events, day, event_type)
        if existing is not None:
            return await self._gateway.update_calendar_event(
                existing.id, CalendarEventUpdate(value=value)
            )
        return await self._gateway.create_calendar_event(
            CalendarEventCreate(type_id=event_type, beginning=day, value=value)
        )

    # ── Details ──

    async def save_details(
        self,
        day: date,
        selection: DetailSelection,
        existing: ConcreteEvent | None = None,
    ) -> EventRef:
        """Submit the full detail set of a symptoms/drugs/moods event."""
        if selection.event_type not in DETAIL_EVENT_TYPES:
            raise ValueError(f"{selection.event_type.name} does not carry details")

        if existing is not None and not existing.is_draft:
            details = selection.to_payload(existing.details)
            return await self._gateway.update_calendar_event(
                existing.id, CalendarEventUpdate(details=details)
            )
        if not len(selection):
            raise ValidationError("details", "Select at least one entry")
        return await self._gateway.create_calendar_event(
            CalendarEventCreate(
                type_id=selection.event_type,
                beginning=day,
                details=selection.to_payload(),
            )
        )

    # ── Deletion / overrides ──

    async def delete_event(self, event: AnyEvent) -> None:
        """Delete a concrete event.

        Raises:
            ConflictError:   For derived events; no request is issued.
            ValidationError: For drafts that were never persisted.
        """
        if isinstance(event, DerivedEvent):
            raise ConflictError("Calculated events cannot be deleted")
        if event.is_draft:
            raise ValidationError("id", "The event has not been saved yet")
        await self._gateway.delete_calendar_event(event.id)
        logger.info("Deleted %s event %s", event.type_id.name, event.id)

    async def update_event(
        self,
        event: AnyEvent,
        changes: CalendarEventUpdate,
        events: Iterable[AnyEvent] = (),
    ) -> EventRef:
        """Update a concrete event.

        Moving a menses event is checked against the other periods in
        ``events`` first.
        """
        if isinstance(event, DerivedEvent):
            raise ConflictError("Calculated events cannot be edited; create an override")
        if event.is_draft:
            raise ValidationError("id", "The event has not been saved yet")
        fields = changes.model_dump(exclude_unset=True)
        if event.type_id is EventType.MENSES and ("beginning" in fields or "ending" in fields):
            ensure_period_span(
                fields.get("beginning") or event.beginning,
                fields.get("ending", event.ending),
                events,
                exclude_id=event.id,
            )
        return await self._gateway.update_calendar_event(event.id, changes)

    async def override_derived(
        self,
        event: DerivedEvent,
        changes: CalendarEventUpdate | None = None,
        events: Iterable[AnyEvent] = (),
    ) -> EventRef:
        """Replace a calculated event with a concrete one of the same type and span."""
        if not isinstance(event, DerivedEvent):
            raise ValueError("Only calculated events can be overridden")
        fields = changes.model_dump(exclude_unset=True) if changes else {}
        payload = CalendarEventCreate(
            type_id=event.type_id,
            beginning=fields.get("beginning") or event.beginning,
            ending=fields.get("ending", event.ending),
            value=fields.get("value", event.value),
        )
        if payload.type_id is EventType.MENSES:
            ensure_period_span(payload.beginning, payload.ending, events)
        created = await self._gateway.create_calendar_event(payload)
        logger.info("Overrode calculated %s with event %s", event.id, created.id)
        return created
