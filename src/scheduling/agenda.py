"""Generic agenda: event form validation and the event dialog state machine.

States::

    Closed ──open_for_slot / open_event──▶ EventDialog(form, event) ──▶ Closed

Navigation (previous / next / today / granularity) is passed through to the
range loader and never opens or closes the dialog.  Every successful write,
including drag & drop moves and resizes, reloads the active range.  While a
write is in flight further writes raise ``InvalidTransition``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence, Union

from src.models.schedule import (
    PaletteColor,
    ScheduleEvent,
    ScheduleEventCreate,
    ScheduleEventUpdate,
)
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.errors import CalendarError, InvalidTransition, ValidationError
from src.scheduling.gateway import EventStoreGateway
from src.scheduling.notifications import LoggingNotifier, Notifier
from src.scheduling.time_cursor import Granularity, RangeLoader

logger = logging.getLogger("portal.scheduling.agenda")

# New events from a day click start at 09:00 and last an hour.
DEFAULT_START = time(9, 0)
DEFAULT_DURATION = timedelta(hours=1)


def to_store_time(value: datetime | None) -> datetime | None:
    """Naive local wall-clock time → aware UTC for the store."""
    if value is None:
        return None
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class EventForm:
    """Editable fields of the event dialog (naive local datetimes)."""

    heading: str = ""
    message: str = ""
    beginning: datetime | None = None
    ending: datetime | None = None
    reminder: datetime | None = None
    color: str | None = None

    @classmethod
    def from_event(cls, event: ScheduleEvent) -> EventForm:
        return cls(
            heading=event.heading,
            message=event.message or "",
            beginning=event.event_beginning,
            ending=event.event_ending,
            reminder=event.reminder,
            color=event.color,
        )

    @classmethod
    def for_slot(cls, slot: date | datetime, color: str | None) -> EventForm:
        """Blank form for a clicked day (09:00) or hour slot."""
        if isinstance(slot, datetime):
            start = slot
        else:
            start = datetime.combine(slot, DEFAULT_START)
        return cls(beginning=start, ending=start + DEFAULT_DURATION, color=color)


def validate_form(
    form: EventForm,
    config: CalendarConfig | None = None,
    palette: Sequence[PaletteColor] = (),
) -> ScheduleEventCreate:
    """Check the form and build the write payload.

    Raises:
        ValidationError: The first offending field.
    """
    agenda = (config or get_calendar_config()).agenda
    heading = form.heading.strip()
    if not heading:
        raise ValidationError("heading", "A title is required")
    if len(heading) > agenda.heading_max_length:
        raise ValidationError(
            "heading", f"The title cannot exceed {agenda.heading_max_length} characters"
        )

    message = form.message.strip()
    if len(message) > agenda.message_max_length:
        raise ValidationError(
            "message", f"The description cannot exceed {agenda.message_max_length} characters"
        )

    if form.beginning is None:
        raise ValidationError("event_beginning", "A start date is required")
    if form.ending is not None and form.ending < form.beginning:
        raise ValidationError("event_ending", "The end cannot precede the start")
    if form.reminder is not None and form.reminder > form.beginning:
        raise ValidationError("reminder", "The reminder must not be after the start")

    if form.color and palette and form.color not in {c.id for c in palette}:
        raise ValidationError("color", f"Unknown colour {form.color!r}")

    return ScheduleEventCreate(
        heading=heading,
        message=message or None,
        event_beginning=to_store_time(form.beginning),
        event_ending=to_store_time(form.ending),
        reminder=to_store_time(form.reminder),
        color=form.color or None,
    )


@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class EventDialog:
    """Create (``event is None``) or edit dialog for one agenda event."""

    form: EventForm
    event: ScheduleEvent | None = None
    field_error: ValidationError | None = None
    pending_deletion: bool = False

    @property
    def is_editing(self) -> bool:
        return self.event is not None


AgendaState = Union[Closed, EventDialog]

CLOSED = Closed()


class AgendaMachine:
    """Drives the agenda event dialog and drag & drop writes.

    Usage::

        agenda = AgendaMachine(loader, gateway, notifier)
        await agenda.load_palette()
        agenda.open_for_slot(date(2024, 6, 15))
        agenda.update_form(heading="Dentist")
        await agenda.save()
    """

    def __init__(
        self,
        loader: RangeLoader[ScheduleEvent],
        gateway: EventStoreGateway,
        notifier: Notifier | None = None,
        config: CalendarConfig | None = None,
    ) -> None:
        self._loader = loader
        self._gateway = gateway
        self._notifier = notifier or LoggingNotifier()
        self._config = config or get_calendar_config()
        self._state: AgendaState = CLOSED
        self.palette: tuple[PaletteColor, ...] = ()
        self._busy = False

    @property
    def state(self) -> AgendaState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def loader(self) -> RangeLoader[ScheduleEvent]:
        return self._loader

    @property
    def default_color(self) -> str:
        return self.palette[0].id if self.palette else self._config.agenda.default_color

    async def load_palette(self) -> tuple[PaletteColor, ...]:
        """Fetch the colour palette; on failure the default colour is used."""
        try:
            self.palette = tuple(await self._gateway.list_colors())
        except CalendarError as exc:
            self._notifier.error(exc.message)
            self.palette = ()
        return self.palette

    async def upcoming(self, days: int | None = None) -> list[ScheduleEvent]:
        try:
            return await self._gateway.list_upcoming(days or self._config.agenda.upcoming_days)
        except CalendarError as exc:
            self._notifier.error(exc.message)
            return []

    # ── Navigation (never touches the dialog) ──

    async def previous(self) -> bool:
        return await self._loader.previous()

    async def next(self) -> bool:
        return await self._loader.next()

    async def today(self) -> bool:
        return await self._loader.today()

    async def set_granularity(self, granularity: Granularity) -> bool:
        return await self._loader.set_granularity(granularity)

    # ── Dialog ──

    def open_for_slot(self, slot: date | datetime) -> EventDialog:
        dialog = EventDialog(form=EventForm.for_slot(slot, self.default_color))
        self._transition(dialog)
        return dialog

    def open_event(self, event: ScheduleEvent) -> EventDialog:
        """Open ``event`` for editing.

        Raises:
            InvalidTransition: The event is read-only (e.g. a booked examination).
        """
        if not event.editable or event.id is None:
            raise InvalidTransition("This event cannot be edited")
        dialog = EventDialog(form=EventForm.from_event(event), event=event)
        self._transition(dialog)
        return dialog

    async def open_event_by_id(self, event_id: int) -> AgendaState:
        try:
            event = await self._gateway.get_schedule_event(event_id)
        except CalendarError as exc:
            self._notifier.error(exc.message)
            return self._state
        return self.open_event(event)

    def update_form(self, **changes) -> EventDialog:
        dialog = self._require_dialog()
        updated = replace(dialog, form=replace(dialog.form, **changes), field_error=None)
        self._state = updated
        return updated

    def close(self) -> None:
        self._transition(CLOSED)

    async def save(self) -> bool:
        """Validate and create or update; the dialog closes on success."""
        dialog = self._require_dialog()
        try:
            payload = validate_form(dialog.form, self._config, self.palette)
        except ValidationError as exc:
            self._state = replace(dialog, field_error=exc)
            self._notifier.error(exc.message)
            return False

        if dialog.is_editing:
            operation = self._gateway.update_schedule_event(
                dialog.event.id,
                ScheduleEventUpdate(**payload.model_dump(exclude_unset=True)),
            )
            success = "Event updated"
        else:
            operation = self._gateway.create_schedule_event(payload)
            success = "Event created"
        return await self._write(operation, success=success, close_after=True)

    def request_delete(self) -> None:
        dialog = self._require_dialog()
        if not dialog.is_editing:
            raise InvalidTransition("There is no saved event to delete")
        self._transition(replace(dialog, pending_deletion=True))

    def cancel_delete(self) -> None:
        dialog = self._require_dialog()
        self._transition(replace(dialog, pending_deletion=False))

    async def confirm_delete(self) -> bool:
        dialog = self._require_dialog()
        if not dialog.pending_deletion:
            raise InvalidTransition("No deletion is awaiting confirmation")
        self._state = replace(dialog, pending_deletion=False)
        return await self._write(
            self._gateway.delete_schedule_event(dialog.event.id),
            success="Event deleted",
            close_after=True,
        )

    # ── Drag & drop ──

    async def move(self, event: ScheduleEvent, start: datetime, end: datetime | None = None) -> bool:
        """Move ``event`` to ``start``, keeping its duration unless ``end`` is given."""
        self._require_idle()
        if not event.editable or event.id is None:
            self._notifier.error("This event cannot be moved")
            return False
        if end is None:
            duration = (
                event.event_ending - event.event_beginning
                if event.event_ending else DEFAULT_DURATION
            )
            end = start + duration
        if end < start:
            self._notifier.error("The end cannot precede the start")
            return False
        return await self._write(
            self._gateway.move_schedule_event(event.id, to_store_time(start), to_store_time(end)),
            success="Event moved",
        )

    async def resize(self, event: ScheduleEvent, end: datetime) -> bool:
        self._require_idle()
        if not event.editable or event.id is None:
            self._notifier.error("This event cannot be resized")
            return False
        if end < event.event_beginning:
            self._notifier.error("The end cannot precede the start")
            return False
        return await self._write(
            self._gateway.resize_schedule_event(event.id, to_store_time(end)),
            success="Event resized",
        )

    # ── Internal helpers ──

    def _require_idle(self) -> None:
        if self._busy:
            raise InvalidTransition("A request is already in progress")

    def _require_dialog(self) -> EventDialog:
        self._require_idle()
        if not isinstance(self._state, EventDialog):
            raise InvalidTransition("The event dialog is not open")
        return self._state

    def _transition(self, new_state: AgendaState) -> None:
        logger.debug("%s → %s", type(self._state).__name__, type(new_state).__name__)
        self._state = new_state

    async def _write(self, operation, *, success: str, close_after: bool = False) -> bool:
        """Await a write and reload; a dialog changed meanwhile is left open."""
        origin = self._state
        self._busy = True
        try:
            try:
                await operation
            except CalendarError as exc:
                self._notifier.error(exc.message)
                return False
            self._notifier.success(success)
            await self._loader.reload()
        finally:
            self._busy = False
        if close_after and self._state is origin:
            self._transition(CLOSED)
        return True
