"""Dialog state machine of the cycle tracker.

States::

    Closed ──open_day──▶ DayDialog(active_input ∈ {none, weight, temperature})
                           │  ▲
               open_details│  │close_details / save / delete
                           ▼  │
                         DetailsDialog(event_type, existing)

Only one dialog is open at a time; it is the machine's single ``state``.
Every successful write reloads the active range through the range loader
and then recomputes the open day dialog from the fresh snapshot.  Deletions
go through a confirmation step (``request_delete`` → ``confirm_delete``).
Every failure reaches the notifier; validation failures also set
``field_error`` on the day dialog and issue no request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Union

from src.models.calendar import (
    DETAIL_EVENT_TYPES,
    ConcreteEvent,
    DerivedEvent,
    EventDetailType,
    EventType,
    LastMensesStatus,
)
from src.scheduling.classifier import DayClassification, classify, events_on
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.cycle_commands import CycleCommands
from src.scheduling.cycle_guard import can_end_period, can_start_period
from src.scheduling.detail_selection import DetailSelection
from src.scheduling.errors import CalendarError, InvalidTransition, ValidationError
from src.scheduling.gateway import EventStoreGateway
from src.scheduling.notifications import LoggingNotifier, Notifier
from src.scheduling.time_cursor import RangeLoader

logger = logging.getLogger("portal.scheduling.dialogs")

AnyEvent = Union[ConcreteEvent, DerivedEvent]

# Deleting these closes the day dialog once the range has reloaded.
_CLOSING_DELETES = frozenset({EventType.MENSES, EventType.PREGNANCY})

_LABELS = {
    EventType.MENSES: "Period",
    EventType.TEMPERATURE: "Temperature",
    EventType.WEIGHT: "Weight",
    EventType.SYMPTOMS: "Symptoms",
    EventType.DRUGS: "Drugs",
    EventType.MOODS: "Moods",
    EventType.OVULATION: "Ovulation",
    EventType.FERTILITY: "Fertile window",
    EventType.MENSES_EXPECTATION: "Expected period",
    EventType.PREGNANCY: "Pregnancy",
}


class ActiveInput(str, Enum):
    NONE = "none"
    WEIGHT = "weight"
    TEMPERATURE = "temperature"


_INPUT_TYPES = {
    ActiveInput.WEIGHT: EventType.WEIGHT,
    ActiveInput.TEMPERATURE: EventType.TEMPERATURE,
}


@dataclass(frozen=True)
class PendingDeletion:
    """A deletion awaiting user confirmation."""

    event: ConcreteEvent
    prompt: str


@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class DayDialog:
    """Day dialog for ``day`` with the day's applicable events."""

    day: date
    events: tuple[AnyEvent, ...]
    classification: DayClassification
    status: LastMensesStatus | None = None
    active_input: ActiveInput = ActiveInput.NONE
    draft: str = ""
    field_error: ValidationError | None = None
    pending_deletion: PendingDeletion | None = None

    def event_of(self, event_type: EventType) -> AnyEvent | None:
        """The day's event of ``event_type``, concrete preferred."""
        matches = [e for e in self.events if e.type_id is event_type]
        concrete = [e for e in matches if isinstance(e, ConcreteEvent)]
        return (concrete or matches or [None])[0]


@dataclass(frozen=True)
class DetailsDialog:
    """Symptoms/drugs/moods selection for ``day``."""

    day: date
    event_type: EventType
    existing: ConcreteEvent | None
    catalog: tuple[EventDetailType, ...]
    selection: DetailSelection
    status: LastMensesStatus | None = None
    pending_deletion: PendingDeletion | None = None


DialogState = Union[Closed, DayDialog, DetailsDialog]

CLOSED = Closed()


class CycleDialogMachine:
    """Drives the day and details dialogs of the cycle tracker.

    Usage::

        machine = CycleDialogMachine(loader, commands, gateway, notifier)
        await machine.open_day(date(2024, 3, 1))
        await machine.start_period()          # reloads, then closes
    """

    def __init__(
        self,
        loader: RangeLoader[AnyEvent],
        commands: CycleCommands,
        gateway: EventStoreGateway,
        notifier: Notifier | None = None,
        config: CalendarConfig | None = None,
    ) -> None:
        self._loader = loader
        self._commands = commands
        self._gateway = gateway
        self._notifier = notifier or LoggingNotifier()
        self._config = config or get_calendar_config()
        self._state: DialogState = CLOSED
        self._busy = False

    @property
    def state(self) -> DialogState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # Day dialog
    # ------------------------------------------------------------------

    async def open_day(self, day: date) -> DayDialog:
        """Open the day dialog for ``day`` (replaces any open dialog)."""
        status: LastMensesStatus | None = None
        try:
            status = await self._commands.last_menses()
        except CalendarError as exc:
            self._notifier.error(exc.message)
        dialog = self._day_dialog(day, status)
        self._transition(dialog)
        return dialog

    def close(self) -> None:
        self._transition(CLOSED)

    def toggle_input(self, kind: ActiveInput) -> DayDialog:
        """Open a weight/temperature input; selecting the open one closes it."""
        dialog = self._require(DayDialog)
        kind = ActiveInput(kind)
        target = ActiveInput.NONE if dialog.active_input is kind else kind
        draft = ""
        if target is not ActiveInput.NONE:
            current = dialog.event_of(_INPUT_TYPES[target])
            if current is not None and current.value is not None:
                draft = f"{current.value:g}"
        updated = replace(dialog, active_input=target, draft=draft, field_error=None)
        self._transition(updated)
        return updated

    def set_draft(self, text: str) -> DayDialog:
        dialog = self._require(DayDialog)
        if dialog.active_input is ActiveInput.NONE:
            raise InvalidTransition("No measurement input is open")
        updated = replace(dialog, draft=text, field_error=None)
        self._state = updated
        return updated

    def can_start_period(self) -> bool:
        dialog = self._require(DayDialog)
        if dialog.status is not None and dialog.status.has_open_period:
            return False
        return can_start_period(dialog.day, self._loader.events)

    def can_end_period(self) -> bool:
        dialog = self._require(DayDialog)
        return can_end_period(self._loader.events, dialog.status)

    async def start_period(self) -> bool:
        dialog = self._require(DayDialog)
        return await self._write(
            self._commands.start_period(dialog.day, self._loader.events, dialog.status),
            success="Period started",
            close_after=True,
        )

    async def end_period(self) -> bool:
        dialog = self._require(DayDialog)
        return await self._write(
            self._commands.end_period(dialog.day, self._loader.events, dialog.status),
            success="Period ended",
            close_after=True,
        )

    async def save_measurement(self) -> bool:
        """Save the open weight/temperature input; the dialog stays open."""
        dialog = self._require(DayDialog)
        if dialog.active_input is ActiveInput.NONE:
            raise InvalidTransition("No measurement input is open")
        event_type = _INPUT_TYPES[dialog.active_input]
        return await self._write(
            self._commands.save_measurement(
                dialog.day, event_type, dialog.draft, self._loader.events
            ),
            success=f"{_LABELS[event_type]} saved",
        )

    async def override_derived(self, event: DerivedEvent) -> bool:
        """Turn a calculated event of the open day into a concrete one."""
        self._require(DayDialog)
        return await self._write(
            self._commands.override_derived(event, events=self._loader.events),
            success=f"{_LABELS[event.type_id]} saved",
        )

    # ------------------------------------------------------------------
    # Deletion (both dialogs)
    # ------------------------------------------------------------------

    def request_delete(self, event_type: EventType | None = None) -> PendingDeletion:
        """Ask for confirmation before deleting.

        In the day dialog ``event_type`` selects the day's event (menses,
        pregnancy, weight or temperature); in the details dialog the existing
        details event is targeted.

        Raises:
            InvalidTransition: Nothing deletable is selected.
        """
        state = self._state
        if isinstance(state, DetailsDialog):
            target = state.existing
        elif isinstance(state, DayDialog):
            if event_type is None:
                raise InvalidTransition("Choose which event to delete")
            target = state.event_of(EventType(event_type))
        else:
            raise InvalidTransition("No dialog is open")

        if not isinstance(target, ConcreteEvent) or target.is_draft:
            raise InvalidTransition("There is no saved event to delete")

        pending = PendingDeletion(
            event=target, prompt=f"Remove {_LABELS[target.type_id].lower()}?"
        )
        self._transition(replace(state, pending_deletion=pending))
        return pending

    def cancel_delete(self) -> None:
        state = self._state
        if isinstance(state, (DayDialog, DetailsDialog)) and state.pending_deletion:
            self._transition(replace(state, pending_deletion=None))

    async def confirm_delete(self) -> bool:
        state = self._state
        if not isinstance(state, (DayDialog, DetailsDialog)) or state.pending_deletion is None:
            raise InvalidTransition("No deletion is awaiting confirmation")
        target = state.pending_deletion.event
        self._state = replace(state, pending_deletion=None)
        return await self._write(
            self._commands.delete_event(target),
            success=f"{_LABELS[target.type_id]} removed",
            close_after=target.type_id in _CLOSING_DELETES,
        )

    # ------------------------------------------------------------------
    # Details dialog
    # ------------------------------------------------------------------

    async def open_details(self, event_type: EventType) -> DialogState:
        """Replace the day dialog with the details dialog for ``event_type``.

        A catalog load failure keeps the day dialog open.
        """
        dialog = self._require(DayDialog)
        event_type = EventType(event_type)
        if event_type not in DETAIL_EVENT_TYPES:
            raise InvalidTransition(f"{event_type.name} has no details dialog")

        try:
            catalog = await self._gateway.list_detail_types(event_type)
        except CalendarError as exc:
            self._notifier.error(exc.message)
            return self._state

        if self._state is not dialog:
            # The dialog was closed or replaced while the catalog loaded.
            return self._state

        existing = dialog.event_of(event_type)
        existing = existing if isinstance(existing, ConcreteEvent) else None
        details = DetailsDialog(
            day=dialog.day,
            event_type=event_type,
            existing=existing,
            catalog=tuple(catalog),
            selection=DetailSelection.from_details(
                event_type,
                existing.details if existing else (),
                max_intensity=self._config.max_intensity,
            ),
            status=dialog.status,
        )
        self._transition(details)
        return details

    def set_intensity(self, detail_type_id: int, level: int) -> DetailsDialog:
        dialog = self._require(DetailsDialog)
        updated = replace(dialog, selection=dialog.selection.set_intensity(detail_type_id, level))
        self._state = updated
        return updated

    def toggle_presence(self, detail_type_id: int) -> DetailsDialog:
        dialog = self._require(DetailsDialog)
        updated = replace(dialog, selection=dialog.selection.toggle_presence(detail_type_id))
        self._state = updated
        return updated

    async def save_details(self) -> bool:
        dialog = self._require(DetailsDialog)
        return await self._write(
            self._commands.save_details(dialog.day, dialog.selection, dialog.existing),
            success=f"{_LABELS[dialog.event_type]} saved",
        )

    def close_details(self) -> DayDialog:
        """Return to the day dialog, recomputed from the current snapshot."""
        dialog = self._require(DetailsDialog)
        day = self._day_dialog(dialog.day, dialog.status)
        self._transition(day)
        return day

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _day_dialog(self, day: date, status: LastMensesStatus | None) -> DayDialog:
        snapshot = self._loader.events
        return DayDialog(
            day=day,
            events=tuple(events_on(day, snapshot)),
            classification=classify(day, snapshot),
            status=status,
        )

    def _require(self, kind: type) -> DialogState:
        if self._busy:
            raise InvalidTransition("A request is already in progress")
        if not isinstance(self._state, kind):
            raise InvalidTransition(
                f"{kind.__name__} action invoked while {type(self._state).__name__} is active"
            )
        return self._state

    def _transition(self, new_state: DialogState) -> None:
        logger.debug("%s → %s", type(self._state).__name__, type(new_state).__name__)
        self._state = new_state

    async def _write(self, operation, *, success: str, close_after: bool = False) -> bool:
        """Await a write, then reload and settle the dialog.

        On failure the dialog and its entered data are kept.  A dialog the
        user closed or replaced while the request ran is left as it is.
        """
        origin = self._state
        self._busy = True
        try:
            try:
                await operation
            except ValidationError as exc:
                if isinstance(origin, DayDialog) and self._state is origin:
                    self._state = replace(origin, field_error=exc)
                self._notifier.error(exc.message)
                return False
            except CalendarError as exc:
                self._notifier.error(exc.message)
                return False

            self._notifier.success(success)
            await self._loader.reload()
        finally:
            self._busy = False

        if self._state is not origin:
            logger.debug("Dialog changed during write; keeping %s", type(self._state).__name__)
        elif close_after:
            self._transition(CLOSED)
        elif isinstance(origin, (DayDialog, DetailsDialog)):
            self._transition(self._day_dialog(origin.day, origin.status))
        return True
