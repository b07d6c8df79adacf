"""Typed async client for the Event Store Service.

Request shaping and response typing only: no business rules live here.
Every call is a suspension point; nothing else in the engine awaits I/O.

Endpoints used (relative to ``Settings.event_store_url``):

    Cycle tracker
        GET    /calendar/events?start&end
        POST   /calendar/events
        PUT    /calendar/events/{id}
        DELETE /calendar/events/{id}
        GET    /calendar/event-detail-types?eventType
        GET    /calendar/last-menses
        POST   /calendar/start-period
        POST   /calendar/end-period

    Generic agenda
        GET    /schedule/events?start&end
        GET    /schedule/events/{id}
        GET    /schedule/upcoming?days
        POST   /schedule/events
        PUT    /schedule/events/{id}
        PATCH  /schedule/events/{id}/move
        PATCH  /schedule/events/{id}/resize
        DELETE /schedule/events/{id}
        GET    /schedule/colors

Failures are translated into the engine's error taxonomy: reads raise
LoadError, writes raise MutationError, a ``requiresProfileUpdate`` body
raises PrerequisiteError, and invariant rejections raise ConflictError.
No client-side timeout is applied.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from src.config import get_settings
from src.models.base import ErrorBody, PortalBase
from src.models.calendar import (
    CalendarEventCreate,
    CalendarEventsResponse,
    CalendarEventUpdate,
    ConcreteEvent,
    DerivedEvent,
    DetailTypesResponse,
    EventDetailType,
    EventRef,
    EventType,
    EventWriteResponse,
    LastMensesStatus,
    PeriodRequest,
)
from src.models.schedule import (
    ColorsResponse,
    PaletteColor,
    ScheduleEvent,
    ScheduleEventCreate,
    ScheduleEventsResponse,
    ScheduleEventUpdate,
    ScheduleMove,
    ScheduleResize,
)
from src.scheduling.errors import (
    CalendarError,
    ConflictError,
    LoadError,
    MutationError,
    PrerequisiteError,
)
from src.scheduling.session import CredentialSource
from src.scheduling.time_cursor import DateRange

logger = logging.getLogger("portal.scheduling.gateway")

_CONFLICT_STATUSES = (409,)
_PERIOD_CONFLICT_STATUSES = (400, 409)


class EventStoreGateway:
    """Thin typed client over the event store REST API.

    Usage::

        gateway = EventStoreGateway(session)
        response = await gateway.list_calendar_events(date(2024, 3, 1), date(2024, 3, 31))
        for event in response.events:
            ...
    """

    def __init__(
        self,
        session: CredentialSource,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            session:     Credential source from the auth provider.
            base_url:    Event store base URL (``PORTAL_EVENT_STORE_URL``).
            http_client: Optional pre-configured httpx client (for testing
                         or connection reuse).
        """
        self._session = session
        self._base_url = (base_url or get_settings().event_store_url).rstrip("/")
        self._http_client = http_client

    # ------------------------------------------------------------------
    # Cycle tracker
    # ------------------------------------------------------------------

    async def list_calendar_events(self, start: date, end: date) -> CalendarEventsResponse:
        data = await self._request(
            "GET",
            "/calendar/events",
            params={"start": start.isoformat(), "end": end.isoformat()},
            failure=LoadError,
        )
        return self._parse(CalendarEventsResponse, data, LoadError)

    async def calendar_events_in(self, window: DateRange) -> list[ConcreteEvent | DerivedEvent]:
        """Range-loader fetch for the cycle tracker."""
        return list((await self.list_calendar_events(window.start, window.end)).events)

    async def create_calendar_event(self, payload: CalendarEventCreate) -> EventRef:
        # The store answers 400 when a second open period would be created
        conflicts = (
            _PERIOD_CONFLICT_STATUSES
            if payload.type_id is EventType.MENSES and payload.ending is None
            else _CONFLICT_STATUSES
        )
        data = await self._request(
            "POST",
            "/calendar/events",
            json=payload.to_wire(),
            failure=MutationError,
            conflict_statuses=conflicts,
        )
        return self._written_event(data)

    async def update_calendar_event(self, event_id: int, payload: CalendarEventUpdate) -> EventRef:
        data = await self._request(
            "PUT",
            f"/calendar/events/{event_id}",
            json=payload.to_wire(),
            failure=MutationError,
        )
        return self._written_event(data)

    async def delete_calendar_event(self, event_id: int) -> None:
        await self._request("DELETE", f"/calendar/events/{event_id}", failure=MutationError)

    async def list_detail_types(self, event_type: EventType) -> list[EventDetailType]:
        data = await self._request(
            "GET",
            "/calendar/event-detail-types",
            params={"eventType": int(event_type)},
            failure=LoadError,
        )
        return self._parse(DetailTypesResponse, data, LoadError).detail_types

    async def get_last_menses(self) -> LastMensesStatus:
        data = await self._request("GET", "/calendar/last-menses", failure=LoadError)
        return self._parse(LastMensesStatus, data, LoadError)

    async def start_period(self, day: date) -> EventRef:
        data = await self._request(
            "POST",
            "/calendar/start-period",
            json=PeriodRequest(period_date=day).to_wire(),
            failure=MutationError,
            conflict_statuses=_PERIOD_CONFLICT_STATUSES,
        )
        return self._written_event(data)

    async def end_period(self, day: date) -> EventRef:
        data = await self._request(
            "POST",
            "/calendar/end-period",
            json=PeriodRequest(period_date=day).to_wire(),
            failure=MutationError,
            conflict_statuses=_PERIOD_CONFLICT_STATUSES,
        )
        return self._written_event(data)

    # ------------------------------------------------------------------
    # Generic agenda
    # ------------------------------------------------------------------

    async def list_schedule_events(self, start: date, end: date) -> list[ScheduleEvent]:
        data = await self._request(
            "GET",
            "/schedule/events",
            params={"start": start.isoformat(), "end": end.isoformat()},
            failure=LoadError,
        )
        return self._parse(ScheduleEventsResponse, data, LoadError).events

    async def schedule_events_in(self, window: DateRange) -> list[ScheduleEvent]:
        """Range-loader fetch for the agenda."""
        return await self.list_schedule_events(window.start, window.end)

    async def get_schedule_event(self, event_id: int) -> ScheduleEvent:
        data = await self._request("GET", f"/schedule/events/{event_id}", failure=LoadError)
        return self._parse(ScheduleEvent, data.get("event") or {}, LoadError)

    async def list_upcoming(self, days: int = 30) -> list[ScheduleEvent]:
        data = await self._request(
            "GET", "/schedule/upcoming", params={"days": days}, failure=LoadError
        )
        return self._parse(ScheduleEventsResponse, data, LoadError).events

    async def list_colors(self) -> list[PaletteColor]:
        data = await self._request("GET", "/schedule/colors", failure=LoadError)
        return self._parse(ColorsResponse, data, LoadError).colors

    async def create_schedule_event(self, payload: ScheduleEventCreate) -> ScheduleEvent | None:
        data = await self._request(
            "POST", "/schedule/events", json=payload.to_wire(), failure=MutationError
        )
        return self._written_schedule_event(data)

    async def update_schedule_event(
        self, event_id: int, payload: ScheduleEventUpdate
    ) -> ScheduleEvent | None:
        data = await self._request(
            "PUT", f"/schedule/events/{event_id}", json=payload.to_wire(), failure=MutationError
        )
        return self._written_schedule_event(data)

    async def move_schedule_event(
        self, event_id: int, start: datetime, end: datetime
    ) -> ScheduleEvent | None:
        data = await self._request(
            "PATCH",
            f"/schedule/events/{event_id}/move",
            json=ScheduleMove(start=start, end=end).to_wire(),
            failure=MutationError,
        )
        return self._written_schedule_event(data)

    async def resize_schedule_event(self, event_id: int, end: datetime) -> ScheduleEvent | None:
        data = await self._request(
            "PATCH",
            f"/schedule/events/{event_id}/resize",
            json=ScheduleResize(end=end).to_wire(),
            failure=MutationError,
        )
        return self._written_schedule_event(data)

    async def delete_schedule_event(self, event_id: int) -> None:
        await self._request("DELETE", f"/schedule/events/{event_id}", failure=MutationError)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        failure: type[CalendarError],
        params: dict | None = None,
        json: dict | None = None,
        conflict_statuses: tuple[int, ...] = _CONFLICT_STATUSES,
    ) -> dict:
        """Issue an authenticated request and return the decoded JSON body.

        Args:
            method:            HTTP method.
            path:              Path relative to the base URL.
            failure:           Error class raised for transport errors and
                               non-2xx responses (LoadError or MutationError).
            params:            Query parameters.
            json:              Request body.
            conflict_statuses: Statuses reported as ConflictError.

        Raises:
            PrerequisiteError: Body carries ``requiresProfileUpdate``.
            ConflictError:     Status is one of ``conflict_statuses``.
            CalendarError:     ``failure`` for anything else.
        """
        url = f"{self._base_url}{path}"
        headers = self._session.auth_headers()
        logger.debug("%s %s params=%s", method, path, params)

        try:
            if self._http_client:
                response = await self._http_client.request(
                    method, url, params=params, json=json, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await client.request(
                        method, url, params=params, json=json, headers=headers
                    )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise failure(f"Event store unreachable: {exc}") from exc

        body = self._json_or_empty(response)
        if 200 <= response.status_code < 300:
            return body

        error = ErrorBody.model_validate(body) if isinstance(body, dict) else ErrorBody()
        message = error.error or f"Event store returned HTTP {response.status_code}"
        logger.warning("%s %s → HTTP %d: %s", method, path, response.status_code, message)

        if error.requires_profile_update:
            raise PrerequisiteError(message, response.status_code)
        if response.status_code in conflict_statuses:
            raise ConflictError(message, response.status_code)
        raise failure(message, response.status_code)

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _parse(model: type[PortalBase], data: Any, failure: type[CalendarError]) -> Any:
        try:
            return model.model_validate(data)
        except SchemaError as exc:
            logger.warning("Unexpected %s payload: %s", model.__name__, exc)
            raise failure(f"Malformed {model.__name__} response from event store") from exc

    def _written_event(self, data: dict) -> EventRef:
        response = self._parse(EventWriteResponse, data, MutationError)
        if response.event is None:
            raise MutationError("Event store did not return the written event")
        return response.event

    def _written_schedule_event(self, data: dict) -> ScheduleEvent | None:
        event = data.get("event")
        return self._parse(ScheduleEvent, event, MutationError) if event else None
