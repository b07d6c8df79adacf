"""Shared fixtures and factories for calendar engine tests."""

from __future__ import annotations

from datetime import date, datetime
from itertools import count
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.models.calendar import ConcreteEvent, DerivedEvent, EventDetail, EventType
from src.models.schedule import ScheduleEvent
from src.scheduling.config_loader import CalendarConfig, load_calendar_config
from src.scheduling.gateway import EventStoreGateway
from src.scheduling.session import SessionContext

TEST_DATE = date(2024, 3, 1)
BASE_URL = "http://store.test/api"

_ids = count(100)


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


def concrete(
    event_type: EventType,
    beginning: date,
    ending: date | None = None,
    *,
    id: int | None = -1,
    value: float | None = None,
    details: list[EventDetail] | None = None,
    trimester: int | None = None,
) -> ConcreteEvent:
    return ConcreteEvent(
        id=next(_ids) if id == -1 else id,
        type_id=event_type,
        beginning=beginning,
        ending=ending,
        value=value,
        details=details or [],
        trimester=trimester,
    )


def derived(
    event_type: EventType,
    beginning: date,
    ending: date | None = None,
    *,
    trimester: int | None = None,
) -> DerivedEvent:
    return DerivedEvent(
        id=f"calculated-{event_type.name.lower()}-{next(_ids)}",
        type_id=event_type,
        beginning=beginning,
        ending=ending,
        trimester=trimester,
    )


def schedule_event(
    start: datetime,
    end: datetime | None = None,
    *,
    id: int = 1,
    heading: str = "Appointment",
    editable: bool = True,
) -> ScheduleEvent:
    return ScheduleEvent(
        id=id,
        heading=heading,
        event_beginning=start,
        event_ending=end,
        editable=editable,
    )


def json_response(status_code: int, body: dict | None = None) -> httpx.Response:
    request = httpx.Request("GET", BASE_URL)
    return httpx.Response(status_code, json=body if body is not None else {}, request=request)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def calendar_config() -> CalendarConfig:
    """Load the bundled calendar config for tests."""
    return load_calendar_config()


@pytest.fixture
def session() -> SessionContext:
    return SessionContext(user_id="user-1", access_token="secret-token")


@pytest.fixture
def http_client() -> MagicMock:
    """httpx.AsyncClient stand-in; set ``http_client.request.return_value``."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.request = AsyncMock(return_value=json_response(200, {}))
    return client


@pytest.fixture
def gateway(session: SessionContext, http_client: MagicMock) -> EventStoreGateway:
    return EventStoreGateway(session, base_url=BASE_URL, http_client=http_client)


class RecordingNotifier:
    """Notifier that keeps every signal for assertions."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Gateway double with every coroutine method mocked."""
    gw = MagicMock(spec=EventStoreGateway)
    for name in (
        "list_calendar_events",
        "calendar_events_in",
        "create_calendar_event",
        "update_calendar_event",
        "delete_calendar_event",
        "list_detail_types",
        "get_last_menses",
        "start_period",
        "end_period",
        "list_schedule_events",
        "schedule_events_in",
        "get_schedule_event",
        "list_upcoming",
        "list_colors",
        "create_schedule_event",
        "update_schedule_event",
        "move_schedule_event",
        "resize_schedule_event",
        "delete_schedule_event",
    ):
        setattr(gw, name, AsyncMock())
    return gw
