"""Health Portal calendar engine — entry point and factory.

Usage:
    async with engine_session(SessionContext(user_id, token)) as engine:
        await engine.cycle_dialogs.open_day(date.today())
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator, Callable

import httpx

from src.config import get_settings
from src.scheduling.agenda import AgendaMachine
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.cycle_commands import CycleCommands
from src.scheduling.dialogs import CycleDialogMachine
from src.scheduling.gateway import EventStoreGateway
from src.scheduling.notifications import LoggingNotifier, Notifier
from src.scheduling.session import CredentialSource
from src.scheduling.time_cursor import Granularity, RangeLoader, TimeCursor

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("portal")


# ---------- Engine ----------

@dataclass
class CalendarEngine:
    """Everything the presentation layer talks to, wired together."""

    gateway: EventStoreGateway
    cycle_loader: RangeLoader
    cycle_commands: CycleCommands
    cycle_dialogs: CycleDialogMachine
    agenda_loader: RangeLoader
    agenda: AgendaMachine


def create_engine(
    session: CredentialSource,
    http_client: httpx.AsyncClient | None = None,
    notifier: Notifier | None = None,
    config: CalendarConfig | None = None,
    clock: Callable[[], date] = date.today,
) -> CalendarEngine:
    """Wire gateway, loaders and state machines for one user session."""
    settings = get_settings()
    config = config or get_calendar_config()
    notifier = notifier or LoggingNotifier()

    gateway = EventStoreGateway(
        session, base_url=settings.event_store_url, http_client=http_client
    )
    cycle_loader = RangeLoader(
        gateway.calendar_events_in,
        TimeCursor(granularity=Granularity(settings.cycle_granularity), clock=clock),
        notifier,
    )
    commands = CycleCommands(gateway, config)
    agenda_loader = RangeLoader(
        gateway.schedule_events_in,
        TimeCursor(granularity=Granularity(settings.agenda_granularity), clock=clock),
        notifier,
    )
    return CalendarEngine(
        gateway=gateway,
        cycle_loader=cycle_loader,
        cycle_commands=commands,
        cycle_dialogs=CycleDialogMachine(cycle_loader, commands, gateway, notifier, config),
        agenda_loader=agenda_loader,
        agenda=AgendaMachine(agenda_loader, gateway, notifier, config),
    )


@asynccontextmanager
async def engine_session(
    session: CredentialSource,
    notifier: Notifier | None = None,
) -> AsyncGenerator[CalendarEngine, None]:
    """Open a shared HTTP client, build the engine and load the initial views."""
    settings = get_settings()
    logger.info(
        "Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment
    )
    async with httpx.AsyncClient(timeout=None) as client:
        engine = create_engine(session, http_client=client, notifier=notifier)
        await engine.cycle_loader.load()
        await engine.agenda.load_palette()
        await engine.agenda_loader.load()
        yield engine
    logger.info("%s shut down", settings.app_name)
