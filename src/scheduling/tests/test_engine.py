"""Tests for engine wiring in src.main."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.main import create_engine, engine_session
from src.scheduling.config_loader import CalendarConfig
from src.scheduling.session import SessionContext
from src.scheduling.tests.conftest import RecordingNotifier, json_response
from src.scheduling.time_cursor import DateRange


class TestCreateEngine:
    def test_loaders_share_clock(
        self, session: SessionContext, http_client: MagicMock, calendar_config: CalendarConfig
    ) -> None:
        engine = create_engine(
            session, http_client=http_client, config=calendar_config,
            clock=lambda: date(2024, 6, 15),
        )
        expected = DateRange(date(2024, 6, 1), date(2024, 6, 30))
        assert engine.cycle_loader.cursor.range == expected
        assert engine.agenda_loader.cursor.range == expected
        assert engine.agenda.loader is engine.agenda_loader

    @pytest.mark.asyncio
    async def test_cycle_loader_reads_through_gateway(
        self, session: SessionContext, http_client: MagicMock, calendar_config: CalendarConfig
    ) -> None:
        http_client.request.return_value = json_response(200, {
            "events": [{"id": 1, "typeId": 20, "beginning": "2024-06-03", "ending": "2024-06-07"}],
        })
        engine = create_engine(
            session, http_client=http_client, config=calendar_config,
            clock=lambda: date(2024, 6, 15),
        )
        assert await engine.cycle_loader.load() is True
        assert engine.cycle_loader.events[0].id == 1

        params = http_client.request.await_args.kwargs["params"]
        assert params == {"start": "2024-06-01", "end": "2024-06-30"}


class TestEngineSession:
    @pytest.mark.asyncio
    async def test_initial_loads(self, session: SessionContext) -> None:
        client = MagicMock()
        client.request = AsyncMock(return_value=json_response(200, {"events": [], "colors": []}))
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=None)
        notifier = RecordingNotifier()

        with patch("src.main.httpx.AsyncClient", return_value=client):
            async with engine_session(session, notifier=notifier) as engine:
                assert engine.cycle_loader.loaded_range is not None
                assert engine.agenda_loader.loaded_range is not None

        assert client.request.await_count == 3
        assert notifier.errors == []
