"""Tests for the cycle tracker write commands."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from src.models.calendar import (
    CalendarEventCreate,
    CalendarEventUpdate,
    EventDetail,
    EventRef,
    EventType,
    LastMensesStatus,
)
from src.scheduling.config_loader import CalendarConfig
from src.scheduling.cycle_commands import CycleCommands, find_concrete, parse_measurement
from src.scheduling.detail_selection import DetailSelection
from src.scheduling.errors import ConflictError, ValidationError
from src.scheduling.tests.conftest import TEST_DATE, concrete, derived


@pytest.fixture
def commands(mock_gateway: MagicMock, calendar_config: CalendarConfig) -> CycleCommands:
    mock_gateway.create_calendar_event.return_value = EventRef(id=500)
    mock_gateway.update_calendar_event.return_value = EventRef(id=500)
    mock_gateway.start_period.return_value = EventRef(id=12, beginning=TEST_DATE)
    mock_gateway.end_period.return_value = EventRef(id=12, ending=date(2024, 3, 7))
    return CycleCommands(mock_gateway, calendar_config)


class TestParseMeasurement:
    @pytest.mark.parametrize(
        "raw, expected",
        [("36,7", 36.7), ("36.7", 36.7), (" 37 ", 37.0), (36.5, 36.5)],
    )
    def test_accepts_decimal_inputs(self, raw, expected: float, calendar_config: CalendarConfig) -> None:
        assert parse_measurement(EventType.TEMPERATURE, raw, calendar_config) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", "   ", None, "abc", "36..7"])
    def test_rejects_missing_or_malformed(self, raw, calendar_config: CalendarConfig) -> None:
        with pytest.raises(ValidationError) as excinfo:
            parse_measurement(EventType.TEMPERATURE, raw, calendar_config)
        assert excinfo.value.field == "temperature"

    @pytest.mark.parametrize(
        "event_type, raw",
        [
            (EventType.WEIGHT, "19.9"),
            (EventType.WEIGHT, "300.1"),
            (EventType.TEMPERATURE, "34,9"),
            (EventType.TEMPERATURE, "42.5"),
        ],
    )
    def test_rejects_out_of_range(self, event_type, raw, calendar_config: CalendarConfig) -> None:
        with pytest.raises(ValidationError, match="between"):
            parse_measurement(event_type, raw, calendar_config)

    def test_bounds_are_inclusive(self, calendar_config: CalendarConfig) -> None:
        assert parse_measurement(EventType.WEIGHT, "20", calendar_config) == 20.0
        assert parse_measurement(EventType.WEIGHT, "300", calendar_config) == 300.0


class TestPeriods:
    @pytest.mark.asyncio
    async def test_start_period_checks_guard_first(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1))]
        with pytest.raises(ConflictError):
            await commands.start_period(date(2024, 3, 5), events)
        mock_gateway.start_period.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_period_issues_request(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        ref = await commands.start_period(TEST_DATE, [], LastMensesStatus())
        mock_gateway.start_period.assert_awaited_once_with(TEST_DATE)
        assert ref.id == 12

    @pytest.mark.asyncio
    async def test_end_period_without_open_period(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        with pytest.raises(ConflictError):
            await commands.end_period(date(2024, 3, 7), [], LastMensesStatus())
        mock_gateway.end_period.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_end_period(self, commands: CycleCommands, mock_gateway: MagicMock) -> None:
        events = [concrete(EventType.MENSES, TEST_DATE, id=12)]
        status = LastMensesStatus(has_open_period=True, open_period_id=12)
        ref = await commands.end_period(date(2024, 3, 7), events, status)
        mock_gateway.end_period.assert_awaited_once_with(date(2024, 3, 7))
        assert ref.ending == date(2024, 3, 7)


class TestMeasurements:
    @pytest.mark.asyncio
    async def test_creates_when_day_has_none(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        await commands.save_measurement(TEST_DATE, EventType.WEIGHT, "61,5", [])
        payload = mock_gateway.create_calendar_event.await_args.args[0]
        assert payload == CalendarEventCreate(
            type_id=EventType.WEIGHT, beginning=TEST_DATE, value=61.5
        )
        mock_gateway.update_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_updates_existing_record_of_the_day(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        existing = concrete(EventType.WEIGHT, TEST_DATE, value=60.0, id=31)
        other_day = concrete(EventType.WEIGHT, date(2024, 3, 2), value=60.0, id=32)
        await commands.save_measurement(TEST_DATE, EventType.WEIGHT, "61", [other_day, existing])

        event_id, changes = mock_gateway.update_calendar_event.await_args.args
        assert event_id == 31
        assert changes.model_dump(exclude_unset=True) == {"value": 61.0}
        mock_gateway.create_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_value_issues_no_request(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        with pytest.raises(ValidationError):
            await commands.save_measurement(TEST_DATE, EventType.TEMPERATURE, "50", [])
        mock_gateway.create_calendar_event.assert_not_awaited()

    def test_find_concrete_ignores_derived_and_drafts(self) -> None:
        events = [
            derived(EventType.TEMPERATURE, TEST_DATE),
            concrete(EventType.TEMPERATURE, TEST_DATE, id=None),
        ]
        assert find_concrete(events, TEST_DATE, EventType.TEMPERATURE) is None


class TestDetails:
    @pytest.mark.asyncio
    async def test_full_replace_on_existing_event(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        existing = concrete(
            EventType.SYMPTOMS, TEST_DATE, id=40,
            details=[EventDetail(detail_type_id=1, value=2)],
        )
        selection = DetailSelection.from_details(EventType.SYMPTOMS, existing.details)
        selection = selection.set_intensity(1, 2).set_intensity(2, 1)

        await commands.save_details(TEST_DATE, selection, existing)

        event_id, changes = mock_gateway.update_calendar_event.await_args.args
        assert event_id == 40
        assert [(d.detail_type_id, d.value, d.selected) for d in changes.details] == [
            (2, 1, True),
            (1, 0, False),
        ]

    @pytest.mark.asyncio
    async def test_creates_new_details_event(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        selection = DetailSelection(EventType.DRUGS).toggle_presence(5)
        await commands.save_details(TEST_DATE, selection)
        payload = mock_gateway.create_calendar_event.await_args.args[0]
        assert payload.type_id is EventType.DRUGS
        assert [d.detail_type_id for d in payload.details] == [5]

    @pytest.mark.asyncio
    async def test_empty_new_selection_is_validation_error(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        with pytest.raises(ValidationError):
            await commands.save_details(TEST_DATE, DetailSelection(EventType.MOODS))
        mock_gateway.create_calendar_event.assert_not_awaited()


class TestDerivedEvents:
    @pytest.mark.asyncio
    async def test_delete_derived_is_conflict_without_request(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        with pytest.raises(ConflictError):
            await commands.delete_event(derived(EventType.OVULATION, TEST_DATE, TEST_DATE))
        mock_gateway.delete_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_derived_is_conflict_without_request(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        with pytest.raises(ConflictError):
            await commands.update_event(
                derived(EventType.FERTILITY, TEST_DATE, TEST_DATE), CalendarEventUpdate(value=1)
            )
        mock_gateway.update_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_override_creates_concrete_copy(
        self, commands: CycleCommands, mock_gateway: MagicMock
    ) -> None:
        projected = derived(EventType.OVULATION, date(2024, 3, 14), date(2024, 3, 14))
        await commands.override_derived(
            projected, CalendarEventUpdate(beginning=date(2024, 3, 15), ending=date(2024, 3, 15))
        )
        payload = mock_gateway.create_calendar_event.await_args.args[0]
        assert payload.type_id is EventType.OVULATION
        assert payload.beginning == date(2024, 3, 15)
        assert payload.ending == date(2024, 3, 15)

    @pytest.mark.asyncio
    async def test_delete_concrete(self, commands: CycleCommands, mock_gateway: MagicMock) -> None:
        await commands.delete_event(concrete(EventType.WEIGHT, TEST_DATE, id=31, value=60))
        mock_gateway.delete_calendar_event.assert_awaited_once_with(31)


class TestPeriodEdits:
    @pytest.fixture
    def periods(self) -> list:
        return [
            concrete(EventType.MENSES, date(2024, 3, 1), date(2024, 3, 5), id=1),
            concrete(EventType.MENSES, date(2024, 3, 28), date(2024, 4, 1), id=2),
        ]

    @pytest.mark.asyncio
    async def test_moving_into_another_period_is_conflict_without_request(
        self, commands: CycleCommands, mock_gateway: MagicMock, periods: list
    ) -> None:
        with pytest.raises(ConflictError):
            await commands.update_event(
                periods[1], CalendarEventUpdate(beginning=date(2024, 3, 3)), periods
            )
        mock_gateway.update_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ending_before_beginning_is_validation_error(
        self, commands: CycleCommands, mock_gateway: MagicMock, periods: list
    ) -> None:
        with pytest.raises(ValidationError):
            await commands.update_event(
                periods[1], CalendarEventUpdate(ending=date(2024, 3, 20)), periods
            )
        mock_gateway.update_calendar_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_moving_within_free_days_is_sent(
        self, commands: CycleCommands, mock_gateway: MagicMock, periods: list
    ) -> None:
        changes = CalendarEventUpdate(beginning=date(2024, 3, 27))
        await commands.update_event(periods[1], changes, periods)
        mock_gateway.update_calendar_event.assert_awaited_once_with(2, changes)

    @pytest.mark.asyncio
    async def test_value_changes_skip_span_check(
        self, commands: CycleCommands, mock_gateway: MagicMock, periods: list
    ) -> None:
        overlapping = concrete(EventType.MENSES, date(2024, 3, 3), id=3)
        await commands.update_event(overlapping, CalendarEventUpdate(value=2), periods)
        mock_gateway.update_calendar_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_override_into_existing_period_is_conflict(
        self, commands: CycleCommands, mock_gateway: MagicMock, periods: list
    ) -> None:
        projected = derived(EventType.MENSES, date(2024, 3, 4), date(2024, 3, 8))
        with pytest.raises(ConflictError):
            await commands.override_derived(projected, events=periods)
        mock_gateway.create_calendar_event.assert_not_awaited()
