"""Tests for the open-period invariants."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.models.calendar import EventType, LastMensesStatus
from src.scheduling.cycle_guard import (
    can_end_period,
    can_start_period,
    ensure_can_end,
    ensure_can_start,
    ensure_period_span,
    is_in_menses_period,
    open_periods,
)
from src.scheduling.errors import ConflictError, ValidationError
from src.scheduling.tests.conftest import concrete, derived


def closed_periods() -> list:
    return [
        concrete(EventType.MENSES, date(2024, 1, 3), date(2024, 1, 7)),
        concrete(EventType.MENSES, date(2024, 2, 1), date(2024, 2, 5)),
        concrete(EventType.WEIGHT, date(2024, 1, 20), value=60),
        derived(EventType.MENSES_EXPECTATION, date(2024, 3, 1), date(2024, 3, 5)),
    ]


class TestCanStartPeriod:
    def test_false_inside_every_closed_period_true_elsewhere(self) -> None:
        events = closed_periods()
        inside = {
            date(2024, 1, 3) + timedelta(days=i) for i in range(5)
        } | {
            date(2024, 2, 1) + timedelta(days=i) for i in range(5)
        }
        day = date(2023, 12, 25)
        while day <= date(2024, 3, 10):
            assert can_start_period(day, events) is (day not in inside), day
            day += timedelta(days=1)

    def test_expected_period_does_not_block(self) -> None:
        assert can_start_period(date(2024, 3, 2), closed_periods()) is True

    def test_open_period_covers_following_days(self) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1))]
        assert can_start_period(date(2024, 3, 5), events) is False
        assert is_in_menses_period(date(2024, 3, 1), events) is True
        assert can_start_period(date(2024, 2, 28), events) is True


class TestCanEndPeriod:
    def test_uses_status_flag_when_given(self) -> None:
        assert can_end_period([], LastMensesStatus(has_open_period=True)) is True
        assert can_end_period(
            [concrete(EventType.MENSES, date(2024, 3, 1))],
            LastMensesStatus(has_open_period=False),
        ) is False

    def test_falls_back_to_loaded_events(self) -> None:
        assert can_end_period([concrete(EventType.MENSES, date(2024, 3, 1))]) is True
        assert can_end_period(closed_periods()) is False


class TestEnsure:
    def test_start_inside_period_is_conflict(self) -> None:
        with pytest.raises(ConflictError, match="inside"):
            ensure_can_start(date(2024, 1, 4), closed_periods())

    def test_start_while_open_elsewhere_is_conflict(self) -> None:
        status = LastMensesStatus(has_open_period=True, open_period_id=99)
        with pytest.raises(ConflictError, match="already open"):
            ensure_can_start(date(2024, 3, 20), closed_periods(), status)

    def test_start_allowed(self) -> None:
        ensure_can_start(date(2024, 3, 20), closed_periods(), LastMensesStatus())

    def test_end_without_open_period_is_conflict(self) -> None:
        with pytest.raises(ConflictError):
            ensure_can_end(date(2024, 3, 7), closed_periods(), LastMensesStatus())

    def test_end_before_beginning_is_validation_error(self) -> None:
        period = concrete(EventType.MENSES, date(2024, 3, 1), id=12)
        status = LastMensesStatus(has_open_period=True, open_period_id=12)
        with pytest.raises(ValidationError) as excinfo:
            ensure_can_end(date(2024, 2, 27), [period], status)
        assert excinfo.value.field == "date"

    def test_end_before_beginning_outside_loaded_range(self) -> None:
        status = LastMensesStatus(
            has_open_period=True, open_period_id=12, last_menses_date=date(2024, 3, 1)
        )
        with pytest.raises(ValidationError):
            ensure_can_end(date(2024, 2, 27), [], status)

    def test_end_allowed(self) -> None:
        period = concrete(EventType.MENSES, date(2024, 3, 1), id=12)
        ensure_can_end(date(2024, 3, 7), [period], LastMensesStatus(has_open_period=True, open_period_id=12))


class TestOpenPeriodInvariant:
    def test_at_most_one_open_period_across_a_sequence(self) -> None:
        """Simulate start/end cycles: the guard never lets a second period open."""
        events: list = []
        day = date(2024, 1, 1)
        for cycle in range(6):
            start = day + timedelta(days=28 * cycle)
            ensure_can_start(start, events)
            events.append(concrete(EventType.MENSES, start, id=cycle + 1))
            assert len(open_periods(events)) == 1

            with pytest.raises(ConflictError):
                ensure_can_start(start + timedelta(days=10), events)
            assert len(open_periods(events)) == 1

            ensure_can_end(start + timedelta(days=4), events)
            events[-1] = events[-1].model_copy(update={"ending": start + timedelta(days=4)})
            assert len(open_periods(events)) == 0


class TestPeriodSpan:
    def test_overlap_with_other_period_is_conflict(self) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1), date(2024, 3, 5), id=1)]
        with pytest.raises(ConflictError):
            ensure_period_span(date(2024, 3, 3), date(2024, 3, 8), events)

    def test_open_period_overlaps_everything_after_it(self) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1), id=1)]
        with pytest.raises(ConflictError):
            ensure_period_span(date(2024, 4, 10), date(2024, 4, 14), events)

    def test_open_span_reaching_later_period_is_conflict(self) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1), date(2024, 3, 5), id=1)]
        with pytest.raises(ConflictError):
            ensure_period_span(date(2024, 2, 20), None, events)

    def test_edited_period_is_excluded(self) -> None:
        events = [concrete(EventType.MENSES, date(2024, 3, 1), date(2024, 3, 5), id=1)]
        ensure_period_span(date(2024, 3, 2), date(2024, 3, 6), events, exclude_id=1)

    def test_adjacent_periods_and_other_types_are_allowed(self) -> None:
        ensure_period_span(date(2024, 3, 6), date(2024, 3, 9), closed_periods() + [
            concrete(EventType.MENSES, date(2024, 3, 1), date(2024, 3, 5)),
        ])

    def test_ending_before_beginning_is_validation_error(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_period_span(date(2024, 3, 5), date(2024, 3, 1), [])
        assert exc_info.value.field == "ending"
