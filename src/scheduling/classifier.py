"""Day classifier: map (date, events) to a dominant tag plus indicators.

Pure and deterministic.  No I/O, no hidden state; classifying the same
date against the same events always yields the same result.

Dominant priority, highest first:

    menses > pregnancy trimester > ovulation > fertility > expected period

Symptoms, weight, temperature, drugs and moods are never dominant; they only
appear as secondary indicators.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Sequence

from src.models.calendar import ConcreteEvent, DerivedEvent, EventType
from src.scheduling.config_loader import CalendarConfig, get_calendar_config

AnyEvent = ConcreteEvent | DerivedEvent

# Gestational week at which the second and third trimesters begin.
_SECOND_TRIMESTER_WEEK = 14
_THIRD_TRIMESTER_WEEK = 28


class ClassTag(str, Enum):
    MENSES = "menses"
    PREGNANCY_FIRST_TRIMESTER = "pregnancy_first_trimester"
    PREGNANCY_SECOND_TRIMESTER = "pregnancy_second_trimester"
    PREGNANCY_THIRD_TRIMESTER = "pregnancy_third_trimester"
    OVULATION = "ovulation"
    FERTILITY = "fertility"
    MENSES_EXPECTATION = "menses_expectation"
    SYMPTOMS = "symptoms"
    WEIGHT = "weight"
    TEMPERATURE = "temperature"
    DRUGS = "drugs"
    MOODS = "moods"


DOMINANT_PRIORITY: tuple[ClassTag, ...] = (
    ClassTag.MENSES,
    ClassTag.PREGNANCY_FIRST_TRIMESTER,
    ClassTag.PREGNANCY_SECOND_TRIMESTER,
    ClassTag.PREGNANCY_THIRD_TRIMESTER,
    ClassTag.OVULATION,
    ClassTag.FERTILITY,
    ClassTag.MENSES_EXPECTATION,
)

SECONDARY_TAGS = frozenset({
    ClassTag.SYMPTOMS,
    ClassTag.WEIGHT,
    ClassTag.TEMPERATURE,
    ClassTag.DRUGS,
    ClassTag.MOODS,
})

_TAG_BY_TYPE: dict[EventType, ClassTag] = {
    EventType.MENSES: ClassTag.MENSES,
    EventType.OVULATION: ClassTag.OVULATION,
    EventType.FERTILITY: ClassTag.FERTILITY,
    EventType.MENSES_EXPECTATION: ClassTag.MENSES_EXPECTATION,
    EventType.SYMPTOMS: ClassTag.SYMPTOMS,
    EventType.WEIGHT: ClassTag.WEIGHT,
    EventType.TEMPERATURE: ClassTag.TEMPERATURE,
    EventType.DRUGS: ClassTag.DRUGS,
    EventType.MOODS: ClassTag.MOODS,
}

_TRIMESTER_TAGS = {
    1: ClassTag.PREGNANCY_FIRST_TRIMESTER,
    2: ClassTag.PREGNANCY_SECOND_TRIMESTER,
    3: ClassTag.PREGNANCY_THIRD_TRIMESTER,
}

# Legend key used for every secondary indicator.
SECONDARY_LEGEND_KEY = "event"


@dataclass(frozen=True)
class DayClassification:
    """Classification of one calendar date.

    Attributes:
        dominant:   Highest-priority tag, or None when only secondary tags
                    (or nothing) apply.
        indicators: Every tag present on the date, dominant included.
    """

    dominant: ClassTag | None
    indicators: frozenset[ClassTag]

    @property
    def secondary(self) -> frozenset[ClassTag]:
        return self.indicators - {self.dominant} if self.dominant else self.indicators

    @property
    def is_empty(self) -> bool:
        return not self.indicators


EMPTY = DayClassification(dominant=None, indicators=frozenset())


@dataclass(frozen=True)
class LegendItem:
    key: str
    label: str
    color: str


def trimester_on(event: AnyEvent, day: date) -> int | None:
    """Trimester of a pregnancy event on ``day``.

    An explicit ``trimester`` wins; otherwise it is derived from the
    gestational week ``(day - beginning).days // 7 + 1``.
    """
    if event.type_id is not EventType.PREGNANCY:
        return None
    if event.trimester is not None:
        return event.trimester
    week = (day - event.beginning).days // 7 + 1
    if week >= _THIRD_TRIMESTER_WEEK:
        return 3
    if week >= _SECOND_TRIMESTER_WEEK:
        return 2
    return 1


def events_on(day: date, events: Iterable[AnyEvent]) -> list[AnyEvent]:
    """Events applicable to ``day``, in input order.

    A derived event is dropped when a concrete event of the same type also
    applies on that day.
    """
    applicable = [e for e in events if e.applies_on(day)]
    concrete_types = {e.type_id for e in applicable if not e.calculated}
    return [
        e for e in applicable
        if not e.calculated or e.type_id not in concrete_types
    ]


def _pregnancy_tag(day: date, pregnancies: Sequence[AnyEvent]) -> ClassTag | None:
    if not pregnancies:
        return None
    # Trimesters are exclusive per date: the most recent pregnancy decides.
    current = max(
        pregnancies,
        key=lambda e: (e.beginning, trimester_on(e, day) or 0),
    )
    return _TRIMESTER_TAGS[trimester_on(current, day) or 1]


def classify(day: date, events: Iterable[AnyEvent]) -> DayClassification:
    """Classify ``day`` against ``events``.

    Returns:
        DayClassification with the dominant tag and all present indicators.
    """
    applicable = events_on(day, events)
    if not applicable:
        return EMPTY

    tags: set[ClassTag] = set()
    pregnancies: list[AnyEvent] = []
    for event in applicable:
        if event.type_id is EventType.PREGNANCY:
            pregnancies.append(event)
            continue
        tags.add(_TAG_BY_TYPE[event.type_id])

    trimester_tag = _pregnancy_tag(day, pregnancies)
    if trimester_tag is not None:
        tags.add(trimester_tag)

    dominant = next((tag for tag in DOMINANT_PRIORITY if tag in tags), None)
    return DayClassification(dominant=dominant, indicators=frozenset(tags))


def legend(config: CalendarConfig | None = None) -> list[LegendItem]:
    """Ordered legend entries (key, label, colour) for the presentation layer."""
    config = config or get_calendar_config()
    return [LegendItem(key=e.key, label=e.label, color=e.color) for e in config.legend]


def legend_key(tag: ClassTag) -> str:
    """Legend key under which ``tag`` is displayed."""
    return SECONDARY_LEGEND_KEY if tag in SECONDARY_TAGS else tag.value
