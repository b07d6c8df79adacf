"""Detail selection inside the details dialog.

Symptoms and moods carry an intensity (1..max); clicking the active level
again clears the detail, clicking another level overwrites it.  Drugs carry
a presence toggle only.  Saving always submits the full set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from src.models.calendar import (
    INTENSITY_EVENT_TYPES,
    PRESENCE_EVENT_TYPES,
    EventDetail,
    EventType,
)

PRESENT = 1


@dataclass(frozen=True)
class DetailSelection:
    """Immutable mapping of detail type id to intensity (or presence marker).

    Every operation returns a new selection.
    """

    event_type: EventType
    max_intensity: int = 3
    _values: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.event_type not in INTENSITY_EVENT_TYPES | PRESENCE_EVENT_TYPES:
            raise ValueError(f"{self.event_type.name} does not carry details")
        object.__setattr__(self, "_values", MappingProxyType(dict(self._values)))

    @classmethod
    def from_details(
        cls,
        event_type: EventType,
        details: Iterable[EventDetail],
        max_intensity: int = 3,
    ) -> DetailSelection:
        values = {
            d.detail_type_id: (d.value or PRESENT)
            for d in details
            if d.selected
        }
        return cls(event_type=event_type, max_intensity=max_intensity, _values=values)

    @property
    def uses_intensity(self) -> bool:
        return self.event_type in INTENSITY_EVENT_TYPES

    @property
    def values(self) -> Mapping[int, int]:
        return self._values

    def intensity(self, detail_type_id: int) -> int | None:
        return self._values.get(detail_type_id)

    def is_selected(self, detail_type_id: int) -> bool:
        return detail_type_id in self._values

    def set_intensity(self, detail_type_id: int, level: int) -> DetailSelection:
        """Select ``level`` for a symptom or mood.

        Clicking the currently active level clears the detail.

        Raises:
            ValueError: For drugs, or a level outside 1..max_intensity.
        """
        if not self.uses_intensity:
            raise ValueError(f"{self.event_type.name} details have no intensity")
        if not 1 <= level <= self.max_intensity:
            raise ValueError(f"Intensity must be between 1 and {self.max_intensity}")
        values = dict(self._values)
        if values.get(detail_type_id) == level:
            del values[detail_type_id]
        else:
            values[detail_type_id] = level
        return self._with(values)

    def toggle_presence(self, detail_type_id: int) -> DetailSelection:
        if self.uses_intensity:
            raise ValueError(f"{self.event_type.name} details require an intensity")
        values = dict(self._values)
        if detail_type_id in values:
            del values[detail_type_id]
        else:
            values[detail_type_id] = PRESENT
        return self._with(values)

    def clear(self) -> DetailSelection:
        return self._with({})

    def to_payload(self, existing: Iterable[EventDetail] = ()) -> list[EventDetail]:
        """Full detail list for saving.

        Every selected detail is sent with ``selected=True``; every detail of
        ``existing`` that is no longer selected is sent with
        ``selected=False`` so the store drops it.
        """
        payload = [
            EventDetail(detail_type_id=type_id, value=value, selected=True)
            for type_id, value in sorted(self._values.items())
        ]
        removed = sorted({
            d.detail_type_id for d in existing
            if d.selected and d.detail_type_id not in self._values
        })
        payload.extend(
            EventDetail(detail_type_id=type_id, value=0, selected=False)
            for type_id in removed
        )
        return payload

    def _with(self, values: dict[int, int]) -> DetailSelection:
        return DetailSelection(
            event_type=self.event_type,
            max_intensity=self.max_intensity,
            _values=values,
        )

    def __len__(self) -> int:
        return len(self._values)
