"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def to_calendar_date(value: Any) -> Any:
    """Coerce an ISO date or datetime string to a calendar date.

    The event store serialises dates as full ISO datetimes
    (``2024-03-01T00:00:00.000Z``); cycle events only care about the day.
    Unknown shapes are returned unchanged so Pydantic reports them.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class PortalBase(BaseModel):
    """Base model with shared config for all event-store schemas.

    Python attributes are snake_case; the wire format is camelCase.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialise for a request body: camelCase keys, ISO dates, no unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class ErrorBody(PortalBase):
    """Error payload returned by the event store on non-2xx responses."""

    error: str = ""
    requires_profile_update: bool = False
    details: list[Any] | None = None
