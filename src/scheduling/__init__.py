"""Health Portal calendar and scheduling engine.

Drives the menstrual-cycle tracker (concrete and server-derived events,
pregnancy trimesters) and the generic personal agenda over the external
Event Store Service.

Core modules:
    errors            — CalendarError taxonomy
    config_loader     — Load/validate/hot-reload calendar_config.yaml
    session           — Credential object handed to the gateway
    gateway           — Typed async client for the event store
    time_cursor       — Pivot/granularity ranges and the last-request-wins loader
    classifier        — Pure day classification (dominant tag + indicators)
    cycle_guard       — Open-period invariants
    cycle_commands    — Cycle tracker writes (periods, measurements, details)
    detail_selection  — Intensity / presence selection with full-replace save
    notifications     — Toast sink protocol
    dialogs           — Day/details dialog state machine
    agenda            — Agenda event dialog, form validation, drag & drop
    grid              — Month cells and hour slots
"""

from src.scheduling.classifier import ClassTag, DayClassification, classify, legend
from src.scheduling.config_loader import CalendarConfig, get_calendar_config
from src.scheduling.cycle_guard import can_end_period, can_start_period
from src.scheduling.errors import (
    CalendarError,
    ConflictError,
    InvalidTransition,
    LoadError,
    MutationError,
    PrerequisiteError,
    ValidationError,
)
from src.scheduling.gateway import EventStoreGateway
from src.scheduling.session import SessionContext
from src.scheduling.time_cursor import DateRange, Granularity, RangeLoader, TimeCursor

__all__ = [
    "CalendarConfig",
    "get_calendar_config",
    "CalendarError",
    "ValidationError",
    "ConflictError",
    "PrerequisiteError",
    "LoadError",
    "MutationError",
    "InvalidTransition",
    "SessionContext",
    "EventStoreGateway",
    "DateRange",
    "Granularity",
    "TimeCursor",
    "RangeLoader",
    "ClassTag",
    "DayClassification",
    "classify",
    "legend",
    "can_start_period",
    "can_end_period",
]
