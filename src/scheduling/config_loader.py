"""Load, validate, and hot-reload the calendar engine configuration.

The config lives in ``calendar_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_calendar_config()`` to
re-read from disk.

Usage::

    from src.scheduling.config_loader import get_calendar_config

    config = get_calendar_config()
    config.grid.hours                      # [6, 7, ..., 22]
    config.measurement("weight").max       # 300.0
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.models.calendar import MAX_INTENSITY

logger = logging.getLogger("portal.scheduling.config")

_CONFIG_PATH = Path(__file__).parent / "calendar_config.yaml"

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class GridConfig:
    """Layout of the month grid and the hour rows of week/day views."""

    day_start_hour: int = 6
    day_end_hour: int = 22
    min_month_rows: int = 5

    @property
    def hours(self) -> list[int]:
        return list(range(self.day_start_hour, self.day_end_hour + 1))


@dataclass
class MeasurementRange:
    """Accepted input range for a single-value measurement."""

    name: str
    min: float
    max: float
    unit: str = ""

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass
class AgendaConfig:
    default_color: str = "ui-event-blue"
    heading_max_length: int = 255
    message_max_length: int = 5000
    upcoming_days: int = 30


@dataclass
class LegendEntry:
    key: str
    label: str
    color: str


@dataclass
class CalendarConfig:
    """Complete, validated calendar engine configuration.

    Attributes:
        version:       Config schema version string.
        grid:          Grid layout settings.
        measurements:  Accepted ranges keyed by measurement name.
        max_intensity: Highest selectable symptom/mood intensity.
        agenda:        Generic agenda settings.
        legend:        Display legend entries, in order.
    """

    version: str
    grid: GridConfig
    measurements: dict[str, MeasurementRange]
    max_intensity: int
    agenda: AgendaConfig
    legend: list[LegendEntry]
    _raw: dict = field(default_factory=dict, repr=False)

    def measurement(self, name: str) -> MeasurementRange:
        """Return the accepted range for ``name`` ('weight' or 'temperature').

        Raises:
            KeyError: If the measurement is not configured.
        """
        return self.measurements[name]

    def legend_entry(self, key: str) -> LegendEntry | None:
        for entry in self.legend:
            if entry.key == key:
                return entry
        return None


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when calendar_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError:     If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Calendar config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> CalendarConfig:
    """Validate the raw YAML dict and construct a CalendarConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any field is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Grid ──
    grid_raw = raw.get("grid") or {}
    try:
        grid = GridConfig(
            day_start_hour=int(grid_raw.get("day_start_hour", 6)),
            day_end_hour=int(grid_raw.get("day_end_hour", 22)),
            min_month_rows=int(grid_raw.get("min_month_rows", 5)),
        )
    except (TypeError, ValueError) as exc:
        errors.append(f"grid values must be integers: {exc}")
        grid = GridConfig()
    if not (0 <= grid.day_start_hour <= grid.day_end_hour <= 23):
        errors.append(
            f"grid hours must satisfy 0 <= start <= end <= 23, "
            f"got {grid.day_start_hour}..{grid.day_end_hour}"
        )
    if not (4 <= grid.min_month_rows <= 6):
        errors.append(f"grid.min_month_rows must be between 4 and 6, got {grid.min_month_rows}")

    # ── Measurements ──
    measurements: dict[str, MeasurementRange] = {}
    for name in ("weight", "temperature"):
        m_raw = (raw.get("measurements") or {}).get(name)
        if not isinstance(m_raw, dict):
            errors.append(f"measurements.{name} is missing or not a mapping")
            continue
        try:
            lo, hi = float(m_raw["min"]), float(m_raw["max"])
        except (KeyError, TypeError, ValueError):
            errors.append(f"measurements.{name} needs numeric 'min' and 'max'")
            continue
        if lo >= hi:
            errors.append(f"measurements.{name}: min {lo} must be below max {hi}")
        measurements[name] = MeasurementRange(
            name=name, min=lo, max=hi, unit=str(m_raw.get("unit", ""))
        )

    # ── Details ──
    max_intensity = (raw.get("details") or {}).get("max_intensity", 3)
    if (
        not isinstance(max_intensity, int)
        or isinstance(max_intensity, bool)
        or not 1 <= max_intensity <= MAX_INTENSITY
    ):
        errors.append(
            f"details.max_intensity must be between 1 and {MAX_INTENSITY}, got {max_intensity!r}"
        )
        max_intensity = MAX_INTENSITY

    # ── Agenda ──
    ag_raw = raw.get("agenda") or {}
    try:
        agenda = AgendaConfig(
            default_color=str(ag_raw.get("default_color", "ui-event-blue")),
            heading_max_length=int(ag_raw.get("heading_max_length", 255)),
            message_max_length=int(ag_raw.get("message_max_length", 5000)),
            upcoming_days=int(ag_raw.get("upcoming_days", 30)),
        )
    except (TypeError, ValueError) as exc:
        errors.append(f"agenda values must be integers: {exc}")
        agenda = AgendaConfig()
    if not (1 <= agenda.upcoming_days <= 365):
        errors.append(f"agenda.upcoming_days must be between 1 and 365, got {agenda.upcoming_days}")

    # ── Legend ──
    legend: list[LegendEntry] = []
    for key, entry in (raw.get("legend") or {}).items():
        if not isinstance(entry, dict):
            errors.append(f"legend.{key} must be a mapping")
            continue
        color = str(entry.get("color", ""))
        if not _HEX_COLOR.match(color):
            errors.append(f"legend.{key}.color must be #rrggbb, got {color!r}")
        legend.append(LegendEntry(key=key, label=str(entry.get("label", key)), color=color))

    if errors:
        raise ConfigValidationError(
            f"calendar_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return CalendarConfig(
        version=version,
        grid=grid,
        measurements=measurements,
        max_intensity=max_intensity,
        agenda=agenda,
        legend=legend,
        _raw=raw,
    )


def load_calendar_config(path: Path | None = None) -> CalendarConfig:
    """Load and validate the calendar config from disk.

    Args:
        path: Override path to YAML.  Uses the bundled file by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded calendar config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: CalendarConfig | None = None
_config_lock = threading.Lock()


def get_calendar_config() -> CalendarConfig:
    """Return the global CalendarConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_calendar_config()
    return _config


def reload_calendar_config(path: Path | None = None) -> CalendarConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails the old config is retained and the error re-raised.
    """
    global _config
    new_config = load_calendar_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded calendar config: %s → %s", old_version, new_config.version)
    return new_config
