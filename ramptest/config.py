"""Default configuration for ramp detection, voltage mapping and speed check."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds and sample counts for dual-ramp detection."""

    min_samples: int = 10
    min_marker_distance: int = 5
    # Below this travel (mm) the trace is treated as flat and goes straight to fallback
    min_range_mm: float = 1.0
    upper_fraction: float = 0.8
    lower_fraction: float = 0.2
    # Markers are pushed outward by max(buffer_min_samples, buffer_fraction * n)
    buffer_min_samples: int = 3
    buffer_fraction: float = 0.01
    fallback_up_start: float = 0.1
    fallback_up_end: float = 0.4
    fallback_down_start: float = 0.6
    fallback_down_end: float = 0.9
    smoothing_window: int = 5

    def buffer_samples(self, n: int) -> int:
        return max(self.buffer_min_samples, int(n * self.buffer_fraction))


TARGET_SPEEDS: Tuple[float, ...] = tuple(i * 0.5 for i in range(21))


@dataclass(frozen=True)
class SpeedCheckConfig:
    """Regression range, target speed grid and deviation thresholds."""

    voltage_limit: float = 4.0
    target_speeds: Tuple[float, ...] = TARGET_SPEEDS
    slope_factor_min: float = 0.5
    slope_factor_max: float = 2.0
    slope_factor_default: float = 1.0
    deviation_good_pct: float = 2.0
    deviation_warning_pct: float = 5.0


@dataclass(frozen=True)
class MachineParams:
    """Speed band limits in mm/s for one machine type."""

    lower: float
    middle: float
    upper: float
    category: str = ""


_STATIONARY = MachineParams(lower=3.0, middle=3.5, upper=4.0, category="Stationary")
_MOBILE = MachineParams(lower=1.0, middle=1.5, upper=2.0, category="Mobile")

MACHINE_TYPES: Mapping[str, MachineParams] = MappingProxyType({
    "GAA100": _STATIONARY,
    "GAAS80": _STATIONARY,
    "GAA60": _STATIONARY,
    "AMS60": _MOBILE,
    "AMS100": _MOBILE,
    "AMS200": _MOBILE,
})

# Magnitudes the assignment UI offers; the mapper itself accepts any value
VOLTAGE_SCALE: Tuple[float, ...] = (
    0.1, 0.2, 0.3, 0.4, 0.5, 0.75, 1.0, 1.5, 2.0, 2.5, 3.0, 4.0, 5.0, 7.0, 9.0, 10.0,
)

VOLTAGE_RANGE: Tuple[float, float] = (-10.0, 10.0)


@dataclass(frozen=True)
class Calibration:
    """Three-parameter linear calibration from raw sensor value to mm.

    position_mm = raw * scale - offset, where scale = max_position / (max_voltage - offset).
    """

    offset: float
    max_position: float
    max_voltage: float

    @property
    def scale(self) -> float:
        span = self.max_voltage - self.offset
        if span == 0:
            raise ValueError("Calibration max_voltage must differ from offset")
        return self.max_position / span


@dataclass(frozen=True)
class IngestConfig:
    """Column mapping and default scaling for delimited trace files."""

    delimiter: str = ","
    time_column: int = 0
    position_column: int = 3
    # Used when no Calibration is supplied
    position_multiplier: float = 10.0
    min_columns: int = 4
    max_samples: int = 100_000
    calibration: Optional[Calibration] = None


@dataclass(frozen=True)
class RampTestConfig:
    """Bundle of all defaults, passed through run_analysis."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    speed_check: SpeedCheckConfig = field(default_factory=SpeedCheckConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    machine_types: Mapping[str, MachineParams] = field(default_factory=lambda: MACHINE_TYPES)
    voltage_scale: Tuple[float, ...] = VOLTAGE_SCALE


DEFAULT_DETECTION = DetectionConfig()
DEFAULT_SPEED_CHECK = SpeedCheckConfig()
DEFAULT_INGEST = IngestConfig()
DEFAULT_CONFIG = RampTestConfig()
