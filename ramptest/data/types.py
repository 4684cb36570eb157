"""Typed structures for valve ramp traces and analysis results."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Tuple

import numpy as np

from ..config import MachineParams
from ..errors import InsufficientDataError, InvalidTraceError

MIN_SAMPLES = 10


class Sample(NamedTuple):
    time: float
    position: float


@dataclass(frozen=True, eq=False)
class Trace:
    """Single trial file: slide position (mm) over time (s), already calibrated."""

    file_id: str
    time: np.ndarray
    position: np.ndarray

    def __post_init__(self) -> None:
        t = np.asarray(self.time, dtype=float)
        p = np.asarray(self.position, dtype=float)
        object.__setattr__(self, "time", t)
        object.__setattr__(self, "position", p)
        if t.ndim != 1 or p.ndim != 1 or len(t) != len(p):
            raise InvalidTraceError(
                f"{self.file_id}: time/position length mismatch ({t.shape} vs {p.shape})"
            )
        if len(t) < MIN_SAMPLES:
            raise InsufficientDataError(
                f"{self.file_id}: {len(t)} samples, at least {MIN_SAMPLES} required"
            )
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(p))):
            raise InvalidTraceError(f"{self.file_id}: non-finite time or position values")
        if np.any(np.diff(t) < 0):
            raise InvalidTraceError(f"{self.file_id}: time values must be non-decreasing")

    def __len__(self) -> int:
        return len(self.time)

    @property
    def sample_count(self) -> int:
        return len(self.time)

    def samples(self) -> Iterator[Sample]:
        for t, p in zip(self.time, self.position):
            yield Sample(float(t), float(p))


@dataclass(frozen=True)
class RampSegment:
    """Straight-line section of a trace between two marker indices.

    velocity is signed for the up ramp and a magnitude for the down ramp
    (see DualRampResult).
    """

    start_index: int
    end_index: int
    start_time: float
    end_time: float
    start_position: float
    end_position: float
    velocity: float
    duration: float

    @property
    def width(self) -> int:
        return self.end_index - self.start_index


class DetectionMethod(str, Enum):
    AUTOMATIC = "automatic"
    TRIANGLE_BASED = "triangle_based"
    FALLBACK = "fallback"
    MANUAL = "manual"


@dataclass(frozen=True)
class DualRampResult:
    """Rising and falling ramp for one file.

    ramp_down.velocity is stored as a non-negative magnitude; the sign for
    downward travel is applied when mapping to voltages.
    """

    file_id: str
    ramp_up: RampSegment
    ramp_down: RampSegment
    detection_method: DetectionMethod

    def with_manual_ramps(self, ramp_up: RampSegment, ramp_down: RampSegment) -> "DualRampResult":
        """Return a copy carrying user-adjusted ramps, tagged as manual."""
        return replace(self, ramp_up=ramp_up, ramp_down=ramp_down, detection_method=DetectionMethod.MANUAL)


class RampType(str, Enum):
    UP = "up"
    DOWN = "down"
    REFERENCE = "reference"


@dataclass(frozen=True)
class MappedPoint:
    """Signed voltage / velocity pair. file_id is None for the synthetic reference."""

    voltage: float
    velocity: float
    file_id: Optional[str]
    ramp_type: RampType


@dataclass(frozen=True)
class RegressionPoint:
    voltage: float
    velocity: float


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    point_count: int
    r_squared: float
    voltage_range: Optional[Tuple[float, float]] = None

    @property
    def equation(self) -> str:
        return f"y = {self.slope:.4f}x + {self.intercept:.4f}"


@dataclass(frozen=True)
class DeviationEntry:
    target_speed: float
    forecasted_voltage: float
    actual_speed: float
    deviation_percent: float


@dataclass(frozen=True)
class BandVoltages:
    """Forecast voltage needed to reach each machine speed limit."""

    lower: float
    middle: float
    upper: float


@dataclass(frozen=True)
class SpeedCheckAnalysis:
    calculated_slope: float
    manual_slope_factor: float
    manual_slope: float
    intercept: float
    point_count: int
    voltage_range: Tuple[float, float]
    deviations: Tuple[DeviationEntry, ...]
    machine_type: str
    machine_params: MachineParams
    band_voltages: BandVoltages
    r_squared: float = 0.0


@dataclass(frozen=True)
class DetectionQuality:
    """Confidence summary for a detection result (drives manual review flags)."""

    confidence: str
    requires_review: bool
    ramp_up_width: int
    ramp_down_width: int
    ramp_up_r_squared: Optional[float] = None
    ramp_down_r_squared: Optional[float] = None
