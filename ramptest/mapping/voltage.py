"""Map per-file ramp velocities to signed voltages.

Each assigned file contributes a (+U, up velocity) and a (-U, -down velocity)
point; a file assigned 0 V contributes a single reference point instead. One
synthetic (0 V, 0 mm/s) reference point is always appended: it stands for the
physical no-signal baseline, not a measurement.
"""
import logging
import math
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..config import VOLTAGE_SCALE
from ..data.types import DualRampResult, MappedPoint, RampType, RegressionPoint
from ..errors import InvalidInputError

log = logging.getLogger(__name__)

REFERENCE_POINT = MappedPoint(voltage=0.0, velocity=0.0, file_id=None, ramp_type=RampType.REFERENCE)


def map_to_voltages(
    results: Sequence[DualRampResult],
    assignments: Mapping[str, float],
) -> List[MappedPoint]:
    """Expand assigned files into signed voltage/velocity points.

    Unassigned files are skipped; the inputs are not modified. The returned
    order is not part of the contract, use sort_for_display for a stable
    layout.

    Raises:
        InvalidInputError: If an assigned magnitude is negative or not finite.
    """
    snapshot = MappingProxyType(dict(assignments))
    points: List[MappedPoint] = []
    for result in results:
        if result.file_id not in snapshot:
            continue
        magnitude = float(snapshot[result.file_id])
        if not math.isfinite(magnitude) or magnitude < 0:
            raise InvalidInputError(f"{result.file_id}: voltage magnitude must be a finite value >= 0, got {magnitude}")
        if magnitude == 0:
            points.append(MappedPoint(0.0, 0.0, result.file_id, RampType.REFERENCE))
            continue
        points.append(MappedPoint(magnitude, result.ramp_up.velocity, result.file_id, RampType.UP))
        points.append(MappedPoint(-magnitude, -abs(result.ramp_down.velocity), result.file_id, RampType.DOWN))

    unknown = set(snapshot) - {r.file_id for r in results}
    if unknown:
        log.debug("Assignments without detection result ignored: %s", sorted(unknown))

    points.append(REFERENCE_POINT)
    return points


def pending_files(results: Iterable[DualRampResult], assignments: Mapping[str, float]) -> List[str]:
    """File ids that still have no voltage assignment."""
    return [r.file_id for r in results if r.file_id not in assignments]


def sort_for_display(points: Iterable[MappedPoint]) -> List[MappedPoint]:
    """Points ordered by voltage, highest first."""
    return sorted(points, key=lambda p: p.voltage, reverse=True)


def prepare_regression_data(
    points: Iterable[MappedPoint],
    approval_status: Optional[Mapping[str, bool]] = None,
) -> List[RegressionPoint]:
    """Measured points for regression: reference rows dropped, optionally approved files only."""
    out: List[RegressionPoint] = []
    for p in points:
        if p.ramp_type == RampType.REFERENCE:
            continue
        if approval_status is not None and not approval_status.get(p.file_id, False):
            continue
        out.append(RegressionPoint(voltage=p.voltage, velocity=p.velocity))
    return out


def mapping_statistics(
    points: Sequence[MappedPoint],
    regression: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Counts and ranges over mapped points (None if empty), carrying an optional full-range fit."""
    if not points:
        return None
    velocities = [p.velocity for p in points]
    voltages = [p.voltage for p in points]
    return {
        "total_points": len(points),
        "up_ramp_count": sum(1 for p in points if p.ramp_type == RampType.UP),
        "down_ramp_count": sum(1 for p in points if p.ramp_type == RampType.DOWN),
        "reference_count": sum(1 for p in points if p.ramp_type == RampType.REFERENCE),
        "velocity_range": {
            "min": min(velocities),
            "max": max(velocities),
            "average": sum(velocities) / len(velocities),
        },
        "voltage_range": {"min": min(voltages), "max": max(voltages)},
        "regression": regression,
    }


def available_voltages(
    assigned: Iterable[float] = (),
    scale: Sequence[float] = VOLTAGE_SCALE,
) -> List[float]:
    """Scale magnitudes not yet taken by another file."""
    taken: Set[float] = set(assigned)
    return [v for v in scale if v not in taken]


def format_voltage(voltage: float, precision: int = 2) -> str:
    """Signed display form, e.g. '+1.50V', '-0.75V', '0V'."""
    if voltage == 0:
        return "0V"
    return f"{voltage:+.{precision}f}V"
