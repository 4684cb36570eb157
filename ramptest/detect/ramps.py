"""Rising and falling ramp detection on a position trace, with fallback and manual recalculation."""
import logging
from typing import Optional, Tuple

import numpy as np

from ..config import DEFAULT_DETECTION, DetectionConfig
from ..data.types import DetectionMethod, DualRampResult, RampSegment, Trace
from ..errors import (
    GeometricDetectionFailure,
    InsufficientDataError,
    InvalidMarkerAdjustmentError,
    ZeroTimeIntervalError,
)
from ..signal.filter import moving_average
from .segments import build_segment

log = logging.getLogger(__name__)

IndexPair = Tuple[int, int]


def _scan_below(position: np.ndarray, start: int, stop: int, step: int, threshold: float) -> Optional[int]:
    """First index from start towards stop (exclusive) whose value is below threshold."""
    for i in range(start, stop, step):
        if position[i] < threshold:
            return i
    return None


def find_triangle_markers(
    position: np.ndarray,
    config: DetectionConfig = DEFAULT_DETECTION,
) -> Tuple[int, int, int, int]:
    """Locate (up_start, up_end, down_start, down_end) around the global maximum.

    Thresholds sit at lower_fraction and upper_fraction of the measured range,
    so the markers adapt to the valve's actual travel. Scanning left of the
    peak gives the up ramp, scanning right gives the down ramp. Markers are
    then pushed outward by the buffer and clamped to the trace.

    Raises:
        GeometricDetectionFailure: If the range is too small, a threshold is
            never crossed, or the buffered markers are not strictly ordered
            with enough samples per ramp.
    """
    n = len(position)
    peak_idx = int(np.argmax(position))
    max_pos = float(position[peak_idx])
    min_pos = float(np.min(position))
    span = max_pos - min_pos
    if span < config.min_range_mm:
        raise GeometricDetectionFailure(f"position range {span:.3f} mm below {config.min_range_mm} mm")

    upper = min_pos + config.upper_fraction * span
    lower = min_pos + config.lower_fraction * span

    up_end = _scan_below(position, peak_idx, -1, -1, upper)
    up_start = _scan_below(position, up_end - 1, -1, -1, lower) if up_end is not None else None
    if up_end is None or up_start is None:
        raise GeometricDetectionFailure("rising ramp thresholds not crossed left of peak")

    down_start = _scan_below(position, peak_idx, n, 1, upper)
    down_end = _scan_below(position, down_start + 1, n, 1, lower) if down_start is not None else None
    if down_start is None or down_end is None:
        raise GeometricDetectionFailure("falling ramp thresholds not crossed right of peak")

    buf = config.buffer_samples(n)
    up_start = max(0, up_start - buf)
    up_end = min(n - 1, up_end + buf)
    down_start = max(0, down_start - buf)
    down_end = min(n - 1, down_end + buf)

    if not (up_start < up_end < down_start < down_end):
        raise GeometricDetectionFailure(
            f"markers out of order: {up_start}, {up_end}, {down_start}, {down_end}"
        )
    min_dist = config.min_marker_distance
    if up_end - up_start < min_dist or down_end - down_start < min_dist:
        raise GeometricDetectionFailure(f"ramp narrower than {min_dist} samples")
    return up_start, up_end, down_start, down_end


def fallback_markers(n: int, config: DetectionConfig = DEFAULT_DETECTION) -> Tuple[int, int, int, int]:
    """Fixed-fraction markers: up ramp at 10-40 %, down ramp at 60-90 % of the trace.

    Each ramp is widened to min_marker_distance and the down ramp is kept
    after the up ramp. When short traces leave no room at those fractions,
    both ramps are packed toward the end so the down ramp ends on the last
    sample.

    Raises:
        InsufficientDataError: If the trace is shorter than two ramps of
            min_marker_distance plus one separating sample.
    """
    min_dist = config.min_marker_distance
    if n < 2 * min_dist + 2:
        raise InsufficientDataError(f"{n} samples too few for two ramps of {min_dist} samples")

    up_start = int(n * config.fallback_up_start)
    up_end = max(int(n * config.fallback_up_end), up_start + min_dist)
    down_start = max(int(n * config.fallback_down_start), up_end + 1)
    down_end = min(max(int(n * config.fallback_down_end), down_start + min_dist), n - 1)
    if down_end - down_start >= min_dist:
        return up_start, up_end, down_start, down_end

    up_start = min(up_start, n - 2 - 2 * min_dist)
    up_end = up_start + min_dist
    return up_start, up_end, up_end + 1, n - 1


def _result_from_markers(
    trace: Trace,
    file_id: str,
    markers: Tuple[int, int, int, int],
    method: DetectionMethod,
) -> DualRampResult:
    up_start, up_end, down_start, down_end = markers
    return DualRampResult(
        file_id=file_id,
        ramp_up=build_segment(trace, up_start, up_end),
        ramp_down=build_segment(trace, down_start, down_end, magnitude=True),
        detection_method=method,
    )


def detect_triangle_based(
    trace: Trace,
    file_id: Optional[str] = None,
    config: DetectionConfig = DEFAULT_DETECTION,
    smoothing_window: Optional[int] = None,
) -> DualRampResult:
    """Threshold-adaptive detection around the position peak.

    Markers are located on the (optionally smoothed) positions; velocities
    always come from the raw trace.

    Raises:
        GeometricDetectionFailure: See find_triangle_markers.
        ZeroTimeIntervalError: If a ramp spans no elapsed time.
    """
    position = trace.position
    if smoothing_window and smoothing_window > 1:
        position = moving_average(position, smoothing_window)
    markers = find_triangle_markers(position, config)
    return _result_from_markers(trace, file_id or trace.file_id, markers, DetectionMethod.TRIANGLE_BASED)


def generate_fallback_result(
    trace: Trace,
    file_id: Optional[str] = None,
    config: DetectionConfig = DEFAULT_DETECTION,
) -> DualRampResult:
    """Fallback result with fixed-fraction markers (detection_method=fallback)."""
    markers = fallback_markers(trace.sample_count, config)
    return _result_from_markers(trace, file_id or trace.file_id, markers, DetectionMethod.FALLBACK)


def detect_dual_ramps(
    trace: Trace,
    file_id: Optional[str] = None,
    config: DetectionConfig = DEFAULT_DETECTION,
    smoothing_window: Optional[int] = None,
) -> DualRampResult:
    """Detect the rising and falling ramp of one trace.

    Tries triangle-based detection first and falls back to fixed-fraction
    markers when it fails. The fallback is visible through
    detection_method so callers can flag the file for review.

    Args:
        trace: Calibrated position trace.
        file_id: Identifier for the result (default: trace.file_id).
        config: Detection thresholds.
        smoothing_window: Moving-average window applied before locating
            markers (None or 1 disables smoothing).

    Returns:
        DualRampResult with detection_method triangle_based or fallback.

    Raises:
        InsufficientDataError: If the trace is shorter than config.min_samples
            or too short for the fallback ramps.
        ZeroTimeIntervalError: If even the fallback ramps span no time.
    """
    file_id = file_id or trace.file_id
    n = trace.sample_count
    if n < config.min_samples:
        raise InsufficientDataError(f"Insufficient data points in {file_id}: {n} < {config.min_samples}")

    try:
        result = detect_triangle_based(trace, file_id, config, smoothing_window)
    except (GeometricDetectionFailure, ZeroTimeIntervalError) as exc:
        log.warning("Triangle-based detection failed for %s: %s; using fallback markers", file_id, exc)
        return generate_fallback_result(trace, file_id, config)

    log.debug(
        "%s: up %d-%d (%.4f mm/s), down %d-%d (%.4f mm/s)",
        file_id,
        result.ramp_up.start_index,
        result.ramp_up.end_index,
        result.ramp_up.velocity,
        result.ramp_down.start_index,
        result.ramp_down.end_index,
        result.ramp_down.velocity,
    )
    return result


def _check_pair(name: str, pair: IndexPair, n: int, min_dist: int) -> Tuple[int, int]:
    start, end = int(pair[0]), int(pair[1])
    if start >= end:
        raise InvalidMarkerAdjustmentError(f"{name}: start index {start} must be before end index {end}")
    if start < 0 or end >= n:
        raise InvalidMarkerAdjustmentError(f"{name}: indices {start}-{end} outside trace of {n} samples")
    if end - start < min_dist:
        raise InvalidMarkerAdjustmentError(
            f"{name}: markers {end - start} samples apart, at least {min_dist} required"
        )
    return start, end


def recalculate_dual_velocity(
    trace: Trace,
    ramp_up_indices: IndexPair,
    ramp_down_indices: IndexPair,
    config: DetectionConfig = DEFAULT_DETECTION,
) -> Tuple[RampSegment, RampSegment]:
    """Recompute both ramps for user-placed (start, end) marker pairs.

    Nothing is clamped: invalid pairs are rejected so the caller can keep its
    previous state. Tagging the result as manual is left to the caller
    (DualRampResult.with_manual_ramps).

    Raises:
        InvalidMarkerAdjustmentError: If a pair is inverted, out of bounds,
            narrower than min_marker_distance, the ramps overlap, or a ramp
            spans no elapsed time.
    """
    n = trace.sample_count
    min_dist = config.min_marker_distance
    up_start, up_end = _check_pair("ramp up", ramp_up_indices, n, min_dist)
    down_start, down_end = _check_pair("ramp down", ramp_down_indices, n, min_dist)
    if up_end >= down_start:
        raise InvalidMarkerAdjustmentError(
            f"ramp up ends at {up_end}, not before ramp down start {down_start}"
        )
    try:
        ramp_up = build_segment(trace, up_start, up_end)
        ramp_down = build_segment(trace, down_start, down_end, magnitude=True)
    except ZeroTimeIntervalError as exc:
        raise InvalidMarkerAdjustmentError(str(exc)) from exc
    return ramp_up, ramp_down
