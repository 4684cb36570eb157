"""Result checks and detection-quality flags for dual-ramp results."""
import math
from typing import Optional

from ..config import DEFAULT_DETECTION, DetectionConfig
from ..data.types import DetectionMethod, DetectionQuality, DualRampResult, Trace
from ..errors import InvalidTraceError
from .segments import segment_r_squared

_CONFIDENCE = {
    DetectionMethod.AUTOMATIC: "high",
    DetectionMethod.TRIANGLE_BASED: "medium",
}


def validate_dual_ramp_result(result: DualRampResult, config: DetectionConfig = DEFAULT_DETECTION) -> None:
    """Raise InvalidTraceError if the result breaks the ramp invariants.

    Checks finite velocities, positive durations, minimum marker distance,
    the non-negative down magnitude and ramp ordering.
    """
    up, down = result.ramp_up, result.ramp_down
    if not (math.isfinite(up.velocity) and math.isfinite(down.velocity)):
        raise InvalidTraceError(f"{result.file_id}: invalid velocity values")
    if up.duration <= 0 or down.duration <= 0:
        raise InvalidTraceError(f"{result.file_id}: ramp duration must be positive for both ramps")
    if up.width < config.min_marker_distance or down.width < config.min_marker_distance:
        raise InvalidTraceError(
            f"{result.file_id}: ramps must span at least {config.min_marker_distance} samples"
        )
    if down.velocity < 0:
        raise InvalidTraceError(f"{result.file_id}: ramp down velocity must be stored as a magnitude")
    if up.end_index >= down.start_index:
        raise InvalidTraceError(f"{result.file_id}: ramp up must end before ramp down starts")


def assess_detection_quality(result: DualRampResult, trace: Optional[Trace] = None) -> DetectionQuality:
    """Confidence and review flag for a detection result.

    Fallback results always require review. When the trace is given, the
    linearity (R^2) of each ramp is included.
    """
    up_r2 = down_r2 = None
    if trace is not None:
        up_r2 = segment_r_squared(trace, result.ramp_up.start_index, result.ramp_up.end_index)
        down_r2 = segment_r_squared(trace, result.ramp_down.start_index, result.ramp_down.end_index)
    return DetectionQuality(
        confidence=_CONFIDENCE.get(result.detection_method, "low"),
        requires_review=result.detection_method == DetectionMethod.FALLBACK,
        ramp_up_width=result.ramp_up.width,
        ramp_down_width=result.ramp_down.width,
        ramp_up_r_squared=up_r2,
        ramp_down_r_squared=down_r2,
    )
