from .ramps import (
    detect_dual_ramps,
    detect_triangle_based,
    fallback_markers,
    find_triangle_markers,
    generate_fallback_result,
    recalculate_dual_velocity,
)
from .segments import build_segment, compute_velocity, segment_r_squared
from .validity import assess_detection_quality, validate_dual_ramp_result

__all__ = [
    "assess_detection_quality",
    "build_segment",
    "compute_velocity",
    "detect_dual_ramps",
    "detect_triangle_based",
    "fallback_markers",
    "find_triangle_markers",
    "generate_fallback_result",
    "recalculate_dual_velocity",
    "segment_r_squared",
    "validate_dual_ramp_result",
]
