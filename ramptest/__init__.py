from .data import load_trace, load_trace_from_dict, Trace, DualRampResult, DetectionMethod, MappedPoint, RampType
from .detect import detect_dual_ramps, recalculate_dual_velocity
from .mapping import map_to_voltages
from .run_analysis import run_analysis
from .speedcheck import analyze_speed_check

__all__ = [
    "load_trace",
    "load_trace_from_dict",
    "detect_dual_ramps",
    "recalculate_dual_velocity",
    "map_to_voltages",
    "analyze_speed_check",
    "run_analysis",
    "Trace",
    "DualRampResult",
    "DetectionMethod",
    "MappedPoint",
    "RampType",
]
