from .load import load_trace, load_trace_from_dict, load_trace_from_samples, load_traces
from .types import (
    DetectionMethod,
    DualRampResult,
    MappedPoint,
    RampSegment,
    RampType,
    Sample,
    SpeedCheckAnalysis,
    Trace,
)

__all__ = [
    "load_trace",
    "load_trace_from_dict",
    "load_trace_from_samples",
    "load_traces",
    "DetectionMethod",
    "DualRampResult",
    "MappedPoint",
    "RampSegment",
    "RampType",
    "Sample",
    "SpeedCheckAnalysis",
    "Trace",
]
