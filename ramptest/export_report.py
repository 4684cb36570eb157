"""Export ramp detection, voltage mapping and speed check results to a single JSON report."""
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .analysis_response import build_analysis_response
from .data.types import DualRampResult, MappedPoint, RampSegment, SpeedCheckAnalysis, Trace
from .detect.validity import assess_detection_quality
from .errors import RampTestError
from .mapping.voltage import mapping_statistics, prepare_regression_data, sort_for_display
from .speedcheck.regression import full_range_regression


def _segment(seg: RampSegment) -> Dict[str, Any]:
    return asdict(seg)


def _file_entry(
    result: DualRampResult,
    assignment: Optional[float],
    trace: Optional[Trace],
) -> Dict[str, Any]:
    quality = assess_detection_quality(result, trace)
    entry: Dict[str, Any] = {
        "file_id": result.file_id,
        "detection_method": result.detection_method.value,
        "status": "assigned" if assignment is not None else "pending",
        "assigned_voltage": assignment,
        "ramp_up": _segment(result.ramp_up),
        "ramp_down": _segment(result.ramp_down),
        "quality": asdict(quality),
    }
    if trace is not None:
        entry["time_s"] = trace.time.tolist()
        entry["position_mm"] = trace.position.tolist()
    return entry


def _point(p: MappedPoint) -> Dict[str, Any]:
    # Reference zeros are real values, not missing data
    return {
        "voltage": float(p.voltage),
        "velocity": float(p.velocity),
        "file_id": p.file_id,
        "ramp_type": p.ramp_type.value,
    }


def speed_check_to_dict(analysis: SpeedCheckAnalysis) -> Dict[str, Any]:
    d = asdict(analysis)
    d["deviations"] = [asdict(e) for e in analysis.deviations]
    d["voltage_range"] = list(analysis.voltage_range)
    return d


def _error(exc: Exception) -> Dict[str, str]:
    return {"type": type(exc).__name__, "message": str(exc)}


def full_range_fit(
    mapped_points: Sequence[MappedPoint],
    approval_status: Optional[Mapping[str, bool]] = None,
) -> Dict[str, Any]:
    """Full-scale regression block: {"fit": {...} or None, "error": {...} or None}."""
    try:
        result = full_range_regression(prepare_regression_data(mapped_points, approval_status))
    except RampTestError as exc:
        return {"fit": None, "error": _error(exc)}
    return {
        "fit": {
            "slope": result.slope,
            "intercept": result.intercept,
            "r_squared": result.r_squared,
            "point_count": result.point_count,
            "equation": result.equation,
            "voltage_range": list(result.voltage_range),
        },
        "error": None,
    }


def build_report_payload(
    results: Sequence[DualRampResult],
    assignments: Mapping[str, float],
    mapped_points: Sequence[MappedPoint],
    speed_check: Optional[SpeedCheckAnalysis] = None,
    speed_check_error: Optional[Exception] = None,
    traces: Optional[Mapping[str, Trace]] = None,
    approval_status: Optional[Mapping[str, bool]] = None,
) -> Dict[str, Any]:
    """Build a single dict with per-file ramps, mapped points and the speed check.

    Mapped points are listed by voltage, highest first. statistics.regression
    holds the fit over all measured points (both polarities, approved files
    only when approval_status is given). If traces are given, each file
    entry carries its time and position arrays for plotting.
    """
    traces = traces or {}
    files: List[Dict[str, Any]] = [
        _file_entry(r, assignments.get(r.file_id), traces.get(r.file_id)) for r in results
    ]
    payload: Dict[str, Any] = {
        "files": files,
        "mapped_points": [_point(p) for p in sort_for_display(mapped_points)],
        "statistics": mapping_statistics(
            list(mapped_points), regression=full_range_fit(mapped_points, approval_status)
        ),
        "speed_check": speed_check_to_dict(speed_check) if speed_check is not None else None,
        "speed_check_error": _error(speed_check_error) if speed_check_error is not None else None,
    }
    payload["analysis"] = build_analysis_response(payload)
    return payload


def export_report_json(
    payload: Dict[str, Any],
    path: Path,
) -> None:
    """Write the report payload to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
