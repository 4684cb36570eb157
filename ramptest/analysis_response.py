"""Structured analysis response: speed-check values with explanations, deviation rows with categories."""
from typing import Any, Dict, List

from .config import DEFAULT_SPEED_CHECK, MachineParams, SpeedCheckConfig
from .speedcheck.deviations import classify_speed, deviation_category

# Display order for speed check values
VALUE_ORDER: List[str] = [
    "calculated_slope",
    "manual_slope_factor",
    "manual_slope",
    "intercept",
    "r_squared",
    "point_count",
]

VALUE_EXPLANATIONS: Dict[str, str] = {
    "calculated_slope": "Regression slope over the low-voltage range including the origin (mm/s per V).",
    "manual_slope_factor": "Operator gain compensation applied to the calculated slope.",
    "manual_slope": "Calculated slope times manual slope factor (mm/s per V).",
    "intercept": "Regression intercept (mm/s); close to zero for a well-behaved valve.",
    "r_squared": "Coefficient of determination of the regression.",
    "point_count": "Number of points in the regression, origin included.",
}

DETECTION_EXPLANATIONS: Dict[str, str] = {
    "automatic": "Ramps found by slope scanning.",
    "triangle_based": "Ramps found between 20 % and 80 % of the measured travel around the peak.",
    "fallback": "Detection failed; ramps placed at fixed fractions of the trace. Review required.",
    "manual": "Ramp markers placed by the operator.",
}

SPEED_BAND_EXPLANATIONS: Dict[str, str] = {
    "below": "Slower than the machine's lower speed limit.",
    "lower": "Between the lower and middle speed limit.",
    "middle": "Between the middle and upper speed limit.",
    "above": "Faster than the machine's upper speed limit.",
}


def build_deviation_rows(
    deviations: List[Dict[str, Any]],
    machine_params: MachineParams,
    config: SpeedCheckConfig = DEFAULT_SPEED_CHECK,
) -> List[Dict[str, Any]]:
    """Deviation rows annotated with deviation category and speed band of the target speed."""
    rows: List[Dict[str, Any]] = []
    for d in deviations:
        row = dict(d)
        row["category"] = deviation_category(d["deviation_percent"], config).value
        row["speed_band"] = classify_speed(d["target_speed"], machine_params).value
        rows.append(row)
    return rows


def build_analysis_response(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build the structured analysis block: values as key -> { value, explanation }.

    Uses the report payload (files, speed_check). Adds value_order for
    deterministic display order. Unknown keys get an empty explanation.
    """
    analysis: Dict[str, Any] = {
        "values": {},
        "detection": {},
        "deviations": [],
        "value_order": VALUE_ORDER,
    }

    for f in payload.get("files") or []:
        method = f.get("detection_method") or ""
        analysis["detection"][f.get("file_id")] = {
            "value": method,
            "explanation": DETECTION_EXPLANATIONS.get(method, ""),
        }

    speed_check = payload.get("speed_check")
    if not speed_check:
        return analysis

    for k in VALUE_ORDER:
        if k in speed_check:
            analysis["values"][k] = {"value": speed_check[k], "explanation": VALUE_EXPLANATIONS.get(k, "")}

    params = speed_check["machine_params"]
    machine = MachineParams(
        lower=params["lower"],
        middle=params["middle"],
        upper=params["upper"],
        category=params.get("category", ""),
    )
    for row in build_deviation_rows(speed_check.get("deviations") or [], machine):
        row["explanation"] = SPEED_BAND_EXPLANATIONS.get(row["speed_band"], "")
        analysis["deviations"].append(row)
    return analysis
