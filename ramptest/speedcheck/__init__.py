from .analyzer import analyze_speed_check, get_machine_params
from .deviations import (
    DeviationCategory,
    SpeedBand,
    band_voltages,
    calculate_deviations,
    clamp_slope_factor,
    classify_speed,
    deviation_category,
    forecast_voltage_for_speed,
    get_manual_slope,
    slope_factor_for_slope,
)
from .regression import calculate_regression_slope, full_range_regression, linear_regression, regression_line

__all__ = [
    "analyze_speed_check",
    "get_machine_params",
    "DeviationCategory",
    "SpeedBand",
    "band_voltages",
    "calculate_deviations",
    "clamp_slope_factor",
    "classify_speed",
    "deviation_category",
    "forecast_voltage_for_speed",
    "get_manual_slope",
    "slope_factor_for_slope",
    "calculate_regression_slope",
    "full_range_regression",
    "linear_regression",
    "regression_line",
]
