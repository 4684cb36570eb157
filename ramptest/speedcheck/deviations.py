"""Voltage forecasts, deviation grid and machine speed bands."""
import math
from enum import Enum
from typing import List, Sequence

from ..config import DEFAULT_SPEED_CHECK, MachineParams, SpeedCheckConfig
from ..data.types import BandVoltages, DeviationEntry
from ..errors import DegenerateRegressionError, InvalidInputError


class DeviationCategory(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    ERROR = "error"


class SpeedBand(str, Enum):
    BELOW = "below"  # slower than the lower limit
    LOWER = "lower"  # lower <= v < middle
    MIDDLE = "middle"  # middle <= v <= upper
    ABOVE = "above"  # faster than the upper limit


def get_manual_slope(calculated_slope: float, manual_slope_factor: float) -> float:
    return calculated_slope * manual_slope_factor


def clamp_slope_factor(factor: float, config: SpeedCheckConfig = DEFAULT_SPEED_CHECK) -> float:
    """Clamp a slope factor into the configured [min, max] range (caller-side helper)."""
    return min(max(factor, config.slope_factor_min), config.slope_factor_max)


def slope_factor_for_slope(target_slope: float, calculated_slope: float) -> float:
    """Factor that turns calculated_slope into target_slope (direct slope entry)."""
    if calculated_slope == 0:
        raise DegenerateRegressionError("Calculated slope is zero; no factor reaches the target slope")
    return target_slope / calculated_slope


def forecast_voltage_for_speed(target_speed: float, manual_slope: float) -> float:
    """Voltage needed for target_speed on a line through the origin with manual_slope.

    Raises:
        DegenerateRegressionError: If manual_slope is zero.
    """
    if manual_slope == 0:
        raise DegenerateRegressionError("Manual slope is zero; voltage cannot be forecast")
    return target_speed / manual_slope


def calculate_deviations(
    manual_slope: float,
    target_speeds: Sequence[float] = DEFAULT_SPEED_CHECK.target_speeds,
) -> List[DeviationEntry]:
    """Deviation between requested and achievable speed for each target speed.

    The zero target is reported as all zeros. actual_speed equals the target
    for a linear model; it is kept so a non-linear model can slot in.
    """
    deviations: List[DeviationEntry] = []
    for target in target_speeds:
        if target == 0:
            deviations.append(DeviationEntry(0.0, 0.0, 0.0, 0.0))
            continue
        forecasted = forecast_voltage_for_speed(target, manual_slope)
        actual = manual_slope * forecasted
        deviation = (actual / target - 1.0) * 100.0
        deviations.append(DeviationEntry(float(target), forecasted, actual, deviation))
    return deviations


def deviation_category(deviation_percent: float, config: SpeedCheckConfig = DEFAULT_SPEED_CHECK) -> DeviationCategory:
    """good (<= 2 %), warning (<= 5 %) or error, by absolute deviation."""
    d = abs(deviation_percent)
    if d <= config.deviation_good_pct:
        return DeviationCategory.GOOD
    if d <= config.deviation_warning_pct:
        return DeviationCategory.WARNING
    return DeviationCategory.ERROR


def classify_speed(speed: float, params: MachineParams) -> SpeedBand:
    if speed < params.lower:
        return SpeedBand.BELOW
    if speed < params.middle:
        return SpeedBand.LOWER
    if speed <= params.upper:
        return SpeedBand.MIDDLE
    return SpeedBand.ABOVE


def band_voltages(manual_slope: float, params: MachineParams) -> BandVoltages:
    """Forecast voltage at each of the machine's speed limits."""
    return BandVoltages(
        lower=forecast_voltage_for_speed(params.lower, manual_slope),
        middle=forecast_voltage_for_speed(params.middle, manual_slope),
        upper=forecast_voltage_for_speed(params.upper, manual_slope),
    )


def check_slope_factor(factor: float) -> float:
    factor = float(factor)
    if not math.isfinite(factor):
        raise InvalidInputError(f"Manual slope factor must be finite, got {factor}")
    return factor
