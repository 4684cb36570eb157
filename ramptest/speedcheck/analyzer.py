"""Speed check: regression over the low-voltage range, manual slope, deviation grid."""
import logging
from typing import Any, Iterable, Mapping

from ..config import DEFAULT_SPEED_CHECK, MACHINE_TYPES, MachineParams, SpeedCheckConfig
from ..data.types import SpeedCheckAnalysis
from ..errors import InsufficientDataError, UnknownMachineTypeError
from .deviations import band_voltages, calculate_deviations, check_slope_factor, get_manual_slope
from .regression import as_regression_points, calculate_regression_slope, check_finite, points_in_range

log = logging.getLogger(__name__)


def get_machine_params(
    machine_type: str,
    machine_types: Mapping[str, MachineParams] = MACHINE_TYPES,
) -> MachineParams:
    """Speed limits for machine_type.

    Raises:
        UnknownMachineTypeError: If machine_type is not in the registry.
    """
    try:
        return machine_types[machine_type]
    except KeyError:
        raise UnknownMachineTypeError(machine_type, known=machine_types.keys()) from None


def analyze_speed_check(
    regression_data: Iterable[Any],
    manual_slope_factor: float,
    machine_type: str,
    config: SpeedCheckConfig = DEFAULT_SPEED_CHECK,
    machine_types: Mapping[str, MachineParams] = MACHINE_TYPES,
) -> SpeedCheckAnalysis:
    """Full speed check analysis for one dataset.

    manual_slope_factor is expected in [slope_factor_min, slope_factor_max]
    (0.5..2.0 by default). It is not clamped here; use clamp_slope_factor
    before calling if the value comes from free user input.

    Args:
        regression_data: {voltage, velocity} points (dicts, RegressionPoint,
            MappedPoint or pairs). The origin is added automatically.
        manual_slope_factor: Multiplier applied to the calculated slope.
        machine_type: Key into machine_types.
        config: Voltage limit, target speed grid and thresholds.
        machine_types: Machine registry.

    Returns:
        SpeedCheckAnalysis with slopes, deviation grid and machine limits.

    Raises:
        UnknownMachineTypeError: Machine type not registered (checked first).
        InsufficientDataError: Empty input or no point in 0..voltage_limit.
        InvalidInputError: Non-finite values or slope factor.
        DegenerateRegressionError: Zero voltage variance or zero manual slope.
    """
    machine_params = get_machine_params(machine_type, machine_types)

    points = as_regression_points(regression_data)
    if not points:
        raise InsufficientDataError(
            "At least 1 data point required for speed check analysis (origin will be added automatically)"
        )
    check_finite(points)
    factor = check_slope_factor(manual_slope_factor)
    if not points_in_range(points, config.voltage_limit):
        raise InsufficientDataError(
            f"At least 1 data point required in 0-{config.voltage_limit}V range (origin will be added automatically)"
        )
    if not config.slope_factor_min <= factor <= config.slope_factor_max:
        log.warning(
            "Manual slope factor %.3f outside expected range %.2f-%.2f",
            factor,
            config.slope_factor_min,
            config.slope_factor_max,
        )

    regression = calculate_regression_slope(points, voltage_limit=config.voltage_limit)
    manual_slope = get_manual_slope(regression.slope, factor)
    deviations = calculate_deviations(manual_slope, config.target_speeds)

    return SpeedCheckAnalysis(
        calculated_slope=regression.slope,
        manual_slope_factor=factor,
        manual_slope=manual_slope,
        intercept=regression.intercept,
        point_count=regression.point_count,
        voltage_range=(0.0, float(config.voltage_limit)),
        deviations=tuple(deviations),
        machine_type=machine_type,
        machine_params=machine_params,
        band_voltages=band_voltages(manual_slope, machine_params),
        r_squared=regression.r_squared,
    )
