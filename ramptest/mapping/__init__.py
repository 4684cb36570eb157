from .voltage import (
    REFERENCE_POINT,
    available_voltages,
    format_voltage,
    map_to_voltages,
    mapping_statistics,
    pending_files,
    prepare_regression_data,
    sort_for_display,
)

__all__ = [
    "REFERENCE_POINT",
    "available_voltages",
    "format_voltage",
    "map_to_voltages",
    "mapping_statistics",
    "pending_files",
    "prepare_regression_data",
    "sort_for_display",
]
