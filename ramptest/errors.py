"""Error taxonomy for ramp detection, mapping and speed-check analysis.

Every error derives from ValueError so callers that treat bad input as a
ValueError keep working.
"""


class RampTestError(ValueError):
    """Base class for all analysis failures."""


class InsufficientDataError(RampTestError):
    """Too few samples or regression points to compute a result."""


class InvalidTraceError(RampTestError):
    """Trace arrays are malformed (non-finite, mismatched, time going backwards)."""


class GeometricDetectionFailure(RampTestError):
    """Threshold scan could not place four ordered ramp markers.

    Raised by the triangle-based detector and absorbed by detect_dual_ramps,
    which switches to the fallback markers.
    """


class ZeroTimeIntervalError(RampTestError):
    """Velocity requested over a segment with no elapsed time."""


class InvalidMarkerAdjustmentError(RampTestError):
    """Manual marker indices are inverted, out of bounds, overlapping or too close."""


class DegenerateRegressionError(RampTestError):
    """Regression or forecast would divide by zero."""


class InvalidInputError(RampTestError):
    """Non-finite or out-of-domain numeric input."""


class UnknownMachineTypeError(RampTestError):
    """Machine type is not in the registry."""

    def __init__(self, machine_type: str, known=()):
        self.machine_type = machine_type
        self.known = tuple(known)
        msg = f"Unknown machine type: {machine_type!r}"
        if self.known:
            msg += f" (known: {', '.join(self.known)})"
        super().__init__(msg)
