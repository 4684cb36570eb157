from .filter import estimate_sample_rate, lowpass_filter, moving_average

__all__ = ["estimate_sample_rate", "lowpass_filter", "moving_average"]
