from .chart import plot_speed_check, plot_trace

__all__ = ["plot_speed_check", "plot_trace"]
