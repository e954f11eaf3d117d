from .shutdown import StopSignal, GracefulShutdown

__all__ = ["StopSignal", "GracefulShutdown"]
