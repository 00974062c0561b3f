"""Signal detection on the live price/volume feed."""

from .bounce_detector import BounceDetector, Observation, Signal, SignalKind

__all__ = ['BounceDetector', 'Observation', 'Signal', 'SignalKind']
