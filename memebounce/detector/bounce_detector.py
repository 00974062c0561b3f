"""
Bounce Signal Detector

Maintains a time-bounded window of price/volume observations for a single
instrument and fires a BOUNCE signal when:
- price has rebounded at least `min_bounce_percent` off the recent low
- current volume is at least `volume_threshold` times the recent average

The recent window is the last `recent_window_size` observations (default 10)
of the time-pruned history (default 5 minutes).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from loguru import logger

from config.settings import settings
from memebounce.utils.clock import now_ms
from memebounce.utils.formatting import fmt_fixed


class SignalKind(str, Enum):
    """Kinds of signal the detector can emit."""
    BOUNCE = "BOUNCE"


@dataclass(frozen=True)
class Observation:
    """A single price/volume tick from the live feed."""
    price: float
    volume: float
    timestamp: int


@dataclass(frozen=True)
class Signal:
    """
    A detected bounce off a recent local low.

    Attributes:
        timestamp: Timestamp (ms) of the observation that fired the signal
        price: Price at the firing observation
        low: Lowest price over the recent window
        bounce_percent: Rebound from the low, in percent
        volume_ratio: Current volume / average recent volume
        strength: Integer score in [0, 100]
        kind: Always SignalKind.BOUNCE
    """
    timestamp: int
    price: float
    low: float
    bounce_percent: float
    volume_ratio: float
    strength: int
    kind: SignalKind = SignalKind.BOUNCE

    def to_dict(self) -> dict:
        """Convert signal to the dashboard wire format."""
        return {
            'type': self.kind.value,
            'timestamp': self.timestamp,
            'price': self.price,
            'low': self.low,
            'bouncePercent': fmt_fixed(self.bounce_percent),
            'volumeRatio': fmt_fixed(self.volume_ratio),
            'strength': self.strength,
        }


class BounceDetector:
    """
    Sliding-window bounce detector.

    Every call to add_observation() appends the tick, prunes the window to
    observations newer than `timestamp - time_window_ms`, then evaluates the
    bounce and volume-spike conditions on the most recent observations.
    Fired signals are kept in an append-only log that is only trimmed by an
    explicit clear_old_signals() call.
    """

    def __init__(
        self,
        min_bounce_percent: float = None,
        time_window_ms: int = None,
        volume_threshold: float = None,
        recent_window_size: int = None,
        min_observations: int = None
    ):
        """
        Initialize bounce detector.

        Args:
            min_bounce_percent: Minimum rebound off the low, in percent (default from settings)
            time_window_ms: History retention window in ms (default from settings)
            volume_threshold: Minimum current/average volume ratio (default from settings)
            recent_window_size: Observations used for low and average volume (default from settings)
            min_observations: History required before any signal can fire (default from settings)
        """
        self.min_bounce_percent = min_bounce_percent or settings.MIN_BOUNCE_PERCENT
        self.time_window_ms = time_window_ms or settings.TIME_WINDOW_MS
        self.volume_threshold = volume_threshold or settings.VOLUME_THRESHOLD
        self.recent_window_size = recent_window_size or settings.RECENT_WINDOW_SIZE
        self.min_observations = min_observations or settings.MIN_OBSERVATIONS

        self._history: List[Observation] = []
        self._signals: List[Signal] = []

        logger.info(
            f"BounceDetector initialized: min_bounce={self.min_bounce_percent}%, "
            f"volume_threshold={self.volume_threshold}x, window={self.time_window_ms}ms"
        )

    @property
    def window(self) -> Tuple[Observation, ...]:
        """Observations currently retained, in arrival order."""
        return tuple(self._history)

    @property
    def signals(self) -> Tuple[Signal, ...]:
        """All logged signals, oldest first."""
        return tuple(self._signals)

    def add_observation(
        self,
        price: float,
        volume: float,
        timestamp: Optional[int] = None
    ) -> Optional[Signal]:
        """
        Add a price/volume tick and check for a bounce.

        Args:
            price: Trade price (> 0)
            volume: Traded volume (>= 0)
            timestamp: Tick time in ms (default: now)

        Returns:
            Signal if the bounce conditions are met, otherwise None
        """
        if timestamp is None:
            timestamp = now_ms()

        observation = Observation(price=float(price), volume=float(volume), timestamp=int(timestamp))
        self._history.append(observation)
        self._prune(observation.timestamp)

        return self._detect(observation)

    def _prune(self, now: int) -> None:
        cutoff = now - self.time_window_ms
        self._history = [obs for obs in self._history if obs.timestamp > cutoff]

    def _detect(self, current: Observation) -> Optional[Signal]:
        if len(self._history) < self.min_observations:
            return None

        recent = self._history[-self.recent_window_size:]
        low = min(obs.price for obs in recent)
        avg_volume = sum(obs.volume for obs in recent) / len(recent)

        # Degenerate window: no meaningful ratio
        if low <= 0 or avg_volume <= 0:
            return None

        bounce_percent = (current.price - low) / low * 100
        volume_ratio = current.volume / avg_volume

        if bounce_percent < self.min_bounce_percent or volume_ratio < self.volume_threshold:
            return None

        signal = Signal(
            timestamp=current.timestamp,
            price=current.price,
            low=low,
            bounce_percent=bounce_percent,
            volume_ratio=volume_ratio,
            strength=self.calculate_strength(bounce_percent, volume_ratio),
        )
        self._signals.append(signal)

        logger.debug(
            f"Bounce signal at {current.timestamp}: price={current.price}, low={low}, "
            f"bounce={bounce_percent:.2f}%, volume={volume_ratio:.2f}x, strength={signal.strength}"
        )

        return signal

    def calculate_strength(self, bounce_percent: float, volume_ratio: float) -> int:
        """
        Score a signal from 0 to 100.

        Each condition contributes up to 50 points, saturating once the
        observed value reaches its threshold.
        """
        bounce_score = min(bounce_percent / self.min_bounce_percent * 50, 50)
        volume_score = min(volume_ratio / self.volume_threshold * 50, 50)
        # Half-up rounding: 62.5 scores 63
        return int(max(0, min(100, math.floor(bounce_score + volume_score + 0.5))))

    def get_recent_signals(self, count: int = 10) -> List[Signal]:
        """Get the `count` most recent signals, oldest first."""
        if count <= 0:
            return []
        return self._signals[-count:]

    def clear_old_signals(self, max_age_ms: int = None, now: Optional[int] = None) -> int:
        """
        Drop signals older than `max_age_ms`.

        Args:
            max_age_ms: Maximum signal age in ms (default from settings)
            now: Reference time in ms (default: wall clock)

        Returns:
            Number of signals removed
        """
        max_age_ms = max_age_ms or settings.SIGNAL_MAX_AGE_MS
        if now is None:
            now = now_ms()

        cutoff = now - max_age_ms
        before = len(self._signals)
        self._signals = [s for s in self._signals if s.timestamp > cutoff]
        return before - len(self._signals)

    def get_stats(self) -> dict:
        """Summary statistics for dashboards."""
        return {
            'totalSignals': len(self._signals),
            'dataPoints': len(self._history),
            'avgStrength': (
                sum(s.strength for s in self._signals) / len(self._signals)
                if self._signals else 0
            ),
        }

    def reset(self) -> None:
        """Clear observation history and the signal log."""
        self._history = []
        self._signals = []
