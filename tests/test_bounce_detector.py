"""
Tests for BounceDetector

Coverage:
- Window pruning and history requirements
- Bounce + volume-spike firing conditions
- Strength scoring
- Degenerate inputs (zero low, zero volume)
- Signal log maintenance and stats
"""

import pytest

from memebounce.detector.bounce_detector import BounceDetector, Signal, SignalKind


def feed(detector, ticks):
    """Feed (price, volume, timestamp) ticks and return the results."""
    return [detector.add_observation(p, v, t) for p, v, t in ticks]


# ============================================================================
# Firing conditions
# ============================================================================

def test_bounce_fires_on_fourth_tick(detector, bounce_ticks):
    """Bounce from 0.7 to 1.1 with 2x volume fires on the last tick."""
    results = feed(detector, bounce_ticks)

    assert results[:3] == [None, None, None]
    signal = results[3]
    assert isinstance(signal, Signal)
    assert signal.kind == SignalKind.BOUNCE
    assert signal.timestamp == 4_000
    assert signal.price == 1.1
    assert signal.low == 0.7
    assert signal.bounce_percent == pytest.approx((1.1 - 0.7) / 0.7 * 100)
    assert signal.volume_ratio == pytest.approx(3000 / 1500)
    assert signal.strength == 100


def test_no_signal_with_fewer_than_three_observations(detector):
    """Two huge-bounce ticks are still not enough history."""
    assert detector.add_observation(0.5, 100, 1_000) is None
    assert detector.add_observation(2.0, 10_000, 2_000) is None
    assert detector.signals == ()


def test_no_signal_without_volume_spike(detector):
    """Price bounce alone does not fire."""
    results = feed(detector, [(1.0, 1000, 1), (0.7, 1000, 2), (1.1, 1000, 3)])
    assert results == [None, None, None]


def test_no_signal_without_bounce(detector):
    """Volume spike alone does not fire."""
    results = feed(detector, [(1.0, 1000, 1), (1.0, 1000, 2), (1.01, 5000, 3)])
    assert results == [None, None, None]


def test_thresholds_are_inclusive():
    """Exactly meeting both thresholds fires."""
    detector = BounceDetector(min_bounce_percent=10, volume_threshold=1.5)
    # low 1.0, current 1.1 -> 10%; volumes 500, 500, 2000 -> avg 1000, ratio 2.0
    signal = None
    for price, volume, ts in [(1.0, 500, 1), (1.0, 500, 2), (1.1, 2000, 3)]:
        signal = detector.add_observation(price, volume, ts)
    assert signal is not None
    assert signal.bounce_percent == pytest.approx(10.0)


def test_recent_window_limits_low():
    """The low is taken from the last 10 observations only."""
    detector = BounceDetector(min_bounce_percent=5, volume_threshold=1.5)
    detector.add_observation(0.1, 1000, 0)  # old deep low, outside the last 10
    for i in range(10):
        detector.add_observation(1.0, 1000, i + 1)
    signal = detector.add_observation(1.02, 5000, 20)
    # Against a 0.1 low this would be a 920% bounce; against 1.0 it is 2%
    assert signal is None


# ============================================================================
# Window pruning
# ============================================================================

def test_window_pruned_to_time_window():
    """Observations at or before now - window are dropped."""
    detector = BounceDetector(time_window_ms=1_000)
    detector.add_observation(1.0, 100, 0)
    detector.add_observation(1.0, 100, 500)
    detector.add_observation(1.0, 100, 1_000)

    timestamps = [obs.timestamp for obs in detector.window]
    assert timestamps == [500, 1_000]


def test_window_invariant_holds_after_every_insert():
    """Every retained observation is newer than now - window."""
    detector = BounceDetector(time_window_ms=2_500)
    for ts in range(0, 20_000, 700):
        detector.add_observation(1.0, 100, ts)
        assert all(obs.timestamp > ts - 2_500 for obs in detector.window)


def test_stale_history_prevents_signal():
    """A gap longer than the window resets the history requirement."""
    detector = BounceDetector(time_window_ms=1_000)
    detector.add_observation(1.0, 1000, 0)
    detector.add_observation(0.7, 1000, 100)
    signal = detector.add_observation(1.1, 3000, 5_000)
    assert signal is None
    assert len(detector.window) == 1


# ============================================================================
# Strength
# ============================================================================

def test_strength_saturates_at_100(detector):
    """Both components cap at 50 points."""
    assert detector.calculate_strength(500.0, 20.0) == 100


def test_strength_partial_scores():
    """Sub-threshold components scale linearly."""
    detector = BounceDetector(min_bounce_percent=10, volume_threshold=2.0)
    # bounce 5/10*50 = 25, volume 1/2*50 = 25
    assert detector.calculate_strength(5.0, 1.0) == 50


def test_strength_rounds_half_up():
    """62.5 rounds to 63, not to the even 62."""
    detector = BounceDetector(min_bounce_percent=10, volume_threshold=2.0)
    # bounce 5/10*50 = 25, volume 1.5/2*50 = 37.5
    assert detector.calculate_strength(5.0, 1.5) == 63


def test_strength_is_integer_in_range(detector):
    """Strength is always an int within [0, 100]."""
    for bounce in (0.0, 1.0, 5.0, 12.5, 300.0):
        for ratio in (0.0, 0.7, 1.5, 9.0):
            strength = detector.calculate_strength(bounce, ratio)
            assert isinstance(strength, int)
            assert 0 <= strength <= 100


# ============================================================================
# Degenerate inputs
# ============================================================================

def test_zero_low_price_is_no_signal(detector):
    """A zero price in the window must not produce an infinite bounce."""
    results = feed(detector, [(0.0, 1000, 1), (0.5, 1000, 2), (1.0, 5000, 3)])
    assert results == [None, None, None]


def test_zero_volume_window_is_no_signal(detector):
    """All-zero volume is treated as no signal."""
    results = feed(detector, [(1.0, 0, 1), (0.5, 0, 2), (1.0, 0, 3)])
    assert results == [None, None, None]


# ============================================================================
# Signal log
# ============================================================================

def test_signals_logged_in_order(detector, bounce_ticks):
    """Fired signals are appended to the log."""
    feed(detector, bounce_ticks)
    detector.add_observation(1.3, 6000, 5_000)

    timestamps = [s.timestamp for s in detector.signals]
    assert timestamps == [4_000, 5_000]
    assert [s.timestamp for s in detector.get_recent_signals(1)] == [5_000]


def test_clear_old_signals(detector, bounce_ticks):
    """Only signals newer than now - max_age survive."""
    feed(detector, bounce_ticks)
    detector.add_observation(1.3, 6000, 5_000)

    removed = detector.clear_old_signals(max_age_ms=1_500, now=6_000)

    assert removed == 1
    assert [s.timestamp for s in detector.signals] == [5_000]


def test_get_stats(detector, bounce_ticks):
    """Stats report signal count, window size and mean strength."""
    assert detector.get_stats() == {'totalSignals': 0, 'dataPoints': 0, 'avgStrength': 0}

    feed(detector, bounce_ticks)
    stats = detector.get_stats()

    assert stats['totalSignals'] == 1
    assert stats['dataPoints'] == 4
    assert stats['avgStrength'] == 100


def test_signal_to_dict_wire_format(detector, bounce_ticks):
    """Percent and ratio are two-decimal strings."""
    signal = feed(detector, bounce_ticks)[-1]
    data = signal.to_dict()

    assert data['type'] == 'BOUNCE'
    assert data['bouncePercent'] == '57.14'
    assert data['volumeRatio'] == '2.00'
    assert data['strength'] == 100


def test_reset_clears_state(detector, bounce_ticks):
    """reset() empties window and log."""
    feed(detector, bounce_ticks)
    detector.reset()
    assert detector.window == ()
    assert detector.signals == ()


def test_instances_are_independent(bounce_ticks):
    """Two detectors never share history."""
    a = BounceDetector()
    b = BounceDetector()
    feed(a, bounce_ticks)
    assert len(a.window) == 4
    assert len(b.window) == 0
