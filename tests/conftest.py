"""Pytest configuration and shared fixtures."""
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from memebounce.backtester.runner import BacktestRunner, DataPoint
from memebounce.detector.bounce_detector import BounceDetector, Signal
from memebounce.ledger.paper_ledger import PaperLedger
from memebounce.ledger.types import Position
from memebounce.models.signal_classifier import SignalClassifier


# Scripted strategies for replay tests
class ScriptedStrategy:
    """Returns a fixed instruction for selected timestamps."""

    def __init__(self, script: Dict[int, object]):
        self.script = script
        self.calls: List[tuple] = []

    def evaluate(self, data_point: DataPoint, positions: Mapping[str, Position]) -> Optional[object]:
        self.calls.append((data_point.timestamp, dict(positions)))
        return self.script.get(data_point.timestamp)


class BuyAndHoldStrategy:
    """Buys once on the first bar, never sells."""

    def __init__(self, symbol: str = 'MEME', quantity: float = 100):
        self.symbol = symbol
        self.quantity = quantity

    def evaluate(self, data_point, positions):
        if self.symbol in positions:
            return None
        return {'action': 'BUY', 'symbol': self.symbol, 'quantity': self.quantity}


@pytest.fixture
def detector():
    """Detector with the default thresholds."""
    return BounceDetector(min_bounce_percent=5, volume_threshold=1.5, time_window_ms=300_000)


@pytest.fixture
def classifier():
    """Classifier with a seeded generator."""
    return SignalClassifier(confidence_threshold=0.7, learning_rate=0.01, seed=42)


@pytest.fixture
def ledger():
    """Paper ledger with default costs."""
    return PaperLedger(initial_balance=10_000, commission_rate=0.001, slippage_rate=0.002)


@pytest.fixture
def runner():
    """Backtest runner with default costs."""
    return BacktestRunner(initial_capital=10_000, commission_rate=0.001, slippage_rate=0.002)


@pytest.fixture
def bounce_ticks():
    """Ticks where the fourth one bounces 57% off the low on a volume spike."""
    return [
        (1.0, 1000, 1_000),
        (0.9, 1000, 2_000),
        (0.7, 1000, 3_000),
        (1.1, 3000, 4_000),
    ]


@pytest.fixture
def strong_signal():
    """A signal well above both thresholds."""
    return Signal(
        timestamp=4_000,
        price=1.1,
        low=0.7,
        bounce_percent=57.14,
        volume_ratio=2.0,
        strength=100,
    )


@pytest.fixture
def weak_signal():
    """A signal just over both thresholds."""
    return Signal(
        timestamp=5_000,
        price=1.05,
        low=1.0,
        bounce_percent=5.0,
        volume_ratio=1.5,
        strength=100,
    )


@pytest.fixture
def price_series():
    """Six bars of a single symbol rising then falling."""
    prices = [1.0, 1.2, 1.5, 1.3, 0.9, 1.1]
    return [
        DataPoint(timestamp=(i + 1) * 60_000, prices={'MEME': p})
        for i, p in enumerate(prices)
    ]


@pytest.fixture
def scripted_strategy():
    """Factory for ScriptedStrategy instances."""
    return ScriptedStrategy


@pytest.fixture
def buy_and_hold():
    """Factory for BuyAndHoldStrategy instances."""
    return BuyAndHoldStrategy
