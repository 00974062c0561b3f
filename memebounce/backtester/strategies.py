"""
Backtest strategies built from the live signal components.

BounceStrategy replays the live decision path over history:
- Entry: detector fires a bounce AND the classifier approves it
- Exit: target profit OR stop loss, measured from average cost
- Long only, one position in one symbol at a time
"""

from typing import Mapping, Optional

from loguru import logger

from config.settings import settings
from memebounce.backtester.runner import DataPoint, Instruction
from memebounce.detector.bounce_detector import BounceDetector
from memebounce.ledger.types import Position, TradeSide
from memebounce.models.signal_classifier import SignalClassifier


class BounceStrategy:
    """
    Detector + classifier strategy for a single symbol.

    The strategy owns its detector and classifier state, so use a fresh
    instance (or call reset()) for every run that must be reproducible.
    """

    def __init__(
        self,
        detector: Optional[BounceDetector] = None,
        classifier: Optional[SignalClassifier] = None,
        symbol: str = None,
        quantity: Optional[float] = None,
        target_percent: float = 10.0,
        stop_loss_percent: float = 5.0
    ):
        """
        Initialize bounce strategy.

        Args:
            detector: Bounce detector fed with every data point
            classifier: Signal filter; when None every bounce is traded
            symbol: Symbol to trade (default from settings)
            quantity: Units per entry; None lets the runner size the order
            target_percent: Exit when price is this far above average cost
            stop_loss_percent: Exit when price is this far below average cost
        """
        self.detector = detector or BounceDetector()
        self.classifier = classifier
        self.symbol = symbol or settings.DEFAULT_SYMBOL
        self.quantity = quantity
        self.target_percent = target_percent
        self.stop_loss_percent = stop_loss_percent

    def evaluate(
        self,
        data_point: DataPoint,
        positions: Mapping[str, Position]
    ) -> Optional[Instruction]:
        price = data_point.prices.get(self.symbol)
        if not price:
            return None
        volume = data_point.volumes.get(self.symbol, 0.0)

        signal = self.detector.add_observation(price, volume, data_point.timestamp)

        position = positions.get(self.symbol)
        if position is not None:
            change_pct = (price - position.average_cost) / position.average_cost * 100
            if change_pct >= self.target_percent or change_pct <= -self.stop_loss_percent:
                logger.debug(
                    f"[{data_point.timestamp}] Exit {self.symbol}: {change_pct:+.2f}% from cost"
                )
                return Instruction(action=TradeSide.SELL, symbol=self.symbol)
            return None

        if signal is None:
            return None

        if self.classifier is not None:
            prediction = self.classifier.predict(signal, timestamp=data_point.timestamp)
            if not prediction.should_trade:
                return None

        return Instruction(
            action=TradeSide.BUY,
            symbol=self.symbol,
            quantity=self.quantity,
            price=price,
        )

    def reset(self) -> None:
        """Clear detector history so the strategy can replay again."""
        self.detector.reset()
