"""
Live Signal Pipeline

Wires the in-process components for a single instrument:

    price tick -> BounceDetector -> SignalClassifier -> PaperLedger

Each tick runs synchronously. The transport layer calls on_price() for
every tick from a single task and reads get_state() for rendering.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from config.settings import settings
from memebounce.detector.bounce_detector import BounceDetector, Signal
from memebounce.ledger.paper_ledger import OrderResult, PaperLedger
from memebounce.models.signal_classifier import Prediction, SignalClassifier


@dataclass(frozen=True)
class PipelineEvent:
    """A signal that survived the classifier, with the order it triggered, if any."""
    signal: Signal
    prediction: Prediction
    order: Optional[OrderResult] = None

    def to_dict(self) -> dict:
        data = self.signal.to_dict()
        data['prediction'] = self.prediction.to_dict()
        if self.order is not None:
            data['order'] = self.order.to_dict()
        return data


class SignalPipeline:
    """
    Detector -> classifier -> paper ledger for one symbol.

    With auto_trade disabled (the default) approved signals are only
    recorded as `latest_event`; execute_trade() places the order.
    """

    def __init__(
        self,
        detector: Optional[BounceDetector] = None,
        classifier: Optional[SignalClassifier] = None,
        ledger: Optional[PaperLedger] = None,
        symbol: str = None,
        trade_quantity: float = None,
        auto_trade: bool = False
    ):
        """
        Initialize signal pipeline.

        Args:
            detector: Bounce detector (default: new instance)
            classifier: Signal classifier (default: new instance)
            ledger: Paper ledger (default: new instance)
            symbol: Traded symbol (default from settings)
            trade_quantity: Units bought per approved signal (default from settings)
            auto_trade: Buy automatically on approved signals
        """
        self.detector = detector or BounceDetector()
        self.classifier = classifier or SignalClassifier()
        self.ledger = ledger or PaperLedger()
        self.symbol = symbol or settings.DEFAULT_SYMBOL
        self.trade_quantity = trade_quantity or settings.DEFAULT_TRADE_QUANTITY
        self.auto_trade = auto_trade

        self.latest_event: Optional[PipelineEvent] = None

        logger.info(
            f"SignalPipeline initialized: symbol={self.symbol}, "
            f"quantity={self.trade_quantity}, auto_trade={self.auto_trade}"
        )

    def on_price(
        self,
        price: float,
        volume: float,
        timestamp: Optional[int] = None
    ) -> Optional[PipelineEvent]:
        """
        Process one tick.

        Returns:
            PipelineEvent when a signal fires and the classifier approves it,
            otherwise None
        """
        signal = self.detector.add_observation(price, volume, timestamp)
        if signal is None:
            return None

        prediction = self.classifier.predict(signal, timestamp=signal.timestamp)
        if not prediction.should_trade:
            logger.debug(
                f"Signal at {signal.timestamp} filtered out "
                f"(probability={prediction.probability:.3f})"
            )
            return None

        order = self.execute_trade(prediction) if self.auto_trade else None

        self.latest_event = PipelineEvent(signal=signal, prediction=prediction, order=order)
        logger.info(
            f"Tradeable signal: {self.symbol} @ {signal.price} "
            f"(strength={signal.strength}, probability={prediction.probability:.3f})"
        )
        return self.latest_event

    def execute_trade(self, prediction: Prediction) -> OrderResult:
        """Buy `trade_quantity` units at the signal price in the paper ledger."""
        signal = prediction.signal
        price = signal.price if isinstance(signal, Signal) else float(signal['price'])
        timestamp = signal.timestamp if isinstance(signal, Signal) else signal.get('timestamp')

        result = self.ledger.buy(self.symbol, self.trade_quantity, price, timestamp=timestamp)
        if not result.success:
            logger.warning(f"Auto trade rejected: {result.error.value}")
        return result

    def get_state(self) -> dict:
        """Snapshot of every component, keyed for the dashboard."""
        return {
            'bounceDetector': self.detector.get_stats(),
            'mlFilter': self.classifier.get_metrics(),
            'simulator': self.ledger.get_performance().to_dict(),
            'latestSignal': self.latest_event.to_dict() if self.latest_event else None,
        }
