"""
Online Signal Classifier

Minimal logistic regression over hand-derived signal features:

    score = bias + sum(weight[f] * value[f])
    probability = sigmoid(score)
    should_trade = probability >= confidence_threshold

Training is a single pass of stochastic gradient descent over the batch,
in input order, with no regularisation or learning-rate decay. Weights are
created lazily the first time a feature is trained on, drawn from
U(-scale, scale) using an injectable numpy Generator.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
from loguru import logger

from config.settings import settings
from memebounce.detector.bounce_detector import Signal
from memebounce.utils.clock import now_ms
from memebounce.utils.formatting import fmt_fixed, fmt_pct, to_float


FEATURE_NAMES = ('bouncePercent', 'volumeRatio', 'strength', 'priceChange', 'momentum')

# Attribute names used when the signal is an object rather than a mapping
_FEATURE_ATTRS = {
    'bouncePercent': 'bounce_percent',
    'volumeRatio': 'volume_ratio',
    'strength': 'strength',
    'priceChange': 'price_change',
    'momentum': 'momentum',
}

SignalLike = Union[Signal, Mapping[str, Any]]


class DimensionMismatchError(ValueError):
    """Raised when training signals and labels differ in length."""


def sigmoid(score: float) -> float:
    """Logistic function, evaluated without overflowing for large |score|."""
    if score >= 0:
        return 1.0 / (1.0 + math.exp(-score))
    z = math.exp(score)
    return z / (1.0 + z)


def extract_features(signal: SignalLike) -> Dict[str, float]:
    """
    Derive the fixed feature vector from a signal.

    Accepts a Signal or a mapping in either the wire format (camelCase,
    numbers possibly as strings) or snake_case. Missing or unparseable
    values become 0.0.
    """
    features = {}
    for name in FEATURE_NAMES:
        attr = _FEATURE_ATTRS[name]
        if isinstance(signal, Mapping):
            raw = signal.get(name, signal.get(attr))
        else:
            raw = getattr(signal, attr, None)
        features[name] = to_float(raw)
    return features


@dataclass
class LinearModel:
    """Logistic regression parameters shared by predict() and train()."""
    weights: Dict[str, float] = field(default_factory=dict)
    bias: float = 0.0
    training_samples: int = 0
    last_trained_at: Optional[datetime] = None

    def score(self, features: Mapping[str, float]) -> float:
        """Linear score; untrained features contribute nothing."""
        total = self.bias
        for name, value in features.items():
            total += self.weights.get(name, 0.0) * value
        return total


@dataclass(frozen=True)
class Prediction:
    """Classifier decision for a single signal."""
    signal: SignalLike
    probability: float
    should_trade: bool
    timestamp: int

    @property
    def confidence(self) -> float:
        return self.probability

    def to_dict(self) -> dict:
        signal = self.signal.to_dict() if isinstance(self.signal, Signal) else dict(self.signal)
        return {
            'signal': signal,
            'probability': self.probability,
            'confidence': self.confidence,
            'shouldTrade': self.should_trade,
            'timestamp': self.timestamp,
        }


class SignalClassifier:
    """
    Trainable trade/no-trade filter for bounce signals.

    The prediction log is append-only and is used only for get_metrics().
    """

    def __init__(
        self,
        confidence_threshold: float = None,
        learning_rate: float = None,
        weight_init_scale: float = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize classifier.

        Args:
            confidence_threshold: Minimum probability to trade (default from settings)
            learning_rate: SGD step size (default from settings)
            weight_init_scale: Half-width of the lazy weight init range (default from settings)
            rng: Generator used for lazy weight initialisation
            seed: Seed for a fresh Generator when `rng` is not given
        """
        self.confidence_threshold = confidence_threshold or settings.CONFIDENCE_THRESHOLD
        self.learning_rate = learning_rate or settings.LEARNING_RATE
        self.weight_init_scale = weight_init_scale or settings.WEIGHT_INIT_SCALE
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.model = LinearModel()
        self.predictions: List[Prediction] = []

        logger.info(
            f"SignalClassifier initialized: threshold={self.confidence_threshold:.0%}, "
            f"learning_rate={self.learning_rate}"
        )

    def predict_proba(self, signal: SignalLike) -> float:
        """Probability that the signal is worth trading, without logging."""
        return sigmoid(self.model.score(extract_features(signal)))

    def predict(self, signal: SignalLike, timestamp: Optional[int] = None) -> Prediction:
        """
        Score a signal and record the prediction.

        Args:
            signal: Signal or wire-format mapping
            timestamp: Prediction time in ms (default: now)

        Returns:
            Prediction with probability and trade decision
        """
        probability = self.predict_proba(signal)
        prediction = Prediction(
            signal=signal,
            probability=probability,
            should_trade=probability >= self.confidence_threshold,
            timestamp=timestamp if timestamp is not None else now_ms(),
        )
        self.predictions.append(prediction)
        return prediction

    def train(self, signals: Sequence[SignalLike], labels: Sequence[float]) -> None:
        """
        Run one SGD pass over a labelled batch.

        Args:
            signals: Signals in training order
            labels: 1 for a good trade, 0 otherwise, aligned with `signals`

        Raises:
            DimensionMismatchError: If the sequences differ in length.
                The model is left untouched.
        """
        if len(signals) != len(labels):
            raise DimensionMismatchError(
                f"signals and labels must have the same length "
                f"({len(signals)} != {len(labels)})"
            )

        model = self.model
        for signal, label in zip(signals, labels):
            features = extract_features(signal)
            error = float(label) - sigmoid(model.score(features))

            for name, value in features.items():
                if name not in model.weights:
                    model.weights[name] = float(
                        self.rng.uniform(-self.weight_init_scale, self.weight_init_scale)
                    )
                model.weights[name] += self.learning_rate * error * value

            model.bias += self.learning_rate * error

        if len(signals):
            model.training_samples += len(signals)
            model.last_trained_at = datetime.now()

        logger.debug(
            f"Trained on {len(signals)} samples (total={model.training_samples}), "
            f"bias={model.bias:.4f}"
        )

    def filter_signals(self, signals: Sequence[SignalLike]) -> List[Prediction]:
        """
        Score every signal and keep only tradeable ones.

        Returns:
            Predictions with should_trade=True, highest confidence first.
            Equal confidences keep their input order.
        """
        predictions = [self.predict(signal) for signal in signals]
        approved = [p for p in predictions if p.should_trade]
        return sorted(approved, key=lambda p: p.confidence, reverse=True)

    def get_metrics(self) -> Optional[dict]:
        """Aggregate prediction statistics, or None before any prediction."""
        if not self.predictions:
            return None

        total = len(self.predictions)
        avg_confidence = float(np.mean([p.confidence for p in self.predictions]))
        traded = sum(1 for p in self.predictions if p.should_trade)

        return {
            'totalPredictions': total,
            'avgConfidence': fmt_fixed(avg_confidence, 3),
            'tradedSignals': traded,
            'filterRate': fmt_pct((1 - traded / total) * 100),
        }

    def reset(self) -> None:
        """Restore the untrained model and clear the prediction log."""
        self.model = LinearModel()
        self.predictions = []
