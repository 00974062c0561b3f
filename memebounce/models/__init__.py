"""Signal classification models."""

from .signal_classifier import (
    FEATURE_NAMES,
    DimensionMismatchError,
    LinearModel,
    Prediction,
    SignalClassifier,
    extract_features,
    sigmoid,
)

__all__ = [
    'FEATURE_NAMES',
    'DimensionMismatchError',
    'LinearModel',
    'Prediction',
    'SignalClassifier',
    'extract_features',
    'sigmoid',
]
