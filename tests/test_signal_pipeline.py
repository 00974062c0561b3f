"""
Tests for SignalPipeline

Coverage:
- Ticks flowing through detector and classifier
- Manual and automatic paper execution
- Dashboard state snapshot
"""

import pytest

from memebounce.ledger.paper_ledger import OrderError, PaperLedger
from memebounce.models.signal_classifier import Prediction, SignalClassifier
from memebounce.predictor.signal_pipeline import PipelineEvent, SignalPipeline


def feed(pipeline, ticks):
    return [pipeline.on_price(price, volume, ts) for price, volume, ts in ticks]


@pytest.fixture
def trained_classifier(strong_signal):
    """Classifier that approves strong bounces."""
    classifier = SignalClassifier(confidence_threshold=0.7, seed=42)
    classifier.train([strong_signal], [1])
    return classifier


@pytest.fixture
def pipeline(detector, trained_classifier, ledger):
    return SignalPipeline(
        detector=detector,
        classifier=trained_classifier,
        ledger=ledger,
        symbol='MEME',
        trade_quantity=10,
    )


# ============================================================================
# Signal flow
# ============================================================================

def test_quiet_ticks_return_none(pipeline):
    assert feed(pipeline, [(1.0, 1000, 1), (1.0, 1000, 2), (1.0, 1000, 3)]) == [None, None, None]
    assert pipeline.latest_event is None


def test_approved_signal_emits_event(pipeline, bounce_ticks):
    """A strong bounce passes the trained classifier."""
    events = feed(pipeline, bounce_ticks)

    event = events[-1]
    assert isinstance(event, PipelineEvent)
    assert event.signal.price == 1.1
    assert event.prediction.should_trade is True
    assert event.order is None
    assert pipeline.latest_event is event
    assert pipeline.ledger.trades == []


def test_filtered_signal_returns_none(detector, classifier, ledger, bounce_ticks):
    """The untrained classifier rejects every signal."""
    pipeline = SignalPipeline(detector, classifier, ledger, symbol='MEME', trade_quantity=10)

    events = feed(pipeline, bounce_ticks)

    assert events == [None, None, None, None]
    assert len(detector.signals) == 1
    assert len(classifier.predictions) == 1
    assert pipeline.latest_event is None


# ============================================================================
# Execution
# ============================================================================

def test_auto_trade_buys_at_signal_price(detector, trained_classifier, ledger, bounce_ticks):
    pipeline = SignalPipeline(
        detector, trained_classifier, ledger,
        symbol='MEME', trade_quantity=10, auto_trade=True,
    )

    event = feed(pipeline, bounce_ticks)[-1]

    assert event.order.success is True
    trade = event.order.trade
    assert trade.symbol == 'MEME'
    assert trade.quantity == 10
    assert trade.price == 1.1
    assert trade.timestamp == 4_000
    assert ledger.positions['MEME'].quantity == 10
    assert ledger.balance == pytest.approx(10_000 - 11 * 1.003)


def test_auto_trade_rejection_is_reported(detector, trained_classifier, bounce_ticks):
    """An unaffordable order is attached to the event, not raised."""
    ledger = PaperLedger(initial_balance=5.0)
    pipeline = SignalPipeline(
        detector, trained_classifier, ledger,
        symbol='MEME', trade_quantity=10, auto_trade=True,
    )

    event = feed(pipeline, bounce_ticks)[-1]

    assert event is not None
    assert event.order.success is False
    assert event.order.error == OrderError.INSUFFICIENT_BALANCE
    assert ledger.trades == []


def test_execute_trade_manually(pipeline, bounce_ticks):
    event = feed(pipeline, bounce_ticks)[-1]

    result = pipeline.execute_trade(event.prediction)

    assert result.success is True
    assert pipeline.ledger.positions['MEME'].average_cost == 1.1


def test_execute_trade_from_wire_signal(pipeline):
    """Wire-format signals carry price as a string."""
    prediction = Prediction(
        signal={'price': '2.0', 'timestamp': 7},
        probability=0.9,
        should_trade=True,
        timestamp=7,
    )

    result = pipeline.execute_trade(prediction)

    assert result.success is True
    assert result.trade.price == 2.0
    assert result.trade.timestamp == 7


# ============================================================================
# State
# ============================================================================

def test_state_before_any_signal(pipeline):
    state = pipeline.get_state()

    assert set(state) == {'bounceDetector', 'mlFilter', 'simulator', 'latestSignal'}
    assert state['bounceDetector']['totalSignals'] == 0
    assert state['mlFilter'] is None
    assert state['simulator']['winRate'] == '0%'
    assert state['latestSignal'] is None


def test_state_after_signal(pipeline, bounce_ticks):
    feed(pipeline, bounce_ticks)

    state = pipeline.get_state()

    assert state['bounceDetector']['totalSignals'] == 1
    assert state['mlFilter']['totalPredictions'] == 1
    assert state['mlFilter']['tradedSignals'] == 1
    latest = state['latestSignal']
    assert latest['type'] == 'BOUNCE'
    assert latest['prediction']['shouldTrade'] is True
    assert 'order' not in latest
