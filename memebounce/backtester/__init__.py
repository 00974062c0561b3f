"""
Backtesting Module for the bounce trading system

Replays strategies against historical price series using the same
commission/slippage model as the paper ledger:
- Long only, weighted-average cost on repeated buys
- Commission 0.1% and slippage 0.2% of notional per fill (defaults)
- Rejected instructions are skipped, never raised

Components:
- runner: Replay engine, strategy protocol and series loading
- metrics: Performance summary (return, win rate, profit factor, drawdown)
- strategies: Detector + classifier reference strategy
"""

from .metrics import PerformanceSummary, calculate_max_drawdown, calculate_metrics
from .runner import (
    BacktestRunner,
    BacktestTrade,
    DataPoint,
    Instruction,
    SkippedInstruction,
    Strategy,
    load_series,
)
from .strategies import BounceStrategy

__all__ = [
    'BacktestRunner',
    'BacktestTrade',
    'BounceStrategy',
    'DataPoint',
    'Instruction',
    'PerformanceSummary',
    'SkippedInstruction',
    'Strategy',
    'calculate_max_drawdown',
    'calculate_metrics',
    'load_series',
]
