"""
Performance Metrics for Backtest Runs

Derives the summary reported to dashboards from a finished run:
- Return and final equity from the equity curve
- Win rate, average win/loss and profit factor from completed (SELL) trades
- Maximum drawdown from the running peak of the equity curve

Metrics are computed once at the end of a run and never updated in place.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Sequence

import numpy as np
import pandas as pd

from memebounce.ledger.types import EquitySample, TradeSide
from memebounce.utils.formatting import fmt_fixed, fmt_pct

if TYPE_CHECKING:
    from memebounce.backtester.runner import BacktestTrade


@dataclass(frozen=True)
class PerformanceSummary:
    """
    Aggregate results of a backtest run.

    Attributes:
        initial_capital: Equity of the first curve sample
        final_equity: Equity of the last curve sample
        total_return: final_equity - initial_capital
        return_percent: total_return as a percentage of initial capital
        total_trades: Filled instructions (BUY and SELL)
        completed_trades: Filled SELL instructions
        winning_trades: Completed trades with profit > 0
        losing_trades: Completed trades with profit < 0
        win_rate: winning_trades / completed_trades * 100
        avg_win: Mean profit of winning trades (0 if none)
        avg_loss: Mean profit of losing trades, negative (0 if none)
        profit_factor: |avg_win / avg_loss|, 0 when avg_loss is 0
        max_drawdown_pct: Largest decline from a running peak, in percent
        equity_curve: One sample per data point, seeded with starting capital
        execution_time_ms: Wall time of the run (diagnostic only)
    """
    initial_capital: float = 0.0
    final_equity: float = 0.0
    total_return: float = 0.0
    return_percent: float = 0.0
    total_trades: int = 0
    completed_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    max_drawdown_pct: float = 0.0
    equity_curve: List[EquitySample] = field(default_factory=list)
    execution_time_ms: float = field(default=0.0, compare=False)

    def to_dict(self) -> dict:
        """Convert to the dashboard wire format."""
        return {
            'initialCapital': self.initial_capital,
            'finalEquity': fmt_fixed(self.final_equity),
            'totalReturn': fmt_fixed(self.total_return),
            'returnPercent': fmt_pct(self.return_percent),
            'totalTrades': self.total_trades,
            'completedTrades': self.completed_trades,
            'winningTrades': self.winning_trades,
            'losingTrades': self.losing_trades,
            'winRate': fmt_pct(self.win_rate),
            'avgWin': fmt_fixed(self.avg_win),
            'avgLoss': fmt_fixed(self.avg_loss),
            'profitFactor': fmt_fixed(self.profit_factor),
            'maxDrawdown': fmt_pct(self.max_drawdown_pct),
            'equityCurve': [
                {'timestamp': s.timestamp, 'value': s.equity} for s in self.equity_curve
            ],
            'executionTime': self.execution_time_ms,
        }

    def get_equity_df(self) -> pd.DataFrame:
        """Equity curve as a DataFrame with columns [timestamp, equity]."""
        return pd.DataFrame(
            [(s.timestamp, s.equity) for s in self.equity_curve],
            columns=['timestamp', 'equity'],
        )

    def __repr__(self) -> str:
        return (
            f"PerformanceSummary(trades={self.total_trades}, "
            f"win_rate={self.win_rate:.2f}%, return={self.return_percent:.2f}%, "
            f"max_dd={self.max_drawdown_pct:.2f}%)"
        )


def calculate_max_drawdown(equity: Sequence[float]) -> float:
    """
    Maximum drawdown of an equity series, in percent.

    drawdown_t = (peak_t - equity_t) / peak_t, where peak_t is the running
    maximum. Samples whose running peak is not positive contribute 0.
    """
    if len(equity) == 0:
        return 0.0

    values = np.asarray(equity, dtype=float)
    running_peak = np.maximum.accumulate(values)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = np.where(running_peak > 0, (running_peak - values) / running_peak, 0.0)
    return float(drawdowns.max() * 100)


def calculate_metrics(
    equity_curve: Sequence[EquitySample],
    trades: Sequence["BacktestTrade"],
    execution_time_ms: float = 0.0
) -> PerformanceSummary:
    """
    Calculate performance metrics from a finished run.

    Args:
        equity_curve: Equity samples, first one seeded with starting capital
        trades: Filled backtest trades in execution order
        execution_time_ms: Wall time of the run

    Returns:
        PerformanceSummary
    """
    if not equity_curve:
        return PerformanceSummary(execution_time_ms=execution_time_ms)

    initial_equity = equity_curve[0].equity
    final_equity = equity_curve[-1].equity
    total_return = final_equity - initial_equity
    return_percent = total_return / initial_equity * 100 if initial_equity else 0.0

    completed = [t for t in trades if t.side == TradeSide.SELL]
    wins = [t.profit for t in completed if t.profit > 0]
    losses = [t.profit for t in completed if t.profit < 0]

    win_rate = len(wins) / len(completed) * 100 if completed else 0.0
    avg_win = float(np.mean(wins)) if wins else 0.0
    avg_loss = float(np.mean(losses)) if losses else 0.0
    profit_factor = abs(avg_win / avg_loss) if avg_loss != 0 else 0.0

    return PerformanceSummary(
        initial_capital=initial_equity,
        final_equity=final_equity,
        total_return=total_return,
        return_percent=return_percent,
        total_trades=len(trades),
        completed_trades=len(completed),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        profit_factor=profit_factor,
        max_drawdown_pct=calculate_max_drawdown([s.equity for s in equity_curve]),
        equity_curve=list(equity_curve),
        execution_time_ms=execution_time_ms,
    )
