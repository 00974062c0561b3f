"""
Backtest Runner

Replays a strategy over a historical price series in a single deterministic
pass:
- Each data point is handed to strategy.evaluate(data_point, positions)
- BUY/SELL instructions fill at the series price for the symbol, falling
  back to the instruction's own price
- Commission and slippage are fractions of notional on both sides, the same
  economic model as the paper ledger
- Rejected instructions are skipped silently (recorded in `skipped`)
- One equity sample is appended per data point, marked to the series price

Metrics are derived once at the end of the run.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field, replace
from typing import (
    Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union, runtime_checkable
)

import pandas as pd
from loguru import logger

from config.settings import settings
from memebounce.backtester.metrics import PerformanceSummary, calculate_metrics
from memebounce.ledger.types import EquitySample, Position, TradeSide
from memebounce.utils.formatting import fmt_fixed, to_float


@dataclass(frozen=True)
class DataPoint:
    """One bar of the historical series."""
    timestamp: int
    prices: Mapping[str, float]
    volumes: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def coerce(cls, obj: Union["DataPoint", Mapping[str, Any]]) -> "DataPoint":
        """Build a DataPoint from a mapping with timestamp/prices[/volumes] keys."""
        if isinstance(obj, DataPoint):
            return obj
        return cls(
            timestamp=obj['timestamp'],
            prices=dict(obj.get('prices') or {}),
            volumes=dict(obj.get('volumes') or {}),
        )


@dataclass(frozen=True)
class Instruction:
    """Order requested by a strategy. Omitted quantity/price are resolved by the runner."""
    action: TradeSide
    symbol: str
    quantity: Optional[float] = None
    price: Optional[float] = None


InstructionLike = Union[Instruction, Mapping[str, Any]]
SeriesLike = Union[pd.DataFrame, Iterable[Union[DataPoint, Mapping[str, Any]]]]


@runtime_checkable
class Strategy(Protocol):
    """Anything that can turn a data point into an optional instruction."""

    def evaluate(
        self,
        data_point: DataPoint,
        positions: Mapping[str, Position]
    ) -> Optional[InstructionLike]:
        ...


@dataclass(frozen=True)
class BacktestTrade:
    """
    A filled backtest instruction.

    `amount` is the total cash debited for a BUY (notional plus costs) or
    the net cash credited for a SELL (notional minus costs).
    """
    side: TradeSide
    symbol: str
    quantity: float
    price: float
    commission: float
    slippage: float
    amount: float
    timestamp: int
    profit: Optional[float] = None
    profit_percent: Optional[float] = None
    hold_time: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            'action': self.side.value,
            'symbol': self.symbol,
            'quantity': self.quantity,
            'price': self.price,
            'timestamp': self.timestamp,
        }
        if self.side == TradeSide.BUY:
            data['cost'] = self.amount
        else:
            data['revenue'] = self.amount
            data['profit'] = self.profit
            data['profitPercent'] = fmt_fixed(self.profit_percent or 0.0)
            data['holdTime'] = self.hold_time
        return data


@dataclass(frozen=True)
class SkippedInstruction:
    """An instruction the runner declined to fill."""
    timestamp: int
    action: str
    symbol: Optional[str]
    reason: str


@dataclass
class _RunState:
    capital: float
    positions: Dict[str, Position] = field(default_factory=dict)
    equity: List[EquitySample] = field(default_factory=list)
    trades: List[BacktestTrade] = field(default_factory=list)
    skipped: List[SkippedInstruction] = field(default_factory=list)


def load_series(frame: pd.DataFrame, timestamp_col: str = 'timestamp') -> List[DataPoint]:
    """
    Convert a price table into data points.

    Every column other than `timestamp_col` is a symbol's price, except
    `<symbol>_volume` columns which carry that symbol's volume. Missing
    (NaN) prices are left out of the data point.
    """
    volume_cols = {c for c in frame.columns if str(c).endswith('_volume')}
    price_cols = [c for c in frame.columns if c != timestamp_col and c not in volume_cols]

    series = []
    for row in frame.sort_values(timestamp_col, kind='stable').to_dict('records'):
        prices = {str(c): float(row[c]) for c in price_cols if not pd.isna(row[c])}
        volumes = {
            str(c)[:-len('_volume')]: float(row[c])
            for c in volume_cols if not pd.isna(row[c])
        }
        series.append(DataPoint(timestamp=int(row[timestamp_col]), prices=prices, volumes=volumes))
    return series


class BacktestRunner:
    """
    Historical replay engine.

    Each run() works on its own capital and positions, so one runner can
    be reused and several runners can replay in parallel.
    """

    def __init__(
        self,
        initial_capital: float = None,
        commission_rate: float = None,
        slippage_rate: float = None,
        position_size_pct: float = None,
        yield_every: int = None
    ):
        """
        Initialize backtest runner.

        Args:
            initial_capital: Starting cash (default from settings)
            commission_rate: Commission as a fraction of notional (default from settings)
            slippage_rate: Slippage as a fraction of notional (default from settings)
            position_size_pct: Capital fraction used when a BUY omits quantity (default from settings)
            yield_every: Data points between event loop yields in run_async (default from settings)
        """
        self.initial_capital = initial_capital or settings.INITIAL_BALANCE
        self.commission_rate = commission_rate if commission_rate is not None else settings.COMMISSION_RATE
        self.slippage_rate = slippage_rate if slippage_rate is not None else settings.SLIPPAGE_RATE
        self.position_size_pct = position_size_pct or settings.POSITION_SIZE_PCT
        self.yield_every = yield_every or settings.BACKTEST_YIELD_EVERY

        self.results: Optional[PerformanceSummary] = None
        self.trades: List[BacktestTrade] = []
        self.skipped: List[SkippedInstruction] = []

        logger.info(
            f"BacktestRunner initialized: capital={self.initial_capital:,.2f}, "
            f"commission={self.commission_rate:.2%}, slippage={self.slippage_rate:.2%}"
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, strategy: Strategy, series: SeriesLike) -> PerformanceSummary:
        """
        Replay `strategy` over `series`.

        Args:
            strategy: Object with evaluate(data_point, positions)
            series: Data points in time order, mappings with
                timestamp/prices keys, or a DataFrame (see load_series)

        Returns:
            PerformanceSummary for the run
        """
        started = time.perf_counter()
        points = self._normalize_series(series)
        state = self._begin(points)

        for point in points:
            self._step(state, strategy, point)

        return self._finish(state, started)

    async def run_async(
        self,
        strategy: Strategy,
        series: SeriesLike,
        yield_every: int = None
    ) -> PerformanceSummary:
        """
        Cooperative variant of run() for event-loop hosts.

        Yields control every `yield_every` data points so the replay can be
        cancelled or time-boxed by the caller (e.g. asyncio.wait_for).
        Results are identical to run().
        """
        yield_every = yield_every or self.yield_every
        started = time.perf_counter()
        points = self._normalize_series(series)
        state = self._begin(points)

        for i, point in enumerate(points, start=1):
            self._step(state, strategy, point)
            if i % yield_every == 0:
                await asyncio.sleep(0)

        return self._finish(state, started)

    # ------------------------------------------------------------------
    # Replay loop
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_series(series: SeriesLike) -> List[DataPoint]:
        if isinstance(series, pd.DataFrame):
            return load_series(series)
        return [DataPoint.coerce(point) for point in series]

    def _begin(self, points: List[DataPoint]) -> _RunState:
        self.results = None
        self.trades = []
        self.skipped = []

        state = _RunState(capital=self.initial_capital)
        first_timestamp = points[0].timestamp if points else None
        state.equity.append(EquitySample(timestamp=first_timestamp, equity=state.capital))

        logger.info(f"Backtest started: {len(points)} data points")
        return state

    def _step(self, state: _RunState, strategy: Strategy, point: DataPoint) -> None:
        view = {symbol: replace(position) for symbol, position in state.positions.items()}
        instruction = strategy.evaluate(point, view)

        if instruction:
            self._execute(state, instruction, point)

        state.equity.append(EquitySample(
            timestamp=point.timestamp,
            equity=state.capital + self.calculate_position_value(state.positions, point.prices),
        ))

    def _finish(self, state: _RunState, started: float) -> PerformanceSummary:
        execution_time_ms = (time.perf_counter() - started) * 1000

        self.trades = state.trades
        self.skipped = state.skipped
        self.results = calculate_metrics(state.equity, state.trades, execution_time_ms)

        logger.info(
            f"Backtest complete: return={self.results.return_percent:.2f}%, "
            f"trades={self.results.total_trades}, skipped={len(state.skipped)}, "
            f"max_dd={self.results.max_drawdown_pct:.2f}% ({execution_time_ms:.1f}ms)"
        )
        return self.results

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _skip(self, state: _RunState, point: DataPoint, action: Any, symbol: Any, reason: str) -> None:
        skipped = SkippedInstruction(
            timestamp=point.timestamp,
            action=str(getattr(action, 'value', action)),
            symbol=symbol,
            reason=reason,
        )
        state.skipped.append(skipped)
        logger.warning(f"[{point.timestamp}] Skipped {skipped.action} {symbol}: {reason}")

    def _execute(self, state: _RunState, instruction: InstructionLike, point: DataPoint) -> None:
        if isinstance(instruction, Mapping):
            action = instruction.get('action')
            symbol = instruction.get('symbol')
            quantity = instruction.get('quantity')
            order_price = instruction.get('price')
        else:
            action = instruction.action
            symbol = instruction.symbol
            quantity = instruction.quantity
            order_price = instruction.price

        if not action:
            return

        try:
            side = TradeSide(str(getattr(action, 'value', action)).upper())
        except ValueError:
            self._skip(state, point, action, symbol, 'invalid_action')
            return

        price = to_float(point.prices.get(symbol)) or to_float(order_price)
        if price <= 0:
            self._skip(state, point, side, symbol, 'no_price')
            return

        quantity = to_float(quantity)
        if side == TradeSide.BUY:
            self._execute_buy(state, point, symbol, quantity, price)
        else:
            self._execute_sell(state, point, symbol, quantity, price)

    def _execute_buy(
        self,
        state: _RunState,
        point: DataPoint,
        symbol: str,
        quantity: float,
        price: float
    ) -> None:
        """Fill a BUY against run capital, merging at weighted average cost."""
        if not quantity:
            quantity = self.calculate_position_size(state.capital, price)
        if quantity <= 0:
            self._skip(state, point, TradeSide.BUY, symbol, 'invalid_quantity')
            return

        notional = quantity * price
        commission = notional * self.commission_rate
        slippage = notional * self.slippage_rate
        total_cost = notional + commission + slippage

        if total_cost > state.capital:
            self._skip(state, point, TradeSide.BUY, symbol, 'insufficient_capital')
            return

        state.capital -= total_cost

        position = state.positions.get(symbol)
        if position is not None:
            position.add(quantity, price)
        else:
            state.positions[symbol] = Position(
                symbol=symbol,
                quantity=quantity,
                average_cost=price,
                opened_at=point.timestamp,
            )

        state.trades.append(BacktestTrade(
            side=TradeSide.BUY,
            symbol=symbol,
            quantity=quantity,
            price=price,
            commission=commission,
            slippage=slippage,
            amount=total_cost,
            timestamp=point.timestamp,
        ))
        logger.debug(f"[{point.timestamp}] BUY {symbol} {quantity} @ {price}")

    def _execute_sell(
        self,
        state: _RunState,
        point: DataPoint,
        symbol: str,
        quantity: float,
        price: float
    ) -> None:
        """Fill a SELL against an open position, realising cost-basis P&L."""
        position = state.positions.get(symbol)
        if position is None:
            self._skip(state, point, TradeSide.SELL, symbol, 'no_position')
            return

        if not quantity:
            quantity = position.quantity
        if quantity <= 0:
            self._skip(state, point, TradeSide.SELL, symbol, 'invalid_quantity')
            return
        if not position.can_sell(quantity):
            self._skip(state, point, TradeSide.SELL, symbol, 'insufficient_quantity')
            return

        notional = quantity * price
        commission = notional * self.commission_rate
        slippage = notional * self.slippage_rate
        net_revenue = notional - commission - slippage
        cost_basis = position.average_cost * quantity
        profit = (price - position.average_cost) * quantity - commission - slippage

        state.capital += net_revenue

        if position.closed_by(quantity):
            del state.positions[symbol]
        else:
            position.quantity -= quantity

        state.trades.append(BacktestTrade(
            side=TradeSide.SELL,
            symbol=symbol,
            quantity=quantity,
            price=price,
            commission=commission,
            slippage=slippage,
            amount=net_revenue,
            timestamp=point.timestamp,
            profit=profit,
            profit_percent=profit / cost_basis * 100,
            hold_time=(
                point.timestamp - position.opened_at
                if position.opened_at is not None else None
            ),
        ))
        logger.debug(f"[{point.timestamp}] SELL {symbol} {quantity} @ {price} (profit={profit:,.4f})")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def calculate_position_size(self, capital: float, price: float) -> int:
        """Whole units affordable with `position_size_pct` of capital (costs excluded)."""
        if price <= 0:
            return 0
        return int(math.floor(capital * self.position_size_pct / price))

    @staticmethod
    def calculate_position_value(
        positions: Mapping[str, Position],
        prices: Mapping[str, float]
    ) -> float:
        """Mark positions to `prices`, falling back to average cost."""
        return sum(
            position.quantity * (to_float(prices.get(symbol)) or position.average_cost)
            for symbol, position in positions.items()
        )

    def get_results(self) -> Optional[PerformanceSummary]:
        return self.results

    def get_trade_history(self) -> List[BacktestTrade]:
        return list(self.trades)

    def get_trades_df(self) -> pd.DataFrame:
        """Trades of the last run as a DataFrame."""
        if not self.trades:
            return pd.DataFrame()
        return pd.DataFrame([trade.to_dict() for trade in self.trades])

    def export_results(self) -> dict:
        """Results, trades and configuration of the last run."""
        return {
            'results': self.results.to_dict() if self.results else None,
            'trades': [trade.to_dict() for trade in self.trades],
            'config': {
                'initialCapital': self.initial_capital,
                'commission': self.commission_rate,
                'slippage': self.slippage_rate,
                'positionSizePct': self.position_size_pct,
            },
        }
