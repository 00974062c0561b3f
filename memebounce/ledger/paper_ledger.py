"""
Paper Trading Ledger

Simulated cash account for live paper trading:
- Commission and slippage are each a fixed fraction of notional, on both sides
- Buys merge into an existing position at quantity-weighted average cost
- Sells realise P&L against average cost, net of this fill's costs
- Equity is marked to cost (no live price feed is required)

Rejected orders are reported through OrderResult and never mutate state.
"""

from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Dict, List, Mapping, Optional

from loguru import logger

from config.settings import settings
from memebounce.ledger.types import EquitySample, Position, TradeSide
from memebounce.utils.clock import now_ms
from memebounce.utils.formatting import fmt_fixed, fmt_pct


class OrderError(str, Enum):
    """Reasons an order can be rejected."""
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    NO_POSITION = "NoPosition"
    INSUFFICIENT_QUANTITY = "InsufficientQuantity"


@dataclass(frozen=True)
class LedgerTrade:
    """
    A filled paper order.

    Attributes:
        id: Unique trade id within the ledger
        side: BUY or SELL
        symbol: Instrument symbol
        quantity: Units filled
        price: Fill price before costs
        commission: Commission charged on this fill
        slippage: Slippage charged on this fill
        net_amount: Cash debited (BUY) or credited (SELL)
        timestamp: Fill time in ms
        pnl: Realised profit after this fill's costs (SELL only)
        pnl_percent: pnl relative to the cost basis sold (SELL only)
    """
    id: str
    side: TradeSide
    symbol: str
    quantity: float
    price: float
    commission: float
    slippage: float
    net_amount: float
    timestamp: int
    pnl: Optional[float] = None
    pnl_percent: Optional[float] = None

    @property
    def notional(self) -> float:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'type': self.side.value,
            'symbol': self.symbol,
            'quantity': self.quantity,
            'price': self.price,
            'commission': self.commission,
            'slippage': self.slippage,
            'timestamp': self.timestamp,
        }
        if self.side == TradeSide.BUY:
            data['totalCost'] = self.net_amount
        else:
            data['netRevenue'] = self.net_amount
            data['pnl'] = self.pnl
            data['pnlPercent'] = fmt_fixed(self.pnl_percent or 0.0)
        return data


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a buy() or sell() call."""
    success: bool
    trade: Optional[LedgerTrade] = None
    error: Optional[OrderError] = None

    def to_dict(self) -> dict:
        if self.success:
            return {'success': True, 'trade': self.trade.to_dict()}
        return {'success': False, 'error': self.error.value}


@dataclass(frozen=True)
class LedgerPerformance:
    """Account performance derived from the trade log and current equity."""
    initial_balance: float
    current_equity: float
    total_pnl: float
    return_percent: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float  # 0.0 when no SELL has a non-zero pnl

    def to_dict(self) -> dict:
        return {
            'initialBalance': self.initial_balance,
            'currentEquity': self.current_equity,
            'totalPnL': self.total_pnl,
            'returnPercent': fmt_pct(self.return_percent),
            'totalTrades': self.total_trades,
            'winningTrades': self.winning_trades,
            'losingTrades': self.losing_trades,
            'winRate': (
                fmt_pct(self.win_rate) if self.winning_trades + self.losing_trades else '0%'
            ),
        }


class PaperLedger:
    """
    Paper trading account holding cash and open positions.

    Not thread-safe: callers feeding orders from several tasks must
    serialise access to a ledger instance.
    """

    def __init__(
        self,
        initial_balance: float = None,
        commission_rate: float = None,
        slippage_rate: float = None
    ):
        """
        Initialize paper ledger.

        Args:
            initial_balance: Starting cash (default from settings)
            commission_rate: Commission as a fraction of notional (default from settings)
            slippage_rate: Slippage as a fraction of notional (default from settings)
        """
        self.initial_balance = initial_balance or settings.INITIAL_BALANCE
        self.commission_rate = commission_rate if commission_rate is not None else settings.COMMISSION_RATE
        self.slippage_rate = slippage_rate if slippage_rate is not None else settings.SLIPPAGE_RATE

        self.balance: float = self.initial_balance
        self.positions: Dict[str, Position] = {}
        self.trades: List[LedgerTrade] = []
        self.equity: List[EquitySample] = []
        self._trade_seq = count(1)

        logger.info(
            f"PaperLedger initialized: balance={self.initial_balance:,.2f}, "
            f"commission={self.commission_rate:.2%}, slippage={self.slippage_rate:.2%}"
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _costs(self, notional: float):
        return notional * self.commission_rate, notional * self.slippage_rate

    def _next_trade_id(self, timestamp: int) -> str:
        return f"TRADE_{timestamp}_{next(self._trade_seq)}"

    @staticmethod
    def _check_order(quantity: float, price: float) -> None:
        if quantity <= 0:
            raise ValueError(f"Order quantity must be positive, got {quantity}")
        if price <= 0:
            raise ValueError(f"Order price must be positive, got {price}")

    def buy(
        self,
        symbol: str,
        quantity: float,
        price: float,
        timestamp: Optional[int] = None
    ) -> OrderResult:
        """
        Buy `quantity` units of `symbol` at `price`.

        Returns:
            OrderResult with the trade, or INSUFFICIENT_BALANCE when
            notional plus costs exceeds the cash balance.
        """
        self._check_order(quantity, price)
        timestamp = timestamp if timestamp is not None else now_ms()

        notional = quantity * price
        commission, slippage = self._costs(notional)
        total_cost = notional + commission + slippage

        if total_cost > self.balance:
            logger.warning(
                f"Buy rejected: {symbol} {quantity} @ {price} costs {total_cost:,.2f}, "
                f"balance {self.balance:,.2f}"
            )
            return OrderResult(success=False, error=OrderError.INSUFFICIENT_BALANCE)

        self.balance -= total_cost

        position = self.positions.get(symbol)
        if position is not None:
            position.add(quantity, price)
        else:
            self.positions[symbol] = Position(
                symbol=symbol,
                quantity=quantity,
                average_cost=price,
                opened_at=timestamp,
            )

        trade = LedgerTrade(
            id=self._next_trade_id(timestamp),
            side=TradeSide.BUY,
            symbol=symbol,
            quantity=quantity,
            price=price,
            commission=commission,
            slippage=slippage,
            net_amount=total_cost,
            timestamp=timestamp,
        )
        self.trades.append(trade)
        self._record_equity(timestamp)

        logger.debug(f"BUY {symbol} {quantity} @ {price} (cost={total_cost:,.4f})")
        return OrderResult(success=True, trade=trade)

    def sell(
        self,
        symbol: str,
        quantity: float,
        price: float,
        timestamp: Optional[int] = None
    ) -> OrderResult:
        """
        Sell `quantity` units of an open position at `price`.

        Returns:
            OrderResult with the trade, NO_POSITION when nothing is held in
            `symbol`, or INSUFFICIENT_QUANTITY when selling more than held.
        """
        self._check_order(quantity, price)
        timestamp = timestamp if timestamp is not None else now_ms()

        position = self.positions.get(symbol)
        if position is None:
            logger.warning(f"Sell rejected: no position in {symbol}")
            return OrderResult(success=False, error=OrderError.NO_POSITION)
        if not position.can_sell(quantity):
            logger.warning(
                f"Sell rejected: {symbol} {quantity} requested, {position.quantity} held"
            )
            return OrderResult(success=False, error=OrderError.INSUFFICIENT_QUANTITY)

        notional = quantity * price
        commission, slippage = self._costs(notional)
        net_revenue = notional - commission - slippage
        cost_basis = position.average_cost * quantity
        pnl = (price - position.average_cost) * quantity - commission - slippage

        self.balance += net_revenue

        if position.closed_by(quantity):
            del self.positions[symbol]
        else:
            position.quantity -= quantity

        trade = LedgerTrade(
            id=self._next_trade_id(timestamp),
            side=TradeSide.SELL,
            symbol=symbol,
            quantity=quantity,
            price=price,
            commission=commission,
            slippage=slippage,
            net_amount=net_revenue,
            timestamp=timestamp,
            pnl=pnl,
            pnl_percent=pnl / cost_basis * 100,
        )
        self.trades.append(trade)
        self._record_equity(timestamp)

        logger.debug(f"SELL {symbol} {quantity} @ {price} (pnl={pnl:,.4f})")
        return OrderResult(success=True, trade=trade)

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    def calculate_position_value(self, prices: Optional[Mapping[str, float]] = None) -> float:
        """
        Value open positions.

        Args:
            prices: Optional mark prices by symbol; positions without a
                price are valued at average cost.
        """
        prices = prices or {}
        return sum(
            position.quantity * (prices.get(symbol) or position.average_cost)
            for symbol, position in self.positions.items()
        )

    def total_equity(self) -> float:
        """Cash plus positions marked to cost."""
        return self.balance + self.calculate_position_value()

    def _record_equity(self, timestamp: int) -> None:
        self.equity.append(EquitySample(timestamp=timestamp, equity=self.total_equity()))

    def get_account(self) -> dict:
        """Current account snapshot."""
        position_value = self.calculate_position_value()
        return {
            'balance': self.balance,
            'positionValue': position_value,
            'totalEquity': self.balance + position_value,
            'positions': len(self.positions),
            'trades': len(self.trades),
        }

    def get_performance(self) -> LedgerPerformance:
        """Derive performance from the trade log; does not mutate state."""
        current_equity = self.total_equity()
        total_pnl = current_equity - self.initial_balance

        sells = [t for t in self.trades if t.side == TradeSide.SELL]
        winners = sum(1 for t in sells if t.pnl > 0)
        losers = sum(1 for t in sells if t.pnl < 0)
        decided = winners + losers

        return LedgerPerformance(
            initial_balance=self.initial_balance,
            current_equity=current_equity,
            total_pnl=total_pnl,
            return_percent=total_pnl / self.initial_balance * 100,
            total_trades=len(self.trades),
            winning_trades=winners,
            losing_trades=losers,
            win_rate=winners / decided * 100 if decided else 0.0,
        )

    def reset(self) -> None:
        """Return to the initial cash balance with no positions or history."""
        self.balance = self.initial_balance
        self.positions = {}
        self.trades = []
        self.equity = []
        self._trade_seq = count(1)
