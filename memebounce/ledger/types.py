"""Record types shared by the paper ledger and the backtest runner."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Tolerance for treating a sell as closing the whole position
QUANTITY_REL_TOL = 1e-9
QUANTITY_ABS_TOL = 1e-12


class TradeSide(str, Enum):
    """Order direction."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Position:
    """
    An open long position.

    Quantity is always > 0 while the position exists; the owner removes
    the position instead of leaving a zero-quantity entry.
    """
    symbol: str
    quantity: float
    average_cost: float
    opened_at: Optional[int] = None

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost

    def closed_by(self, quantity: float) -> bool:
        """Whether selling `quantity` empties the position, ignoring float residue."""
        return math.isclose(quantity, self.quantity, rel_tol=QUANTITY_REL_TOL, abs_tol=QUANTITY_ABS_TOL)

    def can_sell(self, quantity: float) -> bool:
        return quantity <= self.quantity or self.closed_by(quantity)

    def add(self, quantity: float, price: float) -> None:
        """Merge a fill using a quantity-weighted average cost."""
        total_quantity = self.quantity + quantity
        self.average_cost = (self.average_cost * self.quantity + price * quantity) / total_quantity
        self.quantity = total_quantity

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'quantity': self.quantity,
            'averagePrice': self.average_cost,
            'entryTime': self.opened_at,
        }


@dataclass(frozen=True)
class EquitySample:
    """Account equity at a point in time."""
    timestamp: Optional[int]
    equity: float
