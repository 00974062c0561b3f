"""Paper trading ledger and shared position/equity records."""

from .types import EquitySample, Position, TradeSide
from .paper_ledger import (
    LedgerPerformance,
    LedgerTrade,
    OrderError,
    OrderResult,
    PaperLedger,
)

__all__ = [
    'EquitySample',
    'Position',
    'TradeSide',
    'LedgerPerformance',
    'LedgerTrade',
    'OrderError',
    'OrderResult',
    'PaperLedger',
]
