"""Utility modules for the bounce trading system."""

from .formatting import fmt_fixed, fmt_pct, to_float
from .logger import get_logger

__all__ = [
    "fmt_fixed",
    "fmt_pct",
    "to_float",
    "get_logger",
]
