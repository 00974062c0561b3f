"""Wire-format helpers for records consumed by dashboards and overlays.

Downstream renderers expect fixed-decimal strings (``"12.34"``) and
percentages with a trailing ``%`` (``"12.34%"``). These helpers are for
serialisation only and are never used in trading arithmetic.
"""

import math
from typing import Any


def fmt_fixed(value: float, decimals: int = 2) -> str:
    """Format a number with a fixed number of decimals."""
    return f"{float(value):.{decimals}f}"


def fmt_pct(value: float, decimals: int = 2) -> str:
    """Format a percentage value (already scaled to 0-100) with a trailing '%'."""
    return f"{fmt_fixed(value, decimals)}%"


def to_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a loosely typed value to float.

    Strings such as ``"12.5"`` are parsed; None, unparseable input, NaN and
    infinities all collapse to ``default``.
    """
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result
