"""Millisecond wall-clock helper."""

import time


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)
