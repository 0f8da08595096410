"""
Wall clock used by the trackers
"""
import time
from typing import Callable

Clock = Callable[[], float]


def now_ms() -> float:
    """Current wall-clock time in milliseconds"""
    return time.time() * 1000
