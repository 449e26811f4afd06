"""Small shared helpers."""

import time
from typing import Callable

# Returns the current time as epoch milliseconds
Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def hours_to_ms(hours: float) -> int:
    return int(hours * 3600 * 1000)


def seconds_to_ms(seconds: float) -> int:
    return int(seconds * 1000)
