import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Server wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_day(ms: int) -> str:
    """ISO date (UTC) for an epoch-ms instant, used to key daily counters."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
