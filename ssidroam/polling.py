import time
from typing import Callable, TypeVar

T = TypeVar("T")


def poll_until(
    probe: Callable[[], T],
    interval: float = 1.0,
    max_attempts: int = 10,
    sleep: Callable[[float], None] = time.sleep,
    on_miss: Callable[[int], None] | None = None,
) -> T | None:
    """
    Call `probe` up to `max_attempts` times, `interval` seconds apart.
    Returns the first truthy value, or None if every attempt came back empty.
    No sleep happens after the final attempt.
    """
    for attempt in range(1, max_attempts + 1):
        value = probe()
        if value:
            return value
        if on_miss:
            on_miss(attempt)
        if attempt < max_attempts:
            sleep(interval)
    return None

