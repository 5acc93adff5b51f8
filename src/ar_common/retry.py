"""Bounded exponential backoff with jitter for transient partition errors."""

import asyncio
import random


def backoff_delay_ms(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Exponential backoff with ±25% jitter. attempt is 1-based."""
    if base_delay_ms <= 0:
        return 0
    delay = min(max_delay_ms, (2 ** max(0, attempt - 1)) * base_delay_ms)
    return int(delay * random.uniform(0.75, 1.25))  # nosec B311


async def sleep_backoff(attempt: int, base_delay_ms: int, max_delay_ms: int) -> None:
    delay = backoff_delay_ms(attempt, base_delay_ms, max_delay_ms)
    if delay > 0:
        await asyncio.sleep(delay / 1000)
