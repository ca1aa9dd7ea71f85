"""Retry with exponential backoff for flaky upstream calls (search API, SMTP)."""
from __future__ import annotations

import functools
import random
import time
from typing import Any, Callable, Iterator, Tuple, Type

from jobdigest.log import get_logger

log = get_logger(__name__)


def backoff_delays(
    attempts: int,
    base_delay: float,
    max_delay: float = 30.0,
    factor: float = 2.0,
    jitter: bool = True,
) -> Iterator[float]:
    """Pause before each retry: base, base*factor, ..., capped at max_delay."""
    for n in range(attempts - 1):
        delay = min(base_delay * factor**n, max_delay)
        yield delay * (0.5 + random.random()) if jitter else delay


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator. Exceptions outside ``retryable`` propagate on the first attempt;
    the last retryable one is re-raised once attempts run out.
    """

    def decorator(fn: Callable) -> Callable:
        name = getattr(fn, "__qualname__", repr(fn))

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(max_attempts, base_delay, max_delay, backoff_factor, jitter)
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    delay = next(delays, None)
                    if delay is None:
                        log.warning("%s gave up after %d attempt(s): %s", name, attempt, exc)
                        raise
                    log.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        name, attempt, max_attempts, exc, delay,
                    )
                    sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
