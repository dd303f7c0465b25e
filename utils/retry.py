"""Backoff helpers for operations that lose optimistic-concurrency races."""
import functools
import random
import time
from typing import Any, Callable, Optional, Tuple, Type, Union

from constants import MAX_RETRY_ATTEMPTS, RETRY_BACKOFF_FACTOR, RETRY_INITIAL_DELAY
from logging_config import get_logger

logger = get_logger(__name__)

# Writers racing for the same trip or damage list only need a short pause
MAX_RETRY_DELAY = 2.0


def exponential_backoff(
    attempt: int,
    base_delay: float = RETRY_INITIAL_DELAY,
    backoff_factor: float = RETRY_BACKOFF_FACTOR,
    max_delay: float = MAX_RETRY_DELAY,
    jitter: bool = True
) -> float:
    """
    Seconds to wait before retry number ``attempt`` (0 for the first retry).

    With jitter the delay is spread by up to 25% either way so that two
    drivers' phones that collided once do not collide again in lockstep.
    """
    delay = min(base_delay * backoff_factor ** attempt, max_delay)
    if jitter:
        delay *= random.uniform(0.75, 1.25)
    return max(0.0, delay)


def retry_with_backoff(
    max_attempts: Union[int, Callable[[], int], None] = None,
    base_delay: float = RETRY_INITIAL_DELAY,
    backoff_factor: float = RETRY_BACKOFF_FACTOR,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None
):
    """
    Re-run the decorated call when it raises one of ``exceptions``.

    Args:
        max_attempts: Total tries including the first. A zero-argument
            callable is read on every call, so a setting can be changed
            without re-importing the module. Defaults to MAX_RETRY_ATTEMPTS.
        base_delay: Delay before the first retry
        backoff_factor: Growth of the delay per retry
        exceptions: Exception types worth retrying; anything else propagates
        on_retry: Called with (error, attempt) before sleeping. Its own
            failures are logged and do not stop the retry.

    The last error is re-raised unchanged once attempts run out.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            if callable(max_attempts):
                attempts = max_attempts()
            else:
                attempts = max_attempts or MAX_RETRY_ATTEMPTS
            attempts = max(1, attempts)

            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt >= attempts:
                        logger.error(
                            "Giving up after repeated failures",
                            function=func.__name__,
                            attempts=attempts,
                            error=str(e),
                        )
                        raise

                    delay = exponential_backoff(attempt - 1, base_delay=base_delay, backoff_factor=backoff_factor)
                    logger.warning(
                        "Retrying after failure",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=attempts,
                        delay_seconds=round(delay, 3),
                        error=str(e),
                    )
                    if on_retry:
                        try:
                            on_retry(e, attempt)
                        except Exception as callback_error:
                            logger.error("Retry callback failed", error=str(callback_error))
                    time.sleep(delay)

        return wrapper
    return decorator
