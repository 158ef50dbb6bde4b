"""Fixed-delay bounded retry used around store, platform and publishing calls."""

import time
from collections.abc import Callable
from typing import TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from recap.logging_config import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def attempt(
    fn: Callable[[], T],
    *,
    attempts: int,
    delay: float,
    description: str,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` up to ``attempts`` times, sleeping ``delay`` seconds between tries.

    The last exception is re-raised once attempts run out.
    """

    def _log_failure(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(f"{description} failed (attempt {state.attempt_number}/{attempts}): {exc}")

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_failure,
        sleep=sleep,
        reraise=True,
    )
    return retrying(fn)
