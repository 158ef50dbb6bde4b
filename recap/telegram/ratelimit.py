"""Outbound send limiter shared by every concurrent recap run."""

from pyrate_limiter import Duration, InMemoryBucket, Limiter, Rate

from recap.errors import TransientNetworkError

BUCKET_NAME = "telegram-sends"


class SendLimiter:
    """Blocking limiter: at most ``rate_per_second`` sends in any one-second window.

    Callers block until a slot frees up. A wait longer than ``max_wait``
    seconds is reported as a transient failure so the caller can retry.
    """

    def __init__(self, rate_per_second: int, max_wait: float = 30.0):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self.rate_per_second = rate_per_second
        self._limiter = Limiter(
            InMemoryBucket([Rate(rate_per_second, Duration.SECOND)]),
            raise_when_fail=False,
            max_delay=int(max_wait * 1000),
        )

    def acquire(self) -> None:
        """Block until a send is allowed."""
        if not self._limiter.try_acquire(BUCKET_NAME):
            raise TransientNetworkError(f"send limiter wait exceeded ({self.rate_per_second}/s)")
