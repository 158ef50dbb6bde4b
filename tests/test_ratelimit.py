"""Tests for the outbound send limiter."""

import threading
import time

import pytest

from recap.errors import TransientNetworkError
from recap.telegram import SendLimiter


class TestSendLimiter:
    """Tests for SendLimiter."""

    def test_burst_up_to_rate_is_immediate(self) -> None:
        """``rate`` sends go out without waiting."""
        limiter = SendLimiter(5)
        start = time.monotonic()

        for _ in range(5):
            limiter.acquire()

        assert time.monotonic() - start < 0.5

    def test_send_beyond_rate_waits_for_window(self) -> None:
        """The send after a full second's worth waits for the window to move."""
        limiter = SendLimiter(2)
        start = time.monotonic()

        for _ in range(3):
            limiter.acquire()

        assert time.monotonic() - start >= 0.5

    def test_shared_across_threads(self) -> None:
        """Concurrent callers share one budget."""
        limiter = SendLimiter(3)
        start = time.monotonic()

        threads = [threading.Thread(target=limiter.acquire) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert time.monotonic() - start >= 0.5

    def test_wait_longer_than_max_is_transient(self) -> None:
        """A send that would wait past max_wait fails so the caller can retry."""
        limiter = SendLimiter(1, max_wait=0.1)
        limiter.acquire()

        with pytest.raises(TransientNetworkError):
            limiter.acquire()

    def test_rejects_non_positive_rate(self) -> None:
        """A zero rate would block forever."""
        with pytest.raises(ValueError):
            SendLimiter(0)
