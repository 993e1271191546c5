"""A failure-rate circuit breaker for calls to payment processors."""

from __future__ import annotations

import enum
import threading
import time
from collections import deque
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class State(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class BreakerOpenError(Exception):
    """Raised when a call is refused because the breaker is open."""

    def __init__(self) -> None:
        super().__init__("circuit breaker is open")


class CircuitBreaker:
    """Opens when the failure rate over recent calls reaches a threshold.

    After ``cooldown`` seconds an open breaker lets calls through again
    (half-open); ``success_threshold`` successes close it, one failure reopens
    it. A breaker opened with ``force_open`` stays open until ``reset``.
    """

    def __init__(
        self,
        failure_threshold: float = 0.5,
        min_requests: int = 5,
        success_threshold: int = 5,
        cooldown: float = 30.0,
        window_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not 0.0 < failure_threshold <= 1.0:
            raise ValueError("failure_threshold must be in (0, 1]")
        if min_requests < 1 or success_threshold < 1 or window_size < min_requests:
            raise ValueError("request counts must be positive and fit the window")
        if cooldown < 0:
            raise ValueError("cooldown must not be negative")
        self._failure_threshold = failure_threshold
        self._min_requests = min_requests
        self._success_threshold = success_threshold
        self._cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._outcomes: deque[bool] = deque(maxlen=window_size)
        self._state = State.CLOSED
        self._opened_at = 0.0
        self._forced = False
        self._half_open_successes = 0

    def _refresh(self) -> State:
        if (
            self._state is State.OPEN
            and not self._forced
            and self._clock() - self._opened_at >= self._cooldown
        ):
            self._state = State.HALF_OPEN
            self._half_open_successes = 0
        return self._state

    def _open(self) -> None:
        self._state = State.OPEN
        self._opened_at = self._clock()
        self._outcomes.clear()
        self._half_open_successes = 0

    def _record(self, success: bool) -> None:
        with self._lock:
            state = self._refresh()
            if state is State.HALF_OPEN:
                if not success:
                    self._open()
                    return
                self._half_open_successes += 1
                if self._half_open_successes >= self._success_threshold:
                    self._state = State.CLOSED
                    self._outcomes.clear()
            elif state is State.CLOSED:
                self._outcomes.append(success)
                total = len(self._outcomes)
                failures = total - sum(self._outcomes)
                if total >= self._min_requests and failures / total >= self._failure_threshold:
                    self._open()

    def current_state(self) -> State:
        with self._lock:
            return self._refresh()

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` unless the breaker is open, recording its outcome.

        Raises BreakerOpenError without running it when open; errors raised by
        the operation are recorded as failures and propagated unchanged.
        """
        with self._lock:
            if self._refresh() is State.OPEN:
                raise BreakerOpenError()
        try:
            result = await operation()
        except Exception:
            self._record(False)
            raise
        self._record(True)
        return result

    def force_open(self) -> None:
        with self._lock:
            self._open()
            self._forced = True

    def reset(self) -> None:
        with self._lock:
            self._state = State.CLOSED
            self._forced = False
            self._outcomes.clear()
            self._half_open_successes = 0