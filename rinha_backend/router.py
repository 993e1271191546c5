"""Routing of payments to the default or fallback processor."""

from __future__ import annotations

import threading

from rinha_backend.circuit_breaker import CircuitBreaker, State
from rinha_backend.models import PaymentProcessor
from rinha_backend.ports import PaymentRouter

_MAX_RESPONSE_TIME = 100


def _new_breaker() -> CircuitBreaker:
    return CircuitBreaker(
        failure_threshold=0.5, min_requests=5, success_threshold=5, cooldown=30.0
    )


class InMemoryPaymentRouter(PaymentRouter):
    """Keeps the latest processor health in memory and prefers the default processor."""

    def __init__(self) -> None:
        self.processors: dict[str, PaymentProcessor] = {}
        self._lock = threading.Lock()
        self.default_breaker = _new_breaker()
        self.fallback_breaker = _new_breaker()

    def update_processor_health(self, processor: PaymentProcessor) -> None:
        with self._lock:
            self.processors[processor.name] = processor

    def _usable(self, name: str, breaker: CircuitBreaker) -> PaymentProcessor | None:
        processor = self.processors.get(name)
        if (
            processor is not None
            and processor.health.is_healthy()
            and processor.min_response_time < _MAX_RESPONSE_TIME
            and breaker.current_state() is not State.OPEN
        ):
            return processor
        return None

    async def get_processor_for_payment(self) -> tuple[str, str, CircuitBreaker] | None:
        """Return (url, name, breaker) of the first usable processor, or None."""
        with self._lock:
            for name, breaker in (
                ("default", self.default_breaker),
                ("fallback", self.fallback_breaker),
            ):
                processor = self._usable(name, breaker)
                if processor is not None:
                    return processor.url, processor.name, breaker
        return None