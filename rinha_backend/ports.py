"""Abstract interfaces the use cases and workers depend on."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rinha_backend.circuit_breaker import CircuitBreaker
    from rinha_backend.models import Message, Payment


class Queue(abc.ABC):
    """A queue of payment messages."""

    @abc.abstractmethod
    async def pop(self) -> Message | None:
        """Take the next message, or return None when the queue is empty."""

    @abc.abstractmethod
    async def push(self, message: Message) -> None:
        """Add a message to the queue."""


class PaymentRepository(abc.ABC):
    """Storage for processed payments."""

    @abc.abstractmethod
    async def save(self, payment: Payment) -> None:
        """Record a processed payment."""

    @abc.abstractmethod
    async def get_summary_by_group(
        self, group: str, from_ts: int, to_ts: int
    ) -> tuple[int, float]:
        """Return (request count, total amount) for a processor group in a time range."""

    @abc.abstractmethod
    async def get_payment_summary(self, group: str, payment_id: str) -> Payment:
        """Return the stored payment; raises LookupError when it is absent."""

    @abc.abstractmethod
    async def is_already_processed(self, payment_id: str) -> bool:
        """Tell whether the payment has been processed already."""

    @abc.abstractmethod
    async def clear(self) -> None:
        """Delete every stored payment."""


class PaymentRouter(abc.ABC):
    """Chooses the processor a payment should be sent to."""

    @abc.abstractmethod
    async def get_processor_for_payment(self) -> tuple[str, str, CircuitBreaker] | None:
        """Return (url, name, breaker) of a usable processor, or None."""