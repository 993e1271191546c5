"""Payment queue stored in a Redis list."""

from __future__ import annotations

from typing import Any

from rinha_backend.models import Message
from rinha_backend.ports import Queue
from rinha_backend.settings import PAYMENTS_QUEUE_KEY

_POP_TIMEOUT_SECONDS = 1


class PaymentQueue(Queue):
    """FIFO queue: messages are pushed on the left and popped from the right."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def pop(self) -> Message | None:
        """Wait up to a second for a message; raises ValueError if it is malformed."""
        popped = await self._client.brpop(PAYMENTS_QUEUE_KEY, timeout=_POP_TIMEOUT_SECONDS)
        if popped is None:
            return None
        _queue_name, raw = popped
        text = raw.decode() if isinstance(raw, bytes) else raw
        return Message.from_json(text)

    async def push(self, message: Message) -> None:
        await self._client.lpush(PAYMENTS_QUEUE_KEY, message.to_json())