"""Application use cases: accept, process, summarise and purge payments."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

import aiohttp

from rinha_backend.circuit_breaker import BreakerOpenError, CircuitBreaker
from rinha_backend.dto import (
    CreatePaymentCommand,
    GetPaymentSummaryQuery,
    PaymentSummaryResult,
    PaymentsSummaryResponse,
)
from rinha_backend.models import Message, Payment
from rinha_backend.ports import PaymentRepository, Queue

logger = logging.getLogger(__name__)

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class PaymentProcessingError(Exception):
    """A payment processor could not be reached or refused the payment."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"Service error: {self.message}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CreatePaymentUseCase:
    payment_queue: Queue

    async def execute(self, command: CreatePaymentCommand) -> None:
        """Queue a new payment under its correlation id."""
        payment = Payment(correlation_id=command.correlation_id, amount=command.amount)
        await self.payment_queue.push(Message(id=command.correlation_id, body=payment))


@dataclass(frozen=True)
class GetPaymentSummaryUseCase:
    payment_repo: PaymentRepository

    async def execute(self, query: GetPaymentSummaryQuery) -> PaymentsSummaryResponse:
        """Summarise processed payments per processor group within the query window."""
        from_ts = _I64_MIN if query.from_ts is None else query.from_ts
        to_ts = _I64_MAX if query.to_ts is None else query.to_ts
        default = await self.payment_repo.get_summary_by_group("default", from_ts, to_ts)
        fallback = await self.payment_repo.get_summary_by_group("fallback", from_ts, to_ts)
        return PaymentsSummaryResponse(
            default=PaymentSummaryResult(*default),
            fallback=PaymentSummaryResult(*fallback),
        )


@dataclass(frozen=True)
class ProcessPaymentUseCase:
    payment_repo: PaymentRepository
    http_session: Any

    async def execute(
        self,
        payment: Payment,
        processor_url: str,
        processed_by: str,
        circuit_breaker: CircuitBreaker,
    ) -> bool:
        """Send the payment to a processor through its breaker and record it.

        Returns True once saved, False when the breaker refused the call;
        raises PaymentProcessingError when the processor failed.
        """
        payment = replace(payment, requested_at=_now())

        async def send() -> None:
            try:
                async with self.http_session.post(
                    f"{processor_url}/payments", json=payment.to_dict()
                ) as response:
                    status = response.status
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                raise PaymentProcessingError(str(exc)) from exc
            if not 200 <= status < 300:
                logger.error(
                    "Processor returned non-success status for %s: %s",
                    payment.correlation_id,
                    status,
                )
                raise PaymentProcessingError("Service unavailable")

        try:
            await circuit_breaker.call(send)
        except BreakerOpenError:
            return False
        except PaymentProcessingError as exc:
            logger.error("Circuit breaker prevented execution: %s", exc)
            raise

        await self.payment_repo.save(
            replace(payment, processed_at=_now(), processed_by=processed_by)
        )
        return True


@dataclass(frozen=True)
class PurgePaymentsUseCase:
    repository: PaymentRepository

    async def execute(self) -> None:
        await self.repository.clear()