"""Background workers: payment processing and processor health monitoring."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from rinha_backend.circuit_breaker import State
from rinha_backend.models import HealthStatus, Message, PaymentProcessor
from rinha_backend.ports import PaymentRepository, PaymentRouter, Queue
from rinha_backend.router import InMemoryPaymentRouter
from rinha_backend.use_cases import ProcessPaymentUseCase

logger = logging.getLogger(__name__)

_IDLE_DELAY_SECONDS = 1.0
_HEALTH_CHECK_INTERVAL_SECONDS = 5.0
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U64_MODULUS = 2**64

_REQUEST_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


async def _requeue(queue: Queue, message: Message) -> None:
    try:
        await queue.push(message)
    except Exception as exc:
        logger.error("Failed to re-queue payment: %s", exc)


async def process_next_payment(
    queue: Queue,
    payment_repo: PaymentRepository,
    process_payment_use_case: ProcessPaymentUseCase,
    router: PaymentRouter,
) -> bool:
    """Take one message from the queue and try to process it.

    Returns True when a message was taken (processed, skipped or re-queued),
    False when the queue was empty or could not be read.
    """
    try:
        message = await queue.pop()
    except Exception as exc:
        logger.error("Failed to pop from payments queue: %s", exc)
        return False
    if message is None:
        logger.info("No payments in queue, waiting...")
        return False

    logger.info("Started processing message with id '%s'", message.id)
    payment = message.body

    try:
        already_processed = await payment_repo.is_already_processed(
            str(payment.correlation_id)
        )
    except Exception as exc:
        logger.debug("Could not check whether payment was processed: %s", exc)
        already_processed = False
    if already_processed:
        logger.info("Payment already processed. Skipping it.")
        return True

    processed = False
    route = await router.get_processor_for_payment()
    if route is not None:
        processor_url, processor_name, circuit_breaker = route
        if circuit_breaker.current_state() is State.OPEN:
            logger.warning(
                "Circuit breaker for %s is open. Skipping payment processing "
                "and re-queueing.",
                processor_name,
            )
            await _requeue(queue, message)
            return True
        try:
            processed = await process_payment_use_case.execute(
                payment, processor_url, processor_name, circuit_breaker
            )
        except Exception as exc:
            logger.debug("Payment %s failed: %s", payment.correlation_id, exc)
            processed = False

    if not processed:
        logger.warning(
            "Payment %s could not be processed by any processor. Re-queueing.",
            payment.correlation_id,
        )
        await _requeue(queue, message)

    logger.info("Message with id '%s' processed.", message.id)
    return True


async def payment_processing_worker(
    queue: Queue,
    payment_repo: PaymentRepository,
    process_payment_use_case: ProcessPaymentUseCase,
    router: PaymentRouter,
) -> None:
    """Process queued payments forever, pausing whenever the queue is idle."""
    while True:
        handled = await process_next_payment(
            queue, payment_repo, process_payment_use_case, router
        )
        if not handled:
            await asyncio.sleep(_IDLE_DELAY_SECONDS)


def _failing(name: str, url: str) -> PaymentProcessor:
    return PaymentProcessor(
        name=name, url=url, health=HealthStatus.FAILING, min_response_time=0
    )


def _read_report(report: Any) -> tuple[bool, int]:
    fields = report if isinstance(report, dict) else {}
    failing = fields.get("failing")
    if not isinstance(failing, bool):
        failing = True
    response_time = fields.get("minResponseTime")
    if (
        isinstance(response_time, bool)
        or not isinstance(response_time, int)
        or not _I64_MIN <= response_time <= _I64_MAX
    ):
        response_time = 0
    # Negative times wrap around as an unsigned 64-bit value would.
    return failing, response_time % _U64_MODULUS


async def check_processor_health(
    router: InMemoryPaymentRouter, http_session: Any, name: str, url: str
) -> PaymentProcessor | None:
    """Query a processor's health endpoint and record the result in the router.

    Returns the recorded processor, or None when the response could not be read.
    """
    health_url = f"{url}/payments/service-health"
    try:
        async with http_session.get(health_url) as response:
            status = response.status
            if not 200 <= status < 300:
                logger.error(
                    "Health check for %s: %s returned non-success status", name, status
                )
                processor = _failing(name, url)
                router.update_processor_health(processor)
                return processor
            try:
                body = await response.text()
            except (*_REQUEST_ERRORS, UnicodeDecodeError) as exc:
                logger.error("Failed to parse health check response for %s: %s", name, exc)
                return None
    except _REQUEST_ERRORS as exc:
        logger.error("Failed to perform health check for %s: %s", name, exc)
        processor = _failing(name, url)
        router.update_processor_health(processor)
        return processor

    try:
        report = json.loads(body)
    except ValueError as exc:
        logger.error("Failed to parse health check response for %s: %s", name, exc)
        return None

    failing, min_response_time = _read_report(report)
    health = HealthStatus.FAILING if failing else HealthStatus.HEALTHY
    processor = PaymentProcessor(
        name=name, url=url, health=health, min_response_time=min_response_time
    )
    router.update_processor_health(processor)
    logger.info("Updated health for %s: %s", name, health)
    return processor


async def processor_health_monitor_worker(
    router: InMemoryPaymentRouter,
    http_session: Any,
    default_processor_url: str,
    fallback_processor_url: str,
) -> None:
    """Check both processors' health forever, every five seconds."""
    targets = (("default", default_processor_url), ("fallback", fallback_processor_url))
    while True:
        for name, url in targets:
            await check_processor_health(router, http_session, name, url)
        await asyncio.sleep(_HEALTH_CHECK_INTERVAL_SECONDS)