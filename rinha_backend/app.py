"""Service entry point: wires storage, workers and the web server together."""

from __future__ import annotations

import argparse
import asyncio
import logging

import aiohttp
from aiohttp import web
from redis.asyncio import Redis

from rinha_backend.redis_queue import PaymentQueue
from rinha_backend.redis_repository import RedisPaymentRepository
from rinha_backend.router import InMemoryPaymentRouter
from rinha_backend.settings import Config
from rinha_backend.use_cases import (
    CreatePaymentUseCase,
    GetPaymentSummaryUseCase,
    ProcessPaymentUseCase,
    PurgePaymentsUseCase,
)
from rinha_backend.web import create_app
from rinha_backend.workers import (
    payment_processing_worker,
    processor_health_monitor_worker,
)

logger = logging.getLogger(__name__)

HOST = "0.0.0.0"
PORT = 9999


async def run(config: Config) -> None:
    """Start the workers and serve HTTP on port 9999 until cancelled.

    Raises OSError when the server cannot bind its address.
    """
    redis_client = Redis.from_url(config.redis_url)
    http_session = aiohttp.ClientSession()
    tasks: list[asyncio.Task[None]] = []
    runner: web.AppRunner | None = None
    try:
        router = InMemoryPaymentRouter()
        logger.info("Starting health check worker...")
        tasks.append(
            asyncio.create_task(
                processor_health_monitor_worker(
                    router,
                    http_session,
                    config.default_payment_processor_url,
                    config.fallback_payment_processor_url,
                )
            )
        )

        logger.info("Starting payment processing worker...")
        payment_queue = PaymentQueue(redis_client)
        payment_repo = RedisPaymentRepository(redis_client)
        process_payment_use_case = ProcessPaymentUseCase(payment_repo, http_session)
        tasks.append(
            asyncio.create_task(
                payment_processing_worker(
                    payment_queue, payment_repo, process_payment_use_case, router
                )
            )
        )

        logger.info("Starting web server on %s:%s...", HOST, PORT)
        app = create_app(
            CreatePaymentUseCase(payment_queue),
            GetPaymentSummaryUseCase(payment_repo),
            PurgePaymentsUseCase(payment_repo),
        )
        runner = web.AppRunner(app, keepalive_timeout=float(config.server_keepalive))
        await runner.setup()
        site = web.TCPSite(runner, HOST, PORT)
        await site.start()
        await asyncio.Event().wait()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if runner is not None:
            await runner.cleanup()
        await http_session.close()
        await redis_client.aclose()


def main(argv: list[str] | None = None) -> int:
    """Load configuration from the environment and run the service."""
    parser = argparse.ArgumentParser(
        prog="rinha-backend",
        description="Payment intermediary service; configured via APP_* variables.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.ERROR)
    config = Config.load()
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass
    return 0