"""HTTP interface: payment intake, payment summary and purge endpoints."""

from __future__ import annotations

import enum
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Any, Mapping

from aiohttp import web

from rinha_backend.dto import CreatePaymentCommand, GetPaymentSummaryQuery
from rinha_backend.use_cases import (
    CreatePaymentUseCase,
    GetPaymentSummaryUseCase,
    PurgePaymentsUseCase,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECOND = timedelta(seconds=1)

CREATE_PAYMENT_KEY = web.AppKey("create_payment_use_case", CreatePaymentUseCase)
GET_PAYMENT_SUMMARY_KEY = web.AppKey(
    "get_payment_summary_use_case", GetPaymentSummaryUseCase
)
PURGE_PAYMENTS_KEY = web.AppKey("purge_payments_use_case", PurgePaymentsUseCase)


class ApiError(enum.Enum):
    """Errors reported to HTTP clients as JSON bodies."""

    DATABASE_CONNECTION_ERROR = (
        "Could not connect to the database.",
        "Insufficient Storage",
        HTTPStatus.INSUFFICIENT_STORAGE,
    )
    TRANSACTION_ERROR = (
        "Could not perform this operation.",
        "Unprocessable Entity",
        HTTPStatus.UNPROCESSABLE_ENTITY,
    )
    BAD_CLIENT_DATA_ERROR = (
        "Request data is invalid.",
        "Bad request",
        HTTPStatus.BAD_REQUEST,
    )
    INTERNAL_SERVER_ERROR = (
        "Internal server error.",
        "Internal Server Error",
        HTTPStatus.INTERNAL_SERVER_ERROR,
    )

    def __init__(self, description: str, title_text: str, status: HTTPStatus) -> None:
        self.description = description
        self.title_text = title_text
        self.status = status

    def __str__(self) -> str:
        return self.description

    def title(self) -> str:
        return self.title_text

    def status_code(self) -> int:
        return int(self.status)

    def to_response(self) -> web.Response:
        code = self.status_code()
        return web.json_response(
            {"statusCode": code, "error": str(self), "message": self.title()},
            status=code,
        )


@dataclass(frozen=True)
class PaymentRequest:
    """Body of a payment submission."""

    correlation_id: uuid.UUID
    amount: float

    @classmethod
    def from_dict(cls, data: Any) -> PaymentRequest:
        """Parse a decoded JSON body; raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("payment request must be a JSON object")
        try:
            raw_id = data["correlationId"]
            amount = data["amount"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None
        if not isinstance(raw_id, str):
            raise ValueError("correlationId must be a string")
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError("amount must be a number")
        return cls(correlation_id=uuid.UUID(raw_id), amount=float(amount))

    def to_dict(self) -> dict[str, Any]:
        return {"correlationId": str(self.correlation_id), "amount": self.amount}


def _parse_moment(text: str) -> datetime:
    try:
        millis = int(text)
    except ValueError:
        pass
    else:
        return _EPOCH + timedelta(milliseconds=millis)
    candidate = text.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(candidate)
    except ValueError:
        # An unescaped "+" in a query string arrives as a space.
        try:
            moment = datetime.fromisoformat(candidate.replace(" ", "+"))
        except ValueError:
            raise ValueError(f"invalid timestamp: {text!r}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _to_seconds(moment: datetime) -> int:
    return (moment - _EPOCH) // _SECOND


@dataclass(frozen=True)
class PaymentsSummaryFilter:
    """Optional time window of a summary request."""

    from_: datetime | None = None
    to: datetime | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> PaymentsSummaryFilter:
        """Read ``from``/``to`` as epoch milliseconds or ISO 8601; raises ValueError."""
        start = query.get("from")
        end = query.get("to")
        return cls(
            from_=None if start is None else _parse_moment(start),
            to=None if end is None else _parse_moment(end),
        )

    def to_query(self) -> GetPaymentSummaryQuery:
        return GetPaymentSummaryQuery(
            from_ts=None if self.from_ is None else _to_seconds(self.from_),
            to_ts=None if self.to is None else _to_seconds(self.to),
        )


async def payments(request: web.Request) -> web.Response:
    """Accept a payment and queue it for processing."""
    try:
        payload = PaymentRequest.from_dict(json.loads(await request.text()))
    except ValueError:
        return ApiError.BAD_CLIENT_DATA_ERROR.to_response()

    command = CreatePaymentCommand(
        correlation_id=payload.correlation_id, amount=payload.amount
    )
    try:
        await request.app[CREATE_PAYMENT_KEY].execute(command)
    except Exception as exc:
        logger.warning("Error processing payment: %r", exc)
        return ApiError.INTERNAL_SERVER_ERROR.to_response()

    logger.info("Payment received and queued: %s", payload.correlation_id)
    return web.json_response({"payment": payload.to_dict(), "status": "queued"})


async def payments_summary(request: web.Request) -> web.Response:
    """Report totals of processed payments per processor."""
    try:
        summary_filter = PaymentsSummaryFilter.from_query(request.query)
    except ValueError:
        return ApiError.BAD_CLIENT_DATA_ERROR.to_response()
    try:
        summary = await request.app[GET_PAYMENT_SUMMARY_KEY].execute(
            summary_filter.to_query()
        )
    except Exception as exc:
        logger.error("Error getting payment summary: %r", exc)
        return ApiError.INTERNAL_SERVER_ERROR.to_response()
    return web.json_response(summary.to_dict())


async def payments_purge(request: web.Request) -> web.Response:
    """Delete every stored payment."""
    logger.info("Received request to purge payments")
    try:
        await request.app[PURGE_PAYMENTS_KEY].execute()
    except Exception as exc:
        logger.error("Failed to purge payments: %s", exc)
        return web.Response(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            text=f"Failed to purge payments: {exc}",
        )
    logger.info("Payments purged successfully")
    return web.Response(text="Payments purged successfully")


def create_app(
    create_payment_use_case: CreatePaymentUseCase,
    get_payment_summary_use_case: GetPaymentSummaryUseCase,
    purge_payments_use_case: PurgePaymentsUseCase,
) -> web.Application:
    """Build the web application around the given use cases."""
    app = web.Application()
    app[CREATE_PAYMENT_KEY] = create_payment_use_case
    app[GET_PAYMENT_SUMMARY_KEY] = get_payment_summary_use_case
    app[PURGE_PAYMENTS_KEY] = purge_payments_use_case
    app.router.add_post("/payments", payments)
    app.router.add_get("/payments-summary", payments_summary)
    app.router.add_post("/purge-payments", payments_purge)
    return app