"""Payment storage backed by Redis hashes and a sorted set of processed ids."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from redis.exceptions import ResponseError

from rinha_backend.models import Payment
from rinha_backend.ports import PaymentRepository
from rinha_backend.settings import PROCESSED_PAYMENTS_SET_KEY

logger = logging.getLogger(__name__)

_SUMMARY_PREFIX = "payment_summary"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def _payment_key(group: str, payment_id: str) -> str:
    return f"{_SUMMARY_PREFIX}:{group}:{payment_id}"


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def _to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _MILLISECOND


def _format_amount(amount: float) -> str:
    """Shortest decimal form without exponent, integers without a fraction."""
    value = float(amount)
    text = repr(value)
    if math.isfinite(value):
        if "e" in text or "E" in text:
            text = format(Decimal(text), "f")
        if text.endswith(".0"):
            text = text[:-2]
    return text.ljust(2)


def _parse_float(text: str) -> float | None:
    if text != text.strip():
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_seconds(text: str | None) -> datetime | None:
    if text is None:
        return None
    try:
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _lua_number(value: float) -> float:
    # Totals are rounded the way the scripting engine prints numbers.
    return float(f"{value:.14g}")


class RedisPaymentRepository(PaymentRepository):
    """Stores processed payments as ``payment_summary:<group>:<id>`` hashes."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def save(self, payment: Payment) -> None:
        """Record the payment and index it by its request time in milliseconds."""
        if payment.requested_at is None:
            raise ValueError("payment has no request time to index it by")
        payment_id = str(payment.correlation_id)
        group = payment.processed_by or ""
        key = _payment_key(group, payment_id)
        requested_ms = _to_millis(payment.requested_at)
        processed_ms = (
            "" if payment.processed_at is None else str(_to_millis(payment.processed_at))
        )
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(
                key,
                mapping={
                    "amount": _format_amount(payment.amount),
                    "requested_at": str(requested_ms),
                    "processed_at": processed_ms,
                    "processed_by": group,
                },
            )
            pipe.zadd(PROCESSED_PAYMENTS_SET_KEY, {payment_id: requested_ms})
            await pipe.execute()

    async def get_summary_by_group(
        self, group: str, from_ts: int, to_ts: int
    ) -> tuple[int, float]:
        """Count and total the group's payments whose score lies in [from_ts, to_ts]."""
        ids = await self._client.zrangebyscore(PROCESSED_PAYMENTS_SET_KEY, from_ts, to_ts)
        if not ids:
            return 0, 0.0
        async with self._client.pipeline(transaction=False) as pipe:
            for payment_id in ids:
                pipe.hget(_payment_key(group, _text(payment_id)), "amount")
            amounts = await pipe.execute()
        present = [float(_text(amount)) for amount in amounts if amount is not None]
        return len(present), _lua_number(sum(present, 0.0))

    async def get_payment_summary(self, group: str, payment_id: str) -> Payment:
        """Return the stored payment; raises LookupError when absent or unreadable."""
        key = _payment_key(group, payment_id)
        logger.debug("Retrieving payment summary for key: %s", key)
        try:
            raw = await self._client.hgetall(key)
        except ResponseError:
            raw = None
        data = {_text(k): _text(v) for k, v in (raw or {}).items()}
        amount_text = data.get("amount")
        amount = None if amount_text is None else _parse_float(amount_text)
        if amount is None:
            raise LookupError("Payment not found")
        return Payment(
            correlation_id=uuid.UUID(payment_id),
            amount=amount,
            requested_at=_parse_seconds(data.get("requested_at")),
            processed_at=_parse_seconds(data.get("processed_at")),
            processed_by=data.get("processed_by"),
        )

    async def is_already_processed(self, payment_id: str) -> bool:
        try:
            score = await self._client.zscore(PROCESSED_PAYMENTS_SET_KEY, payment_id)
        except ResponseError:
            return False
        return score is not None

    async def clear(self) -> None:
        """Delete every payment hash and the processed-payments index."""
        keys = await self._client.keys(f"{_SUMMARY_PREFIX}:*")
        if keys:
            await self._client.delete(*keys)
        await self._client.delete(PROCESSED_PAYMENTS_SET_KEY)