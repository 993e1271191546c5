"""Domain models: payments, processors, their health and queue messages."""

from __future__ import annotations

import enum
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


class HealthStatus(enum.Enum):
    """Health of a payment processor as reported by its health endpoint."""

    HEALTHY = "healthy"
    FAILING = "failing"
    SLOW = "slow"

    def is_healthy(self) -> bool:
        return self is HealthStatus.HEALTHY


def _to_seconds(moment: datetime) -> int:
    return int(moment.timestamp() // 1)


def _from_seconds(value: Any, field_name: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer timestamp in seconds")
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass
class Payment:
    """A payment request, optionally annotated with its processing outcome."""

    correlation_id: uuid.UUID
    amount: float
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    processed_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-ready dict; unset optional fields are omitted."""
        data: dict[str, Any] = {
            "correlation_id": str(self.correlation_id),
            "amount": self.amount,
        }
        if self.requested_at is not None:
            data["requested_at"] = _to_seconds(self.requested_at)
        if self.processed_at is not None:
            data["processed_at"] = _to_seconds(self.processed_at)
        if self.processed_by is not None:
            data["processed_by"] = self.processed_by
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Payment:
        """Build a payment from a decoded JSON object; raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("payment must be a JSON object")
        try:
            raw_id = data["correlation_id"]
            amount = data["amount"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None
        if not isinstance(raw_id, str):
            raise ValueError("correlation_id must be a string")
        correlation_id = uuid.UUID(raw_id)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError("amount must be a number")
        processed_by = data.get("processed_by")
        if processed_by is not None and not isinstance(processed_by, str):
            raise ValueError("processed_by must be a string")
        return cls(
            correlation_id=correlation_id,
            amount=float(amount),
            requested_at=_from_seconds(data.get("requested_at"), "requested_at"),
            processed_at=_from_seconds(data.get("processed_at"), "processed_at"),
            processed_by=processed_by,
        )


@dataclass
class PaymentProcessor:
    """A known payment processor and its most recent health report."""

    name: str
    url: str
    health: HealthStatus
    min_response_time: int


@dataclass
class Message:
    """A queued payment, tagged with a message id."""

    id: uuid.UUID
    body: Payment

    def to_json(self) -> str:
        return json.dumps({"id": str(self.id), "body": self.body.to_dict()})

    @classmethod
    def from_json(cls, text: str) -> Message:
        """Decode a message; raises ValueError on anything malformed."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid message: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        try:
            raw_id = data["id"]
            body = data["body"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None
        if not isinstance(raw_id, str):
            raise ValueError("id must be a string")
        return cls(id=uuid.UUID(raw_id), body=Payment.from_dict(body))