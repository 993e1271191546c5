"""Commands, queries and results exchanged with the use cases."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class CreatePaymentCommand:
    correlation_id: uuid.UUID
    amount: float


@dataclass(frozen=True)
class GetPaymentSummaryQuery:
    """Time window of a summary; bounds are timestamps, None means unbounded."""

    from_ts: int | None = None
    to_ts: int | None = None


@dataclass(frozen=True)
class PaymentSummaryResult:
    total_requests: int
    total_amount: float

    def to_dict(self) -> dict[str, Any]:
        """Totals of one processor group as a JSON-ready mapping."""
        return asdict(self)


@dataclass(frozen=True)
class PaymentsSummaryResponse:
    default: PaymentSummaryResult
    fallback: PaymentSummaryResult

    def to_dict(self) -> dict[str, Any]:
        """Totals of both processor groups, nested by group name."""
        return {name: result.to_dict() for name, result in vars(self).items()}