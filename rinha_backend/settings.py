"""Runtime configuration and Redis key names."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping

PAYMENTS_QUEUE_KEY = "payments_queue"
PROCESSED_PAYMENTS_SET_KEY = "processed_payments"
DEFAULT_PAYMENT_SUMMARY_KEY = "payment_summary:default"
FALLBACK_PAYMENT_SUMMARY_KEY = "payment_summary:fallback"

_ENV_PREFIX = "APP_"


@dataclass(frozen=True)
class Config:
    """Service settings, read from ``APP_``-prefixed environment variables."""

    redis_url: str
    default_payment_processor_url: str
    fallback_payment_processor_url: str
    server_keepalive: int

    @classmethod
    def load(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Load settings from ``environ`` (the process environment by default).

        Raises ValueError when a setting is missing or malformed.
        """
        source = os.environ if environ is None else environ
        values = {
            key[len(_ENV_PREFIX):].lower(): value
            for key, value in source.items()
            if key.upper().startswith(_ENV_PREFIX)
        }
        missing = [f.name for f in fields(cls) if f.name not in values]
        if missing:
            raise ValueError(f"missing configuration field(s): {', '.join(missing)}")
        try:
            keepalive = int(values["server_keepalive"])
        except ValueError:
            raise ValueError("server_keepalive must be an integer") from None
        if keepalive < 0:
            raise ValueError("server_keepalive must not be negative")
        return cls(
            redis_url=values["redis_url"],
            default_payment_processor_url=values["default_payment_processor_url"],
            fallback_payment_processor_url=values["fallback_payment_processor_url"],
            server_keepalive=keepalive,
        )