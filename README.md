# rinha-backend

An asynchronous HTTP service that accepts payment requests, queues them in
Redis and forwards them to one of two external payment processors, a
*default* and a *fallback*.

- A health monitor (`rinha_backend.workers.processor_health_monitor_worker`)
  requests `<processor url>/payments/service-health` for both processors
  every five seconds and records the result in an in-memory router. A
  processor is marked failing when the request fails, the status is not 2xx,
  or the report's `failing` field is not `false`.
- A payment worker (`rinha_backend.workers.payment_processing_worker`) takes
  queued payments one at a time. Payments already recorded as processed are
  skipped. Otherwise the router (`rinha_backend.router.InMemoryPaymentRouter`)
  picks the default processor if it is healthy, its `minResponseTime` is
  below 100 and its circuit breaker is not open, then the fallback under the
  same conditions. The payment is posted to `<processor url>/payments`; on
  success it is stored in Redis, and in every other case it is put back on
  the queue.
- Each processor has its own circuit breaker
  (`rinha_backend.circuit_breaker.CircuitBreaker`): it opens once at least 5
  recent calls show a failure rate of 50 % or more, lets calls through again
  after 30 seconds, and closes after 5 successes in a row.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Settings are read from environment variables with the `APP_` prefix
(`rinha_backend.settings.Config.load`); all four are required, and a missing
or malformed one raises `ValueError`:

| Variable                             | Meaning                                              |
|--------------------------------------|------------------------------------------------------|
| `APP_REDIS_URL`                      | Redis connection URL, e.g. `redis://localhost:6379/` |
| `APP_DEFAULT_PAYMENT_PROCESSOR_URL`  | Base URL of the default processor                    |
| `APP_FALLBACK_PAYMENT_PROCESSOR_URL` | Base URL of the fallback processor                   |
| `APP_SERVER_KEEPALIVE`               | HTTP keep-alive timeout, in seconds (non-negative)   |

## Running

```
rinha-backend
```

The server listens on `0.0.0.0:9999` and runs both workers alongside it
until interrupted.

## HTTP API

### `POST /payments`

```json
{"correlationId": "4a7901b8-7d26-4d9d-aa19-4dc1c7cf60b3", "amount": 19.90}
```

The payment is queued and echoed back:

```json
{"payment": {"correlationId": "4a7901b8-7d26-4d9d-aa19-4dc1c7cf60b3", "amount": 19.9}, "status": "queued"}
```

A malformed body gets a 400 reply and a failure to reach the queue a 500
reply, both as JSON error bodies of the form
`{"statusCode": ..., "error": ..., "message": ...}`.

### `GET /payments-summary?from=...&to=...`

Both parameters are optional. Each accepts either an integer Unix timestamp
in milliseconds or an ISO 8601 date-time; an unreadable value gets a 400
reply. The bounds are passed on as whole seconds since the epoch and compared
with the scores of the processed-payment index in Redis. The reply totals the
processed payments per processor:

```json
{
  "default":  {"total_requests": 2, "total_amount": 3000.59},
  "fallback": {"total_requests": 1, "total_amount": 500.42}
}
```

### `POST /purge-payments`

Deletes every `payment_summary:*` record and the `processed_payments` index,
replying with plain text.

## Redis layout

| Key                                  | Contents                                                   |
|--------------------------------------|------------------------------------------------------------|
| `payments_queue`                     | List of queued payment messages (JSON)                     |
| `payment_summary:<group>:<id>`       | Hash with `amount`, `requested_at`, `processed_at`, `processed_by` |
| `processed_payments`                 | Sorted set of payment ids scored by request time in ms     |

## Using it as a library

```python
import asyncio

from rinha_backend.app import run
from rinha_backend.settings import Config

asyncio.run(run(Config.load()))
```

`rinha_backend.web.create_app` builds the aiohttp application from the three
use cases `CreatePaymentUseCase`, `GetPaymentSummaryUseCase` and
`PurgePaymentsUseCase` in `rinha_backend.use_cases`. The storage and queue
classes (`rinha_backend.redis_repository.RedisPaymentRepository`,
`rinha_backend.redis_queue.PaymentQueue`) take a `redis.asyncio.Redis`
client and implement the abstract interfaces in `rinha_backend.ports`.
`rinha_backend.workers.process_next_payment` and
`rinha_backend.workers.check_processor_health` perform a single step of each
worker loop.

## Limitations

Processor health and circuit-breaker state live only in the memory of one
process; several instances of the service do not share them. The service
has no authentication of its own.