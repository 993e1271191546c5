import json
import uuid
from datetime import datetime, timezone

import pytest
from aiohttp.test_utils import TestClient, TestServer

from rinha_backend.models import Payment
from rinha_backend.ports import PaymentRepository, Queue
from rinha_backend.use_cases import (
    CreatePaymentUseCase,
    GetPaymentSummaryUseCase,
    PurgePaymentsUseCase,
)
from rinha_backend.web import ApiError, PaymentRequest, PaymentsSummaryFilter, create_app


class _MemoryQueue(Queue):
    def __init__(self):
        self.messages = []

    async def pop(self):
        return self.messages.pop(0) if self.messages else None

    async def push(self, message):
        self.messages.append(message)


class _BrokenQueue(Queue):
    async def pop(self):
        raise ConnectionError("redis is down")

    async def push(self, message):
        raise ConnectionError("redis is down")


class _MemoryRepository(PaymentRepository):
    def __init__(self, totals=None, fail=False):
        self.totals = totals or {}
        self.fail = fail
        self.calls = []
        self.payments = {}

    async def save(self, payment):
        self.payments[str(payment.correlation_id)] = payment

    async def get_summary_by_group(self, group, from_ts, to_ts):
        if self.fail:
            raise ConnectionError("redis is down")
        self.calls.append((group, from_ts, to_ts))
        return self.totals.get(group, (0, 0.0))

    async def get_payment_summary(self, group, payment_id):
        try:
            return self.payments[payment_id]
        except KeyError:
            raise LookupError("Payment not found") from None

    async def is_already_processed(self, payment_id):
        return payment_id in self.payments

    async def clear(self):
        if self.fail:
            raise ConnectionError("redis is down")
        self.payments.clear()


def _app(queue=None, repo=None):
    queue = queue if queue is not None else _MemoryQueue()
    repo = repo if repo is not None else _MemoryRepository()
    return create_app(
        CreatePaymentUseCase(queue),
        GetPaymentSummaryUseCase(repo),
        PurgePaymentsUseCase(repo),
    )


@pytest.mark.parametrize(
    "error, title, status",
    [
        (ApiError.DATABASE_CONNECTION_ERROR, "Insufficient Storage", 507),
        (ApiError.TRANSACTION_ERROR, "Unprocessable Entity", 422),
        (ApiError.BAD_CLIENT_DATA_ERROR, "Bad request", 400),
        (ApiError.INTERNAL_SERVER_ERROR, "Internal Server Error", 500),
    ],
)
def test_api_error_title_and_status(error, title, status):
    assert error.title() == title
    assert error.status_code() == status
    response = error.to_response()
    assert response.status == status
    body = json.loads(response.text)
    assert body == {"statusCode": status, "error": str(error), "message": title}


@pytest.mark.parametrize(
    "error, text",
    [
        (ApiError.DATABASE_CONNECTION_ERROR, "Could not connect to the database."),
        (ApiError.TRANSACTION_ERROR, "Could not perform this operation."),
        (ApiError.BAD_CLIENT_DATA_ERROR, "Request data is invalid."),
        (ApiError.INTERNAL_SERVER_ERROR, "Internal server error."),
    ],
)
def test_api_error_display_text(error, text):
    body = json.loads(error.to_response().text)
    assert body["error"] == text
    assert str(error) == text


def test_payment_request_round_trip():
    correlation_id = uuid.uuid4()
    data = {"correlationId": str(correlation_id), "amount": 100.51}
    request = PaymentRequest.from_dict(data)
    assert request.correlation_id == correlation_id
    assert request.amount == 100.51
    assert request.to_dict() == data


@pytest.mark.parametrize(
    "data",
    [
        {"amount": 1.0},
        {"correlationId": "not-a-uuid", "amount": 1.0},
        {"correlationId": str(uuid.uuid4()), "amount": "1.0"},
        [1, 2],
    ],
)
def test_payment_request_rejects_bad_data(data):
    with pytest.raises(ValueError):
        PaymentRequest.from_dict(data)


def test_summary_filter_reads_milliseconds_and_iso():
    summary_filter = PaymentsSummaryFilter.from_query(
        {"from": "1500", "to": "1970-01-02T00:00:00Z"}
    )
    assert summary_filter.from_ == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)
    assert summary_filter.to == datetime(1970, 1, 2, tzinfo=timezone.utc)
    query = summary_filter.to_query()
    assert (query.from_ts, query.to_ts) == (1, 86400)


def test_summary_filter_floors_negative_milliseconds():
    query = PaymentsSummaryFilter.from_query({"from": "-1500"}).to_query()
    assert query.from_ts == -2
    assert query.to_ts is None


def test_summary_filter_rejects_garbage():
    with pytest.raises(ValueError):
        PaymentsSummaryFilter.from_query({"from": "yesterday"})


@pytest.mark.asyncio
async def test_payments_post_returns_success():
    queue = _MemoryQueue()
    correlation_id = uuid.uuid4()
    async with TestClient(TestServer(_app(queue=queue))) as client:
        resp = await client.post(
            "/payments", json={"correlationId": str(correlation_id), "amount": 100.51}
        )
        assert resp.status == 200
        body = await resp.json()
    assert body == {
        "payment": {"correlationId": str(correlation_id), "amount": 100.51},
        "status": "queued",
    }
    message = await queue.pop()
    assert message.body.correlation_id == correlation_id
    assert message.body.amount == 100.51


@pytest.mark.asyncio
async def test_payments_post_queue_failure():
    async with TestClient(TestServer(_app(queue=_BrokenQueue()))) as client:
        resp = await client.post(
            "/payments", json={"correlationId": str(uuid.uuid4()), "amount": 100.0}
        )
        assert resp.status == 500
        body = await resp.json()
    assert body["statusCode"] == 500
    assert body["message"] == "Internal Server Error"


@pytest.mark.asyncio
async def test_payments_post_invalid_body():
    async with TestClient(TestServer(_app())) as client:
        resp = await client.post("/payments", data="not json")
        assert resp.status == 400


@pytest.mark.asyncio
async def test_payments_summary_get_empty():
    repo = _MemoryRepository()
    async with TestClient(TestServer(_app(repo=repo))) as client:
        resp = await client.get("/payments-summary")
        assert resp.status == 200
        body = await resp.json()
    assert body == {
        "default": {"total_requests": 0, "total_amount": 0.0},
        "fallback": {"total_requests": 0, "total_amount": 0.0},
    }
    assert repo.calls == [
        ("default", -(2**63), 2**63 - 1),
        ("fallback", -(2**63), 2**63 - 1),
    ]


@pytest.mark.asyncio
async def test_payments_summary_get_with_data():
    repo = _MemoryRepository(totals={"default": (2, 3000.59), "fallback": (1, 500.42)})
    async with TestClient(TestServer(_app(repo=repo))) as client:
        resp = await client.get("/payments-summary")
        assert resp.status == 200
        body = await resp.json()
    assert body["default"] == {"total_requests": 2, "total_amount": 3000.59}
    assert body["fallback"] == {"total_requests": 1, "total_amount": 500.42}


@pytest.mark.asyncio
async def test_payments_summary_get_with_filter_passes_seconds():
    repo = _MemoryRepository(totals={"default": (1, 1000.23)})
    async with TestClient(TestServer(_app(repo=repo))) as client:
        resp = await client.get(
            "/payments-summary", params={"from": "1700000000000", "to": "1700000005000"}
        )
        assert resp.status == 200
        body = await resp.json()
    assert body["default"] == {"total_requests": 1, "total_amount": 1000.23}
    assert body["fallback"] == {"total_requests": 0, "total_amount": 0.0}
    assert repo.calls[0] == ("default", 1700000000, 1700000005)


@pytest.mark.asyncio
async def test_payments_summary_get_with_iso_8601_filter():
    repo = _MemoryRepository()
    async with TestClient(TestServer(_app(repo=repo))) as client:
        resp = await client.get(
            "/payments-summary",
            params={"from": "1970-01-01T00:00:10+00:00", "to": "1970-01-02T00:00:00Z"},
        )
        assert resp.status == 200
    assert repo.calls[0] == ("default", 10, 86400)


@pytest.mark.asyncio
async def test_payments_summary_get_bad_filter():
    async with TestClient(TestServer(_app())) as client:
        resp = await client.get("/payments-summary", params={"from": "soon"})
        assert resp.status == 400


@pytest.mark.asyncio
async def test_payments_summary_get_storage_failure():
    async with TestClient(TestServer(_app(repo=_MemoryRepository(fail=True)))) as client:
        resp = await client.get("/payments-summary")
        assert resp.status == 500


@pytest.mark.asyncio
async def test_payments_purge_returns_success():
    repo = _MemoryRepository()
    first = Payment(correlation_id=uuid.uuid4(), amount=100.0, processed_by="group1")
    second = Payment(correlation_id=uuid.uuid4(), amount=200.0, processed_by="group2")
    await repo.save(first)
    await repo.save(second)
    assert await repo.is_already_processed(str(first.correlation_id))
    assert await repo.is_already_processed(str(second.correlation_id))

    async with TestClient(TestServer(_app(repo=repo))) as client:
        resp = await client.post("/purge-payments")
        assert resp.status == 200
        assert await resp.text() == "Payments purged successfully"

    assert not await repo.is_already_processed(str(first.correlation_id))
    assert not await repo.is_already_processed(str(second.correlation_id))


@pytest.mark.asyncio
async def test_payments_purge_failure():
    async with TestClient(TestServer(_app(repo=_MemoryRepository(fail=True)))) as client:
        resp = await client.post("/purge-payments")
        assert resp.status == 500
        assert await resp.text() == "Failed to purge payments: redis is down"