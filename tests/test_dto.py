import json

from rinha_backend.dto import (
    GetPaymentSummaryQuery,
    PaymentSummaryResult,
    PaymentsSummaryResponse,
)


def test_query_defaults_are_unbounded():
    query = GetPaymentSummaryQuery()
    assert (query.from_ts, query.to_ts) == (None, None)


def test_summary_result_to_dict():
    result = PaymentSummaryResult(total_requests=2, total_amount=3000.59)
    assert result.to_dict() == {"total_requests": 2, "total_amount": 3000.59}


def test_summary_response_to_dict_nests_groups():
    response = PaymentsSummaryResponse(
        default=PaymentSummaryResult(total_requests=2, total_amount=3000.59),
        fallback=PaymentSummaryResult(total_requests=1, total_amount=500.42),
    )
    assert response.to_dict() == {
        "default": {"total_requests": 2, "total_amount": 3000.59},
        "fallback": {"total_requests": 1, "total_amount": 500.42},
    }


def test_summary_response_survives_json():
    response = PaymentsSummaryResponse(
        default=PaymentSummaryResult(total_requests=0, total_amount=0.0),
        fallback=PaymentSummaryResult(total_requests=1, total_amount=1000.23),
    )
    assert json.loads(json.dumps(response.to_dict())) == response.to_dict()