"""Unit tests for the ledger HTTP client using httpx mock transports"""

import json
import httpx
import pytest
from decimal import Decimal
from lending_engine.domain.exceptions import InsufficientFundsError, LedgerAPIError, MissingFundingSourceError
from lending_engine.infrastructure.clients.ledger import LedgerClient


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("lending_engine.infrastructure.clients.ledger.time.sleep", lambda seconds: None)


def make_client(handler) -> LedgerClient:
    return LedgerClient(base_url="http://ledger.test", transport=httpx.MockTransport(handler))


def test_list_funding_sources():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/funding-sources"
        assert request.url.params["status"] == "Active"
        return httpx.Response(
            200,
            json={
                "funding_sources": [
                    {"id": "acc_main", "name": "Equity Operating", "balance": "1000000", "status": "Active"},
                    {"id": 7, "bank_name": "M-Pesa Till", "balance": 2500, "account_type": "mobile"},
                ]
            },
        )

    sources = make_client(handler).list_funding_sources()

    assert [source.id for source in sources] == ["acc_main", "7"]
    assert sources[0].balance == Decimal("1000000")
    assert sources[1].name == "M-Pesa Till"
    assert sources[1].is_active


def test_list_retries_server_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"funding_sources": []})

    assert make_client(handler).list_funding_sources() == []
    assert len(calls) == 3


def test_list_gives_up_after_max_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LedgerAPIError):
        make_client(handler).list_funding_sources()


def test_list_invalid_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"funding_sources": [{"name": "no id"}]})

    with pytest.raises(LedgerAPIError):
        make_client(handler).list_funding_sources()


def test_debit_posts_amount_once():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        assert request.url.path == "/funding-sources/acc_main/debit"
        assert json.loads(request.content) == {"amount": "150000"}
        return httpx.Response(200, json={"balance": "850000"})

    make_client(handler).debit("acc_main", Decimal("150000"))
    assert len(calls) == 1


@pytest.mark.parametrize(
    "status_code,error",
    [(404, MissingFundingSourceError), (409, InsufficientFundsError), (422, InsufficientFundsError), (500, LedgerAPIError)],
)
def test_debit_error_mapping(status_code, error):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code)

    with pytest.raises(error):
        make_client(handler).debit("acc_main", Decimal("1"))
    assert len(calls) == 1  # never retried


def test_debit_network_failure_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(LedgerAPIError):
        make_client(handler).debit("acc_main", Decimal("1"))
    assert len(calls) == 1
