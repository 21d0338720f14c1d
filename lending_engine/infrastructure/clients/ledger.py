"""Ledger HTTP client for funding sources and disbursement debits"""

import time
import logging
import httpx
from decimal import Decimal
from typing import Any, Dict, List
from lending_engine.config import settings
from lending_engine.domain.exceptions import InsufficientFundsError, LedgerAPIError, MissingFundingSourceError
from lending_engine.domain.models import FundingSource
from lending_engine.infrastructure.observability.metrics import ledger_failure_counter, ledger_latency_histogram

logger = logging.getLogger(__name__)


class LedgerClient:
    """Client for the external ledger service that owns funding account balances"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.ledger_api_base or "").rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.ledger_max_retries
        self.backoff_base = settings.ledger_backoff_base
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _get_with_retry(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        """
        GET with retry on 5xx and network failures.

        Retry strategy: exponential backoff base * 2^(attempt-1), up to
        max_retries attempts. 4xx responses are returned unretried.
        """
        attempt = 0
        with self._client() as client:
            while True:
                try:
                    with ledger_latency_histogram.time():
                        response = client.get(path, params=params)
                    if response.status_code < 500:
                        return response
                    response.raise_for_status()
                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    ledger_failure_counter.inc()
                    if attempt >= self.max_retries:
                        raise LedgerAPIError(f"Ledger unavailable after {attempt} attempts: {e}") from e
                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logger.warning("Ledger GET %s failed, retrying in %.2fs", path, backoff)
                    time.sleep(backoff)

    def list_funding_sources(self, status: str = "Active") -> List[FundingSource]:
        """
        Fetch funding accounts with the given status.

        Raises:
            LedgerAPIError: On repeated failure or invalid response
        """
        response = self._get_with_retry("/funding-sources", {"status": status})
        try:
            response.raise_for_status()
            return [
                FundingSource(
                    id=str(item["id"]),
                    name=item.get("name") or item.get("bank_name") or "Unknown Account",
                    balance=item["balance"],
                    account_type=item.get("account_type", "bank"),
                    status=item.get("status"),
                )
                for item in response.json().get("funding_sources", [])
            ]
        except httpx.HTTPStatusError as e:
            raise LedgerAPIError(f"Ledger error: {e.response.status_code}") from e
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise LedgerAPIError(f"Invalid funding source data from ledger: {e}") from e

    def debit(self, source_id: str, amount: Decimal) -> None:
        """
        Debit a funding source by the disbursed amount.

        Sent once: a debit is not idempotent, so a timeout is reported rather
        than retried.

        Raises:
            MissingFundingSourceError: 404 from the ledger
            InsufficientFundsError: 409/422 from the ledger
            LedgerAPIError: Any other failure
        """
        with self._client() as client:
            try:
                with ledger_latency_histogram.time():
                    response = client.post(f"/funding-sources/{source_id}/debit", json={"amount": str(amount)})
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                ledger_failure_counter.inc()
                status = e.response.status_code
                if status == 404:
                    raise MissingFundingSourceError(f"Funding source {source_id} not found") from e
                if status in (409, 422):
                    raise InsufficientFundsError(f"Funding source {source_id} cannot cover {amount}") from e
                raise LedgerAPIError(f"Ledger error: {status}") from e
            except httpx.RequestError as e:
                ledger_failure_counter.inc()
                raise LedgerAPIError(f"Ledger debit failed: {e}") from e
