"""
Transfer provider clients.

The orchestrator only depends on ``TransferProvider``: initiate a transfer
with an idempotency key, read a transfer's current status, and look a
transfer up by idempotency key when a request timed out and the outcome is
unknown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests
from django.conf import settings

from core.exceptions import (
    ConfigurationError,
    ProviderPermanentError,
    ProviderTimeoutError,
    ProviderTransientError,
)

logger = logging.getLogger(__name__)

TRANSFER_STATUSES = ("sent", "completed", "failed")


@dataclass(frozen=True)
class TransferRequest:
    destination: str
    amount: Decimal
    currency: str
    idempotency_key: str
    reference: str = ""


@dataclass(frozen=True)
class TransferStatusUpdate:
    transfer_id: str
    status: str
    fee: Decimal = Decimal("0")
    reason: str = ""


class TransferProvider:
    name = "base"

    def initiate_transfer(self, request: TransferRequest) -> str:
        """Return the provider transfer id once the provider accepted the transfer."""
        raise NotImplementedError

    def get_transfer(self, transfer_id: str) -> TransferStatusUpdate:
        raise NotImplementedError

    def find_transfer(self, idempotency_key: str) -> Optional[str]:
        """Transfer id created with ``idempotency_key``, or None if none exists."""
        raise NotImplementedError


class SimulatedTransferProvider(TransferProvider):
    """Accepts and settles every transfer; used when no provider credentials are configured."""

    name = "simulated"

    def initiate_transfer(self, request: TransferRequest) -> str:
        logger.info("Simulated transfer of %s %s to %s", request.amount, request.currency, request.destination)
        return f"sim-{request.idempotency_key}"

    def get_transfer(self, transfer_id: str) -> TransferStatusUpdate:
        return TransferStatusUpdate(transfer_id=transfer_id, status="completed")

    def find_transfer(self, idempotency_key: str) -> Optional[str]:
        return None


# Wise transfer states mapped onto the three states the ledger cares about.
WISE_COMPLETED_STATES = {"outgoing_payment_sent"}
WISE_FAILED_STATES = {"bounced_back", "funds_refunded", "cancelled", "charged_back"}


def map_wise_status(state: str) -> str:
    if state in WISE_COMPLETED_STATES:
        return "completed"
    if state in WISE_FAILED_STATES:
        return "failed"
    return "sent"


class WiseTransferProvider(TransferProvider):
    name = "wise"

    def __init__(
        self,
        api_token: str | None = None,
        profile_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_token = api_token or settings.WISE_API_TOKEN
        self.profile_id = profile_id or settings.WISE_PROFILE_ID
        self.base_url = (base_url or settings.WISE_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYOUT_PROVIDER_TIMEOUT
        self.session = session or requests.Session()
        if not self.api_token or not self.profile_id:
            raise ConfigurationError("WISE_API_TOKEN and WISE_PROFILE_ID must be set")

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> dict | list:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise ProviderTimeoutError(f"Wise request timed out: {method} {path}") from exc
        except requests.ConnectionError as exc:
            raise ProviderTransientError(f"Wise connection error: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise ProviderTransientError(
                f"Wise error {resp.status_code}: {resp.text[:200]}",
                code=str(resp.status_code),
            )
        if resp.status_code >= 400:
            raise ProviderPermanentError(
                f"Wise rejected request {resp.status_code}: {resp.text[:200]}",
                code=str(resp.status_code),
            )
        return resp.json() if resp.content else {}

    def initiate_transfer(self, request: TransferRequest) -> str:
        quote = self._request(
            "POST",
            f"/v3/profiles/{self.profile_id}/quotes",
            json={
                "sourceCurrency": request.currency,
                "targetCurrency": request.currency,
                "targetAmount": float(request.amount),
                "targetAccount": request.destination,
            },
        )
        transfer = self._request(
            "POST",
            "/v1/transfers",
            json={
                "targetAccount": request.destination,
                "quoteUuid": quote["id"],
                "customerTransactionId": request.idempotency_key,
                "details": {"reference": request.reference[:35]},
            },
        )
        transfer_id = str(transfer["id"])
        self._request(
            "POST",
            f"/v3/profiles/{self.profile_id}/transfers/{transfer_id}/payments",
            json={"type": "BALANCE"},
        )
        return transfer_id

    def get_transfer(self, transfer_id: str) -> TransferStatusUpdate:
        data = self._request("GET", f"/v1/transfers/{transfer_id}")
        return TransferStatusUpdate(
            transfer_id=str(data.get("id", transfer_id)),
            status=map_wise_status(data.get("status", "")),
            reason=data.get("status", ""),
        )

    def find_transfer(self, idempotency_key: str) -> Optional[str]:
        transfers = self._request(
            "GET",
            "/v1/transfers",
            params={"profile": self.profile_id, "limit": 100, "offset": 0},
        )
        for transfer in transfers or []:
            if transfer.get("customerTransactionId") == idempotency_key:
                return str(transfer["id"])
        return None


def get_transfer_provider() -> TransferProvider:
    if settings.PAYOUT_PROVIDER == "simulated":
        return SimulatedTransferProvider()
    if settings.PAYOUT_PROVIDER == "wise":
        return WiseTransferProvider()
    raise ConfigurationError(f"Unknown payout provider: {settings.PAYOUT_PROVIDER}")
