"""
Payment Gateway Integration

Hosted-checkout card processing. Card data never reaches this service:

    1. preauthorize() asks the gateway for a checkout ticket for an amount
    2. the browser completes the payment inside the gateway's iframe
    3. confirm() fetches the receipt for the ticket and reports the outcome
    4. capture() / void() settle or release the authorised transaction

`SandboxGateway` approves everything except tokens starting with
``decline`` and is used for local runs and tests. `MonerisGateway` talks to
the real gateway with requests.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

import requests
from django.conf import settings  # type: ignore
from django.utils.module_loading import import_string  # type: ignore

logger = logging.getLogger(__name__)

GATEWAY_URLS = {
    "qa": "https://gatewayt.moneris.com/chkt/request/request.php",
    "prod": "https://gateway.moneris.com/chkt/request/request.php",
}

# Response codes below this value are approvals.
APPROVAL_THRESHOLD = 50


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway call.

    ``declined`` is True only when the gateway answered and refused; network
    and configuration problems leave it False.
    """

    success: bool
    transaction_id: str | None = None
    ticket: str | None = None
    message: str = ""
    declined: bool = False

    @classmethod
    def unavailable(cls, message: str = "Payment gateway unavailable") -> "GatewayResult":
        return cls(success=False, message=message)


class PaymentGateway(ABC):
    """Operations the reservation engine needs from a card gateway."""

    is_sandbox = False

    @abstractmethod
    def preauthorize(self, amount: Decimal, reference: str, email: str | None = None) -> GatewayResult:
        """Open a hosted checkout for ``amount``; the result carries the ticket."""

    @abstractmethod
    def confirm(self, token: str) -> GatewayResult:
        """Fetch the receipt for a completed checkout."""

    @abstractmethod
    def capture(self, transaction_id: str, amount: Decimal) -> GatewayResult:
        """Capture ``amount`` on a previously authorised transaction."""

    @abstractmethod
    def void(self, transaction_id: str) -> GatewayResult:
        """Release a previously authorised transaction."""


class SandboxGateway(PaymentGateway):
    """Local gateway that approves every request without network access."""

    is_sandbox = True

    def preauthorize(self, amount, reference, email=None):
        logger.info(f"Sandbox preload for {reference}: {amount:.2f}")
        return GatewayResult(success=True, ticket=f"sandbox-ticket-{uuid.uuid4().hex[:12]}")

    def confirm(self, token):
        if token.startswith("decline"):
            logger.info(f"Sandbox receipt declined for ticket {token}")
            return GatewayResult(success=False, message="DECLINED", declined=True)
        logger.info(f"Sandbox receipt approved for ticket {token}")
        return GatewayResult(
            success=True,
            transaction_id=f"sandbox-txn-{uuid.uuid4().hex[:12]}",
            message="APPROVED",
        )

    def capture(self, transaction_id, amount):
        logger.info(f"Sandbox capture of {amount:.2f} on {transaction_id}")
        return GatewayResult(success=True, transaction_id=transaction_id, message="CAPTURED")

    def void(self, transaction_id):
        logger.info(f"Sandbox void of {transaction_id}")
        return GatewayResult(success=True, transaction_id=transaction_id, message="VOIDED")


class MonerisGateway(PaymentGateway):
    """Moneris Checkout client."""

    def __init__(
        self,
        store_id: str | None = None,
        api_token: str | None = None,
        checkout_id: str | None = None,
        environment: str | None = None,
        timeout: float | None = None,
    ):
        self.store_id = store_id or settings.MONERIS_STORE_ID
        self.api_token = api_token or settings.MONERIS_API_TOKEN
        self.checkout_id = checkout_id or settings.MONERIS_CHECKOUT_ID
        self.environment = environment or settings.MONERIS_ENVIRONMENT
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self.url = GATEWAY_URLS[self.environment]

    def _credentials(self) -> dict:
        return {"store_id": self.store_id, "api_token": self.api_token}

    def _post(self, payload: dict) -> dict | None:
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json().get("response") or {}
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Payment gateway request failed ({payload.get('action') or payload.get('type')}): {e}")
            return None

    @staticmethod
    def _receipt_result(receipt: dict, failure_message: str) -> GatewayResult:
        code = receipt.get("response_code")
        try:
            approved = code is not None and int(code) < APPROVAL_THRESHOLD
        except (TypeError, ValueError):
            approved = False
        return GatewayResult(
            success=approved,
            transaction_id=receipt.get("trans_id"),
            message="APPROVED" if approved else (receipt.get("message") or failure_message),
            declined=not approved,
        )

    def preauthorize(self, amount, reference, email=None):
        payload = {
            **self._credentials(),
            "checkout_id": self.checkout_id,
            "txn_total": f"{amount:.2f}",
            "environment": self.environment,
            "action": "preload",
            "order_no": reference[:50],
            "language": "en",
        }
        if email:
            payload["contact_details"] = {"email": email}

        data = self._post(payload)
        if data is None:
            return GatewayResult.unavailable()
        if data.get("success") == "true" and data.get("ticket"):
            return GatewayResult(success=True, ticket=data["ticket"])

        message = str(data.get("error") or "Preload failed")
        logger.error(f"Payment gateway preload rejected for {reference}: {message}")
        return GatewayResult(success=False, message=message)

    def confirm(self, token):
        data = self._post(
            {
                **self._credentials(),
                "checkout_id": self.checkout_id,
                "environment": self.environment,
                "action": "receipt",
                "ticket": token,
            }
        )
        if data is None:
            return GatewayResult.unavailable()
        receipt = data.get("receipt")
        if not receipt:
            return GatewayResult(success=False, message="No receipt in response")
        return self._receipt_result(receipt, "DECLINED")

    def capture(self, transaction_id, amount):
        data = self._post(
            {
                **self._credentials(),
                "type": "completion",
                "txn_number": transaction_id,
                "comp_amount": f"{amount:.2f}",
            }
        )
        if data is None:
            return GatewayResult.unavailable()
        return self._receipt_result(data.get("receipt") or {}, "CAPTURE FAILED")

    def void(self, transaction_id):
        data = self._post(
            {
                **self._credentials(),
                "type": "purchasecorrection",
                "txn_number": transaction_id,
            }
        )
        if data is None:
            return GatewayResult.unavailable()
        return self._receipt_result(data.get("receipt") or {}, "VOID FAILED")


def get_payment_gateway() -> PaymentGateway:
    """Instantiate the gateway class named by ``settings.PAYMENT_GATEWAY``."""

    return import_string(settings.PAYMENT_GATEWAY)()
