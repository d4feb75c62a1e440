"""Tests for the hosted-checkout gateway clients."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from apps.payments.gateway import (
    MonerisGateway,
    SandboxGateway,
    get_payment_gateway,
)

GATEWAY_MODULE_PATH = "apps.payments.gateway"


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"response": payload}
    response.raise_for_status.return_value = None
    return response


class SandboxGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        self.gateway = SandboxGateway()

    def test_preauthorize_returns_ticket(self) -> None:
        result = self.gateway.preauthorize(Decimal("50.00"), "ABC234")

        self.assertTrue(result.success)
        self.assertTrue(result.ticket.startswith("sandbox-ticket-"))

    def test_confirm_declines_decline_tokens(self) -> None:
        result = self.gateway.confirm("decline-please")

        self.assertFalse(result.success)
        self.assertTrue(result.declined)

    def test_confirm_approves_other_tokens(self) -> None:
        result = self.gateway.confirm("ticket-1")

        self.assertTrue(result.success)
        self.assertIsNotNone(result.transaction_id)


@override_settings(
    MONERIS_STORE_ID="store",
    MONERIS_API_TOKEN="token",
    MONERIS_CHECKOUT_ID="chkt",
    MONERIS_ENVIRONMENT="qa",
    PAYMENT_GATEWAY_TIMEOUT=5,
)
class MonerisGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        self.gateway = MonerisGateway()

    @patch(f"{GATEWAY_MODULE_PATH}.requests.post")
    def test_preload_sends_amount_and_returns_ticket(self, mock_post) -> None:
        mock_post.return_value = _response({"success": "true", "ticket": "T-1"})

        result = self.gateway.preauthorize(Decimal("120.5"), "ABC234", email="a@example.com")

        self.assertTrue(result.success)
        self.assertEqual(result.ticket, "T-1")
        payload = mock_post.call_args.kwargs["json"]
        self.assertEqual(payload["txn_total"], "120.50")
        self.assertEqual(payload["action"], "preload")
        self.assertEqual(payload["contact_details"], {"email": "a@example.com"})
        self.assertEqual(mock_post.call_args.kwargs["timeout"], 5)

    @patch(f"{GATEWAY_MODULE_PATH}.requests.post")
    def test_receipt_with_high_response_code_is_declined(self, mock_post) -> None:
        mock_post.return_value = _response(
            {"receipt": {"response_code": "481", "trans_id": "x", "message": "DECLINED"}}
        )

        result = self.gateway.confirm("T-1")

        self.assertFalse(result.success)
        self.assertTrue(result.declined)
        self.assertEqual(result.message, "DECLINED")

    @patch(f"{GATEWAY_MODULE_PATH}.requests.post")
    def test_receipt_with_low_response_code_is_approved(self, mock_post) -> None:
        mock_post.return_value = _response(
            {"receipt": {"response_code": "027", "trans_id": "txn-9"}}
        )

        result = self.gateway.confirm("T-1")

        self.assertTrue(result.success)
        self.assertEqual(result.transaction_id, "txn-9")

    @patch(f"{GATEWAY_MODULE_PATH}.requests.post")
    def test_network_error_is_unavailable_not_declined(self, mock_post) -> None:
        mock_post.side_effect = requests.exceptions.ConnectionError("boom")

        result = self.gateway.void("txn-9")

        self.assertFalse(result.success)
        self.assertFalse(result.declined)
        self.assertEqual(result.message, "Payment gateway unavailable")


class GatewayFactoryTests(SimpleTestCase):
    @override_settings(PAYMENT_GATEWAY="apps.payments.gateway.SandboxGateway")
    def test_factory_builds_configured_class(self) -> None:
        self.assertIsInstance(get_payment_gateway(), SandboxGateway)
