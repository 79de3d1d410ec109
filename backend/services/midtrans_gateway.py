"""
Midtrans Gateway Service

Handles:
    1. Notification signature verification (SHA-512 over
       order_id + status_code + gross_amount + server_key)
    2. Status lookup via the Core API (GET /v2/{order_id}/status), used as the
       source of truth instead of the fields a notification carries

Security:
    - FAILS CLOSED when the server key is missing
    - Signatures are compared in constant time
    - A status report for a different order than the notification is rejected
"""
import hashlib
import hmac
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from config import settings
from domain.constants import GATEWAY_NOT_FOUND_CODE
from domain.errors import AuthenticationError, GatewayUnavailableError
from models import PaymentNotification, TransactionReport

logger = logging.getLogger(__name__)


class MidtransGateway:
    """Verification client for the Midtrans Core API."""

    def __init__(
        self,
        server_key: str,
        api_base: str,
        timeout: float = 10.0,
        verify_with_status_api: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_key = server_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.verify_with_status_api = verify_with_status_api
        # Injected in tests (httpx.MockTransport); None means real network
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "MidtransGateway":
        return cls(
            server_key=settings.midtrans_server_key,
            api_base=settings.midtrans_api_base,
            timeout=settings.gateway_timeout_seconds,
            verify_with_status_api=settings.verify_with_status_api,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.server_key)

    # ════════════════════════════════════════════════════════════════
    # Signature Verification
    # ════════════════════════════════════════════════════════════════

    def compute_signature(self, order_id: str, status_code: str, gross_amount: str) -> str:
        """Midtrans signature_key: hex SHA-512 of the concatenated fields and server key."""
        raw = f"{order_id}{status_code}{gross_amount}{self.server_key}"
        return hashlib.sha512(raw.encode("utf-8")).hexdigest()

    def verify_signature(self, notification: PaymentNotification) -> bool:
        """
        Check the notification's signature_key.

        Returns False (fail closed) when the server key, the signature, or
        any signed field is missing.
        """
        if not self.configured:
            logger.error(
                "MIDTRANS_SERVER_KEY not configured, rejecting notification. "
                "Set MIDTRANS_SERVER_KEY in .env to accept gateway notifications."
            )
            return False

        if not notification.signature_key:
            return False

        if notification.status_code is None or notification.gross_amount is None:
            logger.warning(
                f"Notification for {notification.order_id} is missing signed fields"
            )
            return False

        expected = self.compute_signature(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
        )
        return hmac.compare_digest(expected, notification.signature_key)

    # ════════════════════════════════════════════════════════════════
    # Status API
    # ════════════════════════════════════════════════════════════════

    async def fetch_status(self, order_id: str) -> TransactionReport:
        """
        Fetch the canonical transaction status for an order reference.

        Raises:
            AuthenticationError: the gateway has no such transaction
            GatewayUnavailableError: timeout, connection failure, 5xx,
                or the gateway rejected our credentials
        """
        url = f"{self.api_base}/v2/{order_id}/status"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.server_key, ""),
                headers={"Accept": "application/json"},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Midtrans status lookup timed out for {order_id}: {e}")
            raise GatewayUnavailableError("Payment gateway status lookup timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Midtrans status lookup failed for {order_id}: {e}")
            raise GatewayUnavailableError("Payment gateway status lookup failed")

        if response.status_code in (401, 403):
            logger.error(
                f"Midtrans rejected the server key ({response.status_code}); "
                "check MIDTRANS_SERVER_KEY and MIDTRANS_IS_PRODUCTION"
            )
            raise GatewayUnavailableError("Payment gateway rejected credentials")

        if response.status_code == 404:
            raise AuthenticationError(
                "Transaction unknown to payment gateway", details={"order_id": order_id}
            )

        if response.status_code >= 500:
            logger.warning(f"Midtrans status API error {response.status_code} for {order_id}")
            raise GatewayUnavailableError("Payment gateway returned a server error")

        try:
            body = response.json()
        except ValueError:
            raise GatewayUnavailableError("Payment gateway returned an unreadable response")
        if not isinstance(body, dict):
            raise GatewayUnavailableError("Payment gateway returned an unreadable response")

        # Midtrans answers HTTP 200 with the real outcome in body.status_code
        body_code = str(body.get("status_code", ""))
        if body_code == GATEWAY_NOT_FOUND_CODE:
            raise AuthenticationError(
                "Transaction unknown to payment gateway", details={"order_id": order_id}
            )
        if body_code.startswith("5"):
            raise GatewayUnavailableError("Payment gateway returned a server error")

        try:
            return TransactionReport.model_validate(body)
        except ValidationError:
            raise GatewayUnavailableError("Payment gateway returned an unexpected status body")

    # ════════════════════════════════════════════════════════════════
    # Notification Verification
    # ════════════════════════════════════════════════════════════════

    async def verify_notification(self, notification: PaymentNotification) -> TransactionReport:
        """
        Turn an untrusted notification into a trusted TransactionReport.

        - A present signature must verify.
        - Without the status API, a valid signature is mandatory.
        - With the status API, the gateway's answer replaces payload fields.
        """
        if not self.configured:
            logger.error("MIDTRANS_SERVER_KEY not configured, rejecting notification")
            raise AuthenticationError("Payment gateway credentials not configured")

        if notification.signature_key is not None and not self.verify_signature(notification):
            raise AuthenticationError("Invalid notification signature")

        if not self.verify_with_status_api:
            if notification.signature_key is None:
                raise AuthenticationError("Notification signature missing")
            return TransactionReport.from_notification(notification)

        report = await self.fetch_status(notification.order_id)
        if report.order_id != notification.order_id:
            logger.warning(
                f"Status report order mismatch: notified={notification.order_id} "
                f"reported={report.order_id}"
            )
            raise AuthenticationError("Gateway status does not match notification")
        return report
