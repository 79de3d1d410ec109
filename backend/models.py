"""
Pydantic models for request/response validation.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class GatewayBase(BaseModel):
    """Shared base for gateway payloads. Midtrans sends many extra fields we ignore."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _numbers_as_strings(cls, value):
        # Midtrans sends amounts and codes as strings; some proxies re-encode them as numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


# ── Inbound Notification ────────────────────────────────────────────

class PaymentNotification(GatewayBase):
    """HTTP notification posted by the payment gateway."""
    order_id: str = Field(..., min_length=1, description="Merchant order reference")
    transaction_status: Optional[str] = Field(None, description="e.g. capture, settlement, deny")
    fraud_status: Optional[str] = Field(None, description="e.g. accept, challenge, deny")
    transaction_id: Optional[str] = Field(None, description="Gateway transaction reference")
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None


# ── Gateway Status API ──────────────────────────────────────────────

class TransactionReport(GatewayBase):
    """
    Trusted view of a transaction, as returned by GET /v2/{order_id}/status
    or taken from a signature-verified notification.
    """
    order_id: str
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    transaction_id: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None

    @classmethod
    def from_notification(cls, notification: PaymentNotification) -> "TransactionReport":
        return cls.model_validate(notification.model_dump(exclude={"signature_key"}))


# ── Order Status Response ───────────────────────────────────────────

class OrderStatusResponse(BaseModel):
    """Read-only order status for the storefront's order page."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId")
    display_id: Optional[str] = Field(None, alias="displayId")
    status: str
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
