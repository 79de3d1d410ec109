"""
Status Mapper — translates a Midtrans (transaction_status, fraud_status)
pair into the storefront's canonical order status.

Mapping:
    capture + accept      → paid
    capture + other/none  → pending   (fraud review unresolved)
    settlement            → paid
    cancel / expire       → cancelled
    deny                  → failed
    anything else         → pending   (never guess a terminal state)

Pure function: no I/O, no state. Values are matched exactly as the gateway
sends them (lowercase).
"""
from typing import Optional

from domain.constants import (
    FRAUD_ACCEPT,
    TX_CANCEL,
    TX_CAPTURE,
    TX_DENY,
    TX_EXPIRE,
    TX_SETTLEMENT,
)
from domain.enums import OrderStatus

_DIRECT_MAPPING = {
    TX_SETTLEMENT: OrderStatus.PAID,
    TX_CANCEL: OrderStatus.CANCELLED,
    TX_EXPIRE: OrderStatus.CANCELLED,
    TX_DENY: OrderStatus.FAILED,
}


def map_transaction_status(
    transaction_status: Optional[str],
    fraud_status: Optional[str] = None,
) -> OrderStatus:
    """Return the canonical status for a gateway report. Total over all inputs."""
    if transaction_status == TX_CAPTURE:
        if fraud_status == FRAUD_ACCEPT:
            return OrderStatus.PAID
        return OrderStatus.PENDING

    return _DIRECT_MAPPING.get(transaction_status, OrderStatus.PENDING)
