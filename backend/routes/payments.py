"""
Payment Routes — Midtrans notification intake

Endpoints:
    POST /api/payment/notification        — gateway HTTP notification
    GET  /api/payment/orders/{order_ref}  — order payment status
    GET  /api/payment/metrics             — reconciler counters

Response codes for the notification endpoint drive the gateway's retries:
    200  processed, including duplicates and fraud holds (do not resend)
    400  malformed payload           (do not resend)
    401  unverified notification     (do not resend)
    404  unknown order               (gateway retries per its own policy)
    503  storage / gateway outage    (resend; processing is idempotent)
"""
import logging

from fastapi import APIRouter, Depends, Request

from deps import get_order_store, get_reconciler
from domain.errors import MalformedPayloadError, NotFoundError
from domain.responses import success_response
from models import OrderStatusResponse
from services.order_store import OrderStore
from services.reconciler import NotificationReconciler
from services.reconciler_metrics import get_reconciler_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/notification")
async def payment_notification(
    request: Request,
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    """
    Midtrans HTTP notification callback.

    Authenticity is established inside the reconciler (signature and/or
    status API) before any order is touched.
    """
    try:
        payload = await request.json()
    except ValueError:
        reconciler.metrics.record_received()
        reconciler.metrics.record_malformed()
        raise MalformedPayloadError("Invalid JSON payload")

    result = await reconciler.reconcile(payload)
    return success_response(result.to_dict())


@router.get("/orders/{order_ref}")
async def get_order_payment_status(
    order_ref: str,
    store: OrderStore = Depends(get_order_store),
):
    """Current payment status of an order (by id or display id)."""
    order = await store.get_order(order_ref)
    if order is None:
        raise NotFoundError("Order", order_ref)

    response = OrderStatusResponse(
        orderId=order.id,
        displayId=order.display_id,
        status=order.status.value,
        transactionId=order.gateway_transaction_id,
        updatedAt=order.updated_at.isoformat() if order.updated_at else None,
    )
    return success_response(response.model_dump(by_alias=True))


@router.get("/metrics")
async def get_payment_metrics():
    """In-process reconciler counters."""
    return success_response(get_reconciler_metrics().to_dict())
