"""
Shared FastAPI dependencies.

The reconciler is assembled here from settings and the shared session
factory so routes stay thin and tests can override a single dependency.
"""

from __future__ import annotations

from config import settings
from database import async_session
from services.cart_service import SqlCartClearer
from services.midtrans_gateway import MidtransGateway
from services.order_store import SqlOrderStore
from services.reconciler import NotificationReconciler
from services.reconciler_metrics import get_reconciler_metrics


def get_order_store() -> SqlOrderStore:
    return SqlOrderStore(async_session)


def get_reconciler() -> NotificationReconciler:
    """Build a reconciler wired to the database and Midtrans."""
    return NotificationReconciler(
        gateway=MidtransGateway.from_settings(),
        store=SqlOrderStore(async_session),
        cart=SqlCartClearer(async_session),
        metrics=get_reconciler_metrics(),
        storage_timeout=settings.storage_timeout_seconds,
        side_effect_timeout=settings.side_effect_timeout_seconds,
    )
