"""
Payment Notification Reconciler

Turns asynchronous, possibly duplicated, possibly out-of-order gateway
notifications into one terminal order status.

Pipeline per notification:
    1. Parse          → MalformedPayloadError if there is no order reference
    2. Authenticate   → signature and/or gateway status API (AuthenticationError)
    3. Resolve order  → NotFoundError, nothing written
    4. Map status     → services.status_mapper
    5. Transition     → pending-guarded UPDATE; exactly one caller wins
    6. Side effect    → clear the owner's cart, only for the winning → paid call
    7. Acknowledge    → ReconcileResult (cart failures are logged, not raised)

Retry policy lives with the gateway: storage and gateway outages raise
retryable errors (503) and the gateway redelivers. The guarded update makes
redelivery safe, so there is no retry loop here.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, TypeVar

from pydantic import ValidationError

from domain.enums import OrderStatus, ReconcileOutcome
from domain.errors import (
    AuthenticationError,
    GatewayUnavailableError,
    MalformedPayloadError,
    NotFoundError,
    SideEffectError,
    TransientStorageError,
)
from models import PaymentNotification, TransactionReport
from services.cart_service import CartClearer
from services.midtrans_gateway import MidtransGateway
from services.order_store import OrderSnapshot, OrderStore
from services.reconciler_metrics import ReconcilerMetrics
from services.status_mapper import map_transaction_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Writes that outlived their request; held so they are not garbage collected
_background_tasks: set[asyncio.Task] = set()


def _track(coro: Awaitable[None]) -> asyncio.Task:
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for late-finishing writes and their cart clearances."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


@dataclass(frozen=True)
class ReconcileResult:
    """Acknowledgement for one processed notification."""

    order_id: str
    outcome: ReconcileOutcome
    status: OrderStatus
    transaction_id: Optional[str] = None
    cart_cleared: bool = False
    side_effect_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "outcome": self.outcome.value,
            "status": self.status.value,
            "transactionId": self.transaction_id,
            "cartCleared": self.cart_cleared,
            "sideEffectError": self.side_effect_error,
        }


def parse_notification(payload: Any) -> PaymentNotification:
    """Validate the raw body. Only a missing/empty order reference is fatal."""
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Notification body must be a JSON object")

    try:
        return PaymentNotification.model_validate(payload)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise MalformedPayloadError(
            "Notification is missing required fields",
            details={"fields": fields},
        )


class NotificationReconciler:
    """Applies verified gateway notifications to orders."""

    def __init__(
        self,
        gateway: MidtransGateway,
        store: OrderStore,
        cart: CartClearer,
        metrics: ReconcilerMetrics,
        storage_timeout: float = 5.0,
        side_effect_timeout: float = 5.0,
    ):
        self.gateway = gateway
        self.store = store
        self.cart = cart
        self.metrics = metrics
        self.storage_timeout = storage_timeout
        self.side_effect_timeout = side_effect_timeout

    async def reconcile(self, payload: Any) -> ReconcileResult:
        """Process one notification end to end. See module docstring."""
        self.metrics.record_received()

        try:
            notification = parse_notification(payload)
        except MalformedPayloadError:
            self.metrics.record_malformed()
            logger.warning("Rejected payment notification without an order reference")
            raise

        logger.info(
            f"  📩 Payment notification: order={notification.order_id} "
            f"status={notification.transaction_status} fraud={notification.fraud_status}"
        )

        report = await self._authenticate(notification)

        order = await self._storage(self.store.get_order(report.order_id))
        if order is None:
            self.metrics.record_unknown_order()
            logger.warning(
                f"Payment notification for unknown order {report.order_id} "
                "(checkout/gateway reference mismatch?)"
            )
            raise NotFoundError("Order", report.order_id)

        candidate = map_transaction_status(report.transaction_status, report.fraud_status)

        if candidate is OrderStatus.PENDING:
            return await self._record_undecided(order, report)

        won = await self._transition(order, candidate, report)
        if not won:
            return await self._already_final(order, report, candidate)

        self.metrics.record_applied()
        logger.info(f"  ✅ Order {order.id} → {candidate.value} (tx: {report.transaction_id})")

        cart_cleared = False
        side_effect_error = None
        if candidate is OrderStatus.PAID:
            error = await self._clear_cart(order)
            cart_cleared = error is None
            side_effect_error = error.message if error else None

        return ReconcileResult(
            order_id=order.id,
            outcome=ReconcileOutcome.APPLIED,
            status=candidate,
            transaction_id=report.transaction_id,
            cart_cleared=cart_cleared,
            side_effect_error=side_effect_error,
        )

    # ── Steps ───────────────────────────────────────────────────────

    async def _authenticate(self, notification: PaymentNotification) -> TransactionReport:
        try:
            return await asyncio.wait_for(
                self.gateway.verify_notification(notification),
                timeout=self.gateway.timeout,
            )
        except asyncio.TimeoutError:
            self.metrics.record_gateway_error()
            logger.warning(f"Gateway verification timed out for {notification.order_id}")
            raise GatewayUnavailableError("Payment gateway verification timed out")
        except AuthenticationError as e:
            self.metrics.record_auth_failure()
            logger.warning(f"Unverified notification for {notification.order_id}: {e.message}")
            raise
        except GatewayUnavailableError:
            self.metrics.record_gateway_error()
            raise

    async def _storage(self, operation: Awaitable[T]) -> T:
        """Run one store call under the storage timeout budget."""
        try:
            return await asyncio.wait_for(operation, timeout=self.storage_timeout)
        except asyncio.TimeoutError:
            self.metrics.record_storage_error()
            logger.error(f"Order store call exceeded {self.storage_timeout}s")
            raise TransientStorageError("Order store timed out")
        except TransientStorageError:
            self.metrics.record_storage_error()
            raise

    async def _transition(
        self,
        order: OrderSnapshot,
        candidate: OrderStatus,
        report: TransactionReport,
    ) -> bool:
        """
        Pending-guarded update under the storage timeout.

        The write is shielded from the timeout. If the UPDATE commits after
        the caller has been told to retry, the write finishes in the
        background and a winning → paid transition still clears the cart.
        The redelivery sees the order already final and skips it.
        """
        write = asyncio.ensure_future(
            self.store.transition_from_pending(order.id, candidate, report.transaction_id)
        )
        try:
            return await asyncio.wait_for(asyncio.shield(write), timeout=self.storage_timeout)
        except asyncio.TimeoutError:
            self.metrics.record_storage_error()
            logger.error(
                f"Order {order.id}: update to {candidate.value} exceeded "
                f"{self.storage_timeout}s, finishing it in the background"
            )
            _track(self._finish_late_transition(write, order, candidate, report))
            raise TransientStorageError("Order store timed out", details={"order_id": order.id})
        except TransientStorageError:
            self.metrics.record_storage_error()
            raise

    async def _finish_late_transition(
        self,
        write: "asyncio.Future[bool]",
        order: OrderSnapshot,
        candidate: OrderStatus,
        report: TransactionReport,
    ) -> None:
        try:
            won = await write
        except Exception as e:
            logger.error(f"Late update for order {order.id} failed: {e!r}")
            return
        if not won:
            return

        self.metrics.record_applied()
        logger.info(
            f"  ✅ Order {order.id} → {candidate.value} "
            f"(tx: {report.transaction_id}, acknowledged late)"
        )
        if candidate is OrderStatus.PAID:
            await self._clear_cart(order)

    async def _record_undecided(self, order: OrderSnapshot, report: TransactionReport) -> ReconcileResult:
        """Fraud hold or unrecognized status: keep pending, remember the tx id."""
        self.metrics.record_undecided()
        if order.status is OrderStatus.PENDING:
            await self._storage(
                self.store.record_pending_notification(order.id, report.transaction_id)
            )
        logger.info(
            f"  ⏸️ Order {order.id} left {order.status.value} "
            f"(gateway status={report.transaction_status} fraud={report.fraud_status})"
        )
        return ReconcileResult(
            order_id=order.id,
            outcome=ReconcileOutcome.NO_DECISION,
            status=order.status,
            transaction_id=report.transaction_id,
        )

    async def _already_final(
        self,
        order: OrderSnapshot,
        report: TransactionReport,
        candidate: OrderStatus,
    ) -> ReconcileResult:
        """Another notification finalized the order first; report what stuck."""
        self.metrics.record_noop()
        current = await self._storage(self.store.get_order(order.id))
        final_status = current.status if current else order.status
        if final_status is not candidate:
            logger.warning(
                f"Order {order.id} is already {final_status.value}; "
                f"ignoring late {candidate.value} notification (tx: {report.transaction_id})"
            )
        else:
            logger.info(f"  🔁 Duplicate {candidate.value} notification for order {order.id}")
        return ReconcileResult(
            order_id=order.id,
            outcome=ReconcileOutcome.ALREADY_FINAL,
            status=final_status,
            transaction_id=report.transaction_id,
        )

    async def _clear_cart(self, order: OrderSnapshot) -> Optional[SideEffectError]:
        """Best-effort cart clearance. Failures are returned, logged and counted."""
        try:
            await asyncio.wait_for(
                self.cart.clear_cart(order.owner_id),
                timeout=self.side_effect_timeout,
            )
        except Exception as e:
            error = SideEffectError(
                f"Cart clearance failed for owner {order.owner_id}",
                details={"order_id": order.id, "reason": repr(e)},
            )
            self.metrics.record_side_effect_failure()
            logger.error(
                f"  ❌ Order {order.id} is paid but clearing cart of {order.owner_id} failed: {e!r}",
                exc_info=True,
            )
            return error

        self.metrics.record_cart_cleared()
        return None
