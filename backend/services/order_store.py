"""
Order Store — persistence port for the payment reconciler.

The only write the reconciler performs is a pending-guarded UPDATE:

    UPDATE orders SET status = :new, ...
     WHERE id = :id AND status = 'pending'

The row count decides which of several concurrent notifications finalized
the order; everyone else sees 0 rows and treats it as a no-op. No
read-then-write, no in-process locks: the database serializes writers, so
this holds across any number of service instances.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db_models import Order
from domain.enums import OrderStatus
from domain.errors import TransientStorageError

logger = logging.getLogger(__name__)

# Connection-level failures worth a gateway redelivery
_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable view of an order row at read time."""

    id: str
    owner_id: str
    status: OrderStatus
    display_id: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Order) -> "OrderSnapshot":
        return cls(
            id=row.id,
            owner_id=row.user_id,
            status=OrderStatus(row.status),
            display_id=row.display_id,
            gateway_transaction_id=row.midtrans_transaction_id,
            updated_at=row.updated_at,
        )


class OrderStore(ABC):
    """Abstract order store used by NotificationReconciler."""

    @abstractmethod
    async def get_order(self, order_ref: str) -> Optional[OrderSnapshot]:
        """Resolve an order by primary id or display reference."""
        ...

    @abstractmethod
    async def transition_from_pending(
        self,
        order_id: str,
        new_status: OrderStatus,
        transaction_id: Optional[str],
    ) -> bool:
        """
        Atomically move a pending order to new_status.

        Returns True only for the caller whose write changed the row.
        """
        ...

    @abstractmethod
    async def record_pending_notification(
        self,
        order_id: str,
        transaction_id: Optional[str],
    ) -> bool:
        """Store the latest gateway transaction id on a still-pending order."""
        ...


class SqlOrderStore(OrderStore):
    """SQLAlchemy implementation. One short session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_order(self, order_ref: str) -> Optional[OrderSnapshot]:
        try:
            async with self._session_factory() as session:
                # Primary id wins over another order's display reference
                row = await session.get(Order, order_ref)
                if row is None:
                    result = await session.execute(
                        select(Order).where(Order.display_id == order_ref)
                    )
                    row = result.scalar_one_or_none()
                return OrderSnapshot.from_row(row) if row else None
        except _TRANSIENT_ERRORS as e:
            logger.error(f"Order lookup failed for {order_ref}: {e}", exc_info=True)
            raise TransientStorageError(details={"order_ref": order_ref})

    async def transition_from_pending(
        self,
        order_id: str,
        new_status: OrderStatus,
        transaction_id: Optional[str],
    ) -> bool:
        values = {"status": new_status.value, "updated_at": datetime.utcnow()}
        if transaction_id:
            values["midtrans_transaction_id"] = transaction_id
        return await self._update_if_pending(order_id, values)

    async def record_pending_notification(
        self,
        order_id: str,
        transaction_id: Optional[str],
    ) -> bool:
        if not transaction_id:
            return False
        return await self._update_if_pending(
            order_id,
            {"midtrans_transaction_id": transaction_id, "updated_at": datetime.utcnow()},
        )

    async def _update_if_pending(self, order_id: str, values: dict) -> bool:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount == 1
        except _TRANSIENT_ERRORS as e:
            logger.error(f"Conditional update failed for order {order_id}: {e}", exc_info=True)
            raise TransientStorageError(details={"order_id": order_id})
