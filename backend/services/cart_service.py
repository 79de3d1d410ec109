"""
Cart Service — the one operation the payment reconciler may trigger on
the cart subsystem: clear every pending line for an account.

Idempotent: clearing an empty cart deletes nothing and succeeds.
"""
import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db_models import CartItem

logger = logging.getLogger(__name__)


class CartClearer(ABC):
    """Abstract cart-clearing collaborator."""

    @abstractmethod
    async def clear_cart(self, owner_id: str) -> int:
        """Remove all pending items for owner_id. Returns rows removed."""
        ...


class SqlCartClearer(CartClearer):
    """Deletes cart_items rows in a session of its own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def clear_cart(self, owner_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(CartItem)
                .where(CartItem.user_id == owner_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        removed = result.rowcount or 0
        logger.info(f"  🛒 Cart cleared for {owner_id} ({removed} items)")
        return removed
