"""
SQLAlchemy ORM models for the storefront payment service.

Tables:
    orders      — checkout orders, reconciled against payment notifications
    cart_items  — pending cart lines per account (owned by the cart subsystem)
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, DateTime, Index

from database import Base
from domain.enums import OrderStatus


def _new_order_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """
    Checkout order.

    Lifecycle:
        1. Checkout creates the row (status=pending) and registers
           display_id with the gateway as its order reference
        2. Gateway notifications move it to paid / cancelled / failed
        3. Terminal rows are never rewritten by later notifications
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_order_id)
    display_id = Column(String(64), unique=True, nullable=True, index=True)  # "PJ-XXXXXXXX-XXXX"
    user_id = Column(String(64), nullable=False, index=True)
    status = Column(
        String(20), nullable=False, default=OrderStatus.PENDING.value, index=True
    )  # pending | paid | cancelled | failed
    midtrans_transaction_id = Column(String(64), nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # For the admin report: filter by owner, order by created_at DESC
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class CartItem(Base):
    """A pending line in an account's cart."""
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
