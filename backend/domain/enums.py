"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"              # this notification finalized the order
    ALREADY_FINAL = "already_final"  # order was terminal before (or lost a race)
    NO_DECISION = "no_decision"      # mapped to pending; nothing to finalize
