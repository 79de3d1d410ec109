"""
Reconciler metrics for payment-notification throughput and failure monitoring.

Simple in-memory counters per process; can be replaced with Prometheus later.
"""
import time
from dataclasses import dataclass, field


@dataclass
class ReconcilerMetrics:
    """In-memory metrics for the payment notification reconciler."""

    notifications_received: int = 0
    transitions_applied: int = 0
    idempotent_noops: int = 0
    undecided_notifications: int = 0
    malformed_payloads: int = 0
    authentication_failures: int = 0
    unknown_orders: int = 0
    storage_errors: int = 0
    gateway_errors: int = 0
    carts_cleared: int = 0
    side_effect_failures: int = 0
    last_notification_at: float | None = None
    # Rolling window: notifications in last 60 seconds
    _minute_window: list[float] = field(default_factory=list)
    _window_seconds: float = 60.0

    def record_received(self) -> None:
        self.notifications_received += 1
        now = time.monotonic()
        self.last_notification_at = now
        self._minute_window.append(now)
        self._prune_window(now)

    def record_applied(self) -> None:
        self.transitions_applied += 1

    def record_noop(self) -> None:
        self.idempotent_noops += 1

    def record_undecided(self) -> None:
        self.undecided_notifications += 1

    def record_malformed(self) -> None:
        self.malformed_payloads += 1

    def record_auth_failure(self) -> None:
        self.authentication_failures += 1

    def record_unknown_order(self) -> None:
        self.unknown_orders += 1

    def record_storage_error(self) -> None:
        self.storage_errors += 1

    def record_gateway_error(self) -> None:
        self.gateway_errors += 1

    def record_cart_cleared(self) -> None:
        self.carts_cleared += 1

    def record_side_effect_failure(self) -> None:
        self.side_effect_failures += 1

    def _prune_window(self, now: float) -> None:
        cutoff = now - self._window_seconds
        self._minute_window = [t for t in self._minute_window if t > cutoff]

    @property
    def notifications_last_minute(self) -> int:
        self._prune_window(time.monotonic())
        return len(self._minute_window)

    def to_dict(self) -> dict:
        age = None
        if self.last_notification_at is not None:
            age = round(time.monotonic() - self.last_notification_at, 1)
        return {
            "notifications_received": self.notifications_received,
            "transitions_applied": self.transitions_applied,
            "idempotent_noops": self.idempotent_noops,
            "undecided_notifications": self.undecided_notifications,
            "malformed_payloads": self.malformed_payloads,
            "authentication_failures": self.authentication_failures,
            "unknown_orders": self.unknown_orders,
            "storage_errors": self.storage_errors,
            "gateway_errors": self.gateway_errors,
            "carts_cleared": self.carts_cleared,
            "side_effect_failures": self.side_effect_failures,
            "notifications_last_minute": self.notifications_last_minute,
            "last_notification_age_seconds": age,
        }


# Singleton metrics instance
_metrics: ReconcilerMetrics | None = None


def get_reconciler_metrics() -> ReconcilerMetrics:
    global _metrics
    if _metrics is None:
        _metrics = ReconcilerMetrics()
    return _metrics
