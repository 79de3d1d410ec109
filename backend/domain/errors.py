"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. `retryable` tells the payment gateway whether redelivering the same
notification can succeed: only failures that happened before any state was
decided are retryable.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class MalformedPayloadError(DomainError):
    """Notification body unusable, e.g. no order reference (400)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class AuthenticationError(DomainError):
    """Notification could not be verified as coming from the gateway (401)."""
    def __init__(self, message: str = "Notification could not be verified", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class TransientStorageError(DomainError):
    """Order store timed out or lost its connection (503, retry the notification)."""
    retryable = True

    def __init__(self, message: str = "Order store temporarily unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class GatewayUnavailableError(DomainError):
    """Gateway status API unreachable or failing (503, retry the notification)."""
    retryable = True

    def __init__(self, message: str = "Payment gateway temporarily unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class SideEffectError(DomainError):
    """
    Cart clearance failed after the order was finalized.

    Never returned to the gateway: the payment state is already committed.
    Logged and attached to the reconcile result instead.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)
