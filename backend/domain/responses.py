"""
Standard API response models and helpers for consistent response formatting.

All endpoints should use these helpers to ensure consistent response envelopes:
- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error: { "success": false, "error": { "code": "...", "message": "...", "details": {...}, "retryable": bool } }
"""
from typing import Any
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Standard error detail structure."""
    code: str = Field(..., description="Error code (e.g., 'notfound', 'authentication')")
    message: str = Field(..., description="Human-readable error message")
    details: Any = Field(default=None, description="Additional error context")
    retryable: bool = Field(False, description="Whether redelivering the request may succeed")


class StandardErrorResponse(BaseModel):
    """Standard error response envelope."""
    success: bool = Field(False, description="Always false for errors")
    error: ErrorDetail = Field(..., description="Error details")


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create a standardized success response.

    Args:
        data: The response payload
        meta: Optional metadata (timestamps, etc.)

    Returns:
        dict: { "success": true, "data": <data>, "meta": <meta> }
    """
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def error_response(
    code: str,
    message: str,
    details: Any = None,
    retryable: bool = False,
) -> dict[str, Any]:
    """Create a standardized error body (used by the exception handlers in main.py)."""
    return StandardErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details, retryable=retryable)
    ).model_dump()
