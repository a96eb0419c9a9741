"""
Centralized Exception Handling for the Dukkan back office

This module provides:
- Custom exception classes for the inventory & ledger core
- Standardized error response format
- Exception handlers for FastAPI

Propagation policy:
- Repositories surface StoreError unchanged
- Services translate missing entities to NotFoundError subclasses and
  business-rule violations to InsufficientStockError / ValidationError /
  InvalidStatusTransitionError
- The API layer maps every DukkanException to a JSON error envelope
"""

from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# =============================================================================
# Module Exports
# =============================================================================
__all__ = [
    # Base exception
    "DukkanException",
    # Validation
    "ValidationError",
    "InvalidStatusTransitionError",
    # Resources
    "NotFoundError",
    "ProductNotFoundError",
    "SaleNotFoundError",
    "CustomerNotFoundError",
    "RepairNotFoundError",
    "SupplierNotFoundError",
    "PurchaseNotFoundError",
    "PhoneStockNotFoundError",
    "PhoneSaleNotFoundError",
    "CategoryNotFoundError",
    "ExpenseNotFoundError",
    # Inventory
    "InsufficientStockError",
    # Storage
    "StoreError",
    "VersionConflictError",
    "TransactionRollbackError",
    # Response helpers
    "create_error_response",
    "dukkan_exception_handler",
    "request_validation_exception_handler",
]


class DukkanException(Exception):
    """Base exception for the Dukkan back office"""

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR", details: Dict[str, Any] = None, status_code: int = 500):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(DukkanException):
    """Data validation error (empty item list, non-positive amount/quantity, ...)"""

    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", details, 400)


class InvalidStatusTransitionError(DukkanException):
    """Repair status may only move forward: in_progress -> completed -> delivered"""

    def __init__(self, repair_id: str, current_status: str, requested_status: str):
        super().__init__(
            f"Cannot move repair '{repair_id}' from '{current_status}' to '{requested_status}'",
            "INVALID_STATUS_TRANSITION",
            {
                "repair_id": repair_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
            409
        )


class NotFoundError(DukkanException):
    """Resource not found error"""

    def __init__(self, message: str = "Resource not found", details: Dict[str, Any] = None,
                 error_code: str = "NOT_FOUND"):
        super().__init__(message, error_code, details, 404)


def _entity_not_found(label: str, code: str):
    class _EntityNotFound(NotFoundError):
        def __init__(self, entity_id: str, details: Dict[str, Any] = None):
            self.entity_id = entity_id
            super().__init__(
                f"{label} '{entity_id}' not found",
                {**(details or {}), "id": entity_id},
                code
            )

    return _EntityNotFound


class ProductNotFoundError(_entity_not_found("Product", "PRODUCT_NOT_FOUND")):
    """Product id did not resolve to a live product"""


class SaleNotFoundError(_entity_not_found("Sale", "SALE_NOT_FOUND")):
    """Sale id did not resolve"""


class CustomerNotFoundError(_entity_not_found("Customer", "CUSTOMER_NOT_FOUND")):
    """Customer id did not resolve"""


class RepairNotFoundError(_entity_not_found("Repair", "REPAIR_NOT_FOUND")):
    """Repair record id did not resolve"""


class SupplierNotFoundError(_entity_not_found("Supplier", "SUPPLIER_NOT_FOUND")):
    """Supplier id did not resolve"""


class PurchaseNotFoundError(_entity_not_found("Purchase", "PURCHASE_NOT_FOUND")):
    """Purchase id did not resolve"""


class PhoneStockNotFoundError(_entity_not_found("Phone stock", "PHONE_STOCK_NOT_FOUND")):
    """Phone stock id did not resolve"""


class PhoneSaleNotFoundError(_entity_not_found("Phone sale", "PHONE_SALE_NOT_FOUND")):
    """Phone sale id did not resolve"""


class CategoryNotFoundError(_entity_not_found("Category", "CATEGORY_NOT_FOUND")):
    """Category id did not resolve"""


class ExpenseNotFoundError(_entity_not_found("Expense", "EXPENSE_NOT_FOUND")):
    """Expense id did not resolve"""


class InsufficientStockError(DukkanException):
    """Requested quantity exceeds available stock"""

    def __init__(self, product_id: str, requested: int, available: int, details: Dict[str, Any] = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product '{product_id}': requested {requested}, available {available}",
            "INSUFFICIENT_STOCK",
            {**(details or {}), "product_id": product_id, "requested": requested, "available": available},
            409
        )


class StoreError(DukkanException):
    """Underlying key-value store I/O failure. Always retryable by the caller."""

    def __init__(self, message: str = "Key-value store operation failed", details: Dict[str, Any] = None,
                 error_code: str = "STORE_ERROR", status_code: int = 503):
        super().__init__(message, error_code, {**(details or {}), "retryable": True}, status_code)


class VersionConflictError(StoreError):
    """Conditional write lost against a concurrent writer"""

    def __init__(self, key: str, expected_version: int, actual_version: Optional[int] = None):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on '{key}': expected {expected_version}, found {actual_version}",
            {"key": key, "expected_version": expected_version, "actual_version": actual_version},
            "VERSION_CONFLICT",
            409
        )


class TransactionRollbackError(DukkanException):
    """
    CRITICAL: Compensating write failed after a partial stock mutation.

    This indicates a potentially inconsistent state that requires manual
    intervention.
    """

    def __init__(self, operation: str, rollback_reason: str,
                 rollback_error: str, details: Dict[str, Any] = None):
        logger.critical(
            f"ROLLBACK FAILED - INCONSISTENT STATE POSSIBLE. "
            f"Operation: {operation}, Reason: {rollback_reason}, "
            f"Rollback Error: {rollback_error}"
        )
        super().__init__(
            f"Critical: Failed to roll back '{operation}'. "
            f"Manual intervention required. Rollback error: {rollback_error}",
            "TRANSACTION_ROLLBACK_FAILED",
            {
                **(details or {}),
                "operation": operation,
                "rollback_reason": rollback_reason,
                "rollback_error": rollback_error,
                "requires_manual_intervention": True
            },
            500
        )


def create_error_response(error: DukkanException, status_code: Optional[int] = None) -> JSONResponse:
    """Create standardized error response"""

    if status_code is None:
        status_code = error.status_code

    error_response = {
        "success": False,
        "error": {
            "code": error.error_code,
            "message": error.message,
            "details": error.details
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    log = logger.error if status_code >= 500 else logger.warning
    log(f"Dukkan Error: {error.error_code} - {error.message}", extra={
        "error_code": error.error_code,
        "status_code": status_code,
    })

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_response)
    )


async def dukkan_exception_handler(request, exc: DukkanException) -> JSONResponse:
    """Global exception handler for Dukkan exceptions"""
    return create_error_response(exc)


async def request_validation_exception_handler(request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic request validation failures in the common envelope"""
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "constraint": err.get("msg")}
        for err in exc.errors()
    ]
    return create_error_response(ValidationError("Request validation failed", {"errors": errors}))
