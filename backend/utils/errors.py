# backend/utils/errors.py
from typing import Any, Dict, Optional


# Base class for every failure the inventory core reports to a caller
class InventoryError(Exception):
    status_code = 400
    code = "INVENTORY_ERROR"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message, "code": self.code}
        body.update(self.extra)
        return body


# Missing or malformed input; raised before any write happens
class ValidationError(InventoryError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(InventoryError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class PermissionDenied(InventoryError):
    status_code = 403
    code = "FORBIDDEN"


# Referenced row is missing or belongs to somebody else
class NotFoundError(InventoryError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientStock(InventoryError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int, requested: int, available: Optional[int] = None, name: Optional[str] = None):
        label = name or f"item {item_id}"
        message = f"Insufficient stock for {label}"
        if available is not None:
            message += f". Available: {available}, requested: {requested}"
        super().__init__(message, item_id=item_id, requested=requested, available=available)
        self.item_id = item_id
        self.requested = requested
        self.available = available


class ItemInactive(InventoryError):
    status_code = 400
    code = "ITEM_INACTIVE"

    def __init__(self, item_id: int, name: Optional[str] = None):
        super().__init__(f"{name or f'Item {item_id}'} is not available for purchase", item_id=item_id)
        self.item_id = item_id


class EmptyOrder(InventoryError):
    status_code = 400
    code = "EMPTY_ORDER"


class InvalidStatusTransition(InventoryError):
    status_code = 409
    code = "INVALID_STATUS_TRANSITION"


# Persistence fault in the middle of a multi-step sequence; everything was rolled back
class TransactionFailure(InventoryError):
    status_code = 500
    code = "TRANSACTION_FAILURE"
