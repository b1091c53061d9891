# FILE: officine/core/exceptions.py
from __future__ import annotations

from typing import Any, Dict, Optional


class OfficineError(Exception):
    """
    Base for every domain error raised by the services.
    The API layer turns these into the standard error envelope.
    """
    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(OfficineError):
    status_code = 400
    code = "INVALID_INPUT"


class UnauthorizedError(OfficineError):
    status_code = 403
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(OfficineError):
    status_code = 404
    code = "NOT_FOUND"


class NoLowStockError(OfficineError):
    status_code = 409
    code = "NO_LOW_STOCK"

    def __init__(self, message: str = "No low stock products", **kwargs):
        super().__init__(message, **kwargs)


class StockError(OfficineError):
    status_code = 409
    code = "STOCK_ERROR"


class InsufficientStockError(StockError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id} "
            f"(requested {requested}, available {available})",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NegativeStockError(StockError):
    code = "NEGATIVE_STOCK"

    def __init__(self, lot_id: int, current: int, delta: int):
        super().__init__(
            f"Adjustment {delta} would drive lot {lot_id} below zero (current {current})",
            details={"lot_id": lot_id, "current": current, "delta": delta},
        )
        self.lot_id = lot_id
        self.current = current
        self.delta = delta


class LotExpiryMismatchError(StockError):
    code = "LOT_EXPIRY_MISMATCH"
