# FILE: officine/models/__init__.py
from .pharmacy import Pharmacy, LowStockAlertState
from .catalog import Product, Supplier
from .stock import StockLot, StockMovement, LotSourceType, StockMovementType
from .procurement import (
    ProcurementOrder,
    ProcurementItem,
    ProcurementItemLot,
    ProcurementType,
    ProcurementStatus,
)
from .sales import Sale, SaleItem, SaleItemLot, PaymentMethod
from .error_log import ErrorLog

__all__ = [
    "Pharmacy",
    "LowStockAlertState",
    "Product",
    "Supplier",
    "StockLot",
    "StockMovement",
    "LotSourceType",
    "StockMovementType",
    "ProcurementOrder",
    "ProcurementItem",
    "ProcurementItemLot",
    "ProcurementType",
    "ProcurementStatus",
    "Sale",
    "SaleItem",
    "SaleItemLot",
    "PaymentMethod",
    "ErrorLog",
]
