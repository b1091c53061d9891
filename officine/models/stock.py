# FILE: officine/models/stock.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Enum,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from officine.db.base import Base
from officine.utils.timezone import now_local


# -------------------------
# Enums
# -------------------------
class LotSourceType(str, enum.Enum):
    DELIVERY_NOTE = "DELIVERY_NOTE"
    INITIAL_STOCK = "INITIAL_STOCK"
    MIGRATION = "MIGRATION"


class StockMovementType(str, enum.Enum):
    PRODUCT_INITIAL_STOCK = "PRODUCT_INITIAL_STOCK"
    PRODUCT_STOCK_EDIT = "PRODUCT_STOCK_EDIT"
    DELIVERY_NOTE_STOCK_SYNC = "DELIVERY_NOTE_STOCK_SYNC"
    SALE_STOCK_SYNC = "SALE_STOCK_SYNC"
    MANUAL_STOCK_ADJUSTMENT = "MANUAL_STOCK_ADJUSTMENT"
    STOCKTAKE_STOCK_SYNC = "STOCKTAKE_STOCK_SYNC"


# -------------------------
# Lots
# -------------------------
class StockLot(Base):
    """
    One physical batch of a product.
    Lots at zero are kept for traceability, never deleted.
    """
    __tablename__ = "stock_lots"
    __table_args__ = (
        UniqueConstraint("pharmacy_id", "product_id", "lot_number", name="uq_stock_lots_product_lot"),
        CheckConstraint("quantity >= 0", name="ck_stock_lots_qty_nonneg"),
        Index("ix_stock_lots_pharmacy_product", "pharmacy_id", "product_id"),
        Index("ix_stock_lots_pharmacy_expiry", "pharmacy_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    lot_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    source_type = Column(
        Enum(LotSourceType, name="stock_lot_source_type"),
        nullable=False,
        default=LotSourceType.DELIVERY_NOTE,
    )
    source_order_id = Column(Integer, ForeignKey("procurement_orders.id"), nullable=True)
    source_item_id = Column(Integer, ForeignKey("procurement_items.id"), nullable=True)

    created_at = Column(DateTime, default=now_local, nullable=False)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local, nullable=False)

    product = relationship("Product")
    source_order = relationship("ProcurementOrder", foreign_keys=[source_order_id])


# -------------------------
# Movements (append-only)
# -------------------------
class StockMovement(Base):
    """
    Append-only ledger row. `product_name_snapshot` is copied at write time
    and never follows later product renames.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index("ix_stock_movements_pharmacy_created", "pharmacy_id", "created_at"),
        Index("ix_stock_movements_product_lot", "product_id", "lot_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("stock_lots.id"), nullable=True, index=True)

    product_name_snapshot = Column(String(255), nullable=False, default="")
    delta = Column(Integer, nullable=False)  # +IN / -OUT
    movement_type = Column(Enum(StockMovementType, name="stock_movement_type"), nullable=False)

    lot_number = Column(String(100), nullable=True)
    lot_expiry_date = Column(Date, nullable=True)

    reason = Column(String(1000), nullable=True)
    source_id = Column(String(64), nullable=True)  # sale / order / stocktake that caused it
    created_by_user_id = Column(String(191), nullable=False, default="system")

    created_at = Column(DateTime, default=now_local, nullable=False)

    lot = relationship("StockLot")
