# FILE: officine/models/procurement.py
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, Enum,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from officine.db.base import Base
from officine.utils.timezone import now_local, today_local

Money = Numeric(14, 2)


class ProcurementType(str, enum.Enum):
    PURCHASE_ORDER = "PURCHASE_ORDER"
    DELIVERY_NOTE = "DELIVERY_NOTE"


class ProcurementStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    DELIVERED = "DELIVERED"


class ProcurementOrder(Base):
    __tablename__ = "procurement_orders"
    __table_args__ = (
        UniqueConstraint("pharmacy_id", "order_number", name="uq_procurement_orders_number"),
        Index("ix_procurement_orders_pharmacy_type", "pharmacy_id", "type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    order_number = Column(String(50), nullable=True)
    order_sequence = Column(Integer, nullable=True)

    type = Column(Enum(ProcurementType, name="procurement_type"), nullable=False)
    status = Column(Enum(ProcurementStatus, name="procurement_status"), nullable=False, default=ProcurementStatus.DRAFT)

    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    order_date = Column(Date, nullable=False, default=today_local)
    external_reference = Column(String(100), nullable=True)

    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    created_from_alert = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=now_local)

    supplier = relationship("Supplier")
    items = relationship(
        "ProcurementItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ProcurementItem.id",
    )


class ProcurementItem(Base):
    __tablename__ = "procurement_items"
    __table_args__ = (
        Index("ix_procurement_items_order", "order_id"),
    )

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("procurement_orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    line_total = Column(Money, nullable=False, default=Decimal("0.00"))

    order = relationship("ProcurementOrder", back_populates="items")
    product = relationship("Product")


class ProcurementItemLot(Base):
    """Links a received procurement line to the lot it fed."""
    __tablename__ = "procurement_item_lots"
    __table_args__ = (
        Index("ix_procurement_item_lots_pharmacy_lot", "pharmacy_id", "lot_id"),
    )

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("procurement_orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("procurement_items.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    lot_id = Column(Integer, ForeignKey("stock_lots.id"), nullable=False)

    lot_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=now_local)

    order = relationship("ProcurementOrder")
