# FILE: officine/models/sales.py
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import Column, Integer, String, DateTime, Date, Numeric, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship

from officine.db.base import Base
from officine.utils.timezone import now_local

Money = Numeric(14, 2)


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    CHECK = "CHECK"
    CREDIT = "CREDIT"


class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (
        Index("ix_sales_pharmacy_date", "pharmacy_id", "sale_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    sale_date = Column(DateTime, nullable=False, default=now_local)
    payment_method = Column(Enum(PaymentMethod, name="sale_payment_method"), nullable=False)
    seller_user_id = Column(String(191), nullable=False, default="system")

    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime, nullable=False, default=now_local)

    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan", order_by="SaleItem.id")


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    product_name_snapshot = Column(String(255), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    line_total = Column(Money, nullable=False, default=Decimal("0.00"))

    sale = relationship("Sale", back_populates="items")
    lots = relationship("SaleItemLot", back_populates="sale_item", cascade="all, delete-orphan")


class SaleItemLot(Base):
    """Which lot(s) a sale line was served from, one row per FEFO allocation."""
    __tablename__ = "sale_item_lots"
    __table_args__ = (
        Index("ix_sale_item_lots_pharmacy_lot", "pharmacy_id", "lot_id"),
    )

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    sale_item_id = Column(Integer, ForeignKey("sale_items.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    lot_id = Column(Integer, ForeignKey("stock_lots.id"), nullable=False)

    lot_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=now_local)

    sale_item = relationship("SaleItem", back_populates="lots")
