# FILE: officine/models/catalog.py
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Index

from officine.db.base import Base
from officine.utils.timezone import now_local

Money = Numeric(14, 2)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_pharmacy_name", "pharmacy_id", "name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    category = Column(String(120), nullable=False, default="")

    purchase_price = Column(Money, nullable=False, default=Decimal("0"))
    selling_price = Column(Money, nullable=False, default=Decimal("0"))

    # stock itself lives in stock_lots; this is only the alert threshold
    low_stock_threshold = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=now_local, nullable=False)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local, nullable=False)


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), default="")
    phone = Column(String(50), default="")
    address = Column(String(1000), default="")

    created_at = Column(DateTime, default=now_local, nullable=False)
