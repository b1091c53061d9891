# FILE: officine/models/pharmacy.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from officine.db.base import Base
from officine.utils.timezone import now_local


class Pharmacy(Base):
    """Tenant record, one per identity-provider organization."""
    __tablename__ = "pharmacies"

    id = Column(Integer, primary_key=True, index=True)
    clerk_org_id = Column(String(191), nullable=False, unique=True, index=True)
    name = Column(String(191), nullable=False)
    pharmacy_number = Column(String(32), nullable=True)
    pharmacy_sequence = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=now_local, nullable=False)

    low_stock_alert = relationship(
        "LowStockAlertState",
        back_populates="pharmacy",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Pharmacy id={self.id} org={self.clerk_org_id} name={self.name}>"


class LowStockAlertState(Base):
    """
    Per-tenant pointer to the draft replenishment order kept in line with
    the low-stock set. `order_id` is not a foreign key: the order can be
    deleted or confirmed behind our back and the pointer is re-validated
    on every read.
    """
    __tablename__ = "low_stock_alert_states"

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, unique=True, index=True)

    order_id = Column(Integer, nullable=True)
    signature = Column(String(4000), nullable=True)
    handled_signature = Column(String(4000), nullable=True)

    updated_at = Column(DateTime, default=now_local, onupdate=now_local, nullable=False)

    pharmacy = relationship("Pharmacy", back_populates="low_stock_alert")
