# FILE: officine/schemas/procurement.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from officine.models.procurement import ProcurementStatus, ProcurementType
from officine.schemas.common import ApiModel, Money, OrgScopedIn


class DeliveryNoteLineIn(ApiModel):
    product_id: int
    lot_number: str = Field(min_length=1)
    expiry_date: date
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)


class DeliveryNoteIn(OrgScopedIn):
    supplier_id: int
    external_reference: Optional[str] = None
    order_date: Optional[date] = None
    lines: List[DeliveryNoteLineIn] = Field(min_length=1)


class OrderStatusIn(OrgScopedIn):
    status: ProcurementStatus


class ProcurementItemOut(ApiModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Money
    line_total: Money


class ProcurementOrderOut(ApiModel):
    id: int
    order_number: Optional[str] = None
    type: ProcurementType
    status: ProcurementStatus
    supplier_id: int
    order_date: date
    external_reference: Optional[str] = None
    total_amount: Money
    created_from_alert: bool = False
    created_at: datetime
    items: List[ProcurementItemOut] = Field(default_factory=list)
