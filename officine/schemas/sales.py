# FILE: officine/schemas/sales.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import Field

from officine.models.sales import PaymentMethod
from officine.schemas.common import ApiModel, Money, OrgScopedIn


class SaleLineIn(ApiModel):
    product_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)


class SaleIn(OrgScopedIn):
    payment_method: PaymentMethod = PaymentMethod.CASH
    lines: List[SaleLineIn] = Field(min_length=1)


class SaleItemLotOut(ApiModel):
    lot_id: int
    lot_number: str
    expiry_date: date
    quantity: int


class SaleItemOut(ApiModel):
    id: int
    product_id: int
    product_name_snapshot: str
    quantity: int
    unit_price: Money
    line_total: Money
    lots: List[SaleItemLotOut] = Field(default_factory=list)


class SaleOut(ApiModel):
    id: int
    sale_date: datetime
    payment_method: PaymentMethod
    seller_user_id: str
    total_amount: Money
    items: List[SaleItemOut] = Field(default_factory=list)
