# FILE: officine/schemas/stock_movements.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from officine.models.stock import StockMovementType
from officine.schemas.common import ApiModel


class StockMovementFilters(ApiModel):
    product_ids: List[int] = Field(default_factory=list)
    types: List[StockMovementType] = Field(default_factory=list)
    from_date: Optional[date] = Field(default=None, alias="from")
    to_date: Optional[date] = Field(default=None, alias="to")


class StockMovementOut(ApiModel):
    id: int
    product_id: int
    lot_id: Optional[int] = None
    product_name_snapshot: str
    delta: int
    movement_type: StockMovementType
    lot_number: Optional[str] = None
    lot_expiry_date: Optional[date] = None
    reason: Optional[str] = None
    source_id: Optional[str] = None
    created_by_user_id: str
    created_at: datetime


class MovementFilterOptionsOut(ApiModel):
    product_ids: List[int] = Field(default_factory=list)
    types: List[StockMovementType] = Field(default_factory=list)


class StockMovementPageOut(ApiModel):
    items: List[StockMovementOut] = Field(default_factory=list)
    page: int = 1
    page_size: int = 25
    total_count: int = 0
    filter_options: MovementFilterOptionsOut = Field(default_factory=MovementFilterOptionsOut)
