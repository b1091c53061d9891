# FILE: officine/schemas/stock_lots.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from officine.models.stock import LotSourceType, StockMovementType
from officine.schemas.common import ApiModel, OrgScopedIn


# -------------------------
# Enums
# -------------------------
class ExpirySeverity(str, Enum):
    EXPIRED = "EXPIRED"
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    WATCH = "WATCH"


class TimelineEventType(str, Enum):
    RECEPTION = "RECEPTION"
    SORTIE = "SORTIE"
    AJUSTEMENT = "AJUSTEMENT"


# -------------------------
# Ledger
# -------------------------
class StockLotOut(ApiModel):
    id: int
    product_id: int
    lot_number: str
    expiry_date: date
    quantity: int
    source_type: LotSourceType
    source_order_id: Optional[int] = None
    source_item_id: Optional[int] = None
    created_at: datetime


class ProductLotsOut(ApiModel):
    product_id: int
    product_name: str
    total_quantity: int
    lots: List[StockLotOut] = Field(default_factory=list)


class LotAllocationOut(ApiModel):
    lot_id: int
    lot_number: str
    expiry_date: date
    quantity: int


class ReceiveLotIn(OrgScopedIn):
    product_id: int
    lot_number: str = Field(min_length=1)
    expiry_date: date
    quantity: int = Field(gt=0)
    source_type: LotSourceType = LotSourceType.INITIAL_STOCK
    reason: Optional[str] = None


class ConsumeIn(OrgScopedIn):
    product_id: int
    quantity: int = Field(gt=0)
    reason: Optional[str] = None


class AdjustLotIn(OrgScopedIn):
    delta: int
    reason: str = Field(min_length=1)
    movement_type: StockMovementType = StockMovementType.MANUAL_STOCK_ADJUSTMENT


# -------------------------
# Expiry risk
# -------------------------
class ExpiryRiskFilters(ApiModel):
    product_ids: List[int] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    supplier_ids: List[int] = Field(default_factory=list)
    severities: List[ExpirySeverity] = Field(default_factory=list)


class ExpiryRiskItemOut(ApiModel):
    lot_id: int
    product_id: int
    product_name: str
    product_category: str
    lot_number: str
    expiry_date: date
    days_to_expiry: int
    quantity: int
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    severity: ExpirySeverity
    recommended_action: str
    recommended_path_label: str
    recommended_path_href: str
    lot_detail_path: str


class ExpiryRiskCountsOut(ApiModel):
    total: int = 0
    expired: int = 0
    due_in30_days: int = Field(default=0, alias="dueIn30Days")
    due_in60_days: int = Field(default=0, alias="dueIn60Days")
    due_in90_days: int = Field(default=0, alias="dueIn90Days")


class NamedOption(ApiModel):
    id: int
    name: str


class ExpiryRiskFilterOptionsOut(ApiModel):
    products: List[NamedOption] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    suppliers: List[NamedOption] = Field(default_factory=list)
    severities: List[ExpirySeverity] = Field(default_factory=lambda: list(ExpirySeverity))


class ExpiryRiskOut(ApiModel):
    items: List[ExpiryRiskItemOut] = Field(default_factory=list)
    counts: ExpiryRiskCountsOut = Field(default_factory=ExpiryRiskCountsOut)
    filter_options: ExpiryRiskFilterOptionsOut = Field(default_factory=ExpiryRiskFilterOptionsOut)


# -------------------------
# Traceability
# -------------------------
class TimelineEventOut(ApiModel):
    id: str
    created_at: datetime
    event_type: TimelineEventType
    movement_type: StockMovementType
    delta: int
    reason: Optional[str] = None
    reference: str


class LotTraceOut(ApiModel):
    lot_id: int
    product_id: int
    product_name: str
    product_category: str
    lot_number: str
    expiry_date: date
    current_balance: int
    received_quantity: int
    sold_quantity: int
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    recall_report_path: str
    timeline: List[TimelineEventOut] = Field(default_factory=list)


class LotTraceabilityOut(ApiModel):
    lot_number: str
    items: List[LotTraceOut] = Field(default_factory=list)
