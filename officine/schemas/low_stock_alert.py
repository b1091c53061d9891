# FILE: officine/schemas/low_stock_alert.py
from __future__ import annotations

from typing import Optional

from officine.schemas.common import ApiModel, OrgScopedIn


class LowStockSummaryOut(ApiModel):
    count: int
    signature: str
    has_active_draft: bool
    active_order_id: Optional[int] = None
    last_synced_signature: Optional[str] = None
    is_handled: bool = False


class CreateLowStockDraftIn(OrgScopedIn):
    supplier_id: int


class LowStockDraftOut(ApiModel):
    order_id: Optional[int] = None
