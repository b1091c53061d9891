# FILE: officine/api/routes_stock_movements.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.models.stock import StockMovementType
from officine.schemas.stock_movements import StockMovementFilters
from officine.services.stock_movements import MAX_PAGE_SIZE, list_movements

router = APIRouter(prefix="/stock-movements", tags=["Stock Movements"])


@router.get("")
def stock_movements_list(
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    product_ids: Optional[List[int]] = Query(None, alias="productIds"),
    types: Optional[List[StockMovementType]] = Query(None),
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    filters = StockMovementFilters(
        product_ids=product_ids or [],
        types=types or [],
        from_date=from_date,
        to_date=to_date,
    )
    return ok(list_movements(db, identity, clerk_org_id, page=page, page_size=page_size, filters=filters))
