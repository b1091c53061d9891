# FILE: officine/api/routes_alerts.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.schemas.common import OrgScopedIn
from officine.schemas.low_stock_alert import CreateLowStockDraftIn, LowStockDraftOut
from officine.services.low_stock_alert import (
    create_low_stock_draft,
    low_stock_summary,
    refresh_low_stock_draft,
    sync_low_stock_draft,
)

router = APIRouter(prefix="/alerts/low-stock", tags=["Low Stock Alerts"])


@router.get("/summary")
def low_stock_summary_route(
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    return ok(low_stock_summary(db, identity, clerk_org_id))


@router.post("/draft")
def low_stock_draft_create(
    payload: CreateLowStockDraftIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    order_id = create_low_stock_draft(db, identity, payload.clerk_org_id, payload.supplier_id)
    db.commit()
    return ok(LowStockDraftOut(order_id=order_id), status_code=201)


@router.post("/draft/{order_id}/sync")
def low_stock_draft_sync(
    order_id: int,
    payload: OrgScopedIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    synced = sync_low_stock_draft(db, identity, payload.clerk_org_id, order_id)
    db.commit()
    return ok(LowStockDraftOut(order_id=synced))


@router.post("/refresh")
def low_stock_draft_refresh(
    payload: OrgScopedIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    order_id = refresh_low_stock_draft(db, identity, payload.clerk_org_id)
    db.commit()
    return ok(LowStockDraftOut(order_id=order_id))
