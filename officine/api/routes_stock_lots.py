# FILE: officine/api/routes_stock_lots.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.schemas.stock_lots import (
    AdjustLotIn,
    ConsumeIn,
    ExpiryRiskFilters,
    ExpirySeverity,
    LotAllocationOut,
    ProductLotsOut,
    ReceiveLotIn,
    StockLotOut,
)
from officine.services.expiry_risk import list_expiry_risk
from officine.services.lot_traceability import get_lot_traceability
from officine.services.stock_ledger import adjust_lot, consume_fefo, list_lots, receive_lot
from officine.services.tenancy import require_pharmacy

router = APIRouter(prefix="/stock-lots", tags=["Stock Lots"])


# ============================================================
# Reads (unauthorized tenants get empty results)
# ============================================================
@router.get("")
def stock_lots_list(
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    product_id: Optional[int] = Query(None, alias="productId"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    groups = list_lots(db, identity, clerk_org_id, product_id)
    data = [
        ProductLotsOut(
            product_id=g["product_id"],
            product_name=g["product_name"],
            total_quantity=g["total_quantity"],
            lots=[StockLotOut.model_validate(lot) for lot in g["lots"]],
        )
        for g in groups
    ]
    return ok(data)


@router.get("/expiry-risk")
def stock_lots_expiry_risk(
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    window_days: Optional[int] = Query(None, alias="windowDays"),
    product_ids: Optional[List[int]] = Query(None, alias="productIds"),
    categories: Optional[List[str]] = Query(None),
    supplier_ids: Optional[List[int]] = Query(None, alias="supplierIds"),
    severities: Optional[List[ExpirySeverity]] = Query(None),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    filters = ExpiryRiskFilters(
        product_ids=product_ids or [],
        categories=categories or [],
        supplier_ids=supplier_ids or [],
        severities=severities or [],
    )
    data = list_expiry_risk(db, identity, clerk_org_id, window_days=window_days, filters=filters)
    return ok(data)


@router.get("/traceability")
def stock_lots_traceability(
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    lot_number: str = Query("", alias="lotNumber"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    return ok(get_lot_traceability(db, identity, clerk_org_id, lot_number))


# ============================================================
# Mutations
# ============================================================
@router.post("/receive")
def stock_lots_receive(
    payload: ReceiveLotIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    pharmacy = require_pharmacy(db, identity, payload.clerk_org_id)
    lot = receive_lot(
        db,
        pharmacy.id,
        product_id=payload.product_id,
        lot_number=payload.lot_number,
        expiry_date=payload.expiry_date,
        quantity=payload.quantity,
        source_type=payload.source_type,
        reason=payload.reason,
        user_id=identity.user_id,
    )
    db.commit()
    db.refresh(lot)
    return ok(StockLotOut.model_validate(lot), status_code=201)


@router.post("/consume")
def stock_lots_consume(
    payload: ConsumeIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    pharmacy = require_pharmacy(db, identity, payload.clerk_org_id)
    allocations = consume_fefo(
        db,
        pharmacy.id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        reason=payload.reason,
        user_id=identity.user_id,
    )
    data = [
        LotAllocationOut(lot_id=lot.id, lot_number=lot.lot_number, expiry_date=lot.expiry_date, quantity=qty)
        for lot, qty in allocations
    ]
    db.commit()
    return ok(data)


@router.post("/{lot_id}/adjust")
def stock_lots_adjust(
    lot_id: int,
    payload: AdjustLotIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    pharmacy = require_pharmacy(db, identity, payload.clerk_org_id)
    lot = adjust_lot(
        db,
        pharmacy.id,
        lot_id=lot_id,
        delta=payload.delta,
        reason=payload.reason,
        movement_type=payload.movement_type,
        user_id=identity.user_id,
    )
    db.commit()
    db.refresh(lot)
    return ok(StockLotOut.model_validate(lot))
