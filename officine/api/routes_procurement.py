# FILE: officine/api/routes_procurement.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.schemas.procurement import DeliveryNoteIn, OrderStatusIn, ProcurementOrderOut
from officine.services.procurement import get_order, record_delivery_note, update_order_status

router = APIRouter(prefix="/procurement", tags=["Procurement"])


@router.post("/delivery-notes")
def delivery_note_create(
    payload: DeliveryNoteIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    order = record_delivery_note(db, identity, payload)
    db.commit()
    db.refresh(order)
    return ok(ProcurementOrderOut.model_validate(order), status_code=201)


@router.get("/orders/{order_id}")
def order_get(
    order_id: int,
    clerk_org_id: str = Query(..., alias="clerkOrgId"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    order = get_order(db, identity, clerk_org_id, order_id)
    return ok(ProcurementOrderOut.model_validate(order) if order else None)


@router.patch("/orders/{order_id}/status")
def order_status_update(
    order_id: int,
    payload: OrderStatusIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    order = update_order_status(db, identity, payload.clerk_org_id, order_id, payload.status)
    db.commit()
    db.refresh(order)
    return ok(ProcurementOrderOut.model_validate(order))
