# FILE: officine/api/routes_sales.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.schemas.sales import SaleIn, SaleOut
from officine.services.sales import record_sale

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.post("")
def sale_create(
    payload: SaleIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    sale = record_sale(db, identity, payload)
    db.commit()
    db.refresh(sale)
    return ok(SaleOut.model_validate(sale), status_code=201)
