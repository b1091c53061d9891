# FILE: officine/api/routes_pharmacies.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from officine.api.deps import get_db, get_identity
from officine.api.response import ok
from officine.core.identity import Identity
from officine.schemas.pharmacy import EnsurePharmacyIn, PharmacyOut
from officine.services.tenancy import ensure_pharmacy

router = APIRouter(prefix="/pharmacies", tags=["Pharmacies"])


@router.post("/ensure")
def ensure_pharmacy_route(
    payload: EnsurePharmacyIn,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    pharmacy = ensure_pharmacy(db, identity, payload.clerk_org_id, payload.name)
    db.commit()
    db.refresh(pharmacy)
    return ok(PharmacyOut.model_validate(pharmacy))
