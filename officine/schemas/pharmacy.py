# FILE: officine/schemas/pharmacy.py
from __future__ import annotations

from typing import Optional

from officine.schemas.common import ApiModel, OrgScopedIn


class EnsurePharmacyIn(OrgScopedIn):
    name: Optional[str] = None


class PharmacyOut(ApiModel):
    id: int
    clerk_org_id: str
    name: str
    pharmacy_number: Optional[str] = None
