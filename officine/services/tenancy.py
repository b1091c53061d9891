# FILE: officine/services/tenancy.py
from __future__ import annotations

import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from officine.core.config import settings
from officine.core.exceptions import NotFoundError
from officine.core.identity import Identity, assert_org_access, has_org_access
from officine.models.pharmacy import Pharmacy

logger = logging.getLogger(__name__)


def get_pharmacy(db: Session, clerk_org_id: str) -> Optional[Pharmacy]:
    return db.query(Pharmacy).filter(Pharmacy.clerk_org_id == clerk_org_id).one_or_none()


def resolve_pharmacy(db: Session, identity: Optional[Identity], clerk_org_id: str) -> Optional[Pharmacy]:
    """
    Read-path resolution: None when the caller's org does not match or the
    tenant does not exist. Never raises, so foreign tenants stay invisible.
    """
    if not has_org_access(identity, clerk_org_id):
        return None
    return get_pharmacy(db, clerk_org_id)


def require_pharmacy(db: Session, identity: Optional[Identity], clerk_org_id: str) -> Pharmacy:
    """Mutation-path resolution: raises UnauthorizedError / NotFoundError."""
    assert_org_access(identity, clerk_org_id)
    pharmacy = get_pharmacy(db, clerk_org_id)
    if not pharmacy:
        raise NotFoundError("Pharmacy not found")
    return pharmacy


def _parse_pharmacy_number(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    m = re.match(rf"^{re.escape(settings.PHARMACY_NUMBER_PREFIX)}(\d+)$", value)
    return int(m.group(1)) if m else None


def ensure_pharmacy(db: Session, identity: Optional[Identity], clerk_org_id: str, name: str) -> Pharmacy:
    assert_org_access(identity, clerk_org_id)

    existing = get_pharmacy(db, clerk_org_id)
    if existing:
        return existing

    pharmacies = db.query(Pharmacy).all()
    max_seq = len(pharmacies)
    for p in pharmacies:
        seq = p.pharmacy_sequence or _parse_pharmacy_number(p.pharmacy_number) or 0
        max_seq = max(max_seq, seq)
    seq = max_seq + 1

    pharmacy = Pharmacy(
        clerk_org_id=clerk_org_id,
        name=(name or "").strip() or clerk_org_id,
        pharmacy_number=f"{settings.PHARMACY_NUMBER_PREFIX}{seq:02d}",
        pharmacy_sequence=seq,
    )
    db.add(pharmacy)
    db.flush()
    logger.info("Created pharmacy %s for org %s", pharmacy.pharmacy_number, clerk_org_id)
    return pharmacy
