# FILE: officine/services/stock_movements.py
from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from officine.core.identity import Identity
from officine.models.stock import StockMovement
from officine.schemas.stock_movements import (
    MovementFilterOptionsOut,
    StockMovementFilters,
    StockMovementOut,
    StockMovementPageOut,
)
from officine.services.tenancy import resolve_pharmacy

MAX_PAGE_SIZE = 200


def list_movements(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    *,
    page: int = 1,
    page_size: int = 25,
    filters: Optional[StockMovementFilters] = None,
) -> StockMovementPageOut:
    page = max(1, int(page or 1))
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size or 25)))
    filters = filters or StockMovementFilters()

    empty = StockMovementPageOut(page=page, page_size=page_size)
    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return empty

    base = db.query(StockMovement).filter(StockMovement.pharmacy_id == pharmacy.id)

    options = MovementFilterOptionsOut(
        product_ids=sorted({pid for (pid,) in base.with_entities(StockMovement.product_id).distinct()}),
        types=sorted(
            {mt for (mt,) in base.with_entities(StockMovement.movement_type).distinct()},
            key=lambda t: t.value,
        ),
    )

    q = base
    if filters.product_ids:
        q = q.filter(StockMovement.product_id.in_(filters.product_ids))
    if filters.types:
        q = q.filter(StockMovement.movement_type.in_(filters.types))
    if filters.from_date:
        q = q.filter(StockMovement.created_at >= datetime.combine(filters.from_date, time.min))
    if filters.to_date:
        # inclusive end day
        q = q.filter(StockMovement.created_at < datetime.combine(filters.to_date + timedelta(days=1), time.min))

    total = q.count()
    rows = (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    return StockMovementPageOut(
        items=[StockMovementOut.model_validate(r) for r in rows],
        page=page,
        page_size=page_size,
        total_count=total,
        filter_options=options,
    )
