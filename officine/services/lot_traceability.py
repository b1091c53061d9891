# FILE: officine/services/lot_traceability.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional
from urllib.parse import quote

from sqlalchemy import func
from sqlalchemy.orm import Session

from officine.core.identity import Identity
from officine.models.catalog import Product, Supplier
from officine.models.procurement import ProcurementItemLot, ProcurementOrder
from officine.models.sales import SaleItemLot
from officine.models.stock import StockLot, StockMovement, StockMovementType
from officine.schemas.stock_lots import (
    LotTraceabilityOut,
    LotTraceOut,
    TimelineEventOut,
    TimelineEventType,
)
from officine.services.tenancy import resolve_pharmacy

logger = logging.getLogger(__name__)

RECEPTION_TYPES = {
    StockMovementType.DELIVERY_NOTE_STOCK_SYNC,
    StockMovementType.PRODUCT_INITIAL_STOCK,
}
SORTIE_TYPES = {
    StockMovementType.SALE_STOCK_SYNC,
}


def normalize_lot_number(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def event_type_for(movement_type: StockMovementType) -> TimelineEventType:
    if movement_type in RECEPTION_TYPES:
        return TimelineEventType.RECEPTION
    if movement_type in SORTIE_TYPES:
        return TimelineEventType.SORTIE
    return TimelineEventType.AJUSTEMENT


def recall_report_path(lot_number: str) -> str:
    return f"/app/inventaire?lotNumber={quote(lot_number, safe='')}"


def _timeline(movements: List[StockMovement]) -> List[TimelineEventOut]:
    ordered = sorted(movements, key=lambda m: (m.created_at, m.id))
    return [
        TimelineEventOut(
            id=f"movement-{m.id}",
            created_at=m.created_at,
            event_type=event_type_for(m.movement_type),
            movement_type=m.movement_type,
            delta=int(m.delta),
            reason=m.reason,
            reference=m.source_id or m.movement_type.value,
        )
        for m in ordered
    ]


def get_lot_traceability(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    lot_number: str,
) -> LotTraceabilityOut:
    """
    Audit trail for every product carrying `lot_number` (matched
    case-insensitively). `current_balance` is the live lot quantity and is
    allowed to differ from received - sold after stocktake corrections.
    """
    normalized = normalize_lot_number(lot_number)
    empty = LotTraceabilityOut(lot_number=normalized)
    if not normalized:
        return empty

    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return empty
    pid = pharmacy.id

    lots = (
        db.query(StockLot)
        .filter(StockLot.pharmacy_id == pid, func.upper(StockLot.lot_number) == normalized)
        .all()
    )
    if not lots:
        return empty

    lot_ids = [l.id for l in lots]
    product_ids = {l.product_id for l in lots}

    products = {
        p.id: p
        for p in db.query(Product).filter(Product.pharmacy_id == pid, Product.id.in_(product_ids)).all()
    }

    received: Dict[int, int] = defaultdict(int)
    receipt_orders: Dict[int, List[int]] = defaultdict(list)
    for row in (
        db.query(ProcurementItemLot)
        .filter(ProcurementItemLot.pharmacy_id == pid, ProcurementItemLot.lot_id.in_(lot_ids))
        .order_by(ProcurementItemLot.created_at.asc(), ProcurementItemLot.id.asc())
        .all()
    ):
        if row.quantity > 0:
            received[row.lot_id] += int(row.quantity)
        receipt_orders[row.lot_id].append(row.order_id)

    sold: Dict[int, int] = defaultdict(int)
    for row in (
        db.query(SaleItemLot)
        .filter(SaleItemLot.pharmacy_id == pid, SaleItemLot.lot_id.in_(lot_ids))
        .all()
    ):
        sold[row.lot_id] += int(row.quantity)

    movements: Dict[int, List[StockMovement]] = defaultdict(list)
    for m in (
        db.query(StockMovement)
        .filter(StockMovement.pharmacy_id == pid, StockMovement.lot_id.in_(lot_ids))
        .all()
    ):
        movements[m.lot_id].append(m)

    orders = {o.id: o for o in db.query(ProcurementOrder).filter(ProcurementOrder.pharmacy_id == pid).all()}
    suppliers = {s.id: s for s in db.query(Supplier).filter(Supplier.pharmacy_id == pid).all()}

    items: List[LotTraceOut] = []
    for lot in lots:
        product = products.get(lot.product_id)
        if product is None:
            continue

        # provenance: the lot's own source order first, then any receipt
        supplier = None
        for order_id in [lot.source_order_id, *receipt_orders.get(lot.id, [])]:
            order = orders.get(order_id) if order_id else None
            if order is not None and order.supplier_id in suppliers:
                supplier = suppliers[order.supplier_id]
                break

        items.append(
            LotTraceOut(
                lot_id=lot.id,
                product_id=product.id,
                product_name=product.name,
                product_category=product.category or "",
                lot_number=lot.lot_number,
                expiry_date=lot.expiry_date,
                current_balance=int(lot.quantity),
                received_quantity=received.get(lot.id, 0),
                sold_quantity=sold.get(lot.id, 0),
                supplier_id=supplier.id if supplier else None,
                supplier_name=supplier.name if supplier else None,
                recall_report_path=recall_report_path(lot.lot_number),
                timeline=_timeline(movements.get(lot.id, [])),
            )
        )

    items.sort(key=lambda i: (i.expiry_date, i.product_name.casefold(), i.lot_id))

    canonical = items[0].lot_number if items else normalized
    return LotTraceabilityOut(lot_number=canonical, items=items)
