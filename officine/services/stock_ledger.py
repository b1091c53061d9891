# FILE: officine/services/stock_ledger.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from officine.core.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    LotExpiryMismatchError,
    NegativeStockError,
    NotFoundError,
)
from officine.core.identity import Identity
from officine.models.catalog import Product
from officine.models.stock import LotSourceType, StockLot, StockMovement, StockMovementType
from officine.services.tenancy import resolve_pharmacy

logger = logging.getLogger(__name__)

Allocation = Tuple[StockLot, int]

ADJUSTMENT_TYPES = {
    StockMovementType.MANUAL_STOCK_ADJUSTMENT,
    StockMovementType.STOCKTAKE_STOCK_SYNC,
    StockMovementType.PRODUCT_STOCK_EDIT,
}


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer")
    if value <= 0:
        raise InvalidInputError(f"{field} must be > 0")
    return value


def get_product(db: Session, pharmacy_id: int, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product or product.pharmacy_id != pharmacy_id:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def record_stock_movement(
    db: Session,
    pharmacy_id: int,
    *,
    product: Product,
    delta: int,
    movement_type: StockMovementType,
    lot: Optional[StockLot] = None,
    reason: Optional[str] = None,
    source_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[StockMovement]:
    """
    Central creator for StockMovement, always use this so the audit trail is consistent.
    Zero deltas are not recorded.
    """
    if not delta:
        return None

    mv = StockMovement(
        pharmacy_id=pharmacy_id,
        product_id=product.id,
        lot_id=lot.id if lot is not None else None,
        product_name_snapshot=product.name,
        delta=int(delta),
        movement_type=movement_type,
        lot_number=lot.lot_number if lot is not None else None,
        lot_expiry_date=lot.expiry_date if lot is not None else None,
        reason=reason,
        source_id=str(source_id) if source_id is not None else None,
        created_by_user_id=user_id or "system",
    )
    db.add(mv)
    return mv


def product_stock_levels(
    db: Session,
    pharmacy_id: int,
    product_ids: Optional[Iterable[int]] = None,
) -> Dict[int, int]:
    """
    Product-level stock view: sum of lot quantities per product.
    Products without lots are absent from the result (read them as 0).
    """
    q = (
        db.query(StockLot.product_id, func.coalesce(func.sum(StockLot.quantity), 0))
        .filter(StockLot.pharmacy_id == pharmacy_id)
        .group_by(StockLot.product_id)
    )
    if product_ids is not None:
        q = q.filter(StockLot.product_id.in_(list(product_ids)))
    return {int(pid): int(total or 0) for pid, total in q.all()}


def find_lot(db: Session, pharmacy_id: int, product_id: int, lot_number: str, *, lock: bool = False) -> Optional[StockLot]:
    q = db.query(StockLot).filter(
        StockLot.pharmacy_id == pharmacy_id,
        StockLot.product_id == product_id,
        func.upper(StockLot.lot_number) == lot_number.strip().upper(),
    )
    if lock:
        q = q.with_for_update()
    return q.order_by(StockLot.id.asc()).first()


def _movement_type_for_source(source_type: LotSourceType) -> StockMovementType:
    if source_type == LotSourceType.DELIVERY_NOTE:
        return StockMovementType.DELIVERY_NOTE_STOCK_SYNC
    return StockMovementType.PRODUCT_INITIAL_STOCK


def receive_lot(
    db: Session,
    pharmacy_id: int,
    *,
    product_id: int,
    lot_number: str,
    expiry_date: date,
    quantity: int,
    source_type: LotSourceType = LotSourceType.DELIVERY_NOTE,
    source_order_id: Optional[int] = None,
    source_item_id: Optional[int] = None,
    source_id: Optional[str] = None,
    reason: Optional[str] = None,
    user_id: Optional[str] = None,
) -> StockLot:
    """
    Create or top up the lot keyed by (product, lot number) and append the
    receipt movement. An existing lot keeps its stored casing and expiry.
    """
    quantity = _positive_int(quantity, "quantity")
    lot_number = (lot_number or "").strip()
    if not lot_number:
        raise InvalidInputError("lot_number is required")
    if expiry_date is None:
        raise InvalidInputError("expiry_date is required")

    product = get_product(db, pharmacy_id, product_id)

    lot = find_lot(db, pharmacy_id, product.id, lot_number, lock=True)
    if lot is not None:
        if lot.expiry_date != expiry_date:
            raise LotExpiryMismatchError(
                f"Lot {lot.lot_number} already exists with expiry {lot.expiry_date.isoformat()}",
                details={"lot_id": lot.id, "expiry_date": lot.expiry_date.isoformat()},
            )
        lot.quantity = int(lot.quantity or 0) + quantity
    else:
        lot = StockLot(
            pharmacy_id=pharmacy_id,
            product_id=product.id,
            lot_number=lot_number,
            expiry_date=expiry_date,
            quantity=quantity,
            source_type=source_type,
            source_order_id=source_order_id,
            source_item_id=source_item_id,
        )
        db.add(lot)
        db.flush()

    record_stock_movement(
        db,
        pharmacy_id,
        product=product,
        delta=quantity,
        movement_type=_movement_type_for_source(source_type),
        lot=lot,
        reason=reason or "Reception",
        source_id=source_id if source_id is not None else source_order_id,
        user_id=user_id,
    )
    db.flush()

    logger.info(
        "Received %s x product=%s into lot=%s (%s) pharmacy=%s",
        quantity, product.id, lot.id, lot.lot_number, pharmacy_id,
    )
    return lot


def allocate_lots_fefo(
    db: Session,
    pharmacy_id: int,
    product_id: int,
    quantity: int,
) -> List[Allocation]:
    """
    FEFO allocation (First-Expired-First-Out) for one product.

    - Orders lots by expiry date, then creation time, then id
    - Locks rows FOR UPDATE where the backend supports it
    - Returns list of (lot, qty_to_use) without touching quantities
    - Raises InsufficientStockError if the lots cannot cover the request
    """
    quantity = _positive_int(quantity, "quantity")

    lots = (
        db.query(StockLot)
        .filter(
            StockLot.pharmacy_id == pharmacy_id,
            StockLot.product_id == product_id,
            StockLot.quantity > 0,
        )
        .order_by(
            StockLot.expiry_date.asc(),
            StockLot.created_at.asc(),
            StockLot.id.asc(),  # tie-breaker
        )
        .with_for_update()
        .all()
    )

    available = sum(int(l.quantity or 0) for l in lots)
    if available < quantity:
        raise InsufficientStockError(product_id=product_id, requested=quantity, available=available)

    remaining = quantity
    allocations: List[Allocation] = []
    for lot in lots:
        if remaining <= 0:
            break
        use_qty = min(int(lot.quantity), remaining)
        allocations.append((lot, use_qty))
        remaining -= use_qty

    return allocations


def consume_fefo(
    db: Session,
    pharmacy_id: int,
    *,
    product_id: int,
    quantity: int,
    movement_type: StockMovementType = StockMovementType.SALE_STOCK_SYNC,
    reason: Optional[str] = None,
    source_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> List[Allocation]:
    """
    Decrement lots earliest-expiry first. All-or-nothing: the allocation is
    fully computed (and may raise) before any lot is touched.
    """
    product = get_product(db, pharmacy_id, product_id)
    allocations = allocate_lots_fefo(db, pharmacy_id, product.id, quantity)

    for lot, use_qty in allocations:
        lot.quantity = int(lot.quantity) - use_qty
        record_stock_movement(
            db,
            pharmacy_id,
            product=product,
            delta=-use_qty,
            movement_type=movement_type,
            lot=lot,
            reason=reason or "Vente",
            source_id=source_id,
            user_id=user_id,
        )

    db.flush()
    logger.info(
        "FEFO consumed %s x product=%s from lots=%s pharmacy=%s",
        quantity, product.id, [lot.id for lot, _ in allocations], pharmacy_id,
    )
    return allocations


def adjust_lot(
    db: Session,
    pharmacy_id: int,
    *,
    lot_id: int,
    delta: int,
    reason: str,
    movement_type: StockMovementType = StockMovementType.MANUAL_STOCK_ADJUSTMENT,
    source_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> StockLot:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise InvalidInputError("delta must be a non-zero integer")
    if movement_type not in ADJUSTMENT_TYPES:
        raise InvalidInputError(f"{movement_type.value} is not an adjustment movement")

    lot = (
        db.query(StockLot)
        .filter(StockLot.id == lot_id, StockLot.pharmacy_id == pharmacy_id)
        .with_for_update()
        .one_or_none()
    )
    if not lot:
        raise NotFoundError(f"Lot {lot_id} not found")

    current = int(lot.quantity or 0)
    if current + delta < 0:
        raise NegativeStockError(lot_id=lot.id, current=current, delta=delta)

    product = get_product(db, pharmacy_id, lot.product_id)
    lot.quantity = current + delta
    record_stock_movement(
        db,
        pharmacy_id,
        product=product,
        delta=delta,
        movement_type=movement_type,
        lot=lot,
        reason=reason,
        source_id=source_id,
        user_id=user_id,
    )
    db.flush()

    logger.info("Adjusted lot=%s by %s (%s) pharmacy=%s", lot.id, delta, movement_type.value, pharmacy_id)
    return lot


def list_lots_by_product(db: Session, pharmacy_id: int, product_id: Optional[int] = None) -> List[dict]:
    """Positive lots grouped by product, lots in expiry order, groups by product name."""
    q = db.query(StockLot).filter(StockLot.pharmacy_id == pharmacy_id, StockLot.quantity > 0)
    if product_id:
        q = q.filter(StockLot.product_id == product_id)
    lots = q.all()
    if not lots:
        return []

    names = dict(
        db.query(Product.id, Product.name)
        .filter(Product.pharmacy_id == pharmacy_id)
        .all()
    )

    grouped: Dict[int, dict] = {}
    for lot in lots:
        group = grouped.setdefault(
            lot.product_id,
            {
                "product_id": lot.product_id,
                "product_name": names.get(lot.product_id, "Produit inconnu"),
                "total_quantity": 0,
                "lots": [],
            },
        )
        group["total_quantity"] += int(lot.quantity)
        group["lots"].append(lot)

    for group in grouped.values():
        group["lots"].sort(key=lambda l: (l.expiry_date, l.lot_number.casefold()))

    return sorted(grouped.values(), key=lambda g: g["product_name"].casefold())


def list_lots(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    product_id: Optional[int] = None,
) -> List[dict]:
    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return []
    return list_lots_by_product(db, pharmacy.id, product_id)
