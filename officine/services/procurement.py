# FILE: officine/services/procurement.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from officine.core.exceptions import InvalidInputError, LotExpiryMismatchError, NotFoundError, UnauthorizedError
from officine.core.identity import Identity
from officine.models.catalog import Supplier
from officine.models.procurement import (
    ProcurementItem,
    ProcurementItemLot,
    ProcurementOrder,
    ProcurementStatus,
    ProcurementType,
)
from officine.models.stock import LotSourceType
from officine.schemas.procurement import DeliveryNoteIn
from officine.services.low_stock_alert import release_alert_order
from officine.services.order_numbers import line_total, money2, order_total
from officine.services.stock_ledger import find_lot, get_product, receive_lot
from officine.services.tenancy import require_pharmacy, resolve_pharmacy
from officine.utils.timezone import today_local

logger = logging.getLogger(__name__)


_ALLOWED_TRANSITIONS = {
    ProcurementStatus.DRAFT: {ProcurementStatus.ORDERED, ProcurementStatus.DELIVERED},
    ProcurementStatus.ORDERED: {ProcurementStatus.DRAFT, ProcurementStatus.DELIVERED},
    ProcurementStatus.DELIVERED: set(),
}


def change_status(order: ProcurementOrder, target: ProcurementStatus) -> None:
    allowed = _ALLOWED_TRANSITIONS.get(order.status, set())
    if target not in allowed:
        raise InvalidInputError(
            f"Invalid status change {order.status.value} -> {target.value}",
            details={"from": order.status.value, "to": target.value},
        )
    order.status = target


def _check_lot_expiries(db: Session, pharmacy_id: int, payload: DeliveryNoteIn) -> None:
    """Reject the whole note up front if any line disagrees with a known lot expiry."""
    seen: Dict[Tuple[int, str], date] = {}
    for line in payload.lines:
        key = (line.product_id, line.lot_number.strip().upper())
        expected = seen.get(key)
        if expected is None:
            lot = find_lot(db, pharmacy_id, line.product_id, line.lot_number)
            expected = lot.expiry_date if lot is not None else line.expiry_date
            seen[key] = expected
        if expected != line.expiry_date:
            raise LotExpiryMismatchError(
                f"Lot {line.lot_number.strip()} already exists with expiry {expected.isoformat()}",
                details={"product_id": line.product_id, "expiry_date": expected.isoformat()},
            )


def record_delivery_note(
    db: Session,
    identity: Optional[Identity],
    payload: DeliveryNoteIn,
) -> ProcurementOrder:
    """
    One DELIVERED delivery-note order, one item per line, and each line
    received into its lot with a ProcurementItemLot link.
    """
    pharmacy = require_pharmacy(db, identity, payload.clerk_org_id)

    supplier = db.get(Supplier, payload.supplier_id)
    if not supplier or supplier.pharmacy_id != pharmacy.id:
        raise UnauthorizedError()

    products = {line.product_id: get_product(db, pharmacy.id, line.product_id) for line in payload.lines}
    _check_lot_expiries(db, pharmacy.id, payload)

    order = ProcurementOrder(
        pharmacy_id=pharmacy.id,
        type=ProcurementType.DELIVERY_NOTE,
        status=ProcurementStatus.DELIVERED,
        supplier_id=supplier.id,
        order_date=payload.order_date or today_local(),
        external_reference=(payload.external_reference or "").strip() or None,
    )
    db.add(order)
    db.flush()

    user_id = identity.user_id if identity else None
    for line in payload.lines:
        product = products[line.product_id]
        item = ProcurementItem(
            pharmacy_id=pharmacy.id,
            product_id=product.id,
            quantity=line.quantity,
            unit_price=money2(line.unit_price),
            line_total=line_total(line.quantity, line.unit_price),
        )
        order.items.append(item)
        db.flush()

        lot = receive_lot(
            db,
            pharmacy.id,
            product_id=product.id,
            lot_number=line.lot_number,
            expiry_date=line.expiry_date,
            quantity=line.quantity,
            source_type=LotSourceType.DELIVERY_NOTE,
            source_order_id=order.id,
            source_item_id=item.id,
            source_id=str(order.id),
            reason="Reception fournisseur",
            user_id=user_id,
        )
        db.add(
            ProcurementItemLot(
                pharmacy_id=pharmacy.id,
                order_id=order.id,
                item_id=item.id,
                product_id=product.id,
                lot_id=lot.id,
                lot_number=lot.lot_number,
                expiry_date=lot.expiry_date,
                quantity=line.quantity,
            )
        )

    order.total_amount = order_total(order.items)
    db.flush()

    logger.info(
        "Delivery note id=%s supplier=%s lines=%s pharmacy=%s",
        order.id, supplier.id, len(order.items), pharmacy.id,
    )
    return order


def get_order(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    order_id: int,
) -> Optional[ProcurementOrder]:
    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return None
    order = db.get(ProcurementOrder, order_id)
    if not order or order.pharmacy_id != pharmacy.id:
        return None
    return order


def update_order_status(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    order_id: int,
    status: ProcurementStatus,
) -> ProcurementOrder:
    pharmacy = require_pharmacy(db, identity, clerk_org_id)

    order = (
        db.query(ProcurementOrder)
        .filter(ProcurementOrder.id == order_id, ProcurementOrder.pharmacy_id == pharmacy.id)
        .with_for_update()
        .one_or_none()
    )
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    if order.type != ProcurementType.PURCHASE_ORDER:
        raise InvalidInputError("Only purchase orders change status")
    if order.status == status:
        return order

    previous = order.status
    change_status(order, status)
    db.flush()

    if previous == ProcurementStatus.DRAFT:
        release_alert_order(db, order)

    logger.info("Order id=%s status %s -> %s pharmacy=%s", order.id, previous.value, status.value, pharmacy.id)
    return order
