# FILE: officine/services/low_stock_alert.py
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from officine.core.exceptions import NoLowStockError, UnauthorizedError
from officine.core.identity import Identity
from officine.models.catalog import Product, Supplier
from officine.models.pharmacy import LowStockAlertState, Pharmacy
from officine.models.procurement import (
    ProcurementItem,
    ProcurementOrder,
    ProcurementStatus,
    ProcurementType,
)
from officine.schemas.low_stock_alert import LowStockSummaryOut
from officine.services.order_numbers import line_total, money2, next_order_number, order_total
from officine.services.stock_ledger import product_stock_levels
from officine.services.tenancy import require_pharmacy, resolve_pharmacy
from officine.utils.timezone import today_local

logger = logging.getLogger(__name__)


# ----------------------------
# Signature
# ----------------------------
def build_signature(product_ids: Iterable) -> str:
    """
    Order-independent, duplicate-free fingerprint of the low-stock set.
    Ids are compared as strings, so the order is lexical ("10" < "9").
    """
    ids = sorted({str(pid) for pid in product_ids})
    return "|".join(ids)


def low_stock_products(db: Session, pharmacy_id: int) -> List[Product]:
    """Products whose summed lot quantity is at or below their threshold."""
    products = (
        db.query(Product)
        .filter(Product.pharmacy_id == pharmacy_id)
        .order_by(Product.id.asc())
        .all()
    )
    levels = product_stock_levels(db, pharmacy_id)
    return [p for p in products if levels.get(p.id, 0) <= int(p.low_stock_threshold or 0)]


# ----------------------------
# Alert state (one row per pharmacy)
# ----------------------------
def get_alert_state(db: Session, pharmacy: Pharmacy, lock: bool = False) -> Optional[LowStockAlertState]:
    q = db.query(LowStockAlertState).filter(LowStockAlertState.pharmacy_id == pharmacy.id)
    if lock:
        q = q.with_for_update()
    return q.one_or_none()


def _alert_state_for_update(db: Session, pharmacy: Pharmacy) -> LowStockAlertState:
    state = get_alert_state(db, pharmacy, lock=True)
    if state is None:
        state = LowStockAlertState(pharmacy_id=pharmacy.id)
        db.add(state)
        db.flush()
    return state


def _is_active_draft(order: Optional[ProcurementOrder], pharmacy_id: int) -> bool:
    return bool(
        order is not None
        and order.pharmacy_id == pharmacy_id
        and order.status == ProcurementStatus.DRAFT
        and order.type == ProcurementType.PURCHASE_ORDER
    )


def active_draft(db: Session, pharmacy: Pharmacy, state: Optional[LowStockAlertState]) -> Optional[ProcurementOrder]:
    """
    The tracked draft, re-validated. A pointer to a deleted, confirmed or
    foreign order reads as "no active draft".
    """
    if state is None or not state.order_id:
        return None
    order = db.get(ProcurementOrder, state.order_id)
    if _is_active_draft(order, pharmacy.id):
        return order
    logger.warning(
        "Dangling low-stock alert order pharmacy=%s order_id=%s",
        pharmacy.id, state.order_id,
    )
    return None


# ----------------------------
# Operations
# ----------------------------
def low_stock_summary(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
) -> Optional[LowStockSummaryOut]:
    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return None

    products = low_stock_products(db, pharmacy.id)
    signature = build_signature(p.id for p in products)

    state = get_alert_state(db, pharmacy)
    draft = active_draft(db, pharmacy, state)
    has_active_draft = draft is not None

    handled = state.handled_signature if state else None
    is_handled = (not has_active_draft) and bool(signature) and handled == signature

    return LowStockSummaryOut(
        count=len(products),
        signature=signature,
        has_active_draft=has_active_draft,
        active_order_id=draft.id if draft else None,
        last_synced_signature=state.signature if state else None,
        is_handled=is_handled,
    )


def create_low_stock_draft(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    supplier_id: int,
) -> int:
    """
    Open one draft purchase order with a zero-quantity line per low-stock
    product and point the alert state at it. If the tracked draft is still
    a draft, it is returned as is (signature refreshed) instead.
    Flushes only: the caller commits order, lines and alert state together.
    """
    pharmacy = require_pharmacy(db, identity, clerk_org_id)

    supplier = db.get(Supplier, supplier_id)
    if not supplier or supplier.pharmacy_id != pharmacy.id:
        raise UnauthorizedError()

    products = low_stock_products(db, pharmacy.id)
    if not products:
        raise NoLowStockError()

    signature = build_signature(p.id for p in products)
    state = _alert_state_for_update(db, pharmacy)

    existing = active_draft(db, pharmacy, state)
    if existing is not None:
        state.signature = signature
        state.handled_signature = None
        db.flush()
        logger.info("Low-stock draft already open pharmacy=%s order=%s", pharmacy.id, existing.id)
        return existing.id

    order_number, order_sequence = next_order_number(db, pharmacy.id, ProcurementType.PURCHASE_ORDER)
    order = ProcurementOrder(
        pharmacy_id=pharmacy.id,
        order_number=order_number,
        order_sequence=order_sequence,
        type=ProcurementType.PURCHASE_ORDER,
        status=ProcurementStatus.DRAFT,
        supplier_id=supplier.id,
        order_date=today_local(),
        created_from_alert=True,
    )
    for p in products:
        order.items.append(
            ProcurementItem(
                pharmacy_id=pharmacy.id,
                product_id=p.id,
                quantity=0,
                unit_price=money2(p.purchase_price),
                line_total=line_total(0, p.purchase_price),
            )
        )
    order.total_amount = order_total(order.items)
    db.add(order)
    db.flush()

    state.order_id = order.id
    state.signature = signature
    state.handled_signature = None
    db.flush()

    logger.info(
        "Created low-stock draft %s (id=%s) with %s lines pharmacy=%s",
        order.order_number, order.id, len(order.items), pharmacy.id,
    )
    return order.id


def _sync_lines(db: Session, order: ProcurementOrder, products: List[Product]) -> None:
    low_by_id: Dict[int, Product] = {p.id: p for p in products}

    preserved: Dict[int, int] = {}
    for li in order.items:
        if li.product_id in low_by_id and li.product_id not in preserved:
            preserved[li.product_id] = int(li.quantity or 0)

    # delete-then-reinsert; quantities carry over for products still low
    order.items.clear()
    db.flush()

    for p in products:
        qty = preserved.get(p.id, 0)
        order.items.append(
            ProcurementItem(
                pharmacy_id=order.pharmacy_id,
                product_id=p.id,
                quantity=qty,
                unit_price=money2(p.purchase_price),
                line_total=line_total(qty, p.purchase_price),
            )
        )
    order.total_amount = order_total(order.items)


def sync_low_stock_draft(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    order_id: int,
) -> Optional[int]:
    """
    Realign the tracked draft with the current low-stock set:
      - products still low keep their line quantity (price re-read)
      - recovered products lose their line
      - newly low products get a zero-quantity line
    Returns None when `order_id` is not the tracked, still-draft order.
    """
    pharmacy = require_pharmacy(db, identity, clerk_org_id)

    state = get_alert_state(db, pharmacy, lock=True)
    if state is None or state.order_id != order_id:
        return None

    order = (
        db.query(ProcurementOrder)
        .filter(ProcurementOrder.id == order_id)
        .with_for_update()
        .one_or_none()
    )
    if not _is_active_draft(order, pharmacy.id):
        return None

    products = low_stock_products(db, pharmacy.id)
    _sync_lines(db, order, products)

    state.signature = build_signature(p.id for p in products)
    state.handled_signature = None
    db.flush()

    logger.info(
        "Synced low-stock draft id=%s lines=%s signature=%r pharmacy=%s",
        order.id, len(order.items), state.signature, pharmacy.id,
    )
    return order.id


def refresh_low_stock_draft(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
) -> Optional[int]:
    """Sync the active draft only when the low-stock signature moved since the last sync."""
    summary = low_stock_summary(db, identity, clerk_org_id)
    if summary is None:
        require_pharmacy(db, identity, clerk_org_id)
        return None

    if not summary.has_active_draft:
        return None
    if summary.signature == summary.last_synced_signature:
        return summary.active_order_id
    return sync_low_stock_draft(db, identity, clerk_org_id, summary.active_order_id)


def release_alert_order(db: Session, order: ProcurementOrder) -> bool:
    """
    Called when a purchase order leaves DRAFT. If it was the tracked draft the
    alert is marked handled for the current low-stock signature.
    """
    state = (
        db.query(LowStockAlertState)
        .filter(LowStockAlertState.pharmacy_id == order.pharmacy_id)
        .with_for_update()
        .one_or_none()
    )
    if state is None or state.order_id != order.id:
        return False

    state.handled_signature = build_signature(p.id for p in low_stock_products(db, order.pharmacy_id))
    state.order_id = None
    state.signature = None
    db.flush()

    logger.info(
        "Low-stock alert released pharmacy=%s order=%s handled=%r",
        order.pharmacy_id, order.id, state.handled_signature,
    )
    return True
