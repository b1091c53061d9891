# FILE: officine/services/expiry_risk.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from officine.core.exceptions import InvalidInputError
from officine.core.identity import Identity
from officine.models.catalog import Product, Supplier
from officine.models.procurement import ProcurementOrder
from officine.models.stock import StockLot
from officine.schemas.stock_lots import (
    ExpiryRiskCountsOut,
    ExpiryRiskFilterOptionsOut,
    ExpiryRiskFilters,
    ExpiryRiskItemOut,
    ExpiryRiskOut,
    ExpirySeverity,
    NamedOption,
)
from officine.services.tenancy import resolve_pharmacy
from officine.utils.timezone import today_local

logger = logging.getLogger(__name__)

ALLOWED_WINDOWS = (30, 60, 90)
DEFAULT_WINDOW_DAYS = 60

CRITICAL_MAX_DAYS = 14
WARNING_MAX_DAYS = 30

SALES_PATH = "/app/ventes"


@dataclass(frozen=True)
class Recommendation:
    action: str
    path_label: str
    path_href: str


def classify_severity(days_to_expiry: int, window_days: int = DEFAULT_WINDOW_DAYS) -> Optional[ExpirySeverity]:
    """
    Fixed tiers:
      < 0        EXPIRED
      0..14      CRITICAL
      15..30     WARNING
      31..window WATCH
    Beyond the window there is no tier (None).
    """
    if days_to_expiry < 0:
        return ExpirySeverity.EXPIRED
    if days_to_expiry <= CRITICAL_MAX_DAYS:
        return ExpirySeverity.CRITICAL
    if days_to_expiry <= WARNING_MAX_DAYS:
        return ExpirySeverity.WARNING
    if days_to_expiry <= window_days:
        return ExpirySeverity.WATCH
    return None


def lot_detail_path(product_id: int, lot_number: str) -> str:
    return f"/app/produit?productId={product_id}&lotNumber={quote(lot_number, safe='')}"


def recommend(severity: ExpirySeverity, detail_path: str) -> Recommendation:
    if severity == ExpirySeverity.EXPIRED:
        return Recommendation(
            action="Bloquer le lot et lancer retrait ou retour fournisseur.",
            path_label="Retirer de la vente",
            path_href=SALES_PATH,
        )
    if severity == ExpirySeverity.CRITICAL:
        return Recommendation(
            action="Prioriser la vente FEFO ou initier un retour fournisseur.",
            path_label="Prioriser la vente",
            path_href=SALES_PATH,
        )
    if severity == ExpirySeverity.WARNING:
        return Recommendation(
            action="Planifier l'ecoulement prioritaire de ce lot.",
            path_label="Voir le lot",
            path_href=detail_path,
        )
    return Recommendation(
        action="Surveiller ce lot et preparer une action preventive.",
        path_label="Suivre le lot",
        path_href=detail_path,
    )


def _counts(items: List[ExpiryRiskItemOut]) -> ExpiryRiskCountsOut:
    counts = ExpiryRiskCountsOut()
    for item in items:
        d = item.days_to_expiry
        counts.total += 1
        if d < 0:
            counts.expired += 1
        # cumulative buckets, expired lots fall in every one of them
        if d <= 30:
            counts.due_in30_days += 1
        if d <= 60:
            counts.due_in60_days += 1
        if d <= 90:
            counts.due_in90_days += 1
    return counts


def _filter_options(items: List[ExpiryRiskItemOut]) -> ExpiryRiskFilterOptionsOut:
    products: Dict[int, str] = {}
    suppliers: Dict[int, str] = {}
    categories = set()
    for item in items:
        products[item.product_id] = item.product_name
        if item.product_category:
            categories.add(item.product_category)
        if item.supplier_id is not None and item.supplier_name:
            suppliers[item.supplier_id] = item.supplier_name

    return ExpiryRiskFilterOptionsOut(
        products=sorted(
            (NamedOption(id=k, name=v) for k, v in products.items()),
            key=lambda o: (o.name.casefold(), o.id),
        ),
        categories=sorted(categories, key=str.casefold),
        suppliers=sorted(
            (NamedOption(id=k, name=v) for k, v in suppliers.items()),
            key=lambda o: (o.name.casefold(), o.id),
        ),
    )


def _matches(item: ExpiryRiskItemOut, filters: ExpiryRiskFilters) -> bool:
    if filters.product_ids and item.product_id not in filters.product_ids:
        return False
    if filters.categories and item.product_category not in filters.categories:
        return False
    # lots whose order/supplier cannot be resolved never match a supplier filter
    if filters.supplier_ids and (item.supplier_id is None or item.supplier_id not in filters.supplier_ids):
        return False
    if filters.severities and item.severity not in filters.severities:
        return False
    return True


def list_expiry_risk(
    db: Session,
    identity: Optional[Identity],
    clerk_org_id: str,
    *,
    window_days: Optional[int] = None,
    filters: Optional[ExpiryRiskFilters] = None,
    today: Optional[date] = None,
) -> ExpiryRiskOut:
    """
    Severity-bucketed view of positive lots expiring within `window_days`.

    `counts` and `filter_options` are built from every lot in the window;
    filters only narrow `items`. Unauthorized or unknown tenants get the
    empty report.
    """
    filters = filters or ExpiryRiskFilters()

    pharmacy = resolve_pharmacy(db, identity, clerk_org_id)
    if not pharmacy:
        return ExpiryRiskOut()

    window = DEFAULT_WINDOW_DAYS if window_days is None else int(window_days)
    if window not in ALLOWED_WINDOWS:
        raise InvalidInputError(f"windowDays must be one of {list(ALLOWED_WINDOWS)}")

    today = today or today_local()
    pid = pharmacy.id

    lots = db.query(StockLot).filter(StockLot.pharmacy_id == pid, StockLot.quantity > 0).all()
    if not lots:
        return ExpiryRiskOut()

    products = {p.id: p for p in db.query(Product).filter(Product.pharmacy_id == pid).all()}
    orders = {o.id: o for o in db.query(ProcurementOrder).filter(ProcurementOrder.pharmacy_id == pid).all()}
    suppliers = {s.id: s for s in db.query(Supplier).filter(Supplier.pharmacy_id == pid).all()}

    in_window: List[ExpiryRiskItemOut] = []
    for lot in lots:
        product = products.get(lot.product_id)
        if product is None:
            continue

        days = (lot.expiry_date - today).days
        severity = classify_severity(days, window)
        if severity is None:
            continue

        order = orders.get(lot.source_order_id) if lot.source_order_id else None
        supplier = suppliers.get(order.supplier_id) if order is not None else None

        detail = lot_detail_path(product.id, lot.lot_number)
        rec = recommend(severity, detail)

        in_window.append(
            ExpiryRiskItemOut(
                lot_id=lot.id,
                product_id=product.id,
                product_name=product.name,
                product_category=product.category or "",
                lot_number=lot.lot_number,
                expiry_date=lot.expiry_date,
                days_to_expiry=days,
                quantity=int(lot.quantity),
                supplier_id=supplier.id if supplier else None,
                supplier_name=supplier.name if supplier else None,
                severity=severity,
                recommended_action=rec.action,
                recommended_path_label=rec.path_label,
                recommended_path_href=rec.path_href,
                lot_detail_path=detail,
            )
        )

    items = [i for i in in_window if _matches(i, filters)]
    items.sort(key=lambda i: (i.days_to_expiry, i.product_name.casefold(), i.lot_number.casefold()))

    logger.debug(
        "Expiry risk pharmacy=%s window=%s lots=%s items=%s",
        pid, window, len(in_window), len(items),
    )
    return ExpiryRiskOut(
        items=items,
        counts=_counts(in_window),
        filter_options=_filter_options(in_window),
    )
