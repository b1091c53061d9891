# FILE: officine/services/sales.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Optional

from sqlalchemy.orm import Session

from officine.core.exceptions import InsufficientStockError
from officine.core.identity import Identity
from officine.models.sales import Sale, SaleItem, SaleItemLot
from officine.models.stock import StockMovementType
from officine.schemas.sales import SaleIn
from officine.services.order_numbers import line_total, money2
from officine.services.stock_ledger import consume_fefo, get_product, product_stock_levels
from officine.services.tenancy import require_pharmacy
from officine.utils.timezone import now_local

logger = logging.getLogger(__name__)


def record_sale(db: Session, identity: Optional[Identity], payload: SaleIn) -> Sale:
    """
    Write a sale and serve every line FEFO.
    Demand is checked per product across all lines before anything is
    written, so a short line rejects the whole sale.
    """
    pharmacy = require_pharmacy(db, identity, payload.clerk_org_id)

    demand: Dict[int, int] = defaultdict(int)
    products = {}
    for line in payload.lines:
        products[line.product_id] = get_product(db, pharmacy.id, line.product_id)
        demand[line.product_id] += line.quantity

    levels = product_stock_levels(db, pharmacy.id, demand.keys())
    for product_id, requested in demand.items():
        available = levels.get(product_id, 0)
        if available < requested:
            raise InsufficientStockError(product_id=product_id, requested=requested, available=available)

    user_id = identity.user_id if identity else "system"
    sale = Sale(
        pharmacy_id=pharmacy.id,
        sale_date=now_local(),
        payment_method=payload.payment_method,
        seller_user_id=user_id,
    )
    db.add(sale)
    db.flush()

    total = money2(0)
    for line in payload.lines:
        product = products[line.product_id]
        item = SaleItem(
            product_id=product.id,
            product_name_snapshot=product.name,
            quantity=line.quantity,
            unit_price=money2(line.unit_price),
            line_total=line_total(line.quantity, line.unit_price),
        )
        sale.items.append(item)
        db.flush()

        allocations = consume_fefo(
            db,
            pharmacy.id,
            product_id=product.id,
            quantity=line.quantity,
            movement_type=StockMovementType.SALE_STOCK_SYNC,
            reason="Vente",
            source_id=str(sale.id),
            user_id=user_id,
        )
        for lot, qty in allocations:
            item.lots.append(
                SaleItemLot(
                    pharmacy_id=pharmacy.id,
                    sale_id=sale.id,
                    product_id=product.id,
                    lot_id=lot.id,
                    lot_number=lot.lot_number,
                    expiry_date=lot.expiry_date,
                    quantity=qty,
                )
            )
        total += item.line_total

    sale.total_amount = money2(total)
    db.flush()

    logger.info("Sale id=%s lines=%s total=%s pharmacy=%s", sale.id, len(sale.items), sale.total_amount, pharmacy.id)
    return sale
