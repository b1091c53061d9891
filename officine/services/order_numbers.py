# FILE: officine/services/order_numbers.py
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from officine.core.config import settings
from officine.models.procurement import ProcurementItem, ProcurementOrder, ProcurementType


def D(v) -> Decimal:
    try:
        if v is None:
            return Decimal("0")
        if isinstance(v, Decimal):
            return v
        return Decimal(str(v).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def money2(v) -> Decimal:
    return D(v).quantize(Decimal("0.01"))


def line_total(quantity, unit_price) -> Decimal:
    # negative products never reduce an order total
    return money2(max(Decimal("0"), D(quantity) * D(unit_price)))


def order_total(items: Iterable[ProcurementItem]) -> Decimal:
    return money2(sum((D(li.line_total) for li in items), Decimal("0")))


def parse_order_number(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    m = re.match(rf"^{re.escape(settings.ORDER_NUMBER_PREFIX)}(\d+)$", value)
    return int(m.group(1)) if m else None


def next_order_number(
    db: Session,
    pharmacy_id: int,
    order_type: ProcurementType = ProcurementType.PURCHASE_ORDER,
) -> Tuple[str, int]:
    """
    Per-tenant, per-type sequence: max(existing sequence) + 1, never below
    the number of existing orders + 1. Example: BC-07
    """
    rows = (
        db.query(ProcurementOrder.order_sequence, ProcurementOrder.order_number)
        .filter(ProcurementOrder.pharmacy_id == pharmacy_id, ProcurementOrder.type == order_type)
        .with_for_update()
        .all()
    )

    max_seq = len(rows)
    for seq, number in rows:
        max_seq = max(max_seq, seq or parse_order_number(number) or 0)

    seq = max_seq + 1
    return f"{settings.ORDER_NUMBER_PREFIX}{seq:02d}", seq
