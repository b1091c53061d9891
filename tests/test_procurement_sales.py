from datetime import timedelta
from decimal import Decimal

import pytest

from officine.core.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    LotExpiryMismatchError,
    NotFoundError,
    UnauthorizedError,
)
from officine.models import (
    LotSourceType,
    ProcurementItemLot,
    ProcurementOrder,
    ProcurementStatus,
    ProcurementType,
    Sale,
    SaleItemLot,
    StockLot,
    StockMovement,
    StockMovementType,
)
from officine.schemas.procurement import DeliveryNoteIn, DeliveryNoteLineIn
from officine.schemas.sales import SaleIn, SaleLineIn
from officine.services.order_numbers import line_total, next_order_number, parse_order_number
from officine.services.procurement import get_order, record_delivery_note, update_order_status
from officine.services.sales import record_sale


def _note(pharmacy, supplier, *lines, reference="BL-1"):
    return DeliveryNoteIn(
        clerk_org_id=pharmacy.clerk_org_id,
        supplier_id=supplier.id,
        external_reference=reference,
        lines=[DeliveryNoteLineIn(**line) for line in lines],
    )


def test_order_number_helpers():
    assert parse_order_number("BC-12") == 12
    assert parse_order_number("PO-12") is None
    assert parse_order_number(None) is None
    assert line_total(3, "2.505") == Decimal("7.52")
    assert line_total(-1, "2.00") == Decimal("0.00")


def test_next_order_number_never_below_count(db, pharmacy, make_supplier):
    supplier = make_supplier(pharmacy)
    for number in ("ancien", "manuel"):
        db.add(
            ProcurementOrder(
                pharmacy_id=pharmacy.id,
                order_number=number,
                type=ProcurementType.PURCHASE_ORDER,
                status=ProcurementStatus.ORDERED,
                supplier_id=supplier.id,
            )
        )
    db.flush()
    assert next_order_number(db, pharmacy.id) == ("BC-03", 3)


def test_delivery_note_receives_every_line(db, pharmacy, identity, make_product, make_supplier, today):
    doliprane = make_product(pharmacy, "Doliprane")
    smecta = make_product(pharmacy, "Smecta")
    supplier = make_supplier(pharmacy)
    expiry = today + timedelta(days=365)

    order = record_delivery_note(
        db,
        identity,
        _note(
            pharmacy,
            supplier,
            {"product_id": doliprane.id, "lot_number": "D-1", "expiry_date": expiry, "quantity": 10, "unit_price": "1.20"},
            {"product_id": smecta.id, "lot_number": "S-1", "expiry_date": expiry, "quantity": 4, "unit_price": "3.00"},
        ),
    )

    assert order.type == ProcurementType.DELIVERY_NOTE
    assert order.status == ProcurementStatus.DELIVERED
    assert order.external_reference == "BL-1"
    assert order.total_amount == Decimal("24.00")
    assert len(order.items) == 2

    lots = {lot.lot_number: lot for lot in db.query(StockLot).all()}
    assert lots["D-1"].quantity == 10
    assert lots["D-1"].source_type == LotSourceType.DELIVERY_NOTE
    assert lots["D-1"].source_order_id == order.id

    links = db.query(ProcurementItemLot).order_by(ProcurementItemLot.id).all()
    assert [(l.lot_number, l.quantity) for l in links] == [("D-1", 10), ("S-1", 4)]

    movements = db.query(StockMovement).all()
    assert {m.movement_type for m in movements} == {StockMovementType.DELIVERY_NOTE_STOCK_SYNC}
    assert {m.source_id for m in movements} == {str(order.id)}


def test_delivery_note_conflicting_expiry_writes_nothing(db, pharmacy, identity, make_product, make_supplier, add_lot, today):
    product = make_product(pharmacy)
    supplier = make_supplier(pharmacy)
    add_lot(product, "LOT-1", days=100, quantity=1)

    with pytest.raises(LotExpiryMismatchError):
        record_delivery_note(
            db,
            identity,
            _note(
                pharmacy,
                supplier,
                {"product_id": product.id, "lot_number": "NEW", "expiry_date": today, "quantity": 1},
                {"product_id": product.id, "lot_number": "lot-1", "expiry_date": today, "quantity": 1},
            ),
        )

    assert db.query(ProcurementOrder).count() == 0
    assert db.query(StockLot).count() == 1


def test_delivery_note_guards(db, pharmacy, other_pharmacy, identity, other_identity, make_product, make_supplier, today):
    product = make_product(pharmacy)
    supplier = make_supplier(pharmacy)
    foreign_supplier = make_supplier(other_pharmacy)
    line = {"product_id": product.id, "lot_number": "X", "expiry_date": today, "quantity": 1}

    with pytest.raises(UnauthorizedError):
        record_delivery_note(db, other_identity, _note(pharmacy, supplier, line))
    with pytest.raises(UnauthorizedError):
        record_delivery_note(db, identity, _note(pharmacy, foreign_supplier, line))
    with pytest.raises(NotFoundError):
        record_delivery_note(db, identity, _note(pharmacy, supplier, {**line, "product_id": 999}))


def test_sale_consumes_fefo_and_links_lots(db, pharmacy, identity, make_product, add_lot):
    product = make_product(pharmacy, "Ibuprofene")
    add_lot(product, "LATE", days=200, quantity=10)
    add_lot(product, "EARLY", days=20, quantity=2)

    sale = record_sale(
        db,
        identity,
        SaleIn(
            clerk_org_id=pharmacy.clerk_org_id,
            lines=[SaleLineIn(product_id=product.id, quantity=5, unit_price=Decimal("3.10"))],
        ),
    )

    assert sale.total_amount == Decimal("15.50")
    assert sale.seller_user_id == "user_a"
    (item,) = sale.items
    assert item.product_name_snapshot == "Ibuprofene"
    assert [(l.lot_number, l.quantity) for l in item.lots] == [("EARLY", 2), ("LATE", 3)]
    assert db.query(SaleItemLot).count() == 2


def test_sale_checks_total_demand_before_writing(db, pharmacy, identity, make_product, add_lot):
    product = make_product(pharmacy)
    lot = add_lot(product, "ONLY", days=50, quantity=6)
    movements_before = db.query(StockMovement).count()

    with pytest.raises(InsufficientStockError) as exc:
        record_sale(
            db,
            identity,
            SaleIn(
                clerk_org_id=pharmacy.clerk_org_id,
                lines=[
                    SaleLineIn(product_id=product.id, quantity=4, unit_price=Decimal("1")),
                    SaleLineIn(product_id=product.id, quantity=4, unit_price=Decimal("1")),
                ],
            ),
        )

    assert exc.value.requested == 8
    assert lot.quantity == 6
    assert db.query(Sale).count() == 0
    assert db.query(StockMovement).count() == movements_before


def test_get_order_is_tenant_scoped(db, pharmacy, identity, other_identity, make_product, make_supplier, today):
    product = make_product(pharmacy)
    supplier = make_supplier(pharmacy)
    order = record_delivery_note(
        db,
        identity,
        _note(pharmacy, supplier, {"product_id": product.id, "lot_number": "X", "expiry_date": today, "quantity": 1}),
    )

    assert get_order(db, identity, pharmacy.clerk_org_id, order.id) is order
    assert get_order(db, other_identity, pharmacy.clerk_org_id, order.id) is None
    assert get_order(db, identity, pharmacy.clerk_org_id, order.id + 1) is None


def test_status_changes(db, pharmacy, identity, make_product, make_supplier, today):
    product = make_product(pharmacy)
    supplier = make_supplier(pharmacy)
    po = ProcurementOrder(
        pharmacy_id=pharmacy.id,
        order_number="BC-01",
        order_sequence=1,
        type=ProcurementType.PURCHASE_ORDER,
        status=ProcurementStatus.DRAFT,
        supplier_id=supplier.id,
    )
    db.add(po)
    db.flush()

    update_order_status(db, identity, pharmacy.clerk_org_id, po.id, ProcurementStatus.ORDERED)
    update_order_status(db, identity, pharmacy.clerk_org_id, po.id, ProcurementStatus.DELIVERED)
    assert po.status == ProcurementStatus.DELIVERED

    with pytest.raises(InvalidInputError):
        update_order_status(db, identity, pharmacy.clerk_org_id, po.id, ProcurementStatus.DRAFT)

    note = record_delivery_note(
        db,
        identity,
        _note(pharmacy, supplier, {"product_id": product.id, "lot_number": "X", "expiry_date": today, "quantity": 1}),
    )
    with pytest.raises(InvalidInputError):
        update_order_status(db, identity, pharmacy.clerk_org_id, note.id, ProcurementStatus.ORDERED)
    with pytest.raises(NotFoundError):
        update_order_status(db, identity, pharmacy.clerk_org_id, 999, ProcurementStatus.ORDERED)
