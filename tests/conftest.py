from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import officine.models  # noqa: F401
from officine.api.deps import get_db
from officine.core.identity import Identity
from officine.db.base import Base
from officine.main import app
from officine.models import LotSourceType, Pharmacy, Product, Supplier
from officine.services.stock_ledger import receive_lot
from officine.utils.jwt import create_token
from officine.utils.timezone import today_local

ORG_A = "org_alpha"
ORG_B = "org_beta"


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def today():
    return today_local()


@pytest.fixture()
def identity():
    return Identity(user_id="user_a", org_id=ORG_A)


@pytest.fixture()
def other_identity():
    return Identity(user_id="user_b", org_id=ORG_B)


@pytest.fixture()
def pharmacy(db):
    p = Pharmacy(clerk_org_id=ORG_A, name="Pharmacie Alpha", pharmacy_number="PHARM-01", pharmacy_sequence=1)
    db.add(p)
    db.flush()
    return p


@pytest.fixture()
def other_pharmacy(db):
    p = Pharmacy(clerk_org_id=ORG_B, name="Pharmacie Beta", pharmacy_number="PHARM-02", pharmacy_sequence=2)
    db.add(p)
    db.flush()
    return p


@pytest.fixture()
def make_product(db):
    def _make(
        pharmacy: Pharmacy,
        name: str = "Doliprane 500",
        *,
        category: str = "Antalgique",
        purchase_price: str = "2.50",
        selling_price: str = "4.00",
        threshold: int = 0,
    ) -> Product:
        product = Product(
            pharmacy_id=pharmacy.id,
            name=name,
            category=category,
            purchase_price=Decimal(purchase_price),
            selling_price=Decimal(selling_price),
            low_stock_threshold=threshold,
        )
        db.add(product)
        db.flush()
        return product

    return _make


@pytest.fixture()
def make_supplier(db):
    def _make(pharmacy: Pharmacy, name: str = "Grossiste Sud") -> Supplier:
        supplier = Supplier(pharmacy_id=pharmacy.id, name=name)
        db.add(supplier)
        db.flush()
        return supplier

    return _make


@pytest.fixture()
def add_lot(db, today):
    def _add(
        product: Product,
        lot_number: str,
        *,
        days: int,
        quantity: int,
        source_type: LotSourceType = LotSourceType.INITIAL_STOCK,
        source_order_id: Optional[int] = None,
    ):
        return receive_lot(
            db,
            product.pharmacy_id,
            product_id=product.id,
            lot_number=lot_number,
            expiry_date=today + timedelta(days=days),
            quantity=quantity,
            source_type=source_type,
            source_order_id=source_order_id,
            user_id="user_a",
        )

    return _add


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def auth_headers(org_id: Optional[str] = ORG_A, user_id: str = "user_a") -> dict:
    return {"Authorization": f"Bearer {create_token(subject=user_id, org_id=org_id)}"}
