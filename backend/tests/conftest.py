"""
Pytest fixtures for the inventory backend.

Each test gets its own file-backed SQLite database so that worker threads in
the concurrency tests can open independent connections to it.
"""
import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from database import Base, get_db, make_engine
import models.users
import models.customers
import models.item
import models.cart
import models.order
import models.pos
import models.stock
import models.log
from models.customers import Customer
from models.item import Item
from models.users import User
from utils.tokenJWT import PRINCIPAL_CUSTOMER, PRINCIPAL_STAFF, token_for
from main import app

_codes = itertools.count(1)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'inventory_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_item(db):
    """Factory creating a committed item; keyword arguments override the defaults."""
    def _make(**overrides):
        n = next(_codes)
        fields = dict(
            code=f"TX-{n:04d}",
            name=f"Cotton fabric {n}",
            category="Cotton",
            unit="m",
            quantity=10,
            min_stock=2,
            price=100.0,
            online_price=None,
            is_active=True,
            is_available_online=True,
        )
        fields.update(overrides)
        item = Item(**fields)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


@pytest.fixture
def customer(db):
    c = Customer(name="Siti Rahma", email="siti@example.com", phone="0812000111")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def other_customer(db):
    c = Customer(name="Budi Santoso", email="budi@example.com", phone="0812000222")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def cashier(db):
    u = User(username="kasir1", full_name="Dewi Kasir", role="cashier")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def admin(db):
    u = User(username="admin", full_name="Admin Toko", role="admin")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def bearer(principal_type: str, principal_id: int) -> dict:
    return {"Authorization": f"Bearer {token_for(principal_type, principal_id)}"}


@pytest.fixture
def customer_headers(customer):
    return bearer(PRINCIPAL_CUSTOMER, customer.id)


@pytest.fixture
def cashier_headers(cashier):
    return bearer(PRINCIPAL_STAFF, cashier.id)


@pytest.fixture
def admin_headers(admin):
    return bearer(PRINCIPAL_STAFF, admin.id)


@pytest.fixture
def shipping():
    from services.orders import ShippingDetails
    return ShippingDetails(
        name="Siti Rahma",
        phone="0812000111",
        address="Jl. Merdeka 10",
        city="Bandung",
        postal_code="40111",
    )
