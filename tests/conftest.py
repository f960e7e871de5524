import os

os.environ.setdefault("ENVIRONMENT", "test")

import mongomock  # noqa: E402
import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import catalog  # noqa: E402
import customers  # noqa: E402
from database import ensure_indexes, get_db  # noqa: E402
from main import app  # noqa: E402
from schemas import Customer, Product  # noqa: E402


@pytest.fixture()
def db():
    """A fresh in-memory database with the production indexes."""
    database = mongomock.MongoClient()["cafe_test"]
    ensure_indexes(database)
    return database


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def customer(db):
    return customers.register_customer(db, Customer(name="Carla", email="c@x.com", phone="555-0101"))


@pytest.fixture()
def barista(db):
    return customers.register_customer(db, Customer(name="Bruno", email="bruno@cafe.test", role="barista"))


@pytest.fixture()
def courier(db):
    return customers.register_customer(db, Customer(name="Dana", email="dana@cafe.test", role="courier"))


@pytest.fixture()
def latte(db):
    return catalog.create_product(
        db,
        Product(name="Latte", description="Espresso and steamed milk", price=3.50, category="Coffee",
                image="latte.png"),
    )


@pytest.fixture()
def croissant(db):
    return catalog.create_product(
        db,
        Product(name="Croissant", description="Butter croissant", price=2.75, category="Snacks"),
    )


@pytest.fixture()
def missing_product_id():
    return str(ObjectId())
