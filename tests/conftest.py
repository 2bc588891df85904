import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from paratha import models
from paratha.deps import get_db
from paratha.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_sess(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


class Api:
    """Small helper around the test client for the common signup flows."""

    def __init__(self, client):
        self.client = client
        self._seq = 0

    def _email(self, prefix):
        self._seq += 1
        return f"{prefix}{self._seq}@paratha.io"

    def signup(self, kind="customer", **fields):
        path = {
            "customer": "/auth/signup",
            "business": "/auth/business/signup",
            "delivery": "/auth/delivery/signup",
            "admin": "/auth/admin/signup",
        }[kind]
        body = {"name": f"{kind.title()} User", "email": self._email(kind), "password": "secret1"}
        if kind == "delivery":
            body.update(phone="555-0100", vehicle="bike")
        body.update(fields)
        r = self.client.post(path, json=body)
        assert r.status_code == 201, r.text
        return r.json()

    def headers(self, kind="customer", **fields):
        return auth_header(self.signup(kind, **fields)["token"])

    def add_product(self, headers, **fields):
        body = {"name": "Aloo Paratha", "description": "Stuffed flatbread", "price": 8.5, "category": "mains"}
        body.update(fields)
        r = self.client.post("/products", json=body, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()

    def business_id(self, headers):
        return self.client.get("/business/profile", headers=headers).json()["id"]

    def place_order(self, headers, business_id, items, total_price=25.5, **fields):
        body = {"business_id": business_id, "items": items, "total_price": total_price}
        body.update(fields)
        return self.client.post("/orders", json=body, headers=headers)

    def partner_id(self, admin_headers, user_id):
        partners = self.client.get("/admin/delivery-partners", headers=admin_headers).json()
        return next(p["id"] for p in partners if p["user_id"] == user_id)


@pytest.fixture
def api(client):
    return Api(client)


@pytest.fixture
def shop(api):
    """A business with two products and a customer who can order them."""
    business = api.headers("business", name="Taco Hut")
    first = api.add_product(business, name="Al Pastor Taco", price=4.25)
    second = api.add_product(business, name="Horchata", price=3.0, category="drinks")
    return {
        "business": business,
        "business_id": api.business_id(business),
        "products": [first, second],
        "customer": api.headers("customer"),
    }
