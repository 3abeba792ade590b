import os
import time
import uuid

# Settings are read at import time; point everything at throwaway values.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "anon-test-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-enough-length"
os.environ.pop("SMTP_HOST", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.database import engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.profile import (  # noqa: E402
    Profile,
    ROLE_CUSTOMER,
    ROLE_DELIVERY,
    ROLE_OWNER,
)

API = "/api/v1"


def make_token(profile: Profile) -> str:
    claims = {
        "sub": str(profile.id),
        "email": profile.email,
        "exp": int(time.time()) + 3600,
        "aud": "authenticated",
    }
    return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def auth(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(profile)}"}


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


def _profile(role: str, name: str, **extra) -> Profile:
    profile = Profile(
        id=uuid.uuid4(),
        email=f"{name.lower()}@example.com",
        role=role,
        full_name=name,
        **extra,
    )
    with Session(engine) as session:
        session.add(profile)
        session.commit()
        session.refresh(profile)
    return profile


@pytest.fixture
def owner() -> Profile:
    return _profile(ROLE_OWNER, "Owner")


@pytest.fixture
def customer() -> Profile:
    return _profile(ROLE_CUSTOMER, "Asha", phone="9876543210", address="12 Market Road")


@pytest.fixture
def other_customer() -> Profile:
    return _profile(ROLE_CUSTOMER, "Ravi", phone="9123456780", address="4 Temple Street")


@pytest.fixture
def delivery() -> Profile:
    return _profile(ROLE_DELIVERY, "Dinesh", phone="9000000001")


@pytest.fixture
def other_delivery() -> Profile:
    return _profile(ROLE_DELIVERY, "Mohan", phone="9000000002")


@pytest.fixture
def seed_item(client, owner):
    """Create a catalog item with one variant per (unit, price) pair."""

    def _seed(name: str, *variants: tuple[str, float], in_stock: bool = True) -> dict:
        res = client.post(
            f"{API}/catalog/items",
            json={
                "name": name,
                "category": "Grains",
                "in_stock": in_stock,
                "variants": [{"quantity_unit": u, "price": p} for u, p in variants],
            },
            headers=auth(owner),
        )
        assert res.status_code == 201, res.text
        return res.json()

    return _seed


@pytest.fixture
def place_order(client):
    """Fill the customer's cart with (variant_id, qty) pairs and check out."""

    def _place(customer: Profile, *lines: tuple[str, int], **payload) -> dict:
        for variant_id, qty in lines:
            res = client.post(
                f"{API}/cart",
                json={"variant_id": variant_id, "quantity": qty},
                headers=auth(customer),
            )
            assert res.status_code == 200, res.text
        res = client.post(f"{API}/orders/checkout", json=payload, headers=auth(customer))
        assert res.status_code == 201, res.text
        return res.json()

    return _place
