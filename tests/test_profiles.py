import uuid

from app.services import profile_service

from .conftest import API, auth


def test_first_login_provisions_customer(client):
    from app.models.profile import Profile

    stranger = Profile(id=uuid.uuid4(), email="neha@example.com", role="owner", full_name="x")
    res = client.get(f"{API}/profiles/me", headers=auth(stranger))

    assert res.status_code == 200
    body = res.json()
    # Role comes from the database, never from the token
    assert body["role"] == "customer"
    assert body["full_name"] == "neha"


def test_update_me(client, customer):
    res = client.patch(
        f"{API}/profiles/me",
        json={"phone": " 9999999999 ", "address": "7 Lake View"},
        headers=auth(customer),
    )
    assert res.status_code == 200
    assert res.json()["phone"] == "9999999999"
    assert res.json()["address"] == "7 Lake View"

    res = client.patch(f"{API}/profiles/me", json={"role": "owner"}, headers=auth(customer))
    assert res.status_code == 422


def test_owner_creates_delivery_person(client, owner, monkeypatch):
    new_id = uuid.uuid4()
    calls = []

    def fake_create_auth_user(email, password):
        calls.append((email, password))
        return str(new_id)

    monkeypatch.setattr(profile_service, "create_auth_user", fake_create_auth_user)

    payload = {
        "email": "ravi.d@example.com",
        "password": "secret123",
        "full_name": "Ravi",
        "phone": "9000000003",
    }
    res = client.post(f"{API}/profiles/delivery", json=payload, headers=auth(owner))
    assert res.status_code == 201, res.text
    assert res.json()["id"] == str(new_id)
    assert res.json()["role"] == "delivery"
    assert calls == [("ravi.d@example.com", "secret123")]

    listed = client.get(f"{API}/profiles/delivery", headers=auth(owner)).json()
    assert [p["email"] for p in listed] == ["ravi.d@example.com"]

    again = client.post(f"{API}/profiles/delivery", json=payload, headers=auth(owner))
    assert again.status_code == 400
    assert len(calls) == 1


def test_supabase_rejection_is_validation_error(client, owner, monkeypatch):
    def reject(email, password):
        raise ValueError("User already registered")

    monkeypatch.setattr(profile_service, "create_auth_user", reject)
    res = client.post(
        f"{API}/profiles/delivery",
        json={"email": "x@example.com", "password": "secret123", "full_name": "X", "phone": "1"},
        headers=auth(owner),
    )
    assert res.status_code == 400
    assert res.json()["reason"] == "validation_failed"


def test_only_owner_manages_delivery_staff(client, customer):
    assert client.get(f"{API}/profiles/delivery", headers=auth(customer)).status_code == 403


def test_null_profile_fields_are_rejected(client, customer):
    for body in ({"full_name": None}, {"phone": None}, {"full_name": "   "}):
        res = client.patch(f"{API}/profiles/me", json=body, headers=auth(customer))
        assert res.status_code == 422, body

    res = client.patch(f"{API}/profiles/me", json={"address": None}, headers=auth(customer))
    assert res.status_code == 200
    assert res.json()["address"] is None
