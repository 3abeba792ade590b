import uuid

from sqlmodel import Session

from app.database import engine
from app.repositories.order_repo import OrderRepository

from .conftest import API, auth


def _variants(item: dict) -> dict[str, str]:
    return {v["quantity_unit"]: v["id"] for v in item["variants"]}


def _two_line_order(seed_item, place_order, customer) -> dict:
    rice = _variants(seed_item("Rice", ("1 kg", 50.0)))
    dal = _variants(seed_item("Toor Dal", ("500 g", 30.0)))
    return place_order(customer, (rice["1 kg"], 2), (dal["500 g"], 1))


def _assign(client, owner, order_id, person_id):
    return client.put(
        f"{API}/orders/{order_id}/delivery-person",
        json={"delivery_person_id": str(person_id) if person_id else None},
        headers=auth(owner),
    )


# -------- Checkout --------


def test_checkout_snapshots_cart_and_clears_it(client, seed_item, place_order, customer):
    order = _two_line_order(seed_item, place_order, customer)

    assert order["status"] == "pending"
    assert order["total_amount"] == 130.0
    assert order["order_number"].startswith("ORD")
    assert len(order["delivery_pin"]) == 6
    assert order["customer_name"] == "Asha"
    assert order["delivery_address"] == "12 Market Road"
    assert sorted(i["subtotal"] for i in order["items"]) == [30.0, 100.0]

    cart = client.get(f"{API}/cart", headers=auth(customer)).json()
    assert cart["items"] == []


def test_checkout_with_empty_cart_fails(client, customer):
    res = client.post(f"{API}/orders/checkout", json={}, headers=auth(customer))
    assert res.status_code == 400
    assert res.json()["reason"] == "validation_failed"


def test_checkout_requires_contact_details(client, seed_item, owner):
    from .conftest import _profile

    bare = _profile("customer", "Nobody")
    rice = _variants(seed_item("Rice", ("1 kg", 50.0)))
    client.post(f"{API}/cart", json={"variant_id": rice["1 kg"]}, headers=auth(bare))

    res = client.post(f"{API}/orders/checkout", json={}, headers=auth(bare))
    assert res.status_code == 400
    assert "customer_phone" in res.json()["detail"]

    res = client.post(
        f"{API}/orders/checkout",
        json={"customer_phone": "999", "delivery_address": "1 Lane"},
        headers=auth(bare),
    )
    assert res.status_code == 201


def test_owner_cannot_checkout(client, owner):
    res = client.post(f"{API}/orders/checkout", json={}, headers=auth(owner))
    assert res.status_code == 403


def test_checkout_outside_delivery_radius(client, seed_item, place_order, owner, customer):
    client.put(
        f"{API}/shop/location",
        json={"latitude": 12.9716, "longitude": 77.5946, "address": "MG Road"},
        headers=auth(owner),
    )
    rice = _variants(seed_item("Rice", ("1 kg", 50.0)))
    client.post(f"{API}/cart", json={"variant_id": rice["1 kg"]}, headers=auth(customer))

    far = client.post(
        f"{API}/orders/checkout",
        json={"latitude": 13.1986, "longitude": 77.7066},
        headers=auth(customer),
    )
    assert far.status_code == 400
    assert far.json()["reason"] == "validation_failed"

    near = client.post(
        f"{API}/orders/checkout",
        json={"latitude": 12.9750, "longitude": 77.6000},
        headers=auth(customer),
    )
    assert near.status_code == 201
    assert 0 < near.json()["distance_km"] <= 5


# -------- Quantity edits --------


def test_owner_edit_recomputes_total(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    rice_line = next(i for i in order["items"] if i["item_name"] == "Rice")

    res = client.patch(
        f"{API}/orders/{order['id']}/items",
        json={"lines": [{"order_item_id": rice_line["id"], "quantity": 3}]},
        headers=auth(owner),
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["order"]["total_amount"] == 180.0
    assert body["changes"] == [
        {
            "order_item_id": rice_line["id"],
            "item_name": "Rice",
            "old_quantity": 2,
            "new_quantity": 3,
            "delta": 1,
        }
    ]

    seen = client.get(f"{API}/orders/{order['id']}", headers=auth(customer)).json()
    assert seen["total_amount"] == 180.0


def test_edit_rejects_bad_lines(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    line_id = order["items"][0]["id"]
    url = f"{API}/orders/{order['id']}/items"

    for lines in (
        [],
        [{"order_item_id": line_id, "quantity": 0}],
        [{"order_item_id": order["id"], "quantity": 2}],
    ):
        res = client.patch(url, json={"lines": lines}, headers=auth(owner))
        assert res.status_code == 400, lines
        assert res.json()["reason"] == "validation_failed"

    res = client.patch(
        url,
        json={"lines": [{"order_item_id": line_id, "quantity": 5}]},
        headers=auth(customer),
    )
    assert res.status_code == 403


def test_sync_total_repairs_drift(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)

    with Session(engine) as session:
        OrderRepository().conditional_update(
            session, uuid.UUID(order["id"]), {}, {"total_amount": 999.0}
        )
        session.commit()

    res = client.post(f"{API}/orders/{order['id']}/sync-total", headers=auth(owner))
    assert res.status_code == 200
    assert res.json()["total_amount"] == 130.0


# -------- Transitions --------


def test_accept_twice_is_rejected(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    url = f"{API}/orders/{order['id']}/accept"

    first = client.post(url, headers=auth(owner))
    assert first.status_code == 200
    assert first.json()["status"] == "accepted"

    second = client.post(url, headers=auth(owner))
    assert second.status_code == 409
    assert second.json()["reason"] == "invalid_state_transition"

    events = client.get(f"{API}/orders/events", headers=auth(owner)).json()
    assert [e["kind"] for e in events] == ["created", "accepted"]


def test_customer_cannot_accept(client, seed_item, place_order, customer):
    order = _two_line_order(seed_item, place_order, customer)
    res = client.post(f"{API}/orders/{order['id']}/accept", headers=auth(customer))
    assert res.status_code == 403
    assert res.json()["reason"] == "unauthorized"


def test_delivery_flow_with_pin(client, seed_item, place_order, owner, customer, delivery):
    order = _two_line_order(seed_item, place_order, customer)
    oid = order["id"]

    assert _assign(client, owner, oid, delivery.id).status_code == 200

    # PIN is hidden from delivery staff
    seen = client.get(f"{API}/orders/{oid}", headers=auth(delivery)).json()
    assert seen["delivery_pin"] is None

    res = client.post(f"{API}/orders/{oid}/accept", headers=auth(delivery))
    assert res.json()["status"] == "accepted"

    wrong = "000000" if order["delivery_pin"] != "000000" else "111111"
    res = client.post(f"{API}/orders/{oid}/deliver", json={"pin": wrong}, headers=auth(delivery))
    assert res.status_code == 400
    assert res.json()["reason"] == "pin_mismatch"
    still = client.get(f"{API}/orders/{oid}", headers=auth(owner)).json()
    assert still["status"] == "accepted"

    res = client.post(
        f"{API}/orders/{oid}/deliver",
        json={"pin": order["delivery_pin"]},
        headers=auth(delivery),
    )
    assert res.status_code == 200
    assert res.json()["status"] == "delivered"
    assert res.json()["delivered_by"] == str(delivery.id)

    # Delivered orders are frozen
    res = client.post(f"{API}/orders/{oid}/cancel", headers=auth(owner))
    assert res.status_code == 409


def test_owner_can_confirm_delivery_without_assignee(
    client, seed_item, place_order, owner, customer
):
    order = _two_line_order(seed_item, place_order, customer)
    client.post(f"{API}/orders/{order['id']}/accept", headers=auth(owner))

    res = client.post(
        f"{API}/orders/{order['id']}/deliver",
        json={"pin": order["delivery_pin"]},
        headers=auth(owner),
    )
    assert res.status_code == 200
    assert res.json()["delivered_by"] == str(owner.id)


def test_unassigned_delivery_person_cannot_act(
    client, seed_item, place_order, owner, customer, delivery, other_delivery
):
    order = _two_line_order(seed_item, place_order, customer)
    _assign(client, owner, order["id"], delivery.id)

    res = client.post(f"{API}/orders/{order['id']}/accept", headers=auth(other_delivery))
    assert res.status_code == 404


def test_assign_requires_delivery_role(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    res = _assign(client, owner, order["id"], customer.id)
    assert res.status_code == 400


def test_cancel_clears_assignment_and_hides_from_delivery(
    client, seed_item, place_order, owner, customer, delivery
):
    order = _two_line_order(seed_item, place_order, customer)
    oid = order["id"]

    _assign(client, owner, oid, delivery.id)
    client.post(f"{API}/orders/{oid}/accept", headers=auth(delivery))

    res = client.post(f"{API}/orders/{oid}/cancel", headers=auth(owner))
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert res.json()["delivery_boy_id"] is None

    assert client.get(f"{API}/orders", headers=auth(delivery)).json() == []
    res = client.get(f"{API}/orders/{oid}", headers=auth(delivery))
    assert res.status_code == 404

    # The former assignee still sees the cancellation in the feed
    kinds = [e["kind"] for e in client.get(f"{API}/orders/events", headers=auth(delivery)).json()]
    assert kinds == ["assigned", "accepted", "cancelled"]


def test_customer_cancels_only_while_pending(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    client.post(f"{API}/orders/{order['id']}/accept", headers=auth(owner))

    res = client.post(f"{API}/orders/{order['id']}/cancel", headers=auth(customer))
    assert res.status_code == 409


# -------- Visibility and deletion --------


def test_customers_are_isolated(client, seed_item, place_order, customer, other_customer):
    order = _two_line_order(seed_item, place_order, customer)
    oid = order["id"]

    assert client.get(f"{API}/orders/{oid}", headers=auth(other_customer)).status_code == 404
    assert client.post(f"{API}/orders/{oid}/cancel", headers=auth(other_customer)).status_code == 404
    assert client.delete(f"{API}/orders/{oid}", headers=auth(other_customer)).status_code == 404
    assert client.get(f"{API}/orders", headers=auth(other_customer)).json() == []
    assert client.get(f"{API}/orders/events", headers=auth(other_customer)).json() == []


def test_customer_deletes_pending_order(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    oid = order["id"]

    res = client.delete(f"{API}/orders/{oid}", headers=auth(customer))
    assert res.status_code == 204

    for who in (customer, owner):
        assert client.get(f"{API}/orders/{oid}", headers=auth(who)).status_code == 404
        assert client.get(f"{API}/orders", headers=auth(who)).json() == []

    kinds = [e["kind"] for e in client.get(f"{API}/orders/events", headers=auth(owner)).json()]
    assert kinds == ["created", "deleted"]


def test_customer_cannot_delete_accepted_order(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    client.post(f"{API}/orders/{order['id']}/accept", headers=auth(owner))

    res = client.delete(f"{API}/orders/{order['id']}", headers=auth(customer))
    assert res.status_code == 409


def test_list_orders_filters_by_status(client, seed_item, place_order, owner, customer):
    first = _two_line_order(seed_item, place_order, customer)
    sugar = _variants(seed_item("Sugar", ("1 kg", 45.0)))
    place_order(customer, (sugar["1 kg"], 1))
    client.post(f"{API}/orders/{first['id']}/accept", headers=auth(owner))

    accepted = client.get(f"{API}/orders", params={"status": "accepted"}, headers=auth(owner)).json()
    assert [o["id"] for o in accepted] == [first["id"]]
    assert len(client.get(f"{API}/orders", headers=auth(customer)).json()) == 2


# -------- Change feed --------


def test_event_feed_pages_in_sequence(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    client.post(f"{API}/orders/{order['id']}/accept", headers=auth(owner))
    client.post(f"{API}/orders/{order['id']}/cancel", headers=auth(owner))

    events = client.get(f"{API}/orders/events", headers=auth(customer)).json()
    ids = [e["id"] for e in events]
    assert ids == sorted(ids)
    assert [e["status"] for e in events] == ["pending", "accepted", "cancelled"]

    rest = client.get(
        f"{API}/orders/events", params={"after": ids[0]}, headers=auth(customer)
    ).json()
    assert [e["id"] for e in rest] == ids[1:]


def test_anonymous_is_rejected(client):
    assert client.get(f"{API}/orders").status_code == 401


def test_non_ascii_pin_is_rejected_cleanly(client, seed_item, place_order, owner, customer):
    order = _two_line_order(seed_item, place_order, customer)
    client.post(f"{API}/orders/{order['id']}/accept", headers=auth(owner))

    res = client.post(
        f"{API}/orders/{order['id']}/deliver",
        json={"pin": "१२३४५६"},
        headers=auth(owner),
    )
    assert res.status_code == 400
    assert res.json()["reason"] == "pin_mismatch"
    still = client.get(f"{API}/orders/{order['id']}", headers=auth(owner)).json()
    assert still["status"] == "accepted"
