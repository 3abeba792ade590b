from .conftest import API, auth


def test_add_merges_same_variant(client, seed_item, customer):
    item = seed_item("Rice", ("1 kg", 50.0), ("5 kg", 240.0))
    one_kg = item["variants"][0]["id"]

    client.post(f"{API}/cart", json={"variant_id": one_kg, "quantity": 2}, headers=auth(customer))
    res = client.post(f"{API}/cart", json={"variant_id": one_kg}, headers=auth(customer))

    cart = res.json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["items"][0]["line_total"] == 150.0
    assert cart["total_price"] == 150.0


def test_update_and_remove_lines(client, seed_item, customer):
    item = seed_item("Rice", ("1 kg", 50.0), ("5 kg", 240.0))
    one_kg, five_kg = (v["id"] for v in item["variants"])
    for vid in (one_kg, five_kg):
        client.post(f"{API}/cart", json={"variant_id": vid}, headers=auth(customer))

    res = client.patch(f"{API}/cart/{five_kg}", json={"quantity": 2}, headers=auth(customer))
    assert res.json()["total_price"] == 530.0
    assert res.json()["total_quantity"] == 3

    res = client.patch(f"{API}/cart/{one_kg}", json={"quantity": 0}, headers=auth(customer))
    assert [i["variant_id"] for i in res.json()["items"]] == [five_kg]

    res = client.delete(f"{API}/cart/{five_kg}", headers=auth(customer))
    assert res.json()["items"] == []

    res = client.delete(f"{API}/cart/{five_kg}", headers=auth(customer))
    assert res.status_code == 404


def test_out_of_stock_item_cannot_be_added(client, seed_item, customer):
    item = seed_item("Mustard Oil", ("1 L", 180.0), in_stock=False)
    res = client.post(
        f"{API}/cart",
        json={"variant_id": item["variants"][0]["id"]},
        headers=auth(customer),
    )
    assert res.status_code == 400
    assert res.json()["reason"] == "validation_failed"


def test_clear_cart(client, seed_item, customer):
    item = seed_item("Rice", ("1 kg", 50.0))
    client.post(f"{API}/cart", json={"variant_id": item["variants"][0]["id"]}, headers=auth(customer))

    res = client.delete(f"{API}/cart", headers=auth(customer))
    assert res.json() == {"items": [], "total_quantity": 0, "total_price": 0.0}


def test_cart_is_customer_only(client, owner, delivery):
    assert client.get(f"{API}/cart", headers=auth(owner)).status_code == 403
    assert client.get(f"{API}/cart", headers=auth(delivery)).status_code == 403
