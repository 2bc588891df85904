import pytest
from sqlalchemy.exc import IntegrityError

from paratha import models

HOME = {"street": "12 Curry Lane", "city": "Austin", "state": "TX", "zip": "78701", "latitude": 30.27, "longitude": -97.74}


def add(client, headers, **fields):
    body = dict(HOME)
    body.update(fields)
    r = client.post("/addresses", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def defaults(client, headers):
    listing = client.get("/addresses", headers=headers).json()
    return [a["id"] for a in listing["addresses"] if a["is_default"]]


def test_add_and_list(client, api):
    headers = api.headers("customer")
    first = add(client, headers)
    second = add(client, headers, label="work", street="1 Office Park")
    assert first["country"] == "USA"
    assert second["label"] == "work"

    listing = client.get("/addresses", headers=headers).json()
    assert listing["total"] == 2
    assert {a["id"] for a in listing["addresses"]} == {first["id"], second["id"]}


def test_set_default_leaves_exactly_one(client, api):
    headers = api.headers("customer")
    a = add(client, headers, is_default=True)
    b = add(client, headers)
    assert defaults(client, headers) == [a["id"]]

    r = client.put(f"/addresses/{b['id']}/set-default", headers=headers)
    assert r.status_code == 200
    assert r.json()["is_default"] is True
    assert defaults(client, headers) == [b["id"]]

    assert client.get("/addresses/default", headers=headers).json()["id"] == b["id"]
    # default address is listed first
    assert client.get("/addresses", headers=headers).json()["addresses"][0]["id"] == b["id"]


def test_create_or_update_as_default_moves_the_flag(client, api):
    headers = api.headers("customer")
    a = add(client, headers, is_default=True)
    b = add(client, headers, is_default=True)
    assert defaults(client, headers) == [b["id"]]

    r = client.put(f"/addresses/{a['id']}", json={"is_default": True, "city": "Dallas"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["city"] == "Dallas"
    assert defaults(client, headers) == [a["id"]]


def test_defaults_are_per_user(client, api):
    alice = api.headers("customer")
    bob = api.headers("customer")
    a = add(client, alice, is_default=True)
    b = add(client, bob, is_default=True)
    assert defaults(client, alice) == [a["id"]]
    assert defaults(client, bob) == [b["id"]]


def test_no_default_address(client, api):
    headers = api.headers("customer")
    add(client, headers)
    r = client.get("/addresses/default", headers=headers)
    assert r.status_code == 404


def test_invalid_coordinates(client, api):
    headers = api.headers("customer")
    r = client.post("/addresses", json=dict(HOME, latitude=91), headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"
    r = client.post("/addresses", json=dict(HOME, longitude=-181), headers=headers)
    assert r.status_code == 400


def test_other_users_address_is_not_found(client, api):
    owner = api.headers("customer")
    stranger = api.headers("customer")
    address = add(client, owner)
    url = f"/addresses/{address['id']}"

    assert client.get(url, headers=stranger).status_code == 404
    assert client.put(url, json={"city": "Nowhere"}, headers=stranger).status_code == 404
    assert client.put(f"{url}/set-default", headers=stranger).status_code == 404
    assert client.delete(url, headers=stranger).status_code == 404
    assert client.get(url, headers=owner).json()["city"] == "Austin"


def test_delete_address(client, api):
    headers = api.headers("customer")
    address = add(client, headers)
    r = client.delete(f"/addresses/{address['id']}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/addresses/{address['id']}", headers=headers).status_code == 404


def test_null_label_is_rejected(client, api):
    headers = api.headers("customer")
    address = add(client, headers)
    r = client.put(f"/addresses/{address['id']}", json={"label": None}, headers=headers)
    assert r.status_code == 400


def test_addresses_require_a_token(client):
    assert client.get("/addresses").status_code == 401


def test_store_refuses_a_second_default(db_sess):
    user = models.User(name="U", email="u@paratha.io", password_hash="x")
    db_sess.add(user)
    db_sess.flush()
    db_sess.add_all([
        models.Address(user_id=user.id, street="a", is_default=True),
        models.Address(user_id=user.id, street="b", is_default=True),
    ])
    with pytest.raises(IntegrityError):
        db_sess.flush()
    db_sess.rollback()
