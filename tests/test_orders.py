import pytest
from sqlalchemy.orm import sessionmaker

from paratha import db, errors, models


def _items(shop):
    first, second = shop["products"]
    return [{"product_id": first["id"], "quantity": 2}, {"product_id": second["id"], "quantity": 1}]


@pytest.fixture
def delivery(api):
    signup = api.signup("delivery")
    return {"headers": {"Authorization": f"Bearer {signup['token']}"}, "user_id": signup["user"]["id"]}


@pytest.fixture
def admin(api):
    return api.headers("admin")


def test_place_order_and_history(client, api, shop):
    r = api.place_order(shop["customer"], shop["business_id"], _items(shop), total_price=25.50)
    assert r.status_code == 201
    order = r.json()
    assert order["status"] == "pending"
    assert order["total_price"] == 25.50
    assert order["delivery_partner_id"] is None
    assert [i["quantity"] for i in order["items"]] == [2, 1]
    assert order["items"][0]["product_name"] == "Al Pastor Taco"
    assert order["items"][0]["unit_price"] == 4.25

    # later catalog edits do not touch the placed order
    first = shop["products"][0]
    client.put(f"/products/{first['id']}", json={"price": 99.0, "name": "Renamed"}, headers=shop["business"])

    history = client.get("/orders/history", headers=shop["customer"]).json()
    assert len(history) == 1
    assert history[0]["order_id"] == order["order_id"]
    assert history[0]["status"] == "pending"
    assert history[0]["total_price"] == 25.50
    assert history[0]["items"][0]["unit_price"] == 4.25
    assert history[0]["items"][0]["product_name"] == "Al Pastor Taco"


def test_order_validation(client, api, shop):
    other_business = api.headers("business")
    foreign = api.add_product(other_business, name="Sushi")

    r = api.place_order(shop["customer"], shop["business_id"], [{"product_id": foreign["id"], "quantity": 1}])
    assert r.status_code == 400

    r = api.place_order(shop["customer"], shop["business_id"], [])
    assert r.status_code == 400

    r = api.place_order(shop["customer"], shop["business_id"], [{"product_id": foreign["id"], "quantity": 0}])
    assert r.status_code == 400

    r = api.place_order(shop["customer"], 9999, _items(shop))
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_order_with_foreign_address_is_rejected(client, api, shop):
    stranger = api.headers("customer")
    address = client.post(
        "/addresses",
        json={"street": "1 Main", "city": "Austin", "state": "TX", "zip": "78701", "latitude": 30.2, "longitude": -97.7},
        headers=stranger,
    ).json()
    r = api.place_order(shop["customer"], shop["business_id"], _items(shop), delivery_address_id=address["id"])
    assert r.status_code == 400


def test_only_customers_place_orders(api, shop):
    r = api.place_order(shop["business"], shop["business_id"], _items(shop))
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "FORBIDDEN"


def test_track_other_customers_order_is_not_found(client, api, shop):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    other = api.headers("customer")
    assert client.get(f"/orders/{order['order_id']}/track", headers=shop["customer"]).status_code == 200
    r = client.get(f"/orders/{order['order_id']}/track", headers=other)
    assert r.status_code == 404
    assert client.get("/orders/424242/track", headers=other).status_code == 404


def test_customer_cancels_only_pending_orders(client, api, shop, delivery, admin):
    first = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    r = client.post(f"/orders/{first['order_id']}/cancel", headers=shop["customer"])
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    second = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    partner_id = api.partner_id(admin, delivery["user_id"])
    client.post("/admin/orders/assign", json={"order_id": second["order_id"], "delivery_partner_id": partner_id}, headers=admin)
    r = client.post(f"/orders/{second['order_id']}/cancel", headers=shop["customer"])
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "CONFLICT"


def test_forced_assignment_from_pending(client, api, shop, delivery, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    partner_id = api.partner_id(admin, delivery["user_id"])

    r = client.post(
        "/admin/orders/assign",
        json={"order_id": order["order_id"], "delivery_partner_id": partner_id},
        headers=admin,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "out_for_delivery"
    assert r.json()["delivery_partner_id"] == partner_id

    assigned = client.get("/delivery/assigned-orders", headers=delivery["headers"]).json()
    assert [o["order_id"] for o in assigned] == [order["order_id"]]


def test_assign_unknown_partner_or_order(client, api, shop, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    r = client.post("/admin/orders/assign", json={"order_id": order["order_id"], "delivery_partner_id": 999}, headers=admin)
    assert r.status_code == 404
    r = client.post("/admin/orders/assign", json={"order_id": 999, "delivery_partner_id": 1}, headers=admin)
    assert r.status_code == 404


def test_only_admin_assigns(client, api, shop, delivery):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    r = client.post(
        "/admin/orders/assign",
        json={"order_id": order["order_id"], "delivery_partner_id": 1},
        headers=delivery["headers"],
    )
    assert r.status_code == 403


def test_partner_delivers_and_terminal_state_sticks(client, api, shop, delivery, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    partner_id = api.partner_id(admin, delivery["user_id"])
    client.post("/admin/orders/assign", json={"order_id": order["order_id"], "delivery_partner_id": partner_id}, headers=admin)

    url = f"/delivery/orders/{order['order_id']}/status"
    r = client.put(url, json={"status": "delivered"}, headers=delivery["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"

    for status in ("out_for_delivery", "cancelled", "pending"):
        r = client.put(url, json={"status": status}, headers=delivery["headers"])
        assert r.status_code == 409

    r = client.post("/admin/orders/assign", json={"order_id": order["order_id"], "delivery_partner_id": partner_id}, headers=admin)
    assert r.status_code == 409

    assert client.get("/delivery/assigned-orders", headers=delivery["headers"]).json() == []
    history = client.get("/delivery/history", headers=delivery["headers"]).json()
    assert [o["order_id"] for o in history] == [order["order_id"]]


def test_unassigned_partner_is_forbidden(client, api, shop, delivery, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    partner_id = api.partner_id(admin, delivery["user_id"])
    client.post("/admin/orders/assign", json={"order_id": order["order_id"], "delivery_partner_id": partner_id}, headers=admin)

    intruder = api.headers("delivery")
    r = client.put(f"/delivery/orders/{order['order_id']}/status", json={"status": "delivered"}, headers=intruder)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "FORBIDDEN"

    tracked = client.get(f"/orders/{order['order_id']}/track", headers=shop["customer"]).json()
    assert tracked["status"] == "out_for_delivery"


def test_unknown_status_value_is_rejected(client, api, shop, delivery, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    r = client.put(f"/delivery/orders/{order['order_id']}/status", json={"status": "teleported"}, headers=delivery["headers"])
    assert r.status_code == 400


def test_admin_walks_the_regular_lifecycle(client, api, shop, admin):
    order = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    url = f"/admin/orders/{order['order_id']}/status"
    for status in ("confirmed", "preparing"):
        r = client.put(url, json={"status": status}, headers=admin)
        assert r.status_code == 200
        assert r.json()["status"] == status
    r = client.put(url, json={"status": "delivered"}, headers=admin)
    assert r.status_code == 409


def test_business_active_and_history(client, api, shop, delivery, admin):
    live = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    done = api.place_order(shop["customer"], shop["business_id"], _items(shop)).json()
    client.post(f"/orders/{done['order_id']}/cancel", headers=shop["customer"])

    active = client.get("/business/orders", headers=shop["business"]).json()
    history = client.get("/business/orders/history", headers=shop["business"]).json()
    assert [o["order_id"] for o in active] == [live["order_id"]]
    assert [o["order_id"] for o in history] == [done["order_id"]]
    assert active[0]["customer"]["id"] == live["customer_id"]

    other = api.headers("business")
    assert client.get("/business/orders", headers=other).json() == []
    assert client.get("/business/orders", headers=shop["customer"]).status_code == 403


def test_concurrent_order_update_is_a_conflict(tmp_path):
    engine = db.make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    db.init_db(engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    with Session() as s:
        user = models.User(name="C", email="c@paratha.io", password_hash="x", role=models.Role.customer)
        owner = models.User(name="B", email="b@paratha.io", password_hash="x", role=models.Role.business)
        s.add_all([user, owner])
        s.flush()
        business = models.Business(user_id=owner.id, name="Shop")
        s.add(business)
        s.flush()
        order = models.Order(customer_id=user.id, business_id=business.id, total_price=10.0)
        s.add(order)
        s.commit()
        order_id = order.order_id

    first, second = Session(), Session()
    try:
        a = first.get(models.Order, order_id)
        b = second.get(models.Order, order_id)
        a.status = models.OrderStatus.confirmed
        db.commit(first)

        b.status = models.OrderStatus.cancelled
        with pytest.raises(errors.Conflict):
            db.commit(second)
    finally:
        first.close()
        second.close()
        engine.dispose()

    with Session() as s:
        assert s.get(models.Order, order_id).status == models.OrderStatus.confirmed
