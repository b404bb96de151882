import pytest

from storefront.client.pricing import summarize
from storefront.db.schemas import CartLine

from .conftest import BURGER_ID, COFFEE_ID, SALAD_ID

PROTECTED = [
    ("get", "cart.list", None),
    ("post", "cart.add", {"menuItemId": 1}),
    ("post", "cart.updateQuantity", {"cartItemId": 1, "quantity": 2}),
    ("post", "cart.remove", {"cartItemId": 1}),
    ("post", "cart.clear", None),
]


def cart(client, headers):
    resp = client.get("/api/trpc/cart.list", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def add(client, headers, menu_item_id, quantity=None):
    payload = {"menuItemId": menu_item_id}
    if quantity is not None:
        payload["quantity"] = quantity
    return client.post("/api/trpc/cart.add", headers=headers, json=payload)


@pytest.mark.parametrize("method,operation,payload", PROTECTED)
def test_cart_operations_need_login(client, method, operation, payload):
    kwargs = {"json": payload} if method == "post" else {}
    resp = getattr(client, method)(f"/api/trpc/{operation}", **kwargs)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


def test_invalid_token_is_treated_as_anonymous(client):
    headers = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/trpc/auth.me", headers=headers).json() is None
    assert client.get("/api/trpc/cart.list", headers=headers).status_code == 401


def test_add_defaults_to_one_and_joins_menu_item(client, login):
    headers = login()
    resp = add(client, headers, BURGER_ID)
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    lines = cart(client, headers)
    assert len(lines) == 1
    line = lines[0]
    assert line["menuItemId"] == BURGER_ID
    assert line["quantity"] == 1
    assert line["menuItem"]["name"] == "Classic Burger"
    assert line["menuItem"]["price"] == 1299
    assert {"id", "userId", "createdAt"} <= set(line)


def test_repeated_adds_sum_into_one_row(client, login):
    headers = login()
    for quantity in (2, 3, 1):
        assert add(client, headers, SALAD_ID, quantity).status_code == 200
    lines = cart(client, headers)
    assert [(line["menuItemId"], line["quantity"]) for line in lines] == [(SALAD_ID, 6)]


@pytest.mark.parametrize("quantity", [0, -3])
def test_add_rejects_quantity_below_one(client, login, quantity):
    headers = login()
    resp = add(client, headers, BURGER_ID, quantity)
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "quantity"
    assert cart(client, headers) == []


def test_dangling_menu_item_comes_back_without_menu_item(client, login):
    headers = login()
    add(client, headers, 424242)
    lines = cart(client, headers)
    assert lines[0]["menuItemId"] == 424242
    assert lines[0]["menuItem"] is None


def test_update_quantity_sets_and_zero_deletes(client, login):
    headers = login()
    add(client, headers, BURGER_ID)
    row_id = cart(client, headers)[0]["id"]

    resp = client.post("/api/trpc/cart.updateQuantity", headers=headers, json={"cartItemId": row_id, "quantity": 5})
    assert resp.json() == {"success": True}
    assert cart(client, headers)[0]["quantity"] == 5

    client.post("/api/trpc/cart.updateQuantity", headers=headers, json={"cartItemId": row_id, "quantity": 0})
    assert cart(client, headers) == []

    # idempotent on a row that is already gone
    resp = client.post("/api/trpc/cart.updateQuantity", headers=headers, json={"cartItemId": row_id, "quantity": 0})
    assert resp.status_code == 200


def test_update_quantity_rejects_negative(client, login):
    resp = client.post("/api/trpc/cart.updateQuantity", headers=login(), json={"cartItemId": 1, "quantity": -1})
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "quantity"


def test_remove(client, login):
    headers = login()
    add(client, headers, BURGER_ID)
    add(client, headers, COFFEE_ID)
    first, second = cart(client, headers)

    resp = client.post("/api/trpc/cart.remove", headers=headers, json={"cartItemId": first["id"]})
    assert resp.json() == {"success": True}
    assert [line["id"] for line in cart(client, headers)] == [second["id"]]


def test_other_users_rows_are_never_touched(client, login):
    alice = login("alice")
    bob = login("bob")
    add(client, alice, BURGER_ID, 2)
    alice_row = cart(client, alice)[0]

    for operation, payload in [
        ("cart.updateQuantity", {"cartItemId": alice_row["id"], "quantity": 9}),
        ("cart.updateQuantity", {"cartItemId": alice_row["id"], "quantity": 0}),
        ("cart.remove", {"cartItemId": alice_row["id"]}),
    ]:
        resp = client.post(f"/api/trpc/{operation}", headers=bob, json=payload)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    assert cart(client, alice) == [alice_row]
    assert cart(client, bob) == []


def test_clear_only_empties_callers_cart(client, login):
    alice = login("alice")
    bob = login("bob")
    add(client, alice, BURGER_ID)
    add(client, alice, SALAD_ID)
    add(client, bob, COFFEE_ID)

    assert client.post("/api/trpc/cart.clear", headers=alice).json() == {"success": True}
    assert client.post("/api/trpc/cart.clear", headers=alice).json() == {"success": True}

    assert cart(client, alice) == []
    assert [line["menuItemId"] for line in cart(client, bob)] == [COFFEE_ID]


def test_order_summary_from_cart(client, login):
    headers = login()
    add(client, headers, BURGER_ID, 2)
    add(client, headers, COFFEE_ID, 1)

    lines = [CartLine.model_validate(line) for line in cart(client, headers)]
    assert len(lines) == 2
    summary = summarize(lines)
    assert summary.subtotal == 1299 * 2 + 499
    assert summary.subtotal == 3097
    assert summary.tax == 310
    assert summary.total == 3407
