"""
HTTP route tests.

Verifies:
- terminal routes wrap session Results with the mapped status codes
- a full order (add, save tab, reload, pay cash) through the API
- catalog delete is refused while the item sits on an open tab
"""

import pytest

from barpos.services.terminal_service import TerminalSession


TERMINAL = "/api/terminals/bar-1"


def _add(client, item_id, terminal=TERMINAL):
    return client.post(f"{terminal}/cart/items", json={"item_id": item_id})


# =============================================================================
# CATALOG
# =============================================================================


class TestInventoryRoutes:

    def test_list(self, client, seed):
        resp = client.get("/api/inventory")
        assert resp.status_code == 200
        names = [i["name"] for i in resp.get_json()["items"]]
        assert names == ["Bud Light", "White Claw", "Well Vodka"]

    def test_add_validates(self, client, seed):
        resp = client.post("/api/inventory", json={"name": "Guinness", "category": "beer"})
        assert resp.status_code == 400
        assert resp.get_json()["error_kind"] == "validation_error"

        resp = client.post(
            "/api/inventory",
            json={"name": "Guinness", "price": "6.50", "category": "beer", "stock_count": 24},
        )
        assert resp.status_code == 201
        assert resp.get_json()["item"]["price"] == "6.50"

    def test_delete_refused_while_on_open_tab(self, client, seed):
        _add(client, seed["bud"])
        client.post(f"{TERMINAL}/tab/save", json={"customer_name": "Dana"})

        resp = client.delete(f"/api/inventory/{seed['bud']}")
        assert resp.status_code == 409
        assert resp.get_json()["error_kind"] == "conflict"

        resp = client.delete(f"/api/inventory/{seed['vodka']}")
        assert resp.status_code == 200

    def test_delete_unknown(self, client, seed):
        assert client.delete("/api/inventory/9999").status_code == 404

    def test_happy_hours(self, client, seed):
        resp = client.get("/api/happy-hours")
        assert resp.status_code == 200
        assert resp.get_json()["rules"][0]["name"] == "Never"


# =============================================================================
# TERMINAL
# =============================================================================


class TestTerminalRoutes:

    def test_add_item_and_snapshot(self, client, seed):
        resp = _add(client, seed["bud"])
        assert resp.status_code == 201
        assert resp.get_json()["value"]["quantity"] == 1

        snapshot = client.get(TERMINAL).get_json()
        assert snapshot["cart"]["subtotal"] == "4.00"
        assert snapshot["totals"]["tax"] == "0.28"
        assert snapshot["busy"] is False

    def test_terminals_have_separate_carts(self, client, seed):
        _add(client, seed["bud"])
        assert client.get("/api/terminals/bar-2").get_json()["cart"]["lines"] == []

    def test_missing_item_id(self, client, seed):
        assert client.post(f"{TERMINAL}/cart/items", json={}).status_code == 400

    def test_unknown_item(self, client, seed):
        resp = _add(client, 9999)
        assert resp.status_code == 404

    def test_sold_out(self, client, seed):
        assert _add(client, seed["claw"]).status_code == 201
        resp = _add(client, seed["claw"])
        assert resp.status_code == 409
        assert resp.get_json()["error_kind"] == "stock_unavailable"

    def test_menu(self, client, seed):
        _add(client, seed["claw"])
        menu = {m["name"]: m for m in client.get(f"{TERMINAL}/menu").get_json()["value"]}
        assert menu["White Claw"]["sold_out"] is True
        assert menu["Bud Light"]["is_happy_hour"] is False

    def test_unexpected_error_is_json_500(self, client, seed, monkeypatch):
        def boom(self, item_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(TerminalSession, "add_item", boom)
        resp = _add(client, seed["bud"])
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

    def test_custom_item_and_note(self, client, seed):
        resp = client.post(f"{TERMINAL}/cart/custom-items", json={"name": "Snacks", "price": "2.50"})
        assert resp.status_code == 201
        unique_id = resp.get_json()["value"]["unique_id"]

        resp = client.put(f"{TERMINAL}/cart/lines/{unique_id}/note", json={"note": "warm"})
        assert resp.get_json()["value"]["note"] == "warm"

        resp = client.post(f"{TERMINAL}/cart/lines/{unique_id}/decrement")
        assert resp.status_code == 200
        assert client.get(TERMINAL).get_json()["cart"]["lines"] == []


class TestOrderFlow:

    def test_tab_then_cash_payment(self, client, seed):
        for _ in range(5):
            _add(client, seed["bud"])
        resp = client.post(f"{TERMINAL}/tab/save", json={"customer_name": "Dana"})
        assert resp.status_code == 200
        tab_id = resp.get_json()["value"]["id"]

        assert client.get("/api/tabs").get_json()["tabs"][0]["id"] == tab_id

        client.post(f"{TERMINAL}/cart/reset")
        resp = client.post(f"{TERMINAL}/tab/load", json={"tab_id": tab_id})
        assert resp.get_json()["value"]["lines"][0]["quantity"] == 5

        client.put(f"{TERMINAL}/cart/discount", json={"type": "percent", "value": "25"})
        resp = client.post(f"{TERMINAL}/payment", json={"tip": "0"})
        assert resp.get_json()["value"]["grand_total"] == "16.05"

        client.post(f"{TERMINAL}/payment/method", json={"method": "cash"})
        resp = client.post(f"{TERMINAL}/payment/tender", json={"amount": "10.00"})
        assert resp.status_code == 402
        assert resp.get_json()["error_kind"] == "insufficient_funds"

        resp = client.post(f"{TERMINAL}/payment/tender", json={"amount": "20.00"})
        assert resp.get_json()["value"]["change"] == "3.95"

        resp = client.post(f"{TERMINAL}/payment/complete", json={"employee_name": "Mike"})
        assert resp.status_code == 201
        sale = resp.get_json()["value"]
        assert sale["total"] == "16.05"
        assert sale["tab_id"] == tab_id

        assert client.get("/api/tabs").get_json()["tabs"] == []
        sales = client.get("/api/sales").get_json()["sales"]
        assert len(sales) == 1
        assert sales[0]["payment_method"] == "cash"

    def test_card_payment(self, client, seed):
        _add(client, seed["vodka"])
        client.post(f"{TERMINAL}/payment", json={"tip": "1.00"})
        client.post(f"{TERMINAL}/payment/method", json={"method": "card"})
        resp = client.post(f"{TERMINAL}/payment/card")
        assert resp.get_json()["value"]["state"] == "confirmed"
        assert client.post(f"{TERMINAL}/payment/complete", json={}).status_code == 201

    def test_paid_tab_cannot_be_reloaded(self, client, seed):
        _add(client, seed["vodka"])
        tab_id = client.post(f"{TERMINAL}/tab/save", json={"customer_name": "Dana"}).get_json()["value"]["id"]
        client.post(f"{TERMINAL}/payment", json={})
        client.post(f"{TERMINAL}/payment/method", json={"method": "card"})
        client.post(f"{TERMINAL}/payment/card")
        assert client.post(f"{TERMINAL}/payment/complete", json={}).status_code == 201

        resp = client.post(f"{TERMINAL}/tab/load", json={"tab_id": tab_id})
        assert resp.status_code == 409
        assert resp.get_json()["error_kind"] == "conflict"

    def test_manager_void(self, client, seed):
        _add(client, seed["bud"])
        _add(client, seed["bud"])
        client.post(f"{TERMINAL}/tab/save", json={"customer_name": "Dana"})
        unique_id = client.get(TERMINAL).get_json()["cart"]["lines"][0]["unique_id"]

        resp = client.post(f"{TERMINAL}/cart/lines/{unique_id}/void", json={"employee_name": "Mike"})
        assert resp.get_json()["value"]["state"] == "reason_select"

        resp = client.post(f"{TERMINAL}/void/reason", json={"reason": "manager_void"})
        assert resp.get_json()["value"]["state"] == "pin_entry"

        resp = client.post(f"{TERMINAL}/void/pin", json={"pin": "3333"})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "Invalid Manager PIN"

        resp = client.post(f"{TERMINAL}/void/pin", json={"pin": "abcd"})
        assert resp.status_code == 400

        resp = client.post(f"{TERMINAL}/void/pin", json={"pin": "1111"})
        assert resp.status_code == 200
        assert resp.get_json()["value"]["authorized_by"] == "Jan"

        assert client.get(TERMINAL).get_json()["cart"]["lines"][0]["quantity"] == 1
        sales = client.get("/api/sales").get_json()["sales"]
        assert [s["payment_method"] for s in sales] == ["manager_void"]
        assert sales[0]["total"] == "0.00"


class TestSalesAndSystemRoutes:

    def test_clear_sales_requires_confirmation(self, client, seed):
        _add(client, seed["bud"])
        client.post(f"{TERMINAL}/payment", json={})
        client.post(f"{TERMINAL}/payment/method", json={"method": "card"})
        client.post(f"{TERMINAL}/payment/card")
        client.post(f"{TERMINAL}/payment/complete", json={})

        assert client.delete("/api/sales", json={}).status_code == 400
        resp = client.delete("/api/sales", json={"confirm": True})
        assert resp.get_json()["deleted"] == 1
        assert client.get("/api/sales").get_json()["sales"] == []

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"


@pytest.mark.parametrize("path", ["/void/back", "/void/cancel", "/payment/back", "/payment/cancel"])
def test_idle_workflow_routes(client, seed, path):
    resp = client.post(f"{TERMINAL}{path}")
    if path.endswith("cancel"):
        assert resp.status_code == 200
    else:
        assert resp.status_code == 409
