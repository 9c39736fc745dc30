# Overview: Flask API routes for a terminal's order: cart, tabs, voids and payment.

# backend/barpos/routes/terminals.py
"""
Terminal API routes.

Every route operates on the live session of /api/terminals/<terminal_id>.
Service results are returned as {"ok": true, "value": ...} or
{"ok": false, "error": ..., "error_kind": ...}.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import result_response, with_terminal

terminals_bp = Blueprint("terminals", __name__, url_prefix="/api/terminals/<terminal_id>")


@terminals_bp.get("")
@with_terminal
def get_terminal_route():
    return jsonify(g.terminal.snapshot()), 200


@terminals_bp.get("/menu")
@with_terminal
def menu_route():
    category = request.args.get("category")
    return result_response(g.terminal.menu(category))


# =============================================================================
# CART
# =============================================================================

@terminals_bp.post("/cart/items")
@with_terminal
def add_item_route():
    data = request.get_json() or {}
    item_id = data.get("item_id")
    if item_id is None:
        return jsonify({"error": "item_id required"}), 400
    return result_response(g.terminal.add_item(item_id), 201)


@terminals_bp.post("/cart/custom-items")
@with_terminal
def add_custom_item_route():
    data = request.get_json() or {}
    return result_response(g.terminal.add_custom_item(data.get("name"), data.get("price")), 201)


@terminals_bp.put("/cart/lines/<unique_id>/note")
@with_terminal
def attach_note_route(unique_id: str):
    data = request.get_json() or {}
    return result_response(g.terminal.attach_note(unique_id, data.get("note")))


@terminals_bp.post("/cart/lines/<unique_id>/decrement")
@with_terminal
def decrement_route(unique_id: str):
    return result_response(g.terminal.decrement(unique_id))


@terminals_bp.put("/cart/discount")
@with_terminal
def set_discount_route():
    data = request.get_json() or {}
    if "type" not in data or "value" not in data:
        return jsonify({"error": "type and value required"}), 400
    return result_response(g.terminal.set_discount(data["type"], data["value"]))


@terminals_bp.delete("/cart/discount")
@with_terminal
def clear_discount_route():
    return result_response(g.terminal.clear_discount())


@terminals_bp.get("/cart/totals")
@with_terminal
def totals_route():
    return result_response(g.terminal.totals(request.args.get("tip", "0")))


@terminals_bp.post("/cart/reset")
@with_terminal
def new_order_route():
    return result_response(g.terminal.new_order())


# =============================================================================
# TABS
# =============================================================================

@terminals_bp.post("/tab/save")
@with_terminal
def save_tab_route():
    data = request.get_json() or {}
    result = g.terminal.save_tab(data.get("customer_name"))
    if not result.ok and result.error_kind == "network_error":
        current_app.logger.error("Failed to save tab on terminal %s: %s", g.terminal_id, result.message)
    return result_response(result)


@terminals_bp.post("/tab/load")
@with_terminal
def load_tab_route():
    data = request.get_json() or {}
    tab_id = data.get("tab_id")
    if tab_id is None:
        return jsonify({"error": "tab_id required"}), 400
    return result_response(g.terminal.load_tab(tab_id))


# =============================================================================
# VOIDS
# =============================================================================

@terminals_bp.post("/cart/lines/<unique_id>/void")
@with_terminal
def begin_void_route(unique_id: str):
    data = request.get_json() or {}
    return result_response(g.terminal.begin_void(unique_id, data.get("employee_name")))


@terminals_bp.post("/void/reason")
@with_terminal
def void_reason_route():
    data = request.get_json() or {}
    if not data.get("reason"):
        return jsonify({"error": "reason required"}), 400
    return result_response(g.terminal.select_void_reason(data["reason"]))


@terminals_bp.post("/void/pin")
@with_terminal
def void_pin_route():
    data = request.get_json() or {}
    return result_response(g.terminal.submit_void_pin(data.get("pin")))


@terminals_bp.post("/void/back")
@with_terminal
def void_back_route():
    return result_response(g.terminal.void_back())


@terminals_bp.post("/void/cancel")
@with_terminal
def void_cancel_route():
    return result_response(g.terminal.cancel_void())


# =============================================================================
# PAYMENT
# =============================================================================

@terminals_bp.post("/payment")
@with_terminal
def begin_payment_route():
    data = request.get_json() or {}
    return result_response(g.terminal.begin_payment(data.get("tip", "0")))


@terminals_bp.post("/payment/method")
@with_terminal
def payment_method_route():
    data = request.get_json() or {}
    if not data.get("method"):
        return jsonify({"error": "method required"}), 400
    return result_response(g.terminal.select_payment_method(data["method"]))


@terminals_bp.post("/payment/tender")
@with_terminal
def tender_route():
    data = request.get_json() or {}
    return result_response(g.terminal.tender_cash(data.get("amount")))


@terminals_bp.post("/payment/card")
@with_terminal
def card_route():
    return result_response(g.terminal.authorize_card())


@terminals_bp.post("/payment/back")
@with_terminal
def payment_back_route():
    return result_response(g.terminal.payment_back())


@terminals_bp.post("/payment/cancel")
@with_terminal
def payment_cancel_route():
    return result_response(g.terminal.cancel_payment())


@terminals_bp.post("/payment/complete")
@with_terminal
def complete_payment_route():
    data = request.get_json() or {}
    result = g.terminal.complete_payment(data.get("employee_name"))
    if not result.ok and result.error_kind == "network_error":
        current_app.logger.error("Failed to finalize sale on terminal %s: %s", g.terminal_id, result.message)
    return result_response(result, 201)
