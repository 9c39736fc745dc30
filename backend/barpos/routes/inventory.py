# Overview: Flask API routes for the inventory catalog.

# backend/barpos/routes/inventory.py
"""
Inventory catalog routes.

- GET    /api/inventory              list items (optional ?category=)
- POST   /api/inventory              add an item
- DELETE /api/inventory/<item_id>    delete an item; 409 while it is on an open tab

stock_count null means the item is untracked (always available).
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import error_response
from ..repositories.sql import sql_repositories
from ..services import catalog_service
from ..validation import PosError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    items = catalog_service.list_items(sql_repositories(), request.args.get("category"))
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@inventory_bp.post("")
def add_inventory_route():
    payload = request.get_json(silent=True) or {}
    try:
        item = catalog_service.add_item(sql_repositories(), payload)
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add inventory item")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"item": item.to_dict()}), 201


@inventory_bp.delete("/<int:item_id>")
def delete_inventory_route(item_id: int):
    try:
        catalog_service.delete_item(sql_repositories(), item_id)
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete inventory item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"deleted": item_id}), 200
