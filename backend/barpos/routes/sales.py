# Overview: Flask API routes for the sales ledger.

# backend/barpos/routes/sales.py
"""
Sales ledger routes.

Sales are written only by the terminal payment and void flows. This
blueprint reads them and supports the admin "clear sales history" action.
Void audit entries appear here as $0 sales whose payment_method is the
void reason.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import error_response
from ..repositories.sql import sql_repositories
from ..services import sale_service
from ..validation import PosError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    sales = sale_service.list_sales(sql_repositories())
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.delete("")
def clear_sales_route():
    # Destructive: require an explicit confirmation flag
    payload = request.get_json(silent=True) or {}
    if payload.get("confirm") is not True:
        return jsonify({"error": "confirm must be true"}), 400
    try:
        count = sale_service.clear_sales(sql_repositories())
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear sales")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"deleted": count}), 200
