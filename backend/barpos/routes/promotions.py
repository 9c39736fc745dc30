# Overview: Flask API routes for happy-hour rules.

from flask import Blueprint, jsonify

from ..repositories.sql import sql_repositories
from ..services import catalog_service

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/happy-hours")


@promotions_bp.get("")
def list_happy_hours_route():
    rules = catalog_service.list_happy_hours(sql_repositories())
    return jsonify({"rules": [r.to_dict() for r in rules]}), 200
