# Overview: Flask API routes for open tabs.

from flask import Blueprint, jsonify

from ..repositories.sql import sql_repositories
from ..services import tab_service

tabs_bp = Blueprint("tabs", __name__, url_prefix="/api/tabs")


@tabs_bp.get("")
def list_open_tabs_route():
    """Open tabs for the tab picker; paid tabs are never listed."""
    tabs = tab_service.list_open_tabs(sql_repositories())
    return jsonify({"tabs": [t.to_dict() for t in tabs]}), 200
