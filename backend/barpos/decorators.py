# Overview: Request decorators and response helpers for API routes.

from functools import wraps
from flask import current_app, g, jsonify
from werkzeug.exceptions import HTTPException

from .repositories.sql import sql_repositories
from .services.terminal_service import TerminalSession, TerminalSettings

TERMINALS_EXTENSION = "barpos_terminals"

# HTTP status per PosError.kind
ERROR_STATUS = {
    "validation_error": 400,
    "insufficient_funds": 402,
    "conflict": 409,
    "stock_unavailable": 409,
    "cancelled": 499,
    "not_found": 404,
    "network_error": 503,
}


def result_response(result, success_status: int = 200):
    """Render a service Result as JSON with a status code derived from its kind."""
    if result.ok:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), ERROR_STATUS.get(result.error_kind, 400)


def error_response(exc):
    """Render a PosError raised outside a terminal session."""
    return jsonify({
        "ok": False,
        "error": exc.message,
        "error_kind": exc.kind,
        "details": exc.details,
    }), ERROR_STATUS.get(exc.kind, 400)


def _new_session() -> TerminalSession:
    return TerminalSession(
        sql_repositories(),
        TerminalSettings.from_config(current_app.config),
    )


def with_terminal(f):
    """
    Resolve the terminal session named in the URL.

    Sets g.terminal to the live TerminalSession for terminal_id, creating an
    empty one on first use. The session outlives the request; its cart is
    lost on process restart (no offline durability). Unexpected exceptions
    are logged and answered with a JSON 500.
    """
    @wraps(f)
    def decorated_function(terminal_id, *args, **kwargs):
        registry = current_app.extensions[TERMINALS_EXTENSION]
        g.terminal = registry.get_or_create(terminal_id, _new_session)
        g.terminal_id = terminal_id
        try:
            return f(*args, **kwargs)
        except HTTPException:
            raise
        except Exception:
            current_app.logger.exception("Terminal %s request failed", terminal_id)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
