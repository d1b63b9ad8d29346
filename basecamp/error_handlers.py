from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import AppError, StoreError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(message, status_code):
    return jsonify({"status": "error", "message": message}), status_code


@error_handlers_bp.app_errorhandler(StoreError)
def handle_store_error(error):
    """Handles failed writes to the backing store."""
    current_app.logger.error(f"Store Error: {error.message}")
    return _error_response(error.message, error.status_code)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles refused user actions (validation, permissions, conflicts)."""
    current_app.logger.warning(f"{type(error).__name__}: {error.message}")
    return _error_response(error.message, error.status_code)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return _error_response("Not found.", 404)


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return _error_response("Method not allowed.", 405)


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return _error_response("An unexpected error occurred.", 500)


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors, usually an expired session or a stale form."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return _error_response(
        "Your session may have expired. Please try your action again.", 400
    )
