"""The squad blueprint."""

from flask import Blueprint

bp = Blueprint("squad", __name__, url_prefix="/squad")

from . import routes  # noqa: E402

__all__ = ["routes"]
