"""Helpers shared by the blueprints."""

from __future__ import annotations

from typing import Any

from flask import request

from flask_wtf import FlaskForm

from basecamp.errors import ValidationError


def require_valid(form: FlaskForm) -> dict[str, Any]:
    """Validate a submitted form and return its data.

    Raises:
        ValidationError: carrying the first field error.
    """
    if form.validate_on_submit():
        return form.data
    for field, errors in form.errors.items():
        if errors:
            label = getattr(form, field).label.text if hasattr(form, field) else field
            raise ValidationError(f"{label}: {errors[0]}")
    raise ValidationError()


def json_body() -> dict[str, Any]:
    """The request's JSON object, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
