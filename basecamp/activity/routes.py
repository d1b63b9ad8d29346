"""Routes for the activity blueprint."""

import datetime

from flask import current_app, g, jsonify, request

from basecamp.auth.decorators import login_required
from basecamp.core.store import get_store

from . import bp
from .services import ActivityService


def _entry_to_json(entry):
    data = dict(entry)
    timestamp = data.get("timestamp")
    if isinstance(timestamp, datetime.datetime):
        data["timestamp"] = timestamp.isoformat()
    return data


@bp.route("/", methods=["GET"])
@login_required
def recent_activity():
    """Return the squad's most recent activity, newest first."""
    limit = request.args.get(
        "limit", default=current_app.config["ACTIVITY_FEED_LIMIT"], type=int
    )
    entries = ActivityService.get_recent_activity(
        get_store(), g.user.get("groupId"), max(limit, 0)
    )
    return jsonify({"activities": [_entry_to_json(entry) for entry in entries]})
