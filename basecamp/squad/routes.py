"""Routes for the squad blueprint."""

import datetime
import queue

from firebase_admin.exceptions import FirebaseError
from flask import Response, current_app, g, jsonify, stream_with_context

from basecamp.auth.decorators import login_required
from basecamp.core.constants import STREAM_HEARTBEAT_SECONDS
from basecamp.core.store import get_store
from basecamp.core.utils import require_valid

from . import bp
from .forms import CreateSquadForm, CurrentActivityForm, JoinSquadForm, MessageForm
from .messages import MessageService, latest_messages
from .presence import PresenceService
from .services import SquadService


def _member_to_json(member):
    data = dict(member)
    for key in ("lastSeen", "createdAt"):
        if isinstance(data.get(key), datetime.datetime):
            data[key] = data[key].isoformat()
    return data


def _squad_to_json(squad):
    data = dict(squad)
    if isinstance(data.get("createdAt"), datetime.datetime):
        data["createdAt"] = data["createdAt"].isoformat()
    return data


@bp.route("/", methods=["GET"])
@login_required
def view_squad():
    """Return the current user's squad with its members."""
    store = get_store()
    squad = SquadService.get_squad(store, g.user.get("groupId"))
    if squad is None:
        return jsonify({"squad": None, "members": [], "online": []})

    try:
        statuses = PresenceService().fetch()
    except (ValueError, FirebaseError) as e:
        current_app.logger.warning(f"Presence unavailable: {e}")
        statuses = {}

    members = SquadService.get_members(store, squad["id"], statuses)
    return jsonify(
        {
            "squad": _squad_to_json(squad),
            "members": [_member_to_json(m) for m in members],
            "online": [m["id"] for m in SquadService.online_members(members)],
        }
    )


@bp.route("/create", methods=["POST"])
@login_required
def create_squad():
    """Create a squad and make the current user its first member."""
    data = require_valid(CreateSquadForm())
    squad = SquadService.create_squad(get_store(), g.user, data["name"])
    return jsonify({"status": "success", "squad": _squad_to_json(squad)}), 201


@bp.route("/join", methods=["POST"])
@login_required
def join_squad():
    """Join a squad by its invite code."""
    data = require_valid(JoinSquadForm())
    squad = SquadService.join_squad(get_store(), g.user, data["code"])
    return jsonify({"status": "success", "squad": _squad_to_json(squad)})


@bp.route("/leave", methods=["POST"])
@login_required
def leave_squad():
    SquadService.leave_squad(get_store(), g.user)
    return jsonify({"status": "success"})


@bp.route("/me/activity", methods=["POST"])
@login_required
def update_current_activity():
    """Set the "currently doing" line shown next to the user's name."""
    data = require_valid(CurrentActivityForm())
    text = SquadService.update_current_activity(get_store(), g.user, data["text"])
    return jsonify({"status": "success", "currentActivity": text})


def _message_to_json(message):
    data = dict(message)
    if isinstance(data.get("createdAt"), datetime.datetime):
        data["createdAt"] = data["createdAt"].isoformat()
    return data


@bp.route("/messages", methods=["GET"])
@login_required
def list_messages():
    """The squad chat, oldest message first."""
    messages = MessageService.list_messages(get_store(), g.user)
    return jsonify({"messages": [_message_to_json(m) for m in messages]})


@bp.route("/messages", methods=["POST"])
@login_required
def send_message():
    data = require_valid(MessageForm())
    message = MessageService.send(get_store(), g.user, data["text"])
    return jsonify({"status": "success", "message": _message_to_json(message)}), 201


@bp.route("/messages/stream", methods=["GET"])
@login_required
def stream_messages():
    """Server-sent events: the whole chat again whenever it changes."""
    viewer_id = g.user["id"]
    feed = MessageService.live_feed(get_store(), g.user)
    changes = queue.Queue()
    feed.subscribe(changes.put)
    feed.start()
    current_app.logger.debug(f"Chat stream opened for {viewer_id}")

    @stream_with_context
    def generate():
        try:
            while True:
                try:
                    messages = changes.get(timeout=STREAM_HEARTBEAT_SECONDS)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                while not changes.empty():
                    messages = changes.get_nowait()
                recent = [_message_to_json(m) for m in latest_messages(messages)]
                payload = current_app.json.dumps({"messages": recent})
                yield f"data: {payload}\n\n"
        finally:
            feed.stop()
            current_app.logger.debug(f"Chat stream closed for {viewer_id}")

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
