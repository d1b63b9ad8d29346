"""Routes for the events blueprint."""

import datetime
import queue

from flask import (
    Response,
    current_app,
    g,
    jsonify,
    request,
    session,
    stream_with_context,
)

from basecamp.auth.decorators import login_required
from basecamp.core.constants import STREAM_HEARTBEAT_SECONDS
from basecamp.core.store import get_store
from basecamp.core.utils import json_body, require_valid
from basecamp.errors import StoreError, ValidationError
from basecamp.squad.services import SquadService

from . import bp
from .forms import CommentForm, EventForm, EventPatchForm
from .models import event_to_json
from .participation import ParticipationAction
from .projector import ViewMode
from .services import (
    CommentService,
    EventService,
    ParticipationService,
    filter_events,
    owned_events_summary,
    upcoming_events,
)
from .viewmodel import (
    MODAL_EDIT,
    MODAL_VIEW,
    SESSION_KEY,
    CalendarViewModel,
    ViewState,
    build_payload,
    live_views,
    projector_from_config,
    resolve_people,
)

TRUE_VALUES = ("1", "true", "yes", "on")


def _projector():
    return projector_from_config(current_app.config)


def _view_state():
    return ViewState.from_session(session.get(SESSION_KEY), _projector().today())


def _save_view_state(state):
    session[SESSION_KEY] = state.to_session()


def _request_data():
    """Submitted values, from a JSON body or a form post."""
    return json_body() or request.form.to_dict()


def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in TRUE_VALUES


def _parse_date(value, name="date"):
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date.") from e


def _owned_to_json(events):
    return [
        {
            "event": event_to_json(item["event"]),
            "pendingCount": item["pendingCount"],
        }
        for item in owned_events_summary(events, g.user["id"])
    ]


def _comment_to_json(comment):
    data = dict(comment)
    if isinstance(data.get("createdAt"), datetime.datetime):
        data["createdAt"] = data["createdAt"].isoformat()
    return data


def _transition_to_json(transition):
    return {
        "action": transition.action.value,
        "userId": transition.subject_id,
        "changed": transition.changed,
        "status": transition.status.value,
        **transition.after.as_fields(),
    }


def _screen(state):
    """The calendar screen for ``state`` from one-shot reads."""
    store = get_store()
    group_id = g.user.get("groupId")
    return build_payload(
        state,
        EventService.get_group_events(store, group_id),
        SquadService.get_members(store, group_id),
        g.user["id"],
        _projector(),
    )


@bp.route("/", methods=["GET"])
@login_required
def list_events():
    """List the squad's events; ``?mine=1`` keeps only the user's own."""
    events = EventService.get_group_events(get_store(), g.user.get("groupId"))
    mine = _flag(request.args.get("mine", ""))
    visible = filter_events(events, g.user["id"], mine)
    return jsonify(
        {
            "events": [event_to_json(e) for e in visible],
            "upcoming": [event_to_json(e) for e in upcoming_events(visible)],
            "owned": _owned_to_json(events),
        }
    )


@bp.route("/", methods=["POST"])
@login_required
def create_event():
    form = EventForm()
    require_valid(form)
    fields = {k: v for k, v in form.submitted_fields().items() if v is not None}
    event = EventService.create_event(
        get_store(),
        g.user,
        fields,
        max_cover_bytes=current_app.config["MAX_COVER_PHOTO_BYTES"],
    )
    current_app.logger.info(f"Event {event['id']} created by {g.user['id']}")
    return jsonify({"status": "success", "event": event_to_json(event)}), 201


@bp.route("/delete", methods=["POST"])
@login_required
def delete_events():
    """Delete several events at once. Ids the user does not own are skipped."""
    raw_ids = json_body().get("ids") or request.form.getlist("ids")
    if isinstance(raw_ids, str):
        raw_ids = [raw_ids]
    ids = [i.strip() for raw in raw_ids for i in str(raw).split(",") if i.strip()]
    if not ids:
        raise ValidationError("No events selected.")
    deleted, refused = EventService.delete_events(get_store(), g.user, ids)
    current_app.logger.info(
        f"Bulk delete by {g.user['id']}: "
        f"{len(deleted)} deleted, {len(refused)} refused"
    )
    return jsonify({"status": "success", "deleted": deleted, "refused": refused})


@bp.route("/view", methods=["GET"])
@login_required
def calendar_view():
    """Render-ready grid for the view state kept in the session."""
    return jsonify(_screen(_view_state()))


@bp.route("/view", methods=["POST"])
@login_required
def update_view():
    """Change the selected date, view mode or "my events" filter.

    ``drill`` selects a day picked from a month or year cell and switches to
    the day view listing all of its events.
    """
    data = _request_data()
    state = _view_state()
    if data.get("date"):
        state = state.select_date(_parse_date(data["date"]))
    if data.get("mode"):
        try:
            state = state.with_mode(data["mode"])
        except ValueError as e:
            modes = ", ".join(m.value for m in ViewMode)
            raise ValidationError(f"mode must be one of: {modes}.") from e
    if "mine" in data:
        state = state.with_filter(_flag(data["mine"]))
    if data.get("drill"):
        state = state.drill_into(_parse_date(data["drill"], "drill"))
    _save_view_state(state)
    return jsonify(_screen(state))


@bp.route("/modal/new", methods=["POST"])
@login_required
def open_new_event():
    state = _view_state().open_event(None, g.user["id"])
    _save_view_state(state)
    return jsonify({"state": state.to_session()})


@bp.route("/modal/edit", methods=["POST"])
@login_required
def switch_modal_to_edit():
    """Switch the open modal from read-only to edit mode (owner only)."""
    state = _view_state()
    if not state.open_event_id:
        raise ValidationError("No event is open.")
    event = EventService.get_visible_event(get_store(), g.user, state.open_event_id)
    state = state.switch_to_edit(event, g.user["id"])
    _save_view_state(state)
    return jsonify({"state": state.to_session()})


@bp.route("/modal/close", methods=["POST"])
@login_required
def close_modal():
    state = _view_state().close_modal()
    _save_view_state(state)
    return jsonify({"state": state.to_session()})


@bp.route("/stream", methods=["GET"])
@login_required
def stream():
    """Server-sent events: one calendar screen per change of the squad's data.

    A comment line goes out every STREAM_HEARTBEAT_SECONDS while nothing
    changes. A disconnect is only noticed on a write, so the heartbeat
    bounds how long the subscriptions outlive the client.
    """
    state = _view_state()
    viewer = dict(g.user)
    view = CalendarViewModel(get_store(), viewer, _projector())
    changes = queue.Queue()
    view.subscribe(lambda: changes.put(True))
    view.start()
    live_views.add(viewer["id"], view)
    current_app.logger.debug(f"Calendar stream opened for {viewer['id']}")

    @stream_with_context
    def generate():
        try:
            while True:
                try:
                    changes.get(timeout=STREAM_HEARTBEAT_SECONDS)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                while not changes.empty():
                    changes.get_nowait()
                if not view.loaded:
                    continue
                payload = current_app.json.dumps(view.payload(state))
                yield f"data: {payload}\n\n"
        finally:
            live_views.discard(viewer["id"], view)
            view.close()
            current_app.logger.debug(f"Calendar stream closed for {viewer['id']}")

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@bp.route("/<string:event_id>", methods=["GET"])
@login_required
def view_event(event_id):
    """One event with its participants and join requests resolved to users."""
    store = get_store()
    event = EventService.get_visible_event(store, g.user, event_id)
    members = SquadService.get_members(store, g.user.get("groupId"))
    return jsonify(
        {
            "event": event_to_json(event),
            "participants": resolve_people(event.get("participants", []), members),
            "pending": resolve_people(event.get("pendingParticipants", []), members),
            "isOwner": event.get("createdBy") == g.user["id"],
        }
    )


@bp.route("/<string:event_id>", methods=["POST"])
@login_required
def update_event(event_id):
    """Merge the submitted fields into the event (owner only)."""
    form = EventPatchForm()
    require_valid(form)
    patch = form.submitted_fields(set(_request_data().keys()))
    event = EventService.update_event(
        get_store(),
        g.user,
        event_id,
        patch,
        max_cover_bytes=current_app.config["MAX_COVER_PHOTO_BYTES"],
    )
    return jsonify({"status": "success", "event": event_to_json(event)})


@bp.route("/<string:event_id>/delete", methods=["POST"])
@login_required
def delete_event(event_id):
    EventService.delete_event(get_store(), g.user, event_id)
    state = _view_state()
    if state.open_event_id == event_id:
        _save_view_state(state.close_modal())
    current_app.logger.info(f"Event {event_id} deleted by {g.user['id']}")
    return jsonify({"status": "success"})


def _participate(event_id, action, subject_id=None):
    """Apply a participation action, via the user's live view when one is open."""
    view = live_views.get(g.user["id"])
    if view is not None and view.loaded:
        result = view.perform(g.user, event_id, action, subject_id)
        if not result.ok:
            raise StoreError(result.error)
        transition = result.transition
    else:
        transition = ParticipationService.perform(
            get_store(), g.user, event_id, action, subject_id
        )
    return jsonify({"status": "success", **_transition_to_json(transition)})


@bp.route("/<string:event_id>/join", methods=["POST"])
@login_required
def request_join(event_id):
    """Ask the owner to be let into the event."""
    return _participate(event_id, ParticipationAction.REQUEST_JOIN)


@bp.route("/<string:event_id>/cancel", methods=["POST"])
@login_required
def cancel_request(event_id):
    return _participate(event_id, ParticipationAction.CANCEL_REQUEST)


@bp.route("/<string:event_id>/leave", methods=["POST"])
@login_required
def leave_event(event_id):
    return _participate(event_id, ParticipationAction.LEAVE)


@bp.route("/<string:event_id>/approve/<string:user_id>", methods=["POST"])
@login_required
def approve_request(event_id, user_id):
    return _participate(event_id, ParticipationAction.APPROVE, user_id)


@bp.route("/<string:event_id>/reject/<string:user_id>", methods=["POST"])
@login_required
def reject_request(event_id, user_id):
    return _participate(event_id, ParticipationAction.REJECT, user_id)


@bp.route("/<string:event_id>/open", methods=["POST"])
@login_required
def open_event(event_id):
    """Open the event modal; non-owners always get the read-only view."""
    requested = _request_data().get("mode", MODAL_EDIT)
    if requested not in (MODAL_EDIT, MODAL_VIEW):
        raise ValidationError("mode must be edit or view.")
    event = EventService.get_visible_event(get_store(), g.user, event_id)
    state = _view_state().open_event(event, g.user["id"], requested)
    _save_view_state(state)
    return jsonify({"state": state.to_session(), "event": event_to_json(event)})


@bp.route("/<string:event_id>/comments", methods=["GET"])
@login_required
def list_comments(event_id):
    store = get_store()
    EventService.get_visible_event(store, g.user, event_id)
    comments = CommentService.list_comments(store, event_id)
    return jsonify({"comments": [_comment_to_json(c) for c in comments]})


@bp.route("/<string:event_id>/comments", methods=["POST"])
@login_required
def add_comment(event_id):
    data = require_valid(CommentForm())
    comment = CommentService.add_comment(get_store(), g.user, event_id, data["text"])
    return jsonify({"status": "success", "comment": _comment_to_json(comment)}), 201
