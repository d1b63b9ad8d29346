"""Routes for the auth blueprint."""

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from flask import current_app, g, jsonify, request, session

from basecamp.auth.decorators import login_required
from basecamp.core.constants import USERS_COLLECTION
from basecamp.core.store import get_store
from basecamp.core.utils import json_body, require_valid
from basecamp.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from basecamp.squad.presence import set_offline, set_online

from . import bp
from .forms import ProfileForm, RegisterForm
from .utils import auth_error_message, new_user_document


def _start_session(uid):
    session.clear()
    session["user_id"] = uid
    session.permanent = True


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    Called by the client after a Firebase sign-in attempt.

    A successful attempt sends ``idToken``; the token is verified and a
    server-side session is created, along with the user document on first
    sign-in. A failed attempt sends ``errorCode`` and gets back a readable
    message.
    """
    data = json_body()
    if data.get("errorCode"):
        current_app.logger.info(f"Client sign-in failed: {data['errorCode']}")
        raise AuthorizationError(auth_error_message(data["errorCode"], request.host))

    id_token = data.get("idToken")
    if not id_token:
        raise AuthorizationError("Missing ID token.")
    try:
        decoded_token = auth.verify_id_token(id_token)
    except auth.ExpiredIdTokenError as e:
        raise AuthorizationError(
            "Your sign-in has expired. Please sign in again."
        ) from e
    except (auth.InvalidIdTokenError, ValueError) as e:
        current_app.logger.warning(f"Rejected ID token: {e}")
        raise AuthorizationError("Invalid sign-in token.") from e
    except firebase_exceptions.FirebaseError as e:
        current_app.logger.error(f"Error during session login: {e}")
        raise AuthorizationError() from e

    uid = decoded_token["uid"]
    store = get_store()
    user = store.get_document(USERS_COLLECTION, uid)
    created = user is None
    if created:
        fields = new_user_document(
            decoded_token.get("email"),
            decoded_token.get("name"),
            decoded_token.get("picture"),
            decoded_token.get("phone_number"),
        )
        store.write_document(USERS_COLLECTION, uid, fields)
        current_app.logger.info(f"Created user document for {uid}")

    _start_session(uid)
    set_online(store, uid)
    return jsonify({"status": "success", "created": created})


@bp.route("/register", methods=["POST"])
def register():
    """Create an email/password account and its user document."""
    data = require_valid(RegisterForm())
    display_name = data["display_name"] or None
    try:
        user_record = auth.create_user(
            email=data["email"],
            password=data["password"],
            display_name=display_name,
        )
    except auth.EmailAlreadyExistsError as e:
        raise ConflictError("Email address is already registered.") from e
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        current_app.logger.error(f"Error during registration: {e}")
        raise ValidationError("Could not create the account.") from e

    store = get_store()
    store.write_document(
        USERS_COLLECTION,
        user_record.uid,
        new_user_document(data["email"], display_name),
    )
    current_app.logger.info(f"Registered user {user_record.uid}")
    _start_session(user_record.uid)
    set_online(store, user_record.uid)
    return jsonify({"status": "success", "uid": user_record.uid}), 201


@bp.route("/logout", methods=["POST"])
def logout():
    """
    Sign-out itself happens in the client SDK. This marks the user offline
    and clears the server-side session.
    """
    uid = session.get("user_id")
    if uid:
        set_offline(get_store(), uid)
    session.clear()
    return jsonify({"status": "success"})


@bp.route("/profile", methods=["POST"])
@login_required
def update_profile():
    """Change the signed-in user's display name and photo.

    The Auth account is updated first, then the user document, so that both
    show the same name and photo.
    """
    data = require_valid(ProfileForm())
    uid = g.user["id"]
    display_name = data["display_name"].strip()
    photo_url = (data["photo_url"] or "").strip() or None
    try:
        auth.update_user(
            uid,
            display_name=display_name,
            photo_url=photo_url or auth.DELETE_ATTRIBUTE,
        )
    except auth.UserNotFoundError as e:
        raise NotFoundError("Account not found.") from e
    except ValueError as e:
        raise ValidationError("Invalid profile details.") from e
    except firebase_exceptions.FirebaseError as e:
        current_app.logger.error(f"Error updating profile for {uid}: {e}")
        raise StoreError("Failed to update profile.") from e

    fields = {"displayName": display_name, "photoURL": photo_url}
    get_store().write_document(USERS_COLLECTION, uid, fields, merge=True)
    current_app.logger.info(f"Updated profile for {uid}")
    return jsonify({"status": "success", "user": {"id": uid, **fields}})
