"""Initialize the Flask app and its extensions."""

import calendar
import json
import os

import firebase_admin
from firebase_admin import credentials
from flask import Flask, current_app, g, session
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as google_auth_exceptions
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    ACTIVITY_FEED_LIMIT,
    DEFAULT_TIMEZONE,
    MAX_COVER_PHOTO_BYTES,
    MIN_EVENT_HEIGHT,
    MONTH_PREVIEW_LIMIT,
    USERS_COLLECTION,
)
from .core.store import get_store
from .extensions import csrf


def _load_credentials(app):
    """Find Firebase credentials: env JSON, then a local file, then ADC.

    Returns a ``(credential, project_id)`` pair; the credential is None when
    nothing usable was found.
    """
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            return credentials.Certificate(cred_info), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    cred_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
    )
    if os.path.exists(cred_path):
        try:
            with open(cred_path, "r") as f:
                cred_info = json.load(f)
            return credentials.Certificate(cred_path), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error loading credentials from file: {e}")

    try:
        return credentials.ApplicationDefault(), app.config["FIREBASE_PROJECT_ID"]
    except google_auth_exceptions.DefaultCredentialsError as e:
        app.logger.error(
            f"Could not find any valid credentials (env, file, or default): {e}"
        )
    return None, None


def _init_firebase(app):
    cred, project_id = _load_credentials(app)
    if not cred or firebase_admin._apps:
        return

    options = {}
    project_id = project_id or app.config["FIREBASE_PROJECT_ID"]
    if project_id:
        options["projectId"] = project_id
    database_url = app.config["FIREBASE_DATABASE_URL"]
    if not database_url and project_id:
        database_url = f"https://{project_id}-default-rtdb.firebaseio.com"
    if database_url:
        options["databaseURL"] = database_url

    try:
        firebase_admin.initialize_app(cred, options)
    except ValueError:
        # This can happen if the app is already initialized, which is fine.
        app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        FIREBASE_PROJECT_ID=os.environ.get("FIREBASE_PROJECT_ID"),
        FIREBASE_DATABASE_URL=os.environ.get("FIREBASE_DATABASE_URL"),
        CALENDAR_TIMEZONE=os.environ.get("CALENDAR_TIMEZONE") or DEFAULT_TIMEZONE,
        FIRST_WEEKDAY=int(os.environ.get("FIRST_WEEKDAY") or calendar.SUNDAY),
        MONTH_PREVIEW_LIMIT=MONTH_PREVIEW_LIMIT,
        MIN_EVENT_HEIGHT=MIN_EVENT_HEIGHT,
        ACTIVITY_FEED_LIMIT=ACTIVITY_FEED_LIMIT,
        MAX_COVER_PHOTO_BYTES=MAX_COVER_PHOTO_BYTES,
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        _init_firebase(app)

    # Initialize extensions
    csrf.init_app(app)

    # Register blueprints
    from . import auth as auth_bp

    app.register_blueprint(auth_bp.bp)

    from . import squad as squad_bp

    app.register_blueprint(squad_bp.bp)

    from . import events as events_bp

    app.register_blueprint(events_bp.bp)

    from . import activity as activity_bp

    app.register_blueprint(activity_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.before_request
    def load_logged_in_user():
        """Load the signed-in user's document into ``g.user``."""
        user_id = session.get("user_id")
        g.user = None
        if user_id is None:
            return

        try:
            user = get_store().get_document(USERS_COLLECTION, user_id)
        except google_exceptions.GoogleAPICallError as e:
            current_app.logger.error(f"Error loading user from session: {e}")
            session.clear()
            return

        if user is None:
            # User ID in session but no user in the store. Clear the session.
            session.clear()
            current_app.logger.warning(f"User {user_id} in session but not found.")
            return
        g.user = user

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
