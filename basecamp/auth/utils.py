"""Helpers for the auth blueprint."""

import datetime

from basecamp.core.constants import DEFAULT_ACTIVITY, DEFAULT_DISPLAY_NAME

GENERIC_AUTH_ERROR = "An unexpected error occurred during sign in."

AUTH_ERROR_MESSAGES = {
    "auth/unauthorized-domain": (
        "Domain unauthorized ({host}). Add it to the Firebase Console under "
        "Auth > Settings > Domains."
    ),
    "auth/popup-closed-by-user": "The sign-in window was closed before completion.",
    "auth/popup-blocked": (
        "Sign-in popup was blocked by your browser. "
        "Please allow popups for this site."
    ),
    "auth/network-request-failed": (
        "Network error. Please check your internet connection."
    ),
}


def auth_error_message(code, host=""):
    """Readable message for a sign-in error code reported by the client."""
    template = AUTH_ERROR_MESSAGES.get(code or "")
    if template is None:
        return GENERIC_AUTH_ERROR
    return template.format(host=host)


def new_user_document(email, display_name=None, photo_url=None, phone_number=None):
    """Fields of the user document written on first sign-in."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return {
        "email": email or "",
        "displayName": display_name or DEFAULT_DISPLAY_NAME,
        "photoURL": photo_url,
        "phoneNumber": phone_number,
        "isOnline": True,
        "currentActivity": DEFAULT_ACTIVITY,
        "createdAt": now,
        "lastSeen": now,
    }
