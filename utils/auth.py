"""Sign-in form checks and the signed-in user kept in ``st.session_state``.

The user lives under ``auth_user`` as a plain dict (uid, email,
display_name, id_token, refresh_token, expires_at as ISO text) so it
survives reruns. ``ensure_active_auth_session`` is called at the top of
every rerun and renews the ID token shortly before it expires.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import streamlit as st

from firebase_auth import AuthSession, FirebaseAuthError, refresh_id_token

logger = logging.getLogger(__name__)

AUTH_USER_KEY = "auth_user"
AUTH_ERROR_KEY = "auth_error"
AUTH_MODE_KEY = "auth_form_mode"

MIN_PASSWORD_LENGTH = 6
REFRESH_LEEWAY = timedelta(minutes=2)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SESSION_FIELDS = ("uid", "email", "display_name", "id_token", "refresh_token")
_REQUIRED_SESSION_FIELDS = ("uid", "id_token", "refresh_token")

_FRIENDLY_ERRORS = {
    "EMAIL_EXISTS": "An account with this email already exists. Try signing in instead.",
    "EMAIL_NOT_FOUND": "No account found for this email.",
    "USER_NOT_FOUND": "No account found for this email.",
    "INVALID_PASSWORD": "Incorrect password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "MISSING_PASSWORD": "Please enter your password.",
    "WEAK_PASSWORD": f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
    "INVALID_EMAIL": "Please check the email address.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
    "TOKEN_EXPIRED": "Your session expired. Please sign in again.",
}


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse stored ISO text; naive values are taken as UTC."""

    try:
        parsed = datetime.fromisoformat(str(value)) if value else None
    except ValueError:
        return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_credentials(email: str, password: str) -> dict[str, str]:
    """Field name to message for everything wrong with the form; empty when it can be submitted."""

    errors: dict[str, str] = {}

    address = (email or "").strip()
    if not address:
        errors["email"] = "Email is required."
    elif _EMAIL_RE.match(address) is None:
        errors["email"] = "Please enter a valid email address."

    if not password:
        errors["password"] = "Password is required."
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = _FRIENDLY_ERRORS["WEAK_PASSWORD"]

    return errors


def store_auth_session(session: AuthSession, *, previous: Mapping[str, Any] | None = None) -> None:
    """Save ``session``; fields it leaves blank keep their ``previous`` values."""

    record = {field: getattr(session, field) or "" for field in _SESSION_FIELDS}
    for field, value in (previous or {}).items():
        if field in record and not record[field]:
            record[field] = value or ""
    record["expires_at"] = session.expires_at.isoformat()

    st.session_state[AUTH_USER_KEY] = record
    st.session_state[AUTH_ERROR_KEY] = None


def clear_auth_session() -> None:
    st.session_state[AUTH_USER_KEY] = None
    st.session_state[AUTH_MODE_KEY] = "signin"


def auth_user_from_state() -> dict[str, Any] | None:
    """The stored user with ``expires_at`` as a datetime; an incomplete record is dropped."""

    stored = st.session_state.get(AUTH_USER_KEY)
    if not isinstance(stored, Mapping):
        return None

    user = dict(stored)
    user["expires_at"] = parse_iso_datetime(user.get("expires_at"))
    if user["expires_at"] is None or not all(user.get(field) for field in _REQUIRED_SESSION_FIELDS):
        clear_auth_session()
        return None
    return user


def format_auth_error(error: Exception) -> str:
    if isinstance(error, FirebaseAuthError):
        return _FRIENDLY_ERRORS.get(
            (error.code or "").upper(),
            "Authentication failed. Please try again in a moment.",
        )
    if isinstance(error, RuntimeError):
        # Configuration problems, e.g. a missing web API key.
        return str(error)
    return "An error occurred"


def _end_session(message: str) -> None:
    st.session_state[AUTH_ERROR_KEY] = message
    clear_auth_session()


def ensure_active_auth_session() -> dict[str, Any] | None:
    """Return the signed-in user, renewing the ID token when it is about to expire.

    A failed renewal signs the user out and leaves the reason in
    ``auth_error`` for the sign-in form to show.
    """

    user = auth_user_from_state()
    if user is None:
        return None
    if user["expires_at"] - datetime.now(timezone.utc) > REFRESH_LEEWAY:
        return user

    try:
        renewed = refresh_id_token(user["refresh_token"], email=user.get("email", ""))
    except FirebaseAuthError as exc:
        logger.warning("Could not renew the session of %s: %s", user["uid"], exc)
        _end_session(format_auth_error(exc))
        return None
    except RuntimeError as exc:
        _end_session(f"Could not refresh your session: {exc}")
        return None

    store_auth_session(renewed, previous=user)
    return auth_user_from_state()


def auth_display_name(user: Mapping[str, Any]) -> str:
    for field in ("display_name", "email"):
        value = str(user.get(field) or "").strip()
        if value:
            return value
    return "Reader"


def auth_email(user: Mapping[str, Any] | None) -> str | None:
    return str((user or {}).get("email") or "").strip() or None


__all__ = [
    "AUTH_ERROR_KEY",
    "AUTH_MODE_KEY",
    "AUTH_USER_KEY",
    "MIN_PASSWORD_LENGTH",
    "auth_display_name",
    "auth_email",
    "auth_user_from_state",
    "clear_auth_session",
    "ensure_active_auth_session",
    "format_auth_error",
    "parse_iso_datetime",
    "store_auth_session",
    "validate_credentials",
]
