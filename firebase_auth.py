"""Firebase Authentication over REST, plus Admin SDK token revocation.

Email/password sign-up and sign-in go to the Identity Toolkit API, token
refresh goes to the Secure Token API. Both answer errors as
``{"error": {"message": "CODE : detail"}}``; the ``CODE`` part ends up in
``FirebaseAuthError.code`` so the UI can map it to a friendly message.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import firebase_admin
import requests
from firebase_admin import auth as admin_auth, credentials

from google_credentials import find_key_file, find_service_account_info

logger = logging.getLogger(__name__)

FIREBASE_WEB_API_KEY = (os.getenv("FIREBASE_WEB_API_KEY") or "").strip()
REQUEST_TIMEOUT_SECONDS = 10
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{method}"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"


class FirebaseAuthError(RuntimeError):
    """Firebase refused a credential or token; ``code`` is its error code, when known."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True)
class AuthSession:
    """The signed-in user and the tokens that prove it."""

    uid: str
    email: str
    id_token: str
    refresh_token: str
    expires_at: datetime
    display_name: str | None = None

    @property
    def expires_in(self) -> timedelta:
        return max(self.expires_at - datetime.now(timezone.utc), timedelta(0))


def _api_key() -> str:
    if FIREBASE_WEB_API_KEY:
        return FIREBASE_WEB_API_KEY
    raise RuntimeError("FIREBASE_WEB_API_KEY is not configured; sign-in is unavailable.")


def _error_message(body: Any) -> str | None:
    error = body.get("error") if isinstance(body, Mapping) else None
    message = error.get("message") if isinstance(error, Mapping) else None
    return str(message) if message else None


def _call(service: str, url: str, **request_kwargs: Any) -> Mapping[str, Any]:
    try:
        response = requests.post(url, timeout=REQUEST_TIMEOUT_SECONDS, **request_kwargs)
    except requests.RequestException as exc:  # pragma: no cover - network issues
        raise FirebaseAuthError(f"{service} is unreachable: {exc}") from exc

    try:
        body = response.json()
    except ValueError as exc:
        raise FirebaseAuthError(f"{service} answered with a non-JSON body") from exc

    if response.status_code >= 400:
        message = _error_message(body)
        code = message.partition(":")[0].strip() if message else None
        raise FirebaseAuthError(message or f"{service} rejected the request", code=code)
    if not isinstance(body, Mapping):
        raise FirebaseAuthError(f"{service} answered with an unexpected payload")
    return body


def _session(
    *,
    uid: Any,
    email: Any,
    id_token: Any,
    refresh_token: Any,
    lifetime: Any,
    display_name: Any = None,
) -> AuthSession:
    try:
        seconds = int(lifetime)
    except (TypeError, ValueError):
        seconds = DEFAULT_TOKEN_LIFETIME_SECONDS
    return AuthSession(
        uid=str(uid or ""),
        email=str(email or ""),
        id_token=str(id_token or ""),
        refresh_token=str(refresh_token or ""),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=seconds),
        display_name=str(display_name) if display_name else None,
    )


def _password_grant(method: str, email: str, password: str) -> AuthSession:
    body = _call(
        "Firebase Authentication",
        IDENTITY_TOOLKIT_URL.format(method=method) + f"?key={_api_key()}",
        json={"email": email, "password": password, "returnSecureToken": True},
    )
    return _session(
        uid=body.get("localId"),
        email=body.get("email") or email,
        id_token=body.get("idToken"),
        refresh_token=body.get("refreshToken"),
        lifetime=body.get("expiresIn"),
        display_name=body.get("displayName"),
    )


def sign_up(email: str, password: str) -> AuthSession:
    """Create an email/password account; Firebase signs the new user in at once."""

    session = _password_grant("signUp", email, password)
    logger.info("Created Firebase account %s", session.uid)
    return session


def sign_in(email: str, password: str) -> AuthSession:
    return _password_grant("signInWithPassword", email, password)


def refresh_id_token(refresh_token: str, *, email: str = "") -> AuthSession:
    """Trade a refresh token for a fresh ID token.

    The Secure Token API does not echo the address, so the caller passes the
    one it already knows.
    """

    body = _call(
        "Secure Token API",
        SECURE_TOKEN_URL,
        params={"key": _api_key()},
        data={"grant_type": "refresh_token", "refresh_token": refresh_token},
    )
    return _session(
        uid=body.get("user_id"),
        email=email,
        id_token=body.get("id_token"),
        refresh_token=body.get("refresh_token"),
        lifetime=body.get("expires_in"),
    )


def _admin_credential() -> credentials.Base:
    key_file = find_key_file()
    if key_file is not None:
        return credentials.Certificate(str(key_file))
    info = find_service_account_info()
    if info is not None:
        return credentials.Certificate(info)
    try:
        return credentials.ApplicationDefault()
    except Exception as exc:
        raise RuntimeError(
            "Firebase Admin SDK has no credentials. Point GOOGLE_APPLICATION_CREDENTIALS or "
            "FIREBASE_SERVICE_ACCOUNT at a service-account key, or set GOOGLE_CREDENTIALS_JSON."
        ) from exc


def ensure_firebase_admin_initialized() -> firebase_admin.App:
    """Return the default Admin SDK app, creating it on first use."""

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass  # no default app yet

    project_id = (os.getenv("GCP_PROJECT_ID") or os.getenv("GCP_PROJECT") or "").strip()
    return firebase_admin.initialize_app(_admin_credential(), {"projectId": project_id} if project_id else None)


def sign_out(uid: str) -> bool:
    """Revoke the user's refresh tokens server-side.

    ``False`` means nothing was revoked (no uid, no Admin SDK credentials or
    a failed call). The caller clears the browser session either way.
    """

    if not uid:
        return False
    try:
        ensure_firebase_admin_initialized()
        admin_auth.revoke_refresh_tokens(uid)
    except Exception as exc:  # noqa: BLE001 - local sign-out must not depend on the Admin SDK
        logger.warning("Refresh tokens for %s were not revoked: %s", uid, exc)
        return False
    logger.info("Revoked refresh tokens for %s", uid)
    return True


__all__ = [
    "AuthSession",
    "FirebaseAuthError",
    "ensure_firebase_admin_initialized",
    "refresh_id_token",
    "sign_in",
    "sign_out",
    "sign_up",
]
