from __future__ import annotations

import importlib
import sys
from types import SimpleNamespace

import pytest


def reload_firebase_auth(monkeypatch, **env):
    for key, value in env.items():
        if value is None:
            monkeypatch.delenv(key, raising=False)
        else:
            monkeypatch.setenv(key, value)
    sys.modules.pop("firebase_auth", None)
    return importlib.import_module("firebase_auth")


class FakeResponse:
    def __init__(self, status_code: int, payload: dict[str, object]):
        self.status_code = status_code
        self._payload = payload

    def json(self) -> dict[str, object]:
        return self._payload


def test_sign_up_success(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    def fake_post(url, json=None, data=None, params=None, timeout=None):  # noqa: ARG001
        assert "accounts:signUp" in url
        assert "key=dummy-key" in url
        assert json["email"] == "reader@example.com"
        assert json["returnSecureToken"] is True
        return FakeResponse(
            200,
            {
                "localId": "uid-123",
                "email": "reader@example.com",
                "idToken": "id-token",
                "refreshToken": "refresh-token",
                "expiresIn": "3600",
            },
        )

    monkeypatch.setattr(module.requests, "post", fake_post)

    session = module.sign_up("reader@example.com", "secret123")
    assert session.uid == "uid-123"
    assert session.email == "reader@example.com"
    assert session.display_name is None
    assert session.id_token == "id-token"
    assert session.refresh_token == "refresh-token"
    assert session.expires_in.total_seconds() > 0


def test_sign_in_error_maps_firebase_code(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    def fake_post(url, json=None, data=None, params=None, timeout=None):  # noqa: ARG001
        return FakeResponse(400, {"error": {"message": "INVALID_PASSWORD"}})

    monkeypatch.setattr(module.requests, "post", fake_post)

    with pytest.raises(module.FirebaseAuthError) as excinfo:
        module.sign_in("reader@example.com", "badpass")
    assert excinfo.value.code == "INVALID_PASSWORD"


def test_error_code_strips_detail_suffix(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    def fake_post(url, json=None, data=None, params=None, timeout=None):  # noqa: ARG001
        return FakeResponse(400, {"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}})

    monkeypatch.setattr(module.requests, "post", fake_post)

    with pytest.raises(module.FirebaseAuthError) as excinfo:
        module.sign_up("reader@example.com", "123")
    assert excinfo.value.code == "WEAK_PASSWORD"


def test_missing_api_key_is_reported(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY=None)
    with pytest.raises(RuntimeError, match="FIREBASE_WEB_API_KEY"):
        module.sign_in("reader@example.com", "secret123")


def test_refresh_id_token(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    def fake_post(url, json=None, data=None, params=None, timeout=None):  # noqa: ARG001
        assert params == {"key": "dummy-key"}
        assert data["grant_type"] == "refresh_token"
        return FakeResponse(
            200,
            {
                "user_id": "uid-123",
                "id_token": "new-id-token",
                "refresh_token": "new-refresh",
                "expires_in": "3600",
            },
        )

    monkeypatch.setattr(module.requests, "post", fake_post)

    session = module.refresh_id_token("refresh-token", email="reader@example.com")
    assert session.uid == "uid-123"
    assert session.email == "reader@example.com"
    assert session.id_token == "new-id-token"
    assert session.refresh_token == "new-refresh"


def test_sign_out_revokes_refresh_tokens(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    called = SimpleNamespace(init=False, uid=None)
    monkeypatch.setattr(module, "ensure_firebase_admin_initialized", lambda: setattr(called, "init", True))
    monkeypatch.setattr(module.admin_auth, "revoke_refresh_tokens", lambda uid: setattr(called, "uid", uid))

    assert module.sign_out("uid-123") is True
    assert called.init is True
    assert called.uid == "uid-123"


def test_sign_out_without_admin_sdk_still_succeeds_locally(monkeypatch):
    module = reload_firebase_auth(monkeypatch, FIREBASE_WEB_API_KEY="dummy-key")

    def _unavailable():
        raise RuntimeError("Firebase Admin SDK could not initialize.")

    monkeypatch.setattr(module, "ensure_firebase_admin_initialized", _unavailable)
    assert module.sign_out("uid-123") is False
    assert module.sign_out("") is False
