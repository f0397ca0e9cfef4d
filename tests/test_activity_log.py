from __future__ import annotations

import importlib
import sys
from datetime import timezone


def _reload_activity_log(monkeypatch, **env):
    for key, value in env.items():
        if value is None:
            monkeypatch.delenv(key, raising=False)
        else:
            monkeypatch.setenv(key, value)
    sys.modules.pop("activity_log", None)
    module = importlib.import_module("activity_log")
    return module


def test_activity_logging_disabled_by_env(monkeypatch):
    module = _reload_activity_log(monkeypatch, ACTIVITY_LOG_ENABLED="false")
    module.init_activity_log()
    assert module.is_activity_logging_enabled() is False
    assert module.get_activity_logging_status() == (False, "ACTIVITY_LOG_ENABLED is false")
    assert module.log_event(type="story", action="noop", result="success", user_id=None) is None


def test_activity_logging_emits_documents(monkeypatch, fake_firestore):
    module = _reload_activity_log(
        monkeypatch,
        ACTIVITY_LOG_ENABLED="true",
        FIRESTORE_ACTIVITY_COLLECTION="audit",
    )
    monkeypatch.setattr(module.record_store, "ensure_remote_ready", lambda: None)

    module.init_activity_log()
    assert module.is_activity_logging_enabled() is True

    entry = module.log_event(
        type="playback",
        action="finish",
        result="ok",
        user_id="reader@example.com",
        story_id="story-1",
        client_ip=" 10.0.0.1 ",
        metadata={"progress": 120},
    )
    assert entry is not None
    assert entry.type == "playback"
    assert entry.result == "success"
    assert entry.client_ip == "10.0.0.1"
    assert entry.timestamp.tzinfo == timezone.utc

    docs = fake_firestore.collection("audit").docs
    assert list(docs) == [entry.id]
    payload = docs[entry.id]
    assert payload["action"] == "finish"
    assert payload["story_id"] == "story-1"
    assert payload["metadata"] == {"progress": 120}


def test_failed_result_is_normalized(monkeypatch, fake_firestore):
    module = _reload_activity_log(monkeypatch, ACTIVITY_LOG_ENABLED="true")
    monkeypatch.setattr(module.record_store, "ensure_remote_ready", lambda: None)
    module.init_activity_log()

    entry = module.log_event(type="user", action="login", result="error", user_id=None, detail="  bad password ")
    assert entry is not None
    assert entry.result == "fail"
    assert entry.detail == "bad password"


def test_write_failure_disables_logging(monkeypatch, fake_firestore):
    module = _reload_activity_log(monkeypatch, ACTIVITY_LOG_ENABLED="true")
    monkeypatch.setattr(module.record_store, "ensure_remote_ready", lambda: None)
    module.init_activity_log()

    class BrokenCollection:
        def document(self):
            raise RuntimeError("quota exceeded")

    monkeypatch.setattr(module, "_get_activity_collection", lambda: BrokenCollection())
    assert module.log_event(type="story", action="create", result="success", user_id="u") is None
    enabled, reason = module.get_activity_logging_status()
    assert enabled is False
    assert "quota exceeded" in (reason or "")


def test_init_failure_disables_logging(monkeypatch):
    module = _reload_activity_log(monkeypatch, ACTIVITY_LOG_ENABLED="true")

    def _not_ready():
        raise module.record_store.StoreError("GCP_PROJECT_ID must be set")

    monkeypatch.setattr(module.record_store, "ensure_remote_ready", _not_ready)
    module.init_activity_log()
    assert module.is_activity_logging_enabled() is False
    assert module.log_event(type="story", action="create", result="success", user_id="u") is None
