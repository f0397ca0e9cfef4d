from __future__ import annotations

import pytest

pytest.importorskip("streamlit")

import telemetry  # noqa: E402


@pytest.fixture
def captured(monkeypatch):
    events: list[dict] = []
    monkeypatch.setattr(telemetry, "log_event", lambda **kwargs: events.append(kwargs) or "entry")
    monkeypatch.setattr(telemetry, "get_client_ip", lambda: "203.0.113.7")
    monkeypatch.setattr(telemetry.st, "session_state", {"auth_user": {"email": "ada@example.com"}})
    return events


def test_disabled_log_skips_the_write(monkeypatch, captured):
    monkeypatch.setattr(telemetry, "is_activity_logging_enabled", lambda: False)
    assert telemetry.emit_log_event(type="playback", action="start", result="success") is None
    assert captured == []


def test_event_carries_user_ip_and_metadata(monkeypatch, captured):
    monkeypatch.setattr(telemetry, "is_activity_logging_enabled", lambda: True)
    result = telemetry.emit_log_event(
        type="playback",
        action="finish",
        result="success",
        story_id="s1",
        metadata={"characters": 42},
    )
    assert result == "entry"
    assert captured == [
        {
            "type": "playback",
            "action": "finish",
            "result": "success",
            "user_id": "ada@example.com",
            "story_id": "s1",
            "detail": None,
            "client_ip": "203.0.113.7",
            "metadata": {"characters": 42},
        }
    ]
