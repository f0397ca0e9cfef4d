"""Session state helpers for the Streamlit app."""
from __future__ import annotations

import logging
from typing import Any

import streamlit as st

from playback_controller import PlaybackController
from playback_progress import ProgressTracker
from session_proxy import LibrarySessionProxy
from speech_engine import BrowserSpeechEngine


logger = logging.getLogger(__name__)

_STATE_DEFAULTS: dict[str, Any] = {
    # Story list & editor
    "library_owner": None,
    "stories": None,
    "stories_loaded": False,
    "stories_load_failed": False,
    "expanded_story_ids": [],
    "editor_open": False,
    "editing_story_id": None,

    # Playback
    "playback_controller": None,
    "last_engine_event_id": None,

    # Authentication state
    "auth_user": None,
    "auth_error": None,
    "auth_form_mode": "signin",

    # Toast queue
    "notifications": [],
}

_LIBRARY_KEYS = (
    "stories",
    "stories_loaded",
    "stories_load_failed",
    "expanded_story_ids",
    "editor_open",
    "editing_story_id",
    "playback_controller",
    "last_engine_event_id",
)


def session_proxy() -> LibrarySessionProxy:
    """Return a proxy around the current Streamlit session state."""

    return LibrarySessionProxy(st.session_state)


def ensure_state(session: LibrarySessionProxy | None = None) -> LibrarySessionProxy:
    proxy = session or session_proxy()
    for key, default in _STATE_DEFAULTS.items():
        proxy.setdefault(key, list(default) if isinstance(default, list) else default)
    return proxy


def reset_library_state(session: LibrarySessionProxy) -> None:
    """Stop playback and forget everything cached for the previous user."""

    controller = session.controller
    if controller is not None:
        controller.request_stop()
    for key in _LIBRARY_KEYS:
        default = _STATE_DEFAULTS[key]
        session[key] = list(default) if isinstance(default, list) else default


def sync_library_owner(session: LibrarySessionProxy, user_id: str | None) -> bool:
    """React to a change of signed-in user; returns True when state was reset."""

    previous = session.get("library_owner")
    if previous == user_id:
        return False
    logger.info("Signed-in user changed (%s -> %s); resetting library state", previous, user_id)
    reset_library_state(session)
    session["library_owner"] = user_id
    return True


def ensure_controller(session: LibrarySessionProxy, user_id: str) -> PlaybackController:
    """Return the session's playback controller, creating it on first use."""

    controller = session.controller
    if controller is None or controller.user_id != user_id:
        controller = PlaybackController(
            user_id,
            BrowserSpeechEngine(),
            ProgressTracker(),
            notify=session.notify,
        )
        session.controller = controller
    return controller


__all__ = [
    "ensure_controller",
    "ensure_state",
    "reset_library_state",
    "session_proxy",
    "sync_library_owner",
]
