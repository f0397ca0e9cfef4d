"""Bridge between the browser speech player and the playback controller."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from playback_controller import PlaybackController
from session_proxy import LibrarySessionProxy
from speech_engine import EngineEvent, parse_engine_event


logger = logging.getLogger(__name__)

LAST_EVENT_KEY = "last_engine_event_id"


def apply_engine_payload(
    session: LibrarySessionProxy,
    controller: PlaybackController,
    payload: Any,
) -> EngineEvent | None:
    """Feed one component value into the controller, at most once.

    Streamlit hands back the component's last value on every rerun, so each
    payload carries an ``event_id`` and repeats are dropped here. Returns the
    event that was delivered, or ``None`` when nothing new arrived.
    """

    if not isinstance(payload, Mapping):
        return None
    event_id = str(payload.get("event_id") or "").strip()
    if not event_id:
        return None
    if session.get(LAST_EVENT_KEY) == event_id:
        return None
    session[LAST_EVENT_KEY] = event_id

    event = parse_engine_event(payload)
    if event is None:
        return None
    controller.handle_engine_event(event)
    return event


__all__ = ["apply_engine_payload"]
