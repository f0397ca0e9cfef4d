"""Browser speech player component and the now-playing banner."""
from __future__ import annotations

import html
from pathlib import Path

import streamlit as st
import streamlit.components.v1 as components

from playback_controller import PlaybackController
from services.playback_service import apply_engine_payload
from session_proxy import LibrarySessionProxy
from speech_engine import End
from telemetry import emit_log_event

_COMPONENT_DIR = Path(__file__).parent / "speech_player"
_speech_player = components.declare_component("speech_player", path=str(_COMPONENT_DIR))


def render_speech_player(
    session: LibrarySessionProxy,
    controller: PlaybackController,
    *,
    boundary_interval_ms: int,
) -> None:
    """Send pending engine commands to the browser and apply what it reports back."""

    engine = controller.engine
    payload = _speech_player(
        commands=getattr(engine, "commands", []),
        engine_id=getattr(engine, "instance_id", None),
        boundary_interval_ms=boundary_interval_ms,
        key="speech_player",
        default=None,
    )

    playing = controller.current_story
    event = apply_engine_payload(session, controller, payload)
    if isinstance(event, End) and playing is not None and controller.current_story is None:
        emit_log_event(
            type="playback",
            action="finish",
            result="success",
            story_id=playing.id,
            metadata={"characters": len(playing.content)},
        )


def render_now_playing(controller: PlaybackController) -> None:
    story = controller.current_story
    if story is None:
        return
    suffix = " (paused)" if controller.is_paused else ""
    st.markdown(
        f"<div class='now-playing'>Now Playing: {html.escape(story.title)}{suffix}</div>",
        unsafe_allow_html=True,
    )


__all__ = ["render_now_playing", "render_speech_player"]
