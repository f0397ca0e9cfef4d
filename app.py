# app.py
from __future__ import annotations

import logging
from pathlib import Path

import streamlit as st
from dotenv import find_dotenv, load_dotenv


# Load environment variables before importing modules that read them at import time
ROOT_ENV = find_dotenv(usecwd=True)
if ROOT_ENV:
    load_dotenv(ROOT_ENV, override=False)
ENV_PATH = Path(__file__).resolve().parent / ".env"
if ENV_PATH.is_file():
    load_dotenv(ENV_PATH, override=False)


from activity_log import get_activity_logging_status, init_activity_log
from app_constants import LOG_LEVEL, PAGE_ICON, PAGE_TITLE, PLAYBACK_BOUNDARY_INTERVAL_MS
from firebase_auth import sign_out
from playback_progress import init_playback_store
from record_store import StoreError
from services.library_service import refresh_stories
from session_state import (
    ensure_controller,
    ensure_state,
    reset_library_state,
    sync_library_owner,
)
from story_library import init_story_library
from telemetry import emit_log_event
from ui.auth import render_auth_gate
from ui.editor import render_story_editor
from ui.player import render_now_playing, render_speech_player
from ui.story_list import render_story_list
from ui.styles import render_app_styles
from utils.auth import (
    auth_display_name,
    auth_email,
    clear_auth_session,
    ensure_active_auth_session,
)

st.set_page_config(page_title=PAGE_TITLE, page_icon=PAGE_ICON, layout="centered")

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("story_reader")

RECORD_STORE_INIT_ERROR: str | None = None
try:
    init_story_library()
    init_playback_store()
except StoreError as exc:  # pragma: no cover - initialization failure surfaced later
    logger.error("Record store initialization failed: %s", exc)
    RECORD_STORE_INIT_ERROR = str(exc)

init_activity_log()

session = ensure_state()


def show_notifications() -> None:
    icons = {"success": "✅", "error": "⚠️", "info": "ℹ️"}
    for level, message in session.drain_notifications():
        st.toast(message, icon=icons.get(level))


def logout_user(user: dict) -> None:
    user_email = auth_email(user)
    revoked = sign_out(str(user.get("uid") or ""))
    clear_auth_session()
    reset_library_state(session)
    session["library_owner"] = None
    emit_log_event(
        type="user",
        action="logout",
        result="success",
        detail=None if revoked else "refresh tokens not revoked",
        user_email=user_email,
    )


# ─────────────────────────────────────────────────────────────────────
# Auth gate
# ─────────────────────────────────────────────────────────────────────
auth_user = ensure_active_auth_session()
user_id = str(auth_user["uid"]) if auth_user else None
sync_library_owner(session, user_id)

if not auth_user:
    show_notifications()
    render_auth_gate()
    st.stop()

render_app_styles()

if RECORD_STORE_INIT_ERROR:
    st.warning(f"The story store could not be initialized: {RECORD_STORE_INIT_ERROR}")

controller = ensure_controller(session, user_id)

# Engine events change the playback state, so they are applied before anything renders it.
render_speech_player(session, controller, boundary_interval_ms=PLAYBACK_BOUNDARY_INTERVAL_MS)

if not session.get("stories_loaded") and not session.get("stories_load_failed"):
    with st.spinner("Loading stories..."):
        refresh_stories(session, user_id=user_id)

# ─────────────────────────────────────────────────────────────────────
# Header
# ─────────────────────────────────────────────────────────────────────
title_col, new_col, menu_col = st.columns([5, 2, 1])
with title_col:
    st.title(f"{PAGE_ICON} My Stories")
    st.caption(f"Signed in as **{auth_display_name(auth_user)}**")
with new_col:
    if st.button("New Story", type="primary", width="stretch", disabled=session.editor_open):
        session.open_editor()
        st.rerun()
with menu_col:
    menu = st.popover("⚙️", width="stretch")
    with menu:
        st.write(f"Current user: **{auth_display_name(auth_user)}**")
        logging_on, logging_reason = get_activity_logging_status()
        st.caption("Activity log: on" if logging_on else f"Activity log: off ({logging_reason})")
        if st.button("Sign Out", width="stretch"):
            logout_user(auth_user)
            st.rerun()

render_now_playing(controller)

if session.editor_open:
    render_story_editor(session, user_id=user_id, controller=controller)
else:
    render_story_list(session, user_id=user_id, controller=controller)

show_notifications()
