"""Story cards with playback, edit and delete controls."""
from __future__ import annotations

import html

import streamlit as st

from app_constants import PREVIEW_LIMIT
from playback_controller import PlaybackController
from services.library_service import refresh_stories, remove_story
from session_proxy import LibrarySessionProxy
from story_library import Story
from telemetry import emit_log_event
from utils.time_utils import format_local


def _play_label(controller: PlaybackController, story: Story) -> str:
    current = controller.current_story
    if current is None or current.id != story.id:
        return "▶️ Play"
    return "▶️ Resume" if controller.is_paused else "⏸️ Pause"


def story_heading(title: str) -> str:
    return f"<h4 class='story-title'>{html.escape(title)}</h4>"


def _render_preview(session: LibrarySessionProxy, story: Story) -> None:
    collapsible = len(story.content) > PREVIEW_LIMIT
    expanded = session.is_expanded(story.id)
    css_class = "story-preview clamped" if collapsible and not expanded else "story-preview"
    st.markdown(
        f"<div class='{css_class}'>{html.escape(story.content)}</div>",
        unsafe_allow_html=True,
    )
    if collapsible:
        label = "Show Less" if expanded else "Show More"
        if st.button(label, key=f"expand_{story.id}", type="tertiary"):
            session.toggle_expanded(story.id)
            st.rerun()


def _render_story_card(
    session: LibrarySessionProxy,
    story: Story,
    *,
    user_id: str,
    controller: PlaybackController,
) -> None:
    is_current = controller.current_story is not None and controller.current_story.id == story.id
    with st.container(border=True):
        st.markdown(story_heading(story.title), unsafe_allow_html=True)
        st.caption(f"Updated {format_local(story.updated_at_utc)}")
        _render_preview(session, story)

        play_col, stop_col, edit_col, delete_col = st.columns(4)
        with play_col:
            if st.button(_play_label(controller, story), key=f"play_{story.id}", width="stretch"):
                starting = not is_current
                controller.request_play(story)
                if starting:
                    emit_log_event(type="playback", action="start", result="success", story_id=story.id)
                st.rerun()
        with stop_col:
            if st.button("⏹️ Stop", key=f"stop_{story.id}", disabled=not is_current, width="stretch"):
                controller.request_stop()
                st.rerun()
        with edit_col:
            if st.button("✏️ Edit", key=f"edit_{story.id}", width="stretch"):
                session.open_editor(story.id)
                st.rerun()
        with delete_col:
            if st.button("🗑️ Delete", key=f"delete_{story.id}", width="stretch"):
                deleted = remove_story(session, user_id=user_id, story_id=story.id, controller=controller)
                emit_log_event(
                    type="story",
                    action="delete",
                    result="success" if deleted else "fail",
                    story_id=story.id,
                    detail=story.title,
                )
                st.rerun()


def render_empty_state(session: LibrarySessionProxy) -> None:
    with st.container(border=True):
        st.markdown("### 📖 No stories")
        st.caption("Get started by creating a new story.")
        if st.button("New Story", key="empty_new_story", type="primary"):
            session.open_editor()
            st.rerun()


def _render_load_error(session: LibrarySessionProxy, *, user_id: str) -> None:
    with st.container(border=True):
        st.error("Your stories could not be loaded.")
        if st.button("Retry", key="retry_load_stories"):
            with st.spinner("Loading stories..."):
                refresh_stories(session, user_id=user_id)
            st.rerun()


def render_story_list(
    session: LibrarySessionProxy,
    *,
    user_id: str,
    controller: PlaybackController,
) -> None:
    stories = session.stories
    load_failed = bool(session.get("stories_load_failed"))
    if load_failed:
        _render_load_error(session, user_id=user_id)
    if not stories:
        if not load_failed:
            render_empty_state(session)
        return
    for story in stories:
        _render_story_card(session, story, user_id=user_id, controller=controller)


__all__ = ["render_empty_state", "render_story_list", "story_heading"]
