"""Story editor form for new and existing stories."""
from __future__ import annotations

import streamlit as st

from playback_controller import PlaybackController
from services.library_service import save_story
from session_proxy import LibrarySessionProxy
from telemetry import emit_log_event


def render_story_editor(
    session: LibrarySessionProxy,
    *,
    user_id: str,
    controller: PlaybackController | None,
) -> None:
    story_id = session.editing_story_id
    story = session.find_story(story_id) if story_id else None
    if story_id and story is None:
        # The story vanished (deleted elsewhere); fall back to the list.
        session.close_editor()
        st.rerun()

    st.subheader("Edit Story" if story else "New Story")
    form_key = f"story_editor_{story.id if story else 'new'}"
    with st.form(form_key, clear_on_submit=False):
        title = st.text_input(
            "Title",
            value=story.title if story else "",
            placeholder="Enter your story title",
        )
        content = st.text_area(
            "Content",
            value=story.content if story else "",
            height=300,
            placeholder="Write your story here...",
        )
        save_col, cancel_col = st.columns(2)
        with save_col:
            submitted = st.form_submit_button("Save Story", type="primary", width="stretch")
        with cancel_col:
            cancelled = st.form_submit_button("Cancel", width="stretch")

    if cancelled:
        session.close_editor()
        st.rerun()

    if not submitted:
        return

    title_clean = (title or "").strip()
    content_clean = (content or "").strip()
    if not title_clean or not content_clean:
        st.error("Title and content are both required.")
        return

    with st.spinner("Saving..."):
        saved = save_story(
            session,
            user_id=user_id,
            title=title_clean,
            content=content_clean,
            story_id=story.id if story else None,
            controller=controller,
        )
    emit_log_event(
        type="story",
        action="update" if story else "create",
        result="success" if saved else "fail",
        story_id=story.id if story else None,
        detail=title_clean,
    )
    st.rerun()


__all__ = ["render_story_editor"]
