"""Story mutations with a full list refresh after every change."""
from __future__ import annotations

import logging
from pathlib import Path

import playback_progress
import story_library
from playback_controller import PlaybackController
from record_store import StoreError
from session_proxy import LibrarySessionProxy


logger = logging.getLogger(__name__)


def refresh_stories(
    session: LibrarySessionProxy,
    *,
    user_id: str,
    db_path: Path | None = None,
) -> bool:
    """Reload the user's stories; on failure keep the list already shown."""

    kwargs = {"db_path": db_path} if db_path is not None else {}
    try:
        stories = story_library.list_stories(user_id=user_id, **kwargs)
    except StoreError as exc:
        logger.error("Error fetching stories: %s", exc)
        session.notify("error", "Failed to fetch stories")
        # Suppresses automatic loads until the user asks for a reload.
        session["stories_load_failed"] = True
        return False

    session.stories = stories
    session["stories_loaded"] = True
    session["stories_load_failed"] = False
    return True


def _stop_if_playing(controller: PlaybackController | None, story_id: str) -> None:
    if controller is None:
        return
    current = controller.current_story
    if current is not None and current.id == story_id:
        controller.request_stop()


def save_story(
    session: LibrarySessionProxy,
    *,
    user_id: str,
    title: str,
    content: str,
    story_id: str | None = None,
    controller: PlaybackController | None = None,
    db_path: Path | None = None,
) -> bool:
    """Create a story, or update ``story_id``, then refresh the list."""

    kwargs = {"db_path": db_path} if db_path is not None else {}
    try:
        if story_id:
            story_library.update_story(story_id, user_id=user_id, title=title, content=content, **kwargs)
        else:
            story_library.create_story(user_id=user_id, title=title, content=content, **kwargs)
    except (StoreError, ValueError) as exc:
        logger.error("Error saving story: %s", exc)
        session.notify("error", "Failed to save story")
        return False

    if story_id:
        # Offsets into the old text no longer line up with the new content.
        _stop_if_playing(controller, story_id)

    refresh_stories(session, user_id=user_id, db_path=db_path)
    session.close_editor()
    session.notify("success", "Story updated successfully" if story_id else "New story created")
    return True


def remove_story(
    session: LibrarySessionProxy,
    *,
    user_id: str,
    story_id: str,
    controller: PlaybackController | None = None,
    db_path: Path | None = None,
) -> bool:
    """Delete a story and its playback progress, then refresh the list."""

    kwargs = {"db_path": db_path} if db_path is not None else {}
    try:
        story_library.delete_story(story_id, user_id=user_id, **kwargs)
    except StoreError as exc:
        logger.error("Error deleting story: %s", exc)
        session.notify("error", "Failed to delete story")
        return False

    _stop_if_playing(controller, story_id)

    try:
        playback_progress.delete_progress(user_id=user_id, story_id=story_id, **kwargs)
    except StoreError as exc:
        logger.warning("Could not remove playback state for deleted story %s: %s", story_id, exc)

    refresh_stories(session, user_id=user_id, db_path=db_path)
    session.notify("success", "Story deleted successfully")
    return True


__all__ = ["refresh_stories", "remove_story", "save_story"]
