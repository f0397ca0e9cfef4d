"""Session proxy for wrapping Streamlit's session state mapping."""
from __future__ import annotations

from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    from playback_controller import PlaybackController
    from story_library import Story


class LibrarySessionProxy:
    """Typed view over a Streamlit ``session_state`` mapping for the story library."""

    def __init__(self, backing: MutableMapping[str, Any]):
        self._backing = backing

    # Basic mapping compatibility -------------------------------------------------
    def __getitem__(self, key: str) -> Any:
        return self._backing[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._backing[key] = value

    def __contains__(self, key: object) -> bool:  # pragma: no cover - mapping helper
        return key in self._backing

    def get(self, key: str, default: Any = None) -> Any:
        return self._backing.get(key, default)

    def setdefault(self, key: str, default: Any) -> Any:
        return self._backing.setdefault(key, default)

    # Story list ------------------------------------------------------------------
    @property
    def stories(self) -> list[Story]:
        return list(self._backing.get("stories") or [])

    @stories.setter
    def stories(self, value: list[Story]) -> None:
        self._backing["stories"] = list(value)

    def find_story(self, story_id: str | None) -> Story | None:
        for story in self.stories:
            if story.id == story_id:
                return story
        return None

    def is_expanded(self, story_id: str) -> bool:
        return story_id in (self._backing.get("expanded_story_ids") or [])

    def toggle_expanded(self, story_id: str) -> None:
        expanded = list(self._backing.get("expanded_story_ids") or [])
        if story_id in expanded:
            expanded.remove(story_id)
        else:
            expanded.append(story_id)
        self._backing["expanded_story_ids"] = expanded

    # Editor ----------------------------------------------------------------------
    @property
    def editor_open(self) -> bool:
        return bool(self._backing.get("editor_open"))

    @property
    def editing_story_id(self) -> str | None:
        value = self._backing.get("editing_story_id")
        return str(value) if value else None

    def open_editor(self, story_id: str | None = None) -> None:
        self._backing["editor_open"] = True
        self._backing["editing_story_id"] = story_id

    def close_editor(self) -> None:
        self._backing["editor_open"] = False
        self._backing["editing_story_id"] = None

    # Playback --------------------------------------------------------------------
    @property
    def controller(self) -> PlaybackController | None:
        return self._backing.get("playback_controller")

    @controller.setter
    def controller(self, value: PlaybackController | None) -> None:
        self._backing["playback_controller"] = value

    # Notifications ---------------------------------------------------------------
    def notify(self, level: str, message: str) -> None:
        queue = list(self._backing.get("notifications") or [])
        queue.append((level, message))
        self._backing["notifications"] = queue

    def drain_notifications(self) -> list[tuple[str, str]]:
        queue = list(self._backing.get("notifications") or [])
        self._backing["notifications"] = []
        return queue


__all__ = ["LibrarySessionProxy"]
