"""Single-slot playback state machine for reading stories aloud.

The controller keeps at most one story speaking at a time. Decisions are
made by :func:`transition`, a pure function from ``(state, event)`` to the
next state plus a list of effects; :class:`PlaybackController` performs
those effects against the speech engine and the progress tracker.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol, Union

from record_store import StoreError
from speech_engine import Boundary, End, EngineEvent, SpeechEngine, Utterance
from story_library import Story


logger = logging.getLogger(__name__)


class ProgressStore(Protocol):
    def get(self, user_id: str, story_id: str) -> int: ...

    def set(self, user_id: str, story_id: str, progress: int, *, sequence: int | None = None) -> bool: ...


Notifier = Callable[[str, str], None]


# States ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Starting:
    story: Story


@dataclass(frozen=True, slots=True)
class Playing:
    story: Story
    offset_base: int


@dataclass(frozen=True, slots=True)
class Paused:
    story: Story
    offset_base: int


SessionState = Union[Idle, Starting, Playing, Paused]


# Events ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PlayRequested:
    story: Story


@dataclass(frozen=True, slots=True)
class StopRequested:
    pass


@dataclass(frozen=True, slots=True)
class ProgressLoaded:
    story: Story
    progress: int


@dataclass(frozen=True, slots=True)
class BoundaryReached:
    offset: int


@dataclass(frozen=True, slots=True)
class UtteranceEnded:
    pass


ControllerEvent = Union[PlayRequested, StopRequested, ProgressLoaded, BoundaryReached, UtteranceEnded]


# Effects ---------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LoadProgress:
    story: Story


@dataclass(frozen=True, slots=True)
class StartUtterance:
    story: Story
    offset: int


@dataclass(frozen=True, slots=True)
class PauseUtterance:
    pass


@dataclass(frozen=True, slots=True)
class ResumeUtterance:
    pass


@dataclass(frozen=True, slots=True)
class CancelUtterance:
    pass


@dataclass(frozen=True, slots=True)
class PersistProgress:
    story_id: str
    progress: int


@dataclass(frozen=True, slots=True)
class Notify:
    level: str
    message: str


Effect = Union[LoadProgress, StartUtterance, PauseUtterance, ResumeUtterance, CancelUtterance, PersistProgress, Notify]


def resume_offset(story: Story, progress: int) -> int:
    """Clamp stored progress into ``[0, len(content)]``."""

    return min(max(0, int(progress)), len(story.content))


def transition(state: SessionState, event: ControllerEvent) -> tuple[SessionState, list[Effect]]:
    if isinstance(event, StopRequested):
        if isinstance(state, (Playing, Paused)):
            return Idle(), [CancelUtterance()]
        return Idle(), []

    if isinstance(event, PlayRequested):
        story = event.story
        if isinstance(state, Playing) and state.story.id == story.id:
            return Paused(state.story, state.offset_base), [PauseUtterance(), Notify("info", "Paused playback")]
        if isinstance(state, Paused) and state.story.id == story.id:
            return Playing(state.story, state.offset_base), [ResumeUtterance(), Notify("info", "Resumed playback")]
        if isinstance(state, Starting) and state.story.id == story.id:
            return state, []
        effects: list[Effect] = []
        if isinstance(state, (Playing, Paused)):
            effects.append(CancelUtterance())
        effects.append(LoadProgress(story))
        return Starting(story), effects

    if isinstance(event, ProgressLoaded):
        if not isinstance(state, Starting) or state.story.id != event.story.id:
            return state, []
        offset = resume_offset(state.story, event.progress)
        return Playing(state.story, offset), [
            StartUtterance(state.story, offset),
            PersistProgress(state.story.id, offset),
            Notify("success", "Started playing story"),
        ]

    if isinstance(event, BoundaryReached):
        if not isinstance(state, Playing):
            return state, []
        progress = min(state.offset_base + max(0, event.offset), len(state.story.content))
        return state, [PersistProgress(state.story.id, progress)]

    if isinstance(event, UtteranceEnded):
        if not isinstance(state, (Playing, Paused)):
            return state, []
        return Idle(), [
            PersistProgress(state.story.id, len(state.story.content)),
            Notify("success", "Finished playing story"),
        ]

    return state, []


class PlaybackController:
    """Owns the one active utterance and keeps its progress persisted."""

    def __init__(
        self,
        user_id: str,
        engine: SpeechEngine,
        tracker: ProgressStore,
        *,
        notify: Notifier | None = None,
    ) -> None:
        self.user_id = user_id
        self.engine = engine
        self.tracker = tracker
        self._notify = notify
        self._state: SessionState = Idle()
        self._utterance: Utterance | None = None
        self._last_sequence = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def utterance(self) -> Utterance | None:
        return self._utterance

    @property
    def current_story(self) -> Story | None:
        if isinstance(self._state, (Starting, Playing, Paused)):
            return self._state.story
        return None

    @property
    def is_paused(self) -> bool:
        return isinstance(self._state, Paused)

    def request_play(self, story: Story) -> None:
        self._dispatch(PlayRequested(story))

    def request_stop(self) -> None:
        self._dispatch(StopRequested())

    def handle_engine_event(self, event: EngineEvent) -> None:
        if self._utterance is None or event.utterance_id != self._utterance.id:
            logger.debug("Ignoring event for inactive utterance %s", event.utterance_id)
            return
        if isinstance(event, Boundary):
            self._dispatch(BoundaryReached(event.offset))
        elif isinstance(event, End):
            self._utterance = None
            self._dispatch(UtteranceEnded())

    def _dispatch(self, event: ControllerEvent) -> None:
        self._state, effects = transition(self._state, event)
        for effect in effects:
            self._perform(effect)

    def _perform(self, effect: Effect) -> None:
        if isinstance(effect, LoadProgress):
            self._dispatch(ProgressLoaded(effect.story, self._load_progress(effect.story)))
        elif isinstance(effect, StartUtterance):
            self._utterance = self.engine.speak(effect.story.content[effect.offset:])
        elif isinstance(effect, PauseUtterance):
            self.engine.pause()
        elif isinstance(effect, ResumeUtterance):
            self.engine.resume()
        elif isinstance(effect, CancelUtterance):
            self.engine.cancel()
            self._utterance = None
        elif isinstance(effect, PersistProgress):
            self._persist(effect.story_id, effect.progress)
        elif isinstance(effect, Notify):
            self._emit(effect.level, effect.message)

    def _load_progress(self, story: Story) -> int:
        try:
            return self.tracker.get(self.user_id, story.id)
        except StoreError as exc:
            logger.error("Error fetching playback state for %s: %s", story.id, exc)
            self._emit("error", "Could not load your saved position; starting from the beginning")
            return 0

    def _next_sequence(self) -> int:
        self._last_sequence = max(time.time_ns(), self._last_sequence + 1)
        return self._last_sequence

    def _persist(self, story_id: str, progress: int) -> None:
        try:
            self.tracker.set(self.user_id, story_id, progress, sequence=self._next_sequence())
        except StoreError as exc:
            logger.error("Error saving playback state for %s: %s", story_id, exc)
            self._emit("error", "Failed to save playback progress")

    def _emit(self, level: str, message: str) -> None:
        if self._notify is not None:
            self._notify(level, message)


__all__ = [
    "Idle",
    "Paused",
    "PlaybackController",
    "Playing",
    "SessionState",
    "Starting",
    "resume_offset",
    "transition",
]
