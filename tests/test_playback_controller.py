from __future__ import annotations

from datetime import datetime, timezone

import pytest

from playback_controller import (
    BoundaryReached,
    CancelUtterance,
    Idle,
    LoadProgress,
    Paused,
    PersistProgress,
    PlaybackController,
    Playing,
    PlayRequested,
    ProgressLoaded,
    StartUtterance,
    Starting,
    StopRequested,
    UtteranceEnded,
    resume_offset,
    transition,
)
from record_store import StoreError
from speech_engine import Boundary, End, Utterance
from story_library import Story


def _story(story_id: str, content: str, title: str | None = None) -> Story:
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return Story(
        id=story_id,
        user_id="reader",
        title=title or story_id.upper(),
        content=content,
        created_at_utc=now,
        updated_at_utc=now,
    )


class RecordingEngine:
    def __init__(self):
        self.calls: list[tuple] = []
        self._counter = 0

    def speak(self, text: str) -> Utterance:
        self._counter += 1
        utterance = Utterance(id=f"utt-{self._counter}", text=text)
        self.calls.append(("speak", utterance.id, text))
        return utterance

    def pause(self) -> None:
        self.calls.append(("pause",))

    def resume(self) -> None:
        self.calls.append(("resume",))

    def cancel(self) -> None:
        self.calls.append(("cancel",))


class MemoryTracker:
    def __init__(self, initial: dict[tuple[str, str], int] | None = None):
        self.values = dict(initial or {})
        self.writes: list[tuple[str, int, int | None]] = []
        self.fail_get = False
        self.fail_set = False

    def get(self, user_id: str, story_id: str) -> int:
        if self.fail_get:
            raise StoreError("read failed")
        return self.values.get((user_id, story_id), 0)

    def set(self, user_id: str, story_id: str, progress: int, *, sequence: int | None = None) -> bool:
        if self.fail_set:
            raise StoreError("write failed")
        self.writes.append((story_id, progress, sequence))
        self.values[(user_id, story_id)] = progress
        return True


@pytest.fixture
def harness():
    engine = RecordingEngine()
    tracker = MemoryTracker()
    notes: list[tuple[str, str]] = []
    controller = PlaybackController("reader", engine, tracker, notify=lambda level, msg: notes.append((level, msg)))
    return controller, engine, tracker, notes


def test_play_boundary_end_persists_progress(harness):
    controller, engine, tracker, notes = harness
    story = _story("s", "x" * 100)

    controller.request_play(story)
    assert controller.state == Playing(story, 0)
    assert engine.calls == [("speak", "utt-1", "x" * 100)]
    assert tracker.values[("reader", "s")] == 0

    controller.handle_engine_event(Boundary("utt-1", 40))
    assert tracker.values[("reader", "s")] == 40

    controller.handle_engine_event(End("utt-1"))
    assert tracker.values[("reader", "s")] == 100
    assert controller.state == Idle()
    assert controller.utterance is None
    assert ("success", "Finished playing story") in notes


def test_pause_and_resume_same_story(harness):
    controller, engine, _tracker, notes = harness
    story = _story("s", "Hello there, reader.")

    controller.request_play(story)
    controller.request_play(story)
    assert controller.state == Paused(story, 0)
    assert controller.is_paused is True
    assert engine.calls[-1] == ("pause",)
    assert notes[-1] == ("info", "Paused playback")

    controller.request_play(story)
    assert controller.state == Playing(story, 0)
    assert engine.calls[-1] == ("resume",)
    assert notes[-1] == ("info", "Resumed playback")
    assert [call[0] for call in engine.calls].count("speak") == 1


def test_switching_story_cancels_and_resumes_at_stored_progress(harness):
    controller, engine, tracker, _notes = harness
    first = _story("a", "a" * 50)
    second = _story("b", "b" * 60)
    tracker.values[("reader", "b")] = 25

    controller.request_play(first)
    controller.request_play(second)

    assert engine.calls[1] == ("cancel",)
    assert engine.calls[2] == ("speak", "utt-2", "b" * 35)
    assert controller.state == Playing(second, 25)
    assert controller.current_story == second

    # Boundary offsets are relative to the resumed text.
    controller.handle_engine_event(Boundary("utt-2", 10))
    assert tracker.values[("reader", "b")] == 35


def test_stale_events_are_ignored(harness):
    controller, _engine, tracker, _notes = harness
    first = _story("a", "a" * 50)
    second = _story("b", "b" * 60)

    controller.request_play(first)
    controller.request_play(second)
    writes_before = list(tracker.writes)

    controller.handle_engine_event(Boundary("utt-1", 30))
    controller.handle_engine_event(End("utt-1"))
    assert tracker.writes == writes_before
    assert controller.state == Playing(second, 0)


def test_stop_cancels_and_discards_later_events(harness):
    controller, engine, tracker, _notes = harness
    story = _story("s", "y" * 80)

    controller.request_play(story)
    controller.handle_engine_event(Boundary("utt-1", 20))
    controller.request_stop()
    assert engine.calls[-1] == ("cancel",)
    assert controller.state == Idle()

    controller.handle_engine_event(End("utt-1"))
    assert tracker.values[("reader", "s")] == 20


def test_stop_when_idle_is_a_no_op(harness):
    controller, engine, _tracker, _notes = harness
    controller.request_stop()
    assert engine.calls == []
    assert controller.state == Idle()


def test_end_while_paused_finishes_story(harness):
    controller, _engine, tracker, _notes = harness
    story = _story("s", "z" * 30)
    controller.request_play(story)
    controller.request_play(story)
    controller.handle_engine_event(End("utt-1"))
    assert controller.state == Idle()
    assert tracker.values[("reader", "s")] == 30


def test_finished_story_resumes_at_its_end(harness):
    controller, engine, tracker, _notes = harness
    story = _story("s", "Short tale.")
    tracker.values[("reader", "s")] = len(story.content)

    controller.request_play(story)
    assert controller.state == Playing(story, len(story.content))
    assert engine.calls[-1] == ("speak", "utt-1", "")

    controller.handle_engine_event(End("utt-1"))
    assert controller.state == Idle()
    assert tracker.values[("reader", "s")] == len(story.content)


def test_progress_writes_carry_increasing_sequence(harness):
    controller, _engine, tracker, _notes = harness
    story = _story("s", "w" * 100)
    controller.request_play(story)
    controller.handle_engine_event(Boundary("utt-1", 10))
    controller.handle_engine_event(Boundary("utt-1", 20))
    controller.handle_engine_event(End("utt-1"))

    sequences = [sequence for _story_id, _progress, sequence in tracker.writes]
    assert all(seq is not None for seq in sequences)
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == len(sequences)


def test_load_failure_starts_from_zero_with_notification(harness):
    controller, engine, tracker, notes = harness
    tracker.fail_get = True
    story = _story("s", "Some words to read.")

    controller.request_play(story)
    assert controller.state == Playing(story, 0)
    assert engine.calls[-1][0] == "speak"
    assert notes[0][0] == "error"


def test_save_failure_keeps_playing(harness):
    controller, _engine, tracker, notes = harness
    story = _story("s", "Some words to read.")
    controller.request_play(story)
    tracker.fail_set = True

    controller.handle_engine_event(Boundary("utt-1", 5))
    assert isinstance(controller.state, Playing)
    assert notes[-1] == ("error", "Failed to save playback progress")


def test_transition_is_pure_and_ignores_inapplicable_events():
    story = _story("s", "abc")
    assert transition(Idle(), BoundaryReached(3)) == (Idle(), [])
    assert transition(Idle(), UtteranceEnded()) == (Idle(), [])
    assert transition(Paused(story, 0), BoundaryReached(1)) == (Paused(story, 0), [])

    state, effects = transition(Idle(), PlayRequested(story))
    assert state == Starting(story)
    assert effects == [LoadProgress(story)]

    state, effects = transition(state, ProgressLoaded(story, 2))
    assert state == Playing(story, 2)
    assert effects[:2] == [StartUtterance(story, 2), PersistProgress("s", 2)]

    state, effects = transition(state, StopRequested())
    assert state == Idle()
    assert effects == [CancelUtterance()]


def test_boundary_progress_is_clamped_to_content_length():
    story = _story("s", "abcdef")
    _state, effects = transition(Playing(story, 4), BoundaryReached(10))
    assert effects == [PersistProgress("s", 6)]


@pytest.mark.parametrize(
    ("stored", "expected"),
    [(0, 0), (3, 3), (-5, 0), (6, 6), (99, 6)],
)
def test_resume_offset(stored, expected):
    assert resume_offset(_story("s", "abcdef"), stored) == expected
