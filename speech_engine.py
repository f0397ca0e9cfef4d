"""Speech engine contract and the browser-backed implementation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Union
from uuid import uuid4


logger = logging.getLogger(__name__)

COMMAND_BACKLOG = 8


@dataclass(frozen=True, slots=True)
class Utterance:
    """Handle for one speech-engine invocation."""

    id: str
    text: str


@dataclass(frozen=True, slots=True)
class Boundary:
    utterance_id: str
    offset: int


@dataclass(frozen=True, slots=True)
class End:
    utterance_id: str


EngineEvent = Union[Boundary, End]


class SpeechEngine(Protocol):
    """A speech facility with a single globally active utterance."""

    def speak(self, text: str) -> Utterance: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def cancel(self) -> None: ...


class BrowserSpeechEngine:
    """Queues commands for the Web Speech API running in the visitor's browser.

    Every command gets a monotonically increasing ``id``; the browser
    component executes each command once, in order, and reports boundary and
    end events back with the utterance id they belong to.
    """

    def __init__(self) -> None:
        # Distinguishes this engine's command ids from a previous session's.
        self.instance_id = uuid4().hex
        self._next_command_id = 0
        self._commands: list[dict[str, Any]] = []
        self._active: Utterance | None = None

    @property
    def active(self) -> Utterance | None:
        return self._active

    @property
    def commands(self) -> list[dict[str, Any]]:
        return list(self._commands)

    def _issue(self, action: str, **fields: Any) -> None:
        self._next_command_id += 1
        command = {"id": self._next_command_id, "action": action, **fields}
        self._commands.append(command)
        del self._commands[:-COMMAND_BACKLOG]

    def speak(self, text: str) -> Utterance:
        utterance = Utterance(id=uuid4().hex, text=text)
        # The browser cancels whatever is speaking before starting this one.
        self._active = utterance
        self._issue("speak", utterance_id=utterance.id, text=text)
        return utterance

    def pause(self) -> None:
        self._issue("pause")

    def resume(self) -> None:
        self._issue("resume")

    def cancel(self) -> None:
        self._active = None
        self._issue("cancel")


def parse_engine_event(payload: Any) -> EngineEvent | None:
    """Turn a browser component payload into a typed engine event."""

    if not isinstance(payload, Mapping):
        return None

    kind = str(payload.get("type") or "").strip().lower()
    utterance_id = str(payload.get("utterance_id") or "").strip()
    if not utterance_id:
        logger.warning("Ignoring speech event without utterance id: %r", payload)
        return None

    if kind == "end":
        return End(utterance_id=utterance_id)
    if kind == "boundary":
        try:
            offset = int(payload.get("offset"))
        except (TypeError, ValueError):
            logger.warning("Ignoring speech boundary with invalid offset: %r", payload)
            return None
        if offset < 0:
            logger.warning("Ignoring speech boundary with negative offset: %r", payload)
            return None
        return Boundary(utterance_id=utterance_id, offset=offset)

    logger.warning("Ignoring unknown speech event type %r", kind)
    return None


__all__ = [
    "Boundary",
    "BrowserSpeechEngine",
    "COMMAND_BACKLOG",
    "End",
    "EngineEvent",
    "SpeechEngine",
    "Utterance",
    "parse_engine_event",
]
