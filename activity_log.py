"""Audit trail of reader actions, written to a Firestore collection.

Events cover accounts (login, signup, logout), story edits (create, update,
delete) and playback (start, finish). Writing is best effort: the first
failure switches the log off for the rest of the process and the app keeps
running without it.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

import record_store

logger = logging.getLogger(__name__)

ACTIVITY_LOG_ENABLED = (os.getenv("ACTIVITY_LOG_ENABLED") or "true").strip().lower() not in {"0", "false", "no", "off"}
ACTIVITY_LOG_COLLECTION = (os.getenv("FIRESTORE_ACTIVITY_COLLECTION") or "").strip() or "activity_logs"

EVENT_TYPES = frozenset({"user", "story", "playback"})
_FAILURE_RESULTS = frozenset({"", "fail", "failure", "error"})


@dataclass(slots=True)
class _LogStatus:
    active: bool = False
    reason: str | None = "not initialized"


_status = _LogStatus()


@dataclass(slots=True)
class ActivityLogEntry:
    """One recorded reader action as it was written."""

    id: str
    type: str
    action: str
    result: str
    user_id: str | None
    client_ip: str | None
    timestamp: datetime
    story_id: str | None
    detail: str | None


def _get_activity_collection():
    return record_store.get_collection(ACTIVITY_LOG_COLLECTION)


def _switch_off(reason: str) -> None:
    if _status.active:
        logger.warning("Activity log switched off: %s", reason)
    _status.active = False
    _status.reason = reason


def init_activity_log() -> None:
    """Check that the audit collection is reachable and switch logging on."""

    if not ACTIVITY_LOG_ENABLED:
        _switch_off("ACTIVITY_LOG_ENABLED is false")
        return

    try:
        record_store.ensure_remote_ready()
        list(_get_activity_collection().limit(1).stream())
    except Exception as exc:  # noqa: BLE001 - audit log is optional
        _switch_off(str(exc))
        return

    _status.active = True
    _status.reason = None
    logger.debug("Activity log writing to Firestore collection '%s'", ACTIVITY_LOG_COLLECTION)


def is_activity_logging_enabled() -> bool:
    return _status.active


def get_activity_logging_status() -> tuple[bool, str | None]:
    return _status.active, _status.reason


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _event_type(value: str) -> str:
    kind = (_clean(value) or "").lower()
    if kind not in EVENT_TYPES:
        logger.debug("Recording unknown activity type %r as 'other'", value)
        return "other"
    return kind


def log_event(
    *,
    type: str,
    action: str,
    result: str,
    user_id: str | None,
    story_id: str | None = None,
    detail: str | None = None,
    client_ip: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry | None:
    """Record one event; returns ``None`` when the log is off or the write failed."""

    if not _status.active:
        return None

    timestamp = datetime.now(timezone.utc)
    entry = ActivityLogEntry(
        id="",
        type=_event_type(type),
        action=(_clean(action) or "unknown").lower(),
        result="fail" if (_clean(result) or "").lower() in _FAILURE_RESULTS else "success",
        user_id=_clean(user_id),
        client_ip=_clean(client_ip),
        timestamp=timestamp,
        story_id=_clean(story_id),
        detail=_clean(detail),
    )
    document = {
        "type": entry.type,
        "action": entry.action,
        "result": entry.result,
        "user_id": entry.user_id,
        "client_ip": entry.client_ip,
        "story_id": entry.story_id,
        "detail": entry.detail,
        "timestamp": timestamp,
    }
    if metadata:
        document["metadata"] = dict(metadata)

    try:
        doc_ref = _get_activity_collection().document()
        doc_ref.set(document)
    except Exception as exc:  # noqa: BLE001 - never break the page over an audit write
        logger.warning("Could not record %s/%s activity: %s", entry.type, entry.action, exc)
        _switch_off(str(exc))
        return None

    entry.id = str(getattr(doc_ref, "id", ""))
    return entry


__all__ = [
    "ACTIVITY_LOG_COLLECTION",
    "ACTIVITY_LOG_ENABLED",
    "ActivityLogEntry",
    "EVENT_TYPES",
    "get_activity_logging_status",
    "init_activity_log",
    "is_activity_logging_enabled",
    "log_event",
]
