"""Persisted playback progress, one record per (user, story)."""
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

import record_store
from record_store import StoreError, coerce_datetime, connect, to_iso, utc_now


logger = logging.getLogger(__name__)

PLAYBACK_DB_PATH = record_store.STORE_DB_PATH
_TABLE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS playback_states (
    user_id TEXT NOT NULL,
    story_id TEXT NOT NULL,
    progress INTEGER NOT NULL DEFAULT 0,
    sequence INTEGER NOT NULL DEFAULT 0,
    updated_at_utc TEXT NOT NULL,
    PRIMARY KEY (user_id, story_id)
);
"""

# Sequenced writes only land when they are at least as new as the stored one.
_UPSERT_SQL = """
INSERT INTO playback_states (user_id, story_id, progress, sequence, updated_at_utc)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (user_id, story_id) DO UPDATE SET
    progress = excluded.progress,
    sequence = excluded.sequence,
    updated_at_utc = excluded.updated_at_utc
WHERE excluded.sequence >= playback_states.sequence OR ? = 1
"""

STORY_STORAGE_MODE = (os.getenv("STORY_STORAGE_MODE") or "remote").strip().lower()
USE_REMOTE_PLAYBACK_STORE = STORY_STORAGE_MODE in {"remote", "gcs"}

_PLAYBACK_COLLECTION_RAW = (os.getenv("FIRESTORE_PLAYBACK_COLLECTION") or "playback_states").strip()
FIRESTORE_PLAYBACK_COLLECTION = _PLAYBACK_COLLECTION_RAW or "playback_states"


@dataclass(slots=True)
class PlaybackState:
    """Where a user stopped listening to a story."""

    user_id: str
    story_id: str
    progress: int
    sequence: int
    updated_at_utc: datetime


def _get_playback_collection():
    return record_store.get_collection(FIRESTORE_PLAYBACK_COLLECTION)


def _document_id(user_id: str, story_id: str) -> str:
    return f"{user_id}__{story_id}"


def _normalize_key(user_id: str | None, story_id: str | None) -> tuple[str, str]:
    owner = str(user_id or "").strip()
    story = str(story_id or "").strip()
    if not owner:
        raise ValueError("user_id is required to track playback")
    if not story:
        raise ValueError("story_id is required to track playback")
    return owner, story


def init_playback_store(db_path: Path = PLAYBACK_DB_PATH) -> None:
    """Prepare the backing store for playback progress."""

    try:
        if USE_REMOTE_PLAYBACK_STORE:
            record_store.ensure_remote_ready()
            _get_playback_collection()
            return

        with connect(db_path) as conn:
            conn.execute(_TABLE_SCHEMA_SQL)
            conn.commit()
    except StoreError:
        raise
    except Exception as exc:
        raise StoreError(f"Could not initialize playback storage: {exc}") from exc


def _state_from_record(owner: str, story: str, data: Mapping[str, Any]) -> PlaybackState:
    return PlaybackState(
        user_id=owner,
        story_id=story,
        progress=max(0, int(data.get("progress") or 0)),
        sequence=int(data.get("sequence") or 0),
        updated_at_utc=coerce_datetime(data.get("updated_at_utc")),
    )


def load_playback_state(
    *,
    user_id: str,
    story_id: str,
    db_path: Path = PLAYBACK_DB_PATH,
) -> PlaybackState | None:
    """Return the stored record, or ``None`` when the story was never played.

    A record whose fields cannot be read back raises ``StoreError`` like a
    failed read does.
    """

    owner, story = _normalize_key(user_id, story_id)

    if USE_REMOTE_PLAYBACK_STORE:
        try:
            snapshot = _get_playback_collection().document(_document_id(owner, story)).get()
            if not snapshot.exists:
                return None
            return _state_from_record(owner, story, snapshot.to_dict() or {})
        except Exception as exc:
            raise StoreError(f"Failed to load playback state for {story}: {exc}") from exc

    try:
        with connect(db_path) as conn:
            row = conn.execute(
                "SELECT * FROM playback_states WHERE user_id = ? AND story_id = ?",
                (owner, story),
            ).fetchone()
        if row is None:
            return None
        return _state_from_record(owner, story, dict(row))
    except (sqlite3.Error, TypeError, ValueError) as exc:
        raise StoreError(f"Failed to load playback state for {story}: {exc}") from exc


def get_progress(*, user_id: str, story_id: str, db_path: Path = PLAYBACK_DB_PATH) -> int:
    """Return the stored character offset, 0 when the story was never played."""

    state = load_playback_state(user_id=user_id, story_id=story_id, db_path=db_path)
    return state.progress if state else 0


def _set_remote(owner: str, story: str, progress: int, sequence: int | None) -> bool:
    firestore = record_store.firestore
    client = record_store.get_firestore_client()
    doc_ref = client.collection(FIRESTORE_PLAYBACK_COLLECTION).document(_document_id(owner, story))
    payload = {
        "user_id": owner,
        "story_id": story,
        "progress": progress,
        "sequence": sequence or 0,
        "updated_at_utc": utc_now(),
    }

    if sequence is None:
        doc_ref.set(payload)
        return True

    @firestore.transactional
    def _apply(transaction) -> bool:
        snapshot = doc_ref.get(transaction=transaction)
        current = snapshot.to_dict() if snapshot.exists else None
        if current and int(current.get("sequence") or 0) > sequence:
            return False
        transaction.set(doc_ref, payload)
        return True

    return _apply(client.transaction())


def set_progress(
    *,
    user_id: str,
    story_id: str,
    progress: int,
    sequence: int | None = None,
    db_path: Path = PLAYBACK_DB_PATH,
) -> bool:
    """Insert or overwrite the progress record for (user, story).

    When ``sequence`` is given, the write is dropped if the stored record
    carries a higher sequence; the return value says whether it landed.
    """

    owner, story = _normalize_key(user_id, story_id)
    offset = int(progress)
    if offset < 0:
        raise ValueError("progress must be a non-negative character offset")

    if USE_REMOTE_PLAYBACK_STORE:
        try:
            applied = _set_remote(owner, story, offset, sequence)
        except Exception as exc:
            raise StoreError(f"Failed to save playback state for {story}: {exc}") from exc
    else:
        seq_value = int(sequence or 0)
        try:
            with connect(db_path) as conn:
                cursor = conn.execute(
                    _UPSERT_SQL,
                    (owner, story, offset, seq_value, to_iso(utc_now()), 1 if sequence is None else 0),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to save playback state for {story}: {exc}") from exc
        applied = cursor.rowcount > 0

    if not applied:
        logger.debug("Discarded out-of-order progress %s (seq %s) for %s", offset, sequence, story)
    return applied


def delete_progress(*, user_id: str, story_id: str, db_path: Path = PLAYBACK_DB_PATH) -> None:
    """Remove the progress record for (user, story) if one exists."""

    owner, story = _normalize_key(user_id, story_id)

    if USE_REMOTE_PLAYBACK_STORE:
        try:
            _get_playback_collection().document(_document_id(owner, story)).delete()
        except Exception as exc:
            raise StoreError(f"Failed to delete playback state for {story}: {exc}") from exc
        return

    try:
        with connect(db_path) as conn:
            conn.execute(
                "DELETE FROM playback_states WHERE user_id = ? AND story_id = ?",
                (owner, story),
            )
            conn.commit()
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to delete playback state for {story}: {exc}") from exc


class ProgressTracker:
    """Progress store bound to one database, as consumed by the playback controller."""

    def __init__(self, db_path: Path = PLAYBACK_DB_PATH) -> None:
        self.db_path = db_path

    def get(self, user_id: str, story_id: str) -> int:
        return get_progress(user_id=user_id, story_id=story_id, db_path=self.db_path)

    def set(self, user_id: str, story_id: str, progress: int, *, sequence: int | None = None) -> bool:
        return set_progress(
            user_id=user_id,
            story_id=story_id,
            progress=progress,
            sequence=sequence,
            db_path=self.db_path,
        )

    def delete(self, user_id: str, story_id: str) -> None:
        delete_progress(user_id=user_id, story_id=story_id, db_path=self.db_path)


__all__ = [
    "PlaybackState",
    "ProgressTracker",
    "delete_progress",
    "get_progress",
    "init_playback_store",
    "load_playback_state",
    "set_progress",
]
