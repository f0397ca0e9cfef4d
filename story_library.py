"""Story record storage helpers."""
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable
from uuid import uuid4

import record_store
from record_store import StoreError, coerce_datetime, connect, to_iso, utc_now


logger = logging.getLogger(__name__)

STORY_LIBRARY_DB_PATH = record_store.STORE_DB_PATH
_TABLE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS stories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at_utc TEXT NOT NULL,
    updated_at_utc TEXT NOT NULL
);
"""

_CREATE_INDEX_USER = "CREATE INDEX IF NOT EXISTS idx_stories_user ON stories (user_id, created_at_utc DESC);"


STORY_STORAGE_MODE = (os.getenv("STORY_STORAGE_MODE") or "remote").strip().lower()
USE_REMOTE_STORY_LIBRARY = STORY_STORAGE_MODE in {"remote", "gcs"}

_STORY_COLLECTION_RAW = (os.getenv("FIRESTORE_STORY_COLLECTION") or "stories").strip()
FIRESTORE_STORY_COLLECTION = _STORY_COLLECTION_RAW or "stories"


@dataclass(slots=True)
class Story:
    """A user-owned text record that can be read aloud."""

    id: str
    user_id: str
    title: str
    content: str
    created_at_utc: datetime
    updated_at_utc: datetime


def _get_story_collection():
    return record_store.get_collection(FIRESTORE_STORY_COLLECTION)


def _normalize_owner(user_id: str | None) -> str:
    normalized = str(user_id or "").strip()
    if not normalized:
        raise ValueError("user_id is required to access stories")
    return normalized


def _normalize_fields(title: str | None, content: str | None) -> tuple[str, str]:
    normalized_title = str(title or "").strip()
    normalized_content = str(content or "").strip()
    if not normalized_title:
        raise ValueError("title is required")
    if not normalized_content:
        raise ValueError("content is required")
    return normalized_title, normalized_content


def init_story_library(db_path: Path = STORY_LIBRARY_DB_PATH) -> None:
    """Prepare the backing store for stories."""

    try:
        if USE_REMOTE_STORY_LIBRARY:
            record_store.ensure_remote_ready()
            _get_story_collection()  # Touch once to validate credentials/collection.
            return

        with connect(db_path) as conn:
            conn.execute(_TABLE_SCHEMA_SQL)
            conn.execute(_CREATE_INDEX_USER)
            conn.commit()
    except StoreError:
        raise
    except Exception as exc:
        raise StoreError(f"Could not initialize story storage: {exc}") from exc


def _make_story(doc_id: str, data: dict) -> Story:
    created_at = coerce_datetime(data.get("created_at_utc"))
    return Story(
        id=str(doc_id),
        user_id=str(data.get("user_id", "")),
        title=str(data.get("title", "")),
        content=str(data.get("content", "")),
        created_at_utc=created_at,
        updated_at_utc=coerce_datetime(data.get("updated_at_utc") or created_at),
    )


def _row_to_story(row: sqlite3.Row) -> Story:
    return Story(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=str(row["title"]),
        content=str(row["content"]),
        created_at_utc=coerce_datetime(row["created_at_utc"]),
        updated_at_utc=coerce_datetime(row["updated_at_utc"]),
    )


def list_stories(*, user_id: str, db_path: Path = STORY_LIBRARY_DB_PATH) -> list[Story]:
    """Return every story owned by ``user_id``, newest first."""

    owner = _normalize_owner(user_id)

    if USE_REMOTE_STORY_LIBRARY:
        try:
            query = _get_story_collection().where("user_id", "==", owner)
            documents: Iterable = query.stream()
            stories = [_make_story(getattr(doc, "id", ""), doc.to_dict() or {}) for doc in documents]
        except Exception as exc:
            raise StoreError(f"Failed to list stories: {exc}") from exc
        # Sorted client-side so the query needs no composite index.
        stories.sort(key=lambda item: item.created_at_utc, reverse=True)
        return stories

    try:
        with connect(db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM stories
                WHERE user_id = ?
                ORDER BY created_at_utc DESC, rowid DESC
                """,
                (owner,),
            ).fetchall()
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to list stories: {exc}") from exc
    return [_row_to_story(row) for row in rows]


def get_story(story_id: str, *, user_id: str, db_path: Path = STORY_LIBRARY_DB_PATH) -> Story:
    """Return one story owned by ``user_id`` or raise ``StoreError``."""

    owner = _normalize_owner(user_id)

    if USE_REMOTE_STORY_LIBRARY:
        try:
            snapshot = _get_story_collection().document(story_id).get()
        except Exception as exc:
            raise StoreError(f"Failed to load story {story_id}: {exc}") from exc
        data = snapshot.to_dict() if snapshot.exists else None
        if not data or str(data.get("user_id", "")) != owner:
            raise StoreError(f"Story {story_id} was not found")
        return _make_story(story_id, data)

    try:
        with connect(db_path) as conn:
            row = conn.execute(
                "SELECT * FROM stories WHERE id = ? AND user_id = ?",
                (story_id, owner),
            ).fetchone()
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to load story {story_id}: {exc}") from exc
    if row is None:
        raise StoreError(f"Story {story_id} was not found")
    return _row_to_story(row)


def create_story(
    *,
    user_id: str,
    title: str,
    content: str,
    db_path: Path = STORY_LIBRARY_DB_PATH,
) -> Story:
    """Persist a new story for ``user_id``."""

    owner = _normalize_owner(user_id)
    normalized_title, normalized_content = _normalize_fields(title, content)
    timestamp = utc_now()

    if USE_REMOTE_STORY_LIBRARY:
        try:
            doc_ref = _get_story_collection().document()
            doc_ref.set(
                {
                    "user_id": owner,
                    "title": normalized_title,
                    "content": normalized_content,
                    "created_at_utc": timestamp,
                    "updated_at_utc": timestamp,
                }
            )
        except Exception as exc:
            raise StoreError(f"Failed to create story: {exc}") from exc
        story_id = str(getattr(doc_ref, "id", ""))
    else:
        story_id = uuid4().hex
        try:
            with connect(db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO stories (id, user_id, title, content, created_at_utc, updated_at_utc)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (story_id, owner, normalized_title, normalized_content, to_iso(timestamp), to_iso(timestamp)),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create story: {exc}") from exc

    logger.info("Created story %s for %s", story_id, owner)
    return Story(
        id=story_id,
        user_id=owner,
        title=normalized_title,
        content=normalized_content,
        created_at_utc=timestamp,
        updated_at_utc=timestamp,
    )


def update_story(
    story_id: str,
    *,
    user_id: str,
    title: str,
    content: str,
    db_path: Path = STORY_LIBRARY_DB_PATH,
) -> Story:
    """Replace the title and content of a story owned by ``user_id``."""

    owner = _normalize_owner(user_id)
    normalized_title, normalized_content = _normalize_fields(title, content)
    timestamp = utc_now()

    if USE_REMOTE_STORY_LIBRARY:
        existing = get_story(story_id, user_id=owner, db_path=db_path)
        try:
            _get_story_collection().document(story_id).update(
                {
                    "title": normalized_title,
                    "content": normalized_content,
                    "updated_at_utc": timestamp,
                }
            )
        except Exception as exc:
            raise StoreError(f"Failed to update story {story_id}: {exc}") from exc
        created_at = existing.created_at_utc
    else:
        try:
            with connect(db_path) as conn:
                cursor = conn.execute(
                    """
                    UPDATE stories SET title = ?, content = ?, updated_at_utc = ?
                    WHERE id = ? AND user_id = ?
                    """,
                    (normalized_title, normalized_content, to_iso(timestamp), story_id, owner),
                )
                conn.commit()
                if cursor.rowcount == 0:
                    raise StoreError(f"Story {story_id} was not found")
                row = conn.execute("SELECT created_at_utc FROM stories WHERE id = ?", (story_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update story {story_id}: {exc}") from exc
        created_at = coerce_datetime(row["created_at_utc"])

    return Story(
        id=story_id,
        user_id=owner,
        title=normalized_title,
        content=normalized_content,
        created_at_utc=created_at,
        updated_at_utc=timestamp,
    )


def delete_story(story_id: str, *, user_id: str, db_path: Path = STORY_LIBRARY_DB_PATH) -> None:
    """Delete a story owned by ``user_id``; a missing story is an error."""

    owner = _normalize_owner(user_id)

    if USE_REMOTE_STORY_LIBRARY:
        get_story(story_id, user_id=owner, db_path=db_path)
        try:
            _get_story_collection().document(story_id).delete()
        except Exception as exc:
            raise StoreError(f"Failed to delete story {story_id}: {exc}") from exc
        logger.info("Deleted story %s for %s", story_id, owner)
        return

    try:
        with connect(db_path) as conn:
            cursor = conn.execute("DELETE FROM stories WHERE id = ? AND user_id = ?", (story_id, owner))
            conn.commit()
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to delete story {story_id}: {exc}") from exc
    if cursor.rowcount == 0:
        raise StoreError(f"Story {story_id} was not found")
    logger.info("Deleted story %s for %s", story_id, owner)


__all__ = [
    "Story",
    "StoreError",
    "create_story",
    "delete_story",
    "get_story",
    "init_story_library",
    "list_stories",
    "update_story",
]
