"""Shared plumbing for the story and playback record stores (SQLite or Firestore)."""
from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from google.cloud import firestore

from google_credentials import get_service_account_credentials

logger = logging.getLogger(__name__)

STORE_DB_PATH = Path((os.getenv("STORY_LIBRARY_DB_PATH") or "").strip() or "story_library.db")
GCP_PROJECT_ID = next(
    (value.strip() for value in (os.getenv("GCP_PROJECT_ID"), os.getenv("FIRESTORE_PROJECT_ID")) if value and value.strip()),
    "",
)


class StoreError(RuntimeError):
    """Raised when the record store cannot complete a read or write."""


def connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, detect_types=sqlite3.PARSE_DECLTYPES)
    conn.row_factory = sqlite3.Row
    return conn


def _firestore_project() -> str:
    """Explicit project id, else the one named by the service-account key."""

    if GCP_PROJECT_ID:
        return GCP_PROJECT_ID
    return str(getattr(get_service_account_credentials(), "project_id", "") or "")


def ensure_remote_ready() -> None:
    if not _firestore_project():
        raise StoreError(
            "Remote storage needs a Google Cloud project: set GCP_PROJECT_ID or provide "
            "service-account credentials."
        )


@lru_cache(maxsize=1)
def get_firestore_client() -> firestore.Client:
    ensure_remote_ready()
    project = _firestore_project()
    logger.debug("Creating Firestore client for project %s", project)
    return firestore.Client(project=project, credentials=get_service_account_credentials())


def get_collection(name: str):
    return get_firestore_client().collection(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    # Fixed-width microsecond timestamps keep lexical and chronological order aligned.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def coerce_datetime(value) -> datetime:
    """Firestore timestamps pass through; SQLite ISO text is parsed. Naive means UTC."""

    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value))
        except (TypeError, ValueError):
            logger.warning("Unreadable timestamp %r, using the current time", value)
            value = utc_now()
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


__all__ = [
    "GCP_PROJECT_ID",
    "STORE_DB_PATH",
    "StoreError",
    "coerce_datetime",
    "connect",
    "ensure_remote_ready",
    "get_collection",
    "get_firestore_client",
    "to_iso",
    "utc_now",
]
