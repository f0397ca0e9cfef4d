"""Shared constants for the Story Reader app."""
from __future__ import annotations

import os

PAGE_TITLE = "Story Reader"
PAGE_ICON = "📚"

# Stories longer than this are shown collapsed with a "Show More" toggle.
PREVIEW_LIMIT = 150


def _int_from_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


PLAYBACK_BOUNDARY_INTERVAL_MS = _int_from_env("PLAYBACK_BOUNDARY_INTERVAL_MS", 1500)

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

__all__ = [
    "LOG_LEVEL",
    "PAGE_ICON",
    "PAGE_TITLE",
    "PLAYBACK_BOUNDARY_INTERVAL_MS",
    "PREVIEW_LIMIT",
]
