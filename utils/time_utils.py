"""Time and timezone helpers."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

try:
    DISPLAY_TZ = ZoneInfo((os.getenv("APP_TIMEZONE") or "UTC").strip() or "UTC")
except ZoneInfoNotFoundError:
    DISPLAY_TZ = ZoneInfo("UTC")


def format_local(dt: datetime) -> str:
    """Render ``dt`` in the display timezone; naive values are taken as UTC."""
    aware = dt
    if dt.tzinfo is None:
        aware = dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(DISPLAY_TZ).strftime("%Y-%m-%d %H:%M")


__all__ = ["DISPLAY_TZ", "format_local"]
