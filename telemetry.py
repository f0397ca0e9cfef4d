"""Telemetry helpers around the activity log module."""
from __future__ import annotations

from typing import Any, Mapping

import streamlit as st

from activity_log import is_activity_logging_enabled, log_event
from utils.auth import auth_email


def get_client_ip() -> str | None:
    """Best-effort visitor IP from the request headers Streamlit exposes."""

    headers = getattr(getattr(st, "context", None), "headers", None)
    if not headers:
        return None
    forwarded_for = headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    for header_key in ("X-Real-IP", "CF-Connecting-IP"):
        candidate = headers.get(header_key)
        if candidate:
            return candidate.strip()
    return None


def emit_log_event(
    *,
    type: str,
    action: str,
    result: str,
    story_id: str | None = None,
    detail: str | None = None,
    user_email: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Any:
    """Wrapper around ``log_event`` that fills in the current user and client IP."""

    if not is_activity_logging_enabled():
        return None

    auth_user_state = st.session_state.get("auth_user")
    derived_email = user_email if user_email is not None else auth_email(auth_user_state)

    return log_event(
        type=type,
        action=action,
        result=result,
        user_id=derived_email,
        story_id=story_id,
        detail=detail,
        client_ip=get_client_ip(),
        metadata=metadata,
    )


__all__ = ["emit_log_event", "get_client_ip"]
