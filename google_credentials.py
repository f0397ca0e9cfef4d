"""Locate the Google service account shared by Firestore and the Firebase Admin SDK.

Lookup order: a key file on disk, then JSON in the environment, then the
app's Streamlit secrets. Every source is optional; with none of them the
Google client libraries fall back to Application Default Credentials.
"""
from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, Mapping

import streamlit as st
from google.auth.credentials import Credentials
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

KEY_FILE_ENV_VARS = ("GOOGLE_APPLICATION_CREDENTIALS", "FIREBASE_SERVICE_ACCOUNT")
KEY_JSON_ENV_VARS = ("GOOGLE_CREDENTIALS_JSON", "GOOGLE_APPLICATION_CREDENTIALS_JSON", "GCP_SERVICE_ACCOUNT_INFO")
SECRETS_SECTIONS = ("google_credentials", "gcp_service_account", "service_account", "GOOGLE_CREDENTIALS_JSON")
LOCAL_KEY_FILE = Path("google-credential.json")

_SERVICE_ACCOUNT_FIELDS = frozenset({"type", "project_id", "private_key", "client_email"})


def _as_service_account_info(candidate: Any) -> dict[str, Any] | None:
    """Normalise a JSON string or mapping; ``None`` unless every key field is present."""

    if isinstance(candidate, str):
        text = candidate.strip()
        try:
            candidate = json.loads(text) if text else None
        except ValueError:
            candidate = None
    if not isinstance(candidate, Mapping):
        return None
    info = {str(key): value for key, value in candidate.items()}
    if _SERVICE_ACCOUNT_FIELDS - info.keys():
        return None
    return info


def _info_from_env() -> dict[str, Any] | None:
    return next(
        (info for info in map(_as_service_account_info, map(os.getenv, KEY_JSON_ENV_VARS)) if info),
        None,
    )


def _info_from_streamlit_secrets() -> dict[str, Any] | None:
    try:
        sections = [st.secrets.get(name) for name in SECRETS_SECTIONS]
    except FileNotFoundError:
        # Deployment without secrets.toml.
        return None
    return next((info for info in map(_as_service_account_info, sections) if info), None)


def _key_file_candidates() -> Iterator[Path]:
    for env_var in KEY_FILE_ENV_VARS:
        raw = (os.getenv(env_var) or "").strip()
        if raw:
            yield Path(raw).expanduser().resolve()
    yield LOCAL_KEY_FILE.resolve()


def find_key_file() -> Path | None:
    """First service-account key file that exists, or ``None``."""

    return next((path for path in _key_file_candidates() if path.is_file()), None)


def find_service_account_info() -> dict[str, Any] | None:
    """Inline service-account JSON from the environment or Streamlit secrets."""

    return _info_from_env() or _info_from_streamlit_secrets()


def _credentials_from_file() -> Credentials | None:
    path = find_key_file()
    if path is None:
        return None
    try:
        return service_account.Credentials.from_service_account_file(str(path))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable service-account key %s: %s", path, exc)
        return None


@lru_cache(maxsize=1)
def get_service_account_credentials() -> Credentials | None:
    """Credentials for the Google client libraries; ``None`` means use ADC."""

    from_file = _credentials_from_file()
    if from_file is not None:
        return from_file

    info = find_service_account_info()
    if info is None:
        return None
    try:
        return service_account.Credentials.from_service_account_info(info)
    except ValueError as exc:
        logger.warning("Ignoring malformed service-account JSON for %s: %s", info.get("client_email"), exc)
        return None


__all__ = [
    "Credentials",
    "find_key_file",
    "find_service_account_info",
    "get_service_account_credentials",
]
