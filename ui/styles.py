"""Styling helpers for Streamlit layouts."""
from __future__ import annotations

import streamlit as st

_BASE_CSS = """
<style>
.stApp {
    background: #f3f4f6;
}
[data-testid="stHeader"] {
    background: rgba(0, 0, 0, 0);
}
.now-playing {
    background-color: #fef9c3;
    color: #854d0e;
    border-radius: 0.5rem;
    padding: 0.9rem 1rem;
    margin-bottom: 1.25rem;
    font-weight: 600;
    box-shadow: 0 4px 12px rgba(0, 0, 0, 0.08);
}
.story-preview {
    color: #4b5563;
    white-space: pre-wrap;
}
.story-preview.clamped {
    display: -webkit-box;
    -webkit-line-clamp: 3;
    -webkit-box-orient: vertical;
    overflow: hidden;
}
</style>
"""

_AUTH_CSS = """
<style>
.stApp {
    background: linear-gradient(135deg, #dbeafe 0%, #e0e7ff 100%);
}
[data-testid="stAppViewContainer"] .main .block-container {
    max-width: 32rem;
    background-color: #ffffff;
    border-radius: 0.75rem;
    padding: 2rem;
    margin-top: 3rem;
    box-shadow: 0 20px 40px rgba(0, 0, 0, 0.12);
}
</style>
"""


def render_app_styles(*, auth_screen: bool = False) -> None:
    """Apply the global page styling; the auth screen gets a centered card."""
    st.markdown(_BASE_CSS, unsafe_allow_html=True)
    if auth_screen:
        st.markdown(_AUTH_CSS, unsafe_allow_html=True)


__all__ = ["render_app_styles"]
