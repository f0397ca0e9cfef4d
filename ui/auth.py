"""Authentication views for the Streamlit application."""
from __future__ import annotations

import streamlit as st

from firebase_auth import sign_in, sign_up
from session_state import session_proxy
from telemetry import emit_log_event
from ui.styles import render_app_styles
from utils.auth import format_auth_error, store_auth_session, validate_credentials


def render_auth_gate() -> None:
    render_app_styles(auth_screen=True)

    mode = st.session_state.get("auth_form_mode", "signin")
    is_login = mode == "signin"

    st.title("Welcome back" if is_login else "Create an account")
    st.caption(
        "Enter your credentials to access your account"
        if is_login
        else "Sign up for an account to get started"
    )

    field_errors: dict[str, str] = st.session_state.get("auth_field_errors") or {}

    with st.form("auth_form", clear_on_submit=False):
        email = st.text_input("Email", placeholder="name@example.com", max_chars=120, key="auth_email")
        if field_errors.get("email"):
            st.caption(f":red[{field_errors['email']}]")
        password = st.text_input("Password", type="password", key="auth_password")
        if field_errors.get("password"):
            st.caption(f":red[{field_errors['password']}]")
        submitted = st.form_submit_button(
            "Sign In" if is_login else "Sign Up",
            type="primary",
            width="stretch",
        )

    if st.session_state.get("auth_error"):
        st.error(st.session_state["auth_error"])

    if submitted:
        email_norm = (email or "").strip()
        errors = validate_credentials(email_norm, password)
        st.session_state["auth_field_errors"] = errors
        if errors:
            st.session_state["auth_error"] = None
            st.rerun()

        action = "login" if is_login else "signup"
        with st.spinner("Processing..."):
            try:
                session = sign_in(email_norm, password) if is_login else sign_up(email_norm, password)
            except RuntimeError as exc:
                message = format_auth_error(exc)
                st.session_state["auth_error"] = message
                emit_log_event(type="user", action=action, result="fail", detail=message, user_email=email_norm)
                st.rerun()
            else:
                store_auth_session(session)
                st.session_state["auth_field_errors"] = {}
                emit_log_event(type="user", action=action, result="success")
                session_proxy().notify("success", "Successfully signed in")
                st.rerun()

    toggle_label = "Don't have an account? Sign Up" if is_login else "Already have an account? Sign In"
    if st.button(toggle_label, type="tertiary"):
        st.session_state["auth_form_mode"] = "signup" if is_login else "signin"
        st.session_state["auth_error"] = None
        st.session_state["auth_field_errors"] = {}
        st.rerun()


__all__ = ["render_auth_gate"]
