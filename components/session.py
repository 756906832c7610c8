from collections import deque

import streamlit as st

from components.async_bridge import get_async_bridge
from services.config import AppConfig
from services.controller import CaptureAnalyzeController, Notification
from services.media_source import CameraNotStarted, MediaSourceAdapter


_TOAST_ICONS = {
    "default": "✅",
    "destructive": "⚠️",
}


def camera_not_started():
    """Opener used until the live view has rendered its WebRTC context."""
    raise CameraNotStarted("The live view has not been started.")


def get_controller(config: AppConfig) -> CaptureAnalyzeController:
    """One controller per browser session, kept in session_state."""
    if "controller" not in st.session_state:
        # notifications arrive on the bridge thread; toasts are shown from the script thread
        pending = deque()
        st.session_state.pending_notifications = pending
        st.session_state.controller = CaptureAnalyzeController(
            media=MediaSourceAdapter(
                camera_opener=camera_not_started,
                max_upload_bytes=config.max_upload_bytes,
            ),
            classifier=None,
            config=config,
            notify=pending.append,
        )
    return st.session_state.controller


def run(coro):
    """Run a controller coroutine to completion from the Streamlit script."""
    result = get_async_bridge().run(coro)
    show_notifications()
    return result


def show_notifications() -> None:
    pending = st.session_state.get("pending_notifications")
    while pending:
        note: Notification = pending.popleft()
        st.toast(f"**{note.title}**: {note.description}", icon=_TOAST_ICONS.get(note.variant, "ℹ️"))
