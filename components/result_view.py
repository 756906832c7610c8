import streamlit as st

from components.session import run
from services.controller import CaptureAnalyzeController
from services.gemini_service import emotion_icon
from services.state import AcquisitionMode, ControllerState, UIStatus


def render_analyze_button(controller: CaptureAnalyzeController):
    """Analyze button; disabled while loading or without an image source."""
    state = controller.state
    disabled = not state.can_analyze or controller.classifier is None
    label = "Analyzing..." if state.is_loading else "🔍 Analyze Emotion"

    if st.button(label, disabled=disabled, use_container_width=True, type="primary"):
        with st.spinner("Analyzing emotion..."):
            run(controller.analyze())

    if controller.classifier is None:
        st.caption("Add a Gemini API key in the sidebar to enable analysis.")
    elif state.mode is AcquisitionMode.STATIC_UPLOAD and state.selected_image is None:
        st.caption("Select an image to enable analysis.")


def render_status(state: ControllerState):
    """Error box or result card, derived from the controller state."""
    if state.status is UIStatus.ERROR:
        st.error(f"**Error**: {state.last_error}")
        if state.needs_camera_permission:
            st.info(
                "📷 Camera access is needed for live mode. Allow the camera in your "
                "browser's site settings, then press START again."
            )

    if state.status is UIStatus.RESULT:
        result = state.result
        st.subheader("Analysis Result")
        st.markdown(f"## {emotion_icon(result.emotion_label)} {result.emotion_label.capitalize()}")

        col1, col2 = st.columns([4, 1])
        with col1:
            st.write("Confidence")
        with col2:
            st.write(result.confidence_percent)
        st.progress(min(100, max(0, int(round(result.confidence_score * 100)))))
